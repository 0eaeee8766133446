import logging
import time
from enum import Enum

import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI, Request, Response
from pydantic_settings import BaseSettings
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from structlog.typing import Processor
from uvicorn.protocols.utils import get_path_with_query_string

from registry_viewer.packages.registry_gateway import sanitize_request_headers


class LogFormats(str, Enum):
    JSON = "json"
    CONSOLE = "console"


class LogSettings(BaseSettings):
    log_format: LogFormats = LogFormats.JSON
    log_level: str = "INFO"
    log_request_headers: bool = False


def configure_structlog(settings: LogSettings) -> None:
    """Route structlog and stdlib logging through one formatter."""
    log_renderer: Processor
    if settings.log_format == LogFormats.CONSOLE:
        log_renderer = structlog.dev.ConsoleRenderer()
    else:
        log_renderer = structlog.processors.JSONRenderer()

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.stdlib.ExtraAdder(),
        structlog.processors.CallsiteParameterAdder(
            [
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == LogFormats.JSON:
        processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=processors  # type: ignore
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,  # type: ignore
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            log_renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level.upper())

    for _log in ["uvicorn", "uvicorn.error"]:
        logging.getLogger(_log).handlers.clear()
        logging.getLogger(_log).propagate = True

    # Every upstream attempt is already logged by the fetcher
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("uvicorn.access").handlers.clear()
    logging.getLogger("uvicorn.access").propagate = False


def setup_logger(app: FastAPI):
    settings = LogSettings()
    configure_structlog(settings)

    app.add_middleware(
        RequestContextMiddleware, log_request_headers=settings.log_request_headers
    )
    app.add_middleware(CorrelationIdMiddleware)


access_logger = structlog.stdlib.get_logger("api.access")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the correlation id and writes one access log line per request.

    Request headers, when logged, go through the same sanitizer as the
    gateway so credentials never reach the logs.
    """

    def __init__(self, app, log_request_headers: bool = False):
        super().__init__(app)
        self.log_request_headers = log_request_headers

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        structlog.contextvars.clear_contextvars()
        request_id = correlation_id.get()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        start_time = time.perf_counter()
        response = Response(status_code=500)
        try:
            response = await call_next(request)
        except Exception:
            structlog.stdlib.get_logger("api.error").exception("Uncaught exception")
            raise
        finally:
            process_time = time.perf_counter() - start_time
            status_code = response.status_code
            url = get_path_with_query_string(request.scope)  # type: ignore
            http_version = request.scope.get("http_version", "1.1")
            extra = {}
            if self.log_request_headers:
                extra["headers"] = sanitize_request_headers(request.headers.items())
            access_logger.info(
                f""""{request.method} {url} HTTP/{http_version}" {status_code}""",
                http={
                    "url": str(request.url),
                    "status_code": status_code,
                    "method": request.method,
                    "request_id": request_id,
                    "version": http_version,
                },
                duration=process_time,
                endpoint=request.url.path,
                query_params=dict(request.query_params),
                **extra,
            )
        response.headers["X-Process-Time"] = f"{process_time:.6f}"
        return response
