import structlog
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from registry_viewer.packages.registry_gateway import (
    RegistryGatewayError,
    gateway_error_response,
)
from registry_viewer.routes import health, proxy, registry
from registry_viewer.utils.logging import setup_logger
from registry_viewer.utils.sentry import init_sentry

logger = structlog.stdlib.get_logger(__name__)

init_sentry()
app = FastAPI(title="Registry Viewer")
setup_logger(app)


api_router = APIRouter(prefix="/api")


@app.exception_handler(RegistryGatewayError)
async def registry_exception_handler(request: Request, exc: RegistryGatewayError):
    logger.error(
        "Registry operation failed",
        path=request.url.path,
        status_code=exc.status_code,
        error=exc.message,
    )
    return gateway_error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"title": "Validation error", "description": exc.errors()},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"title": "Internal Server Error", "description": str(exc)},
    )


api_router.include_router(health.router)
api_router.include_router(proxy.router)
api_router.include_router(registry.router)
app.include_router(api_router)
