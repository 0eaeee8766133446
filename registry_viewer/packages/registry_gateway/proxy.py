"""Generic HTTP pass-through to the Docker Registry v2 API.

This module provides the gateway used by the viewer for raw registry calls.
No dependencies on registry_viewer.* modules to maintain independence and
reusability.
"""

from typing import Optional

import httpx
import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, StreamingResponse

from .fetcher import RegistryFetcher
from .headers import gateway_headers, prepare_response_headers, sanitize_request_headers
from .paths import translate_path
from .types import RegistryGatewayError

logger = structlog.stdlib.get_logger(__name__)

BODY_METHODS = ["POST", "PUT", "PATCH"]


def gateway_error_response(status_code: int, message: str, **extra) -> JSONResponse:
    """JSON error shape rendered by the viewer."""
    return JSONResponse(
        status_code=status_code,
        content={"error": message, **extra},
        headers=gateway_headers(),
    )


def _upstream_error_response(response: httpx.Response) -> JSONResponse:
    extra = {}
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("errors"):
        extra["errors"] = body["errors"]

    return gateway_error_response(
        response.status_code,
        response.reason_phrase or "Failed to fetch from registry",
        **extra,
    )


async def proxy_request(
    request: Request,
    fetcher: RegistryFetcher,
    body: Optional[bytes] = None,
) -> StreamingResponse | JSONResponse:
    """Forward an inbound gateway request to the registry.

    This handles:
    - Path translation (``/api/proxy/<rest>`` to ``/v2/<rest>``)
    - Header sanitizing (Host and Authorization are never forwarded)
    - Retries through the fetcher's default policy for the method
    - Conversion of failures into responses the viewer can render

    Args:
        request: Original FastAPI request from the viewer
        fetcher: Fetcher bound to the current inbound request
        body: Request body already read from the client (POST/PUT/PATCH)

    Returns:
        StreamingResponse relaying the registry response, or a JSONResponse
        describing the failure
    """
    config = fetcher.config
    target_url = translate_path(
        request.url.path, config.proxy_prefix, config.registry_url
    )
    method = request.method.upper()

    logger.info(
        "Proxying request",
        method=method,
        path=request.url.path,
        target_url=target_url,
    )

    headers = sanitize_request_headers(request.headers.items())
    content = body if method in BODY_METHODS else None

    try:
        response = await fetcher.fetch(
            method,
            target_url,
            headers=headers,
            content=content,
            params=request.query_params.multi_items() or None,
        )
    except RegistryGatewayError as e:
        logger.error(
            "Proxy request failed",
            method=method,
            target_url=target_url,
            error=e.message,
            status_code=e.status_code,
        )
        return gateway_error_response(e.status_code, e.message)

    if not response.is_success:
        logger.error(
            "Registry API error",
            method=method,
            target_url=target_url,
            status_code=response.status_code,
            reason=response.reason_phrase,
        )
        return _upstream_error_response(response)

    response_headers = prepare_response_headers(
        response.headers.multi_items(), overrides=gateway_headers()
    )
    if "content-encoding" in response.headers:
        # httpx hands us decoded bytes, the upstream length no longer applies
        for name in [k for k in response_headers if k.lower() == "content-length"]:
            del response_headers[name]

    logger.info(
        "Proxy response received",
        status_code=response.status_code,
        target_url=target_url,
    )

    # Stream response back to client
    async def generate():
        async for chunk in response.aiter_bytes(chunk_size=65536):
            yield chunk

    return StreamingResponse(
        content=generate(),
        status_code=response.status_code,
        headers=response_headers,
        media_type=response.headers.get("content-type"),
    )
