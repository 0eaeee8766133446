"""Pass-through gateway to the Docker Registry v2 API.

Everything under ``/api/proxy`` is forwarded to ``<REGISTRY_URL>/v2``.

See: https://distribution.github.io/distribution/spec/api/
"""

import structlog
from fastapi import APIRouter, Request

from registry_viewer.deps.registry import RegistryClientDep
from registry_viewer.packages.registry_gateway import proxy_request

logger = structlog.stdlib.get_logger(__name__)

router = APIRouter(prefix="/proxy", tags=["Registry Proxy"])

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE"]


async def _forward(request: Request, registry: RegistryClientDep):
    logger.info("API called", method=request.method, path=request.url.path)

    body = None
    if request.method in ("POST", "PUT"):
        body = await request.body()

    return await proxy_request(request, registry.fetcher, body=body)


@router.api_route("", methods=PROXY_METHODS)
async def proxy_root(request: Request, registry: RegistryClientDep):
    """Forward to the registry root (``/v2/``), used as a ping."""
    return await _forward(request, registry)


@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_path(path: str, request: Request, registry: RegistryClientDep):
    """Forward any registry call, e.g. ``/api/proxy/_catalog``."""
    return await _forward(request, registry)
