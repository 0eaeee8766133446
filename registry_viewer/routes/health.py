from typing import Literal

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from typing_extensions import TypedDict

from registry_viewer.deps.registry import RegistryClientDep
from registry_viewer.packages.registry_gateway import RegistryGatewayError

logger = structlog.stdlib.get_logger(__name__)

router = APIRouter(tags=["Health"])


class HealthResponse(TypedDict):
    status: Literal["pass"]
    registry: int


@router.get("/health", responses={200: {"model": HealthResponse}})
async def health(registry: RegistryClientDep):
    try:
        registry_status = await registry.ping()
    except RegistryGatewayError as e:
        logger.warning("Registry ping failed", error=e.message)
        return JSONResponse(
            status_code=503,
            content={"status": "fail", "registry": e.message},
        )

    # 401 still proves the registry speaks the v2 API
    if registry_status not in (200, 401):
        return JSONResponse(
            status_code=503,
            content={"status": "fail", "registry": registry_status},
        )

    return {"status": "pass", "registry": registry_status}
