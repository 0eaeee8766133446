"""Per-request registry client dependency.

Each inbound request gets its own ``httpx.AsyncClient`` and
``RegistryClient``; nothing is shared between concurrent requests.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request

from registry_viewer.packages.registry_gateway import (
    RegistryClient,
    RegistryConfig,
    build_http_client,
)
from registry_viewer.settings import settings


def get_registry_config() -> RegistryConfig:
    return RegistryConfig(
        registry_url=settings.REGISTRY_URL,
        proxy_prefix=settings.REGISTRY_PROXY_PREFIX,
        max_retries=settings.REGISTRY_MAX_RETRIES,
        not_modified_delay=settings.REGISTRY_NOT_MODIFIED_RETRY_DELAY,
        deadline=settings.REGISTRY_REQUEST_DEADLINE or None,
        connect_timeout=settings.REGISTRY_CONNECT_TIMEOUT,
        read_timeout=settings.REGISTRY_READ_TIMEOUT,
    )


async def get_registry_client(
    request: Request,
) -> AsyncGenerator[RegistryClient, None]:
    config = get_registry_config()
    async with build_http_client(config) as http_client:
        yield RegistryClient(
            config=config,
            http_client=http_client,
            is_cancelled=request.is_disconnected,
        )


RegistryClientDep = Annotated[RegistryClient, Depends(get_registry_client)]
