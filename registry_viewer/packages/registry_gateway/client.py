"""Logical registry operations consumed by the viewer.

``RegistryClient`` wraps one ``httpx.AsyncClient`` and is meant to live for
a single inbound request; nothing is cached between calls.
"""

import asyncio
from typing import Any, Iterable, Optional
from urllib.parse import unquote

import httpx
import structlog

from .deletion import TagDeletionOrchestrator
from .fetcher import CancelCheck, RegistryFetcher, Sleep
from .headers import without_conditional_headers
from .manifests import ManifestResolver
from .paths import blob_path, catalog_path, tags_path, translate_path
from .types import (
    Blob,
    ManifestResult,
    RegistryConfig,
    TagDeletionOutcome,
    UpstreamHTTPError,
)

logger = structlog.stdlib.get_logger(__name__)


class RegistryClient:
    """Docker Registry v2 client for the viewer.

    Reads are sent with ``Cache-Control: no-cache`` and without conditional
    headers so that the registry answers with full bodies.
    """

    def __init__(
        self,
        config: RegistryConfig,
        http_client: httpx.AsyncClient,
        is_cancelled: Optional[CancelCheck] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize the registry client.

        Args:
            config: Registry configuration
            http_client: HTTP client scoped to the current inbound request
            is_cancelled: Coroutine telling whether the inbound client left
            sleep: Sleep used between 304 retries
        """
        self.config = config
        self.fetcher = RegistryFetcher(
            http_client, config, is_cancelled=is_cancelled, sleep=sleep
        )
        self.read_headers = without_conditional_headers({})
        self.resolver = ManifestResolver(self.fetcher, headers=self.read_headers)
        self.deleter = TagDeletionOrchestrator(self.fetcher, self.resolver)

    def _url(self, path: str) -> str:
        return translate_path(path, "", self.config.registry_url)

    async def _get_json(self, path: str, what: str) -> dict[str, Any]:
        response = await self.fetcher.fetch(
            "GET", self._url(path), headers=self.read_headers
        )
        if not response.is_success:
            logger.error(
                "Registry API error",
                what=what,
                status_code=response.status_code,
                reason=response.reason_phrase,
            )
            raise UpstreamHTTPError(response.status_code, response.reason_phrase)
        return response.json()

    async def ping(self) -> int:
        """Call the registry root and return its status code."""
        response = await self.fetcher.fetch(
            "GET", self._url("/"), headers=self.read_headers
        )
        return response.status_code

    async def fetch_repositories(self) -> list[str]:
        data = await self._get_json(catalog_path(), "catalog")
        return data.get("repositories") or []

    async def fetch_tags(self, repository: str) -> list[str]:
        data = await self._get_json(tags_path(repository), f"tags of {repository}")
        # The registry reports "tags": null once every tag is gone
        return data.get("tags") or []

    async def fetch_manifests(
        self,
        repository: str,
        reference: str,
        media_type: Optional[str] = None,
    ) -> ManifestResult:
        """Fetch a manifest by tag or digest.

        Args:
            repository: Repository name
            reference: Tag or digest
            media_type: Known media type (when drilling into an index child)

        Raises:
            ManifestNotFoundError: The manifest could not be resolved
        """
        return await self.resolver.resolve(repository, reference, media_type)

    async def fetch_blob(self, repository: str, digest: str, media_type: str) -> Blob:
        accept = unquote(media_type)
        response = await self.fetcher.fetch(
            "GET",
            self._url(blob_path(repository, digest)),
            headers={**self.read_headers, "Accept": accept},
        )
        if not response.is_success:
            logger.error(
                "Failed to fetch blob",
                repository=repository,
                digest=digest,
                media_type=accept,
                status_code=response.status_code,
            )
            raise UpstreamHTTPError(response.status_code, response.reason_phrase)

        return Blob(
            digest=digest,
            media_type=accept,
            content=response.content,
            content_type=response.headers.get("content-type"),
        )

    async def delete_tags(
        self, repository: str, tags: Iterable[str]
    ) -> list[TagDeletionOutcome]:
        return await self.deleter.delete_many(repository, tags)
