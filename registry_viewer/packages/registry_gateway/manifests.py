"""Manifest kinds and tag/digest resolution.

A manifest is either a single-platform image manifest (config + layers) or
an index of per-platform child manifests. The kind is discriminated by the
declared media type, so supporting a new kind means adding a model to
``Manifest``; the resolver never inspects manifest structure.
"""

import json
from typing import Annotated, Any, Literal, Optional, Union

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .fetcher import RegistryFetcher
from .paths import manifest_path, translate_path
from .retry import RetryPolicy
from .types import (
    CONTENT_DIGEST_HEADER,
    DOCKER_MANIFEST_LIST_V2,
    DOCKER_MANIFEST_V2,
    MANIFEST_PROBE_ORDER,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
    ManifestNotFoundError,
    ManifestResult,
    RegistryGatewayError,
    UpstreamHTTPError,
)

logger = structlog.stdlib.get_logger(__name__)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Platform(_WireModel):
    architecture: str
    os: str
    variant: Optional[str] = None
    os_version: Optional[str] = Field(default=None, alias="os.version")


class Descriptor(_WireModel):
    """Reference to a blob or child manifest by digest."""

    media_type: str = Field(alias="mediaType")
    digest: str
    size: int
    annotations: Optional[dict[str, str]] = None


class PlatformDescriptor(Descriptor):
    platform: Optional[Platform] = None


class ImageManifest(_WireModel):
    kind: Literal["manifest"] = Field(default="manifest", exclude=True)
    schema_version: int = Field(alias="schemaVersion")
    media_type: Literal[DOCKER_MANIFEST_V2, OCI_IMAGE_MANIFEST] = Field(
        alias="mediaType"
    )
    config: Descriptor
    layers: list[Descriptor] = []

    @property
    def total_size(self) -> int:
        return self.config.size + sum(layer.size for layer in self.layers)


class ManifestIndex(_WireModel):
    kind: Literal["index"] = Field(default="index", exclude=True)
    schema_version: int = Field(alias="schemaVersion")
    media_type: Literal[OCI_IMAGE_INDEX, DOCKER_MANIFEST_LIST_V2] = Field(
        alias="mediaType"
    )
    manifests: list[PlatformDescriptor] = []

    def platforms(self) -> list[str]:
        return [
            f"{child.platform.os}/{child.platform.architecture}"
            for child in self.manifests
            if child.platform is not None
        ]


Manifest = Annotated[
    Union[ImageManifest, ManifestIndex],
    Field(discriminator="media_type"),
]

_manifest_adapter: TypeAdapter[Manifest] = TypeAdapter(Manifest)


def parse_manifest(
    data: dict[str, Any], media_type: str
) -> Optional[Union[ImageManifest, ManifestIndex]]:
    """Build the typed view of a manifest body.

    The body's own ``mediaType`` wins; OCI allows it to be absent, in which
    case the media type the registry served it as is used.

    Returns:
        The typed manifest, or None when the kind is not recognised
    """
    body = dict(data)
    body.setdefault("mediaType", media_type)
    try:
        return _manifest_adapter.validate_python(body)
    except ValidationError as e:
        logger.warning(
            "Unrecognised manifest",
            media_type=body.get("mediaType"),
            error_count=e.error_count(),
        )
        return None


def _content_type(response: httpx.Response, fallback: str) -> str:
    content_type = response.headers.get("content-type")
    if not content_type:
        return fallback
    return content_type.split(";", 1)[0].strip()


def _to_result(response: httpx.Response, requested: str) -> ManifestResult:
    media_type = _content_type(response, requested)
    try:
        data = json.loads(response.content)
    except ValueError as e:
        logger.error("Registry returned an invalid manifest body", error=str(e))
        raise UpstreamHTTPError(502, "Invalid manifest body from registry") from e

    if not isinstance(data, dict):
        logger.error(
            "Registry returned a manifest body that is not an object",
            body_type=type(data).__name__,
        )
        raise UpstreamHTTPError(502, "Invalid manifest body from registry")

    return ManifestResult(
        digest=response.headers.get(CONTENT_DIGEST_HEADER),
        media_type=data.get("mediaType", media_type),
        data=data,
        manifest=parse_manifest(data, media_type),
    )


class ManifestResolver:
    """Resolves a tag or digest to a manifest and its canonical digest.

    The digest is always read from the Docker-Content-Digest response header
    and never recomputed from the body.
    """

    def __init__(
        self,
        fetcher: RegistryFetcher,
        headers: Optional[dict[str, str]] = None,
        candidates: tuple[str, ...] = MANIFEST_PROBE_ORDER,
    ):
        self.fetcher = fetcher
        self.headers = headers or {}
        self.candidates = candidates

    def _url(self, repository: str, reference: str) -> str:
        config = self.fetcher.config
        return translate_path(
            manifest_path(repository, reference), "", config.registry_url
        )

    async def _request(
        self, repository: str, reference: str, media_type: str
    ) -> httpx.Response:
        return await self.fetcher.fetch(
            "GET",
            self._url(repository, reference),
            headers={**self.headers, "Accept": media_type},
            policy=RetryPolicy.single_attempt(self.fetcher.config.deadline),
        )

    async def resolve(
        self,
        repository: str,
        reference: str,
        media_type: Optional[str] = None,
    ) -> ManifestResult:
        """Resolve ``repository:reference`` to a manifest.

        Args:
            repository: Repository name (e.g., "library/nginx")
            reference: Tag or digest
            media_type: Explicit media type; when given exactly one request
                        is made, otherwise the candidates are probed in order

        Returns:
            The resolved manifest

        Raises:
            ManifestNotFoundError: No request produced a 200
            RegistryGatewayError: Transport failure with an explicit media type
        """
        if media_type:
            return await self._resolve_explicit(repository, reference, media_type)
        return await self._probe(repository, reference)

    async def _resolve_explicit(
        self, repository: str, reference: str, media_type: str
    ) -> ManifestResult:
        try:
            response = await self._request(repository, reference, media_type)
        except RegistryGatewayError as e:
            logger.error(
                "Failed to fetch manifest",
                repository=repository,
                reference=reference,
                media_type=media_type,
                error=str(e),
            )
            raise

        if response.status_code != 200:
            logger.warning(
                "Failed to fetch manifest",
                repository=repository,
                reference=reference,
                media_type=media_type,
                status_code=response.status_code,
            )
            raise ManifestNotFoundError(repository, reference)

        return _to_result(response, media_type)

    async def _probe(self, repository: str, reference: str) -> ManifestResult:
        for candidate in self.candidates:
            try:
                response = await self._request(repository, reference, candidate)
            except RegistryGatewayError as e:
                logger.error(
                    "Failed to fetch manifest",
                    repository=repository,
                    reference=reference,
                    media_type=candidate,
                    error=str(e),
                )
                continue

            if response.status_code == 200:
                return _to_result(response, candidate)

            if response.status_code == 404:
                logger.debug(
                    "Manifest not available as media type",
                    repository=repository,
                    reference=reference,
                    media_type=candidate,
                )
            else:
                logger.error(
                    "Unexpected status code while probing manifest",
                    repository=repository,
                    reference=reference,
                    media_type=candidate,
                    status_code=response.status_code,
                )

        logger.info(
            "No manifest found for reference",
            repository=repository,
            reference=reference,
            candidates=list(self.candidates),
        )
        raise ManifestNotFoundError(repository, reference)
