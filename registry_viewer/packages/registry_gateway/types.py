"""Registry gateway types and data structures.

This module contains shared types used across the registry gateway package.
No dependencies on registry_viewer.* modules to maintain independence.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

# Manifest media types
DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST_V2 = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"

# Probe order used when a tag is resolved without a known media type
MANIFEST_PROBE_ORDER: tuple[str, ...] = (
    DOCKER_MANIFEST_V2,
    OCI_IMAGE_INDEX,
)

CONTENT_DIGEST_HEADER = "Docker-Content-Digest"


@dataclass
class RegistryConfig:
    """Configuration for the upstream registry.

    Attributes:
        registry_url: Base URL of the registry (e.g., "http://registry:5000")
        proxy_prefix: Local path prefix stripped from inbound gateway paths
        max_retries: Retries allowed past the first attempt
        not_modified_delay: Seconds to wait before retrying a 304 response
        deadline: Wall-clock ceiling in seconds across all attempts of one
                  fetch (None disables it)
        connect_timeout: Per-attempt connect timeout in seconds
        read_timeout: Per-attempt read timeout in seconds
    """

    registry_url: str
    proxy_prefix: str = "/api/proxy"
    max_retries: int = 3
    not_modified_delay: float = 1.0
    deadline: Optional[float] = None
    connect_timeout: float = 10.0
    read_timeout: float = 60.0

    def __post_init__(self):
        self.registry_url = self.registry_url.rstrip("/")


class RegistryGatewayError(Exception):
    """Base error for everything the gateway reports to its caller."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class UpstreamUnavailableError(RegistryGatewayError):
    """The registry could not be reached after all attempts."""


class DeadlineExceededError(UpstreamUnavailableError):
    status_code = 504
    message = "Registry request deadline exceeded"


class RetriesExhaustedError(RegistryGatewayError):
    """Every attempt came back as 304 Not Modified."""

    status_code = 404
    message = "Cache miss after max retries."


class RequestCancelledError(RegistryGatewayError):
    """The inbound client went away while a retry loop was running."""

    status_code = 499
    message = "Client closed request"


class UpstreamHTTPError(RegistryGatewayError):
    """The registry answered with a non-success status."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or "Failed to fetch from registry")


class ManifestNotFoundError(RegistryGatewayError):
    status_code = 404

    def __init__(self, repository: str, reference: str):
        self.repository = repository
        self.reference = reference
        super().__init__(f"Manifest not found for {repository}:{reference}")


@dataclass
class Blob:
    digest: str
    media_type: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class ManifestResult:
    """A resolved manifest.

    Attributes:
        digest: Canonical digest taken from the Docker-Content-Digest
                response header (None when the registry omitted it)
        media_type: Media type the manifest was served as
        data: Manifest body exactly as parsed from the wire
        manifest: Typed view of the body, None for unknown kinds
    """

    digest: Optional[str]
    media_type: str
    data: dict[str, Any]
    manifest: Any = None

    @property
    def kind(self) -> str:
        if self.manifest is None:
            return "unknown"
        return self.manifest.kind


class TagDeletionState(str, Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    RESOLVE_FAILED = "resolve_failed"
    DELETING = "deleting"
    DELETED = "deleted"
    DELETE_FAILED = "delete_failed"


@dataclass
class TagDeletionOutcome:
    tag: str
    state: TagDeletionState = TagDeletionState.PENDING
    digest: Optional[str] = None
    error: Optional[str] = None
    history: list[TagDeletionState] = field(default_factory=list)

    def advance(self, state: TagDeletionState) -> None:
        self.history.append(self.state)
        self.state = state
