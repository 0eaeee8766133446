"""Registry gateway package for the Docker Registry v2 API.

This package sits between the viewer and an OCI/Distribution registry:
header sanitizing, path translation, retrying fetches, manifest resolution
and tag deletion.
"""

from .client import RegistryClient
from .deletion import TagDeletionOrchestrator
from .fetcher import RegistryFetcher, build_http_client
from .headers import prepare_response_headers, sanitize_request_headers
from .manifests import ImageManifest, ManifestIndex, ManifestResolver, parse_manifest
from .paths import translate_path
from .proxy import gateway_error_response, proxy_request
from .retry import RetryDecision, RetryPolicy, RetryState
from .types import (
    Blob,
    DeadlineExceededError,
    ManifestNotFoundError,
    ManifestResult,
    RegistryConfig,
    RegistryGatewayError,
    RequestCancelledError,
    RetriesExhaustedError,
    TagDeletionOutcome,
    TagDeletionState,
    UpstreamHTTPError,
    UpstreamUnavailableError,
)

__all__ = [
    # Client
    "RegistryClient",
    "RegistryFetcher",
    "ManifestResolver",
    "TagDeletionOrchestrator",
    "build_http_client",
    # Manifests
    "ImageManifest",
    "ManifestIndex",
    "parse_manifest",
    # Retry
    "RetryDecision",
    "RetryPolicy",
    "RetryState",
    # Types
    "Blob",
    "ManifestResult",
    "RegistryConfig",
    "TagDeletionOutcome",
    "TagDeletionState",
    # Errors
    "RegistryGatewayError",
    "UpstreamUnavailableError",
    "DeadlineExceededError",
    "RetriesExhaustedError",
    "RequestCancelledError",
    "UpstreamHTTPError",
    "ManifestNotFoundError",
    # Utilities
    "gateway_error_response",
    "prepare_response_headers",
    "proxy_request",
    "sanitize_request_headers",
    "translate_path",
]
