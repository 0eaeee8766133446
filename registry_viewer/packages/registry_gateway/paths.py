"""Mapping between gateway paths and registry v2 API paths."""

API_NAMESPACE = "/v2"


def translate_path(path: str, prefix: str, registry_url: str) -> str:
    """Translate an inbound gateway path to the upstream registry URL.

    ``/<prefix>/<rest>`` becomes ``<registry_url>/v2/<rest>``. An empty
    remainder maps to the registry root ``<registry_url>/v2/``.

    No validation is done on the remainder: malformed repository names are
    rejected by the registry itself.

    Args:
        path: Inbound request path (e.g., "/api/proxy/library/nginx/tags/list")
        prefix: Local prefix to strip (e.g., "/api/proxy")
        registry_url: Upstream base URL (e.g., "http://registry:5000")

    Returns:
        Full upstream URL
    """
    prefix = prefix.rstrip("/")
    remainder = path[len(prefix) :] if prefix and path.startswith(prefix) else path
    if not remainder:
        remainder = "/"
    elif not remainder.startswith("/"):
        remainder = f"/{remainder}"
    return f"{registry_url.rstrip('/')}{API_NAMESPACE}{remainder}"


def catalog_path() -> str:
    return "/_catalog"


def tags_path(repository: str) -> str:
    return f"/{repository}/tags/list"


def manifest_path(repository: str, reference: str) -> str:
    return f"/{repository}/manifests/{reference}"


def blob_path(repository: str, digest: str) -> str:
    return f"/{repository}/blobs/{digest}"
