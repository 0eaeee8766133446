"""Header filtering for requests relayed to and from the registry."""

from typing import Iterable, Mapping, Optional, Tuple, Union

# Never forwarded upstream: host identification and credentials
SENSITIVE_REQUEST_HEADERS = frozenset(["host", "authorization"])

# Connection-scoped headers that only make sense for a single hop
HOP_BY_HOP_HEADERS = frozenset(
    [
        "connection",
        "keep-alive",
        "transfer-encoding",
        "content-encoding",
    ]
)

# Conditional headers that invite a 304 from the registry
CONDITIONAL_HEADERS = frozenset(["if-none-match", "if-modified-since"])

GATEWAY_MARKER_HEADER = "X-Registry-Gateway"
GATEWAY_MARKER_VALUE = "registry-viewer"

HeaderInput = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _items(headers: HeaderInput) -> Iterable[Tuple[str, str]]:
    if isinstance(headers, Mapping):
        return headers.items()
    return headers


def sanitize_request_headers(headers: HeaderInput) -> dict[str, str]:
    """Build the header set forwarded to the registry.

    Host and Authorization are removed unconditionally, along with
    hop-by-hop headers and Content-Length (the body is re-sent as a whole,
    so the HTTP client computes it again).

    Args:
        headers: Inbound headers (mapping or list of pairs)

    Returns:
        New dict of headers safe to forward
    """
    sanitized: dict[str, str] = {}
    for name, value in _items(headers):
        lowered = name.lower()
        if lowered in SENSITIVE_REQUEST_HEADERS:
            continue
        if lowered in HOP_BY_HOP_HEADERS or lowered == "content-length":
            continue
        sanitized[name] = value
    return sanitized


def without_conditional_headers(headers: HeaderInput) -> dict[str, str]:
    """Drop If-None-Match/If-Modified-Since and ask for a fresh answer."""
    fresh = {
        name: value
        for name, value in _items(headers)
        if name.lower() not in CONDITIONAL_HEADERS
        and name.lower() != "cache-control"
    }
    fresh["Cache-Control"] = "no-cache"
    return fresh


def prepare_response_headers(
    headers: HeaderInput,
    overrides: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Relay upstream response headers back to the caller.

    Headers are returned unmodified apart from hop-by-hop headers, which
    the ASGI server manages itself, and the explicit overrides.
    """
    response_headers: dict[str, str] = {}
    for name, value in _items(headers):
        if name.lower() in HOP_BY_HOP_HEADERS:
            continue
        response_headers[name] = value

    for name, value in (overrides or {}).items():
        # Replace case-insensitively so the override wins
        for existing in [k for k in response_headers if k.lower() == name.lower()]:
            del response_headers[existing]
        response_headers[name] = value

    return response_headers


def gateway_headers() -> dict[str, str]:
    """Headers the gateway adds to every relayed response."""
    return {
        "Docker-Distribution-API-Version": "registry/2.0",
        GATEWAY_MARKER_HEADER: GATEWAY_MARKER_VALUE,
    }
