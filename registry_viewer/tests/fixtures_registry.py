import hashlib
import json
import re
from dataclasses import dataclass
from typing import Any, Union

import httpx
import pytest

from registry_viewer.packages.registry_gateway import RegistryClient, RegistryConfig
from registry_viewer.packages.registry_gateway.types import (
    DOCKER_MANIFEST_V2,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
)

REGISTRY_URL = "http://registry.test:5000"

_TAGS = re.compile(r"^/v2/(?P<name>.+)/tags/list$")
_MANIFEST = re.compile(r"^/v2/(?P<name>.+)/manifests/(?P<reference>[^/]+)$")
_BLOB = re.compile(r"^/v2/(?P<name>.+)/blobs/(?P<digest>[^/]+)$")

ScriptedOutcome = Union[int, Exception, httpx.Response]


def compute_digest(content: bytes) -> str:
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


def image_manifest_body(
    config_digest: str = "sha256:" + "c" * 64,
    layer_digests: tuple[str, ...] = ("sha256:" + "1" * 64,),
    media_type: str = DOCKER_MANIFEST_V2,
) -> dict[str, Any]:
    layer_type = (
        "application/vnd.docker.image.rootfs.diff.tar.gzip"
        if media_type == DOCKER_MANIFEST_V2
        else "application/vnd.oci.image.layer.v1.tar+gzip"
    )
    return {
        "schemaVersion": 2,
        "mediaType": media_type,
        "config": {
            "mediaType": "application/vnd.docker.container.image.v1+json",
            "digest": config_digest,
            "size": 1469,
        },
        "layers": [
            {"mediaType": layer_type, "digest": digest, "size": 1024 * (i + 1)}
            for i, digest in enumerate(layer_digests)
        ],
    }


def image_index_body(children: list[tuple[str, str, str]]) -> dict[str, Any]:
    """Index body from (digest, os, architecture) triples."""
    return {
        "schemaVersion": 2,
        "mediaType": OCI_IMAGE_INDEX,
        "manifests": [
            {
                "mediaType": OCI_IMAGE_MANIFEST,
                "digest": digest,
                "size": 525,
                "platform": {"architecture": arch, "os": os_name},
            }
            for digest, os_name, arch in children
        ],
    }


@dataclass
class StoredManifest:
    media_type: str
    content: bytes


class FakeRegistry:
    """In-memory Docker Registry v2 double served through httpx.MockTransport.

    Manifests are only served when the Accept header lists their media type,
    like a registry that does not convert between schemas.
    """

    def __init__(self):
        self.tags: dict[str, dict[str, str]] = {}
        self.manifests: dict[str, dict[str, StoredManifest]] = {}
        self.blobs: dict[str, dict[str, bytes]] = {}
        self.requests: list[httpx.Request] = []
        self.scripted: list[ScriptedOutcome] = []
        self.scripted_by_method: dict[str, list[ScriptedOutcome]] = {}

    # Setup helpers

    def push_manifest(
        self, repository: str, body: dict[str, Any], tag: str | None = None
    ) -> str:
        content = json.dumps(body, indent=3).encode()
        digest = compute_digest(content)
        self.manifests.setdefault(repository, {})[digest] = StoredManifest(
            media_type=body["mediaType"], content=content
        )
        self.tags.setdefault(repository, {})
        if tag is not None:
            self.tags[repository][tag] = digest
        return digest

    def push_blob(self, repository: str, content: bytes) -> str:
        digest = compute_digest(content)
        self.blobs.setdefault(repository, {})[digest] = content
        return digest

    def script(self, *outcomes: ScriptedOutcome) -> None:
        """Answer the next requests with these statuses, responses or exceptions."""
        self.scripted.extend(outcomes)

    def script_for(self, method: str, *outcomes: ScriptedOutcome) -> None:
        """Answer the next requests using `method` with these outcomes."""
        self.scripted_by_method.setdefault(method.upper(), []).extend(outcomes)

    def requests_for(self, method: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    # Request handling

    @staticmethod
    def _error(status_code: int, code: str, message: str) -> httpx.Response:
        return httpx.Response(
            status_code,
            json={"errors": [{"code": code, "message": message}]},
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        pending = self.scripted_by_method.get(request.method) or self.scripted
        if pending:
            outcome = pending.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, httpx.Response):
                return outcome
            return httpx.Response(outcome)

        path = request.url.path
        if path == "/v2/":
            return httpx.Response(200, json={})
        if path == "/v2/_catalog":
            return httpx.Response(200, json={"repositories": sorted(self.tags)})

        if match := _TAGS.match(path):
            return self._list_tags(match["name"])
        if match := _MANIFEST.match(path):
            if request.method == "DELETE":
                return self._delete_manifest(match["name"], match["reference"])
            return self._get_manifest(request, match["name"], match["reference"])
        if match := _BLOB.match(path):
            return self._get_blob(match["name"], match["digest"])

        return self._error(404, "NOT_FOUND", "route not found")

    def _list_tags(self, name: str) -> httpx.Response:
        if name not in self.tags:
            return self._error(404, "NAME_UNKNOWN", "repository name not known to registry")
        tags = sorted(self.tags[name]) or None
        return httpx.Response(200, json={"name": name, "tags": tags})

    def _get_manifest(
        self, request: httpx.Request, name: str, reference: str
    ) -> httpx.Response:
        digest = reference
        if not reference.startswith("sha256:"):
            digest = self.tags.get(name, {}).get(reference, "")

        stored = self.manifests.get(name, {}).get(digest)
        accept = request.headers.get("accept", "")
        if stored is None or stored.media_type not in accept:
            return self._error(404, "MANIFEST_UNKNOWN", "manifest unknown")

        return httpx.Response(
            200,
            content=stored.content,
            headers={
                "Content-Type": stored.media_type,
                "Docker-Content-Digest": digest,
            },
        )

    def _delete_manifest(self, name: str, reference: str) -> httpx.Response:
        if not reference.startswith("sha256:"):
            return self._error(400, "DIGEST_INVALID", "provided digest did not match")
        if reference not in self.manifests.get(name, {}):
            return self._error(404, "MANIFEST_UNKNOWN", "manifest unknown")

        del self.manifests[name][reference]
        self.tags[name] = {
            tag: digest for tag, digest in self.tags[name].items() if digest != reference
        }
        return httpx.Response(202)

    def _get_blob(self, name: str, digest: str) -> httpx.Response:
        content = self.blobs.get(name, {}).get(digest)
        if content is None:
            return self._error(404, "BLOB_UNKNOWN", "blob unknown to registry")
        return httpx.Response(
            200,
            content=content,
            headers={"Content-Type": "application/octet-stream"},
        )


@pytest.fixture
def fake_registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def registry_config() -> RegistryConfig:
    return RegistryConfig(
        registry_url=REGISTRY_URL,
        max_retries=3,
        not_modified_delay=1.0,
        deadline=None,
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the fetcher, recorded instead of slept."""
    return []


@pytest.fixture
def record_sleep(sleeps: list[float]):
    async def sleep(delay: float) -> None:
        sleeps.append(delay)

    return sleep


@pytest.fixture
async def http_client(fake_registry: FakeRegistry):
    async with httpx.AsyncClient(transport=fake_registry.transport()) as client:
        yield client


@pytest.fixture
def registry_client(
    registry_config: RegistryConfig,
    http_client: httpx.AsyncClient,
    record_sleep,
) -> RegistryClient:
    return RegistryClient(
        config=registry_config,
        http_client=http_client,
        sleep=record_sleep,
    )
