"""Logical registry API consumed by the viewer.

These endpoints wrap ``RegistryClient``: the viewer renders what they
return and re-lists tags after a deletion.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import Response
from pydantic import BaseModel

from registry_viewer.deps.registry import RegistryClientDep

logger = structlog.stdlib.get_logger(__name__)

router = APIRouter(prefix="/repositories", tags=["Registry"])


class RepositoriesResponse(BaseModel):
    repositories: list[str]


class TagsResponse(BaseModel):
    repository: str
    tags: list[str]


class ManifestResponse(BaseModel):
    digest: Optional[str]
    media_type: str
    kind: str
    data: dict[str, Any]


class DeleteTagsRequest(BaseModel):
    tags: list[str]


class TagDeletionResult(BaseModel):
    tag: str
    state: str
    digest: Optional[str] = None
    error: Optional[str] = None


class DeleteTagsResponse(BaseModel):
    repository: str
    results: list[TagDeletionResult]


@router.get("", response_model=RepositoriesResponse)
async def list_repositories(registry: RegistryClientDep):
    repositories = await registry.fetch_repositories()
    return RepositoriesResponse(repositories=repositories)


# `:path` is greedy: manifest and blob routes stay above the tag listing.
@router.get(
    "/{repository:path}/manifests/{reference}", response_model=ManifestResponse
)
async def get_manifest(
    repository: str,
    reference: str,
    registry: RegistryClientDep,
    media_type: Optional[str] = Query(default=None),
):
    """Resolve a tag or digest to its manifest.

    Without ``media_type`` the single-platform manifest is tried first, then
    the image index.
    """
    result = await registry.fetch_manifests(repository, reference, media_type)
    return ManifestResponse(
        digest=result.digest,
        media_type=result.media_type,
        kind=result.kind,
        data=result.data,
    )


@router.get("/{repository:path}/blobs/{digest}")
async def get_blob(
    repository: str,
    digest: str,
    registry: RegistryClientDep,
    media_type: str = Query(),
):
    blob = await registry.fetch_blob(repository, digest, media_type)
    return Response(
        content=blob.content,
        media_type=blob.content_type or blob.media_type,
    )


@router.get("/{repository:path}/tags", response_model=TagsResponse)
async def list_tags(repository: str, registry: RegistryClientDep):
    tags = await registry.fetch_tags(repository)
    return TagsResponse(repository=repository, tags=tags)


@router.post("/{repository:path}/tags/delete", response_model=DeleteTagsResponse)
async def delete_tags(
    repository: str,
    payload: DeleteTagsRequest,
    registry: RegistryClientDep,
):
    """Delete tags one by one.

    Always answers 200: per-tag failures are reported in ``results``.
    """
    logger.info("Deleting tags", repository=repository, tags=payload.tags)
    outcomes = await registry.delete_tags(repository, payload.tags)
    return DeleteTagsResponse(
        repository=repository,
        results=[
            TagDeletionResult(
                tag=outcome.tag,
                state=outcome.state.value,
                digest=outcome.digest,
                error=outcome.error,
            )
            for outcome in outcomes
        ],
    )
