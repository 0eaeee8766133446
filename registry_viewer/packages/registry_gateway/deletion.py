"""Tag deletion.

The registry only deletes manifests by digest, so every tag is resolved
first and its digest deleted afterwards. Tags are handled one after the
other in input order; a failure on one tag is logged and never stops the
rest of the batch. There is no rollback and no retry of a failed delete.
"""

from typing import Iterable

import structlog

from .fetcher import RegistryFetcher
from .manifests import ManifestResolver
from .paths import manifest_path, translate_path
from .retry import RetryPolicy
from .types import (
    RegistryGatewayError,
    TagDeletionOutcome,
    TagDeletionState,
)

logger = structlog.stdlib.get_logger(__name__)


class TagDeletionOrchestrator:
    def __init__(self, fetcher: RegistryFetcher, resolver: ManifestResolver):
        self.fetcher = fetcher
        self.resolver = resolver

    async def delete_many(
        self, repository: str, tags: Iterable[str]
    ) -> list[TagDeletionOutcome]:
        """Delete ``tags`` from ``repository`` sequentially.

        Never raises for a per-tag failure: callers must list the tags again
        to find out what is left.

        Returns:
            One outcome per tag, in input order
        """
        outcomes = []
        for tag in tags:
            outcome = TagDeletionOutcome(tag=tag)
            await self._delete_one(repository, outcome)
            outcomes.append(outcome)

        logger.info(
            "Tag deletion finished",
            repository=repository,
            deleted=[o.tag for o in outcomes if o.state == TagDeletionState.DELETED],
            failed=[o.tag for o in outcomes if o.state != TagDeletionState.DELETED],
        )
        return outcomes

    async def _delete_one(self, repository: str, outcome: TagDeletionOutcome) -> None:
        outcome.advance(TagDeletionState.RESOLVING)
        try:
            result = await self.resolver.resolve(repository, outcome.tag)
        except RegistryGatewayError as e:
            outcome.error = e.message
            outcome.advance(TagDeletionState.RESOLVE_FAILED)
            logger.error(
                "Failed to delete tag",
                repository=repository,
                tag=outcome.tag,
                error=e.message,
            )
            return

        if not result.digest:
            outcome.error = (
                f'Unable to find digest for tag "{outcome.tag}" '
                f'in repository "{repository}".'
            )
            outcome.advance(TagDeletionState.RESOLVE_FAILED)
            logger.error(
                "Failed to delete tag",
                repository=repository,
                tag=outcome.tag,
                error=outcome.error,
            )
            return

        outcome.digest = result.digest
        outcome.advance(TagDeletionState.RESOLVED)

        outcome.advance(TagDeletionState.DELETING)
        url = translate_path(
            manifest_path(repository, result.digest),
            "",
            self.fetcher.config.registry_url,
        )
        try:
            response = await self.fetcher.fetch(
                "DELETE",
                url,
                policy=RetryPolicy.single_attempt(self.fetcher.config.deadline),
            )
        except RegistryGatewayError as e:
            outcome.error = e.message
            outcome.advance(TagDeletionState.DELETE_FAILED)
            logger.error(
                "Failed to delete tag",
                repository=repository,
                tag=outcome.tag,
                digest=result.digest,
                error=e.message,
            )
            return

        if not response.is_success:
            outcome.error = response.reason_phrase or f"HTTP {response.status_code}"
            outcome.advance(TagDeletionState.DELETE_FAILED)
            logger.error(
                "Failed to delete tag",
                repository=repository,
                tag=outcome.tag,
                digest=result.digest,
                status_code=response.status_code,
            )
            return

        outcome.advance(TagDeletionState.DELETED)
        logger.info(
            "Successfully deleted tag",
            repository=repository,
            tag=outcome.tag,
            digest=result.digest,
        )
