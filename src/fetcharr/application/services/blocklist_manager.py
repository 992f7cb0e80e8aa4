"""Blocklist manager - remembers releases that failed for a target."""

import logging

from fetcharr.domain.entities import BlocklistEntry, ReleaseCandidate
from fetcharr.domain.ports import BlocklistSnapshot, IBlocklistStore
from fetcharr.domain.value_objects import ReleaseIdentity, TargetKey

logger = logging.getLogger(__name__)


class BlocklistManager:
    """Thin service over the blocklist store.

    A blocklisted (title, indexer) is only blocked for the target it failed
    for. The same release can still be grabbed for a different target.
    """

    def __init__(self, store: IBlocklistStore) -> None:
        self._store = store

    async def add(self, identity: ReleaseIdentity, target_key: TargetKey, reason: str) -> bool:
        """Idempotent. Returns False when the entry already existed."""
        added = await self._store.add(BlocklistEntry(identity, target_key, reason))
        if added:
            logger.info(
                "Blocklisted '%s' (%s) for %s: %s",
                identity.title,
                identity.indexer,
                target_key.value,
                reason,
            )
        return added

    async def add_candidate(
        self, candidate: ReleaseCandidate, target_key: TargetKey, reason: str
    ) -> bool:
        added = await self._store.add(
            BlocklistEntry(
                candidate.identity, target_key, reason, protocol=candidate.protocol.value
            )
        )
        if added:
            logger.info(
                "Blocklisted '%s' (%s) for %s: %s",
                candidate.title,
                candidate.indexer,
                target_key.value,
                reason,
            )
        return added

    async def snapshot(self) -> BlocklistSnapshot:
        return await self._store.snapshot()

    async def entries_for(self, target_key: TargetKey) -> list[BlocklistEntry]:
        return await self._store.list_for_target(target_key)


__all__ = ["BlocklistManager"]
