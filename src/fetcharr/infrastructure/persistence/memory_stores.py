"""In-memory stores for single-process deployments and tests.

Hey future me - these use the "atomic replace" trick: the data lives in an
immutable container (frozenset / MappingProxyType) and writers BUILD A NEW ONE
under a lock, then swap the reference. A reader that grabbed the old reference
keeps a consistent view forever. No reader ever takes the lock.
"""

import asyncio
from datetime import datetime
from types import MappingProxyType

from fetcharr.domain.entities import BlocklistEntry, PendingRelease, SearchCooldownRecord
from fetcharr.domain.ports import (
    BlocklistSnapshot,
    IBlocklistStore,
    IPendingReleaseStore,
    ISearchCooldownStore,
)
from fetcharr.domain.value_objects import TargetKey


class InMemoryBlocklistStore(IBlocklistStore):
    def __init__(self) -> None:
        self._entries: tuple[BlocklistEntry, ...] = ()
        self._snapshot = BlocklistSnapshot()
        self._lock = asyncio.Lock()

    async def add(self, entry: BlocklistEntry) -> bool:
        async with self._lock:
            if entry.key in self._snapshot.keys:
                return False
            self._entries = (*self._entries, entry)
            self._snapshot = BlocklistSnapshot(self._snapshot.keys | {entry.key})
        return True

    async def snapshot(self) -> BlocklistSnapshot:
        return self._snapshot

    async def list_for_target(self, target_key: TargetKey) -> list[BlocklistEntry]:
        return [e for e in self._entries if e.target_key == target_key]


class InMemorySearchCooldownStore(ISearchCooldownStore):
    def __init__(self) -> None:
        self._records: MappingProxyType[str, SearchCooldownRecord] = MappingProxyType({})
        self._lock = asyncio.Lock()

    async def get(self, target_key: TargetKey) -> SearchCooldownRecord | None:
        return self._records.get(target_key.value)

    async def put(self, record: SearchCooldownRecord) -> None:
        async with self._lock:
            updated = dict(self._records)
            updated[record.target_key.value] = record
            self._records = MappingProxyType(updated)


class InMemoryPendingReleaseStore(IPendingReleaseStore):
    def __init__(self) -> None:
        self._pending: MappingProxyType[tuple[str, str, str], PendingRelease] = MappingProxyType({})
        self._lock = asyncio.Lock()

    async def add(self, pending: PendingRelease) -> None:
        async with self._lock:
            updated = dict(self._pending)
            updated[pending.key] = pending
            self._pending = MappingProxyType(updated)

    async def due(self, now: datetime) -> list[PendingRelease]:
        return [p for p in self._pending.values() if p.is_due(now)]

    async def for_target(self, target_key: TargetKey) -> list[PendingRelease]:
        return [p for p in self._pending.values() if p.target_key == target_key]

    async def remove_target(self, target_key: TargetKey) -> int:
        async with self._lock:
            kept = {k: p for k, p in self._pending.items() if p.target_key != target_key}
            removed = len(self._pending) - len(kept)
            self._pending = MappingProxyType(kept)
        return removed


__all__ = [
    "InMemoryBlocklistStore",
    "InMemoryPendingReleaseStore",
    "InMemorySearchCooldownStore",
]
