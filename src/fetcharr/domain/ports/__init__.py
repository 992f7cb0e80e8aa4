"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from fetcharr.domain.entities.tracking import (
    BlocklistEntry,
    PendingRelease,
    SearchCooldownRecord,
)
from fetcharr.domain.ports.collaborators import (
    DownloadedFile,
    IFileOrganizer,
    IHistorySink,
    ILibraryStore,
)
from fetcharr.domain.ports.download_client import IDownloadClient
from fetcharr.domain.ports.indexer import IIndexer, IndexerResult
from fetcharr.domain.value_objects import ReleaseIdentity, TargetKey


@dataclass(frozen=True)
class BlocklistSnapshot:
    """Immutable view of the blocklist at one point in time.

    Hey future me - the decision engine gets one of these per search cycle.
    It's a frozenset, so concurrent writers can never show it a half-added entry.
    """

    keys: frozenset[tuple[str, str, str]] = frozenset()

    def contains(self, identity: ReleaseIdentity, target_key: TargetKey) -> bool:
        return (identity.title, identity.indexer, target_key.value) in self.keys

    def __len__(self) -> int:
        return len(self.keys)


# Hey future me, these store interfaces have two implementations each: the
# in-memory atomic-replace stores (tests, single process) and the SQLAlchemy
# repositories. Both must keep the "readers never see a half-written record"
# promise.
class IBlocklistStore(ABC):
    """Append-only blocklist."""

    @abstractmethod
    async def add(self, entry: BlocklistEntry) -> bool:
        """Add an entry. Returns False (no error) if it was already present."""
        pass

    @abstractmethod
    async def snapshot(self) -> BlocklistSnapshot:
        pass

    @abstractmethod
    async def list_for_target(self, target_key: TargetKey) -> list[BlocklistEntry]:
        pass


class ISearchCooldownStore(ABC):
    """One cooldown record per target, overwritten on every search."""

    @abstractmethod
    async def get(self, target_key: TargetKey) -> SearchCooldownRecord | None:
        pass

    @abstractmethod
    async def put(self, record: SearchCooldownRecord) -> None:
        pass


class IPendingReleaseStore(ABC):
    """Delayed candidates waiting for their release time."""

    @abstractmethod
    async def add(self, pending: PendingRelease) -> None:
        """Add or replace (same target + title + indexer)."""
        pass

    @abstractmethod
    async def due(self, now: datetime) -> list[PendingRelease]:
        pass

    @abstractmethod
    async def for_target(self, target_key: TargetKey) -> list[PendingRelease]:
        pass

    @abstractmethod
    async def remove_target(self, target_key: TargetKey) -> int:
        """Drop every pending release of a target. Returns how many were dropped."""
        pass


__all__ = [
    "BlocklistSnapshot",
    "DownloadedFile",
    "IBlocklistStore",
    "IDownloadClient",
    "IFileOrganizer",
    "IHistorySink",
    "IIndexer",
    "ILibraryStore",
    "IPendingReleaseStore",
    "ISearchCooldownStore",
    "IndexerResult",
]
