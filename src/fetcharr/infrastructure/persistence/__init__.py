"""Persistence: SQLAlchemy repositories and in-memory stores."""

from fetcharr.infrastructure.persistence.database import Database
from fetcharr.infrastructure.persistence.memory_stores import (
    InMemoryBlocklistStore,
    InMemoryPendingReleaseStore,
    InMemorySearchCooldownStore,
)
from fetcharr.infrastructure.persistence.repositories import (
    BlocklistRepository,
    PendingReleaseRepository,
    SearchCooldownRepository,
)

__all__ = [
    "BlocklistRepository",
    "Database",
    "InMemoryBlocklistStore",
    "InMemoryPendingReleaseStore",
    "InMemorySearchCooldownStore",
    "PendingReleaseRepository",
    "SearchCooldownRepository",
]
