"""Blocklist entries, search cooldowns, pending releases and history events.

All of these are immutable records. Stores replace them, they never mutate
them in place (readers may be holding the old one).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from fetcharr.domain.entities.release import ReleaseCandidate
from fetcharr.domain.value_objects import ReleaseIdentity, TargetKey


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class BlocklistEntry:
    """A release that must never be grabbed again for one target."""

    identity: ReleaseIdentity
    target_key: TargetKey
    reason: str
    blocked_at: datetime = field(default_factory=_now)
    protocol: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.identity.title, self.identity.indexer, self.target_key.value)


@dataclass(frozen=True)
class SearchCooldownRecord:
    """Last automated-or-forced search for one target."""

    target_key: TargetKey
    last_search_at: datetime
    next_eligible_at: datetime

    def is_eligible(self, now: datetime) -> bool:
        return now >= self.next_eligible_at


@dataclass(frozen=True)
class PendingRelease:
    """An accepted-but-delayed candidate waiting for its delay to elapse."""

    target_key: TargetKey
    candidate: ReleaseCandidate
    release_at: datetime
    added_at: datetime = field(default_factory=_now)

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.target_key.value, self.candidate.title, self.candidate.indexer)

    def is_due(self, now: datetime) -> bool:
        return now >= self.release_at


class HistoryEventType(str, Enum):
    GRABBED = "grabbed"
    DOWNLOAD_FAILED = "download_failed"
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"
    DELETED = "deleted"


@dataclass(frozen=True)
class HistoryEvent:
    """Fire-and-forget event for the external history sink."""

    event_type: HistoryEventType
    target_key: TargetKey
    source_title: str
    data: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=_now)


__all__ = [
    "BlocklistEntry",
    "HistoryEvent",
    "HistoryEventType",
    "PendingRelease",
    "SearchCooldownRecord",
]
