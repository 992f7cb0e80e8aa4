"""Indexer health and selection.

Hey future me - an indexer that keeps timing out or erroring gets benched
for a while instead of eating the search timeout on every single search:

    failure 1 → 5 min, 2 → 10 min, 3 → 20 min ... capped at 24 h

Any successful answer clears the record. State lives in memory only; a
restart gives every indexer a clean slate, which is what you want after
fixing an API key anyway.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fetcharr.config import SearchSettings
from fetcharr.domain.entities import AcquisitionTarget
from fetcharr.domain.ports import IIndexer
from fetcharr.domain.value_objects import ContentKind

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class IndexerStatus:
    name: str
    failure_count: int = 0
    disabled_until: datetime | None = None

    def is_disabled(self, now: datetime) -> bool:
        return self.disabled_until is not None and self.disabled_until > now


class IndexerHealth:
    """Per-indexer failure counts with exponential backoff."""

    def __init__(self, settings: SearchSettings, clock: Callable[[], datetime] = _utc_now) -> None:
        self._base = timedelta(minutes=settings.indexer_failure_backoff_minutes)
        self._max = timedelta(minutes=settings.indexer_failure_backoff_max_minutes)
        self._clock = clock
        self._statuses: dict[str, IndexerStatus] = {}

    def status(self, name: str) -> IndexerStatus:
        return self._statuses.get(name) or IndexerStatus(name)

    def statuses(self) -> list[IndexerStatus]:
        return sorted(self._statuses.values(), key=lambda s: s.name)

    def is_available(self, name: str, now: datetime | None = None) -> bool:
        return not self.status(name).is_disabled(now or self._clock())

    def backoff(self, failure_count: int) -> timedelta:
        if failure_count <= 0:
            return timedelta()
        # Cap the exponent too, 2**1000 minutes is not a timedelta
        return min(self._base * 2 ** min(failure_count - 1, 32), self._max)

    def record_failure(self, name: str) -> IndexerStatus:
        count = self.status(name).failure_count + 1
        disabled_until = self._clock() + self.backoff(count)
        status = IndexerStatus(name, failure_count=count, disabled_until=disabled_until)
        self._statuses[name] = status
        logger.warning(
            "Indexer %s failed %d time(s) in a row, skipping it until %s",
            name,
            count,
            disabled_until.isoformat(),
        )
        return status

    def clear_failures(self, name: str) -> None:
        if self._statuses.pop(name, None) is not None:
            logger.info("Indexer %s answered again, failure record cleared", name)

    def available(self, indexers: Iterable[IIndexer]) -> list[IIndexer]:
        """Enabled indexers that are not sitting out a backoff."""
        now = self._clock()
        return [ix for ix in indexers if ix.enabled and self.is_available(ix.name, now)]


def serves(indexer: IIndexer, target: AcquisitionTarget) -> bool:
    """Can this indexer be asked about the target at all?

    Content kinds: empty means "carries everything". Anime also lives on
    plain TV indexers. Tags: only scoped when the target has tags; then
    untagged indexers still apply, tagged ones need a shared tag.
    """
    kinds = indexer.content_kinds
    if kinds:
        wanted = {target.content_kind}
        if target.content_kind == ContentKind.ANIME:
            wanted.add(ContentKind.SERIES)
        if not kinds & wanted:
            return False
    if target.tags and indexer.tags and not indexer.tags & target.tags:
        return False
    return True


__all__ = ["IndexerHealth", "IndexerStatus", "serves"]
