"""Search throttle - decides whether an automated search may hit the indexers.

Hey future me - searching every missing episode every RSS interval gets API
keys banned. Each target gets a cooldown based on WHAT it is (content kind)
and WHERE it is in its lifecycle:

    UNRELEASED          nothing to find yet, wait until release date + grace
    RECENTLY_RELEASED   releases are still appearing, search often
    STALE               old and still missing, search rarely

A forced (user-triggered) search always passes but still resets the clock.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, time, timedelta
from enum import Enum

from fetcharr.config import ThrottleSettings
from fetcharr.domain.entities import AcquisitionTarget, SearchCooldownRecord
from fetcharr.domain.ports import ISearchCooldownStore
from fetcharr.domain.value_objects import ContentKind

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    UNRELEASED = "unreleased"
    RECENTLY_RELEASED = "recently_released"
    STALE = "stale"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SearchThrottle:
    """Per-target search cooldowns backed by an ISearchCooldownStore."""

    def __init__(
        self,
        store: ISearchCooldownStore,
        settings: ThrottleSettings,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._settings = settings
        self._clock = clock
        # (kind, state) → cooldown. kind None is the fallback row for every kind.
        self._policy: dict[tuple[ContentKind | None, LifecycleState], timedelta] = {
            (ContentKind.ANIME, LifecycleState.RECENTLY_RELEASED): timedelta(
                days=settings.recent_anime_cooldown_days
            ),
            (None, LifecycleState.RECENTLY_RELEASED): timedelta(
                days=settings.missing_cooldown_days
            ),
            (None, LifecycleState.STALE): timedelta(days=settings.stale_cooldown_days),
        }
        # Check-then-overwrite must not interleave for the same target
        self._lock = asyncio.Lock()

    def lifecycle(self, target: AcquisitionTarget, now: datetime) -> LifecycleState:
        """Unknown release dates count as STALE: we can't tell they're fresh."""
        if target.release_date is None:
            return LifecycleState.STALE
        today = now.date()
        if target.release_date > today:
            return LifecycleState.UNRELEASED
        if (today - target.release_date).days <= self._settings.recent_window_days:
            return LifecycleState.RECENTLY_RELEASED
        return LifecycleState.STALE

    def next_eligible(self, target: AcquisitionTarget, now: datetime) -> datetime:
        state = self.lifecycle(target, now)
        if state == LifecycleState.UNRELEASED and target.release_date is not None:
            release_start = datetime.combine(target.release_date, time.min, tzinfo=UTC)
            return release_start + timedelta(days=self._settings.unreleased_grace_days)

        cooldown = self._policy.get((target.content_kind, state))
        if cooldown is None:
            cooldown = self._policy[(None, state)]
        return now + cooldown

    async def should_search(self, target: AcquisitionTarget, forced: bool = False) -> bool:
        """True when a search may run now. Records the search when it returns True."""
        async with self._lock:
            now = self._clock()
            if not forced:
                record = await self._store.get(target.key)
                if record is not None and not record.is_eligible(now):
                    logger.debug(
                        "Search for %s throttled until %s",
                        target.key.value,
                        record.next_eligible_at.isoformat(),
                    )
                    return False

            await self._store.put(
                SearchCooldownRecord(
                    target_key=target.key,
                    last_search_at=now,
                    next_eligible_at=self.next_eligible(target, now),
                )
            )
        return True


__all__ = ["LifecycleState", "SearchThrottle"]
