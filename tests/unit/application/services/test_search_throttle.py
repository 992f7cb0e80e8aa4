"""Tests for the per-target search throttle."""

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta

import pytest

from fetcharr.application.services.search_throttle import LifecycleState, SearchThrottle
from fetcharr.config import ThrottleSettings
from fetcharr.domain.entities import AcquisitionTarget
from fetcharr.domain.value_objects import ContentKind
from fetcharr.infrastructure.persistence import InMemorySearchCooldownStore


class Clock:
    """Mutable clock: call advance() to let time pass."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock(now: datetime) -> Clock:
    return Clock(now)


@pytest.fixture
def store() -> InMemorySearchCooldownStore:
    return InMemorySearchCooldownStore()


@pytest.fixture
def throttle(store: InMemorySearchCooldownStore, clock: Clock) -> SearchThrottle:
    return SearchThrottle(store, ThrottleSettings(), clock=clock)


class TestLifecycle:
    def test_states(
        self,
        throttle: SearchThrottle,
        make_target: Callable[..., AcquisitionTarget],
        now: datetime,
    ) -> None:
        today = now.date()
        assert throttle.lifecycle(make_target(release_date=today + timedelta(days=3)), now) == (
            LifecycleState.UNRELEASED
        )
        assert throttle.lifecycle(make_target(release_date=today - timedelta(days=3)), now) == (
            LifecycleState.RECENTLY_RELEASED
        )
        assert throttle.lifecycle(make_target(release_date=date(2020, 1, 1)), now) == (
            LifecycleState.STALE
        )

    def test_unknown_release_date_is_stale(
        self, throttle: SearchThrottle, episode_target: AcquisitionTarget, now: datetime
    ) -> None:
        assert throttle.lifecycle(episode_target, now) == LifecycleState.STALE


class TestNextEligible:
    def test_anime_recently_released_is_searched_daily(
        self,
        throttle: SearchThrottle,
        make_target: Callable[..., AcquisitionTarget],
        now: datetime,
    ) -> None:
        target = make_target(content_kind=ContentKind.ANIME, release_date=now.date())
        assert throttle.next_eligible(target, now) == now + timedelta(days=1)

    def test_series_recently_released_uses_missing_cooldown(
        self,
        throttle: SearchThrottle,
        make_target: Callable[..., AcquisitionTarget],
        now: datetime,
    ) -> None:
        target = make_target(release_date=now.date())
        assert throttle.next_eligible(target, now) == now + timedelta(days=7)

    def test_stale_uses_long_cooldown(
        self, throttle: SearchThrottle, episode_target: AcquisitionTarget, now: datetime
    ) -> None:
        assert throttle.next_eligible(episode_target, now) == now + timedelta(days=14)

    def test_unreleased_waits_for_release_plus_grace(
        self,
        throttle: SearchThrottle,
        make_target: Callable[..., AcquisitionTarget],
        now: datetime,
    ) -> None:
        target = make_target(release_date=date(2024, 6, 10))
        assert throttle.next_eligible(target, now) == datetime(2024, 6, 11, tzinfo=UTC)


class TestShouldSearch:
    async def test_first_search_passes_and_records(
        self,
        throttle: SearchThrottle,
        store: InMemorySearchCooldownStore,
        episode_target: AcquisitionTarget,
        now: datetime,
    ) -> None:
        assert await throttle.should_search(episode_target) is True

        record = await store.get(episode_target.key)
        assert record is not None
        assert record.last_search_at == now

    async def test_second_search_inside_cooldown_is_throttled(
        self, throttle: SearchThrottle, episode_target: AcquisitionTarget, clock: Clock
    ) -> None:
        await throttle.should_search(episode_target)
        clock.advance(days=13)
        assert await throttle.should_search(episode_target) is False

        clock.advance(days=1)
        assert await throttle.should_search(episode_target) is True

    async def test_forced_search_always_passes_and_resets_clock(
        self,
        throttle: SearchThrottle,
        store: InMemorySearchCooldownStore,
        episode_target: AcquisitionTarget,
        clock: Clock,
    ) -> None:
        await throttle.should_search(episode_target)
        clock.advance(hours=1)

        assert await throttle.should_search(episode_target, forced=True) is True

        record = await store.get(episode_target.key)
        assert record is not None
        assert record.last_search_at == clock.current

    async def test_throttled_search_does_not_move_the_clock(
        self,
        throttle: SearchThrottle,
        store: InMemorySearchCooldownStore,
        episode_target: AcquisitionTarget,
        clock: Clock,
        now: datetime,
    ) -> None:
        await throttle.should_search(episode_target)
        clock.advance(days=1)
        await throttle.should_search(episode_target)

        record = await store.get(episode_target.key)
        assert record is not None
        assert record.last_search_at == now
