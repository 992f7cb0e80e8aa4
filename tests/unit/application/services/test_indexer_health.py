"""Tests for indexer backoff bookkeeping and target scoping."""

from collections.abc import Callable
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from fetcharr.application.services.indexer_health import IndexerHealth, serves
from fetcharr.config import SearchSettings
from fetcharr.domain.entities import AcquisitionTarget
from fetcharr.domain.value_objects import ContentKind


class Clock:
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
def health(clock: Clock) -> IndexerHealth:
    return IndexerHealth(SearchSettings(), clock)


class TestBackoff:
    def test_doubles_from_five_minutes(self, health: IndexerHealth) -> None:
        assert [health.backoff(n) for n in (1, 2, 3, 4)] == [
            timedelta(minutes=5),
            timedelta(minutes=10),
            timedelta(minutes=20),
            timedelta(minutes=40),
        ]

    def test_capped_at_a_day(self, health: IndexerHealth) -> None:
        assert health.backoff(9) == timedelta(minutes=1280)
        assert health.backoff(10) == timedelta(hours=24)
        assert health.backoff(10_000) == timedelta(hours=24)

    def test_failure_benches_until_backoff_elapsed(
        self, health: IndexerHealth, clock: Clock, now: datetime
    ) -> None:
        status = health.record_failure("nzbgeek")

        assert status.failure_count == 1
        assert status.disabled_until == now + timedelta(minutes=5)
        assert health.is_available("nzbgeek") is False
        clock.advance(minutes=5, seconds=1)
        assert health.is_available("nzbgeek") is True

    def test_clear_resets_the_count(self, health: IndexerHealth) -> None:
        health.record_failure("nzbgeek")
        health.record_failure("nzbgeek")

        health.clear_failures("nzbgeek")

        assert health.status("nzbgeek").failure_count == 0
        assert health.is_available("nzbgeek") is True
        assert health.statuses() == []

    def test_available_skips_disabled_and_benched(
        self, health: IndexerHealth, make_indexer: Callable[..., AsyncMock]
    ) -> None:
        benched = make_indexer("benched")
        off = make_indexer("off")
        off.enabled = False
        fine = make_indexer("fine")
        health.record_failure("benched")

        assert health.available([benched, off, fine]) == [fine]


class TestServes:
    def test_unscoped_indexer_serves_everything(
        self, make_indexer: Callable[..., AsyncMock], episode_target: AcquisitionTarget
    ) -> None:
        assert serves(make_indexer(), episode_target) is True

    @pytest.mark.parametrize(
        ("kinds", "target_kind", "expected"),
        [
            ({ContentKind.SERIES}, ContentKind.SERIES, True),
            ({ContentKind.MOVIE}, ContentKind.SERIES, False),
            ({ContentKind.SERIES}, ContentKind.ANIME, True),
            ({ContentKind.ANIME}, ContentKind.SERIES, False),
            ({ContentKind.MUSIC, ContentKind.MOVIE}, ContentKind.MOVIE, True),
        ],
    )
    def test_content_kinds(
        self,
        make_indexer: Callable[..., AsyncMock],
        make_target: Callable[..., AcquisitionTarget],
        kinds: set[ContentKind],
        target_kind: ContentKind,
        expected: bool,
    ) -> None:
        indexer = make_indexer(content_kinds=kinds)
        target = make_target(content_kind=target_kind)

        assert serves(indexer, target) is expected

    def test_tags_only_scope_tagged_targets(
        self,
        make_indexer: Callable[..., AsyncMock],
        make_target: Callable[..., AcquisitionTarget],
    ) -> None:
        tagged = make_indexer(tags={"4k"})

        assert serves(tagged, make_target()) is True
        assert serves(tagged, make_target(tags=frozenset({"4k", "hdr"}))) is True
        assert serves(tagged, make_target(tags=frozenset({"kids"}))) is False
        assert serves(make_indexer(), make_target(tags=frozenset({"kids"}))) is True
