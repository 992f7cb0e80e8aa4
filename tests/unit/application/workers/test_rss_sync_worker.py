"""Tests for RssSyncWorker."""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from fetcharr.application.services.acquisition_service import AcquisitionService, RssSyncResult
from fetcharr.application.workers.rss_sync_worker import RssSyncWorker
from fetcharr.config import SearchSettings


@pytest.fixture
def service() -> MagicMock:
    service = MagicMock(spec=AcquisitionService)
    service.trigger_rss_sync = AsyncMock(return_value=RssSyncResult(processed=3))
    service.process_pending_releases = AsyncMock(return_value=[])
    return service


@pytest.fixture
def worker(service: MagicMock) -> RssSyncWorker:
    return RssSyncWorker(service, SearchSettings(rss_sync_interval_minutes=15))


class TestRunOnce:
    async def test_first_tick_syncs_and_processes_pending(
        self, worker: RssSyncWorker, service: MagicMock
    ) -> None:
        await worker.run_once()

        service.trigger_rss_sync.assert_awaited_once()
        service.process_pending_releases.assert_awaited_once()
        assert worker.get_stats()["rss_syncs"] == 1

    async def test_rss_only_runs_once_per_interval(
        self, worker: RssSyncWorker, service: MagicMock
    ) -> None:
        """Pending releases are checked every tick, feeds only every interval."""
        await worker.run_once()
        worker._last_rss_monotonic = time.monotonic() - 14 * 60
        await worker.run_once()
        worker._last_rss_monotonic = time.monotonic() - 15 * 60
        await worker.run_once()

        assert service.trigger_rss_sync.await_count == 2
        assert service.process_pending_releases.await_count == 3

    async def test_errors_are_counted_not_raised(
        self, worker: RssSyncWorker, service: MagicMock
    ) -> None:
        service.trigger_rss_sync.side_effect = RuntimeError("feed broken")
        service.process_pending_releases.side_effect = RuntimeError("store broken")

        await worker.run_once()

        stats = worker.get_stats()
        assert stats["errors"] == 2
        assert stats["rss_syncs"] == 0

    async def test_grab_counters(self, worker: RssSyncWorker, service: MagicMock) -> None:
        service.trigger_rss_sync.return_value = RssSyncResult(processed=5, grabbed=(MagicMock(),))
        service.process_pending_releases.return_value = [MagicMock(), MagicMock()]

        await worker.run_once()

        stats = worker.get_stats()
        assert stats["grabbed"] == 1
        assert stats["pending_grabbed"] == 2


class TestLifecycle:
    def test_stop(self, worker: RssSyncWorker) -> None:
        worker.stop()
        assert worker.get_stats()["is_running"] is False

    def test_interval_below_minimum_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            SearchSettings(rss_sync_interval_minutes=5)
