"""Queue Poll Worker - keeps queue items in sync with the download clients.

Hey future me - this worker is the heartbeat of the queue. Without it:
- Grabbed releases stay QUEUED forever
- Stalled downloads are never failed, so the next-best release is never grabbed
- Finished downloads are never imported

The actual state machine lives in QueueStateTracker. This loop only decides
WHEN to poll and how hard to back off when the download clients are down.
"""

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import Any

from fetcharr.application.services.queue_tracker import QueueStateTracker
from fetcharr.config import QueueSettings
from fetcharr.domain.exceptions import TransientExternalError
from fetcharr.infrastructure.observability import log_worker_health, set_correlation_id

logger = logging.getLogger(__name__)

HEALTH_LOG_EVERY_N_CYCLES = 100


class QueuePollWorker:
    """Polls the download clients every poll_interval_seconds.

    Error Recovery:
    - A cycle where EVERY poll failed counts as a failure
    - Consecutive failures double the sleep interval, capped at max_backoff_seconds
    - One successful cycle resets the backoff
    """

    def __init__(self, tracker: QueueStateTracker, settings: QueueSettings) -> None:
        self._tracker = tracker
        self._poll_interval = settings.poll_interval_seconds
        self._max_consecutive_failures = settings.max_consecutive_failures
        self._max_backoff = settings.max_backoff_seconds
        self._running = False
        self._started_monotonic = 0.0

        self._consecutive_failures = 0
        self._total_errors = 0
        self._cycles_completed = 0
        self._last_successful_poll: datetime | None = None
        self._last_failure_time: datetime | None = None

    async def start(self) -> None:
        """Run until stop() is called."""
        self._running = True
        self._started_monotonic = time.monotonic()
        logger.info(
            "QueuePollWorker started (poll_interval=%ds, max_failures=%d)",
            self._poll_interval,
            self._max_consecutive_failures,
        )

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                self._on_poll_failure(e)
                logger.exception("QueuePollWorker error: %s", e)

            await asyncio.sleep(self._calculate_backoff_interval())

        await self._tracker.wait_for_imports()
        logger.info("QueuePollWorker stopped")

    def stop(self) -> None:
        """Signal the worker to stop."""
        self._running = False

    async def run_once(self) -> None:
        """One poll cycle. Raises when the download clients look down."""
        set_correlation_id()
        summary = await self._tracker.poll_all()
        if summary.all_failed:
            raise TransientExternalError(
                f"All {summary.polled} queue poll(s) failed", service="download_clients"
            )
        self._tracker.prune_finished()
        self._on_poll_success()

        self._cycles_completed += 1
        if self._cycles_completed % HEALTH_LOG_EVERY_N_CYCLES == 0:
            log_worker_health(
                logger,
                "queue_poll",
                cycles_completed=self._cycles_completed,
                errors_total=self._total_errors,
                uptime_seconds=time.monotonic() - self._started_monotonic,
                extra_stats={"active_items": self._tracker.statistics().total_active},
            )

    def _on_poll_success(self) -> None:
        if self._consecutive_failures >= self._max_consecutive_failures:
            logger.info("Download clients reachable again after %d failures", self._consecutive_failures)
        self._consecutive_failures = 0
        self._last_successful_poll = datetime.now(UTC)

    def _on_poll_failure(self, error: Exception) -> None:
        self._consecutive_failures += 1
        self._total_errors += 1
        self._last_failure_time = datetime.now(UTC)
        if self._consecutive_failures == self._max_consecutive_failures:
            logger.error(
                "Queue polling failed %d times in a row, backing off. Last error: %s",
                self._consecutive_failures,
                str(error)[:100],
            )

    # Hey future me - 30s, 60s, 120s, ... up to max_backoff_seconds. We never
    # stop polling completely: when the client comes back we want to notice.
    def _calculate_backoff_interval(self) -> float:
        if self._consecutive_failures == 0:
            return float(self._poll_interval)
        backoff = self._poll_interval * (2 ** min(self._consecutive_failures, 10))
        return float(min(backoff, self._max_backoff))

    def get_health_status(self) -> dict[str, Any]:
        """Health metrics for monitoring."""
        now = datetime.now(UTC)
        status: dict[str, Any] = {
            "is_running": self._running,
            "is_healthy": self._consecutive_failures < self._max_consecutive_failures,
            "consecutive_failures": self._consecutive_failures,
            "total_errors": self._total_errors,
            "cycles_completed": self._cycles_completed,
            "current_interval_seconds": self._calculate_backoff_interval(),
        }
        if self._last_successful_poll:
            status["last_successful_poll"] = self._last_successful_poll.isoformat()
            status["seconds_since_last_poll"] = int((now - self._last_successful_poll).total_seconds())
        else:
            status["last_successful_poll"] = None
            status["seconds_since_last_poll"] = None
        status["last_failure_time"] = (
            self._last_failure_time.isoformat() if self._last_failure_time else None
        )
        return status


__all__ = ["QueuePollWorker"]
