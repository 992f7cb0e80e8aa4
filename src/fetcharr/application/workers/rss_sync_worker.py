"""RSS Sync Worker - periodic feed pulls and pending-release release.

Two jobs on one loop, because both are "look for something to grab now":
- every rss_sync_interval_minutes: trigger_rss_sync() on all RSS indexers
- every tick (1 minute): process_pending_releases() for delays that elapsed
"""

import asyncio
import logging
import time
from typing import Any

from fetcharr.application.services.acquisition_service import AcquisitionService
from fetcharr.config import SearchSettings

logger = logging.getLogger(__name__)

TICK_SECONDS = 60


class RssSyncWorker:
    def __init__(
        self,
        service: AcquisitionService,
        settings: SearchSettings,
        tick_seconds: float = TICK_SECONDS,
    ) -> None:
        self._service = service
        self._rss_interval = settings.rss_sync_interval_minutes * 60
        self._tick = tick_seconds
        self._running = False
        self._last_rss_monotonic: float | None = None
        self._stats: dict[str, int] = {"rss_syncs": 0, "grabbed": 0, "pending_grabbed": 0, "errors": 0}

    async def start(self) -> None:
        self._running = True
        logger.info("RssSyncWorker started (rss_interval=%ds)", self._rss_interval)
        while self._running:
            await self.run_once()
            await asyncio.sleep(self._tick)
        logger.info("RssSyncWorker stopped")

    def stop(self) -> None:
        self._running = False

    def _rss_due(self) -> bool:
        if self._last_rss_monotonic is None:
            return True
        return time.monotonic() - self._last_rss_monotonic >= self._rss_interval

    async def run_once(self) -> None:
        """One tick. Errors are logged and counted, the loop keeps going."""
        if self._rss_due():
            self._last_rss_monotonic = time.monotonic()
            try:
                result = await self._service.trigger_rss_sync()
                self._stats["rss_syncs"] += 1
                self._stats["grabbed"] += len(result.grabbed)
            except Exception as e:
                self._stats["errors"] += 1
                logger.exception("RSS sync failed: %s", e)

        try:
            grabbed = await self._service.process_pending_releases()
            self._stats["pending_grabbed"] += len(grabbed)
        except Exception as e:
            self._stats["errors"] += 1
            logger.exception("Processing pending releases failed: %s", e)

    def get_stats(self) -> dict[str, Any]:
        return {**self._stats, "is_running": self._running}


__all__ = ["RssSyncWorker"]
