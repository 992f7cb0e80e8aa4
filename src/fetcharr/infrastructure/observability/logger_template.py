"""Shared logger helpers.

USAGE:
    logger = logging.getLogger(__name__)

    async with log_operation(logger, "search", target="episode:tvdb-1:1:1"):
        await service.trigger_search(...)

    log_worker_health(logger, "queue_poll", cycles_completed=10, errors_total=1, uptime_seconds=600)
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any


# Yo, this context manager is for operation timing! It logs "<op>.started",
# then "<op>.completed" with duration_ms, or "<op>.failed" with the error and
# re-raises. The **context kwargs become extra fields on every line.
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    level: int = logging.INFO,
    **context: Any,
) -> AsyncIterator[dict[str, Any]]:
    """Log operation start/end with automatic timing.

    The yielded dict can be filled with result fields (e.g. grabbed=True)
    which are added to the completion log.

    Args:
        logger: Module logger
        operation: Operation name (e.g., "search", "rss_sync")
        level: Level for started/completed lines (failures are always ERROR)
        **context: Additional fields to include in logs
    """
    start = time.monotonic()
    result: dict[str, Any] = {}
    logger.log(level, "%s.started", operation, extra=context)
    try:
        yield result
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.error(
            "%s.failed",
            operation,
            extra={
                **context,
                "duration_ms": duration_ms,
                "error": str(e),
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise
    duration_ms = int((time.monotonic() - start) * 1000)
    logger.log(
        level,
        "%s.completed",
        operation,
        extra={**context, **result, "duration_ms": duration_ms},
    )


def log_worker_health(
    logger: logging.Logger,
    worker_name: str,
    cycles_completed: int,
    errors_total: int,
    uptime_seconds: float,
    extra_stats: dict[str, Any] | None = None,
) -> None:
    """Log worker health status in a consistent format (call every N cycles)."""
    log_data = {
        "worker": worker_name,
        "cycles_completed": cycles_completed,
        "errors_total": errors_total,
        "uptime_seconds": int(uptime_seconds),
    }
    if extra_stats:
        log_data.update(extra_stats)
    logger.info("worker.health", extra=log_data)
