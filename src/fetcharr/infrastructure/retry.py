# Hey future me - bounded exponential backoff for EVERYTHING transient.
#
# Two flavours of the same loop:
# - retry_async(): call site decides attempts at runtime (dispatcher reads them
#   from settings)
# - @with_retry / @with_db_retry: decorator form for fixed policies
#
# Only the exception types you name are retried. Everything else propagates on
# the first attempt. After the last attempt the LAST exception is re-raised
# unchanged, the caller decides what "exhausted" means for it.
"""Retry helpers with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import OperationalError

from fetcharr.domain.exceptions import TransientExternalError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (TransientExternalError,),
    should_retry: Callable[[BaseException], bool] | None = None,
    label: str = "operation",
) -> T:
    """Run an async operation, retrying transient failures.

    The delay sequence is initial_delay, initial_delay*factor, ... capped at
    max_delay. With max_attempts=1 nothing is retried.

    Raises:
        The last exception once max_attempts is exhausted, or the first
        non-retryable exception immediately.
    """
    delay = initial_delay
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if should_retry is not None and not should_retry(e):
                raise
            if attempt >= max_attempts:
                logger.error(
                    "%s failed after %d attempts, giving up: %s", label, max_attempts, e
                )
                raise
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                label,
                attempt,
                max_attempts,
                delay,
                e,
            )
            await asyncio.sleep(delay)
            delay = min(delay * backoff_factor, max_delay)
    raise RuntimeError("Unexpected state in retry_async")


def with_retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (TransientExternalError,),
    should_retry: Callable[[BaseException], bool] | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator form of retry_async.

    Example:
        @with_retry(max_attempts=3, retry_on=(IndexerUnavailableError,))
        async def fetch_caps(self) -> dict:
            ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await retry_async(
                lambda: func(*args, **kwargs),
                max_attempts=max_attempts,
                initial_delay=initial_delay,
                max_delay=max_delay,
                backoff_factor=backoff_factor,
                retry_on=retry_on,
                should_retry=should_retry,
                label=f"{func.__module__}.{func.__qualname__}",
            )

        return wrapper

    return decorator


def is_lock_error(exception: BaseException) -> bool:
    """True for SQLite "database is locked"/"busy" errors (retryable)."""
    if not isinstance(exception, OperationalError):
        return False
    message = str(exception).lower()
    return "locked" in message or "busy" in message


def with_db_retry(
    max_attempts: int = 3,
    initial_delay: float = 0.5,
    max_delay: float = 5.0,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry repository writes on SQLite lock errors only.

    SQLite allows one writer at a time; a concurrent search cycle and the
    queue poller can collide. Other OperationalErrors fail fast.
    """
    return with_retry(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        retry_on=(OperationalError,),
        should_retry=is_lock_error,
    )


__all__ = ["is_lock_error", "retry_async", "with_db_retry", "with_retry"]
