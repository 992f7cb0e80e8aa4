"""
Token bucket rate limiter for indexer and download-client HTTP calls.

Hey future me - the global indexer semaphore bounds how many searches run at
once. THIS bounds how fast we hit one particular indexer. Most Newznab
indexers ban API keys that burst, so every adapter owns one limiter.

ALGORITHM: Token Bucket
- Bucket holds max_tokens
- Refilled at refill_rate tokens/sec
- Each request takes 1 token, waits when empty

ADAPTIVE BACKOFF on 429:
- Retry-After header wins when present
- Otherwise 1s, 2s, 4s, ... capped at max_backoff_seconds
- Reset after the next successful request

USAGE:
    limiter = RateLimiter.for_indexer("nzbgeek", requests_per_second=1.0)

    async with limiter:
        response = await client.get(url)

    # On 429:
    await limiter.handle_rate_limit_response(retry_after=30)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter."""

    max_tokens: int = 5  # Bucket size
    refill_rate: float = 1.0  # Tokens per second
    max_backoff_seconds: float = 300.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Token Bucket Rate Limiter with adaptive backoff."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_indexer(cls, name: str, requests_per_second: float = 1.0, burst: int = 2) -> "RateLimiter":
        """Conservative limiter for one Newznab/Torznab indexer."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=burst,
                refill_rate=requests_per_second,
                max_backoff_seconds=600.0,  # indexers send long Retry-After values
                initial_backoff_seconds=2.0,
            ),
            name=name,
        )

    @classmethod
    def for_download_client(cls, name: str) -> "RateLimiter":
        """Local download clients tolerate bursts, we only smooth polling storms."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=20,
                refill_rate=10.0,
                max_backoff_seconds=30.0,
                initial_backoff_seconds=0.5,
            ),
            name=name,
        )

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(self.config.max_tokens, self._tokens + elapsed * self.config.refill_rate)
        self._last_refill = now

    async def acquire(self) -> None:
        """Acquire one token, waiting if necessary."""
        async with self._lock:
            self._refill_tokens()

            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug(
                    "RateLimiter[%s]: No tokens available, waiting %.2fs", self.name, wait_time
                )
                # Release lock while waiting
                self._lock.release()
                try:
                    await asyncio.sleep(wait_time)
                finally:
                    await self._lock.acquire()
                self._refill_tokens()

            self._tokens -= 1.0

    async def handle_rate_limit_response(self, retry_after: int | None = None) -> float:
        """Handle a 429 response with adaptive backoff.

        Args:
            retry_after: Retry-After header value in seconds, if the server sent one

        Returns:
            The wait time actually used
        """
        async with self._lock:
            wait_time = float(retry_after) if retry_after is not None else self._current_backoff
            wait_time = min(wait_time, self.config.max_backoff_seconds)

            logger.warning(
                "RateLimiter[%s]: 429 Rate Limited, waiting %.1fs (backoff level %.1fs)",
                self.name,
                wait_time,
                self._current_backoff,
            )

            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )
            self._tokens = 0.0

        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        """Reset backoff after a successful request."""
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        self._refill_tokens()
        return self._tokens

    @property
    def current_backoff(self) -> float:
        return self._current_backoff


__all__ = ["RateLimiter", "RateLimiterConfig"]
