"""Tests for retry_async and the retry decorators."""

from unittest.mock import AsyncMock

import pytest
from pytest_mock import MockerFixture
from sqlalchemy.exc import OperationalError

from fetcharr.domain.exceptions import (
    ConfigurationError,
    IndexerUnavailableError,
)
from fetcharr.infrastructure.retry import is_lock_error, retry_async, with_db_retry, with_retry


@pytest.fixture
def sleep(mocker: MockerFixture) -> AsyncMock:
    return mocker.patch("fetcharr.infrastructure.retry.asyncio.sleep", new_callable=AsyncMock)


def _lock_error(message: str = "database is locked") -> OperationalError:
    return OperationalError("INSERT ...", {}, Exception(message))


class TestRetryAsync:
    async def test_succeeds_after_transient_failures(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(
            side_effect=[IndexerUnavailableError("down"), IndexerUnavailableError("down"), "ok"]
        )

        result = await retry_async(operation, max_attempts=3, initial_delay=1.0)

        assert result == "ok"
        assert operation.await_count == 3
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]

    async def test_reraises_last_error_when_exhausted(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=IndexerUnavailableError("still down"))

        with pytest.raises(IndexerUnavailableError, match="still down"):
            await retry_async(operation, max_attempts=2)

        assert operation.await_count == 2

    async def test_non_retryable_fails_immediately(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=ConfigurationError("bad profile"))

        with pytest.raises(ConfigurationError):
            await retry_async(operation, max_attempts=5)

        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    async def test_delay_is_capped(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=[IndexerUnavailableError("x")] * 4 + ["ok"])

        await retry_async(operation, max_attempts=5, initial_delay=4.0, max_delay=10.0)

        assert [call.args[0] for call in sleep.await_args_list] == [4.0, 8.0, 10.0, 10.0]

    async def test_single_attempt_never_retries(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=IndexerUnavailableError("x"))

        with pytest.raises(IndexerUnavailableError):
            await retry_async(operation, max_attempts=1)

        sleep.assert_not_awaited()


class TestDecorators:
    async def test_with_retry(self, sleep: AsyncMock) -> None:
        calls = {"n": 0}

        @with_retry(max_attempts=3, initial_delay=0)
        async def flaky() -> str:
            calls["n"] += 1
            if calls["n"] < 2:
                raise IndexerUnavailableError("blip")
            return "done"

        assert await flaky() == "done"
        assert calls["n"] == 2
        assert flaky.__name__ == "flaky"

    async def test_db_retry_only_retries_lock_errors(self, sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=[_lock_error(), "saved"])
        broken = AsyncMock(side_effect=_lock_error("no such table: blocklist"))

        @with_db_retry()
        async def save() -> str:
            return await operation()

        @with_db_retry()
        async def save_broken() -> str:
            return await broken()

        assert await save() == "saved"
        with pytest.raises(OperationalError):
            await save_broken()
        broken.assert_awaited_once()


class TestIsLockError:
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("database is locked", True),
            ("database is busy", True),
            ("disk I/O error", False),
        ],
    )
    def test_operational_errors(self, message: str, expected: bool) -> None:
        assert is_lock_error(_lock_error(message)) is expected

    def test_other_exceptions(self) -> None:
        assert is_lock_error(RuntimeError("database is locked")) is False
