"""Tests for logging configuration, formatters and the logger helpers."""

import asyncio
import json
import logging
import sys

import pytest

from fetcharr.infrastructure.observability import (
    configure_logging,
    get_correlation_id,
    log_operation,
    log_worker_health,
    set_correlation_id,
)
from fetcharr.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
)


def _record(msg: str = "hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="fetcharr.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestCorrelationId:
    def test_generated_when_missing(self) -> None:
        cid = set_correlation_id()

        assert len(cid) == 12
        assert get_correlation_id() == cid

    async def test_tasks_do_not_share_ids(self) -> None:
        async def run(cid: str) -> str:
            set_correlation_id(cid)
            await asyncio.sleep(0)
            return get_correlation_id()

        results = await asyncio.gather(run("search-a"), run("search-b"))

        assert results == ["search-a", "search-b"]

    def test_filter_stamps_records(self) -> None:
        set_correlation_id("abc123")
        record = _record()

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "abc123"


class TestFormatters:
    def test_json_formatter_fields(self) -> None:
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = _record("Grabbed release")
        record.correlation_id = "cid-1"

        data = json.loads(formatter.format(record))

        assert data["message"] == "Grabbed release"
        assert data["level"] == "INFO"
        assert data["logger"] == "fetcharr.test"
        assert data["correlation_id"] == "cid-1"
        assert data["line"] == 10

    def test_compact_formatter_shows_root_cause_first(self) -> None:
        formatter = CompactExceptionFormatter(fmt="%(levelname)s %(message)s")
        try:
            try:
                raise ConnectionError("refused")
            except ConnectionError as e:
                raise RuntimeError("indexer unreachable") from e
        except RuntimeError:
            record = _record("Search failed", exc_info=sys.exc_info())
        record.correlation_id = "cid-2"

        text = formatter.format(record)

        assert text.index("ConnectionError: refused") < text.index(
            "RuntimeError: indexer unreachable"
        )
        assert "[cid-2]" in text

    def test_configure_logging_replaces_handlers(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging("DEBUG", json_format=True)
            configure_logging("WARNING")

            assert len(root.handlers) == 1
            assert root.level == logging.WARNING
            assert isinstance(root.handlers[0].formatter, CompactExceptionFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestLoggerTemplate:
    async def test_log_operation_success(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("fetcharr.test.op")

        with caplog.at_level(logging.INFO, logger="fetcharr.test.op"):
            async with log_operation(logger, "search", target="movie:tmdb-7") as result:
                result["grabbed"] = True

        started, completed = caplog.records
        assert started.getMessage() == "search.started"
        assert completed.getMessage() == "search.completed"
        assert completed.target == "movie:tmdb-7"
        assert completed.grabbed is True
        assert completed.duration_ms >= 0

    async def test_log_operation_failure_reraises(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("fetcharr.test.op")

        with caplog.at_level(logging.INFO, logger="fetcharr.test.op"):
            with pytest.raises(ValueError):
                async with log_operation(logger, "rss_sync"):
                    raise ValueError("feed broken")

        failed = caplog.records[-1]
        assert failed.getMessage() == "rss_sync.failed"
        assert failed.levelno == logging.ERROR
        assert failed.error_type == "ValueError"

    def test_worker_health(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("fetcharr.test.worker")

        with caplog.at_level(logging.INFO, logger="fetcharr.test.worker"):
            log_worker_health(logger, "queue_poll", 10, 1, 600.7, {"active_items": 3})

        [record] = caplog.records
        assert record.worker == "queue_poll"
        assert record.uptime_seconds == 600
        assert record.active_items == 3
