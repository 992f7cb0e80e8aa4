"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from fetcharr.config import ObservabilitySettings, SearchSettings, Settings, get_settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.search.rss_sync_interval_minutes == 15
        assert settings.queue.stall_timeout_minutes == 60
        assert settings.throttle.missing_cooldown_days == 7.0
        assert settings.engine.max_retries_per_cycle == 3
        assert settings.indexers == []

    def test_nested_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FETCHARR_SEARCH__INDEXER_CONCURRENCY", "2")
        monkeypatch.setenv("FETCHARR_QUEUE__STALL_TIMEOUT_MINUTES", "90")
        monkeypatch.setenv(
            "FETCHARR_INDEXERS",
            '[{"name": "nzbgeek", "url": "https://nzbgeek.example", "api_key": "k"}]',
        )

        settings = Settings(_env_file=None)

        assert settings.search.indexer_concurrency == 2
        assert settings.queue.stall_timeout_minutes == 90
        [indexer] = settings.indexers
        assert indexer.name == "nzbgeek"
        assert indexer.protocol == "usenet"

    def test_log_level_is_normalized(self) -> None:
        assert ObservabilitySettings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            ObservabilitySettings(log_level="chatty")

    def test_rss_interval_minimum(self) -> None:
        with pytest.raises(ValidationError):
            SearchSettings(rss_sync_interval_minutes=9)

    def test_media_extensions_are_normalized(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FETCHARR_IMPORTS__MEDIA_EXTENSIONS", '["MKV", ".Flac"]')

        settings = Settings(_env_file=None)

        assert settings.imports.media_extensions == [".mkv", ".flac"]

    def test_get_settings_is_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        get_settings.cache_clear()
        monkeypatch.setenv("FETCHARR_APP_NAME", "fetcharr-test")
        try:
            assert get_settings() is get_settings()
            assert get_settings().app_name == "fetcharr-test"
        finally:
            get_settings.cache_clear()
