"""Configuration module for fetcharr."""

from .settings import (
    DatabaseSettings,
    DownloadClientConfig,
    EngineSettings,
    ImportSettings,
    IndexerConfig,
    ObservabilitySettings,
    QueueSettings,
    SearchSettings,
    Settings,
    ThrottleSettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "DownloadClientConfig",
    "EngineSettings",
    "ImportSettings",
    "IndexerConfig",
    "ObservabilitySettings",
    "QueueSettings",
    "SearchSettings",
    "Settings",
    "ThrottleSettings",
    "get_settings",
]
