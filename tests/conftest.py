"""Shared fixtures: a small profile catalog, target/candidate builders and port fakes."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from fetcharr.domain.entities import (
    AcquisitionTarget,
    ProfileCatalog,
    QualityProfile,
    ReleaseCandidate,
)
from fetcharr.domain.ports import IDownloadClient, IIndexer, ILibraryStore
from fetcharr.domain.value_objects import ContentKind, Protocol, TargetKey, TargetKind
from fetcharr.domain.value_objects.release_parser import parse_release

# Hey future me - 2024-06-01 12:00 UTC is "now" for every clock-driven test.
# Tests that need time to pass wrap a mutable list and advance it.
FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

DEFAULT_TITLE = "Show.Name.S01E01.1080p.WEB-DL-GROUP"


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def hd_profile() -> QualityProfile:
    """Standard HD ordering: HDTV-720p < ... < WEB-DL 1080p < BluRay-1080p."""
    return QualityProfile(
        id="hd",
        name="HD",
        allowed=("HDTV-720p", "WEB-DL 720p", "HDTV-1080p", "WEB-DL 1080p", "BluRay-1080p"),
        cutoff="WEB-DL 1080p",
    )


@pytest.fixture
def catalog(hd_profile: QualityProfile) -> ProfileCatalog:
    return ProfileCatalog(
        quality_profiles={
            "hd": hd_profile,
            "movies": QualityProfile(
                id="movies",
                name="Movies",
                allowed=("WEB-DL 1080p", "BluRay-1080p", "Remux-1080p"),
                cutoff="BluRay-1080p",
            ),
            "lossless": QualityProfile(
                id="lossless", name="Lossless", allowed=("MP3", "FLAC"), cutoff="FLAC"
            ),
        }
    )


@pytest.fixture
def make_target() -> Callable[..., AcquisitionTarget]:
    """Episode target for "Show Name" S01E01 unless overridden."""

    def _make(key: str = "episode:tvdb-1:1:1", **overrides: Any) -> AcquisitionTarget:
        fields: dict[str, Any] = {
            "key": TargetKey(key),
            "kind": TargetKind.EPISODE,
            "content_kind": ContentKind.SERIES,
            "title": "Show Name",
            "quality_profile_id": "hd",
            "season": 1,
            "episodes": (1,),
        }
        fields.update(overrides)
        return AcquisitionTarget(**fields)

    return _make


@pytest.fixture
def episode_target(make_target: Callable[..., AcquisitionTarget]) -> AcquisitionTarget:
    return make_target()


@pytest.fixture
def make_candidate() -> Callable[..., ReleaseCandidate]:
    """Parse a title and wrap it into a usenet candidate from "nzbgeek"."""

    def _make(
        title: str = DEFAULT_TITLE,
        kind_hint: ContentKind | None = ContentKind.SERIES,
        **overrides: Any,
    ) -> ReleaseCandidate:
        parsed = parse_release(title, kind_hint=kind_hint)
        assert parsed is not None, f"test title does not parse: {title}"
        fields: dict[str, Any] = {
            "parsed": parsed,
            "payload_ref": f"https://indexer.example/get/{title}",
            "indexer": "nzbgeek",
            "protocol": Protocol.USENET,
        }
        fields.update(overrides)
        return ReleaseCandidate(**fields)

    return _make


@pytest.fixture
def make_client() -> Callable[..., AsyncMock]:
    """AsyncMock download client; submit() returns "nzo_1", "nzo_2", ..."""

    def _make(
        name: str = "sabnzbd",
        protocol: Protocol = Protocol.USENET,
        priority: int = 1,
        tags: frozenset[str] = frozenset(),
        enabled: bool = True,
    ) -> AsyncMock:
        client = AsyncMock(spec=IDownloadClient)
        client.name = name
        client.protocol = protocol
        client.priority = priority
        client.tags = tags
        client.enabled = enabled
        client.submit = AsyncMock(side_effect=[f"nzo_{i}" for i in range(1, 50)])
        return client

    return _make


@pytest.fixture
def make_indexer() -> Callable[..., AsyncMock]:
    def _make(
        name: str = "nzbgeek",
        protocol: Protocol = Protocol.USENET,
        priority: int = 25,
        results: list | None = None,
        content_kinds: frozenset = frozenset(),
        tags: frozenset[str] = frozenset(),
    ) -> AsyncMock:
        indexer = AsyncMock(spec=IIndexer)
        indexer.name = name
        indexer.protocol = protocol
        indexer.priority = priority
        indexer.enabled = True
        indexer.supports_rss = True
        indexer.content_kinds = frozenset(content_kinds)
        indexer.tags = frozenset(tags)
        indexer.search = AsyncMock(return_value=list(results or []))
        indexer.fetch_rss = AsyncMock(return_value=list(results or []))
        return indexer

    return _make


@pytest.fixture
def library(catalog: ProfileCatalog, episode_target: AcquisitionTarget) -> AsyncMock:
    """Library store that knows exactly one target: episode_target."""
    store = AsyncMock(spec=ILibraryStore)
    targets = {episode_target.key: episode_target}
    store.get_target = AsyncMock(side_effect=lambda key: targets.get(key))
    store.get_catalog = AsyncMock(return_value=catalog)
    store.find_targets = AsyncMock(return_value=[episode_target])
    store.update_current_file = AsyncMock()
    store.targets = targets
    return store
