"""Release candidates and acquisition targets."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from fetcharr.domain.value_objects import (
    ContentKind,
    Protocol,
    Quality,
    ReleaseIdentity,
    TargetKey,
    TargetKind,
)
from fetcharr.domain.value_objects.release_parser import ParsedRelease

DEFAULT_INDEXER_PRIORITY = 25


@dataclass(frozen=True)
class ReleaseCandidate:
    """One result offered by an indexer, not yet accepted.

    Hey future me - protocol lives HERE, not on ParsedRelease. You can't tell
    a torrent from an NZB by its title. first_seen is the position in the
    merged result list and is the ranker's last tie-breaker, so whoever builds
    candidates must number them in arrival order.
    """

    parsed: ParsedRelease
    payload_ref: str
    indexer: str
    protocol: Protocol
    indexer_priority: int = DEFAULT_INDEXER_PRIORITY
    age_days: float = 0.0
    size: int = 0
    seeders: int | None = None
    publish_date: datetime | None = None
    first_seen: int = 0
    info_url: str | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.indexer_priority <= 100:
            raise ValueError("indexer_priority must be between 1 and 100")

    @property
    def title(self) -> str:
        return self.parsed.raw_title

    @property
    def identity(self) -> ReleaseIdentity:
        return ReleaseIdentity(self.parsed.raw_title, self.indexer)

    @property
    def age_minutes(self) -> float:
        return self.age_days * 24 * 60


@dataclass(frozen=True)
class CurrentFile:
    """What the library already has for a target."""

    quality: Quality
    path: str | None = None
    custom_format_score: int = 0


@dataclass(frozen=True)
class AcquisitionTarget:
    """The library item a search is trying to satisfy.

    Read-only snapshot handed to the engine by the library store. Numbering
    fields depend on kind: season/episodes/absolute for episodes, year for
    movies, artist + year for albums.
    """

    key: TargetKey
    kind: TargetKind
    content_kind: ContentKind
    title: str
    quality_profile_id: str
    monitored: bool = True
    season: int | None = None
    episodes: tuple[int, ...] = ()
    absolute_episode: int | None = None
    year: int | None = None
    artist: str | None = None
    current_file: CurrentFile | None = None
    custom_format_ids: tuple[str, ...] = ()
    tags: frozenset[str] = field(default_factory=frozenset)
    release_date: date | None = None
    runtime_minutes: int | None = None
    aliases: tuple[str, ...] = ()

    @property
    def has_file(self) -> bool:
        return self.current_file is not None

    def is_released(self, now: datetime | None = None) -> bool:
        if self.release_date is None:
            return True
        today = (now or datetime.now(UTC)).date()
        return self.release_date <= today

    def search_query(self) -> str:
        """Plain-text query for indexers that don't support id-based search."""
        if self.kind == TargetKind.EPISODE:
            if self.season is not None and self.episodes:
                return f"{self.title} S{self.season:02d}E{self.episodes[0]:02d}"
            if self.absolute_episode is not None:
                return f"{self.title} {self.absolute_episode:02d}"
            return self.title
        if self.kind == TargetKind.MOVIE and self.year:
            return f"{self.title} {self.year}"
        if self.kind == TargetKind.ALBUM and self.artist:
            return f"{self.artist} {self.title}"
        return self.title


__all__ = [
    "AcquisitionTarget",
    "CurrentFile",
    "DEFAULT_INDEXER_PRIORITY",
    "ReleaseCandidate",
]
