"""Domain value objects.

Small immutable types shared by the parser, the decision engine and the queue.
Enums are str-based so they serialize cleanly to the DB and to JSON logs.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum, IntEnum


class ContentKind(str, Enum):
    """What kind of media a release or target is about.

    Hey future me - this is THE dispatch key for kind-specific behavior
    (parser matcher order, cooldown policy, target matching). Don't subclass
    per kind, branch on this enum in one place.
    """

    SERIES = "series"
    ANIME = "anime"
    MOVIE = "movie"
    MUSIC = "music"


class Protocol(str, Enum):
    """Transfer protocol of a release."""

    TORRENT = "torrent"
    USENET = "usenet"


class Resolution(IntEnum):
    """Vertical resolution; UNKNOWN for music and unlabelled releases."""

    UNKNOWN = 0
    R480P = 480
    R576P = 576
    R720P = 720
    R1080P = 1080
    R2160P = 2160


class QualitySource(str, Enum):
    """Where the release was sourced from (video) or its codec family (audio)."""

    UNKNOWN = "unknown"
    WORKPRINT = "workprint"
    CAM = "cam"
    TELESYNC = "telesync"
    TELECINE = "telecine"
    DVD = "dvd"
    TELEVISION = "television"
    WEBRIP = "webrip"
    WEBDL = "webdl"
    BLURAY = "bluray"
    # Audio
    MP3 = "mp3"
    AAC = "aac"
    FLAC = "flac"


class QualityModifier(str, Enum):
    """Qualifier on top of source + resolution."""

    NONE = "none"
    REMUX = "remux"
    HIRES = "hires"  # 24bit audio


@dataclass(frozen=True)
class Quality:
    """Quality triple as detected from a title or from file metadata."""

    resolution: Resolution = Resolution.UNKNOWN
    source: QualitySource = QualitySource.UNKNOWN
    modifier: QualityModifier = QualityModifier.NONE

    @classmethod
    def unknown(cls) -> Quality:
        return cls()

    def __str__(self) -> str:
        parts = [self.source.value]
        if self.resolution != Resolution.UNKNOWN:
            parts.append(f"{int(self.resolution)}p")
        if self.modifier != QualityModifier.NONE:
            parts.append(self.modifier.value)
        return "-".join(parts)


class TargetKind(str, Enum):
    """The thing being hunted."""

    EPISODE = "episode"
    MOVIE = "movie"
    ALBUM = "album"


@dataclass(frozen=True)
class TargetKey:
    """Stable identity of an acquisition target (e.g. "episode:tvdb-121361:1:1")."""

    value: str

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("TargetKey cannot be empty")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class QueueItemId:
    """Identity of a queue item = the download client's id for the transfer."""

    value: str

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("QueueItemId cannot be empty")

    @classmethod
    def generate(cls) -> QueueItemId:
        """Generate a local id (used by clients that don't assign one)."""
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ReleaseIdentity:
    """What the blocklist keys on: the release title as seen on one indexer."""

    title: str
    indexer: str

    def __str__(self) -> str:
        return f"{self.title} @ {self.indexer}"


__all__ = [
    "ContentKind",
    "Protocol",
    "Quality",
    "QualityModifier",
    "QualitySource",
    "QueueItemId",
    "ReleaseIdentity",
    "Resolution",
    "TargetKey",
    "TargetKind",
]
