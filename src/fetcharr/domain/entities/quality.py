"""Quality tiers and quality profiles.

Hey future me - two different things live here, don't mix them up:

- QualityDefinition = a named TIER ("WEB-DL 1080p") with its base weight and
  size policy (MB per minute of runtime). Global, one table for everybody.
- QualityProfile = what a TARGET wants: an ordered list of allowed tier names
  (profile order = rank, later is better), a cutoff, and upgrade rules.

The decision engine asks the table "which tier is this Quality?" and then asks
the profile "is that tier allowed, and does it beat the current file?".
"""

from __future__ import annotations

from dataclasses import dataclass

from fetcharr.domain.exceptions import ConfigurationError
from fetcharr.domain.value_objects import (
    Quality,
    QualityModifier,
    QualitySource,
    Resolution,
)

UNKNOWN_TIER = "Unknown"


@dataclass(frozen=True)
class QualityDefinition:
    """One quality tier.

    Sizes are MB per minute of runtime. None means "no bound" (or, for
    preferred_size, "no size preference": size scoring is skipped).
    """

    name: str
    source: QualitySource
    resolution: Resolution
    weight: int
    modifier: QualityModifier = QualityModifier.NONE
    min_size: float | None = None
    preferred_size: float | None = None
    max_size: float | None = None

    def size_score(self, size_bytes: int, runtime_minutes: int | None) -> int:
        """Size component of the total score, in [-50, 25].

        25 at exactly the preferred size, sliding linearly to -25 at either bound,
        flat -50 outside [min, max]. 0 when runtime or preference is unknown.
        """
        if not runtime_minutes or self.preferred_size is None or size_bytes <= 0:
            return 0

        mb_per_minute = size_bytes / (1024 * 1024) / runtime_minutes
        low = self.min_size if self.min_size is not None else 0.0
        if mb_per_minute < low:
            return -50
        if self.max_size is not None and mb_per_minute > self.max_size:
            return -50

        if mb_per_minute >= self.preferred_size:
            span = (self.max_size - self.preferred_size) if self.max_size is not None else 0.0
            deviation = (mb_per_minute - self.preferred_size) / span if span > 0 else 0.0
        else:
            span = self.preferred_size - low
            deviation = (self.preferred_size - mb_per_minute) / span if span > 0 else 0.0

        score = round(25 * (1 - 2 * deviation))
        return max(-25, min(25, score))


def _video(
    name: str,
    source: QualitySource,
    resolution: Resolution,
    weight: int,
    min_size: float,
    max_size: float,
    preferred_size: float | None = None,
    modifier: QualityModifier = QualityModifier.NONE,
) -> QualityDefinition:
    return QualityDefinition(
        name=name,
        source=source,
        resolution=resolution,
        weight=weight,
        modifier=modifier,
        min_size=min_size,
        preferred_size=preferred_size,
        max_size=max_size,
    )


_TV = QualitySource.TELEVISION
_REMUX = QualityModifier.REMUX

# Hey future me - weights are the long-standing *arr numbers. Keep them stable,
# they show up in every persisted score breakdown.
DEFAULT_QUALITY_DEFINITIONS: tuple[QualityDefinition, ...] = (
    _video(UNKNOWN_TIER, QualitySource.UNKNOWN, Resolution.UNKNOWN, 0, 0, 100),
    _video("WORKPRINT", QualitySource.WORKPRINT, Resolution.UNKNOWN, 1, 0, 100),
    _video("CAM", QualitySource.CAM, Resolution.UNKNOWN, 2, 0, 100),
    _video("TELESYNC", QualitySource.TELESYNC, Resolution.UNKNOWN, 3, 0, 100),
    _video("TELECINE", QualitySource.TELECINE, Resolution.UNKNOWN, 4, 0, 100),
    _video("DVD", QualitySource.DVD, Resolution.R480P, 10, 2, 100, 35),
    _video("DVD-R", QualitySource.DVD, Resolution.R576P, 11, 2, 100, 35),
    _video("SDTV", _TV, Resolution.R480P, 15, 1, 100, 15),
    _video("HDTV-720p", _TV, Resolution.R720P, 20, 3, 125, 40),
    _video("WEBRip-720p", QualitySource.WEBRIP, Resolution.R720P, 21, 3, 130, 45),
    _video("WEB-DL 720p", QualitySource.WEBDL, Resolution.R720P, 22, 3, 130, 50),
    _video("BluRay-720p", QualitySource.BLURAY, Resolution.R720P, 23, 4, 130, 60),
    _video("HDTV-1080p", _TV, Resolution.R1080P, 30, 4, 130, 50),
    _video("WEBRip-1080p", QualitySource.WEBRIP, Resolution.R1080P, 31, 4, 130, 60),
    _video("WEB-DL 1080p", QualitySource.WEBDL, Resolution.R1080P, 32, 4, 130, 70),
    _video("BluRay-1080p", QualitySource.BLURAY, Resolution.R1080P, 33, 5, 155, 80),
    _video("Remux-1080p", QualitySource.BLURAY, Resolution.R1080P, 34, 10, 400, 200, _REMUX),
    _video("HDTV-2160p", _TV, Resolution.R2160P, 40, 10, 350, 100),
    _video("WEBRip-2160p", QualitySource.WEBRIP, Resolution.R2160P, 41, 10, 350, 120),
    _video("WEB-DL 2160p", QualitySource.WEBDL, Resolution.R2160P, 42, 10, 350, 140),
    _video("BluRay-2160p", QualitySource.BLURAY, Resolution.R2160P, 43, 15, 400, 180),
    _video("Remux-2160p", QualitySource.BLURAY, Resolution.R2160P, 44, 30, 750, 400, _REMUX),
    # Music tiers carry no size policy
    QualityDefinition("AAC", QualitySource.AAC, Resolution.UNKNOWN, 10),
    QualityDefinition("MP3", QualitySource.MP3, Resolution.UNKNOWN, 12),
    QualityDefinition("FLAC", QualitySource.FLAC, Resolution.UNKNOWN, 20),
    QualityDefinition(
        "FLAC 24bit",
        QualitySource.FLAC,
        Resolution.UNKNOWN,
        22,
        modifier=QualityModifier.HIRES,
    ),
)


class QualityDefinitionTable:
    """Lookup from a detected Quality triple to its tier.

    Resolution order: exact (source, resolution, modifier) → same source with
    unknown resolution (CAM/TS tiers ignore resolution) → Unknown tier.
    """

    def __init__(self, definitions: tuple[QualityDefinition, ...] = DEFAULT_QUALITY_DEFINITIONS):
        self._by_name = {d.name: d for d in definitions}
        self._by_triple = {(d.source, d.resolution, d.modifier): d for d in definitions}
        if UNKNOWN_TIER not in self._by_name:
            raise ConfigurationError("Quality definitions must include the 'Unknown' tier")

    def resolve(self, quality: Quality) -> QualityDefinition:
        exact = self._by_triple.get((quality.source, quality.resolution, quality.modifier))
        if exact is not None:
            return exact
        loose = self._by_triple.get((quality.source, Resolution.UNKNOWN, quality.modifier))
        if loose is not None:
            return loose
        return self._by_name[UNKNOWN_TIER]

    def get(self, name: str) -> QualityDefinition | None:
        return self._by_name.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def highest(self, names: tuple[str, ...]) -> QualityDefinition | None:
        """Highest-weight tier among names (unknown names are skipped)."""
        known = [self._by_name[n] for n in names if n in self._by_name]
        return max(known, key=lambda d: d.weight) if known else None


@dataclass(frozen=True)
class QualityProfile:
    """What a target wants, quality-wise.

    allowed is ordered worst → best. The index in that list is the RANK used
    for upgrade comparisons; weights are only used for scoring.
    """

    id: str
    name: str
    allowed: tuple[str, ...]
    cutoff: str
    upgrade_allowed: bool = True
    min_format_score: int = 0

    def validate(self, table: QualityDefinitionTable | None = None) -> None:
        """Raise ConfigurationError when the profile violates its invariants."""
        if not self.allowed:
            raise ConfigurationError(f"Quality profile '{self.name}' allows no tiers")
        if self.cutoff not in self.allowed:
            raise ConfigurationError(
                f"Quality profile '{self.name}' cutoff '{self.cutoff}' is not an allowed tier"
            )
        if len(set(self.allowed)) != len(self.allowed):
            raise ConfigurationError(f"Quality profile '{self.name}' lists a tier twice")
        if table is not None:
            missing = [name for name in self.allowed if name not in table]
            if missing:
                raise ConfigurationError(
                    f"Quality profile '{self.name}' references unknown tiers: {missing}"
                )

    def allows(self, tier: str) -> bool:
        return tier in self.allowed

    def rank(self, tier: str) -> int | None:
        """Rank of a tier in this profile (higher = better), None when not allowed."""
        try:
            return self.allowed.index(tier)
        except ValueError:
            return None

    @property
    def cutoff_rank(self) -> int:
        return self.allowed.index(self.cutoff)

    @property
    def best_tier(self) -> str:
        return self.allowed[-1]


__all__ = [
    "DEFAULT_QUALITY_DEFINITIONS",
    "QualityDefinition",
    "QualityDefinitionTable",
    "QualityProfile",
    "UNKNOWN_TIER",
]
