"""Custom formats - scored pattern rules layered on top of raw quality.

Hey future me - matching semantics (don't "simplify" them!):
- Every REQUIRED condition must match.
- If the format has any NON-required conditions, at least one must match.
- `negate` flips a single condition's result BEFORE the above is applied.
All matching formats' scores are summed by the decision engine.

Patterns are case-insensitive regexes, searched in:
- RELEASE_TITLE: the raw title
- RELEASE_GROUP: the parsed group
- SOURCE / RESOLUTION: the parsed value ("webdl", "1080p"), or the raw title
  when the parser couldn't tell
- CODEC, AUDIO_CODEC, AUDIO_CHANNELS, LANGUAGE, EDITION, INDEXER_FLAG: the raw
  title (the parser doesn't extract these, write patterns like "\\bDDP?5\\.1\\b")
except:
- SIZE: ">500", ">=500", "<1000", "<=1000", "500-1000" (MB, whole release)
- TAG / PROTOCOL: plain value comparison
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from fetcharr.domain.entities.release import ReleaseCandidate
from fetcharr.domain.exceptions import ConfigurationError
from fetcharr.domain.value_objects import QualitySource, Resolution


class ConditionKind(str, Enum):
    """What part of a candidate a condition inspects."""

    RELEASE_TITLE = "release_title"
    RELEASE_GROUP = "release_group"
    SOURCE = "source"
    RESOLUTION = "resolution"
    TAG = "tag"
    PROTOCOL = "protocol"
    SIZE = "size"
    CODEC = "codec"
    AUDIO_CODEC = "audio_codec"
    AUDIO_CHANNELS = "audio_channels"
    LANGUAGE = "language"
    EDITION = "edition"
    INDEXER_FLAG = "indexer_flag"


_TITLE_SEARCH_KINDS = frozenset(
    {
        ConditionKind.RELEASE_TITLE,
        ConditionKind.CODEC,
        ConditionKind.AUDIO_CODEC,
        ConditionKind.AUDIO_CHANNELS,
        ConditionKind.LANGUAGE,
        ConditionKind.EDITION,
        ConditionKind.INDEXER_FLAG,
    }
)
_PLAIN_KINDS = frozenset({ConditionKind.TAG, ConditionKind.PROTOCOL, ConditionKind.SIZE})


_SIZE_RANGE = re.compile(r"^(\d+)-(\d+)$")
_SIZE_COMPARE = re.compile(r"^([<>]=?)(\d+)$")


def _size_matches(pattern: str, size_mb: float) -> bool:
    range_match = _SIZE_RANGE.match(pattern)
    if range_match:
        low, high = int(range_match.group(1)), int(range_match.group(2))
        return low <= size_mb <= high
    compare = _SIZE_COMPARE.match(pattern)
    if compare is None:
        return False
    op, value = compare.group(1), int(compare.group(2))
    if op == ">":
        return size_mb > value
    if op == ">=":
        return size_mb >= value
    if op == "<":
        return size_mb < value
    return size_mb <= value


def _resolution_label(resolution: Resolution) -> str | None:
    return f"{int(resolution)}p" if resolution != Resolution.UNKNOWN else None


def _source_label(source: QualitySource) -> str | None:
    return source.value if source != QualitySource.UNKNOWN else None


@dataclass(frozen=True)
class FormatCondition:
    """One predicate over a candidate."""

    kind: ConditionKind
    pattern: str
    negate: bool = False
    required: bool = False
    _compiled: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.kind not in _PLAIN_KINDS:
            try:
                compiled = re.compile(self.pattern, re.IGNORECASE)
            except re.error as e:
                raise ConfigurationError(f"Invalid regex pattern '{self.pattern}': {e}") from e
            object.__setattr__(self, "_compiled", compiled)
        elif self.kind == ConditionKind.SIZE:
            if not (_SIZE_RANGE.match(self.pattern) or _SIZE_COMPARE.match(self.pattern)):
                raise ConfigurationError(f"Invalid size pattern '{self.pattern}'")

    def _search(self, value: str | None) -> bool:
        return bool(value and self._compiled and self._compiled.search(value))

    def _raw_match(self, candidate: ReleaseCandidate) -> bool:
        parsed = candidate.parsed
        wanted = self.pattern.lower()
        if self.kind in _TITLE_SEARCH_KINDS:
            return self._search(parsed.raw_title)
        if self.kind == ConditionKind.RELEASE_GROUP:
            return self._search(parsed.release_group)
        if self.kind == ConditionKind.SOURCE:
            return self._search(_source_label(parsed.quality.source) or parsed.raw_title)
        if self.kind == ConditionKind.RESOLUTION:
            return self._search(_resolution_label(parsed.quality.resolution) or parsed.raw_title)
        if self.kind == ConditionKind.TAG:
            return wanted in parsed.tags
        if self.kind == ConditionKind.PROTOCOL:
            return candidate.protocol.value == wanted
        if self.kind == ConditionKind.SIZE:
            if candidate.size <= 0:
                return False
            return _size_matches(self.pattern, candidate.size / (1024 * 1024))
        return False

    def matches(self, candidate: ReleaseCandidate) -> bool:
        result = self._raw_match(candidate)
        return not result if self.negate else result


@dataclass(frozen=True)
class CustomFormat:
    """Named, scored bundle of conditions."""

    id: str
    name: str
    conditions: tuple[FormatCondition, ...]
    score: int = 0

    def matches(self, candidate: ReleaseCandidate) -> bool:
        if not self.conditions:
            return False
        required = [c for c in self.conditions if c.required]
        optional = [c for c in self.conditions if not c.required]
        if not all(c.matches(candidate) for c in required):
            return False
        if optional and not any(c.matches(candidate) for c in optional):
            return False
        return True


def score_custom_formats(
    candidate: ReleaseCandidate, formats: tuple[CustomFormat, ...]
) -> tuple[int, tuple[str, ...]]:
    """Sum the scores of every matching format.

    Returns:
        (total score, names of the matching formats)
    """
    total = 0
    matched: list[str] = []
    for custom_format in formats:
        if custom_format.matches(candidate):
            total += custom_format.score
            matched.append(custom_format.name)
    return total, tuple(matched)


__all__ = [
    "ConditionKind",
    "CustomFormat",
    "FormatCondition",
    "score_custom_formats",
]
