"""Decision - the outcome of scoring one candidate against one target."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from fetcharr.domain.entities.release import ReleaseCandidate
from fetcharr.domain.value_objects import Protocol, TargetKey


class DecisionOutcome(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    DELAY = "delay"


# Hey future me - these are RESULT values, never exceptions. The string values
# are what users see in search outcomes, so don't rename them casually.
class RejectReason(str, Enum):
    """Why a candidate was rejected, in evaluation order."""

    BLOCKLISTED = "blocklisted"
    RESTRICTED = "restricted"
    QUALITY_NOT_WANTED = "quality_not_wanted"
    UPGRADE_NOT_ALLOWED = "upgrade_not_allowed"
    NOT_AN_UPGRADE = "not_an_upgrade"
    CUTOFF_MET = "cutoff_met"
    FORMAT_SCORE_TOO_LOW = "format_score_too_low"
    PROTOCOL_DISABLED = "protocol_disabled"
    # Pre-filter reasons (target matching, not part of decide())
    WRONG_TARGET = "wrong_target"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class ScoreBreakdown:
    """Every numeric component of the total score."""

    quality: int = 0
    custom_format: int = 0
    preferred_word: int = 0
    indexer_priority: int = 0
    age: int = 0
    size: int = 0
    seeders: int = 0

    @property
    def total(self) -> int:
        return (
            self.quality
            + self.custom_format
            + self.preferred_word
            + self.indexer_priority
            + self.age
            + self.size
            + self.seeders
        )

    def as_dict(self) -> dict[str, int]:
        return {
            "quality": self.quality,
            "custom_format": self.custom_format,
            "preferred_word": self.preferred_word,
            "indexer_priority": self.indexer_priority,
            "age": self.age,
            "size": self.size,
            "seeders": self.seeders,
            "total": self.total,
        }


@dataclass(frozen=True)
class Decision:
    """Accept / reject(reason) / delay(duration) for one (candidate, target) pair.

    Frozen and built only from inputs: two calls with the same inputs give
    equal Decisions (dataclass __eq__ compares every field).
    """

    candidate: ReleaseCandidate
    target_key: TargetKey
    outcome: DecisionOutcome
    tier: str | None = None
    reject_reason: RejectReason | None = None
    detail: str | None = None
    delay: timedelta | None = None
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    matched_formats: tuple[str, ...] = ()
    preferred_protocol: Protocol | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome == DecisionOutcome.ACCEPT

    @property
    def rejected(self) -> bool:
        return self.outcome == DecisionOutcome.REJECT

    @property
    def delayed(self) -> bool:
        return self.outcome == DecisionOutcome.DELAY

    @property
    def total_score(self) -> int:
        return self.breakdown.total

    @classmethod
    def reject(
        cls,
        candidate: ReleaseCandidate,
        target_key: TargetKey,
        reason: RejectReason,
        detail: str | None = None,
        tier: str | None = None,
    ) -> Decision:
        return cls(
            candidate=candidate,
            target_key=target_key,
            outcome=DecisionOutcome.REJECT,
            tier=tier,
            reject_reason=reason,
            detail=detail,
        )

    def __str__(self) -> str:
        if self.accepted:
            return f"accept({self.total_score}) {self.candidate.title}"
        if self.delayed:
            return f"delay({self.delay}) {self.candidate.title}"
        reason = self.reject_reason.value if self.reject_reason else "?"
        return f"reject({reason}) {self.candidate.title}"


__all__ = ["Decision", "DecisionOutcome", "RejectReason", "ScoreBreakdown"]
