"""Scoring & decision engine.

Hey future me - decide() is PURE. Everything it reads comes in through the
constructor (catalog + blocklist snapshot) or the arguments. No clock, no I/O,
no randomness. That's what makes "same inputs → same Decision" testable and
what lets the acquisition service re-decide cached candidates after a
blocklisting without re-querying indexers.

Evaluation order is fixed, the FIRST failing step names the reject reason:

    1. blocklisted
    2. restricted
    3. quality_not_wanted
    4. upgrade_not_allowed / not_an_upgrade / cutoff_met
    5. format_score_too_low
    6. protocol_disabled, or delay(remaining)
    7. accept with the full score breakdown
"""

import logging
import math
from datetime import timedelta

from fetcharr.domain.entities import (
    AcquisitionTarget,
    Decision,
    DecisionOutcome,
    DelayProfile,
    ProfileCatalog,
    QualityDefinition,
    QualityDefinitionTable,
    QualityProfile,
    RejectReason,
    ReleaseCandidate,
    ScoreBreakdown,
    score_custom_formats,
)
from fetcharr.domain.ports import BlocklistSnapshot
from fetcharr.domain.value_objects import Protocol

logger = logging.getLogger(__name__)

QUALITY_WEIGHT_FACTOR = 100
PREFERRED_WORD_FACTOR = 10
MAX_AGE_PENALTY = 30
MAX_SEEDERS_BONUS = 50
SEEDERS_LOG_FACTOR = 20


def check_upgrade(
    definitions: QualityDefinitionTable,
    profile: QualityProfile,
    candidate_tier: str,
    target: AcquisitionTarget,
) -> RejectReason | None:
    """Upgrade rules against the target's current file.

    Returns None when the target has no file or the candidate tier is a real
    upgrade. Shared by decide() and the import matcher, which re-checks with
    the quality of the file actually downloaded.
    """
    current = target.current_file
    if current is None:
        return None
    if not profile.upgrade_allowed:
        return RejectReason.UPGRADE_NOT_ALLOWED

    current_tier = definitions.resolve(current.quality).name
    # A current tier the profile doesn't list ranks below everything it does
    current_rank = profile.rank(current_tier)
    if current_rank is None:
        current_rank = -1
    candidate_rank = profile.rank(candidate_tier)
    if candidate_rank is None or candidate_rank <= current_rank:
        return RejectReason.NOT_AN_UPGRADE
    if current_rank >= profile.cutoff_rank:
        return RejectReason.CUTOFF_MET
    return None


def seeders_score(candidate: ReleaseCandidate) -> int:
    if candidate.protocol != Protocol.TORRENT or not candidate.seeders:
        return 0
    return int(min(MAX_SEEDERS_BONUS, SEEDERS_LOG_FACTOR * math.log10(candidate.seeders + 1)))


def age_score(candidate: ReleaseCandidate) -> int:
    return max(-MAX_AGE_PENALTY, -int(candidate.age_days))


class DecisionEngine:
    """Turns (candidate, target) into accept / reject(reason) / delay(duration)."""

    def __init__(self, catalog: ProfileCatalog, blocklist: BlocklistSnapshot | None = None) -> None:
        self._catalog = catalog
        self._blocklist = blocklist or BlocklistSnapshot()

    @property
    def catalog(self) -> ProfileCatalog:
        return self._catalog

    def decide(self, candidate: ReleaseCandidate, target: AcquisitionTarget) -> Decision:
        catalog = self._catalog
        title = candidate.title

        if self._blocklist.contains(candidate.identity, target.key):
            return Decision.reject(candidate, target.key, RejectReason.BLOCKLISTED)

        restrictions = catalog.restrictions_for(target)
        for restriction in restrictions:
            detail = restriction.rejection(title)
            if detail is not None:
                return Decision.reject(candidate, target.key, RejectReason.RESTRICTED, detail)

        definition = catalog.definitions.resolve(candidate.parsed.quality)
        profile = catalog.profile_for(target)
        if not profile.allows(definition.name):
            return Decision.reject(
                candidate,
                target.key,
                RejectReason.QUALITY_NOT_WANTED,
                f"{definition.name} not in profile '{profile.name}'",
                tier=definition.name,
            )

        upgrade_reason = check_upgrade(catalog.definitions, profile, definition.name, target)
        if upgrade_reason is not None:
            return Decision.reject(candidate, target.key, upgrade_reason, tier=definition.name)

        format_score, matched = score_custom_formats(candidate, catalog.formats_for(target))
        if format_score < profile.min_format_score:
            return Decision.reject(
                candidate,
                target.key,
                RejectReason.FORMAT_SCORE_TOO_LOW,
                f"{format_score} < {profile.min_format_score}",
                tier=definition.name,
            )

        preferred_count = sum(r.preferred_count(title) for r in restrictions)
        breakdown = ScoreBreakdown(
            quality=definition.weight * QUALITY_WEIGHT_FACTOR,
            custom_format=format_score,
            preferred_word=preferred_count * PREFERRED_WORD_FACTOR,
            indexer_priority=100 - candidate.indexer_priority,
            age=age_score(candidate),
            size=definition.size_score(candidate.size, target.runtime_minutes),
            seeders=seeders_score(candidate),
        )

        delay_profile = catalog.delay_profile_for(target)
        preferred_protocol = delay_profile.preferred_protocol if delay_profile else None
        if delay_profile is not None:
            if not delay_profile.is_enabled(candidate.protocol):
                return Decision.reject(
                    candidate,
                    target.key,
                    RejectReason.PROTOCOL_DISABLED,
                    f"{candidate.protocol.value} disabled by delay profile '{delay_profile.id}'",
                    tier=definition.name,
                )
            remaining = self._remaining_delay(candidate, definition, profile, delay_profile)
            if remaining is not None:
                return Decision(
                    candidate=candidate,
                    target_key=target.key,
                    outcome=DecisionOutcome.DELAY,
                    tier=definition.name,
                    delay=remaining,
                    breakdown=breakdown,
                    matched_formats=matched,
                    preferred_protocol=preferred_protocol,
                )

        return Decision(
            candidate=candidate,
            target_key=target.key,
            outcome=DecisionOutcome.ACCEPT,
            tier=definition.name,
            breakdown=breakdown,
            matched_formats=matched,
            preferred_protocol=preferred_protocol,
        )

    @staticmethod
    def _remaining_delay(
        candidate: ReleaseCandidate,
        definition: QualityDefinition,
        profile: QualityProfile,
        delay_profile: DelayProfile,
    ) -> timedelta | None:
        """How long the candidate still has to wait, None when it may go now."""
        if candidate.protocol == delay_profile.preferred_protocol:
            return None
        delay_minutes = delay_profile.delay_for(candidate.protocol)
        if delay_minutes <= 0:
            return None
        if delay_profile.bypass_if_proper_repack and candidate.parsed.is_proper_or_repack:
            return None
        if delay_profile.bypass_if_highest_quality and definition.name == profile.best_tier:
            return None
        remaining_minutes = delay_minutes - candidate.age_minutes
        if remaining_minutes <= 0:
            return None
        return timedelta(minutes=remaining_minutes)

    def decide_all(
        self, candidates: list[ReleaseCandidate], target: AcquisitionTarget
    ) -> list[Decision]:
        """Decide every candidate against one target, in input order."""
        decisions = [self.decide(candidate, target) for candidate in candidates]
        logger.debug(
            "Decided %d candidate(s) for %s: %d accepted, %d delayed",
            len(decisions),
            target.key,
            sum(1 for d in decisions if d.accepted),
            sum(1 for d in decisions if d.delayed),
        )
        return decisions

    def check_upgrade(
        self, candidate_tier: str, target: AcquisitionTarget
    ) -> RejectReason | None:
        profile = self._catalog.profile_for(target)
        return check_upgrade(self._catalog.definitions, profile, candidate_tier, target)


__all__ = ["DecisionEngine", "age_score", "check_upgrade", "seeders_score"]
