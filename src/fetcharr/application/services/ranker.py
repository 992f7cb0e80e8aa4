"""Candidate ranker - picks the winner among accepted decisions.

Ordering, each key only breaks ties of the one before:
    1. total score, higher first
    2. protocol matches the delay profile's preferred protocol
    3. indexer priority, lower number first
    4. publish date, newer first (unknown date counts as oldest)
    5. first-seen order in the merged result list

The last key is unique per search, so the order never depends on the
order the decisions were passed in.
"""

from fetcharr.domain.entities import Decision


def _sort_key(decision: Decision) -> tuple:
    candidate = decision.candidate
    preferred = decision.preferred_protocol
    protocol_rank = 0 if preferred is None or candidate.protocol == preferred else 1
    published = (
        -candidate.publish_date.timestamp() if candidate.publish_date is not None else float("inf")
    )
    return (
        -decision.total_score,
        protocol_rank,
        candidate.indexer_priority,
        published,
        candidate.first_seen,
    )


def sort_accepted(decisions: list[Decision]) -> list[Decision]:
    """Accepted decisions, best first."""
    return sorted((d for d in decisions if d.accepted), key=_sort_key)


def rank(decisions: list[Decision]) -> Decision | None:
    """The single best accepted decision, or None when nothing was accepted."""
    ranked = sort_accepted(decisions)
    return ranked[0] if ranked else None


__all__ = ["rank", "sort_accepted"]
