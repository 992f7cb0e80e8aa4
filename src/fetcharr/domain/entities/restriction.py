"""Release restrictions (must contain / must not contain / preferred terms).

Terms are case-insensitive literals, or regexes when wrapped in slashes:
"x265" is a literal, "/\\bx26[45]\\b/" is a regex.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from fetcharr.domain.exceptions import ConfigurationError


@dataclass(frozen=True)
class Term:
    """One literal-or-regex term."""

    text: str
    _regex: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.text) > 2 and self.text.startswith("/") and self.text.endswith("/"):
            try:
                compiled = re.compile(self.text[1:-1], re.IGNORECASE)
            except re.error as e:
                raise ConfigurationError(f"Invalid restriction regex '{self.text}': {e}") from e
            object.__setattr__(self, "_regex", compiled)

    def found_in(self, title: str) -> bool:
        if self._regex is not None:
            return bool(self._regex.search(title))
        return self.text.lower() in title.lower()


def _terms(values: tuple[str, ...] | list[str]) -> tuple[Term, ...]:
    return tuple(Term(v) for v in values if v)


@dataclass(frozen=True)
class Restriction:
    """Binary pass/fail filter on the release title, plus preferred terms.

    must_contain is OR logic: passing needs at least one hit (empty = no demand).
    must_not_contain fails on any hit. Untagged restrictions apply to every
    target; tagged ones only to targets sharing at least one tag.
    """

    id: str
    must_contain: tuple[Term, ...] = ()
    must_not_contain: tuple[Term, ...] = ()
    preferred: tuple[Term, ...] = ()
    tags: frozenset[str] = frozenset()

    @classmethod
    def from_strings(
        cls,
        id: str,
        must_contain: list[str] | None = None,
        must_not_contain: list[str] | None = None,
        preferred: list[str] | None = None,
        tags: set[str] | frozenset[str] | None = None,
    ) -> Restriction:
        return cls(
            id=id,
            must_contain=_terms(must_contain or []),
            must_not_contain=_terms(must_not_contain or []),
            preferred=_terms(preferred or []),
            tags=frozenset(tags or ()),
        )

    def applies_to(self, target_tags: frozenset[str]) -> bool:
        return not self.tags or bool(self.tags & target_tags)

    def rejection(self, title: str) -> str | None:
        """Return a human-readable reason when the title fails, else None."""
        for term in self.must_not_contain:
            if term.found_in(title):
                return f"contains '{term.text}'"
        if self.must_contain and not any(t.found_in(title) for t in self.must_contain):
            return "does not contain any of: " + ", ".join(t.text for t in self.must_contain)
        return None

    def preferred_count(self, title: str) -> int:
        return sum(1 for term in self.preferred if term.found_in(title))


__all__ = ["Restriction", "Term"]
