"""Does a parsed release belong to a target?

Used twice: to drop search/RSS results for the wrong episode/movie/album
before they are decided, and by the import matcher to map downloaded files
back to library targets.
"""

from rapidfuzz import fuzz

from fetcharr.domain.entities import AcquisitionTarget
from fetcharr.domain.value_objects import ContentKind, TargetKind
from fetcharr.domain.value_objects.release_parser import ParsedRelease, normalize_title

_KINDS_FOR_TARGET = {
    TargetKind.EPISODE: (ContentKind.SERIES, ContentKind.ANIME),
    TargetKind.MOVIE: (ContentKind.MOVIE,),
    TargetKind.ALBUM: (ContentKind.MUSIC,),
}


def title_similarity(left: str, right: str) -> float:
    """0-100 similarity of two titles after normalization."""
    return fuzz.ratio(normalize_title(left), normalize_title(right))


class TargetMatcher:
    """Numbering + fuzzy title matching.

    Hey future me - numbering is checked FIRST and strictly; the title is
    fuzzy because indexers mangle punctuation ("Marvel's Agents of S.H.I.E.L.D"
    vs "Marvels Agents of SHIELD"). Aliases count as titles.
    """

    def __init__(self, title_threshold: float = 85.0) -> None:
        self._threshold = title_threshold

    def mismatch(self, parsed: ParsedRelease, target: AcquisitionTarget) -> str | None:
        """Why the release does NOT belong to the target, None when it does."""
        if parsed.kind not in _KINDS_FOR_TARGET[target.kind]:
            return f"{parsed.kind.value} release for a {target.kind.value} target"

        numbering = self._numbering_mismatch(parsed, target)
        if numbering is not None:
            return numbering

        best = self.best_title_score(parsed, target)
        if best < self._threshold:
            return f"title similarity {best:.0f} < {self._threshold:.0f}"
        return None

    def matches(self, parsed: ParsedRelease, target: AcquisitionTarget) -> bool:
        return self.mismatch(parsed, target) is None

    def best_title_score(self, parsed: ParsedRelease, target: AcquisitionTarget) -> float:
        names = (target.title, *target.aliases)
        return max(title_similarity(parsed.title, name) for name in names)

    def _numbering_mismatch(self, parsed: ParsedRelease, target: AcquisitionTarget) -> str | None:
        if target.kind == TargetKind.EPISODE:
            if parsed.absolute_episode is not None and target.absolute_episode is not None:
                if parsed.absolute_episode != target.absolute_episode:
                    return f"absolute episode {parsed.absolute_episode} != {target.absolute_episode}"
                return None
            if parsed.season is None:
                return "no episode numbering"
            if parsed.season != target.season:
                return f"season {parsed.season} != {target.season}"
            # Season pack contains every episode of the season
            if parsed.episodes and not set(target.episodes) <= set(parsed.episodes):
                return f"episodes {list(parsed.episodes)} don't cover {list(target.episodes)}"
            return None

        if target.kind == TargetKind.MOVIE:
            if parsed.year is not None and target.year is not None:
                if abs(parsed.year - target.year) > 1:
                    return f"year {parsed.year} != {target.year}"
            return None

        if parsed.year is not None and target.year is not None and parsed.year != target.year:
            return f"year {parsed.year} != {target.year}"
        if parsed.artist and target.artist:
            score = title_similarity(parsed.artist, target.artist)
            if score < self._threshold:
                return f"artist similarity {score:.0f} < {self._threshold:.0f}"
        return None


__all__ = ["TargetMatcher", "title_similarity"]
