"""Release title parser - free text in, ParsedRelease (or None) out.

Hey future me - this is the first stage of the whole acquisition pipeline!
Everything downstream (decision engine, import matcher) reasons over the
ParsedRelease this module builds, so be careful when touching the tables.

HOW IT WORKS:
1. Title/numbering matchers run in order (standard SxxEyy, scene 1x05,
   season pack, anime fansub, anime absolute, movie year, music). First hit wins.
   A kind hint restricts and reorders them - see _MATCHER_ORDER.
2. Quality, tag, revision and release group scans ALWAYS run over the whole
   title, no matter which matcher fired. They are plain (regex, effect) rows.
3. Malformed numbering ("S01E" with no digits, "E05-E03") fails the whole
   parse. We never fall back to "episode 0".

USAGE:
    parsed = parse_release("Show.Name.S01E01.1080p.WEB-DL-GROUP")
    if parsed is None:
        ...  # unparseable, not an error
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass, field

from fetcharr.domain.value_objects import (
    ContentKind,
    Quality,
    QualityModifier,
    QualitySource,
    Resolution,
)


@dataclass(frozen=True)
class ParsedRelease:
    """Structured view of one release title. Derived, never persisted on its own."""

    raw_title: str
    title: str  # Display title: separators collapsed, year and numbering stripped
    kind: ContentKind
    quality: Quality
    year: int | None = None
    season: int | None = None
    episodes: tuple[int, ...] = ()
    absolute_episode: int | None = None
    artist: str | None = None
    release_group: str | None = None
    tags: frozenset[str] = field(default_factory=frozenset)
    proper: bool = False
    repack: bool = False
    revision: int = 1

    @property
    def is_season_pack(self) -> bool:
        return self.season is not None and not self.episodes

    @property
    def is_proper_or_repack(self) -> bool:
        return self.proper or self.repack or self.revision > 1


# =============================================================================
# HELPERS
# =============================================================================

_MEDIA_EXTENSION = re.compile(
    r"\.(mkv|mp4|avi|m4v|ts|wmv|flac|mp3|m4a|aac|ogg|opus|wav|alac|nzb|torrent)$",
    re.IGNORECASE,
)
_YEAR_SUFFIX = re.compile(r"^(?P<title>.+?)[ ._(\[]+(?P<year>(?:19|20)\d{2})[)\]]?$")
_LEADING_GROUP = re.compile(r"^\[(?P<group>[^\]]+)\][ ._-]*")


def normalize_title(title: str) -> str:
    """Collapse a title for comparisons: lowercase, ascii, alnum words only.

    "The.Office.(US)" and "the office us" normalize to the same string.
    """
    folded = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode()
    folded = folded.lower().replace("&", " and ")
    return " ".join(re.findall(r"[a-z0-9]+", folded))


def _clean_display_title(raw: str) -> str:
    text = _LEADING_GROUP.sub("", raw)
    text = re.sub(r"[._]+", " ", text)
    return re.sub(r"\s+", " ", text).strip(" -")


def _split_year(title: str) -> tuple[str, int | None]:
    match = _YEAR_SUFFIX.match(title)
    if match is None:
        return title, None
    return match.group("title"), int(match.group("year"))


# =============================================================================
# NUMBERING MATCHERS
# =============================================================================
# Each matcher returns a dict of numbering fields, None for "not my format",
# or raises _MalformedNumbering when the format is recognized but broken.


class _MalformedNumbering(Exception):
    pass


# "S01E01-02" closes the range with a bare number; "-720p" must not count as one
_STANDARD = re.compile(
    r"^(?P<title>.*?)[ ._-]*\bS(?P<season>\d{1,2})(?P<eps>(?:[ ._-]?-?E\d{1,3})+)"
    r"(?:-(?P<last>\d{1,3})(?![0-9a-z]))?(?![0-9])",
    re.IGNORECASE,
)
_STANDARD_EP = re.compile(r"(-?)E(\d{1,3})", re.IGNORECASE)
_BROKEN_EPISODE = re.compile(r"\bS\d{1,2}E(?!\d)|\bS\d{1,2}E\d{4,}", re.IGNORECASE)
_SCENE = re.compile(
    r"^(?P<title>.+?)[ ._-]+(?P<season>\d{1,2})x(?P<ep>\d{2,3})(?:-?x(?P<last>\d{2,3}))?(?![0-9])",
    re.IGNORECASE,
)
_SEASON_PACK = re.compile(
    r"^(?P<title>.+?)[ ._-]+(?:S(?P<season>\d{1,2})|Season[ ._]?(?P<season_word>\d{1,2}))(?![0-9E])",
    re.IGNORECASE,
)
_ANIME_FANSUB = re.compile(
    r"^\[(?P<group>[^\]]+)\][ ._]*(?P<title>.+?)[ ._]+-[ ._]+"
    r"(?P<abs>\d{2,4})(?:v(?P<version>\d))?(?![0-9])",
    re.IGNORECASE,
)
_ANIME_ABSOLUTE = re.compile(
    r"^(?P<title>.+?)[ ._]+(?:-[ ._]+|EP?[ ._]?)(?P<abs>\d{2,4})(?:v(?P<version>\d))?(?![0-9pi])",
    re.IGNORECASE,
)
_MOVIE = re.compile(
    r"^(?P<title>.+)[ ._(\[]+(?P<year>(?:19|20)\d{2})(?![0-9])[)\]]?",
)
_MUSIC = re.compile(
    r"^(?P<artist>.+?)\s+-\s+(?P<album>.+?)"
    r"(?:\s*[(\[](?P<year>(?:19|20)\d{2})[)\]])?(?:\s*[(\[].*)?$",
)


def _episode_list(eps: str, last: str | None = None) -> tuple[int, ...]:
    """Expand "E01E02" / "E01-E03" / "E01" + "-03" into a strictly increasing tuple."""
    episodes: list[int] = []
    for dash, number in _STANDARD_EP.findall(eps):
        value = int(number)
        if dash and episodes:
            start = episodes[-1]
            if value <= start:
                raise _MalformedNumbering(eps)
            episodes.extend(range(start + 1, value + 1))
            continue
        if episodes and value <= episodes[-1]:
            raise _MalformedNumbering(eps)
        episodes.append(value)
    if not episodes:
        raise _MalformedNumbering(eps)
    if last is not None:
        end = int(last)
        if end <= episodes[-1]:
            raise _MalformedNumbering(f"{eps}-{last}")
        episodes.extend(range(episodes[-1] + 1, end + 1))
    return tuple(episodes)


def _match_standard(title: str) -> dict | None:
    match = _STANDARD.search(title)
    if match is None:
        return None
    return {
        "title": match.group("title"),
        "season": int(match.group("season")),
        "episodes": _episode_list(match.group("eps"), match.group("last")),
    }


def _match_scene(title: str) -> dict | None:
    match = _SCENE.search(title)
    if match is None:
        return None
    first = int(match.group("ep"))
    episodes: tuple[int, ...] = (first,)
    if match.group("last"):
        last = int(match.group("last"))
        if last <= first:
            raise _MalformedNumbering(match.group(0))
        episodes = tuple(range(first, last + 1))
    return {
        "title": match.group("title"),
        "season": int(match.group("season")),
        "episodes": episodes,
    }


def _match_season_pack(title: str) -> dict | None:
    match = _SEASON_PACK.search(title)
    if match is None:
        return None
    season = match.group("season") or match.group("season_word")
    return {"title": match.group("title"), "season": int(season), "episodes": ()}


def _match_anime_fansub(title: str) -> dict | None:
    match = _ANIME_FANSUB.search(title)
    if match is None:
        return None
    return {
        "title": match.group("title"),
        "absolute_episode": int(match.group("abs")),
        "revision": int(match.group("version") or 1),
        "release_group": match.group("group"),
    }


def _match_anime_absolute(title: str, hinted: bool) -> dict | None:
    match = _ANIME_ABSOLUTE.search(title)
    if match is None:
        return None
    absolute = int(match.group("abs"))
    # "Title - 2019" is a year, not episode 2019, unless we were told it's anime
    if not hinted and 1900 <= absolute <= 2099:
        return None
    return {
        "title": match.group("title"),
        "absolute_episode": absolute,
        "revision": int(match.group("version") or 1),
    }


def _match_movie(title: str) -> dict | None:
    match = _MOVIE.search(title)
    if match is None:
        return None
    return {"title": match.group("title"), "year": int(match.group("year"))}


def _match_music(title: str) -> dict | None:
    spaced = re.sub(r"[._]+", " ", title)
    match = _MUSIC.search(spaced)
    if match is None:
        return None
    year = match.group("year")
    return {
        "title": match.group("album"),
        "artist": match.group("artist").strip(),
        "year": int(year) if year else None,
    }


_Matcher = Callable[[str, bool], "dict | None"]

_MATCHERS: dict[str, tuple[ContentKind | None, _Matcher]] = {
    # None = kind decided by the hint (series vs anime numbering)
    "standard": (None, lambda t, h: _match_standard(t)),
    "scene": (None, lambda t, h: _match_scene(t)),
    "season_pack": (None, lambda t, h: _match_season_pack(t)),
    "anime_fansub": (ContentKind.ANIME, lambda t, h: _match_anime_fansub(t)),
    "anime_absolute": (ContentKind.ANIME, _match_anime_absolute),
    "movie": (ContentKind.MOVIE, lambda t, h: _match_movie(t)),
    "music": (ContentKind.MUSIC, lambda t, h: _match_music(t)),
}

# Hey future me - THE single dispatch point on content kind for parsing.
# A hint both restricts (movies never parse as episodes) and reorders.
_MATCHER_ORDER: dict[ContentKind | None, tuple[str, ...]] = {
    None: (
        "standard",
        "scene",
        "season_pack",
        "anime_fansub",
        "anime_absolute",
        "movie",
        "music",
    ),
    ContentKind.SERIES: ("standard", "scene", "season_pack"),
    ContentKind.ANIME: (
        "standard",
        "anime_fansub",
        "anime_absolute",
        "scene",
        "season_pack",
    ),
    ContentKind.MOVIE: ("movie",),
    ContentKind.MUSIC: ("music",),
}


# =============================================================================
# TOKEN RULE TABLES
# =============================================================================
# Ordered (pattern, effect) rows. First matching row of a table wins unless the
# table is documented as cumulative (tags).

_RESOLUTION_RULES: tuple[tuple[re.Pattern[str], Resolution], ...] = (
    (re.compile(r"\b(2160p|4k|uhd)\b", re.I), Resolution.R2160P),
    (re.compile(r"\b1080[pi]\b", re.I), Resolution.R1080P),
    (re.compile(r"\b720p\b", re.I), Resolution.R720P),
    (re.compile(r"\b576p\b", re.I), Resolution.R576P),
    (re.compile(r"\b480p\b", re.I), Resolution.R480P),
)

_SOURCE_RULES: tuple[tuple[re.Pattern[str], QualitySource, QualityModifier], ...] = (
    (re.compile(r"\bremux\b", re.I), QualitySource.BLURAY, QualityModifier.REMUX),
    (
        re.compile(r"\b(blu-?ray|bdrip|brrip|bd25|bd50)\b", re.I),
        QualitySource.BLURAY,
        QualityModifier.NONE,
    ),
    (re.compile(r"\bweb-?rip\b", re.I), QualitySource.WEBRIP, QualityModifier.NONE),
    (
        re.compile(r"\b(web-?dl|web|amzn|nf|dsnp|hmax|atvp)\b", re.I),
        QualitySource.WEBDL,
        QualityModifier.NONE,
    ),
    (
        re.compile(r"\b(hdtv|pdtv|sdtv|dsr|tvrip)\b", re.I),
        QualitySource.TELEVISION,
        QualityModifier.NONE,
    ),
    (re.compile(r"\bdvd(rip|r|5|9)?\b", re.I), QualitySource.DVD, QualityModifier.NONE),
    (re.compile(r"\b(hdts|telesync|ts)\b", re.I), QualitySource.TELESYNC, QualityModifier.NONE),
    (re.compile(r"\b(telecine|tc)\b", re.I), QualitySource.TELECINE, QualityModifier.NONE),
    (re.compile(r"\b(hdcam|camrip|cam)\b", re.I), QualitySource.CAM, QualityModifier.NONE),
    (re.compile(r"\b(workprint|wp)\b", re.I), QualitySource.WORKPRINT, QualityModifier.NONE),
)

# Only consulted when no video source/resolution was found ("AAC2.0" is
# everywhere in WEB-DL titles).
_AUDIO_RULES: tuple[tuple[re.Pattern[str], QualitySource, QualityModifier], ...] = (
    (
        re.compile(r"\bflac\b.*\b(24[ -]?bit|hi-?res)\b|\b(24[ -]?bit|hi-?res)\b.*\bflac\b", re.I),
        QualitySource.FLAC,
        QualityModifier.HIRES,
    ),
    (re.compile(r"\b(flac|lossless)\b", re.I), QualitySource.FLAC, QualityModifier.NONE),
    (re.compile(r"\b(mp3|320|v0|v2)\b", re.I), QualitySource.MP3, QualityModifier.NONE),
    (re.compile(r"\b(aac|m4a)\b", re.I), QualitySource.AAC, QualityModifier.NONE),
)

# Cumulative: every matching row contributes its tag.
_TAG_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bmulti\b", re.I), "multi"),
    (re.compile(r"\b(dual[ .-]?audio|dubbed)\b", re.I), "dubbed"),
    (re.compile(r"\b(hardsub|hc)\b", re.I), "hardsub"),
    (re.compile(r"\bsubbed\b", re.I), "subbed"),
    (re.compile(r"\bhdr(10\+?)?\b", re.I), "hdr"),
    (re.compile(r"\b(dv|dovi|dolby[ .]vision)\b", re.I), "dv"),
    (re.compile(r"\b(x265|hevc|h\.?265)\b", re.I), "x265"),
    (re.compile(r"\b(x264|avc|h\.?264)\b", re.I), "x264"),
    (re.compile(r"\b10[ -]?bit\b", re.I), "10bit"),
    (re.compile(r"\batmos\b", re.I), "atmos"),
    (re.compile(r"\binternal\b", re.I), "internal"),
    (re.compile(r"\blimited\b", re.I), "limited"),
    (re.compile(r"\bextended\b", re.I), "extended"),
    (re.compile(r"\b3d\b", re.I), "3d"),
)

_PROPER = re.compile(r"\bproper\b", re.I)
_REPACK = re.compile(r"\b(repack|rerip)\b", re.I)
_REVISION = re.compile(r"\b(?:\d{2,4}|E\d{1,3})v(?P<version>[2-9])\b", re.I)
_RELEASE_GROUP = re.compile(r"-(?P<group>[A-Za-z0-9]+)$")
# Suffixes that look like a group but are really part of a quality token
_NOT_A_GROUP = frozenset({"dl", "rip", "hd", "ray", "bit"})


def detect_quality(title: str) -> Quality:
    """Detect the quality triple from a title (or file name)."""
    scan = title.replace("_", " ")

    resolution = Resolution.UNKNOWN
    for pattern, value in _RESOLUTION_RULES:
        if pattern.search(scan):
            resolution = value
            break

    source = QualitySource.UNKNOWN
    modifier = QualityModifier.NONE
    for pattern, src, mod in _SOURCE_RULES:
        if pattern.search(scan):
            source, modifier = src, mod
            break

    if source == QualitySource.UNKNOWN and resolution == Resolution.UNKNOWN:
        for pattern, src, mod in _AUDIO_RULES:
            if pattern.search(scan):
                return Quality(Resolution.UNKNOWN, src, mod)
        return Quality.unknown()

    # SD sources carry no resolution token in practice
    if resolution == Resolution.UNKNOWN and source in (
        QualitySource.DVD,
        QualitySource.TELEVISION,
    ):
        resolution = Resolution.R480P
    # Bare "1080p" without a source is treated as a TV capture
    if source == QualitySource.UNKNOWN:
        source = QualitySource.TELEVISION
    return Quality(resolution, source, modifier)


def detect_tags(title: str) -> frozenset[str]:
    scan = title.replace("_", " ")
    return frozenset(tag for pattern, tag in _TAG_RULES if pattern.search(scan))


def detect_release_group(title: str) -> str | None:
    leading = _LEADING_GROUP.match(title)
    if leading:
        return leading.group("group").strip()
    match = _RELEASE_GROUP.search(title)
    if match is None:
        return None
    group = match.group("group")
    if group.lower() in _NOT_A_GROUP:
        return None
    return group


# =============================================================================
# PUBLIC API
# =============================================================================


def parse_release(title: str, kind_hint: ContentKind | None = None) -> ParsedRelease | None:
    """Parse a raw release title.

    Args:
        title: Release title or file name (extension is stripped).
        kind_hint: Content kind of the target, if known. Restricts and reorders
            the numbering matchers.

    Returns:
        ParsedRelease, or None when no matcher recognizes the title or the
        numbering is malformed. Never raises for bad input.
    """
    raw = title.strip()
    if not raw:
        return None
    stem = _MEDIA_EXTENSION.sub("", raw)

    if kind_hint not in (ContentKind.MOVIE, ContentKind.MUSIC) and _BROKEN_EPISODE.search(stem):
        return None

    quality = detect_quality(stem)
    order = _MATCHER_ORDER[kind_hint]
    # Unhinted "Artist - Album (2019) [FLAC]" would otherwise parse as a movie
    if kind_hint is None and quality.source in (
        QualitySource.FLAC,
        QualitySource.MP3,
        QualitySource.AAC,
    ):
        order = ("music",) + tuple(name for name in order if name != "music")

    fields: dict | None = None
    kind: ContentKind | None = None
    for name in order:
        matcher_kind, matcher = _MATCHERS[name]
        try:
            fields = matcher(stem, kind_hint is not None)
        except _MalformedNumbering:
            return None
        if fields is not None:
            if matcher_kind is None:
                kind = ContentKind.ANIME if kind_hint == ContentKind.ANIME else ContentKind.SERIES
            else:
                kind = matcher_kind
            break

    if fields is None or kind is None:
        return None

    display_title = _clean_display_title(fields.pop("title"))
    year = fields.pop("year", None)
    if year is None and kind != ContentKind.MUSIC:
        display_title, year = _split_year(display_title)
    if not display_title:
        return None

    revision = fields.pop("revision", 1)
    version = _REVISION.search(stem)
    if version:
        revision = max(revision, int(version.group("version")))
    proper = bool(_PROPER.search(stem))
    repack = bool(_REPACK.search(stem))
    if (proper or repack) and revision < 2:
        revision = 2

    release_group = fields.pop("release_group", None) or detect_release_group(stem)

    return ParsedRelease(
        raw_title=raw,
        title=display_title,
        kind=kind,
        quality=quality,
        year=year,
        release_group=release_group,
        tags=detect_tags(stem),
        proper=proper,
        repack=repack,
        revision=revision,
        **fields,
    )


__all__ = [
    "ParsedRelease",
    "detect_quality",
    "detect_release_group",
    "detect_tags",
    "normalize_title",
    "parse_release",
]
