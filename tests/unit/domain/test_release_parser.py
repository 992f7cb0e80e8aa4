"""Tests for the release title parser."""

import pytest

from fetcharr.domain.value_objects import (
    ContentKind,
    Quality,
    QualityModifier,
    QualitySource,
    Resolution,
)
from fetcharr.domain.value_objects.release_parser import (
    detect_quality,
    detect_release_group,
    normalize_title,
    parse_release,
)

# Hey future me - these tests pin down the matcher ORDER as much as the
# individual regexes. If one of them breaks after touching _MATCHER_ORDER,
# that is a behavior change, not a flaky test.


class TestEpisodeNumbering:
    """Standard, scene and season-pack numbering."""

    def test_standard_single_episode(self) -> None:
        parsed = parse_release("Show.Name.S01E01.1080p.WEB-DL-GROUP")

        assert parsed is not None
        assert parsed.kind == ContentKind.SERIES
        assert parsed.title == "Show Name"
        assert parsed.season == 1
        assert parsed.episodes == (1,)
        assert parsed.release_group == "GROUP"

    def test_multi_episode(self) -> None:
        parsed = parse_release("Show.Name.S02E03E04.720p.HDTV.x264-LOL")

        assert parsed is not None
        assert parsed.season == 2
        assert parsed.episodes == (3, 4)

    def test_episode_range_is_expanded(self) -> None:
        parsed = parse_release("Show.Name.S01E01-E03.1080p.WEB-DL-GRP")

        assert parsed is not None
        assert parsed.episodes == (1, 2, 3)

    def test_descending_range_fails_whole_parse(self) -> None:
        assert parse_release("Show.Name.S01E05-E03.1080p.WEB-DL-GRP") is None

    def test_bare_number_closes_the_range(self) -> None:
        parsed = parse_release("Show.Name.S01E01-02.1080p.WEB-DL-GRP")

        assert parsed is not None
        assert parsed.episodes == (1, 2)
        assert parsed.title == "Show Name"

    def test_bare_number_range_must_ascend(self) -> None:
        assert parse_release("Show.Name.S01E03-02.1080p.WEB-DL-GRP") is None

    def test_resolution_after_dash_is_not_a_range(self) -> None:
        parsed = parse_release("Show.Name.S01E01-720p.HDTV-GRP")

        assert parsed is not None
        assert parsed.episodes == (1,)
        assert parsed.quality.resolution == Resolution.R720P

    def test_episode_marker_without_digits_fails(self) -> None:
        """S01E with no number must not fall back to "episode 0"."""
        assert parse_release("Show.Name.S01E.1080p.WEB-DL-GRP") is None

    def test_scene_numbering(self) -> None:
        parsed = parse_release("Show.Name.1x05.HDTV.x264-GRP")

        assert parsed is not None
        assert parsed.season == 1
        assert parsed.episodes == (5,)
        assert parsed.title == "Show Name"

    def test_season_pack(self) -> None:
        parsed = parse_release("Show.Name.S01.1080p.BluRay.x264-GRP")

        assert parsed is not None
        assert parsed.season == 1
        assert parsed.episodes == ()
        assert parsed.is_season_pack is True

    def test_series_hint_keeps_series_kind(self) -> None:
        parsed = parse_release("Show.Name.S01E01.1080p.WEB-DL-GROUP", kind_hint=ContentKind.SERIES)

        assert parsed is not None
        assert parsed.kind == ContentKind.SERIES


class TestAnime:
    def test_fansub_absolute_episode(self) -> None:
        parsed = parse_release(
            "[SubsPlease] Show Name - 05 (1080p) [ABCD1234].mkv", kind_hint=ContentKind.ANIME
        )

        assert parsed is not None
        assert parsed.kind == ContentKind.ANIME
        assert parsed.absolute_episode == 5
        assert parsed.title == "Show Name"
        assert parsed.release_group == "SubsPlease"

    def test_fansub_version_is_a_revision(self) -> None:
        parsed = parse_release("[Group] Show Name - 05v2 (1080p)", kind_hint=ContentKind.ANIME)

        assert parsed is not None
        assert parsed.revision == 2
        assert parsed.is_proper_or_repack is True

    def test_standard_numbering_with_anime_hint_is_anime(self) -> None:
        parsed = parse_release("Show.Name.S01E01.1080p.WEB-DL-GRP", kind_hint=ContentKind.ANIME)

        assert parsed is not None
        assert parsed.kind == ContentKind.ANIME
        assert parsed.episodes == (1,)


class TestMoviesAndMusic:
    def test_movie_title_and_year(self) -> None:
        parsed = parse_release("Movie.Title.2020.1080p.BluRay.x264-GRP", kind_hint=ContentKind.MOVIE)

        assert parsed is not None
        assert parsed.kind == ContentKind.MOVIE
        assert parsed.title == "Movie Title"
        assert parsed.year == 2020

    def test_movie_without_hint(self) -> None:
        parsed = parse_release("Movie.Title.2020.1080p.BluRay.x264-GRP")

        assert parsed is not None
        assert parsed.kind == ContentKind.MOVIE

    def test_movie_hint_never_parses_episodes(self) -> None:
        assert parse_release("Show.Name.S01E01.720p.HDTV-GRP", kind_hint=ContentKind.MOVIE) is None

    def test_music_album(self) -> None:
        parsed = parse_release("Artist Name - Album Title (2019) [FLAC]")

        assert parsed is not None
        assert parsed.kind == ContentKind.MUSIC
        assert parsed.artist == "Artist Name"
        assert parsed.title == "Album Title"
        assert parsed.year == 2019
        assert parsed.quality.source == QualitySource.FLAC


class TestFlagsAndTags:
    def test_proper_bumps_revision(self) -> None:
        parsed = parse_release("Show.Name.S01E01.PROPER.1080p.WEB-DL-GRP")

        assert parsed is not None
        assert parsed.proper is True
        assert parsed.revision == 2

    def test_repack(self) -> None:
        parsed = parse_release("Show.Name.S01E01.REPACK.1080p.WEB-DL-GRP")

        assert parsed is not None
        assert parsed.repack is True
        assert parsed.is_proper_or_repack is True

    def test_tags_are_cumulative(self) -> None:
        parsed = parse_release(
            "Movie.Title.2020.2160p.WEB-DL.HDR.DV.x265-GRP", kind_hint=ContentKind.MOVIE
        )

        assert parsed is not None
        assert {"hdr", "dv", "x265"} <= parsed.tags

    def test_plain_release_has_no_flags(self) -> None:
        parsed = parse_release("Show.Name.S01E01.1080p.WEB-DL-GROUP")

        assert parsed is not None
        assert parsed.proper is False
        assert parsed.repack is False
        assert parsed.revision == 1


class TestNoMatch:
    @pytest.mark.parametrize("title", ["", "   ", "just some words"])
    def test_unparseable_returns_none(self, title: str) -> None:
        assert parse_release(title) is None


class TestDetectQuality:
    def test_webdl_1080p(self) -> None:
        assert detect_quality("Show.S01E01.1080p.WEB-DL") == Quality(
            Resolution.R1080P, QualitySource.WEBDL
        )

    def test_remux_modifier(self) -> None:
        quality = detect_quality("Movie.2020.1080p.BluRay.REMUX.AVC-GRP")

        assert quality.source == QualitySource.BLURAY
        assert quality.modifier == QualityModifier.REMUX

    def test_hdtv_without_resolution_is_sd(self) -> None:
        assert detect_quality("Show.1x05.HDTV.x264") == Quality(
            Resolution.R480P, QualitySource.TELEVISION
        )

    def test_bare_resolution_counts_as_tv(self) -> None:
        assert detect_quality("Show.S01E01.720p-GRP").source == QualitySource.TELEVISION

    def test_hires_flac(self) -> None:
        quality = detect_quality("Artist - Album (2019) [FLAC 24bit]")

        assert quality.source == QualitySource.FLAC
        assert quality.modifier == QualityModifier.HIRES

    def test_nothing_detected(self) -> None:
        assert detect_quality("random words") == Quality.unknown()


class TestHelpers:
    def test_normalize_title(self) -> None:
        assert normalize_title("The.Office.(US)") == "the office us"
        assert normalize_title("Law & Order") == "law and order"
        assert normalize_title("Pokémon") == "pokemon"

    def test_release_group_from_suffix(self) -> None:
        assert detect_release_group("Show.S01E01.1080p.WEB-DL-NTb") == "NTb"

    def test_quality_suffix_is_not_a_group(self) -> None:
        assert detect_release_group("Show.S01E01.1080p.WEB-DL") is None

    def test_leading_group_wins(self) -> None:
        assert detect_release_group("[Erai-raws] Show - 01") == "Erai-raws"
