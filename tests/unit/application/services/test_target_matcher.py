"""Tests for matching parsed releases to acquisition targets."""

from collections.abc import Callable

import pytest

from fetcharr.application.services.target_matcher import TargetMatcher, title_similarity
from fetcharr.domain.entities import AcquisitionTarget
from fetcharr.domain.value_objects import ContentKind, TargetKind
from fetcharr.domain.value_objects.release_parser import ParsedRelease, parse_release


def _parse(title: str, kind: ContentKind | None = None) -> ParsedRelease:
    parsed = parse_release(title, kind_hint=kind)
    assert parsed is not None
    return parsed


@pytest.fixture
def matcher() -> TargetMatcher:
    return TargetMatcher()


class TestEpisodes:
    def test_exact_episode(self, matcher: TargetMatcher, episode_target: AcquisitionTarget) -> None:
        assert matcher.matches(_parse("Show.Name.S01E01.720p.HDTV.x264-GRP"), episode_target)

    def test_wrong_episode(self, matcher: TargetMatcher, episode_target: AcquisitionTarget) -> None:
        reason = matcher.mismatch(_parse("Show.Name.S01E02.720p.HDTV.x264-GRP"), episode_target)
        assert reason is not None
        assert "don't cover" in reason

    def test_wrong_season(self, matcher: TargetMatcher, episode_target: AcquisitionTarget) -> None:
        reason = matcher.mismatch(_parse("Show.Name.S02E01.720p.HDTV.x264-GRP"), episode_target)
        assert reason == "season 2 != 1"

    def test_season_pack_covers_every_episode(
        self, matcher: TargetMatcher, episode_target: AcquisitionTarget
    ) -> None:
        assert matcher.matches(_parse("Show.Name.S01.1080p.BluRay.x264-GRP"), episode_target)

    def test_multi_episode_must_cover_target(
        self, matcher: TargetMatcher, make_target: Callable[..., AcquisitionTarget]
    ) -> None:
        double = make_target(episodes=(1, 2))
        assert matcher.matches(_parse("Show.Name.S01E01-E03.1080p.WEB-DL-GRP"), double)
        assert not matcher.matches(_parse("Show.Name.S01E01.1080p.WEB-DL-GRP"), double)

    def test_wrong_show(self, matcher: TargetMatcher, episode_target: AcquisitionTarget) -> None:
        reason = matcher.mismatch(
            _parse("Completely.Different.Program.S01E01.720p.HDTV-GRP"), episode_target
        )
        assert reason is not None
        assert reason.startswith("title similarity")

    def test_alias_counts_as_title(
        self, matcher: TargetMatcher, make_target: Callable[..., AcquisitionTarget]
    ) -> None:
        target = make_target(title="Marvel's Agents of S.H.I.E.L.D.", aliases=("Agents of SHIELD",))
        assert matcher.matches(_parse("Agents.of.SHIELD.S01E01.720p.HDTV-GRP"), target)

    def test_movie_release_never_matches_episode(
        self, matcher: TargetMatcher, episode_target: AcquisitionTarget
    ) -> None:
        reason = matcher.mismatch(
            _parse("Show.Name.2020.1080p.BluRay.x264-GRP", ContentKind.MOVIE), episode_target
        )
        assert reason == "movie release for a episode target"


class TestAnime:
    @pytest.fixture
    def anime_target(self, make_target: Callable[..., AcquisitionTarget]) -> AcquisitionTarget:
        return make_target(content_kind=ContentKind.ANIME, absolute_episode=5)

    def test_absolute_number(self, matcher: TargetMatcher, anime_target: AcquisitionTarget) -> None:
        parsed = _parse("[SubsPlease] Show Name - 05 (1080p) [ABCD1234].mkv", ContentKind.ANIME)
        assert matcher.matches(parsed, anime_target)

    def test_wrong_absolute_number(
        self, matcher: TargetMatcher, anime_target: AcquisitionTarget
    ) -> None:
        parsed = _parse("[SubsPlease] Show Name - 06 (1080p) [ABCD1234].mkv", ContentKind.ANIME)
        assert matcher.mismatch(parsed, anime_target) == "absolute episode 6 != 5"


class TestMovies:
    @pytest.fixture
    def movie_target(self, make_target: Callable[..., AcquisitionTarget]) -> AcquisitionTarget:
        return make_target(
            "movie:tmdb-1",
            kind=TargetKind.MOVIE,
            content_kind=ContentKind.MOVIE,
            title="Movie Title",
            quality_profile_id="movies",
            season=None,
            episodes=(),
            year=2021,
        )

    def test_year_off_by_one_is_tolerated(
        self, matcher: TargetMatcher, movie_target: AcquisitionTarget
    ) -> None:
        parsed = _parse("Movie.Title.2020.1080p.BluRay.x264-GRP", ContentKind.MOVIE)
        assert matcher.matches(parsed, movie_target)

    def test_wrong_year(self, matcher: TargetMatcher, movie_target: AcquisitionTarget) -> None:
        parsed = _parse("Movie.Title.2017.1080p.BluRay.x264-GRP", ContentKind.MOVIE)
        assert matcher.mismatch(parsed, movie_target) == "year 2017 != 2021"


class TestAlbums:
    @pytest.fixture
    def album_target(self, make_target: Callable[..., AcquisitionTarget]) -> AcquisitionTarget:
        return make_target(
            "album:mbid-1",
            kind=TargetKind.ALBUM,
            content_kind=ContentKind.MUSIC,
            title="Album Title",
            artist="Artist Name",
            quality_profile_id="lossless",
            season=None,
            episodes=(),
            year=2019,
        )

    def test_artist_and_album(self, matcher: TargetMatcher, album_target: AcquisitionTarget) -> None:
        assert matcher.matches(_parse("Artist Name - Album Title (2019) [FLAC]"), album_target)

    def test_wrong_artist(self, matcher: TargetMatcher, album_target: AcquisitionTarget) -> None:
        reason = matcher.mismatch(_parse("Nobody Else - Album Title (2019) [FLAC]"), album_target)
        assert reason is not None
        assert reason.startswith("artist similarity")


class TestTitleSimilarity:
    def test_punctuation_is_ignored(self) -> None:
        assert title_similarity("Show.Name", "Show Name") == 100

    def test_different_titles_score_low(self) -> None:
        assert title_similarity("Show Name", "Completely Different Program") < 50
