"""Tests for restrictions and delay profile resolution."""

import pytest

from fetcharr.domain.entities import DelayProfile, Restriction, Term, resolve_delay_profile
from fetcharr.domain.exceptions import ConfigurationError
from fetcharr.domain.value_objects import Protocol

TITLE = "Show.Name.S01E01.1080p.WEB-DL.x265-GROUP"


class TestRestriction:
    def test_literal_terms_are_case_insensitive(self) -> None:
        assert Term("X265").found_in(TITLE) is True

    def test_regex_term(self) -> None:
        assert Term(r"/\bx26[45]\b/").found_in(TITLE) is True
        assert Term(r"/\bxvid\b/").found_in(TITLE) is False

    def test_invalid_regex_is_a_config_error(self) -> None:
        with pytest.raises(ConfigurationError):
            Term("/(oops/")

    def test_must_not_contain(self) -> None:
        restriction = Restriction.from_strings("r", must_not_contain=["x265"])
        assert restriction.rejection(TITLE) == "contains 'x265'"

    def test_must_contain_is_or(self) -> None:
        restriction = Restriction.from_strings("r", must_contain=["AMZN", "WEB-DL"])
        assert restriction.rejection(TITLE) is None

    def test_must_contain_none_matching(self) -> None:
        restriction = Restriction.from_strings("r", must_contain=["AMZN", "NF"])
        assert restriction.rejection(TITLE) is not None

    def test_empty_restriction_passes(self) -> None:
        assert Restriction.from_strings("r").rejection(TITLE) is None

    def test_preferred_count(self) -> None:
        restriction = Restriction.from_strings("r", preferred=["x265", "GROUP", "HDR"])
        assert restriction.preferred_count(TITLE) == 2

    def test_tag_scoping(self) -> None:
        untagged = Restriction.from_strings("a")
        tagged = Restriction.from_strings("b", tags={"anime"})

        assert untagged.applies_to(frozenset()) is True
        assert tagged.applies_to(frozenset({"4k"})) is False
        assert tagged.applies_to(frozenset({"anime", "4k"})) is True


class TestDelayProfile:
    def test_delay_per_protocol(self) -> None:
        profile = DelayProfile(id="d", usenet_delay=10, torrent_delay=120)
        assert profile.delay_for(Protocol.USENET) == 10
        assert profile.delay_for(Protocol.TORRENT) == 120

    def test_disabling_every_protocol_is_invalid(self) -> None:
        with pytest.raises(ConfigurationError):
            DelayProfile(id="d", enable_usenet=False, enable_torrent=False)

    def test_negative_delay_is_invalid(self) -> None:
        with pytest.raises(ConfigurationError):
            DelayProfile(id="d", torrent_delay=-5)


class TestResolveDelayProfile:
    def test_no_profiles(self) -> None:
        assert resolve_delay_profile((), frozenset({"x"})) is None

    def test_default_when_no_tag_matches(self) -> None:
        default = DelayProfile(id="default")
        tagged = DelayProfile(id="anime", tags=frozenset({"anime"}))

        assert resolve_delay_profile((tagged, default), frozenset({"4k"})) is default

    def test_tagged_beats_default(self) -> None:
        default = DelayProfile(id="default")
        tagged = DelayProfile(id="anime", tags=frozenset({"anime"}))

        assert resolve_delay_profile((default, tagged), frozenset({"anime"})) is tagged

    def test_most_shared_tags_wins(self) -> None:
        one = DelayProfile(id="one", tags=frozenset({"anime"}))
        two = DelayProfile(id="two", tags=frozenset({"anime", "4k"}))

        assert resolve_delay_profile((one, two), frozenset({"anime", "4k"})) is two

    def test_order_breaks_specificity_tie(self) -> None:
        first = DelayProfile(id="first", tags=frozenset({"anime"}), order=1)
        second = DelayProfile(id="second", tags=frozenset({"4k"}), order=2)

        assert resolve_delay_profile((second, first), frozenset({"anime", "4k"})) is first

    def test_unresolvable_tie_is_a_config_error(self) -> None:
        a = DelayProfile(id="a", tags=frozenset({"anime"}))
        b = DelayProfile(id="b", tags=frozenset({"4k"}))

        with pytest.raises(ConfigurationError, match="equal specificity"):
            resolve_delay_profile((a, b), frozenset({"anime", "4k"}))

    def test_two_defaults_is_a_config_error(self) -> None:
        with pytest.raises(ConfigurationError):
            resolve_delay_profile(
                (DelayProfile(id="a"), DelayProfile(id="b")), frozenset()
            )
