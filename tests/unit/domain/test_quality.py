"""Tests for quality tiers, the definition table and quality profiles."""

import pytest

from fetcharr.domain.entities import (
    UNKNOWN_TIER,
    QualityDefinition,
    QualityDefinitionTable,
    QualityProfile,
)
from fetcharr.domain.exceptions import ConfigurationError
from fetcharr.domain.value_objects import (
    Quality,
    QualityModifier,
    QualitySource,
    Resolution,
)

MB = 1024 * 1024


@pytest.fixture
def table() -> QualityDefinitionTable:
    return QualityDefinitionTable()


class TestSizeScore:
    """Size score: +25 at preferred, -25 at the bounds, -50 outside."""

    @pytest.fixture
    def webdl(self, table: QualityDefinitionTable) -> QualityDefinition:
        definition = table.get("WEB-DL 1080p")
        assert definition is not None
        return definition

    def test_preferred_size_scores_max(self, webdl: QualityDefinition) -> None:
        # 70 MB/min preferred, 60 minute episode
        assert webdl.size_score(70 * 60 * MB, 60) == 25

    def test_max_size_scores_min(self, webdl: QualityDefinition) -> None:
        assert webdl.size_score(130 * 60 * MB, 60) == -25

    def test_halfway_to_max_is_zero(self, webdl: QualityDefinition) -> None:
        assert webdl.size_score(100 * 60 * MB, 60) == 0

    def test_outside_bounds(self, webdl: QualityDefinition) -> None:
        assert webdl.size_score(200 * 60 * MB, 60) == -50
        assert webdl.size_score(1 * 60 * MB, 60) == -50

    def test_unknown_runtime_is_neutral(self, webdl: QualityDefinition) -> None:
        assert webdl.size_score(70 * 60 * MB, None) == 0

    def test_unknown_size_is_neutral(self, webdl: QualityDefinition) -> None:
        assert webdl.size_score(0, 60) == 0

    def test_music_tiers_have_no_size_policy(self, table: QualityDefinitionTable) -> None:
        flac = table.get("FLAC")
        assert flac is not None
        assert flac.size_score(500 * MB, 45) == 0


class TestDefinitionTable:
    def test_exact_match(self, table: QualityDefinitionTable) -> None:
        assert table.resolve(Quality(Resolution.R1080P, QualitySource.WEBDL)).name == "WEB-DL 1080p"

    def test_remux_is_its_own_tier(self, table: QualityDefinitionTable) -> None:
        quality = Quality(Resolution.R1080P, QualitySource.BLURAY, QualityModifier.REMUX)
        assert table.resolve(quality).name == "Remux-1080p"

    def test_cam_ignores_resolution(self, table: QualityDefinitionTable) -> None:
        assert table.resolve(Quality(Resolution.R720P, QualitySource.CAM)).name == "CAM"

    def test_unmapped_triple_is_unknown(self, table: QualityDefinitionTable) -> None:
        assert table.resolve(Quality(Resolution.R480P, QualitySource.WEBDL)).name == UNKNOWN_TIER

    def test_table_requires_unknown_tier(self) -> None:
        with pytest.raises(ConfigurationError):
            QualityDefinitionTable(
                (QualityDefinition("FLAC", QualitySource.FLAC, Resolution.UNKNOWN, 20),)
            )

    def test_highest_skips_unknown_names(self, table: QualityDefinitionTable) -> None:
        best = table.highest(("HDTV-720p", "nope", "BluRay-1080p"))
        assert best is not None
        assert best.name == "BluRay-1080p"


class TestQualityProfile:
    def test_rank_follows_profile_order(self, hd_profile: QualityProfile) -> None:
        assert hd_profile.rank("HDTV-720p") == 0
        assert hd_profile.rank("BluRay-1080p") == 4
        assert hd_profile.rank("CAM") is None
        assert hd_profile.cutoff_rank == 3
        assert hd_profile.best_tier == "BluRay-1080p"

    def test_valid_profile_passes(
        self, hd_profile: QualityProfile, table: QualityDefinitionTable
    ) -> None:
        hd_profile.validate(table)

    def test_cutoff_must_be_allowed(self) -> None:
        profile = QualityProfile(id="p", name="P", allowed=("HDTV-720p",), cutoff="BluRay-1080p")
        with pytest.raises(ConfigurationError, match="cutoff"):
            profile.validate()

    def test_empty_profile_is_invalid(self) -> None:
        with pytest.raises(ConfigurationError):
            QualityProfile(id="p", name="P", allowed=(), cutoff="x").validate()

    def test_duplicate_tier_is_invalid(self) -> None:
        profile = QualityProfile(
            id="p", name="P", allowed=("HDTV-720p", "HDTV-720p"), cutoff="HDTV-720p"
        )
        with pytest.raises(ConfigurationError):
            profile.validate()

    def test_unknown_tier_name_is_invalid(self, table: QualityDefinitionTable) -> None:
        profile = QualityProfile(id="p", name="P", allowed=("Betamax",), cutoff="Betamax")
        with pytest.raises(ConfigurationError, match="unknown tiers"):
            profile.validate(table)
