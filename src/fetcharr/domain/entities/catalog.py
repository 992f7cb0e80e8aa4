"""Profile catalog - the read-only configuration snapshot the engine decides against."""

from __future__ import annotations

from dataclasses import dataclass, field

from fetcharr.domain.entities.custom_format import CustomFormat
from fetcharr.domain.entities.delay_profile import DelayProfile, resolve_delay_profile
from fetcharr.domain.entities.quality import QualityDefinitionTable, QualityProfile
from fetcharr.domain.entities.release import AcquisitionTarget
from fetcharr.domain.entities.restriction import Restriction
from fetcharr.domain.exceptions import ConfigurationError


@dataclass(frozen=True)
class ProfileCatalog:
    """Everything configuration-shaped that a decision needs.

    Hey future me - build this ONCE per search cycle from the library store and
    call validate(). The engine never re-reads config mid-cycle, which is what
    keeps decide() pure.
    """

    quality_profiles: dict[str, QualityProfile]
    custom_formats: dict[str, CustomFormat] = field(default_factory=dict)
    restrictions: tuple[Restriction, ...] = ()
    delay_profiles: tuple[DelayProfile, ...] = ()
    definitions: QualityDefinitionTable = field(default_factory=QualityDefinitionTable)

    def validate(self) -> None:
        """Raise ConfigurationError on any invariant violation."""
        for profile in self.quality_profiles.values():
            profile.validate(self.definitions)
        defaults = [p for p in self.delay_profiles if p.is_default]
        if len(defaults) > 1:
            raise ConfigurationError(
                "More than one untagged default delay profile: "
                + ", ".join(p.id for p in defaults)
            )

    def profile_for(self, target: AcquisitionTarget) -> QualityProfile:
        try:
            return self.quality_profiles[target.quality_profile_id]
        except KeyError:
            raise ConfigurationError(
                f"Target {target.key} references unknown quality profile "
                f"'{target.quality_profile_id}'"
            ) from None

    def formats_for(self, target: AcquisitionTarget) -> tuple[CustomFormat, ...]:
        # Unknown ids are skipped: a deleted format simply stops scoring
        return tuple(
            self.custom_formats[fid] for fid in target.custom_format_ids if fid in self.custom_formats
        )

    def restrictions_for(self, target: AcquisitionTarget) -> tuple[Restriction, ...]:
        return tuple(r for r in self.restrictions if r.applies_to(target.tags))

    def delay_profile_for(self, target: AcquisitionTarget) -> DelayProfile | None:
        return resolve_delay_profile(self.delay_profiles, target.tags)


__all__ = ["ProfileCatalog"]
