"""Delay profiles - protocol preference and grab delays."""

from __future__ import annotations

from dataclasses import dataclass

from fetcharr.domain.exceptions import ConfigurationError
from fetcharr.domain.value_objects import Protocol


@dataclass(frozen=True)
class DelayProfile:
    """How long to wait for the preferred protocol before grabbing the other one.

    Delays are minutes, measured against the candidate's age: a usenet post
    that is already 90 minutes old only waits another 30 of a 120 minute delay.
    """

    id: str
    preferred_protocol: Protocol = Protocol.USENET
    usenet_delay: int = 0
    torrent_delay: int = 0
    enable_usenet: bool = True
    enable_torrent: bool = True
    bypass_if_proper_repack: bool = True
    bypass_if_highest_quality: bool = False
    tags: frozenset[str] = frozenset()
    order: int = 0

    def __post_init__(self) -> None:
        if not (self.enable_usenet or self.enable_torrent):
            raise ConfigurationError(f"Delay profile '{self.id}' disables every protocol")
        if self.usenet_delay < 0 or self.torrent_delay < 0:
            raise ConfigurationError(f"Delay profile '{self.id}' has a negative delay")

    @property
    def is_default(self) -> bool:
        return not self.tags

    def is_enabled(self, protocol: Protocol) -> bool:
        return self.enable_usenet if protocol == Protocol.USENET else self.enable_torrent

    def delay_for(self, protocol: Protocol) -> int:
        return self.usenet_delay if protocol == Protocol.USENET else self.torrent_delay


# Hey future me - resolution rules:
# 1. Tagged profiles sharing tags with the target compete. Most shared tags
#    wins, then lowest `order`. A tie on both is a config error.
# 2. Nothing tagged applies → the single untagged default.
# 3. Two untagged defaults is a config error. No profile at all = no delay.
def resolve_delay_profile(
    profiles: tuple[DelayProfile, ...], target_tags: frozenset[str]
) -> DelayProfile | None:
    """Pick the one delay profile that applies to a target."""
    tagged = [
        (len(p.tags & target_tags), p)
        for p in profiles
        if p.tags and p.tags & target_tags
    ]
    if tagged:
        tagged.sort(key=lambda item: (-item[0], item[1].order))
        best_specificity, best = tagged[0]
        if len(tagged) > 1:
            runner_up_specificity, runner_up = tagged[1]
            if runner_up_specificity == best_specificity and runner_up.order == best.order:
                raise ConfigurationError(
                    f"Delay profiles '{best.id}' and '{runner_up.id}' both apply "
                    f"with equal specificity"
                )
        return best

    defaults = [p for p in profiles if p.is_default]
    if len(defaults) > 1:
        raise ConfigurationError(
            "More than one untagged default delay profile: "
            + ", ".join(p.id for p in defaults)
        )
    return defaults[0] if defaults else None


__all__ = ["DelayProfile", "resolve_delay_profile"]
