from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from quoting.services.pricing.types import GroupSizeTier, ResolutionCode, ResolutionFailure


@dataclass(frozen=True)
class TierMatch:
    index: int
    tier: GroupSizeTier

    @property
    def label(self) -> str:
        return self.tier.label


def resolve_tier(number_of_people: int, tiers: Sequence[GroupSizeTier]) -> TierMatch | ResolutionFailure:
    # Declaration order decides between overlapping tiers.
    for index, tier in enumerate(tiers):
        if tier.contains(number_of_people):
            return TierMatch(index=index, tier=tier)

    available = [tier.label for tier in tiers]
    message = f"No group size tier covers {number_of_people} people"
    if tiers:
        largest = max(tier.max_people for tier in tiers)
        smallest = min(tier.min_people for tier in tiers)
        if number_of_people > largest:
            message = f"{number_of_people} people exceeds the maximum tier limit of {largest}"
        elif number_of_people < smallest:
            message = f"{number_of_people} people is below the minimum tier size of {smallest}"
    return ResolutionFailure(
        code=ResolutionCode.NO_TIER,
        message=message,
        context={"requested_people": number_of_people, "available_tiers": available},
    )
