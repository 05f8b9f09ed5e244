from __future__ import annotations

from quoting.services.pricing.types import Price, PricingPeriod, ResolutionCode, ResolutionFailure


def lookup_price(period: PricingPeriod, tier_index: int, nights: int) -> Price | ResolutionFailure:
    for point in period.price_points:
        if point.tier_index == tier_index and point.nights == nights:
            return point.price
    return ResolutionFailure(
        code=ResolutionCode.NO_PRICE_POINT,
        message=f'No price for tier {tier_index} and {nights} nights in period "{period.period}"',
        context={"period": period.period, "tier_index": tier_index, "nights": nights},
    )
