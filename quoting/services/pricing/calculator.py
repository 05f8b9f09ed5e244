from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

from quoting.services.errors import PackageDataError
from quoting.services.money import quantize_money
from quoting.services.pricing.lookup import lookup_price
from quoting.services.pricing.periods import resolve_period
from quoting.services.pricing.tiers import TierMatch, resolve_tier
from quoting.services.pricing.types import (
    ON_REQUEST,
    Numeric,
    OnRequest,
    PackageSnapshot,
    Price,
    PricingPeriod,
    QuoteParameters,
    ResolutionCode,
    ResolutionFailure,
)


@dataclass(frozen=True)
class PriceCalculation:
    tier_used: TierMatch
    period_used: PricingPeriod
    number_of_people: int
    number_of_nights: int
    currency: str
    price_per_person: Decimal | None = None
    total_price: Decimal | None = None

    @property
    def is_on_request(self) -> bool:
        return self.total_price is None

    @property
    def price(self) -> Price:
        if self.total_price is None:
            return ON_REQUEST
        return Numeric(self.total_price)

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "isOnRequest": self.is_on_request,
            "tierUsed": {"index": self.tier_used.index, "label": self.tier_used.label},
            "periodUsed": {"period": self.period_used.period, "periodType": self.period_used.period_type.value},
        }
        if not self.is_on_request:
            payload.update(
                {
                    "pricePerPerson": self.price_per_person,
                    "numberOfPeople": self.number_of_people,
                    "totalPrice": self.total_price,
                    "currency": self.currency,
                }
            )
        return payload


CalculationOutcome = Union[PriceCalculation, ResolutionFailure]


def calculate_price(package: PackageSnapshot, params: QuoteParameters) -> CalculationOutcome:
    """Resolve the total price of a package for one parameter triple.

    Coverage gaps come back as a ``ResolutionFailure``; an ``ON_REQUEST`` cell
    is a successful calculation without a total. Only malformed package data
    raises.
    """
    _check_consistency(package)

    tier = resolve_tier(params.number_of_people, package.tiers)
    if isinstance(tier, ResolutionFailure):
        return tier

    if params.number_of_nights not in package.durations:
        available = sorted(package.durations)
        return ResolutionFailure(
            code=ResolutionCode.INVALID_DURATION,
            message=(
                f"{params.number_of_nights} nights is not available for this package "
                f"(available: {', '.join(str(value) for value in available)})"
            ),
            context={"requested_nights": params.number_of_nights, "available_nights": available},
        )

    period = resolve_period(params.arrival_date, package.periods)
    if isinstance(period, ResolutionFailure):
        return period

    price = lookup_price(period, tier.index, params.number_of_nights)
    if isinstance(price, ResolutionFailure):
        return price

    common = {
        "tier_used": tier,
        "period_used": period,
        "number_of_people": params.number_of_people,
        "number_of_nights": params.number_of_nights,
        "currency": package.currency,
    }
    if isinstance(price, OnRequest):
        return PriceCalculation(**common)
    per_person = quantize_money(price.amount)
    return PriceCalculation(
        price_per_person=per_person,
        total_price=quantize_money(per_person * params.number_of_people),
        **common,
    )


def _check_consistency(package: PackageSnapshot) -> None:
    if not package.tiers:
        raise PackageDataError(f'Package "{package.package_id}" has no group size tiers')
    if not package.durations:
        raise PackageDataError(f'Package "{package.package_id}" has no duration options')
    for index, tier in enumerate(package.tiers):
        if tier.min_people < 1 or tier.max_people < tier.min_people:
            raise PackageDataError(
                f'Tier {index} ("{tier.label}") has an invalid range {tier.min_people}-{tier.max_people}'
            )
