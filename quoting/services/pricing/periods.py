from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from quoting.services.pricing.types import PeriodType, PricingPeriod, ResolutionCode, ResolutionFailure

# Locale independent, unlike calendar.month_name.
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def month_label(day: date) -> str:
    return MONTH_NAMES[day.month - 1]


def _normalize_label(value: str) -> str:
    return " ".join(str(value or "").split()).casefold()


def resolve_period(arrival_date: date, periods: Sequence[PricingPeriod]) -> PricingPeriod | ResolutionFailure:
    """Find the pricing period for an arrival date.

    Special periods are checked first, in declaration order, and win over the
    month they fall in. Only the arrival date is considered; a stay running
    into the next period is still priced by the arrival period.
    """
    for period in periods:
        if period.period_type == PeriodType.SPECIAL and period.covers(arrival_date):
            return period

    wanted = _normalize_label(month_label(arrival_date))
    for period in periods:
        if period.period_type == PeriodType.MONTH and _normalize_label(period.period) == wanted:
            return period

    return ResolutionFailure(
        code=ResolutionCode.NO_PERIOD,
        message=(
            f"Date {arrival_date.isoformat()} is outside available pricing periods "
            f"({month_label(arrival_date)} has no price)"
        ),
        context={
            "requested_date": arrival_date.isoformat(),
            "available_periods": [period.period for period in periods],
        },
    )
