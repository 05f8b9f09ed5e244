from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from quoting.services.errors import InvalidParametersError, PackageDataError
from quoting.services.money import money_str, to_decimal

ON_REQUEST_LABEL = "ON_REQUEST"


class PeriodType(str, Enum):
    MONTH = "month"
    SPECIAL = "special"


class ResolutionCode(str, Enum):
    NO_TIER = "NO_TIER"
    INVALID_DURATION = "INVALID_DURATION"
    NO_PERIOD = "NO_PERIOD"
    NO_PRICE_POINT = "NO_PRICE_POINT"


@dataclass(frozen=True)
class Numeric:
    amount: Decimal

    def to_wire(self) -> str:
        return money_str(self.amount)


@dataclass(frozen=True)
class OnRequest:
    def to_wire(self) -> str:
        return ON_REQUEST_LABEL


ON_REQUEST = OnRequest()
Price = Union[Numeric, OnRequest]


def parse_price(raw: Any) -> Price:
    if isinstance(raw, (Numeric, OnRequest)):
        return raw
    if isinstance(raw, str) and raw.strip().upper().replace(" ", "_") == ON_REQUEST_LABEL:
        return ON_REQUEST
    try:
        amount = to_decimal(raw)
    except ValueError as exc:
        raise PackageDataError(f"Invalid price value: {raw!r}") from exc
    if amount < 0:
        raise PackageDataError(f"Negative price value: {raw!r}")
    return Numeric(amount)


@dataclass(frozen=True)
class GroupSizeTier:
    label: str
    min_people: int
    max_people: int

    def contains(self, number_of_people: int) -> bool:
        return self.min_people <= number_of_people <= self.max_people


@dataclass(frozen=True)
class PricePoint:
    tier_index: int
    nights: int
    price: Price


@dataclass(frozen=True)
class PricingPeriod:
    period: str
    period_type: PeriodType
    start_date: date | None = None
    end_date: date | None = None
    price_points: tuple[PricePoint, ...] = ()

    @property
    def is_special(self) -> bool:
        return self.period_type == PeriodType.SPECIAL

    def covers(self, day: date) -> bool:
        if not self.is_special or self.start_date is None or self.end_date is None:
            return False
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class PackageSnapshot:
    """One immutable version of a package's pricing data."""

    package_id: str
    name: str
    version: int
    currency: str
    tiers: tuple[GroupSizeTier, ...]
    durations: tuple[int, ...]
    periods: tuple[PricingPeriod, ...]
    status: str = "active"

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PackageSnapshot":
        try:
            tiers = tuple(
                GroupSizeTier(
                    label=str(item["label"]).strip(),
                    min_people=_as_int(item["min_people"], "min_people"),
                    max_people=_as_int(item["max_people"], "max_people"),
                )
                for item in payload.get("group_size_tiers") or []
            )
            durations = tuple(_as_int(value, "duration") for value in payload.get("duration_options") or [])
            periods = tuple(_period_from_payload(item) for item in payload.get("pricing_matrix") or [])
            return cls(
                package_id=str(payload["package_id"]),
                name=str(payload.get("name") or ""),
                version=_as_int(payload.get("version", 1), "version"),
                currency=str(payload.get("currency") or "GBP").upper(),
                tiers=tiers,
                durations=durations,
                periods=periods,
                status=str(payload.get("status") or "active"),
            )
        except (KeyError, TypeError) as exc:
            raise PackageDataError(f"Malformed package payload: {exc}") from exc

    def to_payload(self) -> dict[str, Any]:
        return {
            "package_id": self.package_id,
            "name": self.name,
            "version": self.version,
            "currency": self.currency,
            "status": self.status,
            "group_size_tiers": [
                {"label": tier.label, "min_people": tier.min_people, "max_people": tier.max_people}
                for tier in self.tiers
            ],
            "duration_options": list(self.durations),
            "pricing_matrix": [
                {
                    "period": period.period,
                    "period_type": period.period_type.value,
                    "start_date": period.start_date.isoformat() if period.start_date else None,
                    "end_date": period.end_date.isoformat() if period.end_date else None,
                    "prices": [
                        {"tier_index": point.tier_index, "nights": point.nights, "price": point.price.to_wire()}
                        for point in period.price_points
                    ],
                }
                for period in self.periods
            ],
        }


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise PackageDataError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise PackageDataError(f"{name} must be an integer, got {value!r}") from exc


def _as_date(value: Any, name: str) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as exc:
        raise PackageDataError(f"{name} is not a valid date: {value!r}") from exc


def _period_from_payload(item: dict[str, Any]) -> PricingPeriod:
    raw_type = str(item.get("period_type") or PeriodType.MONTH.value).strip().lower()
    try:
        period_type = PeriodType(raw_type)
    except ValueError as exc:
        raise PackageDataError(f"Unknown period type: {raw_type!r}") from exc
    points = tuple(
        PricePoint(
            tier_index=_as_int(point["tier_index"], "tier_index"),
            nights=_as_int(point["nights"], "nights"),
            price=parse_price(point["price"]),
        )
        for point in item.get("prices") or []
    )
    period = PricingPeriod(
        period=str(item["period"]).strip(),
        period_type=period_type,
        start_date=_as_date(item.get("start_date"), "start_date"),
        end_date=_as_date(item.get("end_date"), "end_date"),
        price_points=points,
    )
    if period.is_special and (period.start_date is None or period.end_date is None):
        raise PackageDataError(f'Special period "{period.period}" needs both start_date and end_date')
    return period


@dataclass(frozen=True)
class QuoteParameters:
    number_of_people: int
    number_of_nights: int
    arrival_date: date

    @classmethod
    def parse(cls, number_of_people: Any, number_of_nights: Any, arrival_date: Any) -> "QuoteParameters":
        errors: dict[str, str] = {}
        people = _positive_int(number_of_people)
        if people is None:
            errors["number_of_people"] = "Number of people must be a positive whole number."
        nights = _positive_int(number_of_nights)
        if nights is None:
            errors["number_of_nights"] = "Number of nights must be a positive whole number."
        arrival = _parse_arrival(arrival_date)
        if arrival is None:
            errors["arrival_date"] = "Arrival date must be a valid date (YYYY-MM-DD)."
        if errors:
            raise InvalidParametersError("Invalid quote parameters", field_errors=errors)
        return cls(number_of_people=people, number_of_nights=nights, arrival_date=arrival)

    def replace(self, **changes: Any) -> "QuoteParameters":
        merged = {
            "number_of_people": self.number_of_people,
            "number_of_nights": self.number_of_nights,
            "arrival_date": self.arrival_date,
        }
        unknown = set(changes) - set(merged)
        if unknown:
            raise InvalidParametersError(f"Unknown quote parameters: {', '.join(sorted(unknown))}")
        merged.update(changes)
        return QuoteParameters.parse(**merged)


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    try:
        number = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _parse_arrival(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


@dataclass(frozen=True)
class ResolutionFailure:
    code: ResolutionCode
    message: str
    context: dict[str, Any] = field(default_factory=dict, compare=False)

    def as_payload(self) -> dict[str, Any]:
        return {"errorCode": self.code.value, "message": self.message}
