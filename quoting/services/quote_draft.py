from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from django.utils.dateparse import parse_date, parse_datetime

from quoting.services.errors import QuotePriceError
from quoting.services.price_history import PriceHistory
from quoting.services.pricing.calculator import PriceCalculation
from quoting.services.pricing.types import PackageSnapshot, Price, QuoteParameters, ResolutionFailure, parse_price


@dataclass(frozen=True)
class SyncFailure:
    code: str
    message: str
    is_retryable: bool = False

    @classmethod
    def from_resolution(cls, failure: ResolutionFailure) -> "SyncFailure":
        return cls(code=failure.code.value, message=failure.message, is_retryable=False)

    @classmethod
    def from_exception(cls, exc: Exception) -> "SyncFailure":
        if isinstance(exc, QuotePriceError):
            return cls(code=exc.code, message=exc.message, is_retryable=exc.is_retryable)
        return cls(code="CALCULATION_ERROR", message=str(exc) or exc.__class__.__name__, is_retryable=True)

    def to_payload(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "is_retryable": self.is_retryable}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SyncFailure":
        return cls(
            code=str(payload.get("code") or "CALCULATION_ERROR"),
            message=str(payload.get("message") or ""),
            is_retryable=bool(payload.get("is_retryable")),
        )


@dataclass(frozen=True)
class LinkedPackageSnapshot:
    package_id: str
    package_name: str
    package_version: int
    tier_index: int
    tier_label: str
    selected_nights: int
    selected_period: str
    calculated_price: Price
    price_was_on_request: bool
    custom_price_applied: bool = False
    last_recalculated_at: datetime | None = None
    # Group size and arrival the calculated price was resolved for.
    number_of_people: int | None = None
    arrival_date: date | None = None

    @classmethod
    def from_calculation(
        cls,
        package: PackageSnapshot,
        calculation: PriceCalculation,
        *,
        arrival_date: date,
        calculated_at: datetime,
    ) -> "LinkedPackageSnapshot":
        return cls(
            package_id=package.package_id,
            package_name=package.name,
            package_version=package.version,
            tier_index=calculation.tier_used.index,
            tier_label=calculation.tier_used.label,
            selected_nights=calculation.number_of_nights,
            selected_period=calculation.period_used.period,
            calculated_price=calculation.price,
            price_was_on_request=calculation.is_on_request,
            custom_price_applied=False,
            last_recalculated_at=calculated_at,
            number_of_people=calculation.number_of_people,
            arrival_date=arrival_date,
        )

    def with_custom_price(self, applied: bool) -> "LinkedPackageSnapshot":
        return replace(self, custom_price_applied=applied)

    def priced_for(self, parameters: QuoteParameters) -> bool:
        """Whether the calculated price belongs to these parameters.

        Snapshots stored before group size and arrival were recorded only
        compare the number of nights.
        """
        if self.selected_nights != parameters.number_of_nights:
            return False
        if self.number_of_people is not None and self.number_of_people != parameters.number_of_people:
            return False
        if self.arrival_date is not None and self.arrival_date != parameters.arrival_date:
            return False
        return True

    def to_payload(self) -> dict[str, Any]:
        return {
            "package_id": self.package_id,
            "package_name": self.package_name,
            "package_version": self.package_version,
            "selected_tier": {"tier_index": self.tier_index, "tier_label": self.tier_label},
            "selected_nights": self.selected_nights,
            "selected_period": self.selected_period,
            "calculated_price": self.calculated_price.to_wire(),
            "price_was_on_request": self.price_was_on_request,
            "custom_price_applied": self.custom_price_applied,
            "last_recalculated_at": self.last_recalculated_at.isoformat() if self.last_recalculated_at else None,
            "priced_for": {
                "number_of_people": self.number_of_people,
                "arrival_date": self.arrival_date.isoformat() if self.arrival_date else None,
            },
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "LinkedPackageSnapshot":
        tier = payload.get("selected_tier") or {}
        priced_for = payload.get("priced_for") or {}
        raw_recalculated = payload.get("last_recalculated_at")
        raw_arrival = priced_for.get("arrival_date")
        raw_people = priced_for.get("number_of_people")
        return cls(
            package_id=str(payload["package_id"]),
            package_name=str(payload.get("package_name") or ""),
            package_version=int(payload.get("package_version") or 1),
            tier_index=int(tier.get("tier_index", 0)),
            tier_label=str(tier.get("tier_label") or ""),
            selected_nights=int(payload.get("selected_nights") or 0),
            selected_period=str(payload.get("selected_period") or ""),
            calculated_price=parse_price(payload.get("calculated_price")),
            price_was_on_request=bool(payload.get("price_was_on_request")),
            custom_price_applied=bool(payload.get("custom_price_applied")),
            last_recalculated_at=parse_datetime(raw_recalculated) if raw_recalculated else None,
            number_of_people=int(raw_people) if raw_people is not None else None,
            arrival_date=parse_date(raw_arrival) if raw_arrival else None,
        )


@dataclass
class QuoteDraft:
    """The editing session's working copy of a quote."""

    parameters: QuoteParameters
    price: Decimal | None = None
    currency: str = "GBP"
    linked_package: LinkedPackageSnapshot | None = None
    price_history: PriceHistory = field(default_factory=PriceHistory)
    inclusions: list[str] = field(default_factory=list)
    # Reason the last recalculation failed; the price is then the last good one.
    sync_error: SyncFailure | None = None
