from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from asgiref.sync import async_to_sync
from django.core.exceptions import ValidationError

from quoting.models import Quote, SuperPackage
from quoting.services.errors import NoLinkedPackageError, PackageInactiveError, PackageNotFoundError
from quoting.services.money import quantize_money, to_decimal
from quoting.services.package_store import PackageStore, get_package_store
from quoting.services.price_history import PriceHistory
from quoting.services.price_sync import SyncEngine
from quoting.services.pricing.calculator import PriceCalculation, calculate_price
from quoting.services.pricing.types import QuoteParameters, ResolutionFailure
from quoting.services.quote_draft import LinkedPackageSnapshot, QuoteDraft, SyncFailure

logger = logging.getLogger(__name__)

_DRAFT_FIELDS = [
    "number_of_people",
    "number_of_nights",
    "arrival_date",
    "total_price",
    "currency",
    "linked_package",
    "linked_package_ref",
    "price_history",
    "updated_at",
]


def _user_id(user) -> str:  # noqa: ANN001
    return str(getattr(user, "pk", None) or "system")


def draft_from_quote(quote: Quote) -> QuoteDraft:
    parameters = QuoteParameters.parse(quote.number_of_people, quote.number_of_nights, quote.arrival_date)
    snapshot = LinkedPackageSnapshot.from_payload(quote.linked_package) if quote.linked_package else None
    raw_error = (quote.linked_package or {}).get("sync_error")
    return QuoteDraft(
        parameters=parameters,
        price=to_decimal(quote.total_price) if quote.total_price is not None else None,
        currency=quote.currency,
        linked_package=snapshot,
        price_history=PriceHistory.from_payload(quote.price_history),
        inclusions=list(quote.inclusions or []),
        sync_error=SyncFailure.from_payload(raw_error) if raw_error else None,
    )


def _local_package(package_id: str) -> SuperPackage | None:
    # Packages served by a remote store have no local row to point at.
    try:
        return SuperPackage.objects.filter(pk=package_id).first()
    except (ValueError, ValidationError):
        return None


def _snapshot_payload(draft: QuoteDraft) -> dict[str, Any] | None:
    if draft.linked_package is None:
        return None
    payload = draft.linked_package.to_payload()
    if draft.sync_error is not None:
        payload["sync_error"] = draft.sync_error.to_payload()
    return payload


def save_draft(quote: Quote, draft: QuoteDraft) -> Quote:
    snapshot = draft.linked_package
    quote.number_of_people = draft.parameters.number_of_people
    quote.number_of_nights = draft.parameters.number_of_nights
    quote.arrival_date = draft.parameters.arrival_date
    quote.total_price = draft.price
    quote.currency = draft.currency
    quote.linked_package = _snapshot_payload(draft)
    quote.linked_package_ref = _local_package(snapshot.package_id) if snapshot is not None else None
    quote.price_history = draft.price_history.to_payload()
    quote.save(update_fields=_DRAFT_FIELDS)
    return quote


def open_price_session(
    quote: Quote,
    *,
    user,  # noqa: ANN001
    store: PackageStore | None = None,
    debounce_seconds: float | None = None,
) -> SyncEngine:
    """Start an editing session on a stored quote, pinned to its linked version."""
    draft = draft_from_quote(quote)
    package = None
    if draft.linked_package is not None:
        snapshot = draft.linked_package
        try:
            package = (store or get_package_store()).get_package(snapshot.package_id, snapshot.package_version)
        except PackageNotFoundError:
            logger.warning(
                "Linked package version is gone",
                extra={"quote_id": str(quote.id), "package_id": snapshot.package_id},
            )
    return SyncEngine(draft, user_id=_user_id(user), package=package, debounce_seconds=debounce_seconds)


def link_quote_package(
    quote: Quote,
    package_id: str,
    *,
    user,  # noqa: ANN001
    version: int | None = None,
    store: PackageStore | None = None,
) -> SyncEngine:
    store = store or get_package_store()
    package = store.get_package(package_id, version)
    engine = SyncEngine(draft_from_quote(quote), user_id=_user_id(user))
    async_to_sync(engine.link_package)(package)
    save_draft(quote, engine.draft)
    logger.info(
        "Quote linked to package",
        extra={
            "quote_id": str(quote.id),
            "package_id": package.package_id,
            "version": package.version,
            "sync_status": engine.status.value,
        },
    )
    return engine


def unlink_quote_package(quote: Quote, *, user) -> SyncEngine:  # noqa: ANN001
    engine = SyncEngine(draft_from_quote(quote), user_id=_user_id(user))
    engine.unlink_package()
    save_draft(quote, engine.draft)
    return engine


def set_quote_price(quote: Quote, price: Any, *, user, store: PackageStore | None = None) -> SyncEngine:  # noqa: ANN001
    engine = open_price_session(quote, user=user, store=store)
    engine.set_price(price)
    save_draft(quote, engine.draft)
    return engine


def reset_quote_price(quote: Quote, *, user, store: PackageStore | None = None) -> SyncEngine:  # noqa: ANN001
    engine = open_price_session(quote, user=user, store=store)
    snapshot = engine.draft.linked_package
    if snapshot is None:
        raise NoLinkedPackageError()
    if engine.package is None:
        raise PackageNotFoundError(snapshot.package_id, snapshot.package_version)
    async_to_sync(engine.reset_to_calculated)()
    save_draft(quote, engine.draft)
    return engine


def update_quote_parameters(
    quote: Quote,
    changes: dict[str, Any],
    *,
    user,  # noqa: ANN001
    store: PackageStore | None = None,
) -> SyncEngine:
    # A single request is already a settled edit, so there is nothing to debounce.
    engine = open_price_session(quote, user=user, store=store, debounce_seconds=0)

    async def _apply() -> None:
        engine.update_parameters(**changes)
        await engine.wait_idle()

    async_to_sync(_apply)()
    save_draft(quote, engine.draft)
    return engine


@dataclass(frozen=True)
class PriceComparison:
    old_price: Decimal | None
    new_price: Decimal | None
    currency: str
    calculation: PriceCalculation
    linked_version: int
    current_version: int

    @property
    def is_on_request(self) -> bool:
        return self.new_price is None

    @property
    def price_difference(self) -> Decimal | None:
        if self.new_price is None or self.old_price is None:
            return None
        return quantize_money(self.new_price - self.old_price)

    @property
    def percentage_change(self) -> Decimal:
        difference = self.price_difference
        if difference is None or not self.old_price:
            return Decimal("0.00")
        return quantize_money(difference / self.old_price * 100)

    @property
    def package_version_changed(self) -> bool:
        return self.linked_version != self.current_version


def compare_quote_price(quote: Quote, *, store: PackageStore | None = None) -> PriceComparison | ResolutionFailure:
    """Price the quote against the package's current version without applying it."""
    if not quote.linked_package:
        raise NoLinkedPackageError()
    snapshot = LinkedPackageSnapshot.from_payload(quote.linked_package)
    package = (store or get_package_store()).get_package(snapshot.package_id)
    if not package.is_active:
        raise PackageInactiveError(package.package_id, package.status)

    parameters = QuoteParameters.parse(quote.number_of_people, quote.number_of_nights, quote.arrival_date)
    outcome = calculate_price(package, parameters)
    if isinstance(outcome, ResolutionFailure):
        return outcome
    return PriceComparison(
        old_price=to_decimal(quote.total_price) if quote.total_price is not None else None,
        new_price=outcome.total_price,
        currency=quote.currency,
        calculation=outcome,
        linked_version=snapshot.package_version,
        current_version=package.version,
    )
