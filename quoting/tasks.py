from __future__ import annotations

import logging

from celery import shared_task

from quoting.models import Quote
from quoting.services.errors import QuotePriceError
from quoting.services.package_store import get_package_store
from quoting.services.pricing.types import ResolutionFailure
from quoting.services.quote_service import compare_quote_price
from tour_desk.logging import clear_request_context, set_request_context

logger = logging.getLogger(__name__)


def _linked_version(quote: Quote) -> int | None:
    try:
        return int((quote.linked_package or {}).get("package_version"))
    except (TypeError, ValueError):
        return None


@shared_task(bind=True, soft_time_limit=120, time_limit=180)
def audit_linked_quotes_task(self, package_id: str) -> list[dict]:  # noqa: ARG001
    """List quotes still priced on an older version of a package.

    Prices are compared only; nothing is written back to the quotes.
    """
    set_request_context(package_id=package_id)
    try:
        store = get_package_store()
        current = store.get_package(package_id)
        results: list[dict] = []
        quotes = Quote.objects.filter(linked_package_ref_id=package_id).order_by("created_at")
        for quote in quotes.iterator():
            linked_version = _linked_version(quote)
            if linked_version is None or linked_version >= current.version:
                continue
            set_request_context(quote_id=str(quote.id))
            entry = {
                "quote_id": str(quote.id),
                "reference": quote.reference,
                "linked_version": linked_version,
                "current_version": current.version,
            }
            try:
                outcome = compare_quote_price(quote, store=store)
            except QuotePriceError as exc:
                logger.warning("Linked quote could not be compared", extra={"error_code": exc.code, **entry})
                entry["error"] = exc.as_payload()
                results.append(entry)
                continue

            if isinstance(outcome, ResolutionFailure):
                entry["error"] = outcome.as_payload()
            else:
                entry.update(
                    {
                        "old_price": str(outcome.old_price) if outcome.old_price is not None else None,
                        "new_price": str(outcome.new_price) if outcome.new_price is not None else None,
                        "price_difference": (
                            str(outcome.price_difference) if outcome.price_difference is not None else None
                        ),
                        "is_on_request": outcome.is_on_request,
                    }
                )
            results.append(entry)

        logger.info(
            "Linked quote audit finished",
            extra={"package_id": package_id, "version": current.version, "outdated_quotes": len(results)},
        )
        return results
    finally:
        clear_request_context()
