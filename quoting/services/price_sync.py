"""Keeps a quote's price in step with its linked package.

One ``SyncEngine`` belongs to one editing session. It owns the session's
``QuoteDraft`` (parameters, price, linked package snapshot and price history)
and the package version that was pinned when the package was linked.

Parameter edits are debounced: every edit cancels the pending recomputation
and starts a new quiet period. Every request gets a sequence number and a
result is applied only if its number is still the latest one issued, so a
slow calculation can never overwrite the outcome of a newer request.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from django.utils import timezone

from quoting.services.config import price_sync_debounce_seconds, price_sync_timeout_seconds
from quoting.services.errors import (
    CalculationTimeoutError,
    InvalidParametersError,
    NoLinkedPackageError,
    PackageInactiveError,
    PackageNotFoundError,
    QuotePriceError,
)
from quoting.services.money import prices_match, to_decimal
from quoting.services.price_history import PriceChangeReason
from quoting.services.pricing.calculator import CalculationOutcome, PriceCalculation, calculate_price
from quoting.services.pricing.types import Numeric, PackageSnapshot, QuoteParameters, ResolutionFailure
from quoting.services.quote_draft import LinkedPackageSnapshot, QuoteDraft, SyncFailure

logger = logging.getLogger(__name__)

Calculate = Callable[[PackageSnapshot, QuoteParameters], Awaitable[CalculationOutcome]]
StatusListener = Callable[["SyncStatus", "SyncEngine"], Any]


class SyncStatus(str, Enum):
    SYNCED = "synced"
    CALCULATING = "calculating"
    CUSTOM = "custom"
    OUT_OF_SYNC = "out-of-sync"
    ERROR = "error"
    UNLINKED = "unlinked"


async def calculate_locally(package: PackageSnapshot, params: QuoteParameters) -> CalculationOutcome:
    return calculate_price(package, params)


class SyncEngine:
    def __init__(
        self,
        draft: QuoteDraft,
        *,
        user_id: str,
        package: PackageSnapshot | None = None,
        calculate: Calculate | None = None,
        debounce_seconds: float | None = None,
        timeout_seconds: float | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.draft = draft
        self.user_id = str(user_id)
        self.debounce_seconds = price_sync_debounce_seconds() if debounce_seconds is None else debounce_seconds
        self.timeout_seconds = price_sync_timeout_seconds() if timeout_seconds is None else timeout_seconds
        self.last_calculation: PriceCalculation | None = None
        self._calculate = calculate or calculate_locally
        self._clock = clock
        self._listeners: list[StatusListener] = []
        self._sequence = 0
        self._task: asyncio.Task | None = None
        # Version the current snapshot came from, and the one the next request prices against.
        self._package = package if draft.linked_package is not None else None
        self._target_package = self._package

        self._status = self._restored_status()

    def _restored_status(self) -> SyncStatus:
        snapshot = self.draft.linked_package
        if snapshot is None:
            self.draft.sync_error = None
            return SyncStatus.UNLINKED
        priced = snapshot.priced_for(self.draft.parameters)
        if snapshot.custom_price_applied:
            return SyncStatus.CUSTOM if priced else SyncStatus.OUT_OF_SYNC
        if self.draft.sync_error is not None:
            return SyncStatus.ERROR
        if not priced:
            self.draft.sync_error = SyncFailure(
                code="PRICE_NOT_CURRENT",
                message="The price was calculated for different quote parameters",
                is_retryable=True,
            )
            return SyncStatus.ERROR
        return SyncStatus.SYNCED

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def error(self) -> SyncFailure | None:
        return self.draft.sync_error

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def is_pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def package(self) -> PackageSnapshot | None:
        return self._package

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    async def link_package(self, package: PackageSnapshot, parameters: QuoteParameters | None = None) -> SyncStatus:
        """Price the draft against ``package`` and pin it on success.

        When a first link fails the package stays the session's target, so the
        next parameter edit retries the link. A failed relink keeps the
        previously pinned version.
        """
        if not package.is_active:
            raise PackageInactiveError(package.package_id, package.status)
        if parameters is not None:
            self.draft.parameters = parameters
        self._target_package = package
        sequence = self._issue_request()
        self._set_status(SyncStatus.CALCULATING)
        self._task = asyncio.get_running_loop().create_task(
            self._run(sequence, PriceChangeReason.PACKAGE_SELECTION, package)
        )
        await asyncio.wait({self._task})
        return self._status

    def unlink_package(self) -> None:
        self._issue_request()
        self.draft.linked_package = None
        self._package = None
        self._target_package = None
        self.last_calculation = None
        self.draft.sync_error = None
        self._set_status(SyncStatus.UNLINKED)

    def update_parameters(self, **changes: Any) -> SyncStatus:
        try:
            parameters = self.draft.parameters.replace(**changes)
        except InvalidParametersError as exc:
            if self._auto_sync_active():
                self._issue_request()
                self.draft.sync_error = SyncFailure.from_exception(exc)
                self._set_status(SyncStatus.ERROR)
            raise

        if parameters == self.draft.parameters:
            return self._status
        self.draft.parameters = parameters

        snapshot = self.draft.linked_package
        if snapshot is None and self._target_package is None:
            return self._status
        if not self._auto_sync_active():
            self._set_status(SyncStatus.OUT_OF_SYNC)
            return self._status
        if self._target_package is None:
            # Linked, but the pinned version could not be loaded for this session.
            self._issue_request()
            failure = PackageNotFoundError(snapshot.package_id, snapshot.package_version)
            logger.warning("Price calculation failed: %s", failure, extra={"error_code": failure.code})
            self._fail(SyncFailure.from_exception(failure))
            return self._status

        sequence = self._issue_request()
        self._set_status(SyncStatus.CALCULATING)
        self._task = asyncio.get_running_loop().create_task(self._debounced(sequence))
        return self._status

    def set_price(self, value: Decimal | int | float | str | None) -> SyncStatus:
        if value is None:
            self.draft.price = None
            return self._status
        try:
            amount = to_decimal(value)
        except ValueError as exc:
            raise InvalidParametersError("Invalid price", field_errors={"price": str(exc)}) from exc
        if amount < 0:
            raise InvalidParametersError("Invalid price", field_errors={"price": "Price cannot be negative."})

        self.draft.price = amount
        snapshot = self.draft.linked_package
        if snapshot is None:
            return self._status
        calculated = snapshot.calculated_price
        if isinstance(calculated, Numeric) and prices_match(amount, calculated.amount):
            return self._status

        self._issue_request()
        self.draft.linked_package = snapshot.with_custom_price(True)
        self.draft.price_history.append(
            amount,
            PriceChangeReason.MANUAL_OVERRIDE,
            user_id=self.user_id,
            timestamp=self._clock(),
        )
        self.draft.sync_error = None
        self._set_status(SyncStatus.CUSTOM)
        return self._status

    async def reset_to_calculated(self) -> SyncStatus:
        snapshot = self.draft.linked_package
        if snapshot is None:
            raise NoLinkedPackageError()
        self.draft.linked_package = snapshot.with_custom_price(False)
        return await self.recalculate_now()

    async def recalculate_now(self) -> SyncStatus:
        """Run a recomputation without waiting for the quiet period."""
        if self._target_package is None:
            raise NoLinkedPackageError()
        sequence = self._issue_request()
        self._set_status(SyncStatus.CALCULATING)
        self._task = asyncio.get_running_loop().create_task(
            self._run(sequence, self._reason_for_next(), self._target_package)
        )
        await asyncio.wait({self._task})
        return self._status

    async def wait_idle(self) -> None:
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    async def aclose(self) -> None:
        task = self._task
        self._issue_request()
        if task is not None:
            await asyncio.wait({task})
        # The price no longer matches parameters whose calculation was dropped.
        if self._status == SyncStatus.CALCULATING:
            self._set_status(SyncStatus.OUT_OF_SYNC)

    def _auto_sync_active(self) -> bool:
        snapshot = self.draft.linked_package
        if snapshot is not None and snapshot.custom_price_applied:
            return False
        return self._status not in (SyncStatus.CUSTOM, SyncStatus.OUT_OF_SYNC, SyncStatus.UNLINKED)

    def _reason_for_next(self) -> PriceChangeReason:
        # A link whose first calculation was superseded still counts as the selection.
        if self._package is None or self._package is not self._target_package:
            return PriceChangeReason.PACKAGE_SELECTION
        return PriceChangeReason.RECALCULATION

    def _issue_request(self) -> int:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._sequence += 1
        return self._sequence

    async def _debounced(self, sequence: int) -> None:
        await asyncio.sleep(self.debounce_seconds)
        await self._run(sequence, self._reason_for_next(), self._target_package)

    async def _run(self, sequence: int, reason: PriceChangeReason, package: PackageSnapshot | None) -> None:
        parameters = self.draft.parameters
        try:
            if package is None:
                raise NoLinkedPackageError("The linked package version is not loaded")
            outcome = await self._calculate_within_deadline(package, parameters)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            if sequence != self._sequence:
                logger.debug("Dropping stale price calculation failure", extra={"sequence": sequence})
                return
            if isinstance(exc, QuotePriceError):
                logger.warning("Price calculation failed: %s", exc, extra={"error_code": exc.code})
            else:
                logger.exception("Unexpected error during price calculation")
            self._fail(SyncFailure.from_exception(exc))
            return

        if sequence != self._sequence:
            logger.debug(
                "Dropping stale price calculation",
                extra={"sequence": sequence, "latest_sequence": self._sequence},
            )
            return
        if isinstance(outcome, ResolutionFailure):
            logger.info(
                "Package does not cover quote parameters",
                extra={"error_code": outcome.code.value, "package_id": package.package_id},
            )
            self._fail(SyncFailure.from_resolution(outcome))
            return
        self._apply(package, parameters, outcome, reason)

    async def _calculate_within_deadline(
        self,
        package: PackageSnapshot,
        parameters: QuoteParameters,
    ) -> CalculationOutcome:
        try:
            return await asyncio.wait_for(self._calculate(package, parameters), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise CalculationTimeoutError(self.timeout_seconds) from exc

    def _apply(
        self,
        package: PackageSnapshot,
        parameters: QuoteParameters,
        calculation: PriceCalculation,
        reason: PriceChangeReason,
    ) -> None:
        now = self._clock()
        self.draft.linked_package = LinkedPackageSnapshot.from_calculation(
            package,
            calculation,
            arrival_date=parameters.arrival_date,
            calculated_at=now,
        )
        self.draft.currency = package.currency
        self._package = package
        self._target_package = package
        self.last_calculation = calculation
        self.draft.sync_error = None
        if calculation.total_price is not None:
            self.draft.price = calculation.total_price
            self.draft.price_history.append(
                calculation.total_price,
                reason,
                user_id=self.user_id,
                timestamp=now,
            )
        self._set_status(SyncStatus.SYNCED)

    def _fail(self, failure: SyncFailure) -> None:
        # The previous snapshot and price stay as the last known good values.
        if self._package is not None:
            self._target_package = self._package
        self.draft.sync_error = failure
        self._set_status(SyncStatus.ERROR)

    def _set_status(self, status: SyncStatus) -> None:
        if status == self._status:
            return
        logger.debug("Price sync status %s -> %s", self._status.value, status.value)
        self._status = status
        for listener in list(self._listeners):
            listener(status, self)
