from __future__ import annotations

import logging
from collections.abc import Mapping

from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views.decorators.cache import never_cache
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from quoting.models import Quote
from quoting.serializers import (
    LinkPackageSerializer,
    ManualPriceSerializer,
    PriceCalculationRequestSerializer,
    QuoteParametersSerializer,
    QuotePriceStateSerializer,
)
from quoting.services.errors import (
    InvalidParametersError,
    NoLinkedPackageError,
    PackageDataError,
    PackageInactiveError,
    PackageNotFoundError,
    PackageStoreUnavailableError,
    QuotePriceError,
)
from quoting.services.package_store import get_package_store
from quoting.services.price_sync import SyncEngine
from quoting.services.pricing.calculator import calculate_price
from quoting.services.pricing.types import QuoteParameters, ResolutionFailure
from quoting.services.quote_service import (
    compare_quote_price,
    link_quote_package,
    reset_quote_price,
    set_quote_price,
    unlink_quote_package,
    update_quote_parameters,
)
from tour_desk.logging import set_request_context

logger = logging.getLogger(__name__)

_ERROR_STATUS = (
    (PackageNotFoundError, status.HTTP_404_NOT_FOUND),
    (PackageStoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PackageDataError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (PackageInactiveError, status.HTTP_400_BAD_REQUEST),
    (NoLinkedPackageError, status.HTTP_400_BAD_REQUEST),
)


class PriceCalculationThrottle(UserRateThrottle):
    scope = "price_calculation"


def compact_validation_errors(detail):  # noqa: ANN001, ANN201
    if isinstance(detail, list):
        if len(detail) == 1:
            return compact_validation_errors(detail[0])
        return [compact_validation_errors(item) for item in detail]
    if isinstance(detail, Mapping):
        return {str(key): compact_validation_errors(value) for key, value in detail.items()}
    return str(detail)


def validation_error_response(errors) -> Response:  # noqa: ANN001
    return Response(
        {
            "detail": "validation_error",
            "errors": compact_validation_errors(errors),
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


def quote_price_error_response(exc: QuotePriceError) -> Response:
    if isinstance(exc, InvalidParametersError):
        return validation_error_response(exc.field_errors or exc.message)
    if isinstance(exc, PackageDataError):
        logger.exception("Package pricing data is broken", extra={"error_code": exc.code})
    for error_class, http_status in _ERROR_STATUS:
        if isinstance(exc, error_class):
            return Response(exc.as_payload(), status=http_status)
    return Response(exc.as_payload(), status=status.HTTP_400_BAD_REQUEST)


def quote_state_payload(quote: Quote, engine: SyncEngine) -> dict:
    payload = dict(QuotePriceStateSerializer(quote).data)
    payload["sync_status"] = engine.status.value
    payload["error"] = (
        {"code": engine.error.code, "message": engine.error.message, "is_retryable": engine.error.is_retryable}
        if engine.error
        else None
    )
    return payload


class PriceCalculateAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_classes = [PriceCalculationThrottle]

    @method_decorator(never_cache)
    def post(self, request):  # noqa: ANN001, ANN201
        serializer = PriceCalculationRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        data = serializer.validated_data
        try:
            package = get_package_store().get_package(data["package_id"], data.get("version"))
            params = QuoteParameters.parse(data["number_of_people"], data["number_of_nights"], data["arrival_date"])
            outcome = calculate_price(package, params)
        except QuotePriceError as exc:
            return quote_price_error_response(exc)

        if isinstance(outcome, ResolutionFailure):
            return Response(outcome.as_payload(), status=status.HTTP_400_BAD_REQUEST)
        return Response(outcome.as_payload(), status=status.HTTP_200_OK)


class QuoteActionAPIView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get_quote(self, quote_id) -> Quote:  # noqa: ANN001
        quote = get_object_or_404(Quote, pk=quote_id)
        set_request_context(quote_id=str(quote.id))
        return quote


class QuoteLinkPackageAPIView(QuoteActionAPIView):
    def post(self, request, quote_id):  # noqa: ANN001, ANN201
        quote = self.get_quote(quote_id)
        serializer = LinkPackageSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            engine = link_quote_package(
                quote,
                serializer.validated_data["package_id"],
                user=request.user,
                version=serializer.validated_data.get("version"),
            )
        except QuotePriceError as exc:
            return quote_price_error_response(exc)
        return Response(quote_state_payload(quote, engine), status=status.HTTP_200_OK)


class QuoteUnlinkPackageAPIView(QuoteActionAPIView):
    def post(self, request, quote_id):  # noqa: ANN001, ANN201
        quote = self.get_quote(quote_id)
        engine = unlink_quote_package(quote, user=request.user)
        return Response(quote_state_payload(quote, engine), status=status.HTTP_200_OK)


class QuoteManualPriceAPIView(QuoteActionAPIView):
    def post(self, request, quote_id):  # noqa: ANN001, ANN201
        quote = self.get_quote(quote_id)
        serializer = ManualPriceSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            engine = set_quote_price(quote, serializer.validated_data["price"], user=request.user)
        except QuotePriceError as exc:
            return quote_price_error_response(exc)
        return Response(quote_state_payload(quote, engine), status=status.HTTP_200_OK)


class QuoteResetPriceAPIView(QuoteActionAPIView):
    def post(self, request, quote_id):  # noqa: ANN001, ANN201
        quote = self.get_quote(quote_id)
        try:
            engine = reset_quote_price(quote, user=request.user)
        except QuotePriceError as exc:
            return quote_price_error_response(exc)
        return Response(quote_state_payload(quote, engine), status=status.HTTP_200_OK)


class QuoteParametersAPIView(QuoteActionAPIView):
    def post(self, request, quote_id):  # noqa: ANN001, ANN201
        quote = self.get_quote(quote_id)
        serializer = QuoteParametersSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)
        try:
            engine = update_quote_parameters(quote, dict(serializer.validated_data), user=request.user)
        except QuotePriceError as exc:
            return quote_price_error_response(exc)
        return Response(quote_state_payload(quote, engine), status=status.HTTP_200_OK)


class QuoteRecalculatePriceAPIView(QuoteActionAPIView):
    """Compare the stored price with the package's current price; nothing is saved."""

    @method_decorator(never_cache)
    def post(self, request, quote_id):  # noqa: ANN001, ANN201
        quote = self.get_quote(quote_id)
        try:
            comparison = compare_quote_price(quote)
        except QuotePriceError as exc:
            return quote_price_error_response(exc)
        if isinstance(comparison, ResolutionFailure):
            return Response(comparison.as_payload(), status=status.HTTP_400_BAD_REQUEST)

        logger.info(
            "Quote price recalculated for comparison",
            extra={
                "quote_id": str(quote.id),
                "old_price": str(comparison.old_price),
                "new_price": str(comparison.new_price),
                "version_changed": comparison.package_version_changed,
            },
        )
        return Response(
            {
                "comparison": {
                    "oldPrice": comparison.old_price,
                    "newPrice": comparison.new_price,
                    "priceDifference": comparison.price_difference,
                    "percentageChange": comparison.percentage_change,
                    "currency": comparison.currency,
                    "isOnRequest": comparison.is_on_request,
                },
                "packageVersionChanged": comparison.package_version_changed,
                "priceCalculation": comparison.calculation.as_payload(),
                "packageInfo": {
                    "linkedVersion": comparison.linked_version,
                    "currentVersion": comparison.current_version,
                    "versionChanged": comparison.package_version_changed,
                },
                "parameters": {
                    "numberOfPeople": quote.number_of_people,
                    "numberOfNights": quote.number_of_nights,
                    "arrivalDate": quote.arrival_date.isoformat(),
                },
            },
            status=status.HTTP_200_OK,
        )
