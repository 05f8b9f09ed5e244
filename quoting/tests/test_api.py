from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from rest_framework.test import APIClient

from quoting.models import SuperPackage
from quoting.services.package_service import publish_package_version
from quoting.tests.package_data import create_package, create_quote


def _client(username: str, *, staff: bool = True) -> tuple[APIClient, User]:
    user = User.objects.create_user(username=username, password="safe-pass", is_staff=staff)
    client = APIClient()
    client.force_authenticate(user=user)
    return client, user


def _calculation_body(package: SuperPackage, **overrides) -> dict:
    body = {
        "packageId": str(package.id),
        "numberOfPeople": 8,
        "numberOfNights": 3,
        "arrivalDate": "2025-01-15",
    }
    body.update(overrides)
    return body


@pytest.mark.django_db
def test_calculate_returns_priced_result():
    client, _ = _client("calc_ok", staff=False)
    package = create_package()

    response = client.post("/api/pricing/calculate", _calculation_body(package), format="json")

    assert response.status_code == 200
    body = response.json()
    assert body["isOnRequest"] is False
    assert body["totalPrice"] == 4400.0
    assert body["pricePerPerson"] == 550.0
    assert body["currency"] == "GBP"
    assert body["tierUsed"] == {"index": 0, "label": "6-11 People"}
    assert body["periodUsed"] == {"period": "January", "periodType": "month"}


@pytest.mark.django_db
def test_calculate_on_request_has_no_total():
    client, _ = _client("calc_on_request", staff=False)
    package = create_package()

    response = client.post("/api/pricing/calculate", _calculation_body(package, arrivalDate="2025-04-03"), format="json")

    assert response.status_code == 200
    assert response.json() == {
        "isOnRequest": True,
        "tierUsed": {"index": 0, "label": "6-11 People"},
        "periodUsed": {"period": "Easter", "periodType": "special"},
    }


@pytest.mark.django_db
def test_calculate_resolution_failure_has_error_code():
    client, _ = _client("calc_duration", staff=False)
    package = create_package()

    response = client.post("/api/pricing/calculate", _calculation_body(package, numberOfNights=5), format="json")

    assert response.status_code == 400
    assert response.json()["errorCode"] == "INVALID_DURATION"
    assert "available: 2, 3, 4" in response.json()["message"]


@pytest.mark.django_db
def test_calculate_unknown_package_is_404():
    client, _ = _client("calc_missing", staff=False)
    package = create_package(status="deleted")

    response = client.post("/api/pricing/calculate", _calculation_body(package), format="json")

    assert response.status_code == 404
    assert response.json()["errorCode"] == "PACKAGE_NOT_FOUND"


@pytest.mark.django_db
def test_calculate_validates_input_before_lookup():
    client, _ = _client("calc_invalid", staff=False)
    package = create_package()

    response = client.post(
        "/api/pricing/calculate",
        _calculation_body(package, numberOfPeople=0, arrivalDate="15/01/2025"),
        format="json",
    )

    assert response.status_code == 400
    body = response.json()
    assert body["detail"] == "validation_error"
    assert set(body["errors"]) == {"numberOfPeople", "arrivalDate"}


@pytest.mark.django_db
def test_calculate_requires_login():
    package = create_package()
    response = APIClient().post("/api/pricing/calculate", _calculation_body(package), format="json")
    assert response.status_code == 403


@pytest.mark.django_db
def test_quote_endpoints_are_staff_only():
    client, user = _client("not_staff", staff=False)
    quote = create_quote(user)
    response = client.post(f"/api/quotes/{quote.id}/unlink-package", {}, format="json")
    assert response.status_code == 403


@pytest.mark.django_db
def test_quote_price_lifecycle_over_api():
    client, user = _client("operator")
    package = create_package()
    publish_package_version(package, user=user)
    quote = create_quote(user)

    linked = client.post(f"/api/quotes/{quote.id}/link-package", {"packageId": str(package.id)}, format="json")
    assert linked.status_code == 200
    assert linked.json()["sync_status"] == "synced"
    assert linked.json()["total_price"] == "4400.00"
    assert linked.json()["reference"] == quote.reference
    assert linked["X-Request-ID"]

    custom = client.post(f"/api/quotes/{quote.id}/price", {"price": "4000"}, format="json")
    assert custom.status_code == 200
    assert custom.json()["sync_status"] == "custom"
    assert custom.json()["price_history"][-1]["reason"] == "manual_override"

    edited = client.post(f"/api/quotes/{quote.id}/parameters", {"number_of_people": 9}, format="json")
    assert edited.json()["sync_status"] == "out-of-sync"
    assert edited.json()["total_price"] == "4000.00"

    reset = client.post(f"/api/quotes/{quote.id}/reset-price", {}, format="json")
    assert reset.json()["sync_status"] == "synced"
    assert reset.json()["total_price"] == "4950.00"

    unlinked = client.post(f"/api/quotes/{quote.id}/unlink-package", {}, format="json")
    assert unlinked.json()["sync_status"] == "unlinked"
    assert unlinked.json()["linked_package"] is None
    assert unlinked.json()["total_price"] == "4950.00"


@pytest.mark.django_db
def test_link_with_uncovered_parameters_reports_error_state():
    client, user = _client("operator_gap")
    package = create_package()
    quote = create_quote(user, number_of_nights=5)

    response = client.post(f"/api/quotes/{quote.id}/link-package", {"packageId": str(package.id)}, format="json")

    assert response.status_code == 200
    body = response.json()
    assert body["sync_status"] == "error"
    assert body["error"]["code"] == "INVALID_DURATION"
    assert body["linked_package"] is None


@pytest.mark.django_db
def test_link_inactive_package_is_rejected():
    client, user = _client("operator_inactive")
    package = create_package(status="inactive")
    quote = create_quote(user)

    response = client.post(f"/api/quotes/{quote.id}/link-package", {"packageId": str(package.id)}, format="json")

    assert response.status_code == 400
    assert response.json()["errorCode"] == "PACKAGE_INACTIVE"


@pytest.mark.django_db
def test_parameters_endpoint_needs_a_field():
    client, user = _client("operator_empty")
    quote = create_quote(user)
    response = client.post(f"/api/quotes/{quote.id}/parameters", {}, format="json")
    assert response.status_code == 400
    assert response.json()["detail"] == "validation_error"


@pytest.mark.django_db
def test_negative_manual_price_is_rejected():
    client, user = _client("operator_negative")
    quote = create_quote(user)
    response = client.post(f"/api/quotes/{quote.id}/price", {"price": "-1"}, format="json")
    assert response.status_code == 400
    assert "price" in response.json()["errors"]


@pytest.mark.django_db
def test_recalculate_compares_without_applying():
    client, user = _client("operator_compare")
    package = create_package()
    publish_package_version(package, user=user)
    quote = create_quote(user)
    client.post(f"/api/quotes/{quote.id}/link-package", {"packageId": str(package.id)}, format="json")
    matrix = package.pricing_matrix
    january = next(period for period in matrix if period["period"] == "January")
    next(point for point in january["prices"] if point["tier_index"] == 0 and point["nights"] == 3)["price"] = "600"
    SuperPackage.objects.filter(pk=package.pk).update(pricing_matrix=matrix)
    publish_package_version(package, user=user)

    response = client.post(f"/api/quotes/{quote.id}/recalculate-price", {}, format="json")

    assert response.status_code == 200
    body = response.json()
    assert body["comparison"] == {
        "oldPrice": 4400.0,
        "newPrice": 4800.0,
        "priceDifference": 400.0,
        "percentageChange": 9.09,
        "currency": "GBP",
        "isOnRequest": False,
    }
    assert body["packageVersionChanged"] is True
    assert body["packageInfo"] == {"linkedVersion": 1, "currentVersion": 2, "versionChanged": True}
    quote.refresh_from_db()
    assert quote.total_price == Decimal("4400.00")


@pytest.mark.django_db
def test_recalculate_unlinked_quote_is_rejected():
    client, user = _client("operator_unlinked")
    quote = create_quote(user)
    response = client.post(f"/api/quotes/{quote.id}/recalculate-price", {}, format="json")
    assert response.status_code == 400
    assert response.json()["errorCode"] == "NO_LINKED_PACKAGE"


@pytest.mark.django_db
def test_healthz():
    assert APIClient().get("/healthz/").content == b"ok"
