from datetime import date
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest

from quoting.models import SuperPackage, SuperPackageVersion
from quoting.services.errors import PackageDataError, PackageNotFoundError, PackageStoreUnavailableError
from quoting.services.package_service import publish_package_version
from quoting.services.package_store import DatabasePackageStore, HttpPackageStore, get_package_store
from quoting.services.package_validation import validate_package_payload
from quoting.services.pricing.calculator import calculate_price
from quoting.services.pricing.types import Numeric
from quoting.tests.package_data import create_package, scenario_parameters, scenario_payload


def _set_january_price(package: SuperPackage, tier_index: int, nights: int, price: str) -> None:
    matrix = package.pricing_matrix
    january = next(period for period in matrix if period["period"] == "January")
    for point in january["prices"]:
        if point["tier_index"] == tier_index and point["nights"] == nights:
            point["price"] = price
    package.pricing_matrix = matrix
    package.save()


@pytest.mark.django_db
def test_unpublished_package_is_served_from_live_fields():
    package = create_package()
    snapshot = DatabasePackageStore().get_package(str(package.id))

    assert snapshot.package_id == str(package.id)
    assert snapshot.version == 1
    assert calculate_price(snapshot, scenario_parameters()).total_price == Decimal("4400.00")


@pytest.mark.django_db
def test_published_versions_stay_frozen():
    package = create_package()
    publish_package_version(package)
    _set_january_price(package, 0, 3, "600")
    publish_package_version(package)

    store = DatabasePackageStore()
    latest = store.get_package(str(package.id))
    pinned = store.get_package(str(package.id), version=1)

    assert latest.version == 2
    assert calculate_price(latest, scenario_parameters()).total_price == Decimal("4800.00")
    assert calculate_price(pinned, scenario_parameters()).total_price == Decimal("4400.00")
    package.refresh_from_db()
    assert package.version == 2


@pytest.mark.django_db
def test_unknown_version_is_not_found():
    package = create_package()
    publish_package_version(package)
    with pytest.raises(PackageNotFoundError):
        DatabasePackageStore().get_package(str(package.id), version=7)


@pytest.mark.django_db
@pytest.mark.parametrize("package_id", ["not-a-uuid", "1b7b8a3e-2d7a-4d6c-9f55-2f0f9c3f0e11"])
def test_missing_package_is_not_found(package_id):
    with pytest.raises(PackageNotFoundError) as excinfo:
        DatabasePackageStore().get_package(package_id)
    assert excinfo.value.as_payload()["errorCode"] == "PACKAGE_NOT_FOUND"


@pytest.mark.django_db
def test_deleted_package_is_not_found():
    package = create_package(status="deleted")
    with pytest.raises(PackageNotFoundError):
        DatabasePackageStore().get_package(str(package.id))


@pytest.mark.django_db
def test_status_follows_the_live_package():
    package = create_package()
    publish_package_version(package)
    SuperPackage.objects.filter(pk=package.pk).update(status=SuperPackage.Status.INACTIVE)

    snapshot = DatabasePackageStore().get_package(str(package.id), version=1)
    assert not snapshot.is_active


@pytest.mark.django_db
def test_publishing_invalid_pricing_is_refused():
    package = create_package(duration_options=[])
    with pytest.raises(PackageDataError) as excinfo:
        publish_package_version(package)
    assert "duration options" in excinfo.value.context["errors"][0]
    assert not SuperPackageVersion.objects.exists()


@pytest.mark.django_db
def test_republishing_queues_linked_quote_audit(django_capture_on_commit_callbacks):
    package = create_package()
    with patch("quoting.tasks.audit_linked_quotes_task.delay") as mocked_delay:
        with django_capture_on_commit_callbacks(execute=True):
            publish_package_version(package)
        mocked_delay.assert_not_called()
        with django_capture_on_commit_callbacks(execute=True):
            publish_package_version(package)
    mocked_delay.assert_called_once_with(str(package.id))


@pytest.mark.django_db
def test_audit_can_be_switched_off(monkeypatch, django_capture_on_commit_callbacks):
    monkeypatch.setenv("QUOTING_AUDIT_ON_PUBLISH", "false")
    package = create_package()
    publish_package_version(package)
    with patch("quoting.tasks.audit_linked_quotes_task.delay") as mocked_delay:
        with django_capture_on_commit_callbacks(execute=True):
            publish_package_version(package)
    mocked_delay.assert_not_called()


def test_validation_reports_overlaps_as_warnings():
    payload = scenario_payload(
        group_size_tiers=[
            {"label": "Small", "min_people": 1, "max_people": 10},
            {"label": "Large", "min_people": 8, "max_people": 30},
        ]
    )
    payload["pricing_matrix"].append(
        {
            "period": "Bank holiday",
            "period_type": "special",
            "start_date": "2025-04-05",
            "end_date": "2025-04-08",
            "prices": [],
        }
    )
    report = validate_package_payload(payload)

    assert any("Small" in warning and "overlap" in warning for warning in report.warnings)
    assert any("Easter" in warning and "Bank holiday" in warning for warning in report.warnings)
    assert any("missing 6 price point(s)" in warning for warning in report.warnings)


def test_validation_rejects_structural_errors():
    payload = scenario_payload(
        group_size_tiers=[{"label": f"T{index}", "min_people": index + 1, "max_people": index + 1} for index in range(11)]
    )
    payload["pricing_matrix"][0]["end_date"] = "2025-03-30"
    payload["pricing_matrix"][1]["prices"].append({"tier_index": 0, "nights": 3, "price": "1"})

    with pytest.raises(PackageDataError) as excinfo:
        validate_package_payload(payload)
    errors = excinfo.value.context["errors"]
    assert any("between 1 and 10 group size tiers" in error for error in errors)
    assert any("ends before it starts" in error for error in errors)
    assert any("more than one price" in error for error in errors)


def test_validation_warns_about_unmatchable_month_label():
    payload = scenario_payload()
    payload["pricing_matrix"][1]["period"] = "Winter"
    report = validate_package_payload(payload)
    assert any('"Winter" is not a month name' in warning for warning in report.warnings)


def test_http_store_reads_package_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=scenario_payload(version=4))

    client = httpx.Client(transport=httpx.MockTransport(handler), headers={"Authorization": "Bearer secret"})
    with patch("quoting.services.package_store.build_http_client", return_value=client) as mocked_build:
        snapshot = HttpPackageStore("https://packages.test/", token="secret").get_package("pkg-lakes", version=4)

    mocked_build.assert_called_once_with(token="secret")
    assert seen["url"] == "https://packages.test/packages/pkg-lakes?version=4"
    assert snapshot.version == 4
    assert snapshot.periods[1].price_points[1].price == Numeric(Decimal("550"))


def test_http_store_maps_404_to_not_found():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    with patch("quoting.services.package_store.build_http_client", return_value=client):
        with pytest.raises(PackageNotFoundError):
            HttpPackageStore("https://packages.test").get_package("missing")


@pytest.mark.parametrize(
    "response",
    [httpx.Response(502), httpx.Response(200, content=b"<html>")],
)
def test_http_store_failures_are_retryable(response):
    client = httpx.Client(transport=httpx.MockTransport(lambda request: response))
    with patch("quoting.services.package_store.build_http_client", return_value=client):
        with pytest.raises(PackageStoreUnavailableError) as excinfo:
            HttpPackageStore("https://packages.test").get_package("pkg-lakes")
    assert excinfo.value.is_retryable


def test_store_selection_follows_environment(monkeypatch):
    monkeypatch.delenv("QUOTING_PACKAGE_STORE_URL", raising=False)
    assert isinstance(get_package_store(), DatabasePackageStore)
    monkeypatch.setenv("QUOTING_PACKAGE_STORE_URL", "https://packages.test/")
    store = get_package_store()
    assert isinstance(store, HttpPackageStore)
    assert store.base_url == "https://packages.test"


def test_arrival_on_easter_in_remote_package_is_on_request():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=scenario_payload())

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with patch("quoting.services.package_store.build_http_client", return_value=client):
        snapshot = HttpPackageStore("https://packages.test").get_package("pkg-lakes")
    assert calculate_price(snapshot, scenario_parameters(arrival=date(2025, 4, 2))).is_on_request
