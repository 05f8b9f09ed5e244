from datetime import date
from decimal import Decimal

import pytest

from quoting.services.errors import InvalidParametersError, PackageDataError
from quoting.services.pricing.calculator import PriceCalculation, calculate_price
from quoting.services.pricing.types import ON_REQUEST, QuoteParameters, ResolutionCode, ResolutionFailure
from quoting.tests.package_data import scenario_package, scenario_parameters


def test_january_group_of_eight_for_three_nights():
    result = calculate_price(scenario_package(), scenario_parameters())

    assert isinstance(result, PriceCalculation)
    assert result.total_price == Decimal("4400.00")
    assert result.price_per_person == Decimal("550.00")
    assert result.tier_used.label == "6-11 People"
    assert result.period_used.period == "January"
    assert result.as_payload() == {
        "isOnRequest": False,
        "tierUsed": {"index": 0, "label": "6-11 People"},
        "periodUsed": {"period": "January", "periodType": "month"},
        "pricePerPerson": Decimal("550.00"),
        "numberOfPeople": 8,
        "totalPrice": Decimal("4400.00"),
        "currency": "GBP",
    }


def test_total_is_per_person_times_people():
    for people in (6, 11, 12, 40):
        result = calculate_price(scenario_package(), scenario_parameters(people=people, nights=4))
        assert result.total_price == result.price_per_person * people


def test_easter_arrival_is_on_request():
    result = calculate_price(scenario_package(), scenario_parameters(arrival=date(2025, 4, 3)))

    assert isinstance(result, PriceCalculation)
    assert result.is_on_request
    assert result.price is ON_REQUEST
    assert result.total_price is None
    payload = result.as_payload()
    assert payload["isOnRequest"] is True
    assert payload["periodUsed"] == {"period": "Easter", "periodType": "special"}
    assert "totalPrice" not in payload


def test_unavailable_duration_lists_the_options():
    result = calculate_price(scenario_package(), scenario_parameters(nights=5))

    assert isinstance(result, ResolutionFailure)
    assert result.code == ResolutionCode.INVALID_DURATION
    assert "(available: 2, 3, 4)" in result.message
    assert result.as_payload()["errorCode"] == "INVALID_DURATION"


def test_too_few_people_fails_before_period_lookup():
    result = calculate_price(scenario_package(), scenario_parameters(people=2, arrival=date(2025, 8, 1)))
    assert result.code == ResolutionCode.NO_TIER


def test_uncovered_month_fails():
    result = calculate_price(scenario_package(), scenario_parameters(arrival=date(2025, 8, 1)))
    assert result.code == ResolutionCode.NO_PERIOD


def test_missing_cell_fails():
    package = scenario_package(
        pricing_matrix=[
            {"period": "January", "period_type": "month", "prices": [{"tier_index": 1, "nights": 3, "price": 480}]},
        ]
    )
    result = calculate_price(package, scenario_parameters())
    assert result.code == ResolutionCode.NO_PRICE_POINT


def test_fractional_prices_round_half_up_to_cents():
    package = scenario_package(
        pricing_matrix=[
            {"period": "January", "period_type": "month", "prices": [{"tier_index": 0, "nights": 3, "price": "99.995"}]},
        ]
    )
    result = calculate_price(package, scenario_parameters(people=7))
    assert result.price_per_person == Decimal("100.00")
    assert result.total_price == Decimal("700.00")


def test_package_without_tiers_is_malformed():
    with pytest.raises(PackageDataError):
        calculate_price(scenario_package(group_size_tiers=[]), scenario_parameters())


def test_inverted_tier_range_is_malformed():
    tiers = [{"label": "Odd", "min_people": 10, "max_people": 4}]
    with pytest.raises(PackageDataError):
        calculate_price(scenario_package(group_size_tiers=tiers), scenario_parameters())


def test_parameters_are_validated_before_calculation():
    with pytest.raises(InvalidParametersError) as excinfo:
        QuoteParameters.parse(0, "three", "2025-02-30")
    assert set(excinfo.value.field_errors) == {"number_of_people", "number_of_nights", "arrival_date"}


def test_parameters_parse_strings():
    assert QuoteParameters.parse("8", "3", "2025-01-15") == scenario_parameters()


def test_parameters_replace_rejects_unknown_fields():
    with pytest.raises(InvalidParametersError):
        scenario_parameters().replace(rooms=2)
