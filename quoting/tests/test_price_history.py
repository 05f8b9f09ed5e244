from decimal import Decimal

import pytest

from quoting.services.money import money_str, prices_match, quantize_money, to_decimal
from quoting.services.price_history import PriceChangeReason, PriceHistory
from quoting.tests.package_data import FIXED_NOW


def test_history_only_grows():
    history = PriceHistory()
    history.append(Decimal("4400"), PriceChangeReason.PACKAGE_SELECTION, user_id="7", timestamp=FIXED_NOW)
    history.append(Decimal("4000"), PriceChangeReason.MANUAL_OVERRIDE, user_id="7", timestamp=FIXED_NOW)

    assert len(history) == 2
    assert history.latest.reason == PriceChangeReason.MANUAL_OVERRIDE
    assert [entry.price for entry in history] == [Decimal("4400"), Decimal("4000")]
    assert not hasattr(history, "remove")
    assert not hasattr(history, "clear")


def test_entries_are_a_read_only_view():
    history = PriceHistory()
    history.append(Decimal("10"), "recalculation", user_id="1", timestamp=FIXED_NOW)
    entries = history.entries
    assert isinstance(entries, tuple)
    with pytest.raises(AttributeError):
        entries[0].price = Decimal("0")


def test_payload_round_trip_keeps_order_and_reasons():
    history = PriceHistory()
    history.append(Decimal("4400"), PriceChangeReason.PACKAGE_SELECTION, user_id="7", timestamp=FIXED_NOW)
    history.append(Decimal("4000"), PriceChangeReason.MANUAL_OVERRIDE, user_id="7", timestamp=FIXED_NOW)

    payload = history.to_payload()
    assert payload[1] == {
        "price": "4000.00",
        "reason": "manual_override",
        "timestamp": FIXED_NOW.isoformat(),
        "user_id": "7",
    }
    restored = PriceHistory.from_payload(payload)
    assert restored.entries == history.entries


def test_unknown_reason_is_rejected():
    with pytest.raises(ValueError):
        PriceHistory().append(Decimal("1"), "typo", user_id="1")


def test_prices_within_a_cent_match():
    assert prices_match(Decimal("4400.00"), Decimal("4400.01"))
    assert not prices_match(Decimal("4400.00"), Decimal("4400.02"))


def test_money_helpers():
    assert quantize_money(Decimal("2.675")) == Decimal("2.68")
    assert money_str(12) == "12.00"
    with pytest.raises(ValueError):
        to_decimal("Infinity")
