from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ONE_CENT = Decimal("0.01")
PRICE_TOLERANCE = ONE_CENT


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(ONE_CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("Boolean is not a money amount")
    try:
        decimal_value = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Not a money amount: {value!r}") from exc
    if not decimal_value.is_finite():
        raise ValueError(f"Not a money amount: {value!r}")
    return decimal_value


def money_str(value: Decimal | int | float | str) -> str:
    return f"{quantize_money(to_decimal(value))}"


def prices_match(left: Decimal, right: Decimal) -> bool:
    # Amounts at most one cent apart are the same price.
    return abs(to_decimal(left) - to_decimal(right)) <= PRICE_TOLERANCE
