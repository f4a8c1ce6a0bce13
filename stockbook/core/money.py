from decimal import Decimal, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
RATIO_QUANT = Decimal("0.0001")
ZERO_MONEY = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def safe_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator rounded to 4 places; 0 when the denominator is 0."""
    if denominator == 0:
        return Decimal("0.0000")
    return (Decimal(numerator) / Decimal(denominator)).quantize(RATIO_QUANT, rounding=ROUND_HALF_UP)


def unit_cost(total_cost: Decimal | int | float | str, quantity: int) -> Decimal:
    if quantity <= 0:
        return ZERO_MONEY
    return to_money(Decimal(str(total_cost)) / quantity)
