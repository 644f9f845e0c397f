"""Rounding policy for whole-unit currency amounts"""

from decimal import Decimal, ROUND_HALF_UP


def round_half_up(numerator: int, denominator: int) -> int:
    """
    Divide and round to the nearest whole unit, halves rounding up.

    Python's round() uses banker's rounding (round(2.5) == 2); billing amounts
    always round .5 upward, so the division runs in Decimal.

    Example:
        round_half_up(5, 2) -> 3
        round_half_up(40000, 12) -> 3333
    """
    if denominator == 0:
        raise ZeroDivisionError("Cannot split an amount into zero parts")
    quotient = Decimal(numerator) / Decimal(denominator)
    return int(quotient.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
