"""18-decimal fixed-point helpers.

Every amount, price and rate inside the pipeline is an ``int`` scaled by
``WAD``. Divisions truncate toward zero so rounding never manufactures profit.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, localcontext

WORKING_DECIMALS = 18
WAD = 10**WORKING_DECIMALS


def div_trunc(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero (``//`` floors negatives)."""
    if denominator == 0:
        raise ZeroDivisionError("fixed_point_division_by_zero")
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def wmul(a: int, b: int) -> int:
    """Multiply two wad values."""
    return div_trunc(a * b, WAD)


def wdiv(a: int, b: int) -> int:
    """Divide two wad values."""
    return div_trunc(a * WAD, b)


def rescale(value: int, from_decimals: int, to_decimals: int = WORKING_DECIMALS) -> int:
    """Move an integer amount between decimal precisions."""
    if from_decimals < 0 or to_decimals < 0:
        raise ValueError(f"negative_decimals: {from_decimals}->{to_decimals}")
    if from_decimals == to_decimals:
        return value
    if from_decimals < to_decimals:
        return value * 10 ** (to_decimals - from_decimals)
    return div_trunc(value, 10 ** (from_decimals - to_decimals))


def to_wad(value: Decimal | int | str) -> int:
    """Convert a human-readable decimal (``"1.5"``) to wad, truncating extra digits."""
    with localcontext() as ctx:
        ctx.prec = 80
        return int(Decimal(value).scaleb(WORKING_DECIMALS))


def from_wad(value: int) -> Decimal:
    """Convert wad back to an exact ``Decimal``."""
    with localcontext() as ctx:
        ctx.prec = 80
        return Decimal(value).scaleb(-WORKING_DECIMALS)


def format_wad(value: int, places: int = 6) -> str:
    """Render a wad value for logs, e.g. ``format_wad(15 * 10**15) == "0.015000"``."""
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        ctx.prec = 80
        return str(from_wad(value).quantize(quantum, rounding=ROUND_DOWN))
