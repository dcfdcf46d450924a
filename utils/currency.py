# utils/currency.py
"""
Decimal arithmetic helpers for every monetary value in the simulator.

All math runs against a single explicit context (MONEY_CONTEXT) so that a
40-year compounding run never drifts the way float math does. Floats are only
produced at the display boundary (to_float).
"""
from decimal import Decimal, Context, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Union

Number = Union[Decimal, int, float, str, None]

# Created once, never mutated. Every helper below takes it explicitly.
MONEY_CONTEXT = Context(prec=28, rounding=ROUND_HALF_UP)

ZERO = Decimal(0)
ONE = Decimal(1)


def to_decimal(value: Number) -> Decimal:
    """
    Converts a number, numeric string or None into a Decimal.
    Floats go through their shortest repr so 0.05 stays 0.05.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def to_float(value: Number) -> float:
    """Display-only conversion. Never feed the result back into the math."""
    return float(to_decimal(value))


def add(*values: Number, ctx: Context = MONEY_CONTEXT) -> Decimal:
    total = ZERO
    for val in values:
        total = ctx.add(total, to_decimal(val))
    return total


def subtract(a: Number, b: Number, ctx: Context = MONEY_CONTEXT) -> Decimal:
    return ctx.subtract(to_decimal(a), to_decimal(b))


def multiply(a: Number, b: Number, ctx: Context = MONEY_CONTEXT) -> Decimal:
    return ctx.multiply(to_decimal(a), to_decimal(b))


def divide(a: Number, b: Number, ctx: Context = MONEY_CONTEXT) -> Decimal:
    """Zero-safe division: anything divided by zero is 0."""
    divisor = to_decimal(b)
    if divisor == 0:
        return ZERO
    return ctx.divide(to_decimal(a), divisor)


def minimum(*values: Number) -> Decimal:
    if not values:
        return ZERO
    return min(to_decimal(v) for v in values)


def maximum(*values: Number) -> Decimal:
    if not values:
        return ZERO
    return max(to_decimal(v) for v in values)


def total(values: Iterable[Number], ctx: Context = MONEY_CONTEXT) -> Decimal:
    return add(*values, ctx=ctx)


def power(base: Number, exponent: int, ctx: Context = MONEY_CONTEXT) -> Decimal:
    """Integer power by repeated multiplication (exponent >= 0)."""
    result = ONE
    factor = to_decimal(base)
    for _ in range(exponent):
        result = ctx.multiply(result, factor)
    return result


def compound_growth(principal: Number, rate: Number, periods: int,
                    ctx: Context = MONEY_CONTEXT) -> Decimal:
    """principal * (1 + rate) ** periods"""
    growth_factor = ctx.add(ONE, to_decimal(rate))
    return ctx.multiply(to_decimal(principal), power(growth_factor, periods, ctx))


def apply_growth(value: Number, rate: Number, ctx: Context = MONEY_CONTEXT) -> Decimal:
    """value * (1 + rate)"""
    return ctx.multiply(to_decimal(value), ctx.add(ONE, to_decimal(rate)))


def round_money(value: Number, places: int = 2) -> Decimal:
    return to_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


# ----------------------------------------------------------------------
# Input cleaning
# ----------------------------------------------------------------------

def clean_currency(val) -> Decimal:
    """
    Cleans a currency string (e.g., "$140,000.00") into a Decimal (140000.00).
    Empty input is 0.
    """
    if val is None or val == "":
        return ZERO
    if isinstance(val, (int, float, Decimal)):
        return to_decimal(val)
    cleaned = str(val).replace("$", "").replace(",", "").strip()
    if not cleaned:
        return ZERO
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Not a currency amount: {val!r}")


def parse_percent(value: str) -> Decimal:
    """'5%' -> 0.05, '0.05' -> 0.05"""
    trimmed = value.strip()
    try:
        if trimmed.endswith("%"):
            return MONEY_CONTEXT.divide(Decimal(trimmed[:-1].strip()), Decimal(100))
        return Decimal(trimmed)
    except InvalidOperation:
        raise ValueError(f"Not a percentage: {value!r}")


def clean_percent(val) -> Decimal:
    """
    Accepts 5, "5", "5%" or 0.05 and returns 0.05.
    Bare numbers above 1 are read as whole percents.
    """
    if val is None or val == "":
        return ZERO
    if isinstance(val, str):
        if val.strip().endswith("%"):
            return parse_percent(val)
        val = parse_percent(val)
    rate = to_decimal(val)
    if rate > 1:
        return MONEY_CONTEXT.divide(rate, Decimal(100))
    return rate
