# fixed-point euro arithmetic; storage and accumulation use integer cents
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Convert to Decimal; floats go through repr so 2.675 stays 2.675."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round2(value: Number) -> Decimal:
    """Round to cents, half away from zero (no banker's rounding)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    return int(round2(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENT)


def line_total(unit_price: Number, qty: int) -> Decimal:
    return round2(to_decimal(unit_price) * qty)


def split_tax(gross: Number, rate: Number) -> tuple[Decimal, Decimal]:
    """Return (tax, net) for a tax-inclusive gross amount.

    Net is the residual gross - tax, so tax + net == gross always holds.
    """
    gross = round2(gross)
    rate = to_decimal(rate)
    tax = round2(gross * rate / (1 + rate))
    net = round2(gross - tax)
    return tax, net


def euro(amount: Number) -> str:
    """Format like the register display: '€ 1.234,50'."""
    cents = to_cents(amount)
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    grouped = f"{whole:,}".replace(",", ".")
    return f"{sign}€ {grouped},{frac:02d}"


def percent_label(rate: Number) -> str:
    pct = (to_decimal(rate) * 100).normalize()
    return f"{pct:f}%"
