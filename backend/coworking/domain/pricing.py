"""Booking price calculation. All money math uses Decimal quantized to cents."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

CENTS = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def duration_hours(start: datetime, end: datetime) -> Decimal:
    """Exact duration in hours; fractional hours are kept, not rounded up."""
    return Decimal(str((end - start).total_seconds())) / Decimal(3600)


def calculate_price(hourly_rate: Number, start: datetime, end: datetime) -> Decimal:
    if end <= start:
        raise ValueError("end must be after start")
    return to_money(Decimal(str(hourly_rate)) * duration_hours(start, end))


def price_difference(
    hourly_rate: Number,
    old_start: datetime,
    old_end: datetime,
    new_start: datetime,
    new_end: datetime,
) -> Decimal:
    """Positive when the new interval costs more than the old one."""
    return calculate_price(hourly_rate, new_start, new_end) - calculate_price(
        hourly_rate, old_start, old_end
    )


def to_minor_units(amount: Number) -> int:
    """Convert a currency amount to integer cents for the payment provider."""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))
