"""Tiered cancellation refund policy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from .pricing import Number, to_money

FULL_REFUND_HOURS = 24
PARTIAL_REFUND_HOURS = 12

FULL = Decimal("1")
HALF = Decimal("0.5")
NONE = Decimal("0")


@dataclass(frozen=True)
class RefundDecision:
    fraction: Decimal
    refund_amount: Decimal
    hours_until_start: float
    policy_basis: str = ""

    def to_payload(self) -> dict[str, object]:
        return {
            "fraction": str(self.fraction),
            "refund_amount": str(self.refund_amount),
            "hours_until_start": round(self.hours_until_start, 2),
            "policy_basis": self.policy_basis,
        }


def hours_until(start: datetime, now: datetime) -> float:
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (start - now).total_seconds() / 3600


def refund_fraction(hours_until_start: float) -> Decimal:
    if hours_until_start >= FULL_REFUND_HOURS:
        return FULL
    if hours_until_start >= PARTIAL_REFUND_HOURS:
        return HALF
    return NONE


def evaluate_refund(total_amount: Number, start: datetime, now: datetime) -> RefundDecision:
    hours = hours_until(start, now)
    fraction = refund_fraction(hours)
    if fraction == FULL:
        basis = f">={FULL_REFUND_HOURS} hours before start: full refund"
    elif fraction == HALF:
        basis = f"{PARTIAL_REFUND_HOURS}-{FULL_REFUND_HOURS} hours before start: 50% refund"
    else:
        basis = f"<{PARTIAL_REFUND_HOURS} hours before start: no refund"
    return RefundDecision(
        fraction=fraction,
        refund_amount=to_money(Decimal(str(total_amount)) * fraction),
        hours_until_start=hours,
        policy_basis=basis,
    )
