"""
Booking price quotes.

Prices are always computed server-side from the room's rates. A slot at
least ``full_day_hours`` long is charged the full-day price for every whole
multiple of the threshold and the hourly rate for the remainder.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Sequence

from shared.domain.value_objects import Money, TimeSlot


@dataclass(frozen=True)
class PriceQuote:
    base_total: Money
    protection_fee: Money
    final_total: Money

    def as_fields(self) -> dict:
        return {
            "base_total": self.base_total.amount,
            "protection_plan_fee": self.protection_fee.amount,
            "final_total": self.final_total.amount,
            "currency": self.final_total.currency,
        }


def _hours(duration: timedelta) -> Decimal:
    return Decimal(int(duration.total_seconds() // 60)) / Decimal(60)


def slot_price(
    slot: TimeSlot,
    hourly_price: Money,
    full_day_price: Money | None = None,
    full_day_hours: int = 0,
) -> Money:
    hours = _hours(slot.duration)
    if full_day_price is None or not full_day_hours or hours < full_day_hours:
        return hourly_price * hours
    full_days = int(hours // full_day_hours)
    remainder = hours - full_days * full_day_hours
    return full_day_price * full_days + hourly_price * remainder


def quote(
    slots: Sequence[TimeSlot],
    hourly_price: Money,
    *,
    full_day_price: Money | None = None,
    full_day_hours: int = 0,
    protection_selected: bool = False,
    protection_rate: Decimal = Decimal("0.20"),
) -> PriceQuote:
    base = Money.zero(hourly_price.currency)
    for slot in slots:
        base = base + slot_price(slot, hourly_price, full_day_price, full_day_hours)
    base = base.quantized()
    fee = (base * protection_rate).quantized() if protection_selected else Money.zero(base.currency)
    return PriceQuote(base_total=base, protection_fee=fee, final_total=(base + fee).quantized())
