"""Unit tests for booking price quotes."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from apps.bookings.domain.pricing import quote, slot_price
from shared.domain.value_objects import Money, TimeSlot

DAY = date(2031, 3, 3)
HOURLY = Money(Decimal("50000"), "UZS")
FULL_DAY = Money(Decimal("300000"), "UZS")


class SlotPriceTests(SimpleTestCase):
    def test_hourly_rate(self) -> None:
        price = slot_price(TimeSlot(DAY, "10:00", "13:00"), HOURLY, FULL_DAY, 8)

        self.assertEqual(price.amount, Decimal("150000"))

    def test_half_hours_are_charged_pro_rata(self) -> None:
        price = slot_price(TimeSlot(DAY, "10:00", "11:30"), HOURLY)

        self.assertEqual(price.amount, Decimal("75000"))

    def test_full_day_rate_with_hourly_remainder(self) -> None:
        price = slot_price(TimeSlot(DAY, "08:00", "18:00"), HOURLY, FULL_DAY, 8)

        self.assertEqual(price.amount, Decimal("400000"))

    def test_no_full_day_price_falls_back_to_hourly(self) -> None:
        price = slot_price(TimeSlot(DAY, "08:00", "18:00"), HOURLY, None, 8)

        self.assertEqual(price.amount, Decimal("500000"))


class QuoteTests(SimpleTestCase):
    def test_protection_plan_fee(self) -> None:
        result = quote(
            [TimeSlot(DAY, "10:00", "13:00")],
            HOURLY,
            protection_selected=True,
            protection_rate=Decimal("0.20"),
        )

        self.assertEqual(result.base_total.amount, Decimal("150000.00"))
        self.assertEqual(result.protection_fee.amount, Decimal("30000.00"))
        self.assertEqual(result.final_total.amount, Decimal("180000.00"))

    def test_without_protection_plan(self) -> None:
        result = quote([TimeSlot(DAY, "10:00", "11:00"), TimeSlot(DAY, "14:00", "16:00")], HOURLY)

        fields = result.as_fields()
        self.assertEqual(fields["base_total"], Decimal("150000.00"))
        self.assertEqual(fields["protection_plan_fee"], Decimal("0.00"))
        self.assertEqual(fields["final_total"], Decimal("150000.00"))
        self.assertEqual(fields["currency"], "UZS")
