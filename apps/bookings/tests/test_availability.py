"""Unit tests for the slot availability engine."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from django.test import SimpleTestCase

from apps.bookings.domain.availability import (
    ReasonCode,
    Reservation,
    ScheduleConfig,
    busy_intervals,
    cooldown_zone,
    describe,
    free_windows,
    is_admissible,
    weekday_number,
)
from shared.domain.value_objects import Interval, TimeSlot, at_minutes

SUNDAY = date(2031, 3, 2)
MONDAY = date(2031, 3, 3)
TUESDAY = date(2031, 3, 4)


def slot(day: date, start: str, end: str) -> TimeSlot:
    return TimeSlot(day, start, end)


def held(*slots: TimeSlot, status: str = "confirmed", expires_at=None, booking_id: int = 1) -> Reservation:
    return Reservation(slots=slots, status=status, expires_at=expires_at, booking_id=booking_id)


class WeekdayNumberTests(SimpleTestCase):
    def test_sunday_is_zero(self) -> None:
        self.assertEqual(weekday_number(SUNDAY), 0)
        self.assertEqual(weekday_number(MONDAY), 1)
        self.assertEqual(weekday_number(date(2031, 3, 8)), 6)


class MondayCooldownScenarioTests(SimpleTestCase):
    """Monday 09:00-18:00 with a 30 minute cooldown."""

    def setUp(self) -> None:
        self.config = ScheduleConfig.from_raw(
            weekday_hours={"1": {"start": "09:00", "end": "18:00"}},
            cooldown_minutes=30,
        )

    def test_first_booking_is_admitted(self) -> None:
        admission = is_admissible(self.config, [], [slot(MONDAY, "10:00", "11:00")])

        self.assertTrue(admission)
        self.assertIsNone(admission.reason)

    def test_request_inside_cooldown_is_refused(self) -> None:
        existing = [held(slot(MONDAY, "10:00", "11:00"), booking_id=7)]

        admission = is_admissible(self.config, existing, [slot(MONDAY, "11:15", "12:15")])

        self.assertFalse(admission)
        self.assertEqual(admission.reason, ReasonCode.COOLDOWN_CONFLICT)
        self.assertEqual(admission.conflicting_booking_id, 7)

    def test_request_at_cooldown_boundary_is_admitted(self) -> None:
        existing = [held(slot(MONDAY, "10:00", "11:00"))]

        self.assertTrue(is_admissible(self.config, existing, [slot(MONDAY, "11:30", "12:30")]))
        self.assertTrue(is_admissible(self.config, existing, [slot(MONDAY, "09:00", "09:30")]))

    def test_overlap_wins_over_cooldown(self) -> None:
        existing = [held(slot(MONDAY, "10:00", "11:00"))]

        admission = is_admissible(self.config, existing, [slot(MONDAY, "10:45", "12:00")])

        self.assertEqual(admission.reason, ReasonCode.OVERLAP)

    def test_outside_operating_hours(self) -> None:
        admission = is_admissible(self.config, [], [slot(MONDAY, "17:00", "19:00")])

        self.assertEqual(admission.reason, ReasonCode.OUTSIDE_HOURS)

    def test_day_missing_from_hours_is_closed(self) -> None:
        admission = is_admissible(self.config, [], [slot(TUESDAY, "10:00", "11:00")])

        self.assertEqual(admission.reason, ReasonCode.OUTSIDE_HOURS)

    def test_multi_slot_request_is_all_or_nothing(self) -> None:
        existing = [held(slot(MONDAY, "15:00", "16:00"))]
        requested = [slot(MONDAY, "09:00", "10:00"), slot(MONDAY, "15:30", "17:00")]

        admission = is_admissible(self.config, existing, requested)

        self.assertFalse(admission)
        self.assertEqual(admission.slot, requested[1])

    def test_overlapping_slots_within_one_request(self) -> None:
        requested = [slot(MONDAY, "10:00", "12:00"), slot(MONDAY, "11:00", "13:00")]

        admission = is_admissible(self.config, [], requested)

        self.assertEqual(admission.reason, ReasonCode.OVERLAP)

    def test_free_and_busy_map(self) -> None:
        existing = [held(slot(MONDAY, "10:00", "11:00"))]

        busy = busy_intervals(self.config, existing, MONDAY)
        free = free_windows(self.config, existing, MONDAY)

        self.assertEqual(describe(busy, MONDAY), [{"start": "09:30", "end": "11:30"}])
        self.assertEqual(
            describe(free, MONDAY),
            [{"start": "09:00", "end": "09:30"}, {"start": "11:30", "end": "18:00"}],
        )


class BoundaryTests(SimpleTestCase):
    def test_touching_intervals_do_not_conflict_without_cooldown(self) -> None:
        config = ScheduleConfig.from_raw()
        existing = [held(slot(MONDAY, "10:00", "11:00"))]

        self.assertTrue(is_admissible(config, existing, [slot(MONDAY, "11:00", "12:00")]))
        self.assertTrue(is_admissible(config, existing, [slot(MONDAY, "09:00", "10:00")]))

    def test_empty_hours_means_open_around_the_clock(self) -> None:
        config = ScheduleConfig.from_raw()

        self.assertTrue(is_admissible(config, [], [slot(TUESDAY, "00:00", "24:00")]))

    def test_window_closing_at_midnight(self) -> None:
        config = ScheduleConfig.from_raw(weekday_hours={"1": {"start": "18:00", "end": "24:00"}})

        self.assertTrue(is_admissible(config, [], [slot(MONDAY, "20:00", "24:00")]))

    def test_minimum_hours(self) -> None:
        config = ScheduleConfig.from_raw(minimum_hours=2)

        admission = is_admissible(config, [], [slot(MONDAY, "10:00", "11:30")])

        self.assertEqual(admission.reason, ReasonCode.BELOW_MINIMUM_HOURS)
        self.assertTrue(is_admissible(config, [], [slot(MONDAY, "10:00", "12:00")]))

    def test_slot_in_the_past(self) -> None:
        config = ScheduleConfig.from_raw()
        now = datetime(2031, 3, 3, 12, 0)

        admission = is_admissible(config, [], [slot(MONDAY, "11:00", "13:00")], now=now)

        self.assertEqual(admission.reason, ReasonCode.IN_PAST)

    def test_empty_request_is_an_error(self) -> None:
        with self.assertRaises(ValueError):
            is_admissible(ScheduleConfig.from_raw(), [], [])


class MidnightTests(SimpleTestCase):
    def setUp(self) -> None:
        self.config = ScheduleConfig.from_raw(cooldown_minutes=30)
        self.existing = [held(slot(MONDAY, "22:00", "02:00"))]

    def test_slot_crossing_midnight_is_split(self) -> None:
        parts = slot(MONDAY, "22:00", "02:00").intervals()

        self.assertEqual(len(parts), 2)
        self.assertEqual(parts[1].start, at_minutes(TUESDAY, 0))
        self.assertEqual(slot(MONDAY, "22:00", "02:00").duration, timedelta(hours=4))

    def test_next_day_overlap(self) -> None:
        admission = is_admissible(self.config, self.existing, [slot(TUESDAY, "01:00", "03:00")])

        self.assertEqual(admission.reason, ReasonCode.OVERLAP)

    def test_next_day_cooldown(self) -> None:
        admission = is_admissible(self.config, self.existing, [slot(TUESDAY, "02:10", "04:00")])

        self.assertEqual(admission.reason, ReasonCode.COOLDOWN_CONFLICT)
        self.assertTrue(is_admissible(self.config, self.existing, [slot(TUESDAY, "02:30", "04:00")]))

    def test_crossing_into_closed_day_is_outside_hours(self) -> None:
        config = ScheduleConfig.from_raw(weekday_hours={"1": {"start": "00:00", "end": "24:00"}})

        admission = is_admissible(config, [], [slot(MONDAY, "22:00", "01:00")])

        self.assertEqual(admission.reason, ReasonCode.OUTSIDE_HOURS)


class BlockedDayTests(SimpleTestCase):
    def test_blocked_date(self) -> None:
        config = ScheduleConfig.from_raw(blocked_dates=["2031-03-03"])

        admission = is_admissible(config, [], [slot(MONDAY, "10:00", "11:00")])

        self.assertEqual(admission.reason, ReasonCode.BLOCKED_DATE)

    def test_blocked_weekday(self) -> None:
        config = ScheduleConfig.from_raw(blocked_weekdays=[0])

        admission = is_admissible(config, [], [slot(SUNDAY, "10:00", "11:00")])

        self.assertEqual(admission.reason, ReasonCode.BLOCKED_WEEKDAY)
        self.assertTrue(is_admissible(config, [], [slot(MONDAY, "10:00", "11:00")]))

    def test_cooldown_stops_at_blocked_day(self) -> None:
        config = ScheduleConfig.from_raw(blocked_dates=["2031-03-04"], cooldown_minutes=30)
        occupied = Interval(at_minutes(MONDAY, 23 * 60), at_minutes(MONDAY, 23 * 60 + 50))

        zone = cooldown_zone(config, occupied)

        self.assertEqual(zone, [Interval(at_minutes(MONDAY, 22 * 60 + 30), at_minutes(TUESDAY, 0))])

    def test_free_windows_empty_on_blocked_day(self) -> None:
        config = ScheduleConfig.from_raw(blocked_weekdays=[2])

        self.assertEqual(free_windows(config, [], TUESDAY), [])


class PendingExpiryTests(SimpleTestCase):
    def setUp(self) -> None:
        self.config = ScheduleConfig.from_raw()
        self.now = datetime(2031, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_expired_pending_does_not_occupy(self) -> None:
        existing = [held(slot(MONDAY, "10:00", "11:00"), status="pending", expires_at=self.now - timedelta(minutes=1))]

        self.assertTrue(is_admissible(self.config, existing, [slot(MONDAY, "10:00", "11:00")], now=self.now))

    def test_live_pending_occupies(self) -> None:
        existing = [held(slot(MONDAY, "10:00", "11:00"), status="pending", expires_at=self.now + timedelta(minutes=5))]

        admission = is_admissible(self.config, existing, [slot(MONDAY, "10:30", "11:30")], now=self.now)

        self.assertEqual(admission.reason, ReasonCode.OVERLAP)

    def test_terminal_statuses_do_not_occupy(self) -> None:
        existing = [
            held(slot(MONDAY, "10:00", "11:00"), status="rejected"),
            held(slot(MONDAY, "10:00", "11:00"), status="cancelled"),
        ]

        self.assertTrue(is_admissible(self.config, existing, [slot(MONDAY, "10:00", "11:00")], now=self.now))
