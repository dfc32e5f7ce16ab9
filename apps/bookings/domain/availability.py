"""
Slot Availability Engine

Pure functions over a room's schedule configuration and its current
reservations. Nothing here touches the database: callers load the
configuration and the reservations, and persist whatever they decide.

Conventions:
- Weekdays are numbered 0=Sunday .. 6=Saturday.
- Times of day are "HH:MM" strings; "24:00" may close a window.
- Intervals are half-open [start, end): touching intervals never conflict.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Mapping, Sequence

from shared.domain.value_objects import (
    MINUTES_PER_DAY,
    Interval,
    TimeSlot,
    at_minutes,
    format_clock,
    parse_clock,
)

OCCUPYING_STATUSES = frozenset({"selected", "approved", "confirmed"})


class ReasonCode(str, Enum):
    BLOCKED_DATE = "blocked_date"
    BLOCKED_WEEKDAY = "blocked_weekday"
    OUTSIDE_HOURS = "outside_hours"
    COOLDOWN_CONFLICT = "cooldown_conflict"
    OVERLAP = "overlap"
    BELOW_MINIMUM_HOURS = "below_minimum_hours"
    IN_PAST = "in_past"


REASON_MESSAGES = {
    ReasonCode.BLOCKED_DATE: "The room is not available on this date.",
    ReasonCode.BLOCKED_WEEKDAY: "The room is not available on this day of the week.",
    ReasonCode.OUTSIDE_HOURS: "The requested time is outside the room's operating hours.",
    ReasonCode.COOLDOWN_CONFLICT: "The requested time is too close to another booking.",
    ReasonCode.OVERLAP: "The requested time overlaps another booking.",
    ReasonCode.BELOW_MINIMUM_HOURS: "The requested time is shorter than the room's minimum booking.",
    ReasonCode.IN_PAST: "The requested time is in the past.",
}


def weekday_number(day: date) -> int:
    """Weekday with Sunday as 0."""
    return (day.weekday() + 1) % 7


@dataclass(frozen=True)
class ScheduleConfig:
    """
    Room schedule as the engine sees it.

    ``weekday_hours`` maps a weekday to its (start, end) window in minutes,
    or to None when the room is closed that day. An empty mapping means
    the room has no operating-hour restriction at all.
    """
    weekday_hours: Mapping[int, tuple[int, int] | None] = field(default_factory=dict)
    blocked_dates: frozenset[date] = frozenset()
    blocked_weekdays: frozenset[int] = frozenset()
    cooldown_minutes: int = 0
    full_day_hours: int = 8
    minimum_hours: float = 0

    def __post_init__(self):
        if self.cooldown_minutes < 0:
            raise ValueError("Cooldown cannot be negative")
        for weekday, window in self.weekday_hours.items():
            if window is not None and window[0] >= window[1]:
                raise ValueError(f"Operating window for weekday {weekday} must start before it ends")

    @classmethod
    def from_raw(
        cls,
        *,
        weekday_hours: Mapping | None = None,
        blocked_dates: Iterable = (),
        blocked_weekdays: Iterable = (),
        cooldown_minutes: int = 0,
        full_day_hours: int = 8,
        minimum_hours: float = 0,
    ) -> "ScheduleConfig":
        """Build from stored JSON-ish values ({"1": {"start": "09:00", "end": "18:00"}})."""
        hours: dict[int, tuple[int, int] | None] = {}
        for key, window in (weekday_hours or {}).items():
            start = (window or {}).get("start") or ""
            end = (window or {}).get("end") or ""
            hours[int(key)] = (parse_clock(start), parse_clock(end)) if start and end else None
        return cls(
            weekday_hours=hours,
            blocked_dates=frozenset(
                d if isinstance(d, date) else date.fromisoformat(d) for d in blocked_dates
            ),
            blocked_weekdays=frozenset(int(w) for w in blocked_weekdays),
            cooldown_minutes=int(cooldown_minutes or 0),
            full_day_hours=int(full_day_hours or 0),
            minimum_hours=float(minimum_hours or 0),
        )

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.cooldown_minutes)

    def blocked_reason(self, day: date) -> ReasonCode | None:
        if day in self.blocked_dates:
            return ReasonCode.BLOCKED_DATE
        if weekday_number(day) in self.blocked_weekdays:
            return ReasonCode.BLOCKED_WEEKDAY
        return None

    def window_for(self, day: date) -> Interval | None:
        """Operating window of ``day``; None when the room is closed or blocked."""
        if self.blocked_reason(day) is not None:
            return None
        if not self.weekday_hours:
            return Interval(at_minutes(day, 0), at_minutes(day, MINUTES_PER_DAY))
        window = self.weekday_hours.get(weekday_number(day))
        if window is None:
            return None
        return Interval(at_minutes(day, window[0]), at_minutes(day, window[1]))


@dataclass(frozen=True)
class Reservation:
    """An existing booking reduced to what occupancy depends on."""
    slots: Sequence[TimeSlot]
    status: str
    expires_at: datetime | None = None
    booking_id: int | None = None

    def occupies(self, now: datetime | None) -> bool:
        if self.status in OCCUPYING_STATUSES:
            return True
        if self.status != "pending":
            return False
        # Expired but not yet swept pending requests never hold a slot.
        if self.expires_at is None or now is None:
            return True
        return self.expires_at > now

    def intervals(self) -> list[Interval]:
        return [part for slot in self.slots for part in slot.intervals()]


@dataclass(frozen=True)
class Admission:
    admit: bool
    reason: ReasonCode | None = None
    slot: TimeSlot | None = None
    conflicting_booking_id: int | None = None

    @classmethod
    def accept(cls) -> "Admission":
        return cls(admit=True)

    @classmethod
    def reject(cls, reason: ReasonCode, slot: TimeSlot | None = None, booking_id: int | None = None) -> "Admission":
        return cls(admit=False, reason=reason, slot=slot, conflicting_booking_id=booking_id)

    @property
    def message(self) -> str:
        if self.admit or self.reason is None:
            return ""
        text = REASON_MESSAGES[self.reason]
        return f"{text} ({self.slot})" if self.slot else text

    def __bool__(self) -> bool:
        return self.admit


def _local_naive(now: datetime | None) -> datetime | None:
    if now is None:
        return None
    return now.replace(tzinfo=None)


def _static_rejection(config: ScheduleConfig, slot: TimeSlot, local_now: datetime | None) -> ReasonCode | None:
    parts = slot.intervals()
    if local_now is not None and parts[0].start < local_now:
        return ReasonCode.IN_PAST
    for part in parts:
        blocked = config.blocked_reason(part.start.date())
        if blocked is not None:
            return blocked
    for part in parts:
        window = config.window_for(part.start.date())
        if window is None or part.start < window.start or part.end > window.end:
            return ReasonCode.OUTSIDE_HOURS
    if config.minimum_hours and slot.duration < timedelta(hours=config.minimum_hours):
        return ReasonCode.BELOW_MINIMUM_HOURS
    return None


def _split_by_day(interval: Interval) -> list[Interval]:
    pieces = []
    cursor = interval.start
    while cursor < interval.end:
        midnight = at_minutes(cursor.date() + timedelta(days=1), 0)
        piece_end = min(midnight, interval.end)
        pieces.append(Interval(cursor, piece_end))
        cursor = piece_end
    return pieces


def cooldown_zone(config: ScheduleConfig, interval: Interval) -> list[Interval]:
    """
    ``interval`` padded by the cooldown on both sides, minus blocked days.

    Blocked days are hard boundaries: the padding stops at their midnight.
    """
    if not config.cooldown_minutes:
        return [interval]
    expanded = interval.expanded(config.cooldown)
    return [
        piece for piece in _split_by_day(expanded)
        if config.blocked_reason(piece.start.date()) is None
    ]


def _classify(config: ScheduleConfig, requested: Interval, occupied: Interval) -> ReasonCode | None:
    if requested.overlaps_with(occupied):
        return ReasonCode.OVERLAP
    if any(requested.overlaps_with(zone) for zone in cooldown_zone(config, occupied)):
        return ReasonCode.COOLDOWN_CONFLICT
    return None


def is_admissible(
    config: ScheduleConfig,
    existing: Iterable[Reservation],
    requested: Sequence[TimeSlot],
    *,
    now: datetime | None = None,
) -> Admission:
    """
    Decide whether ``requested`` may become a new booking.

    The request is all-or-nothing: the first failing slot rejects it. Static
    rules (past, blocked days, operating hours, minimum length) are checked
    for every slot before any occupancy comparison.
    """
    if not requested:
        raise ValueError("At least one time slot is required")

    local_now = _local_naive(now)
    for slot in requested:
        reason = _static_rejection(config, slot, local_now)
        if reason is not None:
            return Admission.reject(reason, slot)

    for index, slot in enumerate(requested):
        for other in requested[index + 1:]:
            if any(a.overlaps_with(b) for a in slot.intervals() for b in other.intervals()):
                return Admission.reject(ReasonCode.OVERLAP, other)

    occupying = [r for r in existing if r.occupies(now)]
    for slot in requested:
        for reservation in occupying:
            worst = None
            for part in slot.intervals():
                for occupied in reservation.intervals():
                    reason = _classify(config, part, occupied)
                    if reason is ReasonCode.OVERLAP:
                        return Admission.reject(reason, slot, reservation.booking_id)
                    worst = worst or reason
            if worst is not None:
                return Admission.reject(worst, slot, reservation.booking_id)
    return Admission.accept()


def slots_conflict(config: ScheduleConfig, first: Sequence[TimeSlot], second: Sequence[TimeSlot]) -> bool:
    """True when the two slot lists overlap once cooldown is applied."""
    for a in first:
        for b in second:
            for part_a in a.intervals():
                for part_b in b.intervals():
                    if _classify(config, part_a, part_b) is not None:
                        return True
    return False


def _merge(intervals: list[Interval]) -> list[Interval]:
    merged: list[Interval] = []
    for interval in sorted(intervals, key=lambda i: i.start):
        if merged and interval.start <= merged[-1].end:
            last = merged.pop()
            merged.append(Interval(last.start, max(last.end, interval.end)))
        else:
            merged.append(interval)
    return merged


def busy_intervals(
    config: ScheduleConfig,
    existing: Iterable[Reservation],
    day: date,
    *,
    now: datetime | None = None,
) -> list[Interval]:
    """Occupied time on ``day`` including cooldown padding, merged and sorted."""
    day_start = at_minutes(day, 0)
    day_end = at_minutes(day, MINUTES_PER_DAY)
    pieces = []
    for reservation in existing:
        if not reservation.occupies(now):
            continue
        for occupied in reservation.intervals():
            for zone in cooldown_zone(config, occupied):
                clipped = zone.clipped(day_start, day_end)
                if clipped is not None:
                    pieces.append(clipped)
    return _merge(pieces)


def free_windows(
    config: ScheduleConfig,
    existing: Iterable[Reservation],
    day: date,
    *,
    now: datetime | None = None,
) -> list[Interval]:
    """Bookable gaps of ``day``: the operating window minus busy time."""
    window = config.window_for(day)
    if window is None:
        return []
    cursor = window.start
    local_now = _local_naive(now)
    if local_now is not None and local_now > cursor:
        cursor = min(local_now.replace(second=0, microsecond=0), window.end)
    if cursor >= window.end:
        return []
    gaps = []
    for busy in busy_intervals(config, existing, day, now=now):
        if busy.end <= cursor:
            continue
        if busy.start > cursor:
            gaps.append(Interval(cursor, min(busy.start, window.end)))
        cursor = max(cursor, busy.end)
        if cursor >= window.end:
            break
    if cursor < window.end:
        gaps.append(Interval(cursor, window.end))
    return [gap for gap in gaps if gap.start < gap.end]


def describe(intervals: Iterable[Interval], day: date) -> list[dict]:
    """Render intervals of ``day`` as {"start": "HH:MM", "end": "HH:MM"} dicts."""
    day_start = at_minutes(day, 0)
    rendered = []
    for interval in intervals:
        start = int((interval.start - day_start).total_seconds() // 60)
        end = int((interval.end - day_start).total_seconds() // 60)
        rendered.append({"start": format_clock(start), "end": format_clock(end)})
    return rendered


def is_full_day(config: ScheduleConfig, slot: TimeSlot) -> bool:
    if not config.full_day_hours:
        return False
    return slot.duration >= timedelta(hours=config.full_day_hours)
