"""
Common Value Objects

Value objects used across multiple domains:
- Money: Represents monetary amounts with currency
- Interval: Half-open [start, end) span of wall-clock time
- TimeSlot: A (date, start, end) request for a room, as clients send it
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from shared.domain.base import ValueObject

SUPPORTED_CURRENCIES = ('UZS', 'USD', 'EUR', 'RUB')
MINUTES_PER_DAY = 24 * 60

_CLOCK_RE = re.compile(r'^(?P<hours>[01]?\d|2[0-4]):(?P<minutes>[0-5]\d)$')


def parse_clock(value: str) -> int:
    """
    Convert "HH:MM" into minutes since midnight.

    "24:00" is accepted as the end of the day so operating windows can
    run up to midnight.
    """
    match = _CLOCK_RE.match(value or '')
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")
    minutes = int(match['hours']) * 60 + int(match['minutes'])
    if minutes > MINUTES_PER_DAY:
        raise ValueError(f"Invalid time of day: {value!r}")
    return minutes


def format_clock(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def at_minutes(day: date, minutes: int) -> datetime:
    """Naive local datetime for `minutes` after midnight of `day`."""
    return datetime.combine(day, time.min) + timedelta(minutes=minutes)


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a monetary amount with currency.
    Immutable and supports arithmetic operations.
    """
    amount: Decimal
    currency: str = 'UZS'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency: {self.currency}")

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        """Multiply money by a factor"""
        if not isinstance(factor, (int, float, Decimal)):
            raise TypeError("Can only multiply Money by number")
        return Money(self.amount * Decimal(str(factor)), self.currency)

    def quantized(self) -> 'Money':
        """Round to two decimal places (the settlement precision)."""
        return Money(self.amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP), self.currency)

    @classmethod
    def zero(cls, currency: str = 'UZS') -> 'Money':
        return cls(Decimal('0.00'), currency)

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class Interval(ValueObject):
    """
    Interval value object

    Represents [start, end): start is inclusive, end is exclusive, so two
    intervals that merely touch do not overlap.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Interval start ({self.start}) must be before end ({self.end})")

    def overlaps_with(self, other: 'Interval') -> bool:
        """
        Check if this interval overlaps with another

        Examples:
            - [10:00, 11:00) overlaps with [10:30, 12:00) -> True
            - [10:00, 11:00) overlaps with [11:00, 12:00) -> False (adjacent)
        """
        if not isinstance(other, Interval):
            raise TypeError("Can only check overlap with another Interval")
        return self.start < other.end and self.end > other.start

    def expanded(self, padding: timedelta) -> 'Interval':
        return Interval(self.start - padding, self.end + padding)

    def clipped(self, lower: datetime, upper: datetime) -> 'Interval | None':
        """Intersection with [lower, upper), or None when empty."""
        start = max(self.start, lower)
        end = min(self.end, upper)
        if start >= end:
            return None
        return Interval(start, end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def __str__(self):
        return f"{self.start:%Y-%m-%d %H:%M} - {self.end:%Y-%m-%d %H:%M}"


@dataclass(frozen=True)
class TimeSlot(ValueObject):
    """
    Time slot value object

    A room request for one date. When end_time is not after start_time the
    slot runs past midnight into the following date.
    """
    date: date
    start_time: str
    end_time: str

    def __post_init__(self):
        if isinstance(self.date, str):
            object.__setattr__(self, 'date', date.fromisoformat(self.date))
        start = parse_clock(self.start_time)
        end = parse_clock(self.end_time)
        if start == end:
            raise ValueError(f"Time slot {self.start_time}-{self.end_time} has no duration")
        if start >= MINUTES_PER_DAY:
            raise ValueError(f"Time slot cannot start at {self.start_time}")

    @property
    def start_minutes(self) -> int:
        return parse_clock(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_clock(self.end_time)

    @property
    def crosses_midnight(self) -> bool:
        return self.end_minutes < self.start_minutes

    def intervals(self) -> list[Interval]:
        """Date-scoped sub-intervals; two of them when the slot crosses midnight."""
        if not self.crosses_midnight:
            return [Interval(at_minutes(self.date, self.start_minutes), at_minutes(self.date, self.end_minutes))]
        next_day = self.date + timedelta(days=1)
        parts = [Interval(at_minutes(self.date, self.start_minutes), at_minutes(next_day, 0))]
        if self.end_minutes > 0:
            parts.append(Interval(at_minutes(next_day, 0), at_minutes(next_day, self.end_minutes)))
        return parts

    @property
    def duration(self) -> timedelta:
        return sum((part.duration for part in self.intervals()), timedelta())

    @classmethod
    def from_dict(cls, data: dict) -> 'TimeSlot':
        return cls(
            date=data['date'],
            start_time=data.get('start_time') or data.get('startTime'),
            end_time=data.get('end_time') or data.get('endTime'),
        )

    def to_dict(self) -> dict:
        return {
            'date': self.date.isoformat(),
            'start_time': self.start_time,
            'end_time': self.end_time,
        }

    def __str__(self):
        return f"{self.date.isoformat()} {self.start_time}-{self.end_time}"
