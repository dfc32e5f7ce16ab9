"""Room and schedule configuration models for SlotHub."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.exceptions import ValidationError  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.bookings.domain.availability import ScheduleConfig
from shared.domain.value_objects import SUPPORTED_CURRENCIES, Money, parse_clock


class Room(models.Model):
    """Bookable room published by a host."""

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="rooms",
    )
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    hourly_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    full_day_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Price charged for each full day of the schedule's full-day threshold."),
    )
    currency = models.CharField(
        max_length=3,
        choices=[(code, code) for code in SUPPORTED_CURRENCIES],
        default="UZS",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Room")
        verbose_name_plural = _("Rooms")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.title

    @property
    def hourly_rate(self) -> Money:
        return Money(self.hourly_price, self.currency)

    @property
    def full_day_rate(self) -> Money | None:
        if self.full_day_price is None:
            return None
        return Money(self.full_day_price, self.currency)

    def get_schedule(self) -> "RoomScheduleConfig":
        schedule, _created = RoomScheduleConfig.objects.get_or_create(room=self)
        return schedule


def _validate_weekday_hours(value) -> None:
    if not isinstance(value, dict):
        raise ValidationError(_("Operating hours must be an object keyed by weekday."))
    for key, window in value.items():
        if str(key) not in {str(day) for day in range(7)}:
            raise ValidationError(_("Weekday keys must be 0 (Sunday) to 6 (Saturday)."))
        start = (window or {}).get("start") or ""
        end = (window or {}).get("end") or ""
        if not start and not end:
            continue
        try:
            if parse_clock(start) >= parse_clock(end):
                raise ValidationError(_("Operating window must start before it ends."))
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc


class RoomScheduleConfig(models.Model):
    """Booking calendar settings of a room."""

    room = models.OneToOneField(
        Room,
        on_delete=models.CASCADE,
        related_name="schedule",
    )
    weekday_hours = models.JSONField(
        default=dict,
        blank=True,
        validators=[_validate_weekday_hours],
        help_text=_(
            'Operating window per weekday (0=Sunday ... 6=Saturday), e.g. {"1": {"start": "09:00", "end": "18:00"}}. '
            "An empty start/end pair closes the day; an empty object means open around the clock."
        ),
    )
    blocked_dates = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Specific dates (YYYY-MM-DD) when the room cannot be booked."),
    )
    blocked_weekdays = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Weekday numbers (0=Sunday ... 6=Saturday) when the room cannot be booked."),
    )
    cooldown_minutes = models.PositiveIntegerField(
        default=30,
        help_text=_("Buffer kept free before and after every booking."),
    )
    full_day_hours = models.PositiveSmallIntegerField(
        default=8,
        validators=[MaxValueValidator(24)],
        help_text=_("Slots at least this long are priced with the full-day rate."),
    )
    minimum_hours = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        default=Decimal("1.00"),
        help_text=_("Shortest bookable slot, in hours."),
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Room schedule")
        verbose_name_plural = _("Room schedules")

    def __str__(self) -> str:
        return f"Schedule for {self.room}"

    def to_domain(self) -> ScheduleConfig:
        return ScheduleConfig.from_raw(
            weekday_hours=self.weekday_hours,
            blocked_dates=self.blocked_dates or [],
            blocked_weekdays=self.blocked_weekdays or [],
            cooldown_minutes=self.cooldown_minutes,
            full_day_hours=self.full_day_hours,
            minimum_hours=float(self.minimum_hours),
        )
