"""Booking domain models for SlotHub."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.exceptions import ValidationError  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.base import EventSource
from shared.domain.value_objects import TimeSlot

from .domain.availability import Reservation
from .domain.events import BookingPaid, BookingTransitioned, PaymentAmountMismatch, RefundRequired
from .exceptions import InvalidTransition


class Booking(EventSource, models.Model):
    """Time-slot reservation of a room."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Awaiting host decision")
        SELECTED = "selected", _("Selected for payment")
        APPROVED = "approved", _("Approved")
        CONFIRMED = "confirmed", _("Confirmed")
        REJECTED = "rejected", _("Rejected")
        CANCELLED = "cancelled", _("Cancelled")

    class Source(models.TextChoices):
        USER = "user", _("User")
        SYSTEM = "system", _("System")
        PAYMENT = "payment", _("Payment provider")

    TRANSITIONS = {
        "pending": ("selected", "approved", "rejected", "cancelled"),
        "selected": ("approved", "rejected", "cancelled"),
        "approved": ("confirmed", "rejected", "cancelled"),
    }
    TIMESTAMP_FIELDS = {
        "selected": "selected_at",
        "approved": "approved_at",
        "confirmed": "confirmed_at",
        "rejected": "rejected_at",
        "cancelled": "cancelled_at",
    }
    PAYABLE_STATUSES = (Status.SELECTED, Status.APPROVED)

    room = models.ForeignKey(
        "rooms.Room",
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="bookings",
    )
    request_id = models.CharField(max_length=12, unique=True, editable=False)
    time_slots = models.JSONField(
        default=list,
        help_text=_('Ordered list of {"date", "start_time", "end_time"} entries.'),
    )
    first_date = models.DateField(null=True, editable=False)
    last_date = models.DateField(null=True, editable=False)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    base_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    protection_plan_selected = models.BooleanField(default=False)
    protection_plan_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    final_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="UZS")
    cash_selected = models.BooleanField(default=False)
    is_paid = models.BooleanField(default=False)
    needs_review = models.BooleanField(default=False)
    review_reason = models.CharField(max_length=255, blank=True)
    refund_required = models.BooleanField(default=False)
    status_reason = models.CharField(max_length=255, blank=True)
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_("Pending requests stop holding their slots after this moment."),
    )
    selected_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["room", "status", "first_date", "last_date"], name="booking_room_status_dates"),
            models.Index(fields=["status", "expires_at"], name="booking_status_expires"),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.request_id} for room {self.room_id}"

    def clean(self) -> None:
        try:
            slots = self.slots
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(_("Invalid time slots: %(error)s") % {"error": exc}) from exc
        if not slots:
            raise ValidationError(_("A booking needs at least one time slot."))

    def save(self, *args, **kwargs):  # type: ignore
        if self._state.adding and not self.request_id:
            self.request_id = self.generate_request_id()
        slots = self.slots
        if slots:
            self.first_date = min(slot.date for slot in slots)
            self.last_date = max(part.start.date() for slot in slots for part in slot.intervals())
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = list(set(update_fields) | {"updated_at"})
        super().save(*args, **kwargs)

    @staticmethod
    def generate_request_id() -> str:
        return secrets.token_hex(4).upper()

    @property
    def slots(self) -> list[TimeSlot]:
        return [TimeSlot.from_dict(raw) for raw in self.time_slots or []]

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return str(self.status) not in self.TRANSITIONS

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or timezone.now()
        return bool(self.status == self.Status.PENDING and self.expires_at and self.expires_at <= now)

    def can_transition(self, to_status: str) -> bool:
        return str(to_status) in self.TRANSITIONS.get(str(self.status), ())

    def transition(
        self,
        to_status: str,
        *,
        actor=None,
        source: str = Source.USER,
        reason: str = "",
        now: datetime | None = None,
    ) -> list[str]:
        """Move to ``to_status`` and return the changed field names."""
        if not self.can_transition(to_status):
            raise InvalidTransition(
                f"Booking {self.request_id} cannot move from {self.status} to {to_status}."
            )
        now = now or timezone.now()
        from_status = self.status
        self.status = to_status
        timestamp_field = self.TIMESTAMP_FIELDS[str(to_status)]
        setattr(self, timestamp_field, now)
        changed = ["status", timestamp_field]
        if reason:
            self.status_reason = reason[:255]
            changed.append("status_reason")
        self.add_event(
            BookingTransitioned(
                aggregate_id=self.pk,
                booking_id=self.pk,
                from_status=str(from_status),
                to_status=str(to_status),
                actor_id=getattr(actor, "pk", None),
                source=source,
            )
        )
        return changed

    def expire(self, now: datetime | None = None) -> list[str]:
        return self.transition(
            self.Status.CANCELLED,
            source=self.Source.SYSTEM,
            reason="Pending request expired.",
            now=now,
        )

    def apply_payment(self, amount: Decimal, provider: str, now: datetime | None = None) -> list[str]:
        """Mark the booking paid by ``provider``; selected bookings become approved."""
        if self.status not in self.PAYABLE_STATUSES:
            raise InvalidTransition(
                f"Booking {self.request_id} cannot accept a payment in status {self.status}."
            )
        now = now or timezone.now()
        changed = ["is_paid", "paid_at"]
        if self.status == self.Status.SELECTED:
            changed += self.transition(self.Status.APPROVED, source=self.Source.PAYMENT, now=now)
        self.is_paid = True
        self.paid_at = now
        self.add_event(BookingPaid(aggregate_id=self.pk, booking_id=self.pk, amount=amount, provider=provider))
        return changed

    def fail_payment(self, provider: str, now: datetime | None = None) -> list[str]:
        """Reject an unpaid booking after its provider payment failed."""
        if self.is_paid or not self.can_transition(self.Status.REJECTED):
            return []
        return self.transition(
            self.Status.REJECTED,
            source=self.Source.PAYMENT,
            reason=f"Payment via {provider} was cancelled before completion.",
            now=now,
        )

    def flag_for_review(self, reason: str, *, expected: Decimal, settled: Decimal) -> list[str]:
        self.needs_review = True
        self.review_reason = reason[:255]
        self.add_event(
            PaymentAmountMismatch(
                aggregate_id=self.pk,
                booking_id=self.pk,
                expected=expected,
                settled=settled,
            )
        )
        return ["needs_review", "review_reason"]

    def require_refund(self, amount: Decimal, provider: str, provider_transaction_id: str) -> list[str]:
        self.refund_required = True
        self.add_event(
            RefundRequired(
                aggregate_id=self.pk,
                booking_id=self.pk,
                amount=amount,
                provider=provider,
                provider_transaction_id=provider_transaction_id,
            )
        )
        return ["refund_required"]

    def to_reservation(self) -> Reservation:
        return Reservation(
            slots=tuple(self.slots),
            status=self.status,
            expires_at=self.expires_at,
            booking_id=self.pk,
        )

    @staticmethod
    def pending_deadline(ttl: timedelta, now: datetime | None = None) -> datetime:
        return (now or timezone.now()) + ttl


class AdmissionConflictRecord(models.Model):
    """Rejected admission attempt, kept for contention monitoring."""

    room = models.ForeignKey(
        "rooms.Room",
        on_delete=models.CASCADE,
        related_name="admission_conflicts",
    )
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    reason = models.CharField(max_length=32)
    time_slots = models.JSONField(default=list)
    conflicting_booking = models.ForeignKey(
        Booking,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _("Admission conflict")
        verbose_name_plural = _("Admission conflicts")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.reason} on room {self.room_id}"
