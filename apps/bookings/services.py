"""Application services for booking workflows.

Every operation here is a single atomic unit: the booking (or the room's
schedule row, for admission) is locked, the state machine on the model
decides, and the resulting domain events leave through the unit of work
after commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from django.conf import settings  # type: ignore
from django.db import transaction  # type: ignore
from django.db.models import Count, Q  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.rooms.models import Room, RoomScheduleConfig
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import DomainError
from shared.domain.value_objects import TimeSlot

from .domain.availability import ScheduleConfig, is_admissible, slots_conflict
from .domain.events import BookingCreated
from .domain.pricing import quote
from .exceptions import AdmissionConflict, BookingNotFound, InvalidTransition, TransitionForbidden
from .models import AdmissionConflictRecord, Booking

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (
    Booking.Status.PENDING,
    Booking.Status.SELECTED,
    Booking.Status.APPROVED,
    Booking.Status.CONFIRMED,
)


@dataclass(frozen=True)
class BookingPolicy:
    """Booking knobs read from ``settings.BOOKINGS``."""

    pending_ttl_minutes: int = 30
    protection_rate: Decimal = Decimal("0.20")
    reject_on_payment_failure: bool = True
    report_window_minutes: int = 60

    @classmethod
    def from_settings(cls) -> "BookingPolicy":
        raw = getattr(settings, "BOOKINGS", {}) or {}
        return cls(
            pending_ttl_minutes=int(raw.get("PENDING_TTL_MINUTES", cls.pending_ttl_minutes)),
            protection_rate=Decimal(str(raw.get("PROTECTION_PLAN_RATE", cls.protection_rate))),
            reject_on_payment_failure=bool(raw.get("REJECT_ON_PAYMENT_FAILURE", cls.reject_on_payment_failure)),
            report_window_minutes=int(raw.get("CONFLICT_REPORT_WINDOW_MINUTES", cls.report_window_minutes)),
        )

    @property
    def pending_ttl(self) -> timedelta:
        return timedelta(minutes=self.pending_ttl_minutes)


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


# ----------------------------------------------------------------------
# Actor checks
# ----------------------------------------------------------------------


def _is_agent(user) -> bool:
    return hasattr(user, "is_agent") and user.is_agent()


def _is_room_owner(user, booking: Booking) -> bool:
    return booking.room.owner_id == getattr(user, "pk", None)


def _is_booking_client(user, booking: Booking) -> bool:
    return booking.client_id == getattr(user, "pk", None)


def can_manage(user, booking: Booking) -> bool:
    """Host decisions: room owner or agent."""
    return _is_agent(user) or _is_room_owner(user, booking)


def can_view(user, booking: Booking) -> bool:
    return can_manage(user, booking) or _is_booking_client(user, booking)


def _require(allowed: bool, action: str, booking: Booking) -> None:
    if not allowed:
        raise TransitionForbidden(f"You are not allowed to {action} booking {booking.request_id}.")


# ----------------------------------------------------------------------
# Loading helpers
# ----------------------------------------------------------------------


def load_for_update(booking_id: int) -> Booking:
    queryset = _lock_queryset_if_possible(Booking.objects.all())
    try:
        return queryset.select_related("room").get(pk=booking_id)
    except Booking.DoesNotExist as exc:
        raise BookingNotFound(f"Booking {booking_id} not found.") from exc


def _lock_schedule(room: Room) -> RoomScheduleConfig:
    RoomScheduleConfig.objects.get_or_create(room=room)
    return _lock_queryset_if_possible(RoomScheduleConfig.objects.filter(room=room)).get()


def _reservations_near(room: Room, slots: Sequence[TimeSlot], exclude_id: int | None = None) -> list:
    earliest = min(slot.date for slot in slots) - timedelta(days=1)
    latest = max(slot.date for slot in slots) + timedelta(days=2)
    queryset = Booking.objects.filter(
        room=room,
        status__in=ACTIVE_STATUSES,
        last_date__gte=earliest,
        first_date__lte=latest,
    )
    if exclude_id is not None:
        queryset = queryset.exclude(pk=exclude_id)
    return [booking.to_reservation() for booking in queryset]


def _save(booking: Booking, fields: Iterable[str], uow: DjangoUnitOfWork) -> None:
    booking.save(update_fields=list(fields))
    uow.collect_events(booking)


# ----------------------------------------------------------------------
# Admission
# ----------------------------------------------------------------------


def check_admission(room: Room, slots: Sequence[TimeSlot], *, now: datetime | None = None):
    """Read-only admission preview, no locks taken."""
    config: ScheduleConfig = room.get_schedule().to_domain()
    now = timezone.localtime(now or timezone.now())
    return is_admissible(config, _reservations_near(room, slots), slots, now=now)


def _record_conflict(room: Room, client, slots: Sequence[TimeSlot], error: AdmissionConflict) -> None:
    AdmissionConflictRecord.objects.create(
        room=room,
        client=client,
        reason=error.reason,
        time_slots=[slot.to_dict() for slot in slots],
        conflicting_booking_id=error.admission.conflicting_booking_id,
    )


def create_booking(
    *,
    client,
    room: Room,
    slots: Sequence[TimeSlot],
    protection_plan_selected: bool = False,
    now: datetime | None = None,
    policy: BookingPolicy | None = None,
) -> Booking:
    """Admit and persist a new pending booking for ``client``."""
    if not (hasattr(client, "is_client") and client.is_client()):
        raise TransitionForbidden("Only clients can request bookings.")
    if not room.is_active:
        raise DomainError("This room is not accepting bookings.", code="room_inactive")
    policy = policy or BookingPolicy.from_settings()
    now = now or timezone.now()

    try:
        with DjangoUnitOfWork() as uow:
            schedule = _lock_schedule(room)
            config = schedule.to_domain()
            admission = is_admissible(
                config,
                _reservations_near(room, slots),
                slots,
                now=timezone.localtime(now),
            )
            if not admission:
                raise AdmissionConflict(admission)

            price = quote(
                slots,
                room.hourly_rate,
                full_day_price=room.full_day_rate,
                full_day_hours=config.full_day_hours,
                protection_selected=protection_plan_selected,
                protection_rate=policy.protection_rate,
            )
            booking = Booking.objects.create(
                room=room,
                client=client,
                time_slots=[slot.to_dict() for slot in slots],
                protection_plan_selected=protection_plan_selected,
                expires_at=Booking.pending_deadline(policy.pending_ttl, now),
                **price.as_fields(),
            )
            booking.add_event(
                BookingCreated(
                    aggregate_id=booking.pk,
                    booking_id=booking.pk,
                    room_id=room.pk,
                    client_id=client.pk,
                    final_total=booking.final_total,
                )
            )
            uow.collect_events(booking)
    except AdmissionConflict as exc:
        _record_conflict(room, client, slots, exc)
        logger.info(f"Admission refused for room {room.pk}: {exc.reason} ({exc.admission.slot})")
        raise

    logger.info(f"Booking {booking.request_id} created for room {room.pk} by client {client.pk}")
    return booking


# ----------------------------------------------------------------------
# Transitions
# ----------------------------------------------------------------------


def select_booking(booking_id: int, actor, *, now: datetime | None = None) -> Booking:
    now = now or timezone.now()
    with DjangoUnitOfWork() as uow:
        booking = load_for_update(booking_id)
        _require(can_manage(actor, booking), "select", booking)
        if booking.is_expired(now):
            raise InvalidTransition(f"Booking {booking.request_id} has expired.", code="booking_expired")
        _save(booking, booking.transition(Booking.Status.SELECTED, actor=actor, now=now), uow)
    logger.info(f"Booking {booking.request_id} selected by {actor.pk}")
    return booking


def competing_bookings(booking: Booking) -> list[Booking]:
    """Pending or selected requests for the same room whose slots conflict."""
    config = booking.room.get_schedule().to_domain()
    candidates = Booking.objects.filter(
        room_id=booking.room_id,
        status__in=(Booking.Status.PENDING, Booking.Status.SELECTED),
        last_date__gte=booking.first_date - timedelta(days=1),
        first_date__lte=booking.last_date + timedelta(days=1),
    ).exclude(pk=booking.pk)
    own_slots = booking.slots
    return [other for other in candidates if slots_conflict(config, own_slots, other.slots)]


def approve_booking(booking_id: int, actor, *, now: datetime | None = None) -> Booking:
    """Approve a request and reject every competing one."""
    now = now or timezone.now()
    with DjangoUnitOfWork() as uow:
        booking = load_for_update(booking_id)
        _require(can_manage(actor, booking), "approve", booking)
        if booking.is_expired(now):
            raise InvalidTransition(f"Booking {booking.request_id} has expired.", code="booking_expired")
        _save(booking, booking.transition(Booking.Status.APPROVED, actor=actor, now=now), uow)

        for competitor in competing_bookings(booking):
            competitor = load_for_update(competitor.pk)
            if not competitor.can_transition(Booking.Status.REJECTED):
                continue
            changed = competitor.transition(
                Booking.Status.REJECTED,
                actor=actor,
                source=Booking.Source.SYSTEM,
                reason=f"Another request ({booking.request_id}) was approved for this time.",
                now=now,
            )
            _save(competitor, changed, uow)
            logger.info(f"Booking {competitor.request_id} rejected in favour of {booking.request_id}")
    logger.info(f"Booking {booking.request_id} approved by {actor.pk}")
    return booking


def _ensure_not_settled(booking: Booking) -> None:
    from apps.payments.models import Transaction  # Local import to prevent circular dependency

    if booking.is_paid or Transaction.objects.filter(
        booking_id=booking.pk, state=Transaction.State.PERFORMED
    ).exists():
        raise InvalidTransition(
            f"Booking {booking.request_id} has a completed payment and needs a refund first.",
            code="payment_performed",
        )


def reject_booking(booking_id: int, actor, *, reason: str = "", now: datetime | None = None) -> Booking:
    with DjangoUnitOfWork() as uow:
        booking = load_for_update(booking_id)
        _require(can_manage(actor, booking), "reject", booking)
        _ensure_not_settled(booking)
        _save(booking, booking.transition(Booking.Status.REJECTED, actor=actor, reason=reason, now=now), uow)
    logger.info(f"Booking {booking.request_id} rejected by {actor.pk}")
    return booking


def cancel_booking(booking_id: int, actor, *, reason: str = "", now: datetime | None = None) -> Booking:
    with DjangoUnitOfWork() as uow:
        booking = load_for_update(booking_id)
        _require(can_view(actor, booking), "cancel", booking)
        _ensure_not_settled(booking)
        _save(booking, booking.transition(Booking.Status.CANCELLED, actor=actor, reason=reason, now=now), uow)
    logger.info(f"Booking {booking.request_id} cancelled by {actor.pk}")
    return booking


def confirm_booking(booking_id: int, actor, *, now: datetime | None = None) -> Booking:
    with DjangoUnitOfWork() as uow:
        booking = load_for_update(booking_id)
        _require(can_manage(actor, booking), "confirm", booking)
        if not (booking.is_paid or booking.cash_selected):
            raise InvalidTransition(
                f"Booking {booking.request_id} is neither paid nor marked for cash payment.",
                code="payment_required",
            )
        _save(booking, booking.transition(Booking.Status.CONFIRMED, actor=actor, now=now), uow)
    logger.info(f"Booking {booking.request_id} confirmed by {actor.pk}")
    return booking


def select_cash_payment(booking_id: int, actor) -> Booking:
    with DjangoUnitOfWork():
        booking = load_for_update(booking_id)
        _require(_is_booking_client(actor, booking), "pay for", booking)
        if booking.status not in Booking.PAYABLE_STATUSES or booking.is_paid:
            raise InvalidTransition(
                f"Booking {booking.request_id} cannot be paid in cash in status {booking.status}."
            )
        booking.cash_selected = True
        booking.save(update_fields=["cash_selected"])
    logger.info(f"Booking {booking.request_id} will be paid in cash")
    return booking


# ----------------------------------------------------------------------
# Expiry sweep and monitoring
# ----------------------------------------------------------------------


def expire_pending_bookings(*, now: datetime | None = None) -> int:
    """Cancel pending bookings whose TTL has passed. Returns how many were cancelled."""
    now = now or timezone.now()
    expired_count = 0
    candidate_ids = list(
        Booking.objects.filter(status=Booking.Status.PENDING, expires_at__lte=now).values_list("pk", flat=True)
    )
    for booking_id in candidate_ids:
        try:
            with DjangoUnitOfWork() as uow:
                booking = load_for_update(booking_id)
                # Another worker may have moved it since the candidate query.
                if not booking.is_expired(now):
                    continue
                _save(booking, booking.expire(now), uow)
        except BookingNotFound:
            logger.warning(f"Booking {booking_id} disappeared before it could be expired")
            continue
        expired_count += 1
        logger.info(f"Booking {booking.request_id} expired automatically")
    if expired_count > 0:
        logger.info(f"Expired {expired_count} pending bookings")
    return expired_count


def admission_conflict_report(*, window_minutes: int | None = None, now: datetime | None = None) -> dict:
    """Counts of refused admissions in the recent window, by reason and by room."""
    window_minutes = window_minutes or BookingPolicy.from_settings().report_window_minutes
    now = now or timezone.now()
    since = now - timedelta(minutes=window_minutes)
    recent = AdmissionConflictRecord.objects.filter(created_at__gte=since)
    by_reason = {row["reason"]: row["total"] for row in recent.values("reason").annotate(total=Count("id"))}
    by_room = [
        {"room_id": row["room_id"], "total": row["total"]}
        for row in recent.values("room_id").annotate(total=Count("id")).order_by("-total", "room_id")
    ]
    return {
        "window_minutes": window_minutes,
        "since": since,
        "total": sum(by_reason.values()),
        "by_reason": by_reason,
        "by_room": by_room,
    }


def visible_bookings(user):
    queryset = Booking.objects.select_related("room", "client", "room__owner")
    if not user.is_authenticated:
        return queryset.none()
    if _is_agent(user):
        return queryset
    return queryset.filter(Q(client=user) | Q(room__owner=user))
