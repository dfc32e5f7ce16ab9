"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from . import services

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (run by Celery Beat)
# ============================================================================

@shared_task(name="bookings.expire_pending_bookings")
def expire_pending_bookings() -> dict[str, int]:
    """
    Cancel pending requests whose hold has run out.

    Admission already ignores expired pending requests, so this sweep only
    makes the status visible to hosts and clients. Runs every minute.

    Returns:
        dict: {"expired": number of cancelled bookings}
    """
    return {"expired": services.expire_pending_bookings()}


# ============================================================================
# NOTIFICATION TASKS
# ============================================================================

@shared_task(name="bookings.notify_booking_event")
def notify_booking_event(event: dict) -> bool:
    """Hand a booking event to the notification channel."""
    event_type = event.get("event_type", "")
    booking_id = event.get("booking_id")

    if event_type == "BookingTransitioned":
        logger.info(
            f"[NOTIFICATION] Booking {booking_id}: {event.get('from_status')} -> {event.get('to_status')} "
            f"(source: {event.get('source')})"
        )
    elif event_type in ("PaymentAmountMismatch", "RefundRequired"):
        logger.warning(f"[NOTIFICATION] Booking {booking_id} needs staff attention: {event_type} {event}")
    else:
        logger.info(f"[NOTIFICATION] {event_type} for booking {booking_id}")

    return True
