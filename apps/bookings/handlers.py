"""Event handlers wiring booking events to asynchronous notifications."""

from __future__ import annotations

import logging

from shared.application.message_bus import message_bus
from shared.domain.base import DomainEvent

from .domain.events import (
    BookingCreated,
    BookingPaid,
    BookingTransitioned,
    PaymentAmountMismatch,
    RefundRequired,
)

logger = logging.getLogger(__name__)

NOTIFIED_EVENTS = (
    BookingCreated,
    BookingTransitioned,
    BookingPaid,
    PaymentAmountMismatch,
    RefundRequired,
)


def enqueue_notification(event: DomainEvent) -> None:
    from .tasks import notify_booking_event  # Local import to prevent circular dependency

    notify_booking_event.delay(event.to_dict())


def register_handlers() -> None:
    for event_type in NOTIFIED_EVENTS:
        message_bus.register_event_handler(event_type, enqueue_notification)
    logger.debug("Booking notification handlers registered")
