"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits; the notification
collaborator subscribes to them.
"""

from dataclasses import dataclass
from decimal import Decimal

from shared.domain.base import DomainEvent

# Base event fields carry defaults, so every field below needs one too.


@dataclass
class BookingCreated(DomainEvent):
    """
    Event: A client requested a room

    Triggers:
    - Notify the room host about a new request
    """
    booking_id: int = 0
    room_id: int = 0
    client_id: int = 0
    final_total: Decimal = Decimal("0.00")


@dataclass
class BookingTransitioned(DomainEvent):
    """
    Event: Booking moved from one status to another

    Emitted for every state machine transition, including system-driven
    ones (expiry sweep, payment reconciliation).
    """
    booking_id: int = 0
    from_status: str = ""
    to_status: str = ""
    actor_id: int | None = None
    source: str = "user"


@dataclass
class BookingPaid(DomainEvent):
    """
    Event: A provider payment settled the booking in full

    Triggers:
    - Notify host and client
    """
    booking_id: int = 0
    amount: Decimal = Decimal("0.00")
    provider: str = ""


@dataclass
class PaymentAmountMismatch(DomainEvent):
    """
    Event: Settled amount differs from the booking total

    The booking is flagged for manual review instead of being approved.
    """
    booking_id: int = 0
    expected: Decimal = Decimal("0.00")
    settled: Decimal = Decimal("0.00")


@dataclass
class RefundRequired(DomainEvent):
    """
    Event: A performed payment was cancelled by the provider

    Triggers:
    - Refund workflow (handled outside this service)
    """
    booking_id: int = 0
    amount: Decimal = Decimal("0.00")
    provider: str = ""
    provider_transaction_id: str = ""
