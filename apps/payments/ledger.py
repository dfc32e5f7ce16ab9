"""
Transaction ledger operations.

The unique (provider, provider_transaction_id) constraint is the only
serialization point for idempotency: opening a row is an insert inside a
savepoint, and the loser of a concurrent insert reads back the winner's
row instead of failing. State changes are forward-only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.db import transaction  # type: ignore
from django.db.models import Sum  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from .exceptions import LedgerStateError
from .models import Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerResult:
    transaction: Transaction
    created: bool


def _lock_queryset_if_possible(queryset):
    if not transaction.get_connection().in_atomic_block:
        return queryset
    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def find(provider: str, provider_transaction_id: str, *, lock: bool = False) -> Transaction | None:
    queryset = Transaction.objects.filter(provider=provider, provider_transaction_id=str(provider_transaction_id))
    if lock:
        queryset = _lock_queryset_if_possible(queryset)
    return queryset.select_related("booking").first()


def lock(row: Transaction) -> Transaction:
    """Re-read ``row`` under a row lock."""
    return _lock_queryset_if_possible(Transaction.objects.filter(pk=row.pk)).select_related("booking").get()


def open_transaction(
    provider: str,
    provider_transaction_id: str,
    *,
    booking,
    amount: Decimal,
    provider_time: int | None = None,
    prepare_id: int | None = None,
    payload: dict | None = None,
    now: datetime | None = None,
) -> LedgerResult:
    """Insert a CREATED row, or return the existing one for the same key."""
    row, created = Transaction.objects.get_or_create(
        provider=provider,
        provider_transaction_id=str(provider_transaction_id),
        defaults={
            "state": Transaction.State.CREATED,
            "amount": amount,
            "currency": booking.currency,
            "booking": booking,
            "client_id": booking.client_id,
            "provider_time": provider_time,
            "create_time": now or timezone.now(),
            "prepare_id": prepare_id,
            "payload": payload or {},
        },
    )
    if created:
        logger.info(f"Ledger row opened: {row}")
    else:
        logger.info(f"Duplicate ledger key {provider}:{provider_transaction_id}, returning existing row")
    return LedgerResult(transaction=row, created=created)


def mark_performed(row: Transaction, *, now: datetime | None = None, confirm_id: int | None = None) -> bool:
    """CREATED -> PERFORMED. Returns False when the row was already performed."""
    if row.state == Transaction.State.PERFORMED:
        return False
    if row.state != Transaction.State.CREATED:
        raise LedgerStateError(f"Transaction {row} cannot be performed.")
    row.state = Transaction.State.PERFORMED
    row.perform_time = now or timezone.now()
    fields = ["state", "perform_time", "updated_at"]
    if confirm_id is not None:
        row.confirm_id = confirm_id
        fields.append("confirm_id")
    row.save(update_fields=fields)
    logger.info(f"Ledger row performed: {row}")
    return True


def mark_cancelled(row: Transaction, *, reason: int | None = None, now: datetime | None = None) -> bool:
    """
    CREATED -> CANCELLED or PERFORMED -> CANCELLED_AFTER_PERFORM.

    Returns False when the row was already cancelled.
    """
    if row.is_cancelled:
        return False
    if row.state == Transaction.State.CREATED:
        row.state = Transaction.State.CANCELLED
    else:
        row.state = Transaction.State.CANCELLED_AFTER_PERFORM
    row.cancel_time = now or timezone.now()
    row.cancel_reason = reason
    row.save(update_fields=["state", "cancel_time", "cancel_reason", "updated_at"])
    logger.info(f"Ledger row cancelled: {row} (reason {reason})")
    return True


def settled_total(booking_id: int) -> Decimal:
    total = Transaction.objects.filter(
        booking_id=booking_id,
        state=Transaction.State.PERFORMED,
    ).aggregate(total=Sum("amount"))["total"]
    return total or Decimal("0.00")


def active_for_booking(booking_id: int, *, exclude: Transaction | None = None) -> Transaction | None:
    """A CREATED or PERFORMED row already holding the booking, if any."""
    queryset = Transaction.objects.filter(
        booking_id=booking_id,
        state__in=(Transaction.State.CREATED, Transaction.State.PERFORMED),
    )
    if exclude is not None:
        queryset = queryset.exclude(pk=exclude.pk)
    return queryset.order_by("-state").first()


def statement(provider: str, start: datetime, end: datetime):
    return Transaction.objects.filter(
        provider=provider,
        create_time__gte=start,
        create_time__lte=end,
    ).order_by("create_time")
