"""
Reconciliation Service

Applies ledger transitions to bookings. Each operation locks the ledger
row and the booking, moves the row forward, and only when the row really
changed applies the matching booking effect, all in one atomic unit. A
replayed callback therefore finds the row already moved and applies
nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone  # type: ignore

from apps.bookings.models import Booking
from apps.bookings.services import BookingPolicy, load_for_update
from shared.application.uow import DjangoUnitOfWork

from . import ledger
from .exceptions import AmountMismatch
from .models import Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    transaction: Transaction
    applied: bool
    mismatch: AmountMismatch | None = None


def _settle(booking: Booking, row: Transaction, now: datetime) -> tuple[list[str], AmountMismatch | None]:
    settled = ledger.settled_total(booking.pk)
    if settled != booking.final_total:
        mismatch = AmountMismatch(booking.pk, booking.final_total, settled)
        logger.warning(f"Payment amount mismatch on booking {booking.request_id}: {mismatch.message}")
        return booking.flag_for_review(mismatch.message, expected=booking.final_total, settled=settled), mismatch
    return booking.apply_payment(settled, row.provider, now=now), None


def perform(row: Transaction, *, now: datetime | None = None, confirm_id: int | None = None) -> ReconciliationResult:
    """Mark ``row`` performed and apply the payment to its booking once."""
    now = now or timezone.now()
    with DjangoUnitOfWork() as uow:
        row = ledger.lock(row)
        if not ledger.mark_performed(row, now=now, confirm_id=confirm_id):
            return ReconciliationResult(transaction=row, applied=False)
        booking = load_for_update(row.booking_id)
        changed, mismatch = _settle(booking, row, now)
        booking.save(update_fields=changed)
        uow.collect_events(booking)
    logger.info(f"Reconciled {row} against booking {booking.request_id}")
    return ReconciliationResult(transaction=row, applied=True, mismatch=mismatch)


def cancel(row: Transaction, *, reason: int | None = None, now: datetime | None = None) -> ReconciliationResult:
    """
    Cancel ``row`` and apply the consequence to its booking once.

    Before perform the booking may be rejected (per booking policy); after
    perform the paid flag stays and a refund obligation is recorded.
    """
    now = now or timezone.now()
    with DjangoUnitOfWork() as uow:
        row = ledger.lock(row)
        was_performed = row.state == Transaction.State.PERFORMED
        if not ledger.mark_cancelled(row, reason=reason, now=now):
            return ReconciliationResult(transaction=row, applied=False)
        booking = load_for_update(row.booking_id)
        if was_performed:
            changed = booking.require_refund(row.amount, row.provider, row.provider_transaction_id)
            logger.warning(f"Refund required for booking {booking.request_id} after {row} was cancelled")
        elif BookingPolicy.from_settings().reject_on_payment_failure:
            changed = booking.fail_payment(row.provider, now=now)
        else:
            changed = []
        if changed:
            booking.save(update_fields=changed)
            uow.collect_events(booking)
    return ReconciliationResult(transaction=row, applied=True)
