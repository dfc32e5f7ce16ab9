"""Errors raised by the ledger, reconciliation and provider adapters."""

from __future__ import annotations

from decimal import Decimal

from shared.domain.exceptions import DomainError


class SignatureError(DomainError):
    """Webhook signature does not match the payload."""

    code = "signature_invalid"


class LedgerStateError(DomainError):
    """Ledger row cannot move to the requested state."""

    code = "ledger_state"


class AmountMismatch(DomainError):
    """Settled amount differs from the booking's final total."""

    code = "amount_mismatch"

    def __init__(self, booking_id: int, expected: Decimal, settled: Decimal):
        super().__init__(
            f"Booking {booking_id} expects {expected} but {settled} was settled."
        )
        self.booking_id = booking_id
        self.expected = expected
        self.settled = settled
