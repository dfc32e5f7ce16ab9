"""
Click SHOP-API adapter (prepare / complete).

Click posts form-encoded callbacks. Every callback is signed with an md5
digest over its fields and the merchant secret; the signature is checked
before the ledger is touched. Answers are always ``{..., error, error_note}``
with HTTP 200.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from decimal import Decimal, InvalidOperation
from urllib.parse import urlencode

from django.db import transaction  # type: ignore

from apps.bookings.exceptions import BookingNotFound, InvalidTransition
from apps.bookings.models import Booking
from apps.bookings.services import load_for_update

from .. import ledger, reconciliation
from ..conf import ClickConfig
from ..exceptions import SignatureError
from ..models import Transaction

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("apps.payments.security")

PROVIDER = Transaction.Provider.CLICK

SUCCESS = 0
SIGN_FAILED = -1
INVALID_AMOUNT = -2
ACTION_NOT_FOUND = -3
ALREADY_PAID = -4
USER_NOT_FOUND = -5
TRANSACTION_NOT_FOUND = -6
BAD_REQUEST = -8
TRANSACTION_CANCELED = -9

ERROR_NOTES = {
    SUCCESS: "Success",
    SIGN_FAILED: "SIGN CHECK FAILED!",
    INVALID_AMOUNT: "Incorrect parameter amount",
    ACTION_NOT_FOUND: "Action not found",
    ALREADY_PAID: "Already paid",
    USER_NOT_FOUND: "Booking does not exist",
    TRANSACTION_NOT_FOUND: "Transaction does not exist",
    BAD_REQUEST: "Error in request from click",
    TRANSACTION_CANCELED: "Transaction cancelled",
}

PREPARE = 0
COMPLETE = 1

PREPARE_FIELDS = (
    "click_trans_id", "service_id", "merchant_trans_id",
    "amount", "action", "sign_time", "sign_string",
)
COMPLETE_FIELDS = PREPARE_FIELDS + ("merchant_prepare_id", "error")


class ClickError(Exception):
    """Answer with a non-zero Click error code."""

    def __init__(self, error: int, note: str | None = None):
        super().__init__(note or ERROR_NOTES[error])
        self.error = error
        self.note = note or ERROR_NOTES[error]


def _missing(data, fields) -> list[str]:
    return [name for name in fields if data.get(name) in (None, "")]


class ClickMerchantAPI:
    """Click prepare/complete endpoint logic, independent of the HTTP layer."""

    def __init__(self, config: ClickConfig | None = None):
        self.config = config or ClickConfig.from_settings()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle(self, data, action: int | None = None) -> dict:
        """Dispatch by ``action`` (taken from the payload when not forced)."""
        if action is None:
            try:
                action = int(data.get("action"))
            except (TypeError, ValueError):
                return self._answer(data, ClickError(ACTION_NOT_FOUND))
        if action == PREPARE:
            return self.prepare(data)
        if action == COMPLETE:
            return self.complete(data)
        return self._answer(data, ClickError(ACTION_NOT_FOUND))

    def prepare(self, data) -> dict:
        try:
            result = self._prepare(data)
        except ClickError as exc:
            return self._answer(data, exc)
        except Exception:
            logger.error(f"Click prepare failed for {data.get('click_trans_id')}", exc_info=True)
            return self._answer(data, ClickError(BAD_REQUEST))
        return self._answer(data, merchant_prepare_id=result)

    def complete(self, data) -> dict:
        try:
            result = self._complete(data)
        except ClickError as exc:
            return self._answer(data, exc, merchant_confirm_id=data.get("merchant_prepare_id"))
        except Exception:
            logger.error(f"Click complete failed for {data.get('click_trans_id')}", exc_info=True)
            return self._answer(data, ClickError(BAD_REQUEST))
        return self._answer(data, merchant_confirm_id=result)

    # ------------------------------------------------------------------
    # Signature
    # ------------------------------------------------------------------

    def sign(self, data, action: int) -> str:
        parts = [
            str(data.get("click_trans_id", "")),
            str(data.get("service_id", "")),
            self.config.secret_key,
            str(data.get("merchant_trans_id", "")),
        ]
        if action == COMPLETE:
            parts.append(str(data.get("merchant_prepare_id", "")))
        parts += [
            str(data.get("amount", "")),
            str(action),
            str(data.get("sign_time", "")),
        ]
        return hashlib.md5("".join(parts).encode("utf-8")).hexdigest()

    def verify(self, data, action: int) -> None:
        expected = self.sign(data, action)
        received = str(data.get("sign_string", ""))
        if not hmac.compare_digest(expected, received):
            raise SignatureError(f"Click signature mismatch for {data.get('click_trans_id')}")

    def _check_request(self, data, action: int, fields) -> None:
        missing = _missing(data, fields)
        if missing:
            raise ClickError(BAD_REQUEST, f"Missing required fields: {', '.join(missing)}")
        try:
            self.verify(data, action)
        except SignatureError as exc:
            security_logger.warning(exc.message)
            raise ClickError(SIGN_FAILED)
        if str(data.get("service_id")) != str(self.config.service_id):
            raise ClickError(BAD_REQUEST, "Unknown service_id")

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def _amount(data) -> Decimal:
        try:
            return Decimal(str(data.get("amount"))).quantize(Decimal("0.01"))
        except (InvalidOperation, ValueError):
            raise ClickError(INVALID_AMOUNT)

    @staticmethod
    def _load_booking(data, *, lock: bool = False) -> Booking:
        try:
            booking_id = int(str(data.get("merchant_trans_id")))
        except (TypeError, ValueError):
            raise ClickError(USER_NOT_FOUND)
        try:
            if lock:
                return load_for_update(booking_id)
            return Booking.objects.get(pk=booking_id)
        except (Booking.DoesNotExist, BookingNotFound):
            raise ClickError(USER_NOT_FOUND)

    def _prepare(self, data) -> int:
        self._check_request(data, PREPARE, PREPARE_FIELDS)
        click_trans_id = str(data["click_trans_id"])
        amount = self._amount(data)

        existing = ledger.find(PROVIDER, click_trans_id)
        if existing is not None:
            return self._replayed_prepare(existing, data, amount)

        with transaction.atomic():
            booking = self._load_booking(data, lock=True)
            # a concurrent delivery of the same prepare may have committed while we waited
            existing = ledger.find(PROVIDER, click_trans_id)
            if existing is not None:
                return self._replayed_prepare(existing, data, amount)
            if booking.is_paid:
                raise ClickError(ALREADY_PAID)
            if booking.status not in Booking.PAYABLE_STATUSES:
                raise ClickError(TRANSACTION_CANCELED, "Booking is not payable")
            if amount != booking.final_total:
                raise ClickError(INVALID_AMOUNT)
            holder = ledger.active_for_booking(booking.pk)
            if holder is not None:
                if holder.state == Transaction.State.PERFORMED:
                    raise ClickError(ALREADY_PAID)
                raise ClickError(TRANSACTION_CANCELED, f"Booking already has an open {holder.provider} payment")
            result = ledger.open_transaction(
                PROVIDER,
                click_trans_id,
                booking=booking,
                amount=amount,
                payload={key: str(value) for key, value in data.items()},
            )
            row = result.transaction
            if not result.created:
                return self._replayed_prepare(row, data, amount)
            row.prepare_id = row.pk
            row.save(update_fields=["prepare_id", "updated_at"])
        return row.prepare_id

    @staticmethod
    def _replayed_prepare(row: Transaction, data, amount: Decimal) -> int:
        if str(row.booking_id) != str(data.get("merchant_trans_id")) or row.amount != amount:
            raise ClickError(BAD_REQUEST, "Transaction data differs from the first prepare")
        if row.is_cancelled:
            raise ClickError(TRANSACTION_CANCELED)
        if row.state == Transaction.State.PERFORMED:
            raise ClickError(ALREADY_PAID)
        return row.prepare_id

    def _complete(self, data) -> int:
        self._check_request(data, COMPLETE, COMPLETE_FIELDS)
        row = ledger.find(PROVIDER, str(data["click_trans_id"]))
        if row is None or str(row.prepare_id) != str(data.get("merchant_prepare_id")):
            raise ClickError(TRANSACTION_NOT_FOUND)
        if self._amount(data) != row.amount:
            raise ClickError(INVALID_AMOUNT)

        try:
            click_error = int(data.get("error"))
        except (TypeError, ValueError):
            raise ClickError(BAD_REQUEST)

        if click_error < 0:
            if row.state == Transaction.State.PERFORMED:
                raise ClickError(ALREADY_PAID)
            reconciliation.cancel(row, reason=click_error)
            logger.info(f"Click reported error {click_error} for {row}, transaction cancelled")
            raise ClickError(TRANSACTION_CANCELED)

        if row.is_cancelled:
            raise ClickError(TRANSACTION_CANCELED)
        if row.state == Transaction.State.PERFORMED:
            return row.confirm_id or row.prepare_id

        with transaction.atomic():
            row = ledger.lock(row)
            if row.state == Transaction.State.PERFORMED:
                return row.confirm_id or row.prepare_id
            if row.is_cancelled:
                raise ClickError(TRANSACTION_CANCELED)
            booking = load_for_update(row.booking_id)
            if booking.is_paid:
                logger.info(f"Click complete for {row} refused, booking {booking.request_id} is already paid")
                raise ClickError(ALREADY_PAID)
            try:
                row = reconciliation.perform(row, confirm_id=row.prepare_id).transaction
            except InvalidTransition as exc:
                logger.info(f"Click complete refused for {row}: {exc.message}")
                raise ClickError(TRANSACTION_CANCELED, "Booking is not payable")
        return row.confirm_id or row.prepare_id

    # ------------------------------------------------------------------

    @staticmethod
    def _answer(data, error: ClickError | None = None, **extra) -> dict:
        answer = {
            "click_trans_id": data.get("click_trans_id"),
            "merchant_trans_id": data.get("merchant_trans_id"),
        }
        answer.update(extra)
        answer["error"] = error.error if error else SUCCESS
        answer["error_note"] = error.note if error else ERROR_NOTES[SUCCESS]
        return answer


def checkout_url(booking: Booking, return_url: str = "", config: ClickConfig | None = None) -> str:
    """Click hosted checkout link for ``booking``."""
    config = config or ClickConfig.from_settings()
    params = {
        "service_id": config.service_id,
        "merchant_id": config.merchant_id,
        "amount": f"{booking.final_total:.2f}",
        "transaction_param": booking.pk,
    }
    if return_url:
        params["return_url"] = return_url
    return f"{config.checkout_url}/services/pay?{urlencode(params)}"
