"""
Payme merchant API adapter (JSON-RPC 2.0).

Payme calls a single endpoint with ``{"method", "params", "id"}``. Each
method is parsed into its own command dataclass and dispatched through a
private message bus, so every handler receives typed parameters. All
answers, including errors, are JSON-RPC envelopes served with HTTP 200.

Amounts on the wire are in tiyin (1/100 of a sum); times are Unix
milliseconds.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from typing import Any

from django.db import transaction  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.exceptions import BookingNotFound, InvalidTransition
from apps.bookings.models import Booking
from apps.bookings.services import load_for_update
from shared.application.message_bus import MessageBus
from shared.domain.exceptions import DomainError

from .. import ledger, reconciliation
from ..conf import PaymeConfig
from ..models import Transaction

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("apps.payments.security")

PROVIDER = Transaction.Provider.PAYME
ACCOUNT_FIELD = "booking_id"
TIMEOUT_CANCEL_REASON = 4


# ============================================================================
# ERRORS
# ============================================================================

class PaymeError(DomainError):
    """Error answered to Payme inside the JSON-RPC ``error`` member."""

    code = "payme_error"

    def __init__(self, payme_code: int, messages: dict[str, str], data: str | None = None):
        super().__init__(messages.get("en", ""))
        self.payme_code = payme_code
        self.messages = messages
        self.data = data

    def as_error(self) -> dict:
        error: dict[str, Any] = {"code": self.payme_code, "message": self.messages}
        if self.data is not None:
            error["data"] = self.data
        return error


def _messages(ru: str, uz: str, en: str) -> dict[str, str]:
    return {"ru": ru, "uz": uz, "en": en}


INVALID_AMOUNT = (-31001, _messages("Недопустимая сумма", "Noto'g'ri summa", "Invalid amount"))
TRANSACTION_NOT_FOUND = (-31003, _messages("Транзакция не найдена", "Tranzaktsiya topilmadi", "Transaction not found"))
UNABLE_TO_CANCEL = (
    -31007,
    _messages(
        "Невозможно отменить транзакцию, услуга оказана",
        "Tranzaksiyani bekor qilib bo'lmaydi, xizmat ko'rsatilgan",
        "Unable to cancel transaction, the service has been provided",
    ),
)
CANT_DO_OPERATION = (
    -31008,
    _messages("Невозможно выполнить операцию", "Operatsiyani bajarib bo'lmaydi", "Unable to perform operation"),
)
BOOKING_NOT_FOUND = (
    -31050,
    _messages("Бронирование не найдено", "Bron topilmadi", "Booking not found"),
)
PAYMENT_PENDING = (
    -31050,
    _messages(
        "Ожидается оплата бронирования",
        "Bron uchun to'lov kutilmoqda",
        "Payment for the booking is pending",
    ),
)
ALREADY_PAID = (-31060, _messages("Бронирование уже оплачено", "Bron uchun to'lov qilingan", "Booking is already paid"))
INVALID_AUTHORIZATION = (
    -32504,
    _messages("Авторизация недействительна", "Avtorizatsiya yaroqsiz", "Authorization invalid"),
)
INVALID_REQUEST = (-32600, _messages("Неверный запрос", "Noto'g'ri so'rov", "Invalid request"))
METHOD_NOT_FOUND = (-32601, _messages("Метод не найден", "Metod topilmadi", "Method not found"))
PARSE_ERROR = (-32700, _messages("Ошибка разбора JSON", "JSON tahlil xatosi", "Parse error"))
SYSTEM_ERROR = (-32400, _messages("Системная ошибка", "Tizim xatosi", "System error"))


def _error(kind: tuple[int, dict[str, str]], data: str | None = None) -> PaymeError:
    return PaymeError(kind[0], kind[1], data)


# ============================================================================
# COMMANDS
# ============================================================================

def _require(params: dict, name: str, kind: type = str) -> Any:
    value = params.get(name)
    if value is None:
        raise _error(INVALID_REQUEST, name)
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise _error(INVALID_REQUEST, name)
        return int(value)
    if kind is dict:
        if not isinstance(value, dict):
            raise _error(INVALID_REQUEST, name)
        return value
    return str(value)


@dataclass(frozen=True)
class CheckPerformTransaction:
    amount: int
    account: dict = field(default_factory=dict)

    @classmethod
    def from_params(cls, params: dict) -> "CheckPerformTransaction":
        return cls(amount=_require(params, "amount", int), account=_require(params, "account", dict))


@dataclass(frozen=True)
class CreateTransaction:
    id: str
    time: int
    amount: int
    account: dict = field(default_factory=dict)

    @classmethod
    def from_params(cls, params: dict) -> "CreateTransaction":
        return cls(
            id=_require(params, "id"),
            time=_require(params, "time", int),
            amount=_require(params, "amount", int),
            account=_require(params, "account", dict),
        )


@dataclass(frozen=True)
class PerformTransaction:
    id: str

    @classmethod
    def from_params(cls, params: dict) -> "PerformTransaction":
        return cls(id=_require(params, "id"))


@dataclass(frozen=True)
class CancelTransaction:
    id: str
    reason: int | None = None

    @classmethod
    def from_params(cls, params: dict) -> "CancelTransaction":
        reason = params.get("reason")
        return cls(id=_require(params, "id"), reason=int(reason) if reason is not None else None)


@dataclass(frozen=True)
class CheckTransaction:
    id: str

    @classmethod
    def from_params(cls, params: dict) -> "CheckTransaction":
        return cls(id=_require(params, "id"))


@dataclass(frozen=True)
class GetStatement:
    start: int
    end: int

    @classmethod
    def from_params(cls, params: dict) -> "GetStatement":
        return cls(start=_require(params, "from", int), end=_require(params, "to", int))


COMMANDS = {
    "CheckPerformTransaction": CheckPerformTransaction,
    "CreateTransaction": CreateTransaction,
    "PerformTransaction": PerformTransaction,
    "CancelTransaction": CancelTransaction,
    "CheckTransaction": CheckTransaction,
    "GetStatement": GetStatement,
}


# ============================================================================
# HELPERS
# ============================================================================

def to_ms(value: datetime | None) -> int:
    if value is None:
        return 0
    return int(value.timestamp() * 1000)


def from_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=dt_timezone.utc)


# ============================================================================
# ADAPTER
# ============================================================================

class PaymeMerchantAPI:
    """Payme JSON-RPC endpoint logic, independent of the HTTP layer."""

    def __init__(self, config: PaymeConfig | None = None):
        self.config = config or PaymeConfig.from_settings()
        self.bus = MessageBus()
        self.bus.register_command_handler(CheckPerformTransaction, self.check_perform_transaction)
        self.bus.register_command_handler(CreateTransaction, self.create_transaction)
        self.bus.register_command_handler(PerformTransaction, self.perform_transaction)
        self.bus.register_command_handler(CancelTransaction, self.cancel_transaction)
        self.bus.register_command_handler(CheckTransaction, self.check_transaction)
        self.bus.register_command_handler(GetStatement, self.get_statement)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def handle(self, payload: Any, authorization: str | None) -> dict:
        """Answer one JSON-RPC request. Never raises."""
        request_id = payload.get("id") if isinstance(payload, dict) else None
        try:
            self.authorize(authorization)
            command = self.parse(payload)
            result = self.bus.handle_command(command)
        except PaymeError as exc:
            return {"jsonrpc": "2.0", "id": request_id, "error": exc.as_error()}
        except Exception:
            logger.error(f"Payme request {request_id} failed", exc_info=True)
            return {"jsonrpc": "2.0", "id": request_id, "error": _error(SYSTEM_ERROR).as_error()}
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def authorize(self, authorization: str | None) -> None:
        """HTTP Basic credentials whose password is the merchant key."""
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "basic" or not token:
            security_logger.warning("Payme request without Basic authorization")
            raise _error(INVALID_AUTHORIZATION)
        try:
            decoded = base64.b64decode(token.strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            security_logger.warning("Payme request with undecodable authorization")
            raise _error(INVALID_AUTHORIZATION)
        _, _, password = decoded.partition(":")
        if not self.config.merchant_key or not hmac.compare_digest(password, self.config.merchant_key):
            security_logger.warning("Payme request with invalid merchant key")
            raise _error(INVALID_AUTHORIZATION)

    def parse(self, payload: Any):
        if not isinstance(payload, dict):
            raise _error(PARSE_ERROR)
        method = payload.get("method")
        params = payload.get("params")
        if not isinstance(method, str) or not isinstance(params, dict):
            raise _error(INVALID_REQUEST)
        command_type = COMMANDS.get(method)
        if command_type is None:
            raise _error(METHOD_NOT_FOUND, method)
        return command_type.from_params(params)

    # ------------------------------------------------------------------
    # Validation shared by CheckPerform and Create
    # ------------------------------------------------------------------

    def _to_sum(self, amount: int) -> Decimal:
        return Decimal(amount) / Decimal(self.config.amount_divisor)

    def _booking_id(self, account: dict) -> int:
        raw = account.get(ACCOUNT_FIELD)
        try:
            return int(str(raw))
        except (TypeError, ValueError):
            raise _error(BOOKING_NOT_FOUND, ACCOUNT_FIELD)

    def _find_booking(self, account: dict, *, lock: bool = False) -> Booking:
        booking_id = self._booking_id(account)
        try:
            if lock:
                return load_for_update(booking_id)
            return Booking.objects.get(pk=booking_id)
        except (Booking.DoesNotExist, BookingNotFound):
            raise _error(BOOKING_NOT_FOUND, ACCOUNT_FIELD)

    def _check_payable(self, booking: Booking, amount: int) -> None:
        if booking.is_paid:
            raise _error(ALREADY_PAID, ACCOUNT_FIELD)
        if booking.status not in Booking.PAYABLE_STATUSES:
            raise _error(CANT_DO_OPERATION, ACCOUNT_FIELD)
        if self._to_sum(amount) != booking.final_total:
            raise _error(INVALID_AMOUNT)

    def _timed_out(self, row: Transaction, now: datetime) -> bool:
        return to_ms(now) - to_ms(row.create_time) > self.config.transaction_timeout_ms

    def _cancel_timed_out(self, row: Transaction) -> PaymeError:
        reconciliation.cancel(row, reason=TIMEOUT_CANCEL_REASON)
        logger.info(f"Payme transaction {row.provider_transaction_id} timed out and was cancelled")
        return _error(CANT_DO_OPERATION)

    @staticmethod
    def _created_result(row: Transaction) -> dict:
        return {
            "create_time": to_ms(row.create_time),
            "transaction": str(row.pk),
            "state": row.state,
        }

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    def check_perform_transaction(self, command: CheckPerformTransaction) -> dict:
        self._check_payable(self._find_booking(command.account), command.amount)
        return {"allow": True}

    def _existing_create(self, row: Transaction, command: CreateTransaction) -> dict:
        same_data = (
            row.booking_id == self._booking_id(command.account)
            and row.amount == self._to_sum(command.amount)
        )
        if not same_data or row.state != Transaction.State.CREATED:
            raise _error(CANT_DO_OPERATION)
        if self._timed_out(row, timezone.now()):
            raise self._cancel_timed_out(row)
        return self._created_result(row)

    def create_transaction(self, command: CreateTransaction) -> dict:
        existing = ledger.find(PROVIDER, command.id)
        if existing is None:
            with transaction.atomic():
                booking = self._find_booking(command.account, lock=True)
                # a concurrent delivery of the same id may have committed while we waited
                existing = ledger.find(PROVIDER, command.id)
                if existing is None:
                    self._check_payable(booking, command.amount)
                    holder = ledger.active_for_booking(booking.pk)
                    if holder is not None:
                        raise _error(
                            ALREADY_PAID if holder.state == Transaction.State.PERFORMED else PAYMENT_PENDING,
                            ACCOUNT_FIELD,
                        )
                    result = ledger.open_transaction(
                        PROVIDER,
                        command.id,
                        booking=booking,
                        amount=self._to_sum(command.amount),
                        provider_time=command.time,
                        payload={"account": command.account, "amount": command.amount, "time": command.time},
                    )
                    if result.created:
                        return self._created_result(result.transaction)
                    existing = result.transaction
        return self._existing_create(existing, command)

    def perform_transaction(self, command: PerformTransaction) -> dict:
        row = ledger.find(PROVIDER, command.id)
        if row is None:
            raise _error(TRANSACTION_NOT_FOUND)
        if row.state == Transaction.State.CREATED:
            if self._timed_out(row, timezone.now()):
                raise self._cancel_timed_out(row)
            try:
                row = reconciliation.perform(row).transaction
            except InvalidTransition as exc:
                logger.info(f"Payme perform refused for {row.provider_transaction_id}: {exc.message}")
                raise _error(CANT_DO_OPERATION)
        if row.state != Transaction.State.PERFORMED:
            raise _error(CANT_DO_OPERATION)
        return {
            "transaction": str(row.pk),
            "perform_time": to_ms(row.perform_time),
            "state": row.state,
        }

    def cancel_transaction(self, command: CancelTransaction) -> dict:
        row = ledger.find(PROVIDER, command.id)
        if row is None:
            raise _error(TRANSACTION_NOT_FOUND)
        if row.state == Transaction.State.PERFORMED and row.booking.status == Booking.Status.CONFIRMED:
            raise _error(UNABLE_TO_CANCEL)
        row = reconciliation.cancel(row, reason=command.reason).transaction
        return {
            "transaction": str(row.pk),
            "cancel_time": to_ms(row.cancel_time),
            "state": row.state,
        }

    def check_transaction(self, command: CheckTransaction) -> dict:
        row = ledger.find(PROVIDER, command.id)
        if row is None:
            raise _error(TRANSACTION_NOT_FOUND)
        return {
            "create_time": to_ms(row.create_time),
            "perform_time": to_ms(row.perform_time),
            "cancel_time": to_ms(row.cancel_time),
            "transaction": str(row.pk),
            "state": row.state,
            "reason": row.cancel_reason,
        }

    def get_statement(self, command: GetStatement) -> dict:
        rows = ledger.statement(PROVIDER, from_ms(command.start), from_ms(command.end))
        return {
            "transactions": [
                {
                    "id": row.provider_transaction_id,
                    "time": row.provider_time or to_ms(row.create_time),
                    "amount": int(row.amount * self.config.amount_divisor),
                    "account": {ACCOUNT_FIELD: row.booking_id},
                    "create_time": to_ms(row.create_time),
                    "perform_time": to_ms(row.perform_time),
                    "cancel_time": to_ms(row.cancel_time),
                    "transaction": str(row.pk),
                    "state": row.state,
                    "reason": row.cancel_reason,
                }
                for row in rows
            ]
        }


def checkout_url(booking: Booking, return_url: str = "", config: PaymeConfig | None = None) -> str:
    """Payme hosted checkout link for ``booking``."""
    config = config or PaymeConfig.from_settings()
    amount = int(booking.final_total * config.amount_divisor)
    params = f"m={config.merchant_id};ac.{ACCOUNT_FIELD}={booking.pk};a={amount}"
    if return_url:
        params += f";c={return_url}"
    encoded = base64.b64encode(params.encode("utf-8")).decode("ascii")
    return f"{config.checkout_url}/{encoded}"
