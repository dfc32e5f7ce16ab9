"""Typed access to the ``PAYME`` and ``CLICK`` settings."""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings  # type: ignore


@dataclass(frozen=True)
class PaymeConfig:
    merchant_id: str = ""
    merchant_key: str = ""
    checkout_url: str = "https://checkout.paycom.uz"
    transaction_timeout_ms: int = 43_200_000
    amount_divisor: int = 100

    @classmethod
    def from_settings(cls) -> "PaymeConfig":
        raw = getattr(settings, "PAYME", {}) or {}
        return cls(
            merchant_id=raw.get("MERCHANT_ID", cls.merchant_id),
            merchant_key=raw.get("MERCHANT_KEY", cls.merchant_key),
            checkout_url=raw.get("CHECKOUT_URL", cls.checkout_url).rstrip("/"),
            transaction_timeout_ms=int(raw.get("TRANSACTION_TIMEOUT_MS", cls.transaction_timeout_ms)),
            amount_divisor=int(raw.get("AMOUNT_DIVISOR", cls.amount_divisor)),
        )


@dataclass(frozen=True)
class ClickConfig:
    service_id: str = ""
    merchant_id: str = ""
    secret_key: str = ""
    checkout_url: str = "https://my.click.uz"

    @classmethod
    def from_settings(cls) -> "ClickConfig":
        raw = getattr(settings, "CLICK", {}) or {}
        return cls(
            service_id=str(raw.get("SERVICE_ID", cls.service_id)),
            merchant_id=str(raw.get("MERCHANT_ID", cls.merchant_id)),
            secret_key=raw.get("SECRET_KEY", cls.secret_key),
            checkout_url=raw.get("CHECKOUT_URL", cls.checkout_url).rstrip("/"),
        )
