"""Transaction ledger models for SlotHub."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Transaction(models.Model):
    """
    One payment-switch transaction, keyed by the provider's own id.

    Rows are created on the first callback that names a provider
    transaction id and are only ever moved forward by later callbacks for
    the same id. They are never deleted.
    """

    class Provider(models.TextChoices):
        PAYME = "payme", _("Payme")
        CLICK = "click", _("Click")

    class State(models.IntegerChoices):
        CREATED = 1, _("Created")
        PERFORMED = 2, _("Performed")
        CANCELLED = -1, _("Cancelled before perform")
        CANCELLED_AFTER_PERFORM = -2, _("Cancelled after perform")

    provider = models.CharField(max_length=16, choices=Provider.choices)
    provider_transaction_id = models.CharField(max_length=64)
    state = models.SmallIntegerField(choices=State.choices, default=State.CREATED)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="UZS")
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    provider_time = models.BigIntegerField(
        null=True,
        blank=True,
        help_text=_("Creation time reported by the provider, in milliseconds."),
    )
    create_time = models.DateTimeField()
    perform_time = models.DateTimeField(null=True, blank=True)
    cancel_time = models.DateTimeField(null=True, blank=True)
    cancel_reason = models.SmallIntegerField(null=True, blank=True)
    prepare_id = models.BigIntegerField(null=True, blank=True, unique=True)
    confirm_id = models.BigIntegerField(null=True, blank=True)
    payload = models.JSONField(default=dict, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    TERMINAL_STATES = (State.CANCELLED, State.CANCELLED_AFTER_PERFORM)

    class Meta:
        verbose_name = _("Transaction")
        verbose_name_plural = _("Transactions")
        ordering = ["-create_time"]
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "provider_transaction_id"],
                name="ledger_unique_provider_transaction",
            ),
        ]
        indexes = [
            models.Index(fields=["booking", "state"], name="ledger_booking_state"),
            models.Index(fields=["provider", "create_time"], name="ledger_provider_created"),
        ]

    def __str__(self) -> str:
        return f"{self.provider}:{self.provider_transaction_id} ({self.get_state_display()})"

    @property
    def is_cancelled(self) -> bool:
        return self.state in self.TERMINAL_STATES
