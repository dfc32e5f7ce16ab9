"""Tests for the Click prepare/complete endpoints and checkout links."""

from __future__ import annotations

import base64
import hashlib
from decimal import Decimal
from unittest import mock
from urllib.parse import parse_qs, urlparse

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.payments import ledger, reconciliation
from apps.payments.models import Transaction
from apps.users.models import User

from .factories import make_booking

SECRET = "test-click-secret"
SERVICE_ID = "1001"


def signed(data: dict, action: int) -> dict:
    prepare_id = str(data.get("merchant_prepare_id", "")) if action == 1 else ""
    raw = (
        f"{data['click_trans_id']}{data['service_id']}{SECRET}{data['merchant_trans_id']}"
        f"{prepare_id}{data['amount']}{action}{data['sign_time']}"
    )
    return {**data, "action": action, "sign_string": hashlib.md5(raw.encode()).hexdigest()}


class ClickAPITests(APITestCase):
    def setUp(self) -> None:
        self.booking = make_booking(final_total="100.00")
        self.url = reverse("click-callback")

    def _base(self, **overrides) -> dict:
        data = {
            "click_trans_id": "555001",
            "service_id": SERVICE_ID,
            "click_paydoc_id": "777",
            "merchant_trans_id": str(self.booking.pk),
            "amount": "100.00",
            "error": 0,
            "error_note": "Success",
            "sign_time": "2031-03-01 10:00:00",
        }
        data.update(overrides)
        return data

    def prepare(self, **overrides) -> dict:
        response = self.client.post(self.url, signed(self._base(**overrides), 0))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return response.data

    def complete(self, prepare_id, **overrides) -> dict:
        data = signed(self._base(merchant_prepare_id=prepare_id, **overrides), 1)
        response = self.client.post(self.url, data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return response.data

    def test_tampered_signature_leaves_no_ledger_row(self) -> None:
        data = signed(self._base(), 0)
        data["amount"] = "1.00"

        response = self.client.post(self.url, data)

        self.assertEqual(response.data["error"], -1)
        self.assertFalse(Transaction.objects.exists())

    def test_prepare_is_idempotent(self) -> None:
        first = self.prepare()
        second = self.prepare()

        self.assertEqual(first["error"], 0)
        self.assertEqual(first["merchant_prepare_id"], second["merchant_prepare_id"])
        self.assertEqual(Transaction.objects.count(), 1)
        row = Transaction.objects.get()
        self.assertEqual(row.provider, Transaction.Provider.CLICK)
        self.assertEqual(row.state, Transaction.State.CREATED)

    def test_prepare_checks_amount(self) -> None:
        data = self.prepare(amount="99.00")

        self.assertEqual(data["error"], -2)
        self.assertFalse(Transaction.objects.exists())

    def test_prepare_unknown_booking(self) -> None:
        data = self.prepare(merchant_trans_id="999999")

        self.assertEqual(data["error"], -5)

    def test_missing_fields(self) -> None:
        response = self.client.post(self.url, {"action": 0, "click_trans_id": "1"})

        self.assertEqual(response.data["error"], -8)

    def test_unknown_action(self) -> None:
        response = self.client.post(self.url, signed(self._base(), 7))

        self.assertEqual(response.data["error"], -3)

    def test_complete_applies_payment_once(self) -> None:
        prepare_id = self.prepare()["merchant_prepare_id"]

        first = self.complete(prepare_id)
        second = self.complete(prepare_id)

        self.assertEqual(first["error"], 0)
        self.assertEqual(second["error"], 0)
        self.assertEqual(first["merchant_confirm_id"], second["merchant_confirm_id"])
        self.booking.refresh_from_db()
        self.assertTrue(self.booking.is_paid)
        self.assertEqual(self.booking.status, Booking.Status.APPROVED)
        self.assertEqual(Transaction.objects.get().state, Transaction.State.PERFORMED)

    def test_complete_with_wrong_prepare_id(self) -> None:
        self.prepare()

        data = self.complete(987654321)

        self.assertEqual(data["error"], -6)

    def test_complete_with_provider_error_cancels(self) -> None:
        prepare_id = self.prepare()["merchant_prepare_id"]

        data = self.complete(prepare_id, error=-5017, error_note="Insufficient funds")

        self.assertEqual(data["error"], -9)
        self.assertEqual(Transaction.objects.get().state, Transaction.State.CANCELLED)
        self.booking.refresh_from_db()
        self.assertFalse(self.booking.is_paid)
        self.assertEqual(self.booking.status, Booking.Status.REJECTED)

    def test_paid_booking_refuses_new_prepare(self) -> None:
        prepare_id = self.prepare()["merchant_prepare_id"]
        self.complete(prepare_id)

        data = self.prepare(click_trans_id="555002")

        self.assertEqual(data["error"], -4)

    def test_repeated_complete_applies_payment_once(self) -> None:
        prepare_id = self.prepare()["merchant_prepare_id"]
        with mock.patch("apps.bookings.tasks.notify_booking_event.delay") as delay:
            with self.captureOnCommitCallbacks(execute=True):
                self.complete(prepare_id)
            self.booking.refresh_from_db()
            paid_at = self.booking.paid_at

            with self.captureOnCommitCallbacks(execute=True):
                self.complete(prepare_id)

        self.booking.refresh_from_db()
        self.assertEqual(self.booking.paid_at, paid_at)
        paid_events = [call.args[0] for call in delay.call_args_list if call.args[0]["event_type"] == "BookingPaid"]
        self.assertEqual(len(paid_events), 1)
        self.assertEqual(ledger.settled_total(self.booking.pk), Decimal("100.00"))

    def test_open_payme_transaction_blocks_prepare(self) -> None:
        ledger.open_transaction(Transaction.Provider.PAYME, "p1", booking=self.booking, amount=Decimal("100.00"))

        data = self.prepare()

        self.assertEqual(data["error"], -9)
        self.assertFalse(Transaction.objects.filter(provider=Transaction.Provider.CLICK).exists())

    def test_performed_payme_transaction_blocks_prepare(self) -> None:
        row = ledger.open_transaction(
            Transaction.Provider.PAYME, "p1", booking=self.booking, amount=Decimal("100.00")
        ).transaction
        reconciliation.perform(row)

        data = self.prepare()

        self.assertEqual(data["error"], -4)
        self.assertFalse(Transaction.objects.filter(provider=Transaction.Provider.CLICK).exists())

    def test_complete_refused_when_booking_paid_elsewhere(self) -> None:
        prepare_id = self.prepare()["merchant_prepare_id"]
        other = ledger.open_transaction(
            Transaction.Provider.PAYME, "p1", booking=self.booking, amount=Decimal("100.00")
        ).transaction
        reconciliation.perform(other)

        data = self.complete(prepare_id)

        self.assertEqual(data["error"], -4)
        click_row = Transaction.objects.get(provider=Transaction.Provider.CLICK)
        self.assertEqual(click_row.state, Transaction.State.CREATED)
        self.assertEqual(ledger.settled_total(self.booking.pk), Decimal("100.00"))

    def test_prepare_and_complete_aliases(self) -> None:
        response = self.client.post(reverse("click-prepare"), signed(self._base(), 0))
        prepare_id = response.data["merchant_prepare_id"]

        data = signed(self._base(merchant_prepare_id=prepare_id), 1)
        response = self.client.post(reverse("click-complete"), data)

        self.assertEqual(response.data["error"], 0)


class CheckoutAPITests(APITestCase):
    def setUp(self) -> None:
        self.booking = make_booking(final_total="150000.00")
        self.client.force_authenticate(self.booking.client)
        self.url = reverse("payments-checkout")

    def test_payme_link(self) -> None:
        response = self.client.post(
            self.url,
            {"booking_id": self.booking.pk, "provider": "payme", "return_url": "https://example.com/done"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        prefix = "https://checkout.paycom.uz/"
        self.assertTrue(response.data["url"].startswith(prefix))
        encoded = response.data["url"][len(prefix):]
        decoded = base64.b64decode(encoded).decode()
        self.assertEqual(
            decoded,
            f"m=test-merchant;ac.booking_id={self.booking.pk};a=15000000;c=https://example.com/done",
        )

    def test_click_link(self) -> None:
        response = self.client.post(self.url, {"booking_id": self.booking.pk, "provider": "click"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        url = urlparse(response.data["url"])
        query = parse_qs(url.query)
        self.assertEqual(url.path, "/services/pay")
        self.assertEqual(query["service_id"], [SERVICE_ID])
        self.assertEqual(query["merchant_id"], ["2002"])
        self.assertEqual(query["amount"], ["150000.00"])
        self.assertEqual(query["transaction_param"], [str(self.booking.pk)])

    def test_only_own_bookings(self) -> None:
        other = User.objects.create_user(email="other@example.com", password="pass12345")
        self.client.force_authenticate(other)

        response = self.client.post(self.url, {"booking_id": self.booking.pk, "provider": "payme"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_pending_booking_is_not_payable(self) -> None:
        Booking.objects.filter(pk=self.booking.pk).update(status=Booking.Status.PENDING)

        response = self.client.post(self.url, {"booking_id": self.booking.pk, "provider": "payme"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
