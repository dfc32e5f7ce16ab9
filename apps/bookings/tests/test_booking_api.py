"""Integration tests for booking API endpoints."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings import services
from apps.bookings.domain.events import BookingTransitioned
from apps.bookings.models import AdmissionConflictRecord, Booking
from apps.payments.models import Transaction
from apps.rooms.models import Room, RoomScheduleConfig
from apps.users.models import User

MONDAY = date(2031, 3, 3)


class BookingTestMixin:
    """Users, a Monday-only room and a helper to create bookings."""

    def setUp(self) -> None:
        self.client_user = User.objects.create_user(email="client@example.com", password="pass12345")
        self.other_client = User.objects.create_user(email="other@example.com", password="pass12345")
        self.host = User.objects.create_user(email="host@example.com", password="pass12345", role=User.RoleChoices.HOST)
        self.stranger_host = User.objects.create_user(
            email="stranger@example.com", password="pass12345", role=User.RoleChoices.HOST
        )
        self.agent = User.objects.create_user(email="agent@example.com", password="pass12345", role=User.RoleChoices.AGENT)
        self.room = Room.objects.create(
            owner=self.host,
            title="Studio A",
            hourly_price=Decimal("50000.00"),
            full_day_price=Decimal("300000.00"),
        )
        RoomScheduleConfig.objects.create(
            room=self.room,
            weekday_hours={"1": {"start": "09:00", "end": "18:00"}},
            cooldown_minutes=30,
            full_day_hours=8,
        )

    def _slots(self, start: str, end: str, day: date = MONDAY) -> list:
        return [{"date": day.isoformat(), "start_time": start, "end_time": end}]

    def _booking(self, start: str = "10:00", end: str = "11:00", client=None, **extra) -> Booking:
        extra.setdefault("expires_at", timezone.now() + timedelta(minutes=30))
        extra.setdefault("final_total", Decimal("50000.00"))
        return Booking.objects.create(
            room=self.room,
            client=client or self.client_user,
            time_slots=self._slots(start, end),
            **extra,
        )


class BookingCreateAPITests(BookingTestMixin, APITestCase):
    def setUp(self) -> None:
        super().setUp()
        self.client.force_authenticate(self.client_user)
        self.url = reverse("booking-list")

    def test_create_prices_server_side(self) -> None:
        payload = {
            "room": self.room.pk,
            "time_slots": [{"date": MONDAY.isoformat(), "startTime": "10:00", "endTime": "13:00"}],
            "protection_plan_selected": True,
        }

        response = self.client.post(self.url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        booking = Booking.objects.get(pk=response.data["id"])
        self.assertEqual(booking.status, Booking.Status.PENDING)
        self.assertEqual(booking.base_total, Decimal("150000.00"))
        self.assertEqual(booking.protection_plan_fee, Decimal("30000.00"))
        self.assertEqual(booking.final_total, Decimal("180000.00"))
        self.assertIsNotNone(booking.expires_at)
        self.assertEqual(booking.time_slots[0]["start_time"], "10:00")

    def test_cooldown_conflict_returns_409_and_is_recorded(self) -> None:
        self._booking("10:00", "11:00", client=self.other_client, status=Booking.Status.CONFIRMED)

        response = self.client.post(
            self.url,
            {"room": self.room.pk, "time_slots": self._slots("11:15", "12:15")},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["reason"], "cooldown_conflict")
        record = AdmissionConflictRecord.objects.get()
        self.assertEqual(record.reason, "cooldown_conflict")
        self.assertEqual(record.client, self.client_user)
        self.assertEqual(Booking.objects.count(), 1)

    def test_slot_after_cooldown_is_admitted(self) -> None:
        self._booking("10:00", "11:00", client=self.other_client, status=Booking.Status.CONFIRMED)

        response = self.client.post(
            self.url,
            {"room": self.room.pk, "time_slots": self._slots("11:30", "12:30")},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)

    def test_expired_pending_does_not_block_admission(self) -> None:
        self._booking(client=self.other_client, expires_at=timezone.now() - timedelta(minutes=1))

        response = self.client.post(
            self.url,
            {"room": self.room.pk, "time_slots": self._slots("10:00", "11:00")},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)

    def test_outside_hours_is_refused(self) -> None:
        response = self.client.post(
            self.url,
            {"room": self.room.pk, "time_slots": self._slots("17:00", "19:00")},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["reason"], "outside_hours")

    def test_malformed_time_is_a_validation_error(self) -> None:
        response = self.client.post(
            self.url,
            {"room": self.room.pk, "time_slots": self._slots("25:00", "26:00")},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_hosts_cannot_request_bookings(self) -> None:
        self.client.force_authenticate(self.host)

        response = self.client.post(
            self.url,
            {"room": self.room.pk, "time_slots": self._slots("10:00", "11:00")},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_is_scoped_to_stakeholders(self) -> None:
        own = self._booking("10:00", "11:00")
        self._booking("14:00", "15:00", client=self.other_client)

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = response.data["results"] if isinstance(response.data, dict) else response.data
        self.assertEqual([item["id"] for item in results], [own.pk])


class BookingTransitionAPITests(BookingTestMixin, APITestCase):
    def test_host_selects_and_approves(self) -> None:
        booking = self._booking()
        self.client.force_authenticate(self.host)

        response = self.client.post(reverse("booking-select", args=[booking.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "selected")

        response = self.client.post(reverse("booking-approve", args=[booking.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.APPROVED)
        self.assertIsNotNone(booking.approved_at)

    def test_select_refused_after_expiry(self) -> None:
        booking = self._booking(expires_at=timezone.now() - timedelta(seconds=1))
        self.client.force_authenticate(self.host)

        response = self.client.post(reverse("booking-select", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "booking_expired")
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.PENDING)

    def test_unrelated_host_cannot_approve(self) -> None:
        booking = self._booking()
        self.client.force_authenticate(self.stranger_host)

        response = self.client.post(reverse("booking-approve", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.PENDING)

    def test_client_cannot_approve_own_booking(self) -> None:
        booking = self._booking()
        self.client.force_authenticate(self.client_user)

        response = self.client.post(reverse("booking-approve", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_client_cannot_reject_own_booking(self) -> None:
        booking = self._booking()
        self.client.force_authenticate(self.client_user)

        response = self.client.post(reverse("booking-reject", args=[booking.pk]), {"reason": "Changed my mind"})

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.PENDING)

    def test_host_rejects_with_reason(self) -> None:
        booking = self._booking()
        self.client.force_authenticate(self.host)

        response = self.client.post(reverse("booking-reject", args=[booking.pk]), {"reason": "Room under repair"})

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.REJECTED)
        self.assertEqual(booking.status_reason, "Room under repair")

    def test_approve_rejects_competing_requests(self) -> None:
        winner = self._booking("10:00", "11:00")
        loser = self._booking("11:15", "12:00", client=self.other_client)
        unrelated = self._booking("15:00", "16:00", client=self.other_client)
        self.client.force_authenticate(self.host)

        response = self.client.get(reverse("booking-competing", args=[winner.pk]))
        self.assertEqual([item["id"] for item in response.data], [loser.pk])

        response = self.client.post(reverse("booking-approve", args=[winner.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)

        loser.refresh_from_db()
        unrelated.refresh_from_db()
        self.assertEqual(loser.status, Booking.Status.REJECTED)
        self.assertIn(winner.request_id, loser.status_reason)
        self.assertEqual(unrelated.status, Booking.Status.PENDING)

    def test_client_cancels_with_reason(self) -> None:
        booking = self._booking()
        self.client.force_authenticate(self.client_user)

        response = self.client.post(reverse("booking-cancel", args=[booking.pk]), {"reason": "Plans changed"})

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.CANCELLED)
        self.assertEqual(booking.status_reason, "Plans changed")

    def test_terminal_booking_cannot_move(self) -> None:
        booking = self._booking(status=Booking.Status.REJECTED)
        self.client.force_authenticate(self.host)

        response = self.client.post(reverse("booking-select", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_transition")

    def test_cancel_refused_after_performed_payment(self) -> None:
        booking = self._booking(status=Booking.Status.APPROVED)
        Transaction.objects.create(
            provider=Transaction.Provider.PAYME,
            provider_transaction_id="performed-1",
            state=Transaction.State.PERFORMED,
            amount=booking.final_total,
            booking=booking,
            client=self.client_user,
            create_time=timezone.now(),
            perform_time=timezone.now(),
        )
        self.client.force_authenticate(self.client_user)

        response = self.client.post(reverse("booking-cancel", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "payment_performed")
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.APPROVED)

    def test_confirm_requires_payment_or_cash(self) -> None:
        booking = self._booking(status=Booking.Status.APPROVED)
        self.client.force_authenticate(self.host)

        response = self.client.post(reverse("booking-confirm", args=[booking.pk]))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "payment_required")

        self.client.force_authenticate(self.client_user)
        response = self.client.post(reverse("booking-pay-cash", args=[booking.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertTrue(response.data["cash_selected"])

        self.client.force_authenticate(self.host)
        response = self.client.post(reverse("booking-confirm", args=[booking.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "confirmed")

    def test_transition_events_reach_the_notification_task(self) -> None:
        booking = self._booking()
        with mock.patch("apps.bookings.tasks.notify_booking_event.delay") as delay:
            with self.captureOnCommitCallbacks(execute=True):
                services.select_booking(booking.pk, self.host)

        delay.assert_called_once()
        payload = delay.call_args.args[0]
        self.assertEqual(payload["event_type"], BookingTransitioned.__name__)
        self.assertEqual(payload["to_status"], "selected")


class ExpirySweepTests(BookingTestMixin, APITestCase):
    def test_sweep_cancels_only_expired_pending(self) -> None:
        expired = self._booking("10:00", "11:00", expires_at=timezone.now() - timedelta(minutes=5))
        live = self._booking("14:00", "15:00")
        selected = self._booking(
            "16:00", "17:00", status=Booking.Status.SELECTED, expires_at=timezone.now() - timedelta(minutes=5)
        )

        self.assertEqual(services.expire_pending_bookings(), 1)

        expired.refresh_from_db()
        live.refresh_from_db()
        selected.refresh_from_db()
        self.assertEqual(expired.status, Booking.Status.CANCELLED)
        self.assertIsNotNone(expired.cancelled_at)
        self.assertEqual(live.status, Booking.Status.PENDING)
        self.assertEqual(selected.status, Booking.Status.SELECTED)

    def test_sweep_endpoint_is_agent_only(self) -> None:
        self._booking(expires_at=timezone.now() - timedelta(minutes=5))

        self.client.force_authenticate(self.host)
        response = self.client.post(reverse("booking-sweep"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.agent)
        response = self.client.post(reverse("booking-sweep"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {"expired": 1})

    def test_management_command(self) -> None:
        booking = self._booking(expires_at=timezone.now() - timedelta(minutes=5))

        out = StringIO()
        call_command("sweep_expired_bookings", stdout=out)

        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.Status.CANCELLED)

    def test_celery_task_runs_the_sweep(self) -> None:
        from apps.bookings.tasks import expire_pending_bookings

        self._booking(expires_at=timezone.now() - timedelta(minutes=5))

        self.assertEqual(expire_pending_bookings(), {"expired": 1})


class ConflictReportTests(BookingTestMixin, APITestCase):
    def test_report_counts_recent_conflicts(self) -> None:
        AdmissionConflictRecord.objects.create(room=self.room, reason="overlap", time_slots=[])
        AdmissionConflictRecord.objects.create(room=self.room, reason="overlap", time_slots=[])
        AdmissionConflictRecord.objects.create(room=self.room, reason="cooldown_conflict", time_slots=[])
        old = AdmissionConflictRecord.objects.create(room=self.room, reason="overlap", time_slots=[])
        AdmissionConflictRecord.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(hours=3))
        self.client.force_authenticate(self.agent)

        response = self.client.get(reverse("booking-conflicts"), {"window_minutes": 60})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["total"], 3)
        self.assertEqual(response.data["by_reason"], {"overlap": 2, "cooldown_conflict": 1})
        self.assertEqual(response.data["by_room"], [{"room_id": self.room.pk, "total": 3}])

    def test_report_is_agent_only(self) -> None:
        self.client.force_authenticate(self.client_user)

        response = self.client.get(reverse("booking-conflicts"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
