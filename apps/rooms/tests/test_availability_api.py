"""API tests for the room free/busy map."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.rooms.models import Room, RoomScheduleConfig
from apps.users.models import User

MONDAY = date(2031, 3, 3)


class RoomAvailabilityAPITests(APITestCase):
    def setUp(self) -> None:
        self.host = User.objects.create_user(email="host@example.com", password="pass12345", role=User.RoleChoices.HOST)
        self.client_user = User.objects.create_user(email="client@example.com", password="pass12345")
        self.room = Room.objects.create(owner=self.host, title="Studio A", hourly_price=Decimal("50000.00"))
        RoomScheduleConfig.objects.create(
            room=self.room,
            weekday_hours={"1": {"start": "09:00", "end": "18:00"}},
            blocked_dates=["2031-03-10"],
            cooldown_minutes=30,
        )
        self.url = reverse("room-availability", args=[self.room.pk])

    def _book(self, status_value: str, start: str, end: str, day: date = MONDAY) -> Booking:
        return Booking.objects.create(
            room=self.room,
            client=self.client_user,
            time_slots=[{"date": day.isoformat(), "start_time": start, "end_time": end}],
            status=status_value,
        )

    def test_busy_time_includes_cooldown(self) -> None:
        self._book(Booking.Status.CONFIRMED, "10:00", "11:00")

        response = self.client.get(self.url, {"date": MONDAY.isoformat()})

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertIsNone(response.data["blocked"])
        self.assertEqual(response.data["busy"], [{"start": "09:30", "end": "11:30"}])
        self.assertEqual(
            response.data["free"],
            [{"start": "09:00", "end": "09:30"}, {"start": "11:30", "end": "18:00"}],
        )

    def test_cancelled_bookings_do_not_occupy(self) -> None:
        self._book(Booking.Status.CANCELLED, "10:00", "11:00")

        response = self.client.get(self.url, {"date": MONDAY.isoformat()})

        self.assertEqual(response.data["busy"], [])
        self.assertEqual(response.data["free"], [{"start": "09:00", "end": "18:00"}])

    def test_blocked_date_has_no_free_windows(self) -> None:
        response = self.client.get(self.url, {"date": "2031-03-10"})

        self.assertEqual(response.data["blocked"], "blocked_date")
        self.assertEqual(response.data["free"], [])

    def test_day_without_hours_is_closed(self) -> None:
        response = self.client.get(self.url, {"date": "2031-03-04"})

        self.assertIsNone(response.data["blocked"])
        self.assertEqual(response.data["free"], [])

    def test_date_is_required(self) -> None:
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
