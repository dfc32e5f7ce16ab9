"""API tests for registration and profile endpoints."""

from __future__ import annotations

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.users.models import User


class UserAPITests(APITestCase):
    def test_register_creates_client_by_default(self) -> None:
        payload = {
            "email": "guest@example.com",
            "phone": "+998 90 123-45-67",
            "first_name": "Guest",
            "password": "StrongPass123",
        }

        response = self.client.post(reverse("user-register"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        user = User.objects.get(email=payload["email"])
        self.assertTrue(user.is_client())
        self.assertEqual(user.phone, "+998901234567")
        self.assertTrue(user.check_password(payload["password"]))

    def test_register_cannot_claim_agent_role(self) -> None:
        payload = {"email": "sneaky@example.com", "password": "StrongPass123", "role": "agent"}

        response = self.client.post(reverse("user-register"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(User.objects.filter(email=payload["email"]).exists())

    def test_me_returns_and_updates_profile(self) -> None:
        user = User.objects.create_user(email="host@example.com", password="pass12345", role=User.RoleChoices.HOST)
        self.client.force_authenticate(user)

        response = self.client.get(reverse("user-me"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["role"], "host")

        response = self.client.patch(reverse("user-me"), {"first_name": "Aziz", "role": "agent"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.first_name, "Aziz")
        self.assertTrue(user.is_host())

    def test_user_list_is_staff_only(self) -> None:
        user = User.objects.create_user(email="client@example.com", password="pass12345")
        self.client.force_authenticate(user)

        response = self.client.get(reverse("user-list"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_agent_role_helpers(self) -> None:
        agent = User.objects.create_user(email="agent@example.com", password="pass12345", role=User.RoleChoices.AGENT)
        superuser = User.objects.create_superuser(email="root@example.com", password="pass12345", username="root")

        self.assertTrue(agent.is_agent())
        self.assertTrue(superuser.is_agent())
        self.assertFalse(agent.is_client())
