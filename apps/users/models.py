"""User domain models for SlotHub.

The marketplace distinguishes three roles: clients reserve rooms, hosts
publish rooms and decide on incoming requests, agents are platform staff
with elevated rights over every booking. Authentication itself is handled
by Django auth and SimpleJWT; this module only adds the role model.
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth.models import AbstractUser, BaseUserManager  # type: ignore
from django.core.validators import RegexValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


PHONE_VALIDATOR = RegexValidator(
    regex=r"^\+?\d{7,15}$",
    message=_("Invalid phone number. Use the international format without spaces."),
)


class CustomUserManager(BaseUserManager):
    """Creates users keyed by email; phones are stored without separators."""

    use_in_migrations = True

    def _create_user(self, email: str, password: str | None, **extra_fields: Any):
        if not email:
            raise ValueError("Email is required to create a user.")
        if extra_fields.get("phone"):
            extra_fields["phone"] = self.normalize_phone(extra_fields["phone"])

        user = self.model(email=self.normalize_email(email), **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_user(self, email: str, password: str | None = None, **extra_fields: Any):
        extra_fields.setdefault("role", CustomUser.RoleChoices.CLIENT)
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email: str, password: str | None = None, **extra_fields: Any):
        # Superusers operate the platform, so they act as agents on bookings.
        extra_fields.setdefault("role", CustomUser.RoleChoices.AGENT)
        for flag in ("is_staff", "is_superuser"):
            extra_fields.setdefault(flag, True)
            if extra_fields[flag] is not True:
                raise ValueError(f"Superuser must have {flag}=True.")
        return self._create_user(email, password, **extra_fields)

    @staticmethod
    def normalize_phone(phone: str) -> str:
        return "".join(ch for ch in phone if ch not in " -()")


class CustomUser(AbstractUser):
    """Marketplace user with a single role."""

    class RoleChoices(models.TextChoices):
        CLIENT = "client", _("Client")
        HOST = "host", _("Host")
        AGENT = "agent", _("Agent")

    username = models.CharField(
        _("Display name"),
        max_length=150,
        blank=True,
    )
    email = models.EmailField(_("Email"), unique=True)
    phone = models.CharField(
        _("Phone"),
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        validators=[PHONE_VALIDATOR],
    )
    role = models.CharField(
        _("Role"),
        max_length=20,
        choices=RoleChoices.choices,
        default=RoleChoices.CLIENT,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = CustomUserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    class Meta:
        verbose_name = _("User")
        verbose_name_plural = _("Users")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.email} ({self.get_role_display()})"

    def is_client(self) -> bool:
        return self.role == self.RoleChoices.CLIENT

    def is_host(self) -> bool:
        return self.role == self.RoleChoices.HOST

    def is_agent(self) -> bool:
        return self.role == self.RoleChoices.AGENT or self.is_superuser


# Short alias used by serializers and tests
User = CustomUser
