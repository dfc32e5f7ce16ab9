"""Serializers for user-related API endpoints."""

from __future__ import annotations

from django.contrib.auth import get_user_model  # type: ignore
from rest_framework import serializers  # type: ignore

from .models import PHONE_VALIDATOR

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "username",
            "first_name",
            "last_name",
            "phone",
            "role",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "email", "role", "created_at", "updated_at"]


class RegisterSerializer(serializers.ModelSerializer):
    """Self-registration as a client or a host. Agents are created by staff."""

    password = serializers.CharField(write_only=True, min_length=8)
    phone = serializers.CharField(required=False, allow_blank=True)
    role = serializers.ChoiceField(
        choices=[User.RoleChoices.CLIENT, User.RoleChoices.HOST],
        default=User.RoleChoices.CLIENT,
    )

    class Meta:
        model = User
        fields = ["email", "password", "phone", "first_name", "last_name", "username", "role"]

    def validate_phone(self, value: str) -> str | None:
        if not value:
            return None
        value = User.objects.normalize_phone(value)
        PHONE_VALIDATOR(value)
        if User.objects.filter(phone=value).exists():
            raise serializers.ValidationError("A user with this phone already exists.")
        return value

    def create(self, validated_data):  # type: ignore
        password = validated_data.pop("password")
        return User.objects.create_user(password=password, **validated_data)
