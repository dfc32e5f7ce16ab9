"""Serializers for the payments API."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Transaction


class CheckoutSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField(min_value=1)
    provider = serializers.ChoiceField(choices=Transaction.Provider.choices)
    return_url = serializers.URLField(required=False, allow_blank=True, default="")
