"""Serializers for rooms and their schedule."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Room, RoomScheduleConfig


class RoomScheduleConfigSerializer(serializers.ModelSerializer):
    class Meta:
        model = RoomScheduleConfig
        fields = [
            "weekday_hours",
            "blocked_dates",
            "blocked_weekdays",
            "cooldown_minutes",
            "full_day_hours",
            "minimum_hours",
        ]
        read_only_fields = fields


class RoomSerializer(serializers.ModelSerializer):
    owner_id = serializers.ReadOnlyField(source="owner.id")
    schedule = RoomScheduleConfigSerializer(read_only=True)

    class Meta:
        model = Room
        fields = [
            "id",
            "owner_id",
            "title",
            "description",
            "hourly_price",
            "full_day_price",
            "currency",
            "is_active",
            "schedule",
        ]
        read_only_fields = fields


class AvailabilityQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
