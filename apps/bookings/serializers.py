"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.rooms.models import Room
from shared.domain.value_objects import TimeSlot

from .models import Booking
from .services import create_booking


class TimeSlotSerializer(serializers.Serializer):
    """One requested slot; accepts snake_case or camelCase time keys."""

    date = serializers.DateField()
    start_time = serializers.CharField(max_length=5)
    end_time = serializers.CharField(max_length=5)

    def to_internal_value(self, data):  # type: ignore
        if isinstance(data, dict):
            data = {
                "date": data.get("date"),
                "start_time": data.get("start_time", data.get("startTime")),
                "end_time": data.get("end_time", data.get("endTime")),
            }
        return super().to_internal_value(data)

    def validate(self, attrs):  # type: ignore
        try:
            return TimeSlot(attrs["date"], attrs["start_time"], attrs["end_time"])
        except ValueError as exc:
            raise serializers.ValidationError(str(exc)) from exc


class BookingCreateSerializer(serializers.Serializer):
    """Booking request by a client; prices are computed server-side."""

    room = serializers.PrimaryKeyRelatedField(queryset=Room.objects.filter(is_active=True))
    time_slots = TimeSlotSerializer(many=True, allow_empty=False)
    protection_plan_selected = serializers.BooleanField(default=False)

    def create(self, validated_data):  # type: ignore
        request = self.context["request"]
        return create_booking(
            client=request.user,
            room=validated_data["room"],
            slots=validated_data["time_slots"],
            protection_plan_selected=validated_data["protection_plan_selected"],
        )


class BookingSerializer(serializers.ModelSerializer):
    """Detailed booking representation."""

    client_id = serializers.ReadOnlyField(source="client.id")
    room_id = serializers.ReadOnlyField(source="room.id")
    room_title = serializers.ReadOnlyField(source="room.title")

    class Meta:
        model = Booking
        fields = [
            "id",
            "request_id",
            "client_id",
            "room_id",
            "room_title",
            "time_slots",
            "status",
            "status_reason",
            "base_total",
            "protection_plan_selected",
            "protection_plan_fee",
            "final_total",
            "currency",
            "cash_selected",
            "is_paid",
            "needs_review",
            "review_reason",
            "refund_required",
            "expires_at",
            "selected_at",
            "approved_at",
            "confirmed_at",
            "rejected_at",
            "cancelled_at",
            "paid_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TransitionSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
