"""Read-only room endpoints, including the free/busy map."""

from __future__ import annotations

from datetime import timedelta

from django.utils import timezone  # type: ignore
from rest_framework import permissions, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.bookings.domain.availability import busy_intervals, describe, free_windows
from apps.bookings.models import Booking
from apps.bookings.services import ACTIVE_STATUSES

from .models import Room
from .serializers import AvailabilityQuerySerializer, RoomSerializer


class RoomViewSet(viewsets.ReadOnlyModelViewSet):
    """Published rooms; schedule changes are made by hosts elsewhere."""

    queryset = Room.objects.filter(is_active=True).select_related("schedule", "owner")
    serializer_class = RoomSerializer
    permission_classes = [permissions.AllowAny]

    @action(detail=True, methods=["get"])
    def availability(self, request, pk=None):  # type: ignore
        room: Room = self.get_object()  # type: ignore
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        day = query.validated_data["date"]

        config = room.get_schedule().to_domain()
        reservations = [
            booking.to_reservation()
            for booking in Booking.objects.filter(
                room=room,
                status__in=ACTIVE_STATUSES,
                first_date__lte=day + timedelta(days=1),
                last_date__gte=day - timedelta(days=1),
            )
        ]
        now = timezone.localtime()
        return Response(
            {
                "room_id": room.pk,
                "date": day.isoformat(),
                "blocked": getattr(config.blocked_reason(day), "value", None),
                "busy": describe(busy_intervals(config, reservations, day, now=now), day),
                "free": describe(free_windows(config, reservations, day, now=now), day),
            }
        )
