"""API views for the booking domain."""

from __future__ import annotations

from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.users.permissions import IsAgent, IsClient
from shared.domain.exceptions import DomainError
from shared.infrastructure.api_errors import domain_error_response

from . import services
from .models import Booking
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    TransitionSerializer,
)


class IsBookingStakeholder(permissions.BasePermission):
    """Clients, room hosts and agents have access to a booking."""

    def has_object_permission(self, request, view, obj: Booking):  # type: ignore
        user = request.user
        if not user.is_authenticated:
            return False
        return services.can_view(user, obj)


class BookingViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Booking requests and their state transitions."""

    queryset = Booking.objects.all()
    permission_classes = [permissions.IsAuthenticated, IsBookingStakeholder]
    filterset_fields = ["status", "room", "is_paid", "needs_review", "cash_selected"]

    def get_serializer_class(self):  # type: ignore
        if self.action == "create":
            return BookingCreateSerializer
        if self.action in ("reject", "cancel"):
            return TransitionSerializer
        return BookingSerializer

    def get_permissions(self):  # type: ignore
        if self.action == "create":
            return [IsClient()]
        if self.action in ("sweep", "conflicts"):
            return [IsAgent()]
        return super().get_permissions()

    def get_queryset(self):  # type: ignore
        return services.visible_bookings(self.request.user)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            booking = serializer.save()
        except DomainError as exc:
            return domain_error_response(exc)
        read_serializer = BookingSerializer(booking, context=self.get_serializer_context())
        headers = self.get_success_headers(read_serializer.data)
        return Response(read_serializer.data, status=status.HTTP_201_CREATED, headers=headers)

    def _run_transition(self, request, operation, **kwargs):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        try:
            booking = operation(booking.pk, request.user, **kwargs)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(BookingSerializer(booking, context=self.get_serializer_context()).data)

    def _reason(self, request) -> str:  # type: ignore
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data["reason"]

    @action(detail=True, methods=["post"])
    def select(self, request, pk=None):  # type: ignore
        return self._run_transition(request, services.select_booking)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):  # type: ignore
        return self._run_transition(request, services.approve_booking)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):  # type: ignore
        return self._run_transition(request, services.reject_booking, reason=self._reason(request))

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        return self._run_transition(request, services.cancel_booking, reason=self._reason(request))

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):  # type: ignore
        return self._run_transition(request, services.confirm_booking)

    @action(detail=True, methods=["post"], url_path="pay-cash")
    def pay_cash(self, request, pk=None):  # type: ignore
        return self._run_transition(request, services.select_cash_payment)

    @action(detail=True, methods=["get"])
    def competing(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        if not services.can_manage(request.user, booking):
            return Response(status=status.HTTP_403_FORBIDDEN)
        competitors = services.competing_bookings(booking)
        return Response(BookingSerializer(competitors, many=True, context=self.get_serializer_context()).data)

    @action(detail=False, methods=["post"])
    def sweep(self, request):  # type: ignore
        return Response({"expired": services.expire_pending_bookings()})

    @action(detail=False, methods=["get"])
    def conflicts(self, request):  # type: ignore
        window = request.query_params.get("window_minutes")
        try:
            window_minutes = int(window) if window else None
        except ValueError:
            return Response({"detail": "window_minutes must be an integer."}, status=status.HTTP_400_BAD_REQUEST)
        return Response(services.admission_conflict_report(window_minutes=window_minutes))
