"""
Payment endpoints.

The provider callbacks authenticate with their own protocol (Basic auth for
Payme, md5 signatures for Click), so DRF authentication and CSRF are off for
them and they always answer HTTP 200.
"""

from __future__ import annotations

import json
import logging

from django.utils.decorators import method_decorator  # type: ignore
from django.views.decorators.csrf import csrf_exempt  # type: ignore
from rest_framework import permissions, status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.bookings.models import Booking
from apps.users.permissions import IsClient

from .models import Transaction
from .providers import click, payme
from .serializers import CheckoutSerializer

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name="dispatch")
class PaymeCallbackView(APIView):
    """Payme merchant JSON-RPC endpoint."""

    authentication_classes: list = []
    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):  # type: ignore
        try:
            payload = json.loads(request.body or b"null")
        except (TypeError, ValueError):
            payload = None
        answer = payme.PaymeMerchantAPI().handle(payload, request.META.get("HTTP_AUTHORIZATION"))
        return Response(answer, status=status.HTTP_200_OK)


@method_decorator(csrf_exempt, name="dispatch")
class ClickCallbackView(APIView):
    """Click SHOP-API endpoint. ``action`` pins prepare or complete."""

    authentication_classes: list = []
    permission_classes = [permissions.AllowAny]
    click_action: int | None = None

    def post(self, request, *args, **kwargs):  # type: ignore
        answer = click.ClickMerchantAPI().handle(request.data, action=self.click_action)
        return Response(answer, status=status.HTTP_200_OK)


class CheckoutView(APIView):
    """Payment link for a payable booking owned by the requesting client."""

    permission_classes = [IsClient]

    def post(self, request, *args, **kwargs):  # type: ignore
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        booking = Booking.objects.filter(pk=data["booking_id"]).first()
        if booking is None:
            return Response({"detail": "Booking not found.", "code": "not_found"}, status=status.HTTP_404_NOT_FOUND)
        if booking.client_id != request.user.pk:
            return Response(
                {"detail": "You can only pay for your own bookings.", "code": "forbidden"},
                status=status.HTTP_403_FORBIDDEN,
            )
        if booking.is_paid or booking.status not in Booking.PAYABLE_STATUSES:
            return Response(
                {"detail": "Booking is not payable.", "code": "not_payable"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        if data["provider"] == Transaction.Provider.PAYME:
            url = payme.checkout_url(booking, data["return_url"])
        else:
            url = click.checkout_url(booking, data["return_url"])
        logger.info(f"Checkout link issued for booking {booking.request_id} via {data['provider']}")
        return Response(
            {
                "url": url,
                "provider": data["provider"],
                "booking_id": booking.pk,
                "amount": str(booking.final_total),
                "currency": booking.currency,
            }
        )
