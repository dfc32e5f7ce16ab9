"""URL routing for payments."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .providers.click import COMPLETE, PREPARE
from .views import CheckoutView, ClickCallbackView, PaymeCallbackView

urlpatterns = [
    path("checkout/", CheckoutView.as_view(), name="payments-checkout"),
    path("payme/", PaymeCallbackView.as_view(), name="payme-callback"),
    path("click/", ClickCallbackView.as_view(), name="click-callback"),
    path("click/prepare/", ClickCallbackView.as_view(click_action=PREPARE), name="click-prepare"),
    path("click/complete/", ClickCallbackView.as_view(click_action=COMPLETE), name="click-complete"),
]
