"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import AdmissionConflictRecord, Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "request_id",
        "room",
        "client",
        "status",
        "is_paid",
        "cash_selected",
        "needs_review",
        "final_total",
        "first_date",
        "created_at",
    )
    list_filter = ("status", "is_paid", "cash_selected", "needs_review", "refund_required")
    search_fields = ("request_id", "room__title", "client__email")
    readonly_fields = (
        "request_id",
        "created_at",
        "updated_at",
        "base_total",
        "protection_plan_fee",
        "final_total",
        "first_date",
        "last_date",
    )


@admin.register(AdmissionConflictRecord)
class AdmissionConflictRecordAdmin(admin.ModelAdmin):
    list_display = ("room", "reason", "client", "conflicting_booking", "created_at")
    list_filter = ("reason",)
    search_fields = ("room__title", "client__email")
    readonly_fields = ("room", "client", "reason", "time_slots", "conflicting_booking", "created_at")
