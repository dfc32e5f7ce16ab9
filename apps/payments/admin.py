"""Admin registrations for the transaction ledger."""

from __future__ import annotations

from django.contrib import admin  # type: ignore

from .models import Transaction


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("provider", "provider_transaction_id", "state", "amount", "currency", "booking", "create_time")
    list_filter = ("provider", "state")
    search_fields = ("provider_transaction_id", "booking__request_id")
    readonly_fields = [field.name for field in Transaction._meta.fields]

    def has_delete_permission(self, request, obj=None):  # type: ignore
        return False
