"""Admin registrations for rooms."""

from __future__ import annotations

from django.contrib import admin  # type: ignore

from .models import Room, RoomScheduleConfig


class RoomScheduleConfigInline(admin.StackedInline):
    model = RoomScheduleConfig
    can_delete = False


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("title", "owner", "hourly_price", "full_day_price", "currency", "is_active", "created_at")
    list_filter = ("is_active", "currency")
    search_fields = ("title", "owner__email")
    readonly_fields = ("created_at", "updated_at")
    inlines = [RoomScheduleConfigInline]
