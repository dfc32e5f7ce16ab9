from __future__ import annotations

from django.core.management.base import BaseCommand  # type: ignore

from apps.bookings.services import expire_pending_bookings


class Command(BaseCommand):
    help = "Cancels pending booking requests whose hold has expired"

    def handle(self, *args, **options):  # type: ignore
        expired = expire_pending_bookings()
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} pending bookings"))
