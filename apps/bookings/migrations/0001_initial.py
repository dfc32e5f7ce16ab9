import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("rooms", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("request_id", models.CharField(editable=False, max_length=12, unique=True)),
                ("time_slots", models.JSONField(default=list)),
                ("first_date", models.DateField(editable=False, null=True)),
                ("last_date", models.DateField(editable=False, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Awaiting host decision"),
                            ("selected", "Selected for payment"),
                            ("approved", "Approved"),
                            ("confirmed", "Confirmed"),
                            ("rejected", "Rejected"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("base_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("protection_plan_selected", models.BooleanField(default=False)),
                ("protection_plan_fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("final_total", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("currency", models.CharField(default="UZS", max_length=3)),
                ("cash_selected", models.BooleanField(default=False)),
                ("is_paid", models.BooleanField(default=False)),
                ("needs_review", models.BooleanField(default=False)),
                ("review_reason", models.CharField(blank=True, max_length=255)),
                ("refund_required", models.BooleanField(default=False)),
                ("status_reason", models.CharField(blank=True, max_length=255)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("selected_at", models.DateTimeField(blank=True, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("rejected_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings",
                        to="rooms.room",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["room", "status", "first_date", "last_date"], name="booking_room_status_dates"),
                    models.Index(fields=["status", "expires_at"], name="booking_status_expires"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AdmissionConflictRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reason", models.CharField(max_length=32)),
                ("time_slots", models.JSONField(default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "client",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "conflicting_booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to="bookings.booking",
                    ),
                ),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="admission_conflicts",
                        to="rooms.room",
                    ),
                ),
            ],
            options={
                "verbose_name": "Admission conflict",
                "verbose_name_plural": "Admission conflicts",
                "ordering": ["-created_at"],
            },
        ),
    ]
