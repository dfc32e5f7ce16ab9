import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("provider", models.CharField(choices=[("payme", "Payme"), ("click", "Click")], max_length=16)),
                ("provider_transaction_id", models.CharField(max_length=64)),
                (
                    "state",
                    models.SmallIntegerField(
                        choices=[
                            (1, "Created"),
                            (2, "Performed"),
                            (-1, "Cancelled before perform"),
                            (-2, "Cancelled after perform"),
                        ],
                        default=1,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("currency", models.CharField(default="UZS", max_length=3)),
                ("provider_time", models.BigIntegerField(blank=True, null=True)),
                ("create_time", models.DateTimeField()),
                ("perform_time", models.DateTimeField(blank=True, null=True)),
                ("cancel_time", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.SmallIntegerField(blank=True, null=True)),
                ("prepare_id", models.BigIntegerField(blank=True, null=True, unique=True)),
                ("confirm_id", models.BigIntegerField(blank=True, null=True)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="bookings.booking",
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Transaction",
                "verbose_name_plural": "Transactions",
                "ordering": ["-create_time"],
                "indexes": [
                    models.Index(fields=["booking", "state"], name="ledger_booking_state"),
                    models.Index(fields=["provider", "create_time"], name="ledger_provider_created"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("provider", "provider_transaction_id"),
                        name="ledger_unique_provider_transaction",
                    ),
                ],
            },
        ),
    ]
