import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("orders", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                ("currency", models.CharField(default="PHP", max_length=8)),
                (
                    "method",
                    models.CharField(
                        choices=[("gateway", "Gateway"), ("manual_proof", "Manual proof of payment")],
                        max_length=16,
                    ),
                ),
                (
                    "provider",
                    models.CharField(choices=[("paymongo", "PayMongo"), ("manual", "Manual")], max_length=32),
                ),
                (
                    "external_reference",
                    models.CharField(
                        blank=True,
                        help_text="Gateway source id. Unique for idempotent matching.",
                        max_length=128,
                        null=True,
                        unique=True,
                    ),
                ),
                ("gateway_payment_id", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("checkout_url", models.URLField(blank=True, default="", max_length=500)),
                ("reference_number", models.CharField(blank=True, default="", max_length=128)),
                ("proof_file", models.FileField(blank=True, upload_to="payment_proofs/%Y/%m/")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("needs_review", models.BooleanField(default=False)),
                ("review_note", models.TextField(blank=True, default="")),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("provider_payload", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="orders.order",
                    ),
                ),
                (
                    "reviewed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reviewed_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="payment_status_idx"),
                    models.Index(fields=["order", "created_at"], name="payment_order_created_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status__in", ["pending", "processing"])),
                        fields=("order",),
                        name="uniq_active_payment_per_order",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "channel",
                    models.CharField(
                        choices=[("webhook", "Webhook"), ("poll", "Verify poll"), ("admin", "Admin review")],
                        max_length=16,
                    ),
                ),
                ("event_type", models.CharField(max_length=64)),
                ("event_id", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("reference_id", models.CharField(blank=True, default="", max_length=128)),
                ("amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("currency", models.CharField(blank=True, default="", max_length=8)),
                (
                    "outcome",
                    models.CharField(
                        choices=[
                            ("applied", "Applied"),
                            ("duplicate", "Duplicate"),
                            ("stale", "Stale"),
                            ("ignored", "Ignored"),
                            ("rejected", "Rejected"),
                        ],
                        max_length=16,
                    ),
                ),
                ("detail", models.CharField(blank=True, default="", max_length=255)),
                ("payload", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "payment",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="events",
                        to="payments.payment",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["reference_id"], name="payment_event_reference_idx"),
                    models.Index(fields=["outcome", "created_at"], name="payment_event_outcome_idx"),
                ],
            },
        ),
    ]
