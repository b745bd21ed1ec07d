import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Coupon",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32, unique=True)),
                (
                    "discount_type",
                    models.CharField(
                        choices=[("percentage", "Percentage"), ("fixed", "Fixed amount")],
                        max_length=16,
                    ),
                ),
                ("discount_value", models.DecimalField(decimal_places=2, max_digits=10)),
                ("min_purchase_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("max_discount_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ("valid_from", models.DateTimeField()),
                ("valid_until", models.DateTimeField()),
                ("usage_limit", models.PositiveIntegerField(blank=True, null=True)),
                ("used_count", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["code"],
                "indexes": [
                    models.Index(fields=["valid_from", "valid_until", "is_active"], name="coupon_validity_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("usage_limit__isnull", True), ("used_count__lte", models.F("usage_limit")), _connector="OR"),
                        name="coupon_used_count_within_limit",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Medicine",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sku", models.CharField(db_index=True, max_length=64, unique=True)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("unit", models.CharField(blank=True, default="piece", max_length=32)),
                ("price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("stock_quantity", models.PositiveIntegerField(default=0)),
                (
                    "is_tax_exempt",
                    models.BooleanField(default=False, help_text="Exempt lines are excluded from the taxable base."),
                ),
                ("requires_prescription", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("stock_quantity__gte", 0)), name="medicine_stock_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ShippingMethod",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, unique=True)),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("base_cost", models.DecimalField(decimal_places=2, max_digits=10)),
                ("estimated_days", models.PositiveIntegerField(default=3)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["base_cost", "name"],
            },
        ),
        migrations.CreateModel(
            name="TaxRate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("country", models.CharField(max_length=64)),
                ("state", models.CharField(blank=True, max_length=64, null=True)),
                ("rate", models.DecimalField(decimal_places=2, help_text="Percent, e.g. 12.00", max_digits=5)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["country", "state"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True), ("state__isnull", False)),
                        fields=("country", "state"),
                        name="uniq_active_tax_rate_per_state",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True), ("state__isnull", True)),
                        fields=("country",),
                        name="uniq_active_country_wide_tax_rate",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("rate__gte", 0), ("rate__lte", 100)),
                        name="tax_rate_percent_range",
                    ),
                ],
            },
        ),
    ]
