# catalog/models/coupon.py

"""
COUPON

Rules:
- code is unique and case-insensitive (stored upper-case)
- usable only when is_active and valid_from <= now <= valid_until
- used_count <= usage_limit when a limit is set (DB check constraint);
  usage is recorded only through a conditional UPDATE in the checkout
  orchestrator so concurrent checkouts cannot overshoot the limit
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q


class Coupon(models.Model):
    TYPE_PERCENTAGE = "percentage"
    TYPE_FIXED = "fixed"

    TYPE_CHOICES = [
        (TYPE_PERCENTAGE, "Percentage"),
        (TYPE_FIXED, "Fixed amount"),
    ]

    code = models.CharField(max_length=32, unique=True)

    discount_type = models.CharField(max_length=16, choices=TYPE_CHOICES)
    discount_value = models.DecimalField(max_digits=10, decimal_places=2)

    min_purchase_amount = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    max_discount_amount = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )

    valid_from = models.DateTimeField()
    valid_until = models.DateTimeField()

    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["code"]
        indexes = [
            models.Index(fields=["valid_from", "valid_until", "is_active"], name="coupon_validity_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(usage_limit__isnull=True) | Q(used_count__lte=F("usage_limit")),
                name="coupon_used_count_within_limit",
            ),
        ]

    def clean(self):
        if self.discount_value is None or Decimal(self.discount_value) <= Decimal("0.00"):
            raise ValidationError({"discount_value": "Discount value must be greater than zero"})

        if self.discount_type == self.TYPE_PERCENTAGE and Decimal(self.discount_value) > Decimal("100"):
            raise ValidationError({"discount_value": "Percentage discount cannot exceed 100"})

        if self.valid_from and self.valid_until and self.valid_from > self.valid_until:
            raise ValidationError({"valid_until": "valid_until must be after valid_from"})

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.code} ({self.discount_type} {self.discount_value})"
