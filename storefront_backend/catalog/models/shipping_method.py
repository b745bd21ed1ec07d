# catalog/models/shipping_method.py

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class ShippingMethod(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=255, blank=True, default="")

    base_cost = models.DecimalField(max_digits=10, decimal_places=2)
    estimated_days = models.PositiveIntegerField(default=3)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["base_cost", "name"]

    def clean(self):
        if self.base_cost is None or Decimal(self.base_cost) < Decimal("0.00"):
            raise ValidationError({"base_cost": "Base cost cannot be negative"})

    def __str__(self):
        return f"{self.name} ({self.base_cost})"
