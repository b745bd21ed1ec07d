# catalog/models/medicine.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Medicine(models.Model):
    """
    Sellable medicine (catalog row).

    STOCK MODEL (IMPORTANT):
    - stock_quantity is the single most contended column in the system
    - It is mutated ONLY by inventory.services.ledger (reserve / release)
    - Orders snapshot `price` into OrderItem.unit_price at checkout, so later
      catalog edits never alter a placed order
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sku = models.CharField(max_length=64, unique=True, db_index=True)
    name = models.CharField(max_length=255, db_index=True)
    unit = models.CharField(max_length=32, blank=True, default="piece")

    price = models.DecimalField(max_digits=10, decimal_places=2)
    stock_quantity = models.PositiveIntegerField(default=0)

    is_tax_exempt = models.BooleanField(
        default=False,
        help_text="Exempt lines are excluded from the taxable base.",
    )
    requires_prescription = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(stock_quantity__gte=0),
                name="medicine_stock_non_negative",
            ),
        ]

    def clean(self):
        if self.price is None or Decimal(self.price) <= Decimal("0.00"):
            raise ValidationError({"price": "Price must be greater than zero"})

    def __str__(self):
        return f"{self.name} ({self.sku})"
