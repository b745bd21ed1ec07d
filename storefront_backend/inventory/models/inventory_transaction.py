# inventory/models/inventory_transaction.py

"""
INVENTORY LEDGER ENTRY

Immutable record of a stock reservation (or its release) for one order line.

GUARANTEES:
- Append-only (no updates, no deletes)
- One RESERVE and at most one RELEASE per (order, medicine); the unique
  constraint makes a double release impossible even under a race
- stock_after is the medicine's stock_quantity right after this entry
"""

import uuid

from django.core.exceptions import ValidationError
from django.db import models


class InventoryTransaction(models.Model):
    class Direction(models.TextChoices):
        RESERVE = "reserve", "Reserve"
        RELEASE = "release", "Release"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    medicine = models.ForeignKey(
        "catalog.Medicine",
        on_delete=models.PROTECT,
        related_name="inventory_transactions",
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="inventory_transactions",
    )

    direction = models.CharField(max_length=16, choices=Direction.choices)
    quantity = models.PositiveIntegerField()
    stock_after = models.PositiveIntegerField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "medicine", "direction"],
                name="uniq_inventory_txn_per_order_medicine_direction",
            ),
        ]
        indexes = [
            models.Index(fields=["medicine", "created_at"], name="inv_txn_medicine_idx"),
        ]

    def clean(self):
        if self.quantity is None or int(self.quantity) <= 0:
            raise ValidationError("quantity must be greater than zero")

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("InventoryTransaction records are immutable")
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("InventoryTransaction records are immutable and cannot be deleted")

    def __str__(self):
        return f"{self.medicine_id} | {self.direction} | {self.quantity}"
