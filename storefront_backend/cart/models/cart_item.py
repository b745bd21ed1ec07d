# cart/models/cart_item.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from .cart import Cart


class CartItem(models.Model):
    """
    One medicine line in a cart. One row per medicine per cart.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    cart = models.ForeignKey(
        Cart,
        on_delete=models.CASCADE,
        related_name="items",
    )

    medicine = models.ForeignKey(
        "catalog.Medicine",
        on_delete=models.CASCADE,
        related_name="cart_items",
    )

    quantity = models.PositiveIntegerField(help_text="Must be greater than zero")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["cart", "medicine"],
                name="unique_medicine_per_cart",
            )
        ]

    def clean(self):
        if self.quantity is None or int(self.quantity) <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than zero"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{getattr(self.medicine, 'name', 'Medicine')} x {self.quantity}"
