"""
PATH: cart/models/cart.py

CART MODEL

Purpose:
- The shopper's active storefront cart (temporary, mutable).
- Prices are NOT stored here; checkout prices every line from the catalog.

Rules:
- One active cart per user (partial unique constraint).
- Emptied when the order it turned into is confirmed paid.
"""

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Sum

User = settings.AUTH_USER_MODEL


class Cart(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="carts",
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user"],
                condition=models.Q(is_active=True),
                name="one_active_cart_per_user",
            )
        ]

    def clean(self):
        if self.user_id is None:
            raise ValidationError({"user": "user is required"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def item_count(self) -> int:
        total = self.items.aggregate(total=Sum("quantity")).get("total")
        return int(total or 0)

    @property
    def is_empty(self) -> bool:
        return not self.items.exists()

    def __str__(self):
        status = "ACTIVE" if self.is_active else "CLOSED"
        return f"Cart {self.id} | {self.user} | {status}"
