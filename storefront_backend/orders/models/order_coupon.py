# orders/models/order_coupon.py

from decimal import Decimal

from django.db import models


class OrderCoupon(models.Model):
    """Which coupon an order redeemed, and the discount it granted."""

    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="applied_coupon",
    )
    coupon = models.ForeignKey(
        "catalog.Coupon",
        on_delete=models.PROTECT,
        related_name="redemptions",
    )
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.coupon.code} -> {self.order_id} ({self.discount_amount})"
