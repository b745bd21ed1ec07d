# orders/models/order_tracking.py

from django.db import models


class OrderTracking(models.Model):
    """
    Shipment tracking timeline entry.

    Append-only. The first entry is written when payment is confirmed;
    fulfilment appends a `delivered` entry.
    """

    STATUS_ORDER_CONFIRMED = "order_confirmed"
    STATUS_IN_TRANSIT = "in_transit"
    STATUS_DELIVERED = "delivered"

    STATUS_CHOICES = [
        (STATUS_ORDER_CONFIRMED, "Order Confirmed"),
        (STATUS_IN_TRANSIT, "In Transit"),
        (STATUS_DELIVERED, "Delivered"),
    ]

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="tracking",
    )
    status = models.CharField(max_length=32, choices=STATUS_CHOICES)
    description = models.CharField(max_length=255, blank=True, default="")
    location = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.order_id} | {self.status}"
