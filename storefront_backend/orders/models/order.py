# orders/models/order.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from common.money import money


class Order(models.Model):
    """
    Storefront order.

    Key rules:
    - Created in PENDING_PAYMENT inside the checkout transaction, with stock
      already reserved and every money figure already priced
    - Status moves ONLY through orders.services.order_lifecycle, which guards
      each transition with a row lock + `version` compare-and-swap
    - total_amount == subtotal_amount - discount_amount + tax_amount + shipping_cost
    """

    STATUS_PENDING_PAYMENT = "pending_payment"
    STATUS_PAYMENT_SUBMITTED = "payment_submitted"
    STATUS_PAYMENT_FAILED = "payment_failed"
    STATUS_PAYMENT_APPROVED = "payment_approved"
    STATUS_PROCESSING = "processing"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING_PAYMENT, "Pending Payment"),
        (STATUS_PAYMENT_SUBMITTED, "Payment Submitted"),
        (STATUS_PAYMENT_FAILED, "Payment Failed"),
        (STATUS_PAYMENT_APPROVED, "Payment Approved"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order_no = models.CharField(
        max_length=64,
        unique=True,
        blank=True,
        help_text="System-generated public order number",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    shipping_method = models.ForeignKey(
        "catalog.ShippingMethod",
        on_delete=models.PROTECT,
        related_name="orders",
    )

    # Shipping destination (tax jurisdiction = country/state)
    shipping_address = models.CharField(max_length=255)
    shipping_city = models.CharField(max_length=100, blank=True, default="")
    shipping_state = models.CharField(max_length=64, blank=True, default="")
    shipping_country = models.CharField(max_length=64)
    shipping_postal_code = models.CharField(max_length=20, blank=True, default="")

    # Money fields (server authoritative, frozen at checkout)
    subtotal_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Percent applied at checkout",
    )
    coupon_code = models.CharField(max_length=32, blank=True, default="")

    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_PENDING_PAYMENT)
    version = models.PositiveIntegerField(default=0)

    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="order_status_idx"),
            models.Index(fields=["user", "created_at"], name="order_user_created_idx"),
        ]

    def clean(self):
        figures = {
            "subtotal_amount": self.subtotal_amount,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "shipping_cost": self.shipping_cost,
            "total_amount": self.total_amount,
        }
        for name, value in figures.items():
            if value is None or Decimal(value) < Decimal("0.00"):
                raise ValidationError({name: "Amount cannot be negative"})

        if money(self.discount_amount) > money(self.subtotal_amount):
            raise ValidationError({"discount_amount": "Discount cannot exceed subtotal"})

        expected = money(
            money(self.subtotal_amount)
            - money(self.discount_amount)
            + money(self.tax_amount)
            + money(self.shipping_cost)
        )
        if money(self.total_amount) != expected:
            raise ValidationError(
                {"total_amount": f"Total must equal subtotal - discount + tax + shipping ({expected})"}
            )

    def save(self, *args, **kwargs):
        if not self.order_no:
            prefix = timezone.now().strftime("ORD%Y%m%d")
            self.order_no = f"{prefix}-{uuid.uuid4().hex[:8].upper()}"

        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.STATUS_COMPLETED, self.STATUS_CANCELLED)

    def __str__(self):
        return f"{self.order_no} | {self.total_amount} | {self.status}"
