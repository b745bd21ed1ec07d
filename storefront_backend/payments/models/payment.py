# payments/models/payment.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


class Payment(models.Model):
    """
    One payment attempt against an Order.

    Rules:
    - Created only while the order is PENDING_PAYMENT
    - At most one ACTIVE (pending / processing) payment per order
      (partial unique constraint)
    - Gateway payments are matched by external_reference (source id) or
      gateway_payment_id, both unique, never by a client-supplied order id
    - PAID / FAILED / CANCELLED are terminal; a repeated or stale signal
      for a terminal payment is a no-op
    """

    METHOD_GATEWAY = "gateway"
    METHOD_MANUAL_PROOF = "manual_proof"

    METHOD_CHOICES = [
        (METHOD_GATEWAY, "Gateway"),
        (METHOD_MANUAL_PROOF, "Manual proof of payment"),
    ]

    PROVIDER_PAYMONGO = "paymongo"
    PROVIDER_MANUAL = "manual"

    PROVIDER_CHOICES = [
        (PROVIDER_PAYMONGO, "PayMongo"),
        (PROVIDER_MANUAL, "Manual"),
    ]

    STATUS_PENDING = "pending"
    STATUS_PROCESSING = "processing"
    STATUS_PAID = "paid"
    STATUS_FAILED = "failed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_PAID, "Paid"),
        (STATUS_FAILED, "Failed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_PROCESSING)
    TERMINAL_STATUSES = (STATUS_PAID, STATUS_FAILED, STATUS_CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payments",
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    currency = models.CharField(max_length=8, default="PHP")

    method = models.CharField(max_length=16, choices=METHOD_CHOICES)
    provider = models.CharField(max_length=32, choices=PROVIDER_CHOICES)

    external_reference = models.CharField(
        max_length=128,
        unique=True,
        null=True,
        blank=True,
        help_text="Gateway source id. Unique for idempotent matching.",
    )
    gateway_payment_id = models.CharField(max_length=128, unique=True, null=True, blank=True)
    checkout_url = models.URLField(max_length=500, blank=True, default="")

    # Manual proof path
    reference_number = models.CharField(max_length=128, blank=True, default="")
    proof_file = models.FileField(upload_to="payment_proofs/%Y/%m/", blank=True)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)

    needs_review = models.BooleanField(default=False)
    review_note = models.TextField(blank=True, default="")
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_payments",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)

    provider_payload = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(status__in=["pending", "processing"]),
                name="uniq_active_payment_per_order",
            ),
        ]
        indexes = [
            models.Index(fields=["status"], name="payment_status_idx"),
            models.Index(fields=["order", "created_at"], name="payment_order_created_idx"),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def mark_paid(self, payload=None):
        self.status = self.STATUS_PAID
        self.paid_at = self.paid_at or timezone.now()
        if payload is not None:
            self.provider_payload = payload

    def mark_failed(self, payload=None):
        self.status = self.STATUS_FAILED
        self.failed_at = self.failed_at or timezone.now()
        if payload is not None:
            self.provider_payload = payload

    def __str__(self):
        ref = self.external_reference or self.reference_number or self.id
        return f"{self.provider}:{ref} | {self.status}"
