# payments/models/payment_event.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models


class PaymentEvent(models.Model):
    """
    Append-only audit log of every reconciliation signal.

    One row per webhook delivery, verify poll, or admin review, including
    the ones that changed nothing (duplicate / stale) and the ones refused
    (rejected: amount mismatch). Gateway event ids are unique so a
    re-delivered webhook is detected before any lock is taken.
    """

    CHANNEL_WEBHOOK = "webhook"
    CHANNEL_POLL = "poll"
    CHANNEL_ADMIN = "admin"

    CHANNEL_CHOICES = [
        (CHANNEL_WEBHOOK, "Webhook"),
        (CHANNEL_POLL, "Verify poll"),
        (CHANNEL_ADMIN, "Admin review"),
    ]

    OUTCOME_APPLIED = "applied"
    OUTCOME_DUPLICATE = "duplicate"
    OUTCOME_STALE = "stale"
    OUTCOME_IGNORED = "ignored"
    OUTCOME_REJECTED = "rejected"

    OUTCOME_CHOICES = [
        (OUTCOME_APPLIED, "Applied"),
        (OUTCOME_DUPLICATE, "Duplicate"),
        (OUTCOME_STALE, "Stale"),
        (OUTCOME_IGNORED, "Ignored"),
        (OUTCOME_REJECTED, "Rejected"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="events",
    )

    channel = models.CharField(max_length=16, choices=CHANNEL_CHOICES)
    event_type = models.CharField(max_length=64)
    event_id = models.CharField(max_length=128, unique=True, null=True, blank=True)
    reference_id = models.CharField(max_length=128, blank=True, default="")

    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=8, blank=True, default="")

    outcome = models.CharField(max_length=16, choices=OUTCOME_CHOICES)
    detail = models.CharField(max_length=255, blank=True, default="")
    payload = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["reference_id"], name="payment_event_reference_idx"),
            models.Index(fields=["outcome", "created_at"], name="payment_event_outcome_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("PaymentEvent records are immutable")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("PaymentEvent records are immutable and cannot be deleted")

    def __str__(self):
        return f"{self.channel}:{self.event_type} | {self.reference_id} | {self.outcome}"
