"""
PATH: payments/serializers.py

PAYMENT SERIALIZERS (transport layer only)
"""

from __future__ import annotations

from django.core.validators import FileExtensionValidator
from rest_framework import serializers

from payments.models import Payment

PROOF_EXTENSIONS = ["jpg", "jpeg", "png", "gif", "webp"]
PROOF_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
PROOF_MAX_BYTES = 5 * 1024 * 1024


class CreateSourceSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class CreateSourceResponseSerializer(serializers.Serializer):
    payment_id = serializers.UUIDField()
    source_id = serializers.CharField()
    checkout_url = serializers.URLField()


class VerifyPaymentSerializer(serializers.Serializer):
    source_id = serializers.CharField(max_length=128)


class VerifyPaymentResponseSerializer(serializers.Serializer):
    status = serializers.CharField()
    order_status = serializers.CharField()


class PaymentProofSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    reference_number = serializers.CharField(max_length=128)
    proof_file = serializers.FileField(validators=[FileExtensionValidator(PROOF_EXTENSIONS)])

    def validate_proof_file(self, value):
        content_type = (getattr(value, "content_type", "") or "").lower()
        if content_type not in PROOF_CONTENT_TYPES:
            raise serializers.ValidationError("Proof of payment must be an image (jpg, png, gif or webp).")
        if value.size > PROOF_MAX_BYTES:
            raise serializers.ValidationError("Proof of payment must be 5 MB or smaller.")
        return value


class PaymentSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(read_only=True)
    order_no = serializers.CharField(source="order.order_no", read_only=True)
    order_status = serializers.CharField(source="order.status", read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "order_id",
            "order_no",
            "order_status",
            "amount",
            "currency",
            "method",
            "provider",
            "status",
            "external_reference",
            "gateway_payment_id",
            "checkout_url",
            "reference_number",
            "proof_file",
            "needs_review",
            "review_note",
            "reviewed_by",
            "reviewed_at",
            "created_at",
            "paid_at",
            "failed_at",
        ]
        read_only_fields = fields


class PaymentReviewSerializer(serializers.Serializer):
    DECISION_APPROVE = "approve"
    DECISION_REJECT = "reject"

    decision = serializers.ChoiceField(choices=[DECISION_APPROVE, DECISION_REJECT])
    note = serializers.CharField(required=False, allow_blank=True, default="")
