"""
PATH: orders/serializers.py

ORDER SERIALIZERS

Transport layer only: shapes of requests / responses. Business rules
(pricing, stock, coupons, transitions) live in orders.services.
"""

from __future__ import annotations

from rest_framework import serializers

from orders.models import Order, OrderItem, OrderTracking
from orders.services.checkout_orchestrator import CheckoutRequest, ShippingAddress
from orders.services.pricing import PricingLine
from payments.models import Payment


# ======================================================
# CHECKOUT (COMMAND)
# ======================================================

class CheckoutLineSerializer(serializers.Serializer):
    medicine_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class ShippingAddressSerializer(serializers.Serializer):
    address = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    state = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    country = serializers.CharField(max_length=64)
    postal_code = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")


class CheckoutSerializer(serializers.Serializer):
    """
    items is optional: when omitted the caller's active cart is checked out.
    Prices are never accepted from the client.
    """

    items = CheckoutLineSerializer(many=True, required=False, default=list)
    shipping_method_id = serializers.IntegerField(min_value=1)
    shipping_address = ShippingAddressSerializer()
    coupon_code = serializers.CharField(max_length=32, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def to_request(self) -> CheckoutRequest:
        data = self.validated_data
        addr = data["shipping_address"]
        return CheckoutRequest(
            shipping_method_id=data["shipping_method_id"],
            shipping_address=ShippingAddress(
                address=addr["address"],
                country=addr["country"],
                city=addr.get("city") or "",
                state=addr.get("state") or "",
                postal_code=addr.get("postal_code") or "",
            ),
            items=tuple(
                PricingLine(medicine_id=line["medicine_id"], quantity=line["quantity"])
                for line in data.get("items") or []
            ),
            coupon_code=(data.get("coupon_code") or "").strip() or None,
            notes=data.get("notes") or "",
        )


class PriceLineSerializer(serializers.Serializer):
    medicine_id = serializers.UUIDField()
    name = serializers.CharField()
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2)


class PriceBreakdownSerializer(serializers.Serializer):
    lines = PriceLineSerializer(many=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    taxable_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=2)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2)
    shipping_cost = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    coupon_code = serializers.CharField(allow_null=True)


class CheckoutResponseSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    order_no = serializers.CharField()
    status = serializers.CharField()
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    breakdown = PriceBreakdownSerializer()


# ======================================================
# ORDER (READ)
# ======================================================

class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ["medicine", "name", "quantity", "unit_price", "line_total"]
        read_only_fields = fields


class OrderTrackingSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderTracking
        fields = ["status", "description", "location", "created_at"]
        read_only_fields = fields


class OrderPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "method",
            "provider",
            "amount",
            "currency",
            "status",
            "external_reference",
            "reference_number",
            "created_at",
            "paid_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    payments = OrderPaymentSerializer(many=True, read_only=True)
    tracking = OrderTrackingSerializer(many=True, read_only=True)
    shipping_method_name = serializers.CharField(source="shipping_method.name", read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_no",
            "status",
            "shipping_method",
            "shipping_method_name",
            "shipping_address",
            "shipping_city",
            "shipping_state",
            "shipping_country",
            "shipping_postal_code",
            "subtotal_amount",
            "discount_amount",
            "tax_amount",
            "tax_rate",
            "shipping_cost",
            "total_amount",
            "coupon_code",
            "items",
            "payments",
            "tracking",
            "created_at",
            "updated_at",
            "paid_at",
            "cancelled_at",
            "completed_at",
        ]
        read_only_fields = fields


class FulfilOrderSerializer(serializers.Serializer):
    location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class TrackingEntrySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderTracking.STATUS_CHOICES)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    location = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
