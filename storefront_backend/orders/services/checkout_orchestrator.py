# orders/services/checkout_orchestrator.py

"""
CHECKOUT ORCHESTRATOR (APPLICATION SERVICE)

Purpose:
- Turn a cart (or an explicit list of lines) into a priced, stock-reserved
  Order in PENDING_PAYMENT.

Sequence (ONE transaction.atomic unit):
1) load catalog snapshot
2) price_order()  (pure; typed errors abort before any write)
3) persist Order + OrderItems (prices frozen from the breakdown)
4) reserve_stock() (row locks + compare-and-swap per medicine)
5) coupon usage: conditional UPDATE ... WHERE used_count < usage_limit,
   plus the OrderCoupon row
6) commit -> order-created notification (on_commit, never rolls back)

Any failure in 1..5 rolls back everything: no order, no stock moved,
no coupon usage consumed.

Hard rules:
- Money values are computed server-side only (frontend never sends prices).
- Quantities are integer units.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from cart.services.cart_service import cart_lines_for_user
from catalog.models import Coupon
from catalog.services.snapshot import load_pricing_snapshot
from inventory.services.ledger import reserve_stock
from orders.models import Order, OrderCoupon, OrderItem
from orders.services import notifications
from orders.services.pricing import (
    CouponExhaustedError,
    EmptyOrderError,
    PriceBreakdown,
    PricingLine,
    merge_lines,
    price_order,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShippingAddress:
    address: str
    country: str
    city: str = ""
    state: str = ""
    postal_code: str = ""


@dataclass(frozen=True)
class CheckoutRequest:
    shipping_method_id: object
    shipping_address: ShippingAddress
    items: tuple = field(default_factory=tuple)
    coupon_code: Optional[str] = None
    notes: str = ""


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    breakdown: PriceBreakdown


def _resolve_lines(*, user, request: CheckoutRequest) -> list[PricingLine]:
    """Explicit request lines win; otherwise the user's active cart is used."""
    if request.items:
        lines = list(request.items)
    else:
        lines = [PricingLine(medicine_id=mid, quantity=qty) for mid, qty in cart_lines_for_user(user)]

    if not lines:
        raise EmptyOrderError("Cart is empty")
    return merge_lines(lines)


def _price(*, user, request: CheckoutRequest) -> tuple[list[PricingLine], PriceBreakdown]:
    lines = _resolve_lines(user=user, request=request)

    snapshot = load_pricing_snapshot(
        medicine_ids=[l.medicine_id for l in lines],
        shipping_method_id=request.shipping_method_id,
        country=request.shipping_address.country,
        state=request.shipping_address.state,
        coupon_code=request.coupon_code,
    )
    breakdown = price_order(lines, snapshot, now=timezone.now())
    return lines, breakdown


def preview_checkout(*, user, request: CheckoutRequest) -> PriceBreakdown:
    """Dry run: same pricing path as checkout(), no writes."""
    _, breakdown = _price(user=user, request=request)
    return breakdown


def _consume_coupon_slot(*, code: str) -> Coupon:
    """
    Record one coupon use. The WHERE clause is the usage-limit guard, so two
    checkouts racing for the last slot cannot both succeed.
    """
    coupon = Coupon.objects.get(code__iexact=code)

    updated = (
        Coupon.objects
        .filter(pk=coupon.pk, is_active=True)
        .filter(Q(usage_limit__isnull=True) | Q(used_count__lt=F("usage_limit")))
        .update(used_count=F("used_count") + 1, updated_at=timezone.now())
    )
    if updated != 1:
        raise CouponExhaustedError(f"Coupon {coupon.code} has reached its usage limit")

    return coupon


@transaction.atomic
def checkout(*, user, request: CheckoutRequest) -> CheckoutResult:
    lines, breakdown = _price(user=user, request=request)
    address = request.shipping_address

    order = Order.objects.create(
        user=user,
        shipping_method_id=breakdown.shipping_method_id,
        shipping_address=address.address,
        shipping_city=address.city or "",
        shipping_state=address.state or "",
        shipping_country=address.country,
        shipping_postal_code=address.postal_code or "",
        subtotal_amount=breakdown.subtotal,
        discount_amount=breakdown.discount,
        tax_amount=breakdown.tax,
        shipping_cost=breakdown.shipping_cost,
        total_amount=breakdown.total,
        tax_rate=breakdown.tax_rate,
        coupon_code=breakdown.coupon_code or "",
        status=Order.STATUS_PENDING_PAYMENT,
        notes=request.notes or "",
    )

    for line in breakdown.lines:
        OrderItem.objects.create(
            order=order,
            medicine_id=line.medicine_id,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
        )

    reserve_stock(order=order, items=lines)

    if breakdown.coupon_code:
        coupon = _consume_coupon_slot(code=breakdown.coupon_code)
        OrderCoupon.objects.create(
            order=order,
            coupon=coupon,
            discount_amount=breakdown.discount,
        )

    logger.info(
        "Checkout completed",
        extra={
            "order_id": str(order.pk),
            "order_no": order.order_no,
            "total_amount": str(order.total_amount),
            "coupon_code": breakdown.coupon_code or "",
        },
    )

    notifications.notify_order_created(order)
    return CheckoutResult(order=order, breakdown=breakdown)
