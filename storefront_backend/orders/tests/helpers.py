# orders/tests/helpers.py

"""
Shared fixtures for order / payment tests.

Default catalog:
- Paracetamol 500mg @ 50.00 (stock 10)
- Standard shipping @ 60.00
- PH country-wide VAT 12%
- SAVE10: 10% off, active for +/- 1 day
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from catalog.models import Coupon, Medicine, ShippingMethod, TaxRate
from orders.models import Order
from orders.services.checkout_orchestrator import CheckoutRequest, ShippingAddress, checkout
from orders.services.pricing import PricingLine

User = get_user_model()


def make_user(email="customer@example.com", role="customer"):
    return User.objects.create_user(email=email, password="pass", role=role)


def make_medicine(sku="MED-001", name="Paracetamol 500mg", price="50.00", stock=10, **extra):
    return Medicine.objects.create(
        sku=sku,
        name=name,
        price=Decimal(price),
        stock_quantity=stock,
        **extra,
    )


def make_shipping(name="Standard", cost="60.00", **extra):
    return ShippingMethod.objects.create(name=name, base_cost=Decimal(cost), **extra)


def make_tax_rate(country="PH", state=None, rate="12.00", **extra):
    return TaxRate.objects.create(country=country, state=state, rate=Decimal(rate), **extra)


def make_coupon(code="SAVE10", discount_type=Coupon.TYPE_PERCENTAGE, value="10.00", **extra):
    now = timezone.now()
    extra.setdefault("valid_from", now - timedelta(days=1))
    extra.setdefault("valid_until", now + timedelta(days=1))
    return Coupon.objects.create(
        code=code,
        discount_type=discount_type,
        discount_value=Decimal(value),
        **extra,
    )


def make_bare_order(*, user, shipping_method, **extra):
    """Order row with zero figures; for ledger tests that need an order FK only."""
    return Order.objects.create(
        user=user,
        shipping_method=shipping_method,
        shipping_address="1 Rizal St",
        shipping_country="PH",
        **extra,
    )


def checkout_request(*, shipping_method, lines=(), coupon_code=None, country="PH", state=""):
    return CheckoutRequest(
        shipping_method_id=shipping_method.pk,
        shipping_address=ShippingAddress(
            address="1 Rizal St",
            city="Quezon City",
            state=state,
            country=country,
            postal_code="1100",
        ),
        items=tuple(PricingLine(medicine_id=m.pk, quantity=q) for m, q in lines),
        coupon_code=coupon_code,
    )


def place_order(*, user, shipping_method, lines, coupon_code=None):
    return checkout(
        user=user,
        request=checkout_request(shipping_method=shipping_method, lines=lines, coupon_code=coupon_code),
    ).order
