# orders/tests/test_pricing.py

from __future__ import annotations

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

from django.test import SimpleTestCase

from catalog.models import Coupon
from catalog.services.snapshot import (
    CouponSnapshot,
    Destination,
    MedicineSnapshot,
    PricingSnapshot,
    ShippingSnapshot,
    TaxRateSnapshot,
)
from orders.services.pricing import (
    CouponExhaustedError,
    CouponExpiredError,
    CouponMinimumNotMetError,
    CouponNotFoundError,
    EmptyOrderError,
    InvalidQuantityError,
    InvalidShippingMethodError,
    MedicineNotFoundError,
    OutOfStockError,
    PricingLine,
    merge_lines,
    price_order,
    resolve_tax_rate,
)

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=dt_timezone.utc)

M1 = MedicineSnapshot(id="m1", name="Paracetamol", unit_price=Decimal("50.00"), stock_quantity=10)
M2 = MedicineSnapshot(
    id="m2", name="Vitamin C", unit_price=Decimal("100.00"), stock_quantity=5, is_tax_exempt=True
)
STANDARD = ShippingSnapshot(id=1, name="Standard", base_cost=Decimal("60.00"), estimated_days=3)
PH_VAT = TaxRateSnapshot(country="PH", state=None, rate=Decimal("12.00"))


def coupon(**overrides):
    values = dict(
        id=1,
        code="SAVE10",
        discount_type=Coupon.TYPE_PERCENTAGE,
        discount_value=Decimal("10.00"),
        valid_from=NOW - timedelta(days=1),
        valid_until=NOW + timedelta(days=1),
    )
    values.update(overrides)
    return CouponSnapshot(**values)


def snapshot(*, medicines=(M1,), shipping=STANDARD, coupon_code=None, coupon_snap=None,
             rates=(PH_VAT,), country="PH", state=None):
    return PricingSnapshot(
        destination=Destination.of(country, state),
        medicines={str(m.id): m for m in medicines},
        shipping_method_id=getattr(shipping, "id", 99),
        shipping_method=shipping,
        coupon_code=coupon_code,
        coupon=coupon_snap,
        tax_rates=tuple(rates),
    )


class PriceOrderTests(SimpleTestCase):
    """
    Pure pricing engine.

    GUARANTEES:
    - total == subtotal - discount + tax + shipping
    - discount never exceeds subtotal (or max_discount_amount)
    - shipping is never taxed
    - identical snapshot -> identical breakdown
    """

    # ======================================================
    # TOTALS
    # ======================================================

    def test_coupon_tax_and_shipping_breakdown(self):
        b = price_order(
            [PricingLine("m1", 2)],
            snapshot(coupon_code="SAVE10", coupon_snap=coupon()),
            now=NOW,
        )

        self.assertEqual(b.subtotal, Decimal("100.00"))
        self.assertEqual(b.discount, Decimal("10.00"))
        self.assertEqual(b.taxable_amount, Decimal("90.00"))
        self.assertEqual(b.tax_rate, Decimal("12.00"))
        self.assertEqual(b.tax, Decimal("10.80"))
        self.assertEqual(b.shipping_cost, Decimal("60.00"))
        self.assertEqual(b.total, Decimal("160.80"))
        self.assertEqual(b.coupon_code, "SAVE10")

    def test_no_coupon_no_tax(self):
        b = price_order([PricingLine("m1", 1)], snapshot(rates=()), now=NOW)

        self.assertEqual(b.discount, Decimal("0.00"))
        self.assertEqual(b.tax, Decimal("0.00"))
        self.assertEqual(b.total, Decimal("110.00"))
        self.assertIsNone(b.coupon_code)

    def test_figures_round_half_up(self):
        med = MedicineSnapshot(id="m9", name="Lozenge", unit_price=Decimal("10.10"), stock_quantity=5)
        free = ShippingSnapshot(id=2, name="Pickup", base_cost=Decimal("0.00"), estimated_days=0)
        rate = TaxRateSnapshot(country="PH", state=None, rate=Decimal("5.00"))

        b = price_order([PricingLine("m9", 1)], snapshot(medicines=(med,), shipping=free, rates=(rate,)), now=NOW)

        # 10.10 * 5% = 0.505 -> 0.51
        self.assertEqual(b.tax, Decimal("0.51"))
        self.assertEqual(b.total, Decimal("10.61"))

    def test_is_deterministic(self):
        snap = snapshot(coupon_code="SAVE10", coupon_snap=coupon())
        lines = [PricingLine("m1", 3)]

        self.assertEqual(price_order(lines, snap, now=NOW), price_order(lines, snap, now=NOW))

    # ======================================================
    # DISCOUNT CLAMPS
    # ======================================================

    def test_percentage_discount_clamped_to_max(self):
        snap = snapshot(
            coupon_code="SAVE10",
            coupon_snap=coupon(discount_value=Decimal("50.00"), max_discount_amount=Decimal("15.00")),
        )
        b = price_order([PricingLine("m1", 2)], snap, now=NOW)

        self.assertEqual(b.discount, Decimal("15.00"))
        self.assertEqual(b.total, Decimal("100.00") - Decimal("15.00") + b.tax + Decimal("60.00"))

    def test_fixed_discount_clamped_to_subtotal(self):
        snap = snapshot(
            coupon_code="BIG",
            coupon_snap=coupon(code="BIG", discount_type=Coupon.TYPE_FIXED, discount_value=Decimal("500.00")),
        )
        b = price_order([PricingLine("m1", 2)], snap, now=NOW)

        self.assertEqual(b.discount, Decimal("100.00"))
        self.assertEqual(b.taxable_amount, Decimal("0.00"))
        self.assertEqual(b.tax, Decimal("0.00"))
        # shipping is still owed
        self.assertEqual(b.total, Decimal("60.00"))

    # ======================================================
    # COUPON FAILURES (checked in a fixed order)
    # ======================================================

    def test_minimum_purchase_not_met(self):
        snap = snapshot(coupon_code="SAVE10", coupon_snap=coupon(min_purchase_amount=Decimal("150.00")))

        with self.assertRaises(CouponMinimumNotMetError):
            price_order([PricingLine("m1", 2)], snap, now=NOW)

    def test_unknown_coupon(self):
        with self.assertRaises(CouponNotFoundError):
            price_order([PricingLine("m1", 1)], snapshot(coupon_code="NOPE"), now=NOW)

    def test_expired_coupon(self):
        snap = snapshot(
            coupon_code="SAVE10",
            coupon_snap=coupon(valid_from=NOW - timedelta(days=10), valid_until=NOW - timedelta(days=1)),
        )
        with self.assertRaises(CouponExpiredError):
            price_order([PricingLine("m1", 1)], snap, now=NOW)

    def test_inactive_coupon_reported_as_expired(self):
        snap = snapshot(coupon_code="SAVE10", coupon_snap=coupon(is_active=False))
        with self.assertRaises(CouponExpiredError):
            price_order([PricingLine("m1", 1)], snap, now=NOW)

    def test_exhausted_coupon(self):
        snap = snapshot(coupon_code="SAVE10", coupon_snap=coupon(usage_limit=5, used_count=5))
        with self.assertRaises(CouponExhaustedError):
            price_order([PricingLine("m1", 1)], snap, now=NOW)

    def test_expiry_is_checked_before_minimum(self):
        snap = snapshot(
            coupon_code="SAVE10",
            coupon_snap=coupon(
                valid_until=NOW - timedelta(seconds=1),
                min_purchase_amount=Decimal("1000.00"),
            ),
        )
        with self.assertRaises(CouponExpiredError):
            price_order([PricingLine("m1", 1)], snap, now=NOW)

    # ======================================================
    # TAX RESOLUTION
    # ======================================================

    def test_state_rate_wins_over_country_fallback(self):
        rates = (
            PH_VAT,
            TaxRateSnapshot(country="PH", state="METRO MANILA", rate=Decimal("10.00")),
        )
        snap = snapshot(rates=rates, state="Metro Manila")
        self.assertEqual(resolve_tax_rate(snap), Decimal("10.00"))

    def test_country_fallback_when_state_has_no_rate(self):
        rates = (
            PH_VAT,
            TaxRateSnapshot(country="PH", state="CEBU", rate=Decimal("10.00")),
        )
        snap = snapshot(rates=rates, state="Davao")
        self.assertEqual(resolve_tax_rate(snap), Decimal("12.00"))

    def test_no_rate_means_zero_tax(self):
        snap = snapshot(rates=(PH_VAT,), country="SG")
        self.assertEqual(resolve_tax_rate(snap), Decimal("0.00"))

    def test_tax_exempt_line_excluded_from_taxable_base(self):
        b = price_order(
            [PricingLine("m1", 2), PricingLine("m2", 1)],
            snapshot(medicines=(M1, M2)),
            now=NOW,
        )

        self.assertEqual(b.subtotal, Decimal("200.00"))
        self.assertEqual(b.taxable_amount, Decimal("100.00"))
        self.assertEqual(b.tax, Decimal("12.00"))
        self.assertEqual(b.total, Decimal("272.00"))

    def test_discount_spread_over_exempt_and_taxable_lines(self):
        b = price_order(
            [PricingLine("m1", 2), PricingLine("m2", 1)],
            snapshot(medicines=(M1, M2), coupon_code="SAVE10", coupon_snap=coupon()),
            now=NOW,
        )

        self.assertEqual(b.discount, Decimal("20.00"))
        # (200 - 20) * 100/200
        self.assertEqual(b.taxable_amount, Decimal("90.00"))
        self.assertEqual(b.tax, Decimal("10.80"))

    # ======================================================
    # LINES / SHIPPING
    # ======================================================

    def test_duplicate_lines_are_merged(self):
        merged = merge_lines([PricingLine("m1", 1), PricingLine("m1", 2)])
        self.assertEqual(merged, [PricingLine("m1", 3)])

        b = price_order([PricingLine("m1", 1), PricingLine("m1", 2)], snapshot(), now=NOW)
        self.assertEqual(len(b.lines), 1)
        self.assertEqual(b.subtotal, Decimal("150.00"))

    def test_empty_order(self):
        with self.assertRaises(EmptyOrderError):
            price_order([], snapshot(), now=NOW)

    def test_non_positive_quantity(self):
        with self.assertRaises(InvalidQuantityError):
            price_order([PricingLine("m1", 0)], snapshot(), now=NOW)

    def test_unknown_medicine(self):
        with self.assertRaises(MedicineNotFoundError):
            price_order([PricingLine("missing", 1)], snapshot(), now=NOW)

    def test_inactive_medicine(self):
        inactive = MedicineSnapshot(
            id="m1", name="Paracetamol", unit_price=Decimal("50.00"), stock_quantity=10, is_active=False
        )
        with self.assertRaises(MedicineNotFoundError):
            price_order([PricingLine("m1", 1)], snapshot(medicines=(inactive,)), now=NOW)

    def test_quantity_above_stock(self):
        with self.assertRaises(OutOfStockError):
            price_order([PricingLine("m1", 11)], snapshot(), now=NOW)

    def test_inactive_shipping_method(self):
        closed = ShippingSnapshot(
            id=1, name="Standard", base_cost=Decimal("60.00"), estimated_days=3, is_active=False
        )
        with self.assertRaises(InvalidShippingMethodError):
            price_order([PricingLine("m1", 1)], snapshot(shipping=closed), now=NOW)

    def test_missing_shipping_method(self):
        with self.assertRaises(InvalidShippingMethodError):
            price_order([PricingLine("m1", 1)], snapshot(shipping=None), now=NOW)
