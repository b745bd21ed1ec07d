# orders/services/pricing.py

"""
============================================================
PRICING ENGINE (PURE)
============================================================

price_order(lines, snapshot, *, now) -> PriceBreakdown

Fixed algorithm order (never reorder, the error a caller sees depends on it):
1) resolve every line against the snapshot (unknown / inactive / out of stock)
2) subtotal = sum(quantity * unit_price)
3) shipping cost from the selected method (tracked apart from subtotal)
4) coupon: lookup -> validity window -> usage limit -> minimum purchase,
   then discount clamped to max_discount_amount and to subtotal
5) tax: exact (country, state) rate, else country-wide fallback, else 0;
   base is (subtotal - discount), shipping is never taxed
6) total = subtotal - discount + tax + shipping

Every figure is rounded to 2dp ROUND_HALF_UP.

No side effects:
- no DB access (snapshot is loaded by catalog.services.snapshot)
- safe to call for previews; identical inputs -> identical output
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from catalog.models import Coupon
from catalog.services.snapshot import PricingSnapshot, TaxRateSnapshot
from common.exceptions import NotFoundError, StateConflictError, ValidationError
from common.money import ZERO, money

HUNDRED = Decimal("100")


# ============================================================
# ERRORS
# ============================================================

class PricingError(Exception):
    """Marker mixin for every pricing failure."""


class EmptyOrderError(PricingError, ValidationError):
    code = "EMPTY_ORDER"


class InvalidQuantityError(PricingError, ValidationError):
    code = "INVALID_QUANTITY"


class MedicineNotFoundError(PricingError, NotFoundError):
    code = "MEDICINE_NOT_FOUND"


class OutOfStockError(PricingError, StateConflictError):
    code = "OUT_OF_STOCK"


class InvalidShippingMethodError(PricingError, NotFoundError):
    code = "INVALID_SHIPPING_METHOD"


class CouponNotFoundError(PricingError, NotFoundError):
    code = "COUPON_NOT_FOUND"


class CouponExpiredError(PricingError, StateConflictError):
    code = "COUPON_EXPIRED"


class CouponExhaustedError(PricingError, StateConflictError):
    code = "COUPON_EXHAUSTED"


class CouponMinimumNotMetError(PricingError, ValidationError):
    code = "COUPON_MINIMUM_NOT_MET"


# ============================================================
# INPUT / OUTPUT
# ============================================================

@dataclass(frozen=True)
class PricingLine:
    medicine_id: object
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    medicine_id: object
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    is_tax_exempt: bool = False


@dataclass(frozen=True)
class PriceBreakdown:
    lines: tuple
    subtotal: Decimal
    discount: Decimal
    taxable_amount: Decimal
    tax_rate: Decimal
    tax: Decimal
    shipping_cost: Decimal
    total: Decimal
    coupon_code: Optional[str] = None
    shipping_method_id: object = None

    def as_dict(self) -> dict:
        return {
            "lines": [
                {
                    "medicine_id": str(l.medicine_id),
                    "name": l.name,
                    "quantity": l.quantity,
                    "unit_price": str(l.unit_price),
                    "line_total": str(l.line_total),
                }
                for l in self.lines
            ],
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "taxable_amount": str(self.taxable_amount),
            "tax_rate": str(self.tax_rate),
            "tax": str(self.tax),
            "shipping_cost": str(self.shipping_cost),
            "total": str(self.total),
            "coupon_code": self.coupon_code,
        }


# ============================================================
# STEPS
# ============================================================

def merge_lines(lines: Iterable[PricingLine]) -> list[PricingLine]:
    """Collapse duplicate medicine lines, keeping first-seen order."""
    merged: "OrderedDict[str, list]" = OrderedDict()
    for line in lines:
        qty = int(line.quantity or 0)
        if qty <= 0:
            raise InvalidQuantityError(f"Quantity must be greater than zero (medicine {line.medicine_id})")
        key = str(line.medicine_id)
        if key in merged:
            merged[key][1] += qty
        else:
            merged[key] = [line.medicine_id, qty]
    return [PricingLine(medicine_id=mid, quantity=q) for mid, q in merged.values()]


def _resolve_lines(lines: list[PricingLine], snapshot: PricingSnapshot) -> list[PricedLine]:
    priced = []
    for line in lines:
        med = snapshot.medicine(line.medicine_id)
        if med is None or not med.is_active:
            raise MedicineNotFoundError(f"Medicine not found: {line.medicine_id}")

        if line.quantity > med.stock_quantity:
            raise OutOfStockError(
                f"Insufficient stock for {med.name}: requested {line.quantity}, available {med.stock_quantity}"
            )

        unit_price = money(med.unit_price)
        priced.append(
            PricedLine(
                medicine_id=med.id,
                name=med.name,
                quantity=line.quantity,
                unit_price=unit_price,
                line_total=money(unit_price * line.quantity),
                is_tax_exempt=med.is_tax_exempt,
            )
        )
    return priced


def _shipping_cost(snapshot: PricingSnapshot) -> Decimal:
    method = snapshot.shipping_method
    if method is None or not method.is_active:
        raise InvalidShippingMethodError(
            f"Shipping method is unavailable: {snapshot.shipping_method_id}"
        )
    return money(method.base_cost)


def _discount(subtotal: Decimal, snapshot: PricingSnapshot, now) -> Decimal:
    if not snapshot.coupon_code:
        return ZERO

    coupon = snapshot.coupon
    if coupon is None:
        raise CouponNotFoundError(f"Coupon not found: {snapshot.coupon_code}")

    if not coupon.is_active or not (coupon.valid_from <= now <= coupon.valid_until):
        raise CouponExpiredError(f"Coupon {coupon.code} is expired or inactive")

    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        raise CouponExhaustedError(f"Coupon {coupon.code} has reached its usage limit")

    if coupon.min_purchase_amount is not None and subtotal < money(coupon.min_purchase_amount):
        raise CouponMinimumNotMetError(
            f"Coupon {coupon.code} requires a minimum purchase of {money(coupon.min_purchase_amount)}"
        )

    if coupon.discount_type == Coupon.TYPE_PERCENTAGE:
        raw = subtotal * Decimal(coupon.discount_value) / HUNDRED
    else:
        raw = Decimal(coupon.discount_value)

    discount = money(raw)
    if coupon.max_discount_amount is not None:
        discount = min(discount, money(coupon.max_discount_amount))
    return min(discount, subtotal)


def resolve_tax_rate(snapshot: PricingSnapshot) -> Decimal:
    """Exact state match first, then the country-wide (state=None) rate, else 0."""
    dest = snapshot.destination
    fallback: Optional[TaxRateSnapshot] = None
    for r in snapshot.tax_rates:
        if (r.country or "").upper() != dest.country:
            continue
        if dest.state and r.state and r.state.upper() == dest.state:
            return Decimal(r.rate)
        if r.state is None and fallback is None:
            fallback = r
    return Decimal(fallback.rate) if fallback is not None else ZERO


def _taxable_amount(lines: list[PricedLine], subtotal: Decimal, discount: Decimal) -> Decimal:
    base = subtotal - discount
    if base <= ZERO:
        return ZERO

    exempt = sum((l.line_total for l in lines if l.is_tax_exempt), ZERO)
    if exempt <= ZERO:
        return money(base)
    if exempt >= subtotal:
        return ZERO

    # discount is spread pro rata over taxable and exempt lines
    return money(base * (subtotal - exempt) / subtotal)


# ============================================================
# ENTRYPOINT
# ============================================================

def price_order(lines: Iterable[PricingLine], snapshot: PricingSnapshot, *, now) -> PriceBreakdown:
    merged = merge_lines(lines)
    if not merged:
        raise EmptyOrderError("Order must contain at least one item")

    priced = _resolve_lines(merged, snapshot)
    subtotal = money(sum((l.line_total for l in priced), ZERO))
    shipping = _shipping_cost(snapshot)
    discount = money(_discount(subtotal, snapshot, now))

    rate = resolve_tax_rate(snapshot)
    taxable = _taxable_amount(priced, subtotal, discount)
    tax = money(taxable * rate / HUNDRED)

    total = money(subtotal - discount + tax + shipping)

    return PriceBreakdown(
        lines=tuple(priced),
        subtotal=subtotal,
        discount=discount,
        taxable_amount=taxable,
        tax_rate=money(rate),
        tax=tax,
        shipping_cost=shipping,
        total=total,
        coupon_code=snapshot.coupon.code if snapshot.coupon_code else None,
        shipping_method_id=snapshot.shipping_method_id,
    )
