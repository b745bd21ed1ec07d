# catalog/services/snapshot.py

"""
============================================================
CATALOG SNAPSHOT READER
============================================================

Reads every catalog row a pricing run needs into immutable dataclasses.

Why it exists:
- The pricing engine (orders.services.pricing) is a pure function of this
  snapshot, so it can be exercised without a database.
- Unit prices are captured here once; the order persists exactly what
  was priced, never a later catalog value.

The loader does NOT validate anything. Unknown medicines are simply absent
from `medicines`; an unknown shipping method or coupon is None. Turning
absence into typed errors is the pricing engine's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from catalog.models import Coupon, Medicine, ShippingMethod, TaxRate
from catalog.models.tax_rate import normalize_region


@dataclass(frozen=True)
class MedicineSnapshot:
    id: object
    name: str
    unit_price: Decimal
    stock_quantity: int
    is_tax_exempt: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class ShippingSnapshot:
    id: object
    name: str
    base_cost: Decimal
    estimated_days: int
    is_active: bool = True


@dataclass(frozen=True)
class TaxRateSnapshot:
    country: str
    state: Optional[str]
    rate: Decimal


@dataclass(frozen=True)
class CouponSnapshot:
    id: object
    code: str
    discount_type: str
    discount_value: Decimal
    valid_from: datetime
    valid_until: datetime
    min_purchase_amount: Optional[Decimal] = None
    max_discount_amount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    used_count: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class Destination:
    country: str
    state: Optional[str] = None

    @classmethod
    def of(cls, country, state=None) -> "Destination":
        return cls(country=normalize_region(country) or "", state=normalize_region(state))


@dataclass(frozen=True)
class PricingSnapshot:
    destination: Destination
    medicines: Mapping[str, MedicineSnapshot] = field(default_factory=dict)
    shipping_method_id: object = None
    shipping_method: Optional[ShippingSnapshot] = None
    coupon_code: Optional[str] = None
    coupon: Optional[CouponSnapshot] = None
    tax_rates: tuple = ()

    def medicine(self, medicine_id) -> Optional[MedicineSnapshot]:
        return self.medicines.get(str(medicine_id))


def normalize_coupon_code(code) -> Optional[str]:
    c = (code or "").strip().upper()
    return c or None


def _medicine_snapshot(m: Medicine) -> MedicineSnapshot:
    return MedicineSnapshot(
        id=m.id,
        name=m.name,
        unit_price=Decimal(m.price),
        stock_quantity=int(m.stock_quantity),
        is_tax_exempt=bool(m.is_tax_exempt),
        is_active=bool(m.is_active),
    )


def _coupon_snapshot(c: Coupon) -> CouponSnapshot:
    return CouponSnapshot(
        id=c.id,
        code=c.code,
        discount_type=c.discount_type,
        discount_value=Decimal(c.discount_value),
        valid_from=c.valid_from,
        valid_until=c.valid_until,
        min_purchase_amount=c.min_purchase_amount,
        max_discount_amount=c.max_discount_amount,
        usage_limit=c.usage_limit,
        used_count=int(c.used_count),
        is_active=bool(c.is_active),
    )


def load_pricing_snapshot(
    *,
    medicine_ids: Iterable,
    shipping_method_id,
    country,
    state=None,
    coupon_code=None,
) -> PricingSnapshot:
    """
    Read the catalog rows needed to price one order.

    Inactive medicines / shipping methods / coupons are included as-is
    (with is_active=False) so the engine can report the precise reason.
    Only ACTIVE tax rates are read; inactive rates never apply.
    """
    ids = {str(i) for i in medicine_ids if i}
    medicines = {}
    if ids:
        for m in Medicine.objects.filter(id__in=ids):
            medicines[str(m.id)] = _medicine_snapshot(m)

    shipping = None
    if shipping_method_id:
        sm = ShippingMethod.objects.filter(pk=shipping_method_id).first()
        if sm is not None:
            shipping = ShippingSnapshot(
                id=sm.id,
                name=sm.name,
                base_cost=Decimal(sm.base_cost),
                estimated_days=int(sm.estimated_days),
                is_active=bool(sm.is_active),
            )

    code = normalize_coupon_code(coupon_code)
    coupon = None
    if code:
        c = Coupon.objects.filter(code__iexact=code).first()
        if c is not None:
            coupon = _coupon_snapshot(c)

    destination = Destination.of(country, state)
    rates = ()
    if destination.country:
        rates = tuple(
            TaxRateSnapshot(country=r.country, state=r.state, rate=Decimal(r.rate))
            for r in TaxRate.objects.filter(country__iexact=destination.country, is_active=True)
        )

    return PricingSnapshot(
        destination=destination,
        medicines=medicines,
        shipping_method_id=shipping_method_id,
        shipping_method=shipping,
        coupon_code=code,
        coupon=coupon,
        tax_rates=rates,
    )
