# catalog/admin.py
"""
=====================================================
PATH: catalog/admin.py
=====================================================

Admin rules:
- Medicine.stock_quantity is READ-ONLY here. Stock moves only through the
  inventory ledger (reserve / release), so an admin edit can never desync
  the InventoryTransaction audit trail.
- Coupon.used_count is READ-ONLY. It is incremented by checkout only.
"""

from __future__ import annotations

from django.contrib import admin

from catalog.models import Coupon, Medicine, ShippingMethod, TaxRate


@admin.register(Medicine)
class MedicineAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "price", "stock_quantity", "is_tax_exempt", "is_active")
    list_filter = ("is_active", "is_tax_exempt", "requires_prescription")
    search_fields = ("name", "sku")
    readonly_fields = ("stock_quantity", "created_at", "updated_at")


@admin.register(ShippingMethod)
class ShippingMethodAdmin(admin.ModelAdmin):
    list_display = ("name", "base_cost", "estimated_days", "is_active")
    list_filter = ("is_active",)


@admin.register(TaxRate)
class TaxRateAdmin(admin.ModelAdmin):
    list_display = ("country", "state", "rate", "is_active")
    list_filter = ("country", "is_active")
    search_fields = ("country", "state")


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = (
        "code",
        "discount_type",
        "discount_value",
        "used_count",
        "usage_limit",
        "valid_from",
        "valid_until",
        "is_active",
    )
    list_filter = ("discount_type", "is_active")
    search_fields = ("code",)
    readonly_fields = ("used_count", "created_at", "updated_at")
