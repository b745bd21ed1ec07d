# orders/admin.py
"""
Orders admin (read-only money).

Status changes go through the lifecycle service (API back-office actions),
never through this form, so the version guard and stock release always run.
"""

from django.contrib import admin

from orders.models import Order, OrderCoupon, OrderItem, OrderTracking


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = ("medicine", "name", "quantity", "unit_price", "line_total")

    def has_add_permission(self, request, obj=None):
        return False


class OrderTrackingInline(admin.TabularInline):
    model = OrderTracking
    extra = 0
    can_delete = False
    readonly_fields = ("status", "description", "location", "created_at")

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_no", "user", "status", "total_amount", "created_at")
    list_filter = ("status",)
    search_fields = ("order_no", "user__email")
    readonly_fields = (
        "order_no",
        "user",
        "status",
        "version",
        "shipping_method",
        "subtotal_amount",
        "discount_amount",
        "tax_amount",
        "tax_rate",
        "shipping_cost",
        "total_amount",
        "coupon_code",
        "created_at",
        "updated_at",
        "paid_at",
        "cancelled_at",
        "completed_at",
    )
    inlines = [OrderItemInline, OrderTrackingInline]


@admin.register(OrderCoupon)
class OrderCouponAdmin(admin.ModelAdmin):
    list_display = ("order", "coupon", "discount_amount", "created_at")
    search_fields = ("order__order_no", "coupon__code")
