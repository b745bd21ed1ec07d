# payments/admin.py
"""
Payments admin (read-mostly).

- Payment status is driven by the reconciliation engine only; approving or
  rejecting a proof goes through POST /api/admin/payments/<id>/review/.
- PaymentEvent is an append-only audit log: no add / change / delete.
"""

from django.contrib import admin

from payments.models import Payment, PaymentEvent


class PaymentEventInline(admin.TabularInline):
    model = PaymentEvent
    extra = 0
    can_delete = False
    fields = ("created_at", "channel", "event_type", "outcome", "amount", "currency", "detail")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "method", "amount", "currency", "status", "needs_review", "created_at")
    list_filter = ("status", "method", "provider", "needs_review")
    search_fields = ("external_reference", "gateway_payment_id", "reference_number", "order__order_no")
    readonly_fields = (
        "order",
        "amount",
        "currency",
        "method",
        "provider",
        "status",
        "external_reference",
        "gateway_payment_id",
        "checkout_url",
        "provider_payload",
        "paid_at",
        "failed_at",
        "reviewed_by",
        "reviewed_at",
        "created_at",
        "updated_at",
    )
    inlines = [PaymentEventInline]


@admin.register(PaymentEvent)
class PaymentEventAdmin(admin.ModelAdmin):
    list_display = ("created_at", "channel", "event_type", "reference_id", "outcome")
    list_filter = ("channel", "outcome")
    search_fields = ("reference_id", "event_id")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
