from django.contrib import admin

from inventory.models import InventoryTransaction


@admin.register(InventoryTransaction)
class InventoryTransactionAdmin(admin.ModelAdmin):
    list_display = ("created_at", "medicine", "order", "direction", "quantity", "stock_after")
    list_filter = ("direction",)
    search_fields = ("medicine__name", "medicine__sku", "order__order_no")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
