from .inventory_transaction import InventoryTransaction

__all__ = ["InventoryTransaction"]
