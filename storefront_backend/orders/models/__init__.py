"""
PATH: orders/models/__init__.py
"""

from .order import Order
from .order_coupon import OrderCoupon
from .order_item import OrderItem
from .order_tracking import OrderTracking

__all__ = [
    "Order",
    "OrderCoupon",
    "OrderItem",
    "OrderTracking",
]
