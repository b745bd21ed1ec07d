"""
PATH: catalog/models/__init__.py

Catalog models export surface (read-mostly pricing inputs).
"""

from .coupon import Coupon
from .medicine import Medicine
from .shipping_method import ShippingMethod
from .tax_rate import TaxRate

__all__ = [
    "Coupon",
    "Medicine",
    "ShippingMethod",
    "TaxRate",
]
