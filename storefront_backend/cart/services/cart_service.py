# cart/services/cart_service.py

"""
Cart helpers used by checkout and payment reconciliation.

Cart CRUD itself lives outside this service; these are the only two
operations the order flow needs.
"""

from __future__ import annotations

import logging

from cart.models import Cart, CartItem

logger = logging.getLogger(__name__)


def get_active_cart(user):
    return Cart.objects.filter(user=user, is_active=True).first()


def cart_lines_for_user(user) -> list[tuple]:
    """(medicine_id, quantity) pairs of the user's active cart, oldest first."""
    cart = get_active_cart(user)
    if cart is None:
        return []
    return list(cart.items.order_by("created_at").values_list("medicine_id", "quantity"))


def clear_cart_for_user(user) -> int:
    """
    Empty the user's active cart. Returns the number of lines removed.

    Safe to call repeatedly; an empty or missing cart removes nothing.
    """
    deleted, _ = CartItem.objects.filter(cart__user=user, cart__is_active=True).delete()
    if deleted:
        logger.info(
            "Cart cleared",
            extra={"user_id": str(getattr(user, "pk", "")), "lines": deleted},
        )
    return deleted
