# orders/services/notifications.py

"""
ORDER NOTIFICATIONS (fire-and-forget)

Rules:
- Messages are scheduled with transaction.on_commit(): nothing is sent for
  a unit of work that rolls back
- A failed send is logged and swallowed; it can never undo a checkout or
  a reconciliation that already committed
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

logger = logging.getLogger(__name__)


def _send(*, to_email: str, subject: str, body: str, order_no: str) -> bool:
    if not to_email:
        logger.info("Notification skipped: no recipient", extra={"order_no": order_no})
        return False

    try:
        send_mail(
            subject,
            body,
            settings.DEFAULT_FROM_EMAIL,
            [to_email],
            fail_silently=False,
        )
    except Exception:
        logger.exception(
            "Notification delivery failed",
            extra={"order_no": order_no, "subject": subject},
        )
        return False

    logger.info("Notification sent", extra={"order_no": order_no, "subject": subject})
    return True


def _dispatch(order, subject: str, body: str):
    to_email = getattr(order.user, "email", "") or ""
    order_no = order.order_no
    transaction.on_commit(
        lambda: _send(to_email=to_email, subject=subject, body=body, order_no=order_no)
    )


def _items_text(order) -> str:
    return "\n".join(
        f"  - {item.name} x{item.quantity} - {item.line_total}"
        for item in order.items.all()
    )


def notify_order_created(order):
    subject = f"Order Received - #{order.order_no}"
    body = (
        f"Hi {order.user.display_name},\n\n"
        f"We've received your order #{order.order_no}.\n\n"
        f"Items:\n{_items_text(order)}\n\n"
        f"Subtotal: {order.subtotal_amount}\n"
        f"Discount: -{order.discount_amount}\n"
        f"Tax: {order.tax_amount}\n"
        f"Shipping: {order.shipping_cost}\n"
        f"Total: {order.total_amount}\n\n"
        "Your items are reserved while we wait for your payment.\n"
    )
    _dispatch(order, subject, body)


def notify_payment_confirmed(order):
    subject = f"Payment Confirmed - #{order.order_no}"
    body = (
        f"Hi {order.user.display_name},\n\n"
        f"We've received your payment of {order.total_amount} for order #{order.order_no}.\n"
        "Your order is now being processed.\n"
    )
    _dispatch(order, subject, body)


def notify_payment_rejected(order, reason: str = ""):
    subject = f"Payment Not Completed - #{order.order_no}"
    body = (
        f"Hi {order.user.display_name},\n\n"
        f"Your payment for order #{order.order_no} was not completed.\n"
        + (f"Reason: {reason}\n" if reason else "")
        + "Your items are still reserved; you can retry the payment from your order page.\n"
    )
    _dispatch(order, subject, body)


def notify_order_cancelled(order):
    subject = f"Order Cancelled - #{order.order_no}"
    body = (
        f"Hi {order.user.display_name},\n\n"
        f"Your order #{order.order_no} has been cancelled.\n"
    )
    _dispatch(order, subject, body)
