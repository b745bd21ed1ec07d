# orders/services/order_lifecycle.py

"""
ORDER LIFECYCLE DOMAIN RULES

This module owns Order.status. Nothing else writes it.

Allowed transitions:
    pending_payment   -> payment_submitted | cancelled
    payment_submitted -> payment_approved | payment_failed | cancelled
    payment_failed    -> pending_payment | cancelled
    payment_approved  -> processing | cancelled
    processing        -> completed | cancelled

Terminal: completed, cancelled.

Extra guard: any -> cancelled is refused once a payment of the order is PAID.

Concurrency:
- the order row is locked (select_for_update) for the transition
- the write is a compare-and-swap on (status, version); a lost race raises
  InvalidStateTransitionError and nothing is mutated
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from common.exceptions import NotFoundError, StateConflictError
from inventory.services.ledger import release_stock
from orders.models import Order, OrderTracking
from orders.services import notifications
from payments.models import Payment

logger = logging.getLogger(__name__)


# ============================================================
# DOMAIN ERRORS
# ============================================================

class OrderNotFoundError(NotFoundError):
    code = "ORDER_NOT_FOUND"


class InvalidStateTransitionError(StateConflictError):
    code = "INVALID_STATE_TRANSITION"


class OrderNotCancellableError(InvalidStateTransitionError):
    code = "ORDER_NOT_CANCELLABLE"


class RetryLimitReachedError(StateConflictError):
    code = "RETRY_LIMIT_REACHED"


# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Order.STATUS_COMPLETED,
    Order.STATUS_CANCELLED,
}

ALLOWED_TRANSITIONS = {
    Order.STATUS_PENDING_PAYMENT: {
        Order.STATUS_PAYMENT_SUBMITTED,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_PAYMENT_SUBMITTED: {
        Order.STATUS_PAYMENT_APPROVED,
        Order.STATUS_PAYMENT_FAILED,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_PAYMENT_FAILED: {
        Order.STATUS_PENDING_PAYMENT,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_PAYMENT_APPROVED: {
        Order.STATUS_PROCESSING,
        Order.STATUS_CANCELLED,
    },
    Order.STATUS_PROCESSING: {
        Order.STATUS_COMPLETED,
        Order.STATUS_CANCELLED,
    },
}

# Milestone timestamp stamped when a status is entered.
TIMESTAMP_FIELDS = {
    Order.STATUS_PROCESSING: "paid_at",
    Order.STATUS_COMPLETED: "completed_at",
    Order.STATUS_CANCELLED: "cancelled_at",
}


# ============================================================
# DOMAIN RULES (pure)
# ============================================================

def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, order: Order, target_status: str, has_paid_payment: bool = False):
    if not can_transition(from_status=order.status, to_status=target_status):
        raise InvalidStateTransitionError(
            f"Order {order.order_no} cannot transition from "
            f"'{order.status}' to '{target_status}'"
        )

    if target_status == Order.STATUS_CANCELLED and has_paid_payment:
        raise OrderNotCancellableError(
            f"Order {order.order_no} has a confirmed payment and cannot be cancelled"
        )


def has_paid_payment(order: Order) -> bool:
    return Payment.objects.filter(order=order, status=Payment.STATUS_PAID).exists()


# ============================================================
# TRANSITIONS (DB)
# ============================================================

def lock_order(*, order_id, user=None) -> Order:
    """
    Row-lock an order. When `user` is given the order must belong to them;
    someone else's order is reported as not found.
    """
    qs = Order.objects.select_for_update().filter(pk=order_id)
    if user is not None:
        qs = qs.filter(user=user)

    order = qs.first()
    if order is None:
        raise OrderNotFoundError(f"Order not found: {order_id}")
    return order


@transaction.atomic
def transition_order(*, order_id, to_status: str) -> Order:
    order = lock_order(order_id=order_id)

    validate_transition(
        order=order,
        target_status=to_status,
        has_paid_payment=(to_status == Order.STATUS_CANCELLED and has_paid_payment(order)),
    )

    now = timezone.now()
    updates = {
        "status": to_status,
        "version": F("version") + 1,
        "updated_at": now,
    }
    stamp = TIMESTAMP_FIELDS.get(to_status)
    if stamp and getattr(order, stamp) is None:
        updates[stamp] = now

    updated = Order.objects.filter(
        pk=order.pk,
        status=order.status,
        version=order.version,
    ).update(**updates)

    if updated != 1:
        raise InvalidStateTransitionError(
            f"Order {order.order_no} changed concurrently; transition to '{to_status}' refused"
        )

    logger.info(
        "Order status changed",
        extra={
            "order_id": str(order.pk),
            "from_status": order.status,
            "to_status": to_status,
        },
    )

    order.refresh_from_db()
    return order


def add_tracking_entry(*, order: Order, status: str, description: str = "", location: str = "") -> OrderTracking:
    return OrderTracking.objects.create(
        order=order,
        status=status,
        description=description,
        location=location,
    )


@transaction.atomic
def cancel_order(*, order_id, user, by_staff: bool = False) -> Order:
    """
    Cancel an order and release its reserved stock.

    - customers: own orders, only while PENDING_PAYMENT
    - staff: any non-terminal order without a PAID payment
    Active payments (pending / processing) are cancelled with the order.
    """
    order = lock_order(order_id=order_id, user=None if by_staff else user)

    if not by_staff and order.status != Order.STATUS_PENDING_PAYMENT:
        raise OrderNotCancellableError(
            f"Order {order.order_no} can only be cancelled while awaiting payment"
        )

    order = transition_order(order_id=order.pk, to_status=Order.STATUS_CANCELLED)

    cancelled_payments = Payment.objects.filter(
        order=order,
        status__in=Payment.ACTIVE_STATUSES,
    ).update(status=Payment.STATUS_CANCELLED, updated_at=timezone.now())

    released = release_stock(order=order)

    logger.info(
        "Order cancelled",
        extra={
            "order_id": str(order.pk),
            "by_staff": by_staff,
            "payments_cancelled": cancelled_payments,
            "lines_released": len(released),
        },
    )

    notifications.notify_order_cancelled(order)
    return order


@transaction.atomic
def retry_order_payment(*, order_id, user) -> Order:
    """
    payment_failed -> pending_payment so the customer can pay again.

    Stock stays reserved. Bounded by settings.PAYMENT_RETRY_LIMIT failed
    attempts per order.
    """
    order = lock_order(order_id=order_id, user=user)

    if order.status != Order.STATUS_PAYMENT_FAILED:
        raise InvalidStateTransitionError(
            f"Order {order.order_no} has no failed payment to retry"
        )

    limit = int(getattr(settings, "PAYMENT_RETRY_LIMIT", 5))
    failed = Payment.objects.filter(order=order, status=Payment.STATUS_FAILED).count()
    if failed >= limit:
        raise RetryLimitReachedError(
            f"Order {order.order_no} reached the payment retry limit ({limit}); cancel and reorder"
        )

    return transition_order(order_id=order.pk, to_status=Order.STATUS_PENDING_PAYMENT)


@transaction.atomic
def fulfil_order(*, order_id, actor=None, location: str = "") -> Order:
    """processing -> completed, with a `delivered` tracking entry."""
    order = transition_order(order_id=order_id, to_status=Order.STATUS_COMPLETED)

    add_tracking_entry(
        order=order,
        status=OrderTracking.STATUS_DELIVERED,
        description="Order delivered",
        location=location,
    )

    logger.info(
        "Order fulfilled",
        extra={
            "order_id": str(order.pk),
            "actor_id": str(getattr(actor, "pk", "") or ""),
        },
    )
    return order


# Paid, not yet delivered.
TRACKABLE_STATES = {
    Order.STATUS_PAYMENT_APPROVED,
    Order.STATUS_PROCESSING,
}


@transaction.atomic
def record_tracking_entry(*, order_id, actor=None, status: str, description: str = "", location: str = "") -> OrderTracking:
    """
    Back-office shipment update on a paid, undelivered order.

    A `delivered` entry completes the order through fulfil_order().
    """
    order = lock_order(order_id=order_id)

    if order.status not in TRACKABLE_STATES:
        raise InvalidStateTransitionError(
            f"Order {order.order_no} is '{order.status}'; tracking is only recorded for paid, undelivered orders"
        )

    if status == OrderTracking.STATUS_DELIVERED:
        order = fulfil_order(order_id=order.pk, actor=actor, location=location)
        entry = order.tracking.filter(status=OrderTracking.STATUS_DELIVERED).latest("created_at")
        if description and entry.description != description:
            entry.description = description
            entry.save(update_fields=["description"])
        return entry

    entry = add_tracking_entry(order=order, status=status, description=description, location=location)

    logger.info(
        "Tracking entry recorded",
        extra={
            "order_id": str(order.pk),
            "tracking_status": status,
            "actor_id": str(getattr(actor, "pk", "") or ""),
        },
    )
    return entry
