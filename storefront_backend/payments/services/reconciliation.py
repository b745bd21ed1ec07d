# payments/services/reconciliation.py

"""
============================================================
PAYMENT RECONCILIATION ENGINE
============================================================

Moves an Order forward from external payment signals. Two channels feed it:

- manual proof:  submit_payment_proof() -> admin review_manual_payment()
- gateway:       create_gateway_payment() -> webhook apply_gateway_event()
                 and/or client poll verify_gateway_payment()

Webhook and poll may observe the same gateway outcome; both go through
apply_gateway_event(), which is idempotent:

- matched by Payment.external_reference / gateway_payment_id, never by a
  client-supplied order id
- a re-delivered event id short-circuits as DUPLICATE
- a signal for a payment that is already terminal is a no-op
  (DUPLICATE when it agrees, STALE when it does not); a `failed` can
  never regress a `paid`, and a `paid` for a failed / cancelled payment
  is flagged for review instead of being applied
- amount + currency are checked before anything is applied; a mismatch
  flags the payment for review, is logged, and raises AmountMismatchError
  (the flag is committed, nothing else changes)

Outcomes:
    paid   -> Payment PAID, Order payment_submitted -> payment_approved -> processing,
              cart cleared, first tracking entry, confirmation e-mail
    failed -> Payment FAILED, Order -> payment_failed, stock STAYS reserved

Locking: order row first, then payment row (same order as cancel_order()).
Every signal leaves a PaymentEvent audit row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from cart.services.cart_service import clear_cart_for_user
from common.exceptions import (
    ExternalIntegrityError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from common.money import money
from orders.models import Order, OrderTracking
from orders.services import notifications
from orders.services.order_lifecycle import add_tracking_entry, lock_order, transition_order
from payments.models import Payment, PaymentEvent
from payments.services import paymongo
from payments.services.paymongo import GatewayEvent

logger = logging.getLogger(__name__)

STATUS_PAID = "paid"
STATUS_FAILED = "failed"


# ============================================================
# DOMAIN ERRORS
# ============================================================

class OrderNotPayableError(StateConflictError):
    code = "ORDER_NOT_PAYABLE"


class PaymentNotFoundError(NotFoundError):
    code = "PAYMENT_NOT_FOUND"


class AmountMismatchError(ExternalIntegrityError):
    code = "AMOUNT_MISMATCH"


class PaymentNotReviewableError(StateConflictError):
    code = "PAYMENT_NOT_REVIEWABLE"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: str
    payment: Optional[Payment] = None
    order_status: str = ""
    detail: str = ""

    @property
    def applied(self) -> bool:
        return self.outcome == PaymentEvent.OUTCOME_APPLIED


# ============================================================
# HELPERS
# ============================================================

def _currency() -> str:
    return (getattr(settings, "PAYMENT_CURRENCY", "") or "PHP").upper()


def _frontend_url(path: str) -> str:
    base = (getattr(settings, "FRONTEND_BASE_URL", "") or "").rstrip("/")
    return f"{base}{path}"


def _record_event(
    *,
    payment: Optional[Payment],
    channel: str,
    outcome: str,
    event: Optional[GatewayEvent] = None,
    event_type: str = "",
    detail: str = "",
) -> PaymentEvent:
    fields = dict(
        payment=payment,
        channel=channel,
        event_type=(event.event_type if event else event_type) or event_type,
        reference_id=(event.reference_id or event.payment_id) if event else "",
        amount=event.amount if event else None,
        currency=event.currency if event else "",
        outcome=outcome,
        detail=detail[:255],
        payload=event.payload if event else {},
    )
    event_id = event.event_id if event else None

    try:
        with transaction.atomic():
            return PaymentEvent.objects.create(event_id=event_id, **fields)
    except IntegrityError:
        # Same gateway event id recorded by a concurrent delivery.
        return PaymentEvent.objects.create(event_id=None, **fields)


def _find_payment(*, reference_id: str = "", payment_id: str = "") -> Optional[Payment]:
    q = Q()
    if reference_id:
        q |= Q(external_reference=reference_id)
    if payment_id:
        q |= Q(gateway_payment_id=payment_id)
    if not q:
        return None
    return Payment.objects.filter(q).only("id", "order_id").first()


def _lock(payment_ref: Payment) -> tuple[Order, Payment]:
    order = lock_order(order_id=payment_ref.order_id)
    payment = Payment.objects.select_for_update().get(pk=payment_ref.pk)
    return order, payment


def _apply_paid(*, order: Order, payment: Payment, payload=None) -> Order:
    payment.mark_paid(payload)
    payment.save(update_fields=["status", "paid_at", "provider_payload", "gateway_payment_id", "updated_at"])

    if order.status == Order.STATUS_PAYMENT_SUBMITTED:
        order = transition_order(order_id=order.pk, to_status=Order.STATUS_PAYMENT_APPROVED)
    order = transition_order(order_id=order.pk, to_status=Order.STATUS_PROCESSING)

    clear_cart_for_user(order.user)
    add_tracking_entry(
        order=order,
        status=OrderTracking.STATUS_ORDER_CONFIRMED,
        description="Payment confirmed; order is being prepared",
    )
    notifications.notify_payment_confirmed(order)
    return order


def _apply_failed(*, order: Order, payment: Payment, payload=None, reason: str = "") -> Order:
    payment.mark_failed(payload)
    payment.save(update_fields=["status", "failed_at", "provider_payload", "gateway_payment_id", "updated_at"])

    order = transition_order(order_id=order.pk, to_status=Order.STATUS_PAYMENT_FAILED)
    notifications.notify_payment_rejected(order, reason)
    return order


def _amount_matches(payment: Payment, event: GatewayEvent) -> bool:
    if event.amount is None:
        return False
    if money(event.amount) != money(payment.amount):
        return False
    return (event.currency or "").upper() == (payment.currency or "").upper()


# ============================================================
# MANUAL PROOF
# ============================================================

@transaction.atomic
def submit_payment_proof(*, user, order_id, reference_number: str, proof_file=None) -> Payment:
    """
    Customer uploaded a proof of payment. Payment PENDING (awaiting admin
    review), Order pending_payment -> payment_submitted.
    """
    ref = (reference_number or "").strip()
    if not ref:
        raise ValidationError("reference_number is required")

    order = lock_order(order_id=order_id, user=user)
    if order.status != Order.STATUS_PENDING_PAYMENT:
        raise OrderNotPayableError(f"Order {order.order_no} is not awaiting payment")

    if Payment.objects.filter(order=order, status__in=Payment.ACTIVE_STATUSES).exists():
        raise OrderNotPayableError(f"Order {order.order_no} already has a payment in progress")

    payment = Payment.objects.create(
        order=order,
        amount=order.total_amount,
        currency=_currency(),
        method=Payment.METHOD_MANUAL_PROOF,
        provider=Payment.PROVIDER_MANUAL,
        reference_number=ref,
        proof_file=proof_file or "",
        status=Payment.STATUS_PENDING,
    )

    payment.order = transition_order(order_id=order.pk, to_status=Order.STATUS_PAYMENT_SUBMITTED)

    logger.info(
        "Payment proof submitted",
        extra={"order_id": str(order.pk), "payment_id": str(payment.pk), "reference": ref},
    )
    return payment


@transaction.atomic
def review_manual_payment(*, payment_id, reviewer, approve: bool, note: str = "") -> ReconciliationResult:
    """
    Back-office decision on a pending manual-proof payment.
    approve -> same path as a gateway `paid`; reject -> same path as `failed`.
    Reviewing an already-settled payment changes nothing.
    """
    ref = Payment.objects.filter(pk=payment_id).only("id", "order_id").first()
    if ref is None:
        raise PaymentNotFoundError(f"Payment not found: {payment_id}")

    order, payment = _lock(ref)
    if payment.method != Payment.METHOD_MANUAL_PROOF:
        raise PaymentNotReviewableError(
            f"Payment {payment.pk} is settled by the gateway and cannot be reviewed manually"
        )

    decision = STATUS_PAID if approve else STATUS_FAILED

    if payment.is_terminal:
        outcome = PaymentEvent.OUTCOME_DUPLICATE if payment.status == decision else PaymentEvent.OUTCOME_STALE
        _record_event(
            payment=payment,
            channel=PaymentEvent.CHANNEL_ADMIN,
            event_type=f"review.{decision}",
            outcome=outcome,
            detail=f"payment already {payment.status}",
        )
        return ReconciliationResult(outcome=outcome, payment=payment, order_status=order.status)

    payment.reviewed_by = reviewer
    payment.reviewed_at = timezone.now()
    payment.review_note = (note or "").strip()
    payment.needs_review = False
    payment.save(update_fields=["reviewed_by", "reviewed_at", "review_note", "needs_review", "updated_at"])

    if approve:
        order = _apply_paid(order=order, payment=payment)
    else:
        order = _apply_failed(order=order, payment=payment, reason=payment.review_note)

    _record_event(
        payment=payment,
        channel=PaymentEvent.CHANNEL_ADMIN,
        event_type=f"review.{decision}",
        outcome=PaymentEvent.OUTCOME_APPLIED,
        detail=payment.review_note,
    )

    logger.info(
        "Payment reviewed",
        extra={
            "payment_id": str(payment.pk),
            "order_id": str(order.pk),
            "decision": decision,
            "reviewer_id": str(getattr(reviewer, "pk", "") or ""),
        },
    )
    return ReconciliationResult(outcome=PaymentEvent.OUTCOME_APPLIED, payment=payment, order_status=order.status)


# ============================================================
# GATEWAY: CREATE SOURCE
# ============================================================

@transaction.atomic
def create_gateway_payment(*, user, order_id, amount) -> Payment:
    """
    Open a gateway source for the order and hand back its redirect URL.

    The order lock is held across the gateway call so two clicks cannot
    open two sources. A gateway failure rolls everything back.
    """
    order = lock_order(order_id=order_id, user=user)
    if order.status != Order.STATUS_PENDING_PAYMENT:
        raise OrderNotPayableError(f"Order {order.order_no} is not awaiting payment")

    try:
        requested = money(amount)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    if requested != money(order.total_amount):
        raise ValidationError(
            f"Amount {requested} does not match order total {order.total_amount}",
            code="AMOUNT_DOES_NOT_MATCH_ORDER",
        )

    if Payment.objects.filter(order=order, status__in=Payment.ACTIVE_STATUSES).exists():
        raise OrderNotPayableError(f"Order {order.order_no} already has a payment in progress")

    currency = _currency()
    source = paymongo.create_source(
        amount=order.total_amount,
        currency=currency,
        success_url=_frontend_url(f"/payment/success?order={order.pk}"),
        failed_url=_frontend_url(f"/payment/failed?order={order.pk}"),
        metadata={"order_id": str(order.pk), "order_no": order.order_no},
    )

    payment = Payment.objects.create(
        order=order,
        amount=order.total_amount,
        currency=currency,
        method=Payment.METHOD_GATEWAY,
        provider=Payment.PROVIDER_PAYMONGO,
        external_reference=source.id,
        checkout_url=source.checkout_url,
        provider_payload=source.raw,
        status=Payment.STATUS_PENDING,
    )

    payment.order = transition_order(order_id=order.pk, to_status=Order.STATUS_PAYMENT_SUBMITTED)

    logger.info(
        "Gateway source created",
        extra={"order_id": str(order.pk), "payment_id": str(payment.pk), "reference": source.id},
    )
    return payment


# ============================================================
# GATEWAY: EVENTS (webhook + poll)
# ============================================================

@transaction.atomic
def _apply_gateway_event(event: GatewayEvent, *, channel: str):
    if event.event_id and PaymentEvent.objects.filter(event_id=event.event_id).exists():
        logger.info("Duplicate gateway event ignored", extra={"event_id": event.event_id})
        return ReconciliationResult(outcome=PaymentEvent.OUTCOME_DUPLICATE, detail="event already processed"), None

    if event.status not in (STATUS_PAID, STATUS_FAILED):
        _record_event(payment=None, channel=channel, outcome=PaymentEvent.OUTCOME_IGNORED, event=event,
                      detail=f"unhandled event status '{event.status}'")
        return ReconciliationResult(outcome=PaymentEvent.OUTCOME_IGNORED, detail=event.event_type), None

    ref = _find_payment(reference_id=event.reference_id, payment_id=event.payment_id)
    if ref is None:
        logger.warning(
            "Gateway event matches no payment",
            extra={"reference": event.reference_id, "gateway_payment_id": event.payment_id},
        )
        _record_event(payment=None, channel=channel, outcome=PaymentEvent.OUTCOME_IGNORED, event=event,
                      detail="no matching payment")
        return ReconciliationResult(outcome=PaymentEvent.OUTCOME_IGNORED, detail="no matching payment"), None

    order, payment = _lock(ref)

    if payment.is_terminal:
        if payment.status == event.status:
            outcome = PaymentEvent.OUTCOME_DUPLICATE
        else:
            outcome = PaymentEvent.OUTCOME_STALE

        if event.status == STATUS_PAID and payment.status != Payment.STATUS_PAID:
            # Money captured for a payment already settled as failed / cancelled.
            note = f"Gateway reported paid after the payment was {payment.status}"
            payment.needs_review = True
            payment.review_note = note
            Payment.objects.filter(pk=payment.pk).update(
                needs_review=True,
                review_note=note,
                updated_at=timezone.now(),
            )
            logger.error(
                "Paid event for settled payment",
                extra={
                    "payment_id": str(payment.pk),
                    "order_id": str(order.pk),
                    "payment_status": payment.status,
                    "reference": event.reference_id,
                },
            )

        _record_event(payment=payment, channel=channel, outcome=outcome, event=event,
                      detail=f"payment already {payment.status}")
        return ReconciliationResult(outcome=outcome, payment=payment, order_status=order.status), None

    if not _amount_matches(payment, event):
        note = (
            f"Gateway reported {event.amount} {event.currency}; "
            f"expected {payment.amount} {payment.currency}"
        )
        Payment.objects.filter(pk=payment.pk).update(needs_review=True, review_note=note, updated_at=timezone.now())
        _record_event(payment=payment, channel=channel, outcome=PaymentEvent.OUTCOME_REJECTED, event=event, detail=note)
        logger.error(
            "Gateway amount mismatch",
            extra={"payment_id": str(payment.pk), "order_id": str(order.pk), "reference": event.reference_id},
        )
        return (
            ReconciliationResult(outcome=PaymentEvent.OUTCOME_REJECTED, payment=payment, order_status=order.status, detail=note),
            AmountMismatchError(note),
        )

    if event.payment_id and not payment.gateway_payment_id:
        payment.gateway_payment_id = event.payment_id

    if event.status == STATUS_PAID:
        order = _apply_paid(order=order, payment=payment, payload=event.payload or None)
    else:
        order = _apply_failed(order=order, payment=payment, payload=event.payload or None,
                              reason="The payment gateway reported a failed payment")

    _record_event(payment=payment, channel=channel, outcome=PaymentEvent.OUTCOME_APPLIED, event=event)

    logger.info(
        "Gateway event applied",
        extra={
            "payment_id": str(payment.pk),
            "order_id": str(order.pk),
            "event_type": event.event_type,
            "channel": channel,
        },
    )
    return ReconciliationResult(outcome=PaymentEvent.OUTCOME_APPLIED, payment=payment, order_status=order.status), None


def apply_gateway_event(event: GatewayEvent, *, channel: str = PaymentEvent.CHANNEL_WEBHOOK) -> ReconciliationResult:
    """
    Apply one normalized gateway signal.

    Raises AmountMismatchError AFTER the review flag has been committed.
    """
    result, error = _apply_gateway_event(event, channel=channel)
    if error is not None:
        raise error
    return result


def verify_gateway_payment(*, user, source_id: str) -> ReconciliationResult:
    """
    Client poll after the gateway redirect.

    - chargeable source: charge it once (Payment -> PROCESSING)
    - paid / expired / cancelled source, or a charge that settled
      immediately: fed through apply_gateway_event()
    """
    sid = (source_id or "").strip()
    ref = (
        Payment.objects
        .filter(external_reference=sid, order__user=user)
        .only("id", "order_id", "status")
        .first()
        if sid else None
    )
    if ref is None:
        raise PaymentNotFoundError(f"Payment not found for source {source_id}")

    if ref.is_terminal:
        order_status = Order.objects.values_list("status", flat=True).get(pk=ref.order_id)
        return ReconciliationResult(outcome=PaymentEvent.OUTCOME_DUPLICATE, payment=ref, order_status=order_status)

    source = paymongo.retrieve_source(sid)

    if source.status == "chargeable":
        charge = _charge_source(payment_ref=ref, source=source)
        if charge is not None and charge.status in (STATUS_PAID, STATUS_FAILED):
            return apply_gateway_event(
                GatewayEvent(
                    event_type=f"payment.{charge.status}",
                    status=charge.status,
                    reference_id=sid,
                    payment_id=charge.id,
                    amount=charge.amount,
                    currency=charge.currency,
                    payload={"data": charge.raw},
                ),
                channel=PaymentEvent.CHANNEL_POLL,
            )
    elif source.status == STATUS_PAID or source.status in paymongo.SOURCE_DEAD_STATES:
        return apply_gateway_event(
            GatewayEvent(
                event_type=f"source.{source.status}",
                status=STATUS_PAID if source.status == STATUS_PAID else STATUS_FAILED,
                reference_id=sid,
                amount=source.amount,
                currency=source.currency,
                payload={"data": source.raw},
            ),
            channel=PaymentEvent.CHANNEL_POLL,
        )

    payment = Payment.objects.select_related("order").get(pk=ref.pk)
    return ReconciliationResult(
        outcome=PaymentEvent.OUTCOME_IGNORED,
        payment=payment,
        order_status=payment.order.status,
        detail=f"source {source.status}",
    )


@transaction.atomic
def _charge_source(*, payment_ref: Payment, source) -> Optional[paymongo.GatewayPayment]:
    """Create the gateway payment for a chargeable source, at most once."""
    order, payment = _lock(payment_ref)

    if payment.status != Payment.STATUS_PENDING or payment.gateway_payment_id:
        return None

    charge = paymongo.create_payment(
        amount=payment.amount,
        currency=payment.currency,
        source_id=source.id,
        description=f"Order {order.order_no}",
    )

    payment.gateway_payment_id = charge.id
    payment.status = Payment.STATUS_PROCESSING
    payment.provider_payload = {"source": source.raw, "payment": charge.raw}
    payment.save(update_fields=["gateway_payment_id", "status", "provider_payload", "updated_at"])

    _record_event(
        payment=payment,
        channel=PaymentEvent.CHANNEL_POLL,
        event_type="source.chargeable",
        outcome=PaymentEvent.OUTCOME_APPLIED,
        detail=f"gateway payment {charge.id} created",
    )

    logger.info(
        "Gateway source charged",
        extra={"payment_id": str(payment.pk), "order_id": str(order.pk), "gateway_payment_id": charge.id},
    )
    return charge
