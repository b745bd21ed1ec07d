# orders/tests/test_lifecycle.py

from __future__ import annotations

from decimal import Decimal

from django.core import mail
from django.test import TestCase, override_settings

from inventory.models import InventoryTransaction
from orders.models import Order, OrderTracking
from orders.services.order_lifecycle import (
    InvalidStateTransitionError,
    OrderNotCancellableError,
    OrderNotFoundError,
    RetryLimitReachedError,
    can_transition,
    cancel_order,
    fulfil_order,
    record_tracking_entry,
    retry_order_payment,
    transition_order,
    validate_transition,
)
from orders.tests.helpers import make_medicine, make_shipping, make_user, place_order
from payments.models import Payment


class TransitionRuleTests(TestCase):
    """
    GUARANTEES:
    - Only the listed transitions are allowed
    - Terminal states never move
    - An order with a PAID payment cannot be cancelled
    """

    def test_allowed_transitions(self):
        self.assertTrue(can_transition(from_status=Order.STATUS_PENDING_PAYMENT, to_status=Order.STATUS_PAYMENT_SUBMITTED))
        self.assertTrue(can_transition(from_status=Order.STATUS_PAYMENT_FAILED, to_status=Order.STATUS_PENDING_PAYMENT))
        self.assertTrue(can_transition(from_status=Order.STATUS_PROCESSING, to_status=Order.STATUS_COMPLETED))

    def test_forbidden_transitions(self):
        self.assertFalse(can_transition(from_status=Order.STATUS_PENDING_PAYMENT, to_status=Order.STATUS_PROCESSING))
        self.assertFalse(can_transition(from_status=Order.STATUS_PAYMENT_SUBMITTED, to_status=Order.STATUS_COMPLETED))
        self.assertFalse(can_transition(from_status=Order.STATUS_COMPLETED, to_status=Order.STATUS_CANCELLED))
        self.assertFalse(can_transition(from_status=Order.STATUS_CANCELLED, to_status=Order.STATUS_PENDING_PAYMENT))

    def test_paid_order_cannot_be_cancelled(self):
        order = Order(order_no="ORD-X", status=Order.STATUS_PROCESSING)

        with self.assertRaises(OrderNotCancellableError):
            validate_transition(order=order, target_status=Order.STATUS_CANCELLED, has_paid_payment=True)


class OrderLifecycleTests(TestCase):
    """
    GUARANTEES:
    - Transitions bump version and stamp milestone timestamps
    - Cancelling releases reserved stock exactly once
    - Customers cancel only their own orders, only while awaiting payment
    - Payment retries are bounded
    - Tracking is recorded only for paid, undelivered orders
    """

    def setUp(self):
        self.user = make_user()
        self.staff = make_user(email="pharmacist@example.com", role="pharmacist")
        self.medicine = make_medicine(stock=10)
        self.shipping = make_shipping()
        self.order = place_order(user=self.user, shipping_method=self.shipping, lines=[(self.medicine, 3)])

    def _set_status(self, status):
        Order.objects.filter(pk=self.order.pk).update(status=status)
        self.order.refresh_from_db()

    def _payment(self, status, amount=None):
        return Payment.objects.create(
            order=self.order,
            amount=amount or self.order.total_amount,
            method=Payment.METHOD_MANUAL_PROOF,
            provider=Payment.PROVIDER_MANUAL,
            reference_number="GC-123",
            status=status,
        )

    # ======================================================
    # TRANSITION
    # ======================================================

    def test_transition_bumps_version_and_stamps_paid_at(self):
        self._set_status(Order.STATUS_PAYMENT_APPROVED)
        version = self.order.version

        order = transition_order(order_id=self.order.pk, to_status=Order.STATUS_PROCESSING)

        self.assertEqual(order.status, Order.STATUS_PROCESSING)
        self.assertEqual(order.version, version + 1)
        self.assertIsNotNone(order.paid_at)

    def test_illegal_transition_changes_nothing(self):
        with self.assertRaises(InvalidStateTransitionError):
            transition_order(order_id=self.order.pk, to_status=Order.STATUS_COMPLETED)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PENDING_PAYMENT)
        self.assertEqual(self.order.version, 0)

    # ======================================================
    # CANCEL
    # ======================================================

    def test_customer_cancel_releases_stock(self):
        pending = self._payment(Payment.STATUS_PENDING)

        with self.captureOnCommitCallbacks(execute=True):
            order = cancel_order(order_id=self.order.pk, user=self.user)

        self.medicine.refresh_from_db()
        pending.refresh_from_db()

        self.assertEqual(order.status, Order.STATUS_CANCELLED)
        self.assertIsNotNone(order.cancelled_at)
        self.assertEqual(self.medicine.stock_quantity, 10)
        self.assertEqual(pending.status, Payment.STATUS_CANCELLED)
        self.assertTrue(any("Cancelled" in m.subject for m in mail.outbox))

    def test_cancel_twice_does_not_double_credit(self):
        cancel_order(order_id=self.order.pk, user=self.user)

        with self.assertRaises(InvalidStateTransitionError):
            cancel_order(order_id=self.order.pk, user=self.staff, by_staff=True)

        self.medicine.refresh_from_db()
        self.assertEqual(self.medicine.stock_quantity, 10)
        self.assertEqual(
            InventoryTransaction.objects.filter(
                order=self.order, direction=InventoryTransaction.Direction.RELEASE
            ).count(),
            1,
        )

    def test_customer_cannot_cancel_someone_elses_order(self):
        stranger = make_user(email="stranger@example.com")

        with self.assertRaises(OrderNotFoundError):
            cancel_order(order_id=self.order.pk, user=stranger)

    def test_customer_cannot_cancel_once_payment_submitted(self):
        self._set_status(Order.STATUS_PAYMENT_SUBMITTED)

        with self.assertRaises(OrderNotCancellableError):
            cancel_order(order_id=self.order.pk, user=self.user)

    def test_staff_can_cancel_submitted_order(self):
        self._set_status(Order.STATUS_PAYMENT_SUBMITTED)

        order = cancel_order(order_id=self.order.pk, user=self.staff, by_staff=True)

        self.assertEqual(order.status, Order.STATUS_CANCELLED)

    def test_staff_cannot_cancel_paid_order(self):
        self._set_status(Order.STATUS_PROCESSING)
        self._payment(Payment.STATUS_PAID)

        with self.assertRaises(OrderNotCancellableError):
            cancel_order(order_id=self.order.pk, user=self.staff, by_staff=True)

        self.medicine.refresh_from_db()
        self.assertEqual(self.medicine.stock_quantity, 7)

    # ======================================================
    # RETRY
    # ======================================================

    def test_retry_returns_failed_order_to_pending(self):
        self._set_status(Order.STATUS_PAYMENT_FAILED)
        self._payment(Payment.STATUS_FAILED)

        order = retry_order_payment(order_id=self.order.pk, user=self.user)

        self.medicine.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_PENDING_PAYMENT)
        # stock stays reserved across retries
        self.assertEqual(self.medicine.stock_quantity, 7)

    @override_settings(PAYMENT_RETRY_LIMIT=2)
    def test_retry_limit(self):
        self._set_status(Order.STATUS_PAYMENT_FAILED)
        self._payment(Payment.STATUS_FAILED)
        self._payment(Payment.STATUS_FAILED)

        with self.assertRaises(RetryLimitReachedError):
            retry_order_payment(order_id=self.order.pk, user=self.user)

    def test_retry_requires_failed_order(self):
        with self.assertRaises(InvalidStateTransitionError):
            retry_order_payment(order_id=self.order.pk, user=self.user)

    # ======================================================
    # FULFIL
    # ======================================================

    def test_fulfil_completes_processing_order(self):
        self._set_status(Order.STATUS_PROCESSING)

        order = fulfil_order(order_id=self.order.pk, actor=self.staff, location="Quezon City")

        self.assertEqual(order.status, Order.STATUS_COMPLETED)
        self.assertIsNotNone(order.completed_at)
        entry = OrderTracking.objects.get(order=order)
        self.assertEqual(entry.status, OrderTracking.STATUS_DELIVERED)
        self.assertEqual(entry.location, "Quezon City")

    def test_fulfil_requires_processing(self):
        with self.assertRaises(InvalidStateTransitionError):
            fulfil_order(order_id=self.order.pk, actor=self.staff)

    # ======================================================
    # TRACKING
    # ======================================================

    def test_tracking_entry_on_processing_order(self):
        self._set_status(Order.STATUS_PROCESSING)

        entry = record_tracking_entry(
            order_id=self.order.pk,
            actor=self.staff,
            status=OrderTracking.STATUS_IN_TRANSIT,
            description="Left the Makati hub",
            location="Makati",
        )

        self.assertEqual(entry.status, OrderTracking.STATUS_IN_TRANSIT)
        self.assertEqual(entry.location, "Makati")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PROCESSING)

    def test_delivered_tracking_entry_completes_order(self):
        self._set_status(Order.STATUS_PROCESSING)

        entry = record_tracking_entry(
            order_id=self.order.pk,
            actor=self.staff,
            status=OrderTracking.STATUS_DELIVERED,
            description="Received by customer",
        )

        self.assertEqual(entry.status, OrderTracking.STATUS_DELIVERED)
        self.assertEqual(entry.description, "Received by customer")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_COMPLETED)
        self.assertEqual(OrderTracking.objects.filter(order=self.order).count(), 1)

    def test_tracking_refused_for_unpaid_or_terminal_orders(self):
        for status in (Order.STATUS_PENDING_PAYMENT, Order.STATUS_PAYMENT_SUBMITTED, Order.STATUS_COMPLETED, Order.STATUS_CANCELLED):
            self._set_status(status)
            with self.assertRaises(InvalidStateTransitionError):
                record_tracking_entry(order_id=self.order.pk, status=OrderTracking.STATUS_IN_TRANSIT)

        self.assertFalse(OrderTracking.objects.filter(order=self.order).exists())

    def test_order_total_invariant_enforced(self):
        from django.core.exceptions import ValidationError

        order = Order(
            user=self.user,
            shipping_method=self.shipping,
            shipping_address="1 Rizal St",
            shipping_country="PH",
            subtotal_amount=Decimal("100.00"),
            discount_amount=Decimal("10.00"),
            tax_amount=Decimal("10.80"),
            shipping_cost=Decimal("60.00"),
            total_amount=Decimal("170.80"),
        )
        with self.assertRaises(ValidationError):
            order.save()
