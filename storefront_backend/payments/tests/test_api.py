# payments/tests/test_api.py

from __future__ import annotations

import json
import time
from decimal import Decimal
from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from orders.models import Order
from orders.tests.helpers import make_medicine, make_shipping, make_user, place_order
from payments.models import Payment, PaymentEvent
from payments.services.paymongo import GatewaySource
from payments.services.reconciliation import create_gateway_payment
from payments.tests.test_paymongo import paid_event, signature_header


def open_source(order, source_id="src_1"):
    source = GatewaySource(
        id=source_id,
        status="pending",
        checkout_url=f"https://pm.test/checkout/{source_id}",
        amount=order.total_amount,
        currency="PHP",
    )
    return mock.patch("payments.services.paymongo.create_source", return_value=source)


class PaymentAPITestBase(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = make_user()
        self.pharmacist = make_user(email="pharmacist@example.com", role="pharmacist")
        self.medicine = make_medicine(stock=10)
        self.shipping = make_shipping()

        # 2 x 50.00 + 60.00 shipping, no tax configured
        self.order = place_order(user=self.user, shipping_method=self.shipping, lines=[(self.medicine, 2)])


class CreateSourceAPITests(PaymentAPITestBase):
    """
    GUARANTEES:
    - Authenticated customers get a checkout URL for their own order
    - Orders not awaiting payment answer 404
    - Amount tampering answers 400
    """

    def setUp(self):
        super().setUp()
        self.url = reverse("payment-source")

    def test_requires_authentication(self):
        response = self.client.post(self.url, {"order_id": str(self.order.pk), "amount": "160.00"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_source(self):
        self.client.force_authenticate(self.user)

        with open_source(self.order):
            response = self.client.post(
                self.url, {"order_id": str(self.order.pk), "amount": "160.00"}, format="json"
            )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["source_id"], "src_1")
        self.assertEqual(response.data["checkout_url"], "https://pm.test/checkout/src_1")
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PAYMENT_SUBMITTED)

    def test_tampered_amount_is_400(self):
        self.client.force_authenticate(self.user)

        response = self.client.post(self.url, {"order_id": str(self.order.pk), "amount": "1.00"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "AMOUNT_DOES_NOT_MATCH_ORDER")

    def test_order_not_payable_is_404(self):
        Order.objects.filter(pk=self.order.pk).update(status=Order.STATUS_CANCELLED)
        self.client.force_authenticate(self.user)

        response = self.client.post(self.url, {"order_id": str(self.order.pk), "amount": "160.00"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"]["code"], "ORDER_NOT_PAYABLE")


class WebhookAPITests(PaymentAPITestBase):
    """
    GUARANTEES:
    - Unsigned / mis-signed / malformed deliveries answer 400
    - Deliveries signed too long ago answer 400
    - Authentic deliveries answer 200, including duplicates and mismatches
    """

    def setUp(self):
        super().setUp()
        self.url = reverse("payment-webhook")
        with open_source(self.order):
            self.payment = create_gateway_payment(user=self.user, order_id=self.order.pk, amount="160.00")

    def _deliver(self, payload, *, header=None):
        body = json.dumps(payload).encode("utf-8")
        return self.client.post(
            self.url,
            data=body,
            content_type="application/json",
            HTTP_PAYMONGO_SIGNATURE=header if header is not None else signature_header(body),
        )

    def test_bad_signature_is_400(self):
        response = self._deliver(paid_event(amount=16000), header="t=1,te=deadbeef,li=")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "INVALID_SIGNATURE")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_PENDING)

    def test_stale_delivery_is_400(self):
        body = json.dumps(paid_event(amount=16000)).encode("utf-8")
        header = signature_header(body, timestamp=str(int(time.time()) - 3600))

        response = self._deliver(paid_event(amount=16000), header=header)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "INVALID_SIGNATURE")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_PENDING)

    def test_malformed_event_is_400(self):
        response = self._deliver({"data": {"attributes": {}}})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "MALFORMED_EVENT")

    def test_paid_event_applied(self):
        response = self._deliver(paid_event(amount=16000))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["outcome"], PaymentEvent.OUTCOME_APPLIED)
        self.payment.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_PAID)
        self.assertEqual(self.order.status, Order.STATUS_PROCESSING)

    def test_redelivery_is_duplicate(self):
        self._deliver(paid_event(amount=16000))

        response = self._deliver(paid_event(amount=16000))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["outcome"], PaymentEvent.OUTCOME_DUPLICATE)

    def test_amount_mismatch_acknowledged_and_flagged(self):
        response = self._deliver(paid_event(amount=100))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["detail"], "Flagged for review")
        self.payment.refresh_from_db()
        self.assertTrue(self.payment.needs_review)
        self.assertEqual(self.payment.status, Payment.STATUS_PENDING)


class VerifyAPITests(PaymentAPITestBase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(self.user)
        with open_source(self.order):
            self.client.post(
                reverse("payment-source"), {"order_id": str(self.order.pk), "amount": "160.00"}, format="json"
            )

    def test_verify_paid_source(self):
        paid = GatewaySource(id="src_1", status="paid", amount=Decimal("160.00"), currency="PHP")

        with mock.patch("payments.services.paymongo.retrieve_source", return_value=paid):
            response = self.client.post(reverse("payment-verify"), {"source_id": "src_1"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], Payment.STATUS_PAID)
        self.assertEqual(response.data["order_status"], Order.STATUS_PROCESSING)

    def test_unknown_source_is_404(self):
        response = self.client.post(reverse("payment-verify"), {"source_id": "src_missing"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["error"]["code"], "PAYMENT_NOT_FOUND")


class ProofAndReviewAPITests(PaymentAPITestBase):
    """
    GUARANTEES:
    - Customers upload proof for their own pending order
    - Proof must be a jpg, png, gif or webp image of at most 5 MB
    - Only back-office users list and review payments
    - Gateway payments cannot be reviewed manually
    """

    def _upload(self, proof_file=None):
        self.client.force_authenticate(self.user)
        if proof_file is None:
            proof_file = SimpleUploadedFile("receipt.png", b"fake-image-bytes", content_type="image/png")
        return self.client.post(
            reverse("payment-proof"),
            {
                "order_id": str(self.order.pk),
                "reference_number": "GC-0001",
                "proof_file": proof_file,
            },
            format="multipart",
        )

    def test_upload_proof(self):
        response = self._upload()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["method"], Payment.METHOD_MANUAL_PROOF)
        self.assertEqual(response.data["order_status"], Order.STATUS_PAYMENT_SUBMITTED)

    def test_non_image_proof_is_400(self):
        response = self._upload(
            SimpleUploadedFile("payload.exe", b"MZ\x90\x00", content_type="application/x-msdownload")
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("proof_file", response.data)
        self.assertFalse(Payment.objects.exists())
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.STATUS_PENDING_PAYMENT)

    def test_image_extension_with_wrong_content_type_is_400(self):
        response = self._upload(SimpleUploadedFile("receipt.png", b"<html></html>", content_type="text/html"))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Payment.objects.exists())

    def test_oversized_proof_is_400(self):
        big = SimpleUploadedFile("receipt.jpg", b"0" * (5 * 1024 * 1024 + 1), content_type="image/jpeg")

        response = self._upload(big)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("proof_file", response.data)
        self.assertFalse(Payment.objects.exists())

    def test_second_upload_is_400(self):
        self._upload()

        response = self._upload()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "ORDER_NOT_PAYABLE")

    def test_customer_cannot_list_payments(self):
        self.client.force_authenticate(self.user)

        response = self.client.get(reverse("admin-payment-list"))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_pharmacist_lists_and_approves(self):
        payment_id = self._upload().data["id"]
        self.client.force_authenticate(self.pharmacist)

        listing = self.client.get(reverse("admin-payment-list"), {"status": Payment.STATUS_PENDING})
        response = self.client.post(
            reverse("admin-payment-review", args=[payment_id]),
            {"decision": "approve", "note": "Matched GCash transfer"},
            format="json",
        )

        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual([row["id"] for row in listing.data["results"]], [str(payment_id)])
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], Payment.STATUS_PAID)
        self.assertEqual(response.data["order_status"], Order.STATUS_PROCESSING)

    def test_reject(self):
        payment_id = self._upload().data["id"]
        self.client.force_authenticate(self.pharmacist)

        response = self.client.post(
            reverse("admin-payment-review", args=[payment_id]),
            {"decision": "reject", "note": "No transfer found"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], Payment.STATUS_FAILED)
        self.assertEqual(response.data["order_status"], Order.STATUS_PAYMENT_FAILED)

    def test_review_of_gateway_payment_is_409(self):
        with open_source(self.order):
            payment = create_gateway_payment(user=self.user, order_id=self.order.pk, amount="160.00")
        self.client.force_authenticate(self.pharmacist)

        response = self.client.post(
            reverse("admin-payment-review", args=[payment.pk]),
            {"decision": "approve"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["error"]["code"], "PAYMENT_NOT_REVIEWABLE")
        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.STATUS_PENDING)
