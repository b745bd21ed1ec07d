# payments/tests/test_paymongo.py

from __future__ import annotations

import json
import time
from decimal import Decimal
from unittest import mock

from django.test import SimpleTestCase, override_settings

from payments.services import paymongo
from payments.services.paymongo import (
    GatewayError,
    MalformedEventError,
    compute_signature,
    parse_webhook_event,
    verify_webhook_signature,
)

SECRET = "whsk_test_storefront"


def paid_event(*, event_id="evt_1", amount=16080, currency="PHP", source_id="src_1", payment_id="pay_1",
               event_type="payment.paid"):
    return {
        "data": {
            "id": event_id,
            "type": "event",
            "attributes": {
                "type": event_type,
                "data": {
                    "id": payment_id,
                    "type": "payment",
                    "attributes": {
                        "amount": amount,
                        "currency": currency,
                        "status": "paid" if event_type == "payment.paid" else "failed",
                        "source": {"id": source_id, "type": "gcash"},
                    },
                },
            },
        }
    }


def signature_header(raw_body: bytes, *, secret=SECRET, timestamp=None, live=False):
    timestamp = str(int(time.time())) if timestamp is None else str(timestamp)
    sig = compute_signature(timestamp=timestamp, raw_body=raw_body, secret=secret)
    if live:
        return f"t={timestamp},te=,li={sig}"
    return f"t={timestamp},te={sig},li="


class WebhookSignatureTests(SimpleTestCase):
    """
    GUARANTEES:
    - Only bodies signed with the configured webhook secret verify
    - Test (te) and live (li) signatures are both accepted
    - Deliveries signed outside the tolerance window are refused
    """

    def setUp(self):
        self.body = json.dumps(paid_event()).encode("utf-8")

    def test_test_mode_signature(self):
        self.assertTrue(verify_webhook_signature(raw_body=self.body, header=signature_header(self.body)))

    def test_live_mode_signature(self):
        self.assertTrue(verify_webhook_signature(raw_body=self.body, header=signature_header(self.body, live=True)))

    def test_tampered_body(self):
        header = signature_header(self.body)
        self.assertFalse(verify_webhook_signature(raw_body=self.body + b" ", header=header))

    def test_wrong_secret(self):
        header = signature_header(self.body, secret="whsk_other")
        self.assertFalse(verify_webhook_signature(raw_body=self.body, header=header))

    def test_missing_header_or_timestamp(self):
        self.assertFalse(verify_webhook_signature(raw_body=self.body, header=None))
        self.assertFalse(verify_webhook_signature(raw_body=self.body, header="te=abc"))

    def test_old_delivery_refused(self):
        signed_at = int(time.time()) - 301
        header = signature_header(self.body, timestamp=signed_at)

        self.assertFalse(verify_webhook_signature(raw_body=self.body, header=header))

    def test_delivery_within_tolerance(self):
        header = signature_header(self.body, timestamp=1_700_000_000)

        self.assertTrue(verify_webhook_signature(raw_body=self.body, header=header, now=1_700_000_299))
        self.assertFalse(verify_webhook_signature(raw_body=self.body, header=header, now=1_700_000_301))

    def test_non_numeric_timestamp(self):
        header = signature_header(self.body, timestamp="yesterday")

        self.assertFalse(verify_webhook_signature(raw_body=self.body, header=header))

    @override_settings(PAYMENTS={"PAYMONGO": {"SECRET_KEY": "sk_test", "WEBHOOK_SECRET": ""}})
    def test_unconfigured_secret_never_verifies(self):
        header = signature_header(self.body)
        self.assertFalse(verify_webhook_signature(raw_body=self.body, header=header))


class ParseWebhookEventTests(SimpleTestCase):
    """
    GUARANTEES:
    - Amounts arrive in centavos and are normalized to 2dp Decimal
    - payment.* events reference the source id and the gateway payment id
    - Malformed bodies raise MalformedEventError
    """

    def test_payment_paid(self):
        event = parse_webhook_event(paid_event())

        self.assertEqual(event.event_type, "payment.paid")
        self.assertEqual(event.status, "paid")
        self.assertEqual(event.event_id, "evt_1")
        self.assertEqual(event.reference_id, "src_1")
        self.assertEqual(event.payment_id, "pay_1")
        self.assertEqual(event.amount, Decimal("160.80"))
        self.assertEqual(event.currency, "PHP")

    def test_payment_failed(self):
        event = parse_webhook_event(paid_event(event_type="payment.failed"))
        self.assertEqual(event.status, "failed")

    def test_source_chargeable(self):
        payload = {
            "data": {
                "id": "evt_2",
                "attributes": {
                    "type": "source.chargeable",
                    "data": {"id": "src_9", "attributes": {"amount": 5000, "currency": "PHP", "status": "chargeable"}},
                },
            }
        }
        event = parse_webhook_event(payload)

        self.assertEqual(event.status, "chargeable")
        self.assertEqual(event.reference_id, "src_9")
        self.assertEqual(event.payment_id, "")

    def test_malformed(self):
        for payload in ([], {}, {"data": {"attributes": {}}}, {"data": {"attributes": {"type": "payment.paid", "data": "pay_1"}}}):
            with self.assertRaises(MalformedEventError):
                parse_webhook_event(payload)


class OutboundRequestTests(SimpleTestCase):
    """
    GUARANTEES:
    - Amounts go over the wire in centavos
    - A response without id / checkout_url is a GatewayError
    """

    def test_create_source_sends_minor_units(self):
        response = {
            "data": {
                "id": "src_1",
                "attributes": {
                    "amount": 16080,
                    "currency": "PHP",
                    "status": "pending",
                    "redirect": {"checkout_url": "https://pm.test/checkout/src_1"},
                },
            }
        }
        with mock.patch.object(paymongo, "_request_json", return_value=response) as request_json:
            source = paymongo.create_source(
                amount=Decimal("160.80"),
                currency="PHP",
                success_url="https://shop.test/ok",
                failed_url="https://shop.test/failed",
            )

        method, path = request_json.call_args.args
        attrs = request_json.call_args.kwargs["body"]["data"]["attributes"]
        self.assertEqual((method, path), ("POST", "/sources"))
        self.assertEqual(attrs["amount"], 16080)
        self.assertEqual(attrs["type"], "gcash")
        self.assertEqual(source.checkout_url, "https://pm.test/checkout/src_1")
        self.assertEqual(source.amount, Decimal("160.80"))

    def test_create_source_without_checkout_url(self):
        with mock.patch.object(paymongo, "_request_json", return_value={"data": {"id": "src_1", "attributes": {}}}):
            with self.assertRaises(GatewayError):
                paymongo.create_source(
                    amount=Decimal("10.00"), currency="PHP", success_url="x", failed_url="y"
                )

    @override_settings(PAYMENTS={"PAYMONGO": {"SECRET_KEY": ""}})
    def test_missing_secret_key(self):
        with self.assertRaises(GatewayError):
            paymongo.retrieve_source("src_1")
