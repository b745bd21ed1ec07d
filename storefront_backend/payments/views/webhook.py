# payments/views/webhook.py
from __future__ import annotations

import json
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from common.api import error_response
from common.exceptions import StorefrontError
from payments.models import PaymentEvent
from payments.services.paymongo import (
    MalformedEventError,
    parse_webhook_event,
    verify_webhook_signature,
)
from payments.services.reconciliation import AmountMismatchError, apply_gateway_event

logger = logging.getLogger(__name__)


class WebhookThrottle(AnonRateThrottle):
    scope = "webhook"


class PayMongoWebhookView(APIView):
    """
    Answers 200 once the event is authentic and well-formed; reconciliation
    failures are logged (and flagged for review where money is involved).
    400 only for a bad signature or a malformed body.
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [WebhookThrottle]

    def post(self, request, *args, **kwargs):
        raw_body = request.body or b""
        signature = request.headers.get("Paymongo-Signature")

        if not verify_webhook_signature(raw_body=raw_body, header=signature):
            logger.warning("Invalid PayMongo signature")
            return error_response(
                code="INVALID_SIGNATURE",
                message="Invalid signature",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            payload = json.loads(raw_body.decode("utf-8"))
            event = parse_webhook_event(payload)
        except (ValueError, MalformedEventError) as exc:
            logger.warning("Malformed PayMongo event", extra={"error": str(exc)})
            return error_response(
                code=MalformedEventError.code,
                message=str(exc) or "Malformed event",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        log_ctx = {"event_id": event.event_id, "event_type": event.event_type, "reference": event.reference_id}
        logger.info("PayMongo webhook received", extra=log_ctx)

        try:
            result = apply_gateway_event(event, channel=PaymentEvent.CHANNEL_WEBHOOK)
        except AmountMismatchError:
            return Response({"ok": True, "detail": "Flagged for review"}, status=status.HTTP_200_OK)
        except StorefrontError:
            logger.exception("Webhook reconciliation error", extra=log_ctx)
            return Response({"ok": True, "detail": "Error logged"}, status=status.HTTP_200_OK)
        except Exception:
            logger.exception("Unhandled webhook error", extra=log_ctx)
            return Response({"ok": True, "detail": "Unhandled error"}, status=status.HTTP_200_OK)

        return Response({"ok": True, "outcome": result.outcome}, status=status.HTTP_200_OK)
