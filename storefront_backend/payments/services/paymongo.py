# payments/services/paymongo.py
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.conf import settings

from common.exceptions import InfrastructureError, ValidationError
from common.money import from_minor_units, to_minor_units

logger = logging.getLogger(__name__)

PAYMONGO_BASE = "https://api.paymongo.com/v1"

# Gateway-side states that end a source without a payment.
SOURCE_DEAD_STATES = {"expired", "cancelled"}

# Max age (seconds) of a signed webhook delivery.
DEFAULT_WEBHOOK_TOLERANCE = 300

EVENT_PAYMENT_PAID = "payment.paid"
EVENT_PAYMENT_FAILED = "payment.failed"
EVENT_SOURCE_CHARGEABLE = "source.chargeable"


class GatewayError(InfrastructureError):
    code = "GATEWAY_ERROR"


class MalformedEventError(ValidationError):
    code = "MALFORMED_EVENT"


@dataclass(frozen=True)
class GatewaySource:
    id: str
    status: str
    checkout_url: str = ""
    amount: Optional[Decimal] = None
    currency: str = ""
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayPayment:
    id: str
    status: str
    amount: Optional[Decimal] = None
    currency: str = ""
    source_id: str = ""
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayEvent:
    """
    Normalized payment signal, whatever channel it came from.

    status: "paid" | "failed" | anything else (ignored by reconciliation)
    reference_id: gateway source id (Payment.external_reference)
    """

    event_type: str
    status: str
    reference_id: str = ""
    payment_id: str = ""
    amount: Optional[Decimal] = None
    currency: str = ""
    event_id: Optional[str] = None
    payload: dict = field(default_factory=dict)


def _paymongo_cfg() -> dict:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    cfg = payments.get("PAYMONGO") if isinstance(payments, dict) else None
    return cfg if isinstance(cfg, dict) else {}


def _get_secret_key() -> str:
    sk = (_paymongo_cfg().get("SECRET_KEY") or "").strip()
    if not sk:
        raise GatewayError(
            "PAYMONGO SECRET_KEY is not configured. "
            "Expected settings.PAYMENTS['PAYMONGO']['SECRET_KEY'] (env PAYMONGO_SECRET_KEY)."
        )
    return sk


def _get_webhook_secret() -> str:
    return (_paymongo_cfg().get("WEBHOOK_SECRET") or "").strip()


def _get_webhook_tolerance() -> int:
    return int(_paymongo_cfg().get("WEBHOOK_TOLERANCE_SECONDS") or DEFAULT_WEBHOOK_TOLERANCE)


def _auth_header() -> str:
    token = base64.b64encode(f"{_get_secret_key()}:".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _safe_preview(text: str, limit: int = 800) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ...(truncated)"


def _parse_json(raw: str) -> Optional[dict]:
    try:
        parsed = json.loads(raw or "")
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _error_detail(parsed: Optional[dict]) -> str:
    errors = (parsed or {}).get("errors") or []
    if errors and isinstance(errors[0], dict):
        return str(errors[0].get("detail") or errors[0].get("code") or "")
    return ""


def _request_json(method: str, path: str, *, body: dict | None = None, timeout: int = 25) -> dict[str, Any]:
    data = None
    if body is not None:
        data = json.dumps(body, ensure_ascii=False).encode("utf-8")

    req = Request(
        f"{PAYMONGO_BASE}{path}",
        data=data,
        headers={
            "Authorization": _auth_header(),
            "Content-Type": "application/json",
            "Accept": "application/json",
        },
        method=method,
    )

    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
    except HTTPError as e:
        try:
            raw = e.read().decode("utf-8", errors="replace")
        except OSError:
            raw = ""
        detail = _error_detail(_parse_json(raw)) or _safe_preview(raw or str(e))
        raise GatewayError(f"PayMongo HTTPError: {e.code} {detail}") from e
    except URLError as e:
        raise GatewayError(f"PayMongo URLError: {e}") from e
    except OSError as e:
        raise GatewayError(f"PayMongo request failed: {e}") from e

    parsed = _parse_json(raw)
    if parsed is None:
        raise GatewayError(f"PayMongo returned non-JSON: {_safe_preview(raw)}")
    return parsed


def _amount(value) -> Optional[Decimal]:
    if value is None:
        return None
    return from_minor_units(value)


def _source_from(data: dict) -> GatewaySource:
    attrs = data.get("attributes") or {}
    redirect = attrs.get("redirect") or {}
    return GatewaySource(
        id=str(data.get("id") or ""),
        status=str(attrs.get("status") or "").strip().lower(),
        checkout_url=str(redirect.get("checkout_url") or ""),
        amount=_amount(attrs.get("amount")),
        currency=str(attrs.get("currency") or "").upper(),
        raw=data,
    )


def _payment_from(data: dict) -> GatewayPayment:
    attrs = data.get("attributes") or {}
    source = attrs.get("source") or {}
    return GatewayPayment(
        id=str(data.get("id") or ""),
        status=str(attrs.get("status") or "").strip().lower(),
        amount=_amount(attrs.get("amount")),
        currency=str(attrs.get("currency") or "").upper(),
        source_id=str(source.get("id") or ""),
        raw=data,
    )


# ============================================================
# OUTBOUND
# ============================================================

def create_source(
    *,
    amount: Decimal,
    currency: str,
    success_url: str,
    failed_url: str,
    metadata: dict | None = None,
) -> GatewaySource:
    """Create a redirect-based e-wallet source (GCash by default)."""
    attributes = {
        "amount": to_minor_units(amount),
        "currency": currency,
        "type": (_paymongo_cfg().get("SOURCE_TYPE") or "gcash").strip(),
        "redirect": {"success": success_url, "failed": failed_url},
    }
    if metadata:
        attributes["metadata"] = metadata

    parsed = _request_json("POST", "/sources", body={"data": {"attributes": attributes}})
    source = _source_from(parsed.get("data") or {})
    if not source.id or not source.checkout_url:
        raise GatewayError("PayMongo source response is missing id or checkout_url")
    return source


def retrieve_source(source_id: str) -> GatewaySource:
    sid = str(source_id or "").strip()
    if not sid:
        raise ValidationError("source_id is required")
    parsed = _request_json("GET", f"/sources/{sid}")
    return _source_from(parsed.get("data") or {})


def create_payment(*, amount: Decimal, currency: str, source_id: str, description: str = "") -> GatewayPayment:
    """Charge a chargeable source."""
    attributes = {
        "amount": to_minor_units(amount),
        "currency": currency,
        "source": {"id": source_id, "type": "source"},
    }
    if description:
        attributes["description"] = description

    parsed = _request_json("POST", "/payments", body={"data": {"attributes": attributes}})
    payment = _payment_from(parsed.get("data") or {})
    if not payment.id:
        raise GatewayError("PayMongo payment response is missing id")
    return payment


# ============================================================
# INBOUND (webhook)
# ============================================================

def _parse_signature_header(header: str) -> dict:
    parts = {}
    for chunk in (header or "").split(","):
        key, sep, value = chunk.strip().partition("=")
        if sep:
            parts[key.strip()] = value.strip()
    return parts


def compute_signature(*, timestamp: str, raw_body: bytes, secret: str) -> str:
    message = f"{timestamp}.".encode("utf-8") + (raw_body or b"")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_webhook_signature(*, raw_body: bytes, header: str | None, now: float | None = None) -> bool:
    """
    Paymongo-Signature: t=<timestamp>,te=<test signature>,li=<live signature>
    HMAC-SHA256 over "<timestamp>.<raw body>" keyed with the webhook secret.
    Deliveries signed more than WEBHOOK_TOLERANCE_SECONDS away from now are refused.
    """
    secret = _get_webhook_secret()
    if not secret or not header:
        return False

    parts = _parse_signature_header(header)
    timestamp = parts.get("t")
    if not timestamp:
        return False

    try:
        signed_at = int(timestamp)
    except ValueError:
        return False
    current = time.time() if now is None else now
    if abs(current - signed_at) > _get_webhook_tolerance():
        return False

    computed = compute_signature(timestamp=timestamp, raw_body=raw_body, secret=secret)
    candidates = [parts.get("te") or "", parts.get("li") or ""]
    return any(c and hmac.compare_digest(computed, c) for c in candidates)


def parse_webhook_event(payload) -> GatewayEvent:
    """
    Normalize a PayMongo event body:

        {"data": {"id": "evt_..", "attributes": {"type": "payment.paid",
            "data": {"id": "pay_..", "attributes": {"amount": 10000,
                "currency": "PHP", "status": "paid", "source": {"id": "src_.."}}}}}}
    """
    if not isinstance(payload, dict):
        raise MalformedEventError("Event body must be a JSON object")

    event = payload.get("data")
    if not isinstance(event, dict):
        raise MalformedEventError("Event body has no data object")

    attrs = event.get("attributes") or {}
    event_type = str(attrs.get("type") or "").strip()
    if not event_type:
        raise MalformedEventError("Event type is missing")

    resource = attrs.get("data") or {}
    if not isinstance(resource, dict):
        raise MalformedEventError("Event resource is not an object")

    res_attrs = resource.get("attributes") or {}
    try:
        amount = _amount(res_attrs.get("amount"))
    except ValueError as exc:
        raise MalformedEventError(str(exc)) from exc

    if event_type == EVENT_PAYMENT_PAID:
        status = "paid"
    elif event_type == EVENT_PAYMENT_FAILED:
        status = "failed"
    else:
        status = str(res_attrs.get("status") or "").strip().lower()

    if event_type.startswith("source."):
        reference_id = str(resource.get("id") or "")
        payment_id = ""
    else:
        reference_id = str((res_attrs.get("source") or {}).get("id") or "")
        payment_id = str(resource.get("id") or "")

    return GatewayEvent(
        event_type=event_type,
        status=status,
        reference_id=reference_id,
        payment_id=payment_id,
        amount=amount,
        currency=str(res_attrs.get("currency") or "").upper(),
        event_id=str(event.get("id") or "") or None,
        payload=payload,
    )
