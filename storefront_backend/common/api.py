# common/api.py

"""
API ERROR NORMALIZATION

Canonical error body:
    {"error": {"code": "...", "message": "..."}}
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

from common.exceptions import (
    ExternalIntegrityError,
    InfrastructureError,
    NotFoundError,
    StateConflictError,
    StorefrontError,
    ValidationError,
)

DEFAULT_STATUS = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (ExternalIntegrityError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InfrastructureError, status.HTTP_502_BAD_GATEWAY),
]


def error_response(*, code: str, message: str, http_status: int):
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


def error_response_for(exc: StorefrontError, *, overrides: dict | None = None):
    """
    Map a domain error to a response.

    `overrides` maps exception classes to HTTP statuses for endpoints whose
    contract differs from the defaults (e.g. checkout answers 400 for stock
    and coupon conflicts). Overrides are checked before the defaults.
    """
    http_status = status.HTTP_400_BAD_REQUEST
    for cls, st in list((overrides or {}).items()) + DEFAULT_STATUS:
        if isinstance(exc, cls):
            http_status = st
            break

    return error_response(code=exc.code, message=str(exc), http_status=http_status)
