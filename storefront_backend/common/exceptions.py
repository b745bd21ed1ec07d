# common/exceptions.py

"""
STOREFRONT ERROR TAXONOMY

Every domain failure raised by the services derives from one of five families.
Views never inspect messages; they map the family (or an explicit `code`)
to an HTTP response via common.api.error_response_for().

Families:
- ValidationError        malformed input, rejected before any side effect
- NotFoundError          unknown medicine / coupon / order / shipping method / payment
- StateConflictError     illegal transition, coupon exhausted/expired, insufficient stock
- ExternalIntegrityError gateway amount mismatch, unverifiable webhook signature
- InfrastructureError    storage / network failure (caller may retry idempotently)
"""


class StorefrontError(Exception):
    """Base exception for all storefront service failures."""

    code = "STOREFRONT_ERROR"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(StorefrontError):
    """Request failed validation."""

    code = "VALIDATION_ERROR"


class NotFoundError(StorefrontError):
    """Referenced record does not exist."""

    code = "NOT_FOUND"


class StateConflictError(StorefrontError):
    """Operation conflicts with the current state of a record."""

    code = "STATE_CONFLICT"


class ExternalIntegrityError(StorefrontError):
    """External signal could not be trusted and was not applied."""

    code = "EXTERNAL_INTEGRITY_ERROR"


class InfrastructureError(StorefrontError):
    """Storage or network failure."""

    code = "INFRASTRUCTURE_ERROR"
