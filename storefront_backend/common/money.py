# common/money.py

"""
MONEY HELPERS

Hard rules:
- Money is Decimal, never float.
- Every persisted / reported figure is quantized to 2dp using ROUND_HALF_UP.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TWOPLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def money(v) -> Decimal:
    if v is None or v == "":
        return ZERO
    try:
        return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"Invalid money value: {v!r}") from exc


def to_minor_units(amount) -> int:
    """2dp amount -> integer centavos (gateway wire format)."""
    return int((money(amount) * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value) -> Decimal:
    try:
        return money(Decimal(int(value)) / Decimal("100"))
    except (TypeError, ValueError, InvalidOperation) as exc:
        raise ValueError(f"Invalid minor-unit amount: {value!r}") from exc
