# inventory/services/ledger.py

"""
INVENTORY LEDGER

The ONLY code path allowed to mutate Medicine.stock_quantity.

reserve_stock():
- all-or-nothing across every line (runs in its own savepoint)
- rows locked with select_for_update() in primary-key order, so two
  checkouts touching the same medicines cannot deadlock each other
- every line is checked before anything is decremented
- each decrement is a compare-and-swap:
      UPDATE ... SET stock = stock - q WHERE id = ? AND stock >= q
  and a zero rowcount aborts the whole reservation

release_stock():
- reverses the order's RESERVE entries
- idempotent: once RELEASE rows exist for the order, a second call is a
  no-op returning [] (no double credit)
"""

from __future__ import annotations

import logging
from collections import OrderedDict

from django.db import transaction
from django.db.models import F, Sum

from catalog.models import Medicine
from common.exceptions import StateConflictError, ValidationError
from inventory.models import InventoryTransaction

logger = logging.getLogger(__name__)

Direction = InventoryTransaction.Direction


# ============================================================
# DOMAIN ERRORS
# ============================================================

class InsufficientStockError(StateConflictError):
    code = "OUT_OF_STOCK"


def _to_int_qty(value) -> int:
    """
    HARD RULE: quantities are whole integer units.
    """
    if isinstance(value, bool):
        raise ValidationError("quantity must be a whole integer unit")

    if isinstance(value, int):
        return value

    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())

    raise ValidationError("quantity must be a whole integer unit")


def _aggregate(items) -> "OrderedDict[str, int]":
    """
    items: iterable of (medicine_id, quantity) pairs or objects exposing
    medicine_id / quantity. Returns {medicine_id: total_qty} sorted by id.
    """
    totals: dict[str, int] = {}
    for item in items:
        if isinstance(item, (tuple, list)):
            medicine_id, quantity = item
        else:
            medicine_id, quantity = item.medicine_id, item.quantity

        qty = _to_int_qty(quantity)
        if qty <= 0:
            raise ValidationError("quantity must be greater than zero")
        totals[str(medicine_id)] = totals.get(str(medicine_id), 0) + qty

    return OrderedDict(sorted(totals.items()))


# ============================================================
# RESERVE
# ============================================================

@transaction.atomic
def reserve_stock(*, order, items) -> list[InventoryTransaction]:
    """
    Decrement stock for every line of `order` or for none of them.

    Raises InsufficientStockError (nothing decremented) when any line
    exceeds the locked stock.
    """
    if order is None:
        raise ValidationError("order is required")

    wanted = _aggregate(items)
    if not wanted:
        return []

    locked = {
        str(m.id): m
        for m in Medicine.objects.select_for_update().filter(id__in=list(wanted)).order_by("pk")
    }

    # Check everything before touching anything.
    for medicine_id, qty in wanted.items():
        medicine = locked.get(medicine_id)
        if medicine is None:
            raise InsufficientStockError(f"Medicine not found: {medicine_id}")
        if medicine.stock_quantity < qty:
            raise InsufficientStockError(
                f"Insufficient stock for {medicine.name}. "
                f"Requested: {qty}, Available: {medicine.stock_quantity}"
            )

    entries = []
    for medicine_id, qty in wanted.items():
        medicine = locked[medicine_id]
        updated = Medicine.objects.filter(
            pk=medicine.pk,
            stock_quantity__gte=qty,
        ).update(stock_quantity=F("stock_quantity") - qty)

        if updated != 1:
            # Raising rolls back every decrement already made in this savepoint.
            raise InsufficientStockError(f"Insufficient stock for {medicine.name}")

        stock_after = Medicine.objects.values_list("stock_quantity", flat=True).get(pk=medicine.pk)
        entries.append(
            InventoryTransaction.objects.create(
                medicine=medicine,
                order=order,
                direction=Direction.RESERVE,
                quantity=qty,
                stock_after=stock_after,
            )
        )

    logger.info(
        "Stock reserved",
        extra={"order_id": str(order.pk), "lines": len(entries)},
    )
    return entries


# ============================================================
# RELEASE
# ============================================================

@transaction.atomic
def release_stock(*, order) -> list[InventoryTransaction]:
    """
    Credit back every RESERVE entry of `order`.

    A second call (or a call for an order that reserved nothing) returns [].
    """
    if order is None:
        raise ValidationError("order is required")

    reservations = list(
        InventoryTransaction.objects
        .filter(order=order, direction=Direction.RESERVE)
        .order_by("medicine_id")
    )
    if not reservations:
        return []

    # Lock the stock rows (same order as reserve_stock) BEFORE reading the
    # existing releases, so concurrent releases serialize here.
    locked = {
        m.pk: m
        for m in Medicine.objects.select_for_update()
        .filter(id__in=[r.medicine_id for r in reservations])
        .order_by("pk")
    }

    released_ids = set(
        InventoryTransaction.objects
        .filter(order=order, direction=Direction.RELEASE)
        .values_list("medicine_id", flat=True)
    )

    entries = []
    for r in reservations:
        if r.medicine_id in released_ids:
            continue

        Medicine.objects.filter(pk=r.medicine_id).update(stock_quantity=F("stock_quantity") + r.quantity)
        stock_after = Medicine.objects.values_list("stock_quantity", flat=True).get(pk=r.medicine_id)

        entries.append(
            InventoryTransaction.objects.create(
                medicine=locked[r.medicine_id],
                order=order,
                direction=Direction.RELEASE,
                quantity=r.quantity,
                stock_after=stock_after,
            )
        )

    if entries:
        logger.info(
            "Stock released",
            extra={"order_id": str(order.pk), "lines": len(entries)},
        )
    return entries


def reserved_quantity_for(order) -> dict[str, int]:
    """Net quantity still held for `order`, per medicine id."""
    rows = (
        InventoryTransaction.objects
        .filter(order=order)
        .values("medicine_id", "direction")
        .annotate(total=Sum("quantity"))
    )
    net: dict[str, int] = {}
    for r in rows:
        sign = 1 if r["direction"] == Direction.RESERVE else -1
        key = str(r["medicine_id"])
        net[key] = net.get(key, 0) + sign * int(r["total"] or 0)
    return {k: v for k, v in net.items() if v > 0}
