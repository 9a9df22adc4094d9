# Overview: Service-layer operations for inventory; stock movements and movement reports.

# backend/aquadist/services/inventory_service.py

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryLog, Product
from ..models.inventory import (
    MOVEMENT_EXPORT,
    MOVEMENT_IMPORT,
    MOVEMENT_RETURN,
    MOVEMENT_SIGN,
    MOVEMENT_TYPES,
)
from ..time_utils import parse_date_range, to_utc_z, utcnow
from ..validation import MAX_QUANTITY, optional_text, positive_int, require_choice
from .concurrency import get_for_update, run_with_retry
"""
Inventory Movement Invariants (authoritative)

Stock model:
- Product.stock is the running on-hand balance.
- Every change to Product.stock appends exactly one InventoryLog row in the
  same DB transaction (the row records stock_after).
- import adds stock; export and return remove stock.

Business invariants:
- Stock may never go negative. export/return with quantity > stock is
  rejected with InsufficientStockError and nothing changes.
- The movement log is append-only; reversals append compensating rows.

Time semantics:
- occurred_at is UTC-naive. Report ranges: start inclusive, end inclusive,
  a bare end date covers the whole day.
"""


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    if lock:
        product = get_for_update(Product, product_id)
    else:
        product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def _apply_movement_inner(
    *,
    product: Product,
    movement_type: str,
    quantity: int,
    note: str | None = None,
    reference: str | None = None,
    user_id: int | None = None,
    occurred_at: datetime | None = None,
) -> InventoryLog:
    """Core movement logic without locking, retry or commit.

    Called by apply_movement() and by the order, purchase and import services
    inside their own transactions. The caller must hold product under
    lock_for_update.
    """
    sign = MOVEMENT_SIGN[movement_type]
    if sign < 0 and product.stock < quantity:
        raise InsufficientStockError(
            f"Insufficient stock for product {product.name}",
            details={
                "product_id": product.id,
                "product_name": product.name,
                "requested_quantity": quantity,
                "available_stock": product.stock,
            },
        )

    product.stock = product.stock + sign * quantity

    log = InventoryLog(
        product_id=product.id,
        movement_type=movement_type,
        quantity=quantity,
        stock_after=product.stock,
        note=note,
        reference=reference,
        occurred_at=occurred_at or utcnow(),
        created_by_user_id=user_id,
    )
    db.session.add(log)
    db.session.flush()
    return log


def apply_movement(
    *,
    product_id: int,
    movement_type: str,
    quantity,
    note: str | None = None,
    reference: str | None = None,
    user_id: int | None = None,
) -> InventoryLog:
    """
    Apply a manual stock movement (import, export or return) and log it.

    The stock change and the log row commit together or not at all.

    Raises:
        ValidationError: unknown movement_type or non-positive quantity
        NotFoundError: product does not exist
        InsufficientStockError: export/return larger than current stock
    """
    movement_type = require_choice(movement_type, "movement_type", MOVEMENT_TYPES)
    quantity = positive_int(quantity, "quantity", maximum=MAX_QUANTITY)
    note = optional_text(note, "note")

    def _op():
        product = _get_product(product_id, lock=True)
        log = _apply_movement_inner(
            product=product,
            movement_type=movement_type,
            quantity=quantity,
            note=note,
            reference=reference,
            user_id=user_id,
        )
        db.session.commit()
        return log

    return run_with_retry(_op)


def get_movements_by_product(product_id: int, limit: int = 200) -> list[InventoryLog]:
    _get_product(product_id)

    return (
        InventoryLog.query.filter_by(product_id=product_id)
        .order_by(InventoryLog.occurred_at.desc(), InventoryLog.id.desc())
        .limit(limit)
        .all()
    )


def _movement_totals(start: datetime | None, end: datetime | None, product_id: int | None = None) -> dict[int, dict[str, int]]:
    q = db.session.query(
        InventoryLog.product_id,
        InventoryLog.movement_type,
        func.coalesce(func.sum(InventoryLog.quantity), 0),
    )
    if product_id is not None:
        q = q.filter(InventoryLog.product_id == product_id)
    if start is not None:
        q = q.filter(InventoryLog.occurred_at >= start)
    if end is not None:
        q = q.filter(InventoryLog.occurred_at <= end)

    totals: dict[int, dict[str, int]] = {}
    for pid, movement_type, total in q.group_by(InventoryLog.product_id, InventoryLog.movement_type).all():
        totals.setdefault(pid, {})[movement_type] = int(total or 0)
    return totals


def _report_row(product: Product, sums: dict[str, int]) -> dict:
    imported = sums.get(MOVEMENT_IMPORT, 0)
    exported = sums.get(MOVEMENT_EXPORT, 0)
    returned = sums.get(MOVEMENT_RETURN, 0)
    return {
        "product_id": product.id,
        "product_name": product.name,
        "unit": product.unit,
        "current_stock": product.stock,
        "imported": imported,
        "exported": exported,
        "returned": returned,
        "net_change": imported - exported - returned,
    }


def _parse_range(start, end) -> tuple[datetime | None, datetime | None]:
    try:
        return parse_date_range(start, end)
    except ValueError as exc:
        raise ValidationError(f"Invalid date range: {exc}")


def get_product_movement_report(*, product_id: int, start=None, end=None) -> dict:
    """Movement sums for one product, plus the movements themselves, newest first."""
    start_dt, end_dt = _parse_range(start, end)
    product = _get_product(product_id)

    sums = _movement_totals(start_dt, end_dt, product_id=product_id).get(product_id, {})

    q = InventoryLog.query.filter_by(product_id=product_id)
    if start_dt is not None:
        q = q.filter(InventoryLog.occurred_at >= start_dt)
    if end_dt is not None:
        q = q.filter(InventoryLog.occurred_at <= end_dt)
    logs = q.order_by(InventoryLog.occurred_at.desc(), InventoryLog.id.desc()).all()

    row = _report_row(product, sums)
    row.update({
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "movements": [log.to_dict() for log in logs],
    })
    return row


def get_inventory_report(*, start=None, end=None) -> dict:
    """
    Stock movement report for every product.

    Products without movements in the range are included with zero sums.
    Read-only: calling it twice without an intervening mutation returns the
    same output.
    """
    start_dt, end_dt = _parse_range(start, end)
    totals = _movement_totals(start_dt, end_dt)

    products = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()
    rows = [_report_row(p, totals.get(p.id, {})) for p in products]

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "products": rows,
        "total_products": len(rows),
    }
