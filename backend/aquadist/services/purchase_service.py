# Overview: Service-layer operations for supplier purchases; stock intake, payments and derived supplier debt.

"""
Purchase Lifecycle Service

WHY: Buying stock on credit increases stock and what we owe the supplier in
one step. Paying a purchase reduces the debt.

DESIGN:
- Every product is resolved and locked before any mutation.
- Each line appends an import movement referencing purchase:<id>.
- Supplier debt is derived from purchases, never stored, so it cannot drift.
- Status transitions mirror orders and carry no balance side effects.
"""

from __future__ import annotations

from sqlalchemy import func

from ..errors import InvalidTransitionError, NotFoundError
from ..extensions import db
from ..models import Product, Purchase, PurchaseItem, Supplier
from ..models.inventory import MOVEMENT_IMPORT
from ..models.orders import DOCUMENT_STATUSES, STATUS_CANCELED, STATUS_PENDING, STATUS_TRANSITIONS
from ..validation import optional_text, parse_line_items, positive_int, require_choice
from .concurrency import get_for_update, lock_for_update, run_with_retry
from .inventory_service import _apply_movement_inner


def _get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def lock_supply_products(lines: list[dict]) -> dict[int, Product]:
    """Lock every product on a supply document, in id order; NotFoundError on the first missing one."""
    ids = sorted({line["product_id"] for line in lines})
    rows = lock_for_update(
        db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id)
    ).all()
    products = {p.id: p for p in rows}
    for line in lines:
        if line["product_id"] not in products:
            raise NotFoundError(
                f"Product {line['product_id']} not found",
                details={"product_id": line["product_id"]},
            )
    return products


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})
    return purchase


def list_purchases(*, supplier_id: int | None = None, limit: int = 200) -> list[Purchase]:
    q = db.session.query(Purchase)
    if supplier_id is not None:
        q = q.filter(Purchase.supplier_id == supplier_id)
    return q.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).limit(limit).all()


def create_purchase(
    *,
    supplier_id: int,
    items,
    notes: str | None = None,
    user_id: int | None = None,
) -> Purchase:
    """
    Create a purchase, receive its stock and open a payable.

    Args:
        items: [{"product_id": int, "quantity": int >= 1, "unit_cost_cents": int >= 0}, ...]

    Raises:
        ValidationError, NotFoundError
    """
    lines = parse_line_items(items, with_unit_cost=True)
    notes = optional_text(notes, "notes", max_length=2000)

    def _op():
        supplier = _get_supplier(supplier_id)
        products = lock_supply_products(lines)

        total = sum(line["quantity"] * line["unit_cost_cents"] for line in lines)

        purchase = Purchase(
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            status=STATUS_PENDING,
            total_amount_cents=total,
            paid_amount_cents=0,
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(purchase)
        db.session.flush()

        for line in lines:
            product = products[line["product_id"]]
            log = _apply_movement_inner(
                product=product,
                movement_type=MOVEMENT_IMPORT,
                quantity=line["quantity"],
                note=f"Purchase #{purchase.id} from {supplier.name}",
                reference=f"purchase:{purchase.id}",
                user_id=user_id,
            )
            db.session.add(PurchaseItem(
                purchase_id=purchase.id,
                product_id=product.id,
                product_name=product.name,
                quantity=line["quantity"],
                unit_cost_cents=line["unit_cost_cents"],
                line_total_cents=line["quantity"] * line["unit_cost_cents"],
                inventory_log_id=log.id,
            ))

        db.session.commit()
        return purchase

    return run_with_retry(_op)


def pay_purchase(*, purchase_id: int, amount_cents) -> Purchase:
    """Pay down a purchase. Overpayment is allowed, as on orders."""
    amount_cents = positive_int(amount_cents, "amount_cents")

    def _op():
        purchase = get_for_update(Purchase, purchase_id)
        if purchase is None:
            raise NotFoundError(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})
        purchase.paid_amount_cents = purchase.paid_amount_cents + amount_cents
        db.session.commit()
        return purchase

    return run_with_retry(_op)


def update_purchase_status(*, purchase_id: int, status) -> Purchase:
    status = require_choice(status, "status", DOCUMENT_STATUSES)

    def _op():
        purchase = get_for_update(Purchase, purchase_id)
        if purchase is None:
            raise NotFoundError(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})

        if status not in STATUS_TRANSITIONS[purchase.status]:
            raise InvalidTransitionError(
                f"Cannot change purchase status from {purchase.status} to {status}",
                details={"purchase_id": purchase_id, "from": purchase.status, "to": status},
            )

        purchase.status = status
        db.session.commit()
        return purchase

    return run_with_retry(_op)


def get_supplier_debt(supplier_id: int) -> int:
    """What we still owe a supplier: remaining debt over its non-canceled purchases."""
    _get_supplier(supplier_id)
    total = (
        db.session.query(func.coalesce(func.sum(Purchase.debt_remaining_cents), 0))
        .filter(Purchase.supplier_id == supplier_id, Purchase.status != STATUS_CANCELED)
        .scalar()
    )
    return int(total or 0)
