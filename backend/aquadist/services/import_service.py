# Overview: Service-layer operations for stock imports; creation and compensating deletion.

"""
Stock Import Service

An import records goods received from a supplier without opening a payable.
Creating one adds stock through import movements. Deleting one reverses that
stock with compensating export movements, then removes the document.

DELETION RULE: if any product no longer holds enough stock to take the
import's units back out (they were sold in the meantime), the whole deletion
is rejected with ImportInUseError and nothing changes.
"""

from __future__ import annotations

from ..errors import ImportInUseError, NotFoundError
from ..extensions import db
from ..models import Import, ImportItem, Product
from ..models.inventory import MOVEMENT_EXPORT, MOVEMENT_IMPORT
from ..validation import optional_text, parse_line_items
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import _apply_movement_inner
from .purchase_service import _get_supplier, lock_supply_products


def get_import(import_id: int) -> Import:
    record = db.session.get(Import, import_id)
    if record is None:
        raise NotFoundError(f"Import {import_id} not found", details={"import_id": import_id})
    return record


def list_imports(*, supplier_id: int | None = None, limit: int = 200) -> list[Import]:
    q = db.session.query(Import)
    if supplier_id is not None:
        q = q.filter(Import.supplier_id == supplier_id)
    return q.order_by(Import.import_date.desc(), Import.id.desc()).limit(limit).all()


def create_import(
    *,
    supplier_id: int,
    items,
    note: str | None = None,
    user_id: int | None = None,
) -> Import:
    """
    Receive stock from a supplier.

    Args:
        items: [{"product_id": int, "quantity": int >= 1, "unit_cost_cents": int >= 0}, ...]
    """
    lines = parse_line_items(items, with_unit_cost=True)
    note = optional_text(note, "note", max_length=2000)

    def _op():
        supplier = _get_supplier(supplier_id)
        products = lock_supply_products(lines)

        record = Import(
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            total_amount_cents=sum(line["quantity"] * line["unit_cost_cents"] for line in lines),
            note=note,
            created_by_user_id=user_id,
        )
        db.session.add(record)
        db.session.flush()

        for line in lines:
            product = products[line["product_id"]]
            _apply_movement_inner(
                product=product,
                movement_type=MOVEMENT_IMPORT,
                quantity=line["quantity"],
                note=f"Import from {supplier.name}",
                reference=f"import:{record.id}",
                user_id=user_id,
            )
            db.session.add(ImportItem(
                import_id=record.id,
                product_id=product.id,
                product_name=product.name,
                quantity=line["quantity"],
                unit_cost_cents=line["unit_cost_cents"],
                line_total_cents=line["quantity"] * line["unit_cost_cents"],
            ))

        db.session.commit()
        return record

    return run_with_retry(_op)


def delete_import(*, import_id: int, user_id: int | None = None) -> None:
    """
    Reverse an import's stock and delete it.

    Raises:
        NotFoundError: import does not exist
        ImportInUseError: reversing would drive some product's stock negative
    """

    def _op():
        record = lock_for_update(db.session.query(Import).filter_by(id=import_id)).first()
        if record is None:
            raise NotFoundError(f"Import {import_id} not found", details={"import_id": import_id})

        items = db.session.query(ImportItem).filter_by(import_id=import_id).order_by(ImportItem.id).all()

        per_product: dict[int, int] = {}
        for item in items:
            per_product[item.product_id] = per_product.get(item.product_id, 0) + item.quantity

        products = {}
        if per_product:
            rows = lock_for_update(
                db.session.query(Product).filter(Product.id.in_(sorted(per_product))).order_by(Product.id)
            ).all()
            products = {p.id: p for p in rows}

        short = [
            {
                "product_id": pid,
                "product_name": products[pid].name,
                "import_quantity": qty,
                "available_stock": products[pid].stock,
            }
            for pid, qty in per_product.items()
            if products[pid].stock < qty
        ]
        if short:
            raise ImportInUseError(
                f"Import {import_id} cannot be deleted; its stock has already been used",
                details={"import_id": import_id, "items": short},
            )

        for item in items:
            _apply_movement_inner(
                product=products[item.product_id],
                movement_type=MOVEMENT_EXPORT,
                quantity=item.quantity,
                note=f"Reverting import #{import_id}",
                reference=f"import:{import_id}",
                user_id=user_id,
            )
            db.session.delete(item)
        db.session.flush()

        db.session.delete(record)
        db.session.commit()

    run_with_retry(_op)
