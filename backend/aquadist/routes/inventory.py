# backend/aquadist/routes/inventory.py
"""
Inventory movement routes.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- Report ranges: start inclusive; a bare end date ("2024-05-31") covers the whole day.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import inventory_service
from ..validation import PayloadPolicy, coerce_int, validate_payload


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

MOVEMENT_POLICY = PayloadPolicy(
    writable_fields={"product_id", "movement_type", "quantity", "note", "reference"},
    required={"product_id", "movement_type", "quantity"},
)


@inventory_bp.post("")
@require_actor
def apply_movement_route():
    """
    Record a manual stock movement.

    Request body:
    {
        "product_id": 3,
        "movement_type": "import" | "export" | "return",
        "quantity": 20,
        "note": "Stock count correction"   (optional)
    }

    Returns:
        201: movement log entry (with stock_after)
        400: invalid input or insufficient stock
        404: product not found
    """
    try:
        data = validate_payload(request.get_json(silent=True), MOVEMENT_POLICY)
        log = inventory_service.apply_movement(
            product_id=coerce_int(data["product_id"], "product_id"),
            movement_type=data["movement_type"],
            quantity=data["quantity"],
            note=data.get("note"),
            reference=data.get("reference"),
            user_id=g.actor_user_id,
        )
        return jsonify(log.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to apply inventory movement")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/product/<int:product_id>")
def product_movements_route(product_id: int):
    """Movement report for one product; ?start=&end= optional."""
    try:
        report = inventory_service.get_product_movement_report(
            product_id=product_id,
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.get("/report")
def inventory_report_route():
    try:
        report = inventory_service.get_inventory_report(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
