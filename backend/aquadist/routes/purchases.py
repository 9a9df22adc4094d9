# Overview: Flask API routes for supplier purchases.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import purchase_service
from ..validation import PayloadPolicy, coerce_int, validate_payload


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")

PURCHASE_POLICY = PayloadPolicy(
    writable_fields={"supplier_id", "items", "notes"},
    required={"supplier_id", "items"},
)
PAY_POLICY = PayloadPolicy(writable_fields={"amount_cents"}, required={"amount_cents"})
STATUS_POLICY = PayloadPolicy(writable_fields={"status"}, required={"status"})


def _purchase_with_items(purchase) -> dict:
    payload = purchase.to_dict()
    payload["items"] = [item.to_dict() for item in purchase.items]
    return payload


@purchases_bp.post("")
@require_actor
def create_purchase_route():
    """
    Request body:
    {
        "supplier_id": 1,
        "items": [{"product_id": 3, "quantity": 100, "unit_cost_cents": 4000}, ...],
        "notes": "..."   (optional)
    }
    """
    try:
        data = validate_payload(request.get_json(silent=True), PURCHASE_POLICY)
        purchase = purchase_service.create_purchase(
            supplier_id=coerce_int(data["supplier_id"], "supplier_id"),
            items=data["items"],
            notes=data.get("notes"),
            user_id=g.actor_user_id,
        )
        return jsonify(_purchase_with_items(purchase)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
def list_purchases_route():
    purchases = purchase_service.list_purchases(supplier_id=request.args.get("supplier_id", type=int))
    return jsonify({"items": [p.to_dict() for p in purchases], "count": len(purchases)}), 200


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        return jsonify(_purchase_with_items(purchase_service.get_purchase(purchase_id))), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@purchases_bp.put("/<int:purchase_id>/pay")
@require_actor
def pay_purchase_route(purchase_id: int):
    try:
        data = validate_payload(request.get_json(silent=True), PAY_POLICY)
        purchase = purchase_service.pay_purchase(purchase_id=purchase_id, amount_cents=data["amount_cents"])
        return jsonify(purchase.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to pay purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.put("/<int:purchase_id>/status")
@require_actor
def update_purchase_status_route(purchase_id: int):
    try:
        data = validate_payload(request.get_json(silent=True), STATUS_POLICY)
        purchase = purchase_service.update_purchase_status(purchase_id=purchase_id, status=data["status"])
        return jsonify(purchase.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update purchase status")
        return jsonify({"error": "Internal server error"}), 500
