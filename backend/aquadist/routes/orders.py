# Overview: Flask API routes for orders; lifecycle, payments and empty returns against an order.

# backend/aquadist/routes/orders.py
"""
Order API Routes

DESIGN:
- POST creates the order, exports stock and charges the customer in one step
- Status changes never move balances
- Payments and empty returns are recorded against an order here, or against
  a customer via /api/transactions and /api/returns
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import order_service, payment_service, return_service
from ..validation import PayloadPolicy, coerce_int, validate_payload


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_POLICY = PayloadPolicy(
    writable_fields={"customer_id", "items", "request_key"},
    required={"customer_id", "items"},
)
STATUS_POLICY = PayloadPolicy(writable_fields={"status"}, required={"status"})
RETURNABLE_POLICY = PayloadPolicy(
    writable_fields={"returned_quantity", "note"},
    required={"returned_quantity"},
)
PAYMENT_POLICY = PayloadPolicy(
    writable_fields={"amount_cents", "method", "request_key"},
    required={"amount_cents"},
)


def _order_with_items(order) -> dict:
    payload = order.to_dict()
    payload["items"] = [item.to_dict() for item in order_service.get_order_items(order.id)]
    return payload


@orders_bp.post("")
@require_actor
def create_order_route():
    """
    Create an order.

    Request body:
    {
        "customer_id": 1,
        "items": [{"product_id": 3, "quantity": 10}, ...],
        "request_key": "c1f0..."   (optional idempotency key)
    }

    Returns:
        201: order with items
        400: invalid input, insufficient stock or invalid price
        404: customer or product not found
    """
    try:
        data = validate_payload(request.get_json(silent=True), ORDER_POLICY)
        order = order_service.create_order(
            customer_id=coerce_int(data["customer_id"], "customer_id"),
            items=data["items"],
            user_id=g.actor_user_id,
            request_key=data.get("request_key"),
        )
        return jsonify(_order_with_items(order)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
def list_orders_route():
    try:
        orders = order_service.list_orders(
            customer_id=request.args.get("customer_id", type=int),
            status=request.args.get("status"),
        )
        return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return jsonify(_order_with_items(order_service.get_order(order_id))), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.put("/<int:order_id>/status")
@require_actor
def update_order_status_route(order_id: int):
    """pending -> completed | canceled. Anything else is 409."""
    try:
        data = validate_payload(request.get_json(silent=True), STATUS_POLICY)
        order = order_service.update_order_status(order_id=order_id, status=data["status"])
        return jsonify(order.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/returnable")
@require_actor
def update_returnable_route(order_id: int):
    try:
        data = validate_payload(request.get_json(silent=True), RETURNABLE_POLICY)
        order = return_service.update_returnable(
            order_id=order_id,
            returned_quantity=data["returned_quantity"],
            note=data.get("note"),
            user_id=g.actor_user_id,
        )
        return jsonify(order.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record empty return")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/payment")
@require_actor
def update_payment_route(order_id: int):
    """
    Record a payment against an order.

    Request body:
    {
        "amount_cents": 50000,
        "method": "cash" | "bank" | "momo",   (optional, default cash)
        "request_key": "..."                  (optional idempotency key)
    }
    """
    try:
        data = validate_payload(request.get_json(silent=True), PAYMENT_POLICY)
        order = payment_service.update_payment(
            order_id=order_id,
            amount_cents=data["amount_cents"],
            method=data.get("method") or "cash",
            user_id=g.actor_user_id,
            request_key=data.get("request_key"),
        )
        return jsonify(order.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record order payment")
        return jsonify({"error": "Internal server error"}), 500
