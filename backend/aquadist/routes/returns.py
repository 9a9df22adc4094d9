# Overview: Flask API routes for returnable-container movements.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import return_service
from ..validation import PayloadPolicy, coerce_int, validate_payload


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")

EMPTY_RETURN_POLICY = PayloadPolicy(
    writable_fields={"customer_id", "order_id", "delivered", "returned", "note"},
    required={"customer_id"},
)


@returns_bp.post("")
@require_actor
def record_empty_return_route():
    """
    Request body:
    {
        "customer_id": 1,
        "delivered": 0,          (optional)
        "returned": 5,           (optional)
        "order_id": 12,          (optional; returned is checked against the order)
        "note": "..."            (optional)
    }
    """
    try:
        data = validate_payload(request.get_json(silent=True), EMPTY_RETURN_POLICY)
        order_id = data.get("order_id")
        entry = return_service.record_empty_return(
            customer_id=coerce_int(data["customer_id"], "customer_id"),
            delivered=data.get("delivered", 0),
            returned=data.get("returned", 0),
            order_id=coerce_int(order_id, "order_id") if order_id is not None else None,
            note=data.get("note"),
            user_id=g.actor_user_id,
        )
        return jsonify(entry.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record empty return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("")
def list_empty_returns_route():
    entries = return_service.list_empty_returns(customer_id=request.args.get("customer_id", type=int))
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200
