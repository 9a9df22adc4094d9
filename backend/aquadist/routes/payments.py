# Overview: Flask API routes for customer payment transactions.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import payment_service
from ..validation import PayloadPolicy, coerce_int, validate_payload


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")

TRANSACTION_POLICY = PayloadPolicy(
    writable_fields={"customer_id", "order_id", "amount_cents", "method", "request_key"},
    required={"customer_id", "amount_cents"},
)


@transactions_bp.post("")
@require_actor
def record_payment_route():
    """
    Record money received from a customer.

    With order_id the payment is applied to that order as well as to the
    customer's debt; without it only the customer's debt moves.
    """
    try:
        data = validate_payload(request.get_json(silent=True), TRANSACTION_POLICY)
        order_id = data.get("order_id")
        tx = payment_service.record_payment(
            customer_id=coerce_int(data["customer_id"], "customer_id"),
            amount_cents=data["amount_cents"],
            method=data.get("method") or "cash",
            order_id=coerce_int(order_id, "order_id") if order_id is not None else None,
            user_id=g.actor_user_id,
            request_key=data.get("request_key"),
        )
        return jsonify(tx.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
def list_transactions_route():
    txs = payment_service.list_transactions(
        customer_id=request.args.get("customer_id", type=int),
        order_id=request.args.get("order_id", type=int),
    )
    return jsonify({"items": [t.to_dict() for t in txs], "count": len(txs)}), 200
