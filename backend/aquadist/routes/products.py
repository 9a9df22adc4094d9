# backend/aquadist/routes/products.py
"""
Product master data routes.

Stock is not writable here; it moves only through /api/inventory and the
order, purchase and import documents.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import products_service
from ..validation import PayloadPolicy, validate_payload


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_POLICY = PayloadPolicy(
    writable_fields={"name", "unit", "price_cents", "is_returnable", "description"},
    required={"name", "unit"},
)


@products_bp.post("")
@require_actor
def create_product_route():
    try:
        data = validate_payload(request.get_json(silent=True), PRODUCT_POLICY)
        product = products_service.create_product(**data)
        return jsonify(product.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("")
def list_products_route():
    returnable = request.args.get("returnable")
    flag = None if returnable is None else returnable.lower() in ("1", "true", "yes")
    products = products_service.list_products(returnable=flag)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id).to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
