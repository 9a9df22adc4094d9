# Overview: Flask API routes for customers and suppliers; parses input and returns JSON responses.

# backend/aquadist/routes/accounts.py
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import account_service, purchase_service
from ..validation import PayloadPolicy, validate_payload


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")

CUSTOMER_POLICY = PayloadPolicy(
    writable_fields={"name", "phone", "address", "customer_type", "agency_level"},
    required={"name", "phone", "address"},
)

SUPPLIER_POLICY = PayloadPolicy(
    writable_fields={"name", "contact_person", "phone", "email", "address"},
    required={"name", "contact_person", "phone", "address"},
)

CUSTOMER_UPDATE_POLICY = PayloadPolicy(
    writable_fields=CUSTOMER_POLICY.writable_fields,
)

SUPPLIER_UPDATE_POLICY = PayloadPolicy(
    writable_fields=SUPPLIER_POLICY.writable_fields,
)


# =============================================================================
# CUSTOMERS
# =============================================================================

@customers_bp.post("")
@require_actor
def create_customer_route():
    """
    Create a customer.

    Request body:
    {
        "name": "Minh Water Shop",
        "phone": "0901234567",
        "address": "12 Le Loi",
        "customer_type": "agency",   (optional, default retail)
        "agency_level": 2            (required for agency)
    }
    """
    try:
        data = validate_payload(request.get_json(silent=True), CUSTOMER_POLICY)
        customer = account_service.create_customer(**data)
        return jsonify(customer.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("")
def list_customers_route():
    try:
        customers = account_service.list_customers(customer_type=request.args.get("customer_type"))
        return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        return jsonify(account_service.get_customer(customer_id).to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.put("/<int:customer_id>")
@require_actor
def update_customer_route(customer_id: int):
    """
    Update customer master data (all fields optional).

    Balances are not writable here; they move only through orders, payments
    and returns. Sending customer_type "agency" with an agency_level
    reclassifies the customer for future orders.
    """
    try:
        data = validate_payload(request.get_json(silent=True), CUSTOMER_UPDATE_POLICY)
        customer = account_service.update_customer(customer_id=customer_id, **data)
        return jsonify(customer.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_actor
def delete_customer_route(customer_id: int):
    try:
        account_service.delete_customer(customer_id=customer_id)
        return jsonify({"ok": True}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SUPPLIERS
# =============================================================================

@suppliers_bp.post("")
@require_actor
def create_supplier_route():
    try:
        data = validate_payload(request.get_json(silent=True), SUPPLIER_POLICY)
        supplier = account_service.create_supplier(**data)
        return jsonify(supplier.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("")
def list_suppliers_route():
    suppliers = account_service.list_suppliers()
    return jsonify({"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}), 200


@suppliers_bp.get("/<int:supplier_id>")
def get_supplier_route(supplier_id: int):
    """Supplier master data plus the derived debt we still owe them."""
    try:
        supplier = account_service.get_supplier(supplier_id)
        payload = supplier.to_dict()
        payload["debt_cents"] = purchase_service.get_supplier_debt(supplier_id)
        return jsonify(payload), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@suppliers_bp.put("/<int:supplier_id>")
@require_actor
def update_supplier_route(supplier_id: int):
    try:
        data = validate_payload(request.get_json(silent=True), SUPPLIER_UPDATE_POLICY)
        supplier = account_service.update_supplier(supplier_id=supplier_id, **data)
        return jsonify(supplier.to_dict()), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
@require_actor
def delete_supplier_route(supplier_id: int):
    try:
        account_service.delete_supplier(supplier_id=supplier_id)
        return jsonify({"ok": True}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Internal server error"}), 500
