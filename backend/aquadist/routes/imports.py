# Overview: Flask API routes for stock imports.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import LedgerError
from ..services import import_service
from ..validation import PayloadPolicy, coerce_int, validate_payload


imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")

IMPORT_POLICY = PayloadPolicy(
    writable_fields={"supplier_id", "items", "note"},
    required={"supplier_id", "items"},
)


def _import_with_items(record) -> dict:
    payload = record.to_dict()
    payload["items"] = [item.to_dict() for item in record.items]
    return payload


@imports_bp.post("")
@require_actor
def create_import_route():
    try:
        data = validate_payload(request.get_json(silent=True), IMPORT_POLICY)
        record = import_service.create_import(
            supplier_id=coerce_int(data["supplier_id"], "supplier_id"),
            items=data["items"],
            note=data.get("note"),
            user_id=g.actor_user_id,
        )
        return jsonify(_import_with_items(record)), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create import")
        return jsonify({"error": "Internal server error"}), 500


@imports_bp.get("")
def list_imports_route():
    records = import_service.list_imports(supplier_id=request.args.get("supplier_id", type=int))
    return jsonify({"items": [r.to_dict() for r in records], "count": len(records)}), 200


@imports_bp.get("/<int:import_id>")
def get_import_route(import_id: int):
    try:
        return jsonify(_import_with_items(import_service.get_import(import_id))), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@imports_bp.delete("/<int:import_id>")
@require_actor
def delete_import_route(import_id: int):
    """
    Reverse an import's stock and delete it.

    Returns:
        200: deleted
        404: import not found
        409: the imported units were already sold (IMPORT_IN_USE)
    """
    try:
        import_service.delete_import(import_id=import_id, user_id=g.actor_user_id)
        return jsonify({"deleted": True, "import_id": import_id}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete import")
        return jsonify({"error": "Internal server error"}), 500
