# Overview: Flask API routes for inventory levels; parses input and returns JSON responses.

# backend/channelhub/routes/inventory.py
from flask import Blueprint, request, jsonify, current_app, g

from ..services import inventory_service
from ..services.tenant_service import TenantAccessError, require_account_membership
from ..validation import coerce_int, ValidationError, NotFoundError
from ..decorators import require_auth

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventories")


@inventory_bp.put("")
@require_auth
def set_inventory_route():
    """
    Absolute stock write.

    Body: {product_id, warehouse?, quantity}. Quantity must be an integer >= 0;
    a rejected write leaves the existing row untouched.
    """
    data = request.get_json(silent=True) or {}
    if data.get("product_id") in (None, ""):
        return jsonify({"success": False, "error": "product_id is required"}), 400

    try:
        product_id = coerce_int(data.get("product_id"), "product_id")
        row = inventory_service.set_inventory(
            product_id=product_id,
            quantity=data.get("quantity"),
            warehouse=data.get("warehouse"),
            user_id=g.current_user_id,
        )
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"success": False, "error": str(e)}), 404
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to set inventory")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({"success": True, "inventory": row.to_dict()}), 200


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    account_id = request.args.get("account_id")
    if not account_id:
        return jsonify({"success": False, "error": "account_id is required"}), 400

    try:
        account_id = coerce_int(account_id, "account_id")
        require_account_membership(g.current_user_id, account_id)
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401

    rows = inventory_service.list_inventory(account_id, warehouse=request.args.get("warehouse"))
    return jsonify({"success": True, "inventories": rows}), 200
