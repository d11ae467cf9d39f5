# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/channelhub/routes/orders.py
"""
Order routes.

The caller's identity comes from @require_auth; the target account is the
account_id in the request, checked against the caller's memberships by the
order service.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import order_service
from ..services.order_service import OrderError
from ..services.tenant_service import TenantAccessError
from ..decorators import require_auth

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_error(e: OrderError):
    body = {"success": False, "error": e.message}
    if e.details:
        body["details"] = e.details
    return jsonify(body), e.status_code


@orders_bp.post("/manual")
@require_auth
def create_manual_order_route():
    """
    Create a manual or whatsapp order and take its stock.

    Body: {account_id, type, items: [{product_id, quantity}], notes?}
    201 {success, order, items}; 400 on validation/stock errors; 401 when the
    caller is not a member of account_id.
    """
    data = request.get_json(silent=True) or {}
    try:
        order, items = order_service.create_manual_order(
            account_id=data.get("account_id"),
            type=data.get("type"),
            items=data.get("items"),
            notes=data.get("notes"),
            user_id=g.current_user_id,
        )
    except OrderError as e:
        return _order_error(e)
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to create manual order")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({
        "success": True,
        "order": order.to_dict(),
        "items": [item.to_dict() for item in items],
    }), 201


@orders_bp.post("")
@require_auth
def create_order_route():
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(
            account_id=data.get("account_id"),
            items=data.get("items"),
            type=data.get("type") or "manual",
            notes=data.get("notes"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            customer_email=data.get("customer_email"),
            user_id=g.current_user_id,
        )
    except OrderError as e:
        return _order_error(e)
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({"success": True, "data": order.to_dict(include_items=True)}), 201


@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    Query params:
    - account_id: int (required)
    - status, type: optional filters
    - limit: int (default 50, max 200)
    """
    account_id = request.args.get("account_id")
    if not account_id:
        return jsonify({"success": False, "error": "account_id is required"}), 400

    try:
        orders = order_service.list_orders(
            account_id=account_id,
            user_id=g.current_user_id,
            status=request.args.get("status"),
            type=request.args.get("type"),
            limit=request.args.get("limit", default=50, type=int),
        )
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401

    return jsonify({
        "success": True,
        "orders": [o.to_dict(include_items=True) for o in orders],
    }), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id=order_id, user_id=g.current_user_id)
    except OrderError as e:
        return _order_error(e)
    return jsonify({"success": True, "data": order.to_dict(include_items=True)}), 200


@orders_bp.patch("/<int:order_id>/status")
@require_auth
def update_order_status_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.update_order_status(
            order_id=order_id,
            status=data.get("status"),
            user_id=g.current_user_id,
        )
    except OrderError as e:
        return _order_error(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({"success": True, "data": order.to_dict()}), 200
