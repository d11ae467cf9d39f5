# Overview: Flask API routes for channel sync; parses input and returns JSON responses.

# backend/channelhub/routes/sync.py
"""
Sync routes.

POST /api/sync/<resource> answers 200 even when every channel failed; the
per-channel outcome is in `results`.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import CHANNEL_REGISTRY_KEY
from ..services import sync_service
from ..services.sync_service import SyncError
from ..services.tenant_service import TenantAccessError, require_account_membership
from ..validation import coerce_int, optional_int, ValidationError
from ..decorators import require_auth

sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


def _run_sync(resource: str):
    data = request.get_json(silent=True) or {}
    if not data.get("account_id"):
        return jsonify({"success": False, "error": "account_id is required"}), 400

    try:
        account_id = coerce_int(data.get("account_id"), "account_id")
        channel_id = optional_int(data.get("channel_id"), "channel_id")
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        require_account_membership(g.current_user_id, account_id)
        batch = sync_service.sync(
            account_id=account_id,
            resource=resource,
            direction=data.get("direction") or "from_channel",
            channel_id=channel_id,
            registry=current_app.extensions[CHANNEL_REGISTRY_KEY],
        )
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401
    except SyncError as e:
        return jsonify({"success": False, "error": e.message}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to sync %s", resource)
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify(batch.to_dict()), 200


@sync_bp.post("/products")
@require_auth
def sync_products_route():
    return _run_sync("products")


@sync_bp.post("/inventory")
@require_auth
def sync_inventory_route():
    return _run_sync("inventory")


@sync_bp.post("/orders")
@require_auth
def sync_orders_route():
    return _run_sync("orders")


@sync_bp.get("/status")
@require_auth
def sync_status_route():
    account_id = request.args.get("account_id")
    if not account_id:
        return jsonify({"success": False, "error": "account_id is required"}), 400

    try:
        account_id = coerce_int(account_id, "account_id")
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        require_account_membership(g.current_user_id, account_id)
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401

    limit = request.args.get("limit", default=20, type=int)
    status = sync_service.get_sync_status(account_id, limit=limit)
    return jsonify({"success": True, **status}), 200
