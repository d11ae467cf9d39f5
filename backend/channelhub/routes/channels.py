# Overview: Flask API routes for channel connections; parses input and returns JSON responses.

# backend/channelhub/routes/channels.py
"""
Channel management routes.

Credentials are accepted on create/update but never returned.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import CHANNEL_REGISTRY_KEY
from ..services import channel_service
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth

channels_bp = Blueprint("channels", __name__, url_prefix="/api/channels")


@channels_bp.get("")
@require_auth
def list_channels_route():
    try:
        channels = channel_service.list_channels(
            user_id=g.current_user_id,
            account_id=request.args.get("account_id"),
        )
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401

    return jsonify({"success": True, "channels": [c.to_dict() for c in channels]}), 200


@channels_bp.post("")
@require_auth
def connect_channel_route():
    """
    Body: {account_id, type, external_id, name?, description?, access_token?,
    refresh_token?, token_expires_at?, config?}
    """
    data = request.get_json(silent=True) or {}
    try:
        channel = channel_service.connect_channel(data=data, user_id=g.current_user_id)
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to create channel")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({"success": True, "channel": channel.to_dict()}), 201


@channels_bp.put("/<int:channel_id>")
@require_auth
def update_channel_route(channel_id: int):
    data = request.get_json(silent=True) or {}
    try:
        channel = channel_service.update_channel(
            channel_id=channel_id,
            data=data,
            user_id=g.current_user_id,
        )
    except NotFoundError as e:
        return jsonify({"success": False, "error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    return jsonify({"success": True, "channel": channel.to_dict()}), 200


@channels_bp.delete("/<int:channel_id>")
@require_auth
def delete_channel_route(channel_id: int):
    try:
        channel_service.delete_channel(channel_id=channel_id, user_id=g.current_user_id)
    except NotFoundError as e:
        return jsonify({"success": False, "error": str(e)}), 404

    return jsonify({"success": True, "message": "Channel deleted"}), 200


@channels_bp.post("/<int:channel_id>/test")
@require_auth
def test_channel_route(channel_id: int):
    try:
        result = channel_service.test_channel_connection(
            channel_id=channel_id,
            user_id=g.current_user_id,
            registry=current_app.extensions[CHANNEL_REGISTRY_KEY],
        )
    except NotFoundError as e:
        return jsonify({"success": False, "error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to test channel connection")
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return jsonify({
        "success": True,
        "channel_id": channel_id,
        "test_result": result,
    }), 200
