# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/channelhub/routes/auth.py
"""
Authentication API routes

- Login issues an opaque bearer token bound to one account membership
- Logout revokes the presented token
- /me echoes the identity resolved by @require_auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..extensions import db
from ..models import User
from ..services import auth_service
from ..services import session_service
from ..validation import coerce_int, ValidationError
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Body: {email, password, account_id?}. Without account_id the session is
    bound to the user's first membership.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"success": False, "error": "email and password required"}), 400

        account_id = data.get("account_id")
        if account_id not in (None, ""):
            try:
                account_id = coerce_int(account_id, "account_id")
            except ValidationError as e:
                return jsonify({"success": False, "error": str(e)}), 400
        else:
            account_id = None

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"success": False, "error": "Invalid credentials"}), 401

        membership = auth_service.resolve_login_membership(user.id, account_id)
        if account_id is not None and membership is None:
            return jsonify({"success": False, "error": "Account not found for this user"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            account_id=membership.account_id if membership else None,
            role=membership.role if membership else None,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "success": True,
            "token": token,
            "user": user.to_dict(),
            "account_id": session.account_id,
            "role": session.role,
            "expires_at": session.to_dict()["expires_at"],
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.session_token)
        return jsonify({"success": True, "message": "Logout successful"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    identity = g.identity
    user = db.session.get(User, identity.user_id)
    return jsonify({
        "success": True,
        "user": user.to_dict() if user else None,
        "account_id": identity.account_id,
        "role": identity.role,
    }), 200
