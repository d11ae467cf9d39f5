# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a bearer session and establish the request identity.

    Sets the following Flask g attributes:
    - g.identity: the IdentityContext {user_id, account_id, role}
    - g.current_user_id: shortcut for g.identity.user_id
    - g.session_token: the raw bearer token (used by logout)

    The identity is resolved once here; routes pass it explicitly into
    services, which never read request state themselves.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"success": False, "error": "Authentication required"}), 401

        identity = session_service.validate_session(token)
        if not identity:
            return jsonify({"success": False, "error": "Invalid or expired token"}), 401

        g.identity = identity
        g.current_user_id = identity.user_id
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function
