# Overview: Bearer session issuance and verification (the identity verifier).

"""
Bearer sessions

A session is created at login and bound to one account membership. The
plaintext token (32 random bytes, hex) is handed to the client once; only its
SHA-256 digest is stored. validate_session turns a presented token into an
IdentityContext that routes pass explicitly into services.

A session stops working when it expires (SESSION_TTL_HOURS), is revoked by
logout, or its user is deactivated.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from channelhub.time_utils import utcnow


@dataclass(frozen=True)
class IdentityContext:
    """Who is calling, resolved once per request by require_auth."""
    user_id: int
    account_id: int | None
    role: str | None
    session_id: int


def hash_token(token: str) -> str:
    # tokens carry 256 bits of entropy; a fast digest is enough
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()


def create_session(
    user_id: int,
    account_id: int | None = None,
    role: str | None = None,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Issue a session for an active user.

    Returns (session row, plaintext token). Raises ValueError for unknown or
    deactivated users.
    """
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise ValueError("User not found")

    token = secrets.token_hex(32)
    issued_at = utcnow()
    session = SessionToken(
        user_id=user.id,
        account_id=account_id,
        role=role,
        token_hash=hash_token(token),
        created_at=issued_at,
        last_used_at=issued_at,
        expires_at=issued_at + timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24)),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> IdentityContext | None:
    """Resolve a bearer token, or None when it cannot be used."""
    session = _live_session(token)
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()
    return IdentityContext(
        user_id=user.id,
        account_id=session.account_id,
        role=session.role,
        session_id=session.id,
    )


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns False when the token was unknown or already revoked."""
    session = _live_session(token)
    if session is None:
        return False
    _revoke(session, reason)
    return True


def cleanup_expired_sessions(retention_days: int = 30) -> int:
    """Delete dead (expired or revoked) sessions created before the retention window."""
    now = utcnow()
    dead = db.or_(SessionToken.expires_at < now, SessionToken.is_revoked.is_(True))
    deleted = (
        db.session.query(SessionToken)
        .filter(dead, SessionToken.created_at < now - timedelta(days=retention_days))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
