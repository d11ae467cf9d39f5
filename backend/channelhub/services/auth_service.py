# Overview: Account/user bootstrap and password authentication.

"""
Authentication Service

Thin account/user layer: enough to create tenants and members and to issue
sessions. Membership management beyond that lives outside this service.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
"""

import re

import bcrypt

from ..extensions import db
from ..models import Account, AccountMembership, User, MEMBERSHIP_ROLES
from ..validation import ConflictError, ValidationError
from channelhub.time_utils import utcnow

_SLUG_RE = re.compile(r"[^a-z0-9]+")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 after a strength check."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def slugify(name: str) -> str:
    return _SLUG_RE.sub("-", name.strip().lower()).strip("-")


def create_account(name: str, slug: str | None = None) -> Account:
    """Create a tenant. Slugs are globally unique."""
    if not name or not name.strip():
        raise ValidationError("name is required")

    slug = slugify(slug or name)
    if not slug:
        raise ValidationError("slug is required")

    if db.session.query(Account).filter_by(slug=slug).first():
        raise ConflictError(f"Account slug '{slug}' already exists")

    account = Account(name=name.strip(), slug=slug)
    db.session.add(account)
    db.session.commit()
    return account


def create_user(email: str, password: str, full_name: str | None = None) -> User:
    """Create a login identity; emails are unique across the system."""
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("email is required")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    validate_password_strength(password)

    user = User(email=email, full_name=full_name, password_hash=hash_password(password))
    db.session.add(user)
    db.session.commit()
    return user


def add_membership(account_id: int, user_id: int, role: str = "member") -> AccountMembership:
    """Grant a user access to an account (idempotent; updates the role)."""
    if role not in MEMBERSHIP_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(MEMBERSHIP_ROLES)}")

    membership = db.session.query(AccountMembership).filter_by(
        account_id=account_id, user_id=user_id
    ).first()
    if membership:
        membership.role = role
    else:
        membership = AccountMembership(account_id=account_id, user_id=user_id, role=role)
        db.session.add(membership)

    db.session.commit()
    return membership


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def resolve_login_membership(user_id: int, account_id: int | None = None) -> AccountMembership | None:
    """
    Pick the account context for a new session.

    With account_id: the membership on that account (None if absent).
    Without: the user's oldest membership.
    """
    query = db.session.query(AccountMembership).filter_by(user_id=user_id)
    if account_id is not None:
        query = query.filter_by(account_id=account_id)
    return query.order_by(AccountMembership.id.asc()).first()
