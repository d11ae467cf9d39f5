"""
Multi-Tenant Service: membership checks and account scoping.

SECURITY INVARIANTS:
1. Every account_id coming from client input is checked against the caller's
   memberships before it is used.
2. Records fetched by id (orders, products, channels) are checked against the
   caller's memberships through their own account_id.
3. Denials never reveal whether the record exists in another account.
"""

from ..extensions import db
from ..models import Account, AccountMembership


class TenantAccessError(Exception):
    """Raised when the caller has no membership on the requested account."""
    pass


def get_membership(user_id: int, account_id: int) -> AccountMembership | None:
    return db.session.query(AccountMembership).filter_by(
        user_id=user_id,
        account_id=account_id,
    ).first()


def require_account_membership(
    user_id: int,
    account_id: int,
    message: str = "Account not found for this user",
) -> AccountMembership:
    """
    Core tenant isolation check.

    Raises TenantAccessError if the user is not a member of the account or the
    account does not exist.
    """
    if account_id is None:
        raise TenantAccessError(message)

    membership = get_membership(user_id, account_id)
    if membership is None:
        raise TenantAccessError(message)
    return membership


def require_account(account_id: int) -> Account:
    account = db.session.query(Account).filter_by(id=account_id).first()
    if not account:
        raise TenantAccessError("Invalid account_id: account does not exist")
    return account


def get_member_account_ids(user_id: int) -> set[int]:
    rows = db.session.query(AccountMembership.account_id).filter_by(user_id=user_id).all()
    return {row.account_id for row in rows}
