# Overview: Account-scoped product catalog operations.

"""
Catalog writes from the API.

Products belong to exactly one account. Sku is unique within the account, so
two tenants may use the same sku. A product in an account the caller does not
belong to is reported exactly like a missing one. Deletion is soft: order lines
keep pointing at the row.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..validation import ConflictError, NotFoundError
from .tenant_service import require_account_membership, get_member_account_ids

MAX_PER_PAGE = 100


def _sku_taken(account_id: int, sku: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Product.id).filter(Product.account_id == account_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def _get_owned_product(product_id: int, user_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or product.account_id not in get_member_account_ids(user_id):
        raise NotFoundError("Product not found")
    return product


def list_products(
    *,
    account_id: int,
    user_id: int,
    search: str | None = None,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Products of one account, ordered by name.

    Without `page` every match is returned. With it, `pagination` carries
    page/per_page/total/total_pages/has_next/has_prev; per_page defaults to 20
    and is capped at MAX_PER_PAGE.
    """
    require_account_membership(user_id, account_id)

    query = db.session.query(Product).filter(Product.account_id == account_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    query = query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        items = [p.to_dict() for p in query.all()]
        return {"items": items, "count": len(items)}

    page = max(page, 1)
    per_page = max(1, min(per_page or 20, MAX_PER_PAGE))
    total = query.count()
    total_pages = max(1, -(-total // per_page))
    items = [p.to_dict() for p in query.offset((page - 1) * per_page).limit(per_page).all()]

    return {
        "items": items,
        "count": len(items),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def create_product(*, account_id: int, patch: dict, user_id: int) -> dict:
    """`patch` has already passed validate_payload with PRODUCT_POLICY."""
    require_account_membership(user_id, account_id)

    if _sku_taken(account_id, patch["sku"]):
        raise ConflictError("SKU already exists for this account.")

    product = Product(account_id=account_id, **patch)
    db.session.add(product)
    db.session.commit()
    return product.to_dict()


def get_product(*, product_id: int, user_id: int) -> dict:
    return _get_owned_product(product_id, user_id).to_dict()


def update_product(*, product_id: int, patch: dict, user_id: int) -> dict:
    product = _get_owned_product(product_id, user_id)

    new_sku = patch.get("sku")
    if new_sku and new_sku != product.sku and _sku_taken(product.account_id, new_sku, exclude_id=product.id):
        raise ConflictError("SKU already exists for this account.")

    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()
    return product.to_dict()


def delete_product(*, product_id: int, user_id: int) -> dict:
    product = _get_owned_product(product_id, user_id)
    product.is_active = False
    db.session.commit()
    return product.to_dict()
