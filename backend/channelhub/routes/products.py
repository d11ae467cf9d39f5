# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/channelhub/routes/products.py
"""
Product management routes.

All product operations are scoped to accounts the caller is a member of.
Products of other accounts are reported as not found.
"""
from flask import Blueprint, request, jsonify, g
from ..services import products_service
from ..services.tenant_service import TenantAccessError
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    coerce_int,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"sku", "name", "description", "price_cents", "is_active"}),
    required_on_create=frozenset({"sku", "name"}),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Query params:
    - account_id: int (required)
    - search: str (optional) - matches name or sku
    - include_inactive: "true" to include soft-deleted products
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    account_id = request.args.get("account_id")
    if not account_id:
        return jsonify({"success": False, "error": "account_id is required"}), 400

    try:
        result = products_service.list_products(
            account_id=coerce_int(account_id, "account_id"),
            user_id=g.current_user_id,
            search=request.args.get("search"),
            include_inactive=request.args.get("include_inactive") == "true",
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401

    return jsonify({"success": True, **result}), 200


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}
    account_id = payload.pop("account_id", None)
    if account_id in (None, ""):
        return jsonify({"success": False, "error": "account_id is required"}), 400

    try:
        account_id = coerce_int(account_id, "account_id")
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        created = products_service.create_product(account_id=account_id, patch=patch, user_id=g.current_user_id)
    except ConflictError as e:
        return jsonify({"success": False, "error": str(e)}), 409
    except TenantAccessError as e:
        return jsonify({"success": False, "error": str(e)}), 401

    return jsonify({"success": True, "product": created}), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id=product_id, user_id=g.current_user_id)
    except NotFoundError:
        return jsonify({"success": False, "error": "Product not found"}), 404
    return jsonify({"success": True, "product": product}), 200


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch, user_id=g.current_user_id)
    except NotFoundError:
        return jsonify({"success": False, "error": "Product not found"}), 404
    except ConflictError as e:
        return jsonify({"success": False, "error": str(e)}), 409

    return jsonify({"success": True, "product": updated}), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Soft delete: the product is flagged inactive and keeps its order history."""
    try:
        product = products_service.delete_product(product_id=product_id, user_id=g.current_user_id)
    except NotFoundError:
        return jsonify({"success": False, "error": "Product not found"}), 404

    return jsonify({"success": True, "product": product}), 200
