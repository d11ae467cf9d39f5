"""
Order Fulfillment Engine

Validates an order against current stock and commits the order, its lines and
the inventory decrements as one transaction. Every outcome after the caller's
account membership is established leaves exactly one `manual_order_created`
SyncLog row, success or error.

WHY one transaction: the stock check and the decrement must be indivisible.
Each decrement is a conditional UPDATE (quantity >= requested); if any of them
affects zero rows the whole order rolls back and nothing is written.
"""

from __future__ import annotations

from sqlalchemy.orm import joinedload, selectinload

from ..extensions import db
from ..models import (
    Order,
    OrderItem,
    Product,
    DEFAULT_WAREHOUSE,
    MANUAL_ORDER_TYPES,
    ORDER_STATUSES,
)
from ..validation import ValidationError, coerce_int
from .concurrency import begin_write_transaction, run_with_retry
from .inventory_service import get_stock_levels, decrement_stock
from .sync_log_service import append_sync_log
from .tenant_service import require_account_membership, TenantAccessError, get_member_account_ids

MANUAL_ORDER_EVENT = "manual_order_created"
MAX_ORDER_LIST_LIMIT = 200


class OrderError(Exception):
    """Raised for order operation errors."""
    def __init__(self, message: str, details: dict | None = None, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.status_code = status_code


class _StockShortfall(Exception):
    def __init__(self, product_id: int):
        super().__init__(f"Not enough stock for product {product_id}")
        self.product_id = product_id


def _parse_items(items) -> list[tuple[int, int]]:
    """Normalize [{product_id, quantity}] into (product_id, quantity) pairs."""
    if not isinstance(items, list) or not items:
        raise OrderError("items must be a non-empty array")

    parsed = []
    for item in items:
        if not isinstance(item, dict):
            raise OrderError("Each item must have product_id and quantity > 0")
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        # bool is an int subclass; true/false are not quantities
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise OrderError("Each item must have product_id and quantity > 0")
        if product_id in (None, "") or isinstance(product_id, bool):
            raise OrderError("Each item must have product_id and quantity > 0")
        try:
            product_id = coerce_int(product_id, "product_id")
        except ValidationError:
            raise OrderError("Each item must have product_id and quantity > 0")
        parsed.append((product_id, quantity))
    return parsed


def _log_failure(account_id: int, body: dict, message: str) -> None:
    append_sync_log(
        account_id=account_id,
        event_type=MANUAL_ORDER_EVENT,
        status="error",
        payload={"body": body, "errorMessage": message},
        commit=True,
    )


def create_manual_order(
    *,
    account_id,
    type: str,
    items,
    user_id: int,
    notes: str | None = None,
) -> tuple[Order, list[OrderItem]]:
    """
    Create a manual/whatsapp order and take its stock.

    Returns (order, items). Raises OrderError for validation, ownership and
    stock failures, TenantAccessError when the caller has no membership on
    account_id. Nothing is written for a failed order except its error log.
    """
    if account_id in (None, ""):
        raise OrderError("account_id is required")
    if type not in MANUAL_ORDER_TYPES:
        raise OrderError("type must be 'manual' or 'whatsapp'")
    lines = _parse_items(items)

    try:
        account_id = coerce_int(account_id, "account_id")
    except ValidationError:
        raise TenantAccessError("Account not found for this user")

    require_account_membership(user_id, account_id)

    # echoed into the error log payload
    body = {"account_id": account_id, "type": type, "items": items, "notes": notes}
    product_ids = [pid for pid, _ in lines]

    def _op():
        begin_write_transaction()

        products = db.session.query(Product).filter(Product.id.in_(product_ids)).all()
        if len(products) != len(product_ids):
            raise OrderError("Some products not found")

        if any(p.account_id != account_id for p in products):
            raise OrderError("Products account_id does not match body.account_id")

        by_id = {p.id: p for p in products}
        levels = get_stock_levels(product_ids, DEFAULT_WAREHOUSE)
        for product_id, quantity in lines:
            if levels.get(product_id, 0) < quantity:
                raise _StockShortfall(product_id)

        order = Order(
            account_id=account_id,
            type=type,
            status="created",
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(order)
        db.session.flush()

        created = []
        total = 0
        for product_id, quantity in lines:
            unit_price = by_id[product_id].price_cents
            line_total = unit_price * quantity
            item = OrderItem(
                order_id=order.id,
                product_id=product_id,
                quantity=quantity,
                unit_price_cents=unit_price,
                total_price_cents=line_total,
            )
            db.session.add(item)
            created.append(item)
            total += line_total

            if not decrement_stock(product_id, quantity, DEFAULT_WAREHOUSE):
                raise _StockShortfall(product_id)

        order.total_amount_cents = total
        db.session.flush()

        append_sync_log(
            account_id=account_id,
            event_type=MANUAL_ORDER_EVENT,
            status="success",
            payload={
                "order": order.to_dict(),
                "items": [item.to_dict() for item in created],
            },
        )

        db.session.commit()
        return order, created

    try:
        return run_with_retry(_op)
    except _StockShortfall as exc:
        _log_failure(account_id, body, str(exc))
        raise OrderError(str(exc), details={"product_id": exc.product_id})
    except OrderError as exc:
        _log_failure(account_id, body, exc.message)
        raise
    except Exception as exc:
        _log_failure(account_id, body, str(exc) or exc.__class__.__name__)
        raise


def create_order(
    *,
    account_id,
    items,
    user_id: int,
    type: str = "manual",
    notes: str | None = None,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    customer_email: str | None = None,
) -> Order:
    """
    General order entry: stored as "pending" with prices from the catalog.

    Stock is not taken here; only manual orders decrement inventory.
    """
    if account_id in (None, ""):
        raise OrderError("account_id is required")
    lines = _parse_items(items)

    try:
        account_id = coerce_int(account_id, "account_id")
    except ValidationError:
        raise TenantAccessError("Account not found for this user")

    require_account_membership(user_id, account_id)

    order_type = (type or "manual").strip() or "manual"
    products = {}
    for product_id, _ in lines:
        product = db.session.query(Product).filter_by(id=product_id).first()
        if not product:
            raise OrderError(f"Product {product_id} not found")
        if product.account_id != account_id:
            raise OrderError(f"Product {product_id} does not belong to this account")
        products[product_id] = product

    order = Order(
        account_id=account_id,
        type=order_type,
        status="pending",
        notes=notes,
        customer_name=customer_name,
        customer_phone=customer_phone,
        customer_email=customer_email,
        created_by_user_id=user_id,
    )
    total = 0
    for product_id, quantity in lines:
        unit_price = products[product_id].price_cents
        order.items.append(OrderItem(
            product_id=product_id,
            quantity=quantity,
            unit_price_cents=unit_price,
            total_price_cents=unit_price * quantity,
        ))
        total += unit_price * quantity
    order.total_amount_cents = total

    db.session.add(order)
    db.session.commit()
    return order


def _get_visible_order(order_id: int, user_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id).first()
    # orders in other accounts look exactly like missing ones
    if not order or order.account_id not in get_member_account_ids(user_id):
        raise OrderError("Order not found", status_code=404)
    return order


def get_order(*, order_id: int, user_id: int) -> Order:
    return _get_visible_order(order_id, user_id)


def update_order_status(*, order_id: int, status: str, user_id: int) -> Order:
    """
    Set an order's status.

    Any status in ORDER_STATUSES is accepted from any current status;
    ORDER_STATUS_FLOW documents the intended forward path but is not enforced.
    """
    order = _get_visible_order(order_id, user_id)

    if status not in ORDER_STATUSES:
        raise OrderError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")

    def _op():
        order.status = status
        db.session.commit()
        return order

    return run_with_retry(_op)


def list_orders(
    *,
    account_id,
    user_id: int,
    status: str | None = None,
    type: str | None = None,
    limit: int = 50,
) -> list[Order]:
    """Newest-first orders of one account, items loaded for serialization."""
    try:
        account_id = coerce_int(account_id, "account_id")
    except ValidationError:
        raise TenantAccessError("Account not found for this user")
    require_account_membership(user_id, account_id)

    limit = max(1, min(limit or 50, MAX_ORDER_LIST_LIMIT))

    query = db.session.query(Order).filter(Order.account_id == account_id)
    if status:
        query = query.filter(Order.status == status)
    if type:
        query = query.filter(Order.type == type)

    return (
        query.options(selectinload(Order.items).joinedload(OrderItem.product))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )
