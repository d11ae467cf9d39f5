# Overview: Service-layer operations for inventory; stock reads, atomic decrements and upserts.

# backend/channelhub/services/inventory_service.py

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite

from ..extensions import db
from ..models import Product, Inventory, DEFAULT_WAREHOUSE
from ..validation import NotFoundError, enforce_rules_inventory_set
from .concurrency import begin_write_transaction, run_with_retry
from .tenant_service import require_account_membership
"""
Inventory invariants (authoritative)

- One row per (product_id, warehouse); a missing row means zero stock.
- quantity is never negative. The CHECK constraint enforces it at the
  database, the conditional decrement enforces it under concurrency.
- quantity is only changed by a single SQL statement:
    * decrement_stock: UPDATE ... SET quantity = quantity - :q WHERE quantity >= :q
    * upsert_stock / set_inventory: INSERT ... ON CONFLICT (product_id, warehouse) DO UPDATE
  Never read a quantity into Python, subtract, and write it back.
"""

_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def get_stock_levels(product_ids, warehouse: str = DEFAULT_WAREHOUSE) -> dict[int, int]:
    """Batch-read stock for several products. Products without a row map to 0."""
    ids = list(product_ids)
    if not ids:
        return {}

    rows = (
        db.session.query(Inventory.product_id, Inventory.quantity)
        .filter(Inventory.product_id.in_(ids), Inventory.warehouse == warehouse)
        .all()
    )
    levels = {pid: 0 for pid in ids}
    for row in rows:
        levels[row.product_id] = row.quantity
    return levels


def decrement_stock(product_id: int, quantity: int, warehouse: str = DEFAULT_WAREHOUSE) -> bool:
    """
    Atomically take `quantity` units from stock.

    Returns False (and changes nothing) when the row is missing or holds less
    than `quantity`. Runs inside the caller's transaction; the caller decides
    whether to commit or roll back.
    """
    stmt = (
        update(Inventory)
        .where(
            Inventory.product_id == product_id,
            Inventory.warehouse == warehouse,
            Inventory.quantity >= quantity,
        )
        .values(quantity=Inventory.quantity - quantity, updated_at=db.func.now())
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return result.rowcount == 1


def upsert_stock(product_id: int, quantity: int, warehouse: str = DEFAULT_WAREHOUSE) -> Inventory:
    """
    Set the absolute quantity for (product_id, warehouse), creating the row if needed.

    One statement keyed on the (product_id, warehouse) unique constraint, so
    concurrent first writers cannot both insert. Does not commit.
    """
    dialect = db.session.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Stock upsert is not supported on {dialect}")

    stmt = insert(Inventory).values(product_id=product_id, warehouse=warehouse, quantity=quantity)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Inventory.product_id, Inventory.warehouse],
        set_={"quantity": stmt.excluded.quantity, "updated_at": db.func.now()},
    )
    db.session.execute(stmt)

    return (
        db.session.query(Inventory)
        .filter_by(product_id=product_id, warehouse=warehouse)
        .populate_existing()
        .one()
    )


def set_inventory(*, product_id: int, quantity, user_id: int, warehouse: str | None = None) -> Inventory:
    """
    Absolute stock write from the API.

    Raises:
        ValidationError: quantity missing, not an integer, or negative
        NotFoundError: product does not exist
        TenantAccessError: caller is not a member of the product's account
    """
    qty = enforce_rules_inventory_set(quantity)
    warehouse = (warehouse or DEFAULT_WAREHOUSE).strip() or DEFAULT_WAREHOUSE

    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise NotFoundError("Product not found")

    require_account_membership(user_id, product.account_id, message="Account access denied")

    def _op():
        begin_write_transaction()
        row = upsert_stock(product.id, qty, warehouse)
        db.session.commit()
        return row

    return run_with_retry(_op)


def list_inventory(account_id: int, warehouse: str | None = None) -> list[dict]:
    """Inventory rows of an account, each with a product summary."""
    query = (
        db.session.query(Inventory, Product)
        .join(Product, Product.id == Inventory.product_id)
        .filter(Product.account_id == account_id)
    )
    if warehouse:
        query = query.filter(Inventory.warehouse == warehouse)

    results = []
    for inv, product in query.order_by(Product.name.asc(), Inventory.warehouse.asc()).all():
        data = inv.to_dict()
        data["product"] = product.to_summary()
        results.append(data)
    return results
