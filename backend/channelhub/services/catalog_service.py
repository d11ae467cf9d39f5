# Overview: Applies data fetched from a channel to the local catalog, stock and orders.

"""
Channel import rules

- Products are keyed by (account_id, external_id). A remote product whose
  external id is unknown but whose sku already exists in the account adopts
  that local product instead of violating (account_id, sku) uniqueness.
- Stock lines resolve products by external_id within the channel's account
  and upsert the "default" warehouse row. Unknown products are skipped and
  negative remote quantities are stored as 0.
- Orders are keyed by (account_id, channel_id, external_id). Orders already
  imported are left alone. Imported orders never touch inventory; stock
  arrives through inventory sync.

Nothing here opens a transaction or talks to the network. Callers pass
commit=True when the import is its own unit of work.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Order, OrderItem, Product, DEFAULT_WAREHOUSE
from .inventory_service import upsert_stock


def _finish(commit: bool) -> None:
    if commit:
        db.session.commit()
    else:
        db.session.flush()


def upsert_channel_products(ctx, remote_products, commit: bool = False) -> int:
    """Insert or overwrite products from a channel. Returns the number applied."""
    count = 0
    for remote in remote_products:
        if not remote.external_id:
            continue

        product = db.session.query(Product).filter_by(
            account_id=ctx.account_id,
            external_id=remote.external_id,
        ).first()

        if product is None and remote.sku:
            product = db.session.query(Product).filter_by(
                account_id=ctx.account_id,
                sku=remote.sku,
            ).first()
            if product is not None and product.external_id not in (None, remote.external_id):
                # sku already linked to a different remote product
                continue

        if product is None:
            product = Product(account_id=ctx.account_id, is_active=True)
            db.session.add(product)

        product.external_id = remote.external_id
        product.channel_id = ctx.channel_id
        product.sku = remote.sku or f"{ctx.type}-{remote.external_id}"
        product.name = remote.name or product.sku
        product.price_cents = max(int(remote.price_cents or 0), 0)
        if remote.description is not None:
            product.description = remote.description

        db.session.flush()
        count += 1

    _finish(commit)
    return count


def apply_channel_inventory(ctx, remote_levels, commit: bool = False) -> int:
    """Write remote stock levels into the default warehouse. Returns rows updated."""
    levels = [lvl for lvl in remote_levels if lvl.external_product_id]
    if not levels:
        _finish(commit)
        return 0

    external_ids = {lvl.external_product_id for lvl in levels}
    products = (
        db.session.query(Product.id, Product.external_id)
        .filter(Product.account_id == ctx.account_id, Product.external_id.in_(external_ids))
        .all()
    )
    by_external = {row.external_id: row.id for row in products}

    count = 0
    for level in levels:
        product_id = by_external.get(level.external_product_id)
        if product_id is None:
            continue
        upsert_stock(product_id, max(int(level.quantity), 0), DEFAULT_WAREHOUSE)
        count += 1

    _finish(commit)
    return count


def _resolve_line_product(account_id: int, line) -> Product | None:
    if line.external_product_id:
        product = db.session.query(Product).filter_by(
            account_id=account_id,
            external_id=line.external_product_id,
        ).first()
        if product is not None:
            return product
    if line.sku:
        return db.session.query(Product).filter_by(account_id=account_id, sku=line.sku).first()
    return None


def import_channel_orders(ctx, remote_orders, commit: bool = False) -> int:
    """Create orders that have not been imported yet. Returns the number created."""
    count = 0
    for remote in remote_orders:
        if not remote.external_id:
            continue

        exists = db.session.query(Order.id).filter_by(
            account_id=ctx.account_id,
            channel_id=ctx.channel_id,
            external_id=remote.external_id,
        ).first()
        if exists:
            continue

        order = Order(
            account_id=ctx.account_id,
            channel_id=ctx.channel_id,
            external_id=remote.external_id,
            type=ctx.type,
            status=remote.status or "pending",
            notes=remote.notes,
            customer_name=remote.customer_name,
            customer_email=remote.customer_email,
            customer_phone=remote.customer_phone,
        )

        total = 0
        for line in remote.lines:
            if line.quantity <= 0:
                continue
            product = _resolve_line_product(ctx.account_id, line)
            if product is None:
                continue
            line_total = line.unit_price_cents * line.quantity
            order.items.append(OrderItem(
                product_id=product.id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                total_price_cents=line_total,
                external_product_id=line.external_product_id,
            ))
            total += line_total
        order.total_amount_cents = total

        db.session.add(order)
        db.session.flush()
        count += 1

    _finish(commit)
    return count
