from __future__ import annotations

from ..extensions import db
from channelhub.time_utils import to_utc_z

DEFAULT_WAREHOUSE = "default"


class Product(db.Model):
    """
    Product master data, owned by exactly one account.

    SKU DESIGN:
    - sku is unique within an account: UniqueConstraint("account_id", "sku")
    - external_id is the product id in the channel it was imported from and is
      unique within an account; channel imports upsert on (account_id, external_id)
    - price_cents is authoritative; channels sending decimals are normalized
      to integer minor units before they reach this table
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("account_id", "sku", name="uq_products_account_sku"),
        db.UniqueConstraint("account_id", "external_id", name="uq_products_account_external_id"),
        db.Index("ix_products_account_name", "account_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    sku = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False, default=0)

    external_id = db.Column(db.String(255), nullable=True)
    channel_id = db.Column(db.Integer, db.ForeignKey("channels.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    account = db.relationship("Account", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} account_id={self.account_id}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "sku": self.sku}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "external_id": self.external_id,
            "channel_id": self.channel_id,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Inventory(db.Model):
    """
    Stock level for one product in one warehouse.

    CONTENDED ROW: quantity is only ever changed through a single SQL statement
    (conditional decrement or upsert), never read-modify-write in Python.
    The CHECK constraint backs up the non-negative invariant at the database.
    """
    __tablename__ = "inventories"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse", name="uq_inventories_product_warehouse"),
        db.CheckConstraint("quantity >= 0", name="ck_inventories_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse = db.Column(db.String(64), nullable=False, default=DEFAULT_WAREHOUSE)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("inventories", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "warehouse": self.warehouse,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }
