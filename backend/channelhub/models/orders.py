from __future__ import annotations

from ..extensions import db
from channelhub.time_utils import to_utc_z

MANUAL_ORDER_TYPES = ("manual", "whatsapp")

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")

# Intended forward-only flow. update_order_status validates membership in
# ORDER_STATUSES only; see DESIGN.md open questions.
ORDER_STATUS_FLOW = {
    "created": ("pending", "confirmed", "cancelled"),
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("processing", "cancelled"),
    "processing": ("shipped", "cancelled"),
    "shipped": ("delivered", "cancelled"),
    "delivered": (),
    "cancelled": (),
}


class Order(db.Model):
    """
    Sales order owned by one account.

    Orders come from three places:
    - the manual-order endpoint (status "created", inventory decremented)
    - the general order endpoint (status "pending", no inventory change)
    - channel imports (channel_id + external_id set, unique per account/channel)
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("account_id", "channel_id", "external_id", name="uq_orders_account_channel_external"),
        db.Index("ix_orders_account_created", "account_id", "created_at"),
        db.Index("ix_orders_account_status", "account_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, default="manual")
    status = db.Column(db.String(32), nullable=False, default="pending")
    notes = db.Column(db.Text, nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(50), nullable=True)

    channel_id = db.Column(db.Integer, db.ForeignKey("channels.id"), nullable=True, index=True)
    external_id = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} account_id={self.account_id} status={self.status!r}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "account_id": self.account_id,
            "type": self.type,
            "status": self.status,
            "notes": self.notes,
            "total_amount_cents": self.total_amount_cents,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "channel_id": self.channel_id,
            "external_id": self.external_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["order_items"] = [item.to_dict(include_product=True) for item in self.items]
        return data


class OrderItem(db.Model):
    """
    Order line. unit_price_cents is a snapshot of the product price at order
    time and is never updated afterwards.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    external_product_id = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self, include_product: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "external_product_id": self.external_product_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_product:
            data["product"] = self.product.to_summary() if self.product else None
        return data
