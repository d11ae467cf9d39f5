from __future__ import annotations

from ..extensions import db
from channelhub.time_utils import to_utc_z

CHANNEL_TYPES = ("shopify", "siigo", "erp", "woocommerce", "prestashop")
CHANNEL_STATUSES = ("disconnected", "connected", "error")

# Config keys never echoed back to clients.
SECRET_CONFIG_KEYS = frozenset({"api_key", "password", "client_secret", "access_token"})


class Channel(db.Model):
    """
    A configured connection from one account to one external storefront or ERP.

    Credential shape is adapter-private: Shopify uses access_token, the generic
    ERP keeps a username/password pair inside config, Siigo accepts either.

    STATUS: disconnected -> connected (credential present) -> error (failed
    test or sync) -> connected (successful test).
    """
    __tablename__ = "channels"
    __table_args__ = (
        db.Index("ix_channels_account_status", "account_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)

    external_id = db.Column(db.String(255), nullable=False)
    access_token = db.Column(db.Text, nullable=True)
    refresh_token = db.Column(db.Text, nullable=True)
    token_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    config = db.Column(db.JSON, nullable=False, default=dict)

    status = db.Column(db.String(20), nullable=False, default="disconnected")
    last_error = db.Column(db.Text, nullable=True)
    last_sync_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    account = db.relationship("Account", backref=db.backref("channels", lazy=True))

    def __repr__(self) -> str:
        return f"<Channel id={self.id} type={self.type!r} status={self.status!r}>"

    def public_config(self) -> dict:
        return {k: v for k, v in (self.config or {}).items() if k not in SECRET_CONFIG_KEYS}

    def to_status_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "last_error": self.last_error,
            "last_sync_at": to_utc_z(self.last_sync_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "external_id": self.external_id,
            "has_access_token": bool(self.access_token),
            "config": self.public_config(),
            "status": self.status,
            "last_error": self.last_error,
            "last_sync_at": to_utc_z(self.last_sync_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


SYNC_LOG_STATUSES = ("success", "completed", "error")


class SyncLog(db.Model):
    """
    Audit record of every order or sync attempt, success or failure.

    IMMUTABLE: Never update or delete. Append-only.
    """
    __tablename__ = "sync_logs"
    __table_args__ = (
        db.Index("ix_sync_logs_account_created", "account_id", "created_at"),
        db.Index("ix_sync_logs_event_type", "event_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    # plain id, no FK: deleting a channel never rewrites its history
    channel_id = db.Column(db.Integer, nullable=True, index=True)

    event_type = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(20), nullable=False)
    payload = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "channel_id": self.channel_id,
            "event_type": self.event_type,
            "status": self.status,
            "payload": self.payload,
            "created_at": to_utc_z(self.created_at),
        }
