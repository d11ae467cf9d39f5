# Overview: Channel connection management (connect, update, delete, test).

"""
Channel records hold credentials for one external system.

- Serialized channels never expose access_token, refresh_token or secret
  config values (Channel.to_dict / public_config).
- A channel is "connected" as soon as it has a usable credential; it moves to
  "error" after a failed test or sync and back to "connected" after a
  successful test.
"""

from __future__ import annotations

import logging

from ..channels.base import ChannelContext, ChannelAdapterError
from ..extensions import db
from ..models import Channel, Order, Product, CHANNEL_TYPES
from ..validation import ValidationError, NotFoundError, coerce_int
from channelhub.time_utils import parse_iso_datetime
from .sync_log_service import append_sync_log
from .tenant_service import require_account, require_account_membership, get_member_account_ids

logger = logging.getLogger(__name__)

CHANNEL_MUTABLE_FIELDS = {
    "name", "description", "type", "external_id", "access_token",
    "refresh_token", "token_expires_at", "config",
}

INVALID_TYPE_MESSAGE = f"Invalid type. Must be one of: {', '.join(CHANNEL_TYPES)}"


def has_credentials(channel_type: str, access_token: str | None, config: dict | None) -> bool:
    config = config or {}
    if access_token:
        return True
    if channel_type == "erp":
        return bool(config.get("username") and config.get("password"))
    if channel_type == "siigo":
        return bool(config.get("api_key"))
    return False


def _clean_patch(data: dict) -> dict:
    patch = {}
    for key, value in data.items():
        if key not in CHANNEL_MUTABLE_FIELDS:
            continue
        if key == "type" and value not in CHANNEL_TYPES:
            raise ValidationError(INVALID_TYPE_MESSAGE)
        if key == "config":
            if value is None:
                value = {}
            if not isinstance(value, dict):
                raise ValidationError("config must be an object")
        if key == "token_expires_at" and value is not None:
            try:
                value = parse_iso_datetime(str(value))
            except ValueError:
                raise ValidationError("token_expires_at must be an ISO-8601 datetime")
        if key in ("name", "description", "external_id") and isinstance(value, str):
            value = value.strip()
        patch[key] = value
    if "external_id" in patch and not patch["external_id"]:
        raise ValidationError("external_id cannot be blank")
    return patch


def connect_channel(*, data: dict, user_id: int) -> Channel:
    """
    Create a channel for an account the caller belongs to.

    Raises ValidationError for missing/invalid fields and TenantAccessError when
    the account does not exist or the caller is not a member.
    """
    data = data or {}
    account_id = data.get("account_id")
    if not account_id or not data.get("type") or not data.get("external_id"):
        raise ValidationError("account_id, type, and external_id are required")
    account_id = coerce_int(account_id, "account_id")

    require_account(account_id)
    require_account_membership(user_id, account_id)

    patch = _clean_patch(data)
    channel = Channel(account_id=account_id, config={})
    for key, value in patch.items():
        setattr(channel, key, value)
    channel.status = "connected" if has_credentials(channel.type, channel.access_token, channel.config) else "disconnected"

    db.session.add(channel)
    db.session.flush()

    if channel.status == "connected":
        append_sync_log(
            account_id=account_id,
            channel_id=channel.id,
            event_type=f"{channel.type}_connection_established",
            status="success",
            payload={"channel_id": channel.id, "external_id": channel.external_id},
        )

    db.session.commit()
    logger.info("Channel %s (%s) created for account %s", channel.id, channel.type, account_id)
    return channel


def list_channels(*, user_id: int, account_id=None) -> list[Channel]:
    """Channels of one account, or of every account the caller belongs to."""
    query = db.session.query(Channel)
    if account_id not in (None, ""):
        account_id = coerce_int(account_id, "account_id")
        require_account_membership(user_id, account_id)
        query = query.filter(Channel.account_id == account_id)
    else:
        account_ids = get_member_account_ids(user_id)
        if not account_ids:
            return []
        query = query.filter(Channel.account_id.in_(account_ids))
    return query.order_by(Channel.created_at.desc(), Channel.id.desc()).all()


def get_channel(*, channel_id: int, user_id: int) -> Channel:
    channel = db.session.query(Channel).filter_by(id=channel_id).first()
    # channels in other accounts look exactly like missing ones
    if not channel or channel.account_id not in get_member_account_ids(user_id):
        raise NotFoundError("Channel not found")
    return channel


def update_channel(*, channel_id: int, data: dict, user_id: int) -> Channel:
    channel = get_channel(channel_id=channel_id, user_id=user_id)
    patch = _clean_patch(data or {})

    for key, value in patch.items():
        setattr(channel, key, value)

    credential_fields = {"access_token", "config", "type"}
    if credential_fields & patch.keys():
        if not has_credentials(channel.type, channel.access_token, channel.config):
            channel.status = "disconnected"
        elif channel.status == "disconnected":
            channel.status = "connected"

    db.session.commit()
    return channel


def delete_channel(*, channel_id: int, user_id: int) -> None:
    """
    Delete a channel. Products and orders keep their rows with the link
    cleared; sync logs are left as written and keep the old channel id.
    """
    channel = get_channel(channel_id=channel_id, user_id=user_id)

    db.session.query(Product).filter_by(channel_id=channel.id).update(
        {"channel_id": None}, synchronize_session=False
    )
    db.session.query(Order).filter_by(channel_id=channel.id).update(
        {"channel_id": None}, synchronize_session=False
    )
    db.session.delete(channel)
    db.session.commit()


def test_channel_connection(*, channel_id: int, user_id: int, registry) -> dict:
    """
    Ask the channel's adapter to verify its credentials and record the outcome
    on the channel (connected/error, last_error).
    """
    channel = get_channel(channel_id=channel_id, user_id=user_id)
    adapter = registry.get(channel.type)

    if adapter is None:
        success, message, details = False, f"Test not implemented for {channel.type}", {}
    else:
        try:
            result = adapter.test_connection(ChannelContext.from_channel(channel))
            success, message, details = result.success, result.message, result.details
        except ChannelAdapterError as exc:
            success, message, details = False, str(exc), {}

    channel.status = "connected" if success else "error"
    channel.last_error = None if success else message
    db.session.commit()

    return {"success": success, "message": message, "details": details}
