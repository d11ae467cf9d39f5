"""
Channel Sync Orchestrator

Runs one resource sync (products, inventory or orders) in one direction
against every connected channel of an account, or against a single channel.

THREADING MODEL:
- Adapter calls (network only) run on a bounded ThreadPoolExecutor. Workers
  receive a frozen ChannelContext and never touch the database session.
- Everything that writes (catalog upserts, channel status, SyncLog rows)
  happens on the calling thread as each task completes.
- One channel failing, raising or timing out never affects the others. Every
  channel attempt leaves exactly one SyncLog row.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import CancelledError, ThreadPoolExecutor, TimeoutError as FuturesTimeout, as_completed
from dataclasses import dataclass, field

import httpx
from flask import current_app

from ..channels.base import (
    ChannelContext,
    ChannelAdapterError,
    RESOURCES,
    DIRECTIONS,
    FROM_CHANNEL,
    TO_CHANNEL,
    PRODUCTS,
    INVENTORY,
    ORDERS,
)
from ..extensions import db
from ..models import Channel, Inventory, Product, DEFAULT_WAREHOUSE
from channelhub.time_utils import utcnow
from . import catalog_service
from .sync_log_service import append_sync_log, list_sync_logs

logger = logging.getLogger(__name__)

# resource -> (event name fragment, payload/result count key, message label)
RESOURCE_KEYS = {
    PRODUCTS: ("product", "products_synced", "Product"),
    INVENTORY: ("inventory", "inventory_updated", "Inventory"),
    ORDERS: ("order", "orders_synced", "Order"),
}

CANCELLED_MESSAGE = "Sync cancelled before start"
TIMEOUT_MESSAGE = "Sync timed out"


class SyncError(Exception):
    """Request-level sync failure (nothing was attempted)."""
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class _CancelledBeforeStart(Exception):
    pass


@dataclass
class ChannelSyncResult:
    channel_id: int
    channel_type: str
    success: bool
    message: str
    count: int = 0
    # False when no adapter call was made (cancelled, unsupported): logged, but channel status untouched
    affects_status: bool = True

    def to_dict(self, count_key: str) -> dict:
        return {
            "channel_id": self.channel_id,
            "channel_type": self.channel_type,
            "success": self.success,
            "message": self.message,
            count_key: self.count,
        }


@dataclass
class SyncBatchResult:
    resource: str
    direction: str
    results: list = field(default_factory=list)

    @property
    def successful_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def success(self) -> bool:
        return self.successful_count > 0

    @property
    def message(self) -> str:
        return f"Synced {self.resource} for {self.successful_count}/{len(self.results)} channels"

    def to_dict(self) -> dict:
        count_key = RESOURCE_KEYS[self.resource][1]
        return {
            "success": self.success,
            "message": self.message,
            "results": [r.to_dict(count_key) for r in self.results],
        }


def not_implemented_message(resource: str, direction: str, channel_type: str) -> str:
    label = RESOURCE_KEYS[resource][2]
    verb = "sync" if direction == FROM_CHANNEL else "export"
    return f"{label} {verb} not implemented for {channel_type}"


def _resolve_channels(account_id: int, channel_id: int | None) -> list[Channel]:
    if channel_id is not None:
        channel = db.session.query(Channel).filter_by(
            id=channel_id,
            account_id=account_id,
            status="connected",
        ).first()
        if not channel:
            raise SyncError("Channel not found or not connected", status_code=404)
        return [channel]

    return (
        db.session.query(Channel)
        .filter_by(account_id=account_id, status="connected")
        .order_by(Channel.id.asc())
        .all()
    )


def _export_payload(account_id: int, resource: str) -> list[dict]:
    """Snapshot of local data for to_channel pushes, read before fan-out."""
    if resource == PRODUCTS:
        products = (
            db.session.query(Product)
            .filter(Product.account_id == account_id, Product.is_active.is_(True))
            .order_by(Product.id.asc())
            .all()
        )
        return [p.to_dict() for p in products]

    if resource == INVENTORY:
        rows = (
            db.session.query(Product, Inventory.quantity)
            .outerjoin(
                Inventory,
                (Inventory.product_id == Product.id) & (Inventory.warehouse == DEFAULT_WAREHOUSE),
            )
            .filter(Product.account_id == account_id, Product.is_active.is_(True))
            .order_by(Product.id.asc())
            .all()
        )
        return [
            {
                "product_id": product.id,
                "sku": product.sku,
                "external_id": product.external_id,
                "channel_id": product.channel_id,
                "quantity": quantity or 0,
            }
            for product, quantity in rows
        ]

    return []


def _run_channel_task(adapter, ctx: ChannelContext, resource: str, direction: str, payload, cancel_event):
    """Worker body. Network only; returns fetched records or a pushed count."""
    if cancel_event is not None and cancel_event.is_set():
        raise _CancelledBeforeStart()

    started = time.monotonic()
    if direction == FROM_CHANNEL:
        fetch = {
            PRODUCTS: adapter.fetch_products,
            INVENTORY: adapter.fetch_inventory,
            ORDERS: adapter.fetch_orders,
        }[resource]
        outcome = fetch(ctx)
    elif resource == PRODUCTS:
        outcome = adapter.push_products(ctx, payload)
    else:
        outcome = adapter.push_inventory(ctx, payload)

    logger.debug(
        "%s %s %s for channel %s took %.3fs",
        ctx.type, resource, direction, ctx.channel_id, time.monotonic() - started,
    )
    return outcome


def _apply(ctx: ChannelContext, resource: str, fetched) -> int:
    if resource == PRODUCTS:
        return catalog_service.upsert_channel_products(ctx, fetched)
    if resource == INVENTORY:
        return catalog_service.apply_channel_inventory(ctx, fetched)
    return catalog_service.import_channel_orders(ctx, fetched)


def _record(channel_id: int, account_id: int, resource: str, direction: str, result: ChannelSyncResult) -> None:
    """Channel status side effects plus the attempt's SyncLog row, committed together."""
    event_fragment, count_key, _ = RESOURCE_KEYS[resource]

    channel = db.session.get(Channel, channel_id)
    if channel is not None:
        if result.success:
            channel.last_error = None
            channel.last_sync_at = utcnow()
        elif result.affects_status:
            channel.status = "error"
            channel.last_error = result.message

    append_sync_log(
        account_id=account_id,
        channel_id=channel_id,
        event_type=f"manual_{event_fragment}_sync_{direction}",
        status="completed" if result.success else "error",
        payload={
            "channel_id": channel_id,
            "direction": direction,
            count_key: result.count,
            "error": None if result.success else result.message,
        },
    )
    db.session.commit()


def _finish_task(ctx: ChannelContext, resource: str, direction: str, future) -> ChannelSyncResult:
    """Turn a completed future into a result, applying fetched data to the store."""
    label = RESOURCE_KEYS[resource][2].lower()
    try:
        outcome = future.result()
        if direction == FROM_CHANNEL:
            count = _apply(ctx, resource, outcome)
        else:
            count = int(outcome or 0)
        return ChannelSyncResult(ctx.channel_id, ctx.type, True, f"Synced {count} {label} records", count)
    except (CancelledError, _CancelledBeforeStart):
        return ChannelSyncResult(ctx.channel_id, ctx.type, False, CANCELLED_MESSAGE, affects_status=False)
    except (ChannelAdapterError, httpx.HTTPError) as exc:
        db.session.rollback()
        logger.warning("%s sync failed for channel %s: %s", resource, ctx.channel_id, exc)
        return ChannelSyncResult(ctx.channel_id, ctx.type, False, str(exc) or exc.__class__.__name__)
    except Exception as exc:
        db.session.rollback()
        logger.exception("Unexpected error syncing %s for channel %s", resource, ctx.channel_id)
        return ChannelSyncResult(ctx.channel_id, ctx.type, False, str(exc) or exc.__class__.__name__)


def _settle_after_timeout(futures: dict, results: dict, account_id: int, resource: str, direction: str) -> None:
    """
    Report every future the batch deadline left unreported.

    A future that completed after the deadline check is reported as what it
    was; only work still pending is cancelled and logged as timed out.
    """
    for future, ctx in futures.items():
        if ctx.channel_id in results:
            continue
        if future.done():
            result = _finish_task(ctx, resource, direction, future)
        else:
            future.cancel()
            logger.warning("%s sync timed out for channel %s", resource, ctx.channel_id)
            result = ChannelSyncResult(ctx.channel_id, ctx.type, False, TIMEOUT_MESSAGE)
        results[ctx.channel_id] = result
        _record(ctx.channel_id, account_id, resource, direction, result)


def sync(
    *,
    account_id: int,
    resource: str,
    registry,
    direction: str = FROM_CHANNEL,
    channel_id: int | None = None,
    max_workers: int | None = None,
    timeout: float | None = None,
    cancel_event: threading.Event | None = None,
) -> SyncBatchResult:
    """
    Sync `resource` for the account's connected channels.

    The caller is responsible for checking the requester's membership on
    account_id. Per-channel failures are reported in the result; only
    request-level problems raise SyncError.
    """
    if resource not in RESOURCES:
        raise SyncError(f"Invalid resource. Must be one of: {', '.join(RESOURCES)}")
    if direction not in DIRECTIONS:
        raise SyncError(f"Invalid direction. Must be one of: {', '.join(DIRECTIONS)}")

    if max_workers is None:
        max_workers = current_app.config.get("SYNC_MAX_WORKERS", 4)
    if timeout is None:
        timeout = current_app.config.get("SYNC_BATCH_TIMEOUT", 60)

    channels = _resolve_channels(account_id, channel_id)
    batch = SyncBatchResult(resource=resource, direction=direction)
    if not channels:
        return batch

    contexts = [ChannelContext.from_channel(c) for c in channels]
    results: dict[int, ChannelSyncResult] = {}
    runnable = []

    for ctx in contexts:
        adapter = registry.get(ctx.type)
        if resource == ORDERS and direction == TO_CHANNEL:
            # order export has no channel-side counterpart; reported as a no-op
            results[ctx.channel_id] = ChannelSyncResult(ctx.channel_id, ctx.type, True, "Synced 0 order records", 0)
        elif adapter is None or not adapter.supports(resource, direction):
            results[ctx.channel_id] = ChannelSyncResult(
                ctx.channel_id, ctx.type, False, not_implemented_message(resource, direction, ctx.type),
                affects_status=False,
            )
        else:
            runnable.append((ctx, adapter))

    for ctx in contexts:
        if ctx.channel_id in results:
            _record(ctx.channel_id, account_id, resource, direction, results[ctx.channel_id])

    if runnable:
        payload = _export_payload(account_id, resource) if direction == TO_CHANNEL else None
        executor = ThreadPoolExecutor(max_workers=max(1, int(max_workers)), thread_name_prefix="channel-sync")
        futures = {
            executor.submit(_run_channel_task, adapter, ctx, resource, direction, payload, cancel_event): ctx
            for ctx, adapter in runnable
        }
        try:
            for future in as_completed(futures, timeout=timeout):
                ctx = futures[future]
                result = _finish_task(ctx, resource, direction, future)
                results[ctx.channel_id] = result
                _record(ctx.channel_id, account_id, resource, direction, result)
        except FuturesTimeout:
            _settle_after_timeout(futures, results, account_id, resource, direction)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    batch.results = [results[ctx.channel_id] for ctx in contexts]
    logger.info(
        "Sync %s %s for account %s: %s/%s channels succeeded",
        resource, direction, account_id, batch.successful_count, len(batch.results),
    )
    return batch


def get_sync_status(account_id: int, limit: int = 20) -> dict:
    channels = (
        db.session.query(Channel)
        .filter_by(account_id=account_id)
        .order_by(Channel.id.asc())
        .all()
    )
    logs = list_sync_logs(account_id, limit=limit)
    return {
        "channels": [c.to_status_dict() for c in channels],
        "recent_syncs": [log.to_dict() for log in logs],
    }
