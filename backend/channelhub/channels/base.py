"""
Channel adapter contract.

An adapter knows how to talk to one external channel type (a storefront or an
ERP). It never touches the database from its fetch_* / push_* methods: those
run on worker threads during a sync batch and only see a ChannelContext, a
frozen copy of the channel row taken on the request thread. pull_* is the
sequential convenience path that fetches and then applies the result to the
store through catalog_service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

import httpx

from ..services import catalog_service

logger = logging.getLogger(__name__)

PRODUCTS = "products"
INVENTORY = "inventory"
ORDERS = "orders"
RESOURCES = (PRODUCTS, INVENTORY, ORDERS)

FROM_CHANNEL = "from_channel"
TO_CHANNEL = "to_channel"
DIRECTIONS = (FROM_CHANNEL, TO_CHANNEL)


class ChannelAdapterError(Exception):
    """A channel call failed (bad credentials, HTTP error, unexpected payload)."""


class UnsupportedOperation(ChannelAdapterError):
    """The adapter does not implement the requested (resource, direction)."""


def to_minor_units(value: Any) -> int:
    """
    Normalize a decimal price from a channel into integer minor units.

    Rounds half-up: "10.005" -> 1001, 19.99 -> 1999. Missing or blank -> 0.
    """
    if value is None or value == "":
        return 0
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ChannelAdapterError(f"Invalid price value: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_quantity(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(Decimal(str(value)))
    except InvalidOperation:
        raise ChannelAdapterError(f"Invalid quantity value: {value!r}")


@dataclass(frozen=True)
class ChannelContext:
    """Immutable snapshot of a Channel row, safe to hand to worker threads."""
    channel_id: int
    account_id: int
    type: str
    external_id: str
    access_token: str | None = None
    config: dict = field(default_factory=dict)

    @classmethod
    def from_channel(cls, channel) -> "ChannelContext":
        return cls(
            channel_id=channel.id,
            account_id=channel.account_id,
            type=channel.type,
            external_id=channel.external_id,
            access_token=channel.access_token,
            config=dict(channel.config or {}),
        )


@dataclass(frozen=True)
class ConnectionResult:
    success: bool
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message, "details": self.details}


@dataclass(frozen=True)
class RemoteProduct:
    external_id: str
    sku: str
    name: str
    price_cents: int = 0
    description: str | None = None
    inventory_item_id: str | None = None


@dataclass(frozen=True)
class RemoteStock:
    external_product_id: str
    quantity: int


@dataclass(frozen=True)
class RemoteOrderLine:
    quantity: int
    unit_price_cents: int
    external_product_id: str | None = None
    sku: str | None = None


@dataclass(frozen=True)
class RemoteOrder:
    external_id: str
    lines: tuple = ()
    status: str = "pending"
    notes: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None


class ChannelAdapter:
    """
    Base class for channel adapters.

    Subclasses set channel_type and capabilities and implement the fetch/push
    methods they support. Each call opens its own short-lived httpx.Client so
    that adapters hold no per-request state and one instance can serve every
    worker thread.
    """

    channel_type: str = ""
    capabilities: frozenset = frozenset()

    def __init__(self, *, timeout: float = 15.0, transport: httpx.BaseTransport | None = None):
        self.timeout = timeout
        self.transport = transport

    def supports(self, resource: str, direction: str) -> bool:
        return (resource, direction) in self.capabilities

    # -- HTTP plumbing -----------------------------------------------------

    def base_url(self, ctx: ChannelContext) -> str:
        raise NotImplementedError

    def auth_headers(self, ctx: ChannelContext) -> dict:
        return {}

    def auth(self, ctx: ChannelContext):
        return None

    def client(self, ctx: ChannelContext) -> httpx.Client:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        headers.update(self.auth_headers(ctx))
        return httpx.Client(
            base_url=self.base_url(ctx),
            headers=headers,
            auth=self.auth(ctx),
            timeout=self.timeout,
            transport=self.transport,
        )

    def request(self, ctx: ChannelContext, method: str, path: str, **kwargs) -> Any:
        """Perform one call and return the decoded JSON body (None for empty bodies)."""
        with self.client(ctx) as client:
            response = client.request(method, path, **kwargs)
        if response.is_error:
            logger.warning(
                "%s %s %s failed for channel %s: HTTP %s",
                self.channel_type, method, path, ctx.channel_id, response.status_code,
            )
            raise ChannelAdapterError(
                f"{self.channel_type} API error: HTTP {response.status_code} on {path}"
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise ChannelAdapterError(f"{self.channel_type} API returned invalid JSON on {path}")

    # -- capability surface --------------------------------------------------

    def test_connection(self, ctx: ChannelContext) -> ConnectionResult:
        raise NotImplementedError

    def fetch_products(self, ctx: ChannelContext) -> list[RemoteProduct]:
        raise UnsupportedOperation(f"Product sync not implemented for {self.channel_type}")

    def fetch_inventory(self, ctx: ChannelContext) -> list[RemoteStock]:
        raise UnsupportedOperation(f"Inventory sync not implemented for {self.channel_type}")

    def fetch_orders(self, ctx: ChannelContext) -> list[RemoteOrder]:
        raise UnsupportedOperation(f"Order sync not implemented for {self.channel_type}")

    def push_products(self, ctx: ChannelContext, products: list[dict]) -> int:
        raise UnsupportedOperation(f"Product export not implemented for {self.channel_type}")

    def push_inventory(self, ctx: ChannelContext, levels: list[dict]) -> int:
        raise UnsupportedOperation(f"Inventory export not implemented for {self.channel_type}")

    def pull_products(self, ctx: ChannelContext) -> int:
        return catalog_service.upsert_channel_products(ctx, self.fetch_products(ctx), commit=True)

    def pull_inventory(self, ctx: ChannelContext) -> int:
        return catalog_service.apply_channel_inventory(ctx, self.fetch_inventory(ctx), commit=True)

    def pull_orders(self, ctx: ChannelContext) -> int:
        return catalog_service.import_channel_orders(ctx, self.fetch_orders(ctx), commit=True)
