# Overview: Shopify Admin REST adapter.

from __future__ import annotations

import logging

import httpx

from .base import (
    ChannelAdapter,
    ChannelAdapterError,
    ConnectionResult,
    RemoteOrder,
    RemoteOrderLine,
    RemoteProduct,
    RemoteStock,
    PRODUCTS,
    INVENTORY,
    ORDERS,
    FROM_CHANNEL,
    TO_CHANNEL,
    to_minor_units,
    to_quantity,
)

logger = logging.getLogger(__name__)

# inventory_levels.json accepts at most 50 inventory_item_ids per call
INVENTORY_ITEM_BATCH = 50


def shop_domain(external_id: str) -> str:
    domain = (external_id or "").strip().lower()
    domain = domain.removeprefix("https://").removeprefix("http://").rstrip("/")
    if domain and "." not in domain:
        domain = f"{domain}.myshopify.com"
    return domain


def _order_status(payload: dict) -> str:
    if payload.get("cancelled_at"):
        return "cancelled"
    if payload.get("fulfillment_status") == "fulfilled":
        return "shipped"
    return "pending"


def _customer_name(payload: dict) -> str | None:
    customer = payload.get("customer") or {}
    parts = [customer.get("first_name"), customer.get("last_name")]
    name = " ".join(p for p in parts if p)
    return name or None


class ShopifyAdapter(ChannelAdapter):
    """
    Shopify store identified by its shop domain (channel.external_id).

    Credential: channel.access_token, sent as X-Shopify-Access-Token.
    Inventory export needs config["location_id"].
    """

    channel_type = "shopify"
    capabilities = frozenset({
        (PRODUCTS, FROM_CHANNEL),
        (PRODUCTS, TO_CHANNEL),
        (INVENTORY, FROM_CHANNEL),
        (INVENTORY, TO_CHANNEL),
        (ORDERS, FROM_CHANNEL),
    })

    def __init__(self, *, api_version: str = "2024-01", **kwargs):
        super().__init__(**kwargs)
        self.api_version = api_version

    def base_url(self, ctx) -> str:
        domain = shop_domain(ctx.external_id)
        if not domain:
            raise ChannelAdapterError("Shopify shop domain missing")
        return f"https://{domain}/admin/api/{self.api_version}"

    def auth_headers(self, ctx) -> dict:
        if not ctx.access_token:
            raise ChannelAdapterError("Shopify access token missing")
        return {"X-Shopify-Access-Token": ctx.access_token}

    def test_connection(self, ctx) -> ConnectionResult:
        try:
            with self.client(ctx) as client:
                response = client.get("/shop.json")
        except ChannelAdapterError as exc:
            return ConnectionResult(False, str(exc))
        except httpx.HTTPError as exc:
            return ConnectionResult(False, f"Connection failed: {exc}")

        if response.status_code == 401:
            return ConnectionResult(False, "Invalid access token")
        if response.is_error:
            return ConnectionResult(False, f"Shopify API error: HTTP {response.status_code}")

        shop = (response.json() or {}).get("shop") or {}
        return ConnectionResult(
            True,
            "Shopify connection successful",
            {"shop_name": shop.get("name"), "domain": shop.get("domain")},
        )

    def _products_payload(self, ctx) -> list[dict]:
        data = self.request(ctx, "GET", "/products.json", params={"limit": 250}) or {}
        return data.get("products") or []

    def fetch_products(self, ctx) -> list[RemoteProduct]:
        products = []
        for item in self._products_payload(ctx):
            product_id = str(item["id"])
            variants = item.get("variants") or [{}]
            first = variants[0]
            inventory_item_id = first.get("inventory_item_id")
            products.append(RemoteProduct(
                external_id=product_id,
                sku=first.get("sku") or f"shopify-{product_id}",
                name=item.get("title") or f"shopify-{product_id}",
                price_cents=to_minor_units(first.get("price")),
                description=item.get("body_html"),
                inventory_item_id=str(inventory_item_id) if inventory_item_id else None,
            ))
        return products

    def _inventory_item_map(self, ctx) -> dict[str, str]:
        """inventory_item_id -> product external id, first variant of each product."""
        mapping = {}
        for product in self.fetch_products(ctx):
            if product.inventory_item_id:
                mapping[product.inventory_item_id] = product.external_id
        return mapping

    def fetch_inventory(self, ctx) -> list[RemoteStock]:
        item_map = self._inventory_item_map(ctx)
        if not item_map:
            return []

        location_id = ctx.config.get("location_id")
        totals: dict[str, int] = {}
        item_ids = list(item_map)
        for start in range(0, len(item_ids), INVENTORY_ITEM_BATCH):
            batch = item_ids[start:start + INVENTORY_ITEM_BATCH]
            params = {"inventory_item_ids": ",".join(batch)}
            if location_id:
                params["location_ids"] = str(location_id)
            data = self.request(ctx, "GET", "/inventory_levels.json", params=params) or {}
            for level in data.get("inventory_levels") or []:
                product_id = item_map.get(str(level.get("inventory_item_id")))
                if product_id is None:
                    continue
                totals[product_id] = totals.get(product_id, 0) + to_quantity(level.get("available"))

        return [RemoteStock(external_product_id=pid, quantity=qty) for pid, qty in totals.items()]

    def fetch_orders(self, ctx) -> list[RemoteOrder]:
        data = self.request(ctx, "GET", "/orders.json", params={"status": "any", "limit": 250}) or {}
        orders = []
        for item in data.get("orders") or []:
            lines = tuple(
                RemoteOrderLine(
                    quantity=to_quantity(line.get("quantity")),
                    unit_price_cents=to_minor_units(line.get("price")),
                    external_product_id=str(line["product_id"]) if line.get("product_id") else None,
                    sku=line.get("sku") or None,
                )
                for line in item.get("line_items") or []
            )
            orders.append(RemoteOrder(
                external_id=str(item["id"]),
                lines=lines,
                status=_order_status(item),
                notes=item.get("note"),
                customer_name=_customer_name(item),
                customer_email=item.get("email"),
                customer_phone=item.get("phone"),
            ))
        return orders

    def push_products(self, ctx, products: list[dict]) -> int:
        """Update title and description of products previously imported from this shop."""
        count = 0
        for product in products:
            if product.get("channel_id") != ctx.channel_id or not product.get("external_id"):
                continue
            body = {
                "product": {
                    "id": int(product["external_id"]),
                    "title": product["name"],
                    "body_html": product.get("description") or "",
                }
            }
            self.request(ctx, "PUT", f"/products/{product['external_id']}.json", json=body)
            count += 1
        return count

    def push_inventory(self, ctx, levels: list[dict]) -> int:
        location_id = ctx.config.get("location_id")
        if not location_id:
            raise ChannelAdapterError("Shopify location_id missing in channel config")

        linked = [
            lvl for lvl in levels
            if lvl.get("external_id") and lvl.get("channel_id") == ctx.channel_id
        ]
        if not linked:
            return 0

        by_product = {pid: item_id for item_id, pid in self._inventory_item_map(ctx).items()}
        count = 0
        for level in linked:
            item_id = by_product.get(level["external_id"])
            if item_id is None:
                continue
            self.request(ctx, "POST", "/inventory_levels/set.json", json={
                "location_id": int(location_id),
                "inventory_item_id": int(item_id),
                "available": int(level["quantity"]),
            })
            count += 1
        return count
