# Overview: Siigo accounting ERP adapter.

from __future__ import annotations

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


def _results(data) -> list:
    """Siigo list endpoints return either a bare list or {"results": [...]}."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("results") or []
    return []


def _price(item: dict):
    if item.get("price") is not None:
        return item["price"]
    # {"prices": [{"price_list": [{"position": 1, "value": 1200.5}]}]}
    for price in item.get("prices") or []:
        for entry in price.get("price_list") or []:
            if entry.get("value") is not None:
                return entry["value"]
    return None


class SiigoAdapter(ChannelAdapter):
    """
    Siigo REST API.

    Credential: bearer token from channel.access_token or config["api_key"].
    Base URL: config["base_url"] or SIIGO_API_BASE_URL.
    """

    channel_type = "siigo"
    capabilities = frozenset({
        (PRODUCTS, FROM_CHANNEL),
        (PRODUCTS, TO_CHANNEL),
        (INVENTORY, FROM_CHANNEL),
        (ORDERS, FROM_CHANNEL),
    })
    display_name = "Siigo"
    invalid_credentials_message = "Invalid API key"

    def __init__(self, *, default_base_url: str = "https://api.siigo.com", **kwargs):
        super().__init__(**kwargs)
        self.default_base_url = default_base_url

    def base_url(self, ctx) -> str:
        return (ctx.config.get("base_url") or self.default_base_url).rstrip("/")

    def auth_headers(self, ctx) -> dict:
        token = ctx.access_token or ctx.config.get("api_key")
        if not token:
            raise ChannelAdapterError("Siigo API key missing")
        return {"Authorization": f"Bearer {token}"}

    def test_connection(self, ctx) -> ConnectionResult:
        try:
            with self.client(ctx) as client:
                response = client.get("/v1/companies")
        except ChannelAdapterError as exc:
            return ConnectionResult(False, str(exc))
        except httpx.HTTPError as exc:
            return ConnectionResult(False, f"Connection failed: {exc}")

        if response.status_code == 401:
            return ConnectionResult(False, self.invalid_credentials_message)
        if response.is_error:
            return ConnectionResult(False, f"{self.channel_type} API error: HTTP {response.status_code}")

        return ConnectionResult(True, f"{self.display_name} connection successful")

    def fetch_products(self, ctx) -> list[RemoteProduct]:
        products = []
        for item in _results(self.request(ctx, "GET", "/v1/products")):
            external_id = str(item["id"])
            products.append(RemoteProduct(
                external_id=external_id,
                sku=item.get("code") or f"{self.channel_type}-{external_id}",
                name=item.get("name") or item.get("code") or external_id,
                price_cents=to_minor_units(_price(item)),
                description=item.get("description"),
            ))
        return products

    def fetch_inventory(self, ctx) -> list[RemoteStock]:
        levels = []
        for item in _results(self.request(ctx, "GET", "/v1/inventory")):
            product_id = item.get("product_id") or item.get("id")
            if product_id is None:
                continue
            quantity = item.get("quantity", item.get("available_quantity"))
            levels.append(RemoteStock(external_product_id=str(product_id), quantity=to_quantity(quantity)))
        return levels

    def fetch_orders(self, ctx) -> list[RemoteOrder]:
        orders = []
        for invoice in _results(self.request(ctx, "GET", "/v1/invoices")):
            customer = invoice.get("customer") or {}
            lines = tuple(
                RemoteOrderLine(
                    quantity=to_quantity(line.get("quantity")),
                    unit_price_cents=to_minor_units(line.get("price")),
                    sku=line.get("code") or None,
                )
                for line in invoice.get("items") or []
            )
            orders.append(RemoteOrder(
                external_id=str(invoice["id"]),
                lines=lines,
                status="confirmed",
                notes=invoice.get("observations"),
                customer_name=customer.get("name") if isinstance(customer.get("name"), str) else None,
            ))
        return orders

    def _remote_id_for_code(self, ctx, code: str) -> str | None:
        for item in _results(self.request(ctx, "GET", "/v1/products", params={"code": code})):
            if item.get("code") == code and item.get("id") is not None:
                return str(item["id"])
        return None

    def push_products(self, ctx, products: list[dict]) -> int:
        """
        Create products unknown to the ERP and update the rest.

        Products not linked to this channel are matched on the remote side by
        code (our sku), so repeated exports update instead of duplicating.
        """
        count = 0
        for product in products:
            body = {
                "code": product["sku"],
                "name": product["name"],
                "description": product.get("description") or "",
                "active": bool(product.get("is_active", True)),
                "prices": [{
                    "price_list": [{"position": 1, "value": product.get("price_cents", 0) / 100}],
                }],
            }
            if product.get("channel_id") == ctx.channel_id and product.get("external_id"):
                remote_id = product["external_id"]
            else:
                remote_id = self._remote_id_for_code(ctx, product["sku"])
            if remote_id:
                self.request(ctx, "PUT", f"/v1/products/{remote_id}", json=body)
            else:
                self.request(ctx, "POST", "/v1/products", json=body)
            count += 1
        return count
