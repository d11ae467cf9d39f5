# Overview: Pytest coverage for the Shopify, Siigo and ERP adapters over httpx.MockTransport.

import base64
import json

import httpx
import pytest

from channelhub.channels import build_default_registry
from channelhub.channels.base import ChannelAdapterError, ChannelContext, to_minor_units
from channelhub.channels.erp import ErpAdapter
from channelhub.channels.shopify import ShopifyAdapter, shop_domain
from channelhub.channels.siigo import SiigoAdapter
from channelhub.models import Product


SHOPIFY_PRODUCTS = {
    "products": [
        {
            "id": 101,
            "title": "Blue Shirt",
            "body_html": "<p>cotton</p>",
            "variants": [{"sku": "SHIRT-BLUE", "price": "19.99", "inventory_item_id": 9001}],
        },
        {
            "id": 102,
            "title": "Gift Card",
            "variants": [{"sku": "", "price": "10.005", "inventory_item_id": 9002}],
        },
    ]
}


class Recorder:
    """MockTransport handler that records requests and routes by path."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"errors": "Not Found"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)


def _ctx(type="shopify", external_id="acme", access_token="shpat_123", config=None, channel_id=1, account_id=1):
    return ChannelContext(
        channel_id=channel_id,
        account_id=account_id,
        type=type,
        external_id=external_id,
        access_token=access_token,
        config=config or {},
    )


def _shopify(routes):
    recorder = Recorder(routes)
    return ShopifyAdapter(transport=httpx.MockTransport(recorder)), recorder


class TestMinorUnits:

    @pytest.mark.parametrize("value,expected", [
        ("19.99", 1999),
        (19.99, 1999),
        ("10.005", 1001),
        ("0.004", 0),
        (1200.5, 120050),
        (None, 0),
        ("", 0),
    ])
    def test_half_up(self, value, expected):
        assert to_minor_units(value) == expected

    def test_garbage_rejected(self):
        with pytest.raises(ChannelAdapterError):
            to_minor_units("ten dollars")


class TestShopifyDomain:

    @pytest.mark.parametrize("external_id,expected", [
        ("acme", "acme.myshopify.com"),
        ("ACME.myshopify.com", "acme.myshopify.com"),
        ("https://shop.example.com/", "shop.example.com"),
    ])
    def test_shop_domain(self, external_id, expected):
        assert shop_domain(external_id) == expected


class TestShopifyConnection:

    def test_success_reports_shop(self):
        adapter, recorder = _shopify({
            "/admin/api/2024-01/shop.json": (200, {"shop": {"name": "Acme", "domain": "acme.com"}}),
        })

        result = adapter.test_connection(_ctx())

        assert result.success is True
        assert result.message == "Shopify connection successful"
        assert result.details == {"shop_name": "Acme", "domain": "acme.com"}
        sent = recorder.requests[0]
        assert sent.url.host == "acme.myshopify.com"
        assert sent.headers["X-Shopify-Access-Token"] == "shpat_123"

    def test_unauthorized(self):
        adapter, _ = _shopify({"/admin/api/2024-01/shop.json": (401, {"errors": "bad"})})

        result = adapter.test_connection(_ctx())

        assert result.success is False
        assert result.message == "Invalid access token"

    def test_missing_token_makes_no_request(self):
        adapter, recorder = _shopify({})

        result = adapter.test_connection(_ctx(access_token=None))

        assert result.success is False
        assert result.message == "Shopify access token missing"
        assert recorder.requests == []


class TestShopifyFetch:

    def test_products_mapping(self):
        adapter, recorder = _shopify({"/admin/api/2024-01/products.json": (200, SHOPIFY_PRODUCTS)})

        products = adapter.fetch_products(_ctx())

        assert [p.external_id for p in products] == ["101", "102"]
        assert products[0].sku == "SHIRT-BLUE"
        assert products[0].price_cents == 1999
        assert products[0].inventory_item_id == "9001"
        assert products[1].sku == "shopify-102"
        assert products[1].price_cents == 1001
        assert recorder.requests[0].url.params["limit"] == "250"

    def test_inventory_sums_levels_per_product(self):
        adapter, recorder = _shopify({
            "/admin/api/2024-01/products.json": (200, SHOPIFY_PRODUCTS),
            "/admin/api/2024-01/inventory_levels.json": (200, {"inventory_levels": [
                {"inventory_item_id": 9001, "available": 4},
                {"inventory_item_id": 9001, "available": 3},
                {"inventory_item_id": 9002, "available": None},
            ]}),
        })

        levels = adapter.fetch_inventory(_ctx(config={"location_id": 77}))

        assert {(lvl.external_product_id, lvl.quantity) for lvl in levels} == {("101", 7), ("102", 0)}
        params = recorder.requests[1].url.params
        assert params["inventory_item_ids"] == "9001,9002"
        assert params["location_ids"] == "77"

    def test_orders_mapping(self):
        adapter, _ = _shopify({"/admin/api/2024-01/orders.json": (200, {"orders": [{
            "id": 5001,
            "note": "gift",
            "email": "ana@example.com",
            "customer": {"first_name": "Ana", "last_name": "Diaz"},
            "line_items": [{"product_id": 101, "sku": "SHIRT-BLUE", "quantity": 2, "price": "19.99"}],
        }]})})

        orders = adapter.fetch_orders(_ctx())

        assert orders[0].external_id == "5001"
        assert orders[0].status == "pending"
        assert orders[0].customer_name == "Ana Diaz"
        assert orders[0].lines[0].external_product_id == "101"
        assert orders[0].lines[0].unit_price_cents == 1999

    def test_http_error_raises_adapter_error(self):
        adapter, _ = _shopify({"/admin/api/2024-01/products.json": (500, {})})

        with pytest.raises(ChannelAdapterError) as exc:
            adapter.fetch_products(_ctx())
        assert "HTTP 500" in str(exc.value)


class TestShopifyPush:

    def test_push_inventory_requires_location(self):
        adapter, recorder = _shopify({})

        with pytest.raises(ChannelAdapterError) as exc:
            adapter.push_inventory(_ctx(), [{"external_id": "101", "channel_id": 1, "quantity": 3}])
        assert str(exc.value) == "Shopify location_id missing in channel config"
        assert recorder.requests == []

    def test_push_inventory_sets_linked_levels(self):
        adapter, recorder = _shopify({
            "/admin/api/2024-01/products.json": (200, SHOPIFY_PRODUCTS),
            "/admin/api/2024-01/inventory_levels/set.json": (200, {"inventory_level": {}}),
        })

        count = adapter.push_inventory(_ctx(config={"location_id": "77"}), [
            {"external_id": "101", "channel_id": 1, "quantity": 3},
            {"external_id": "101", "channel_id": 2, "quantity": 9},
            {"external_id": None, "channel_id": None, "quantity": 1},
        ])

        assert count == 1
        sent = [r for r in recorder.requests if r.method == "POST"]
        assert json.loads(sent[0].content) == {"location_id": 77, "inventory_item_id": 9001, "available": 3}

    def test_push_products_only_updates_linked(self):
        adapter, recorder = _shopify({
            "/admin/api/2024-01/products/101.json": (200, {"product": {}}),
        })

        count = adapter.push_products(_ctx(), [
            {"external_id": "101", "channel_id": 1, "name": "Shirt", "description": None},
            {"external_id": None, "channel_id": None, "name": "Local only"},
        ])

        assert count == 1
        assert recorder.requests[0].method == "PUT"


class TestShopifyPull:

    def test_pull_products_is_idempotent(self, db_session, account):
        adapter, _ = _shopify({"/admin/api/2024-01/products.json": (200, SHOPIFY_PRODUCTS)})
        ctx = _ctx(account_id=account.id, channel_id=None)

        assert adapter.pull_products(ctx) == 2
        assert adapter.pull_products(ctx) == 2

        products = db_session.query(Product).filter_by(account_id=account.id).order_by(Product.external_id).all()
        assert [(p.external_id, p.sku, p.price_cents) for p in products] == [
            ("101", "SHIRT-BLUE", 1999),
            ("102", "shopify-102", 1001),
        ]

    def test_pull_adopts_existing_sku(self, db_session, account, make_product):
        local = make_product(account, "SHIRT-BLUE", price_cents=500)
        adapter, _ = _shopify({"/admin/api/2024-01/products.json": (200, SHOPIFY_PRODUCTS)})

        adapter.pull_products(_ctx(account_id=account.id, channel_id=None))

        db_session.expire_all()
        adopted = db_session.get(Product, local.id)
        assert adopted.external_id == "101"
        assert adopted.price_cents == 1999
        assert db_session.query(Product).filter_by(account_id=account.id).count() == 2


class TestSiigo:

    def _adapter(self, routes):
        recorder = Recorder(routes)
        return SiigoAdapter(default_base_url="https://siigo.test", transport=httpx.MockTransport(recorder)), recorder

    def test_bearer_from_config_api_key(self):
        adapter, recorder = self._adapter({"/v1/companies": (200, {})})

        result = adapter.test_connection(_ctx(type="siigo", access_token=None, config={"api_key": "k-1"}))

        assert result.success is True
        assert result.message == "Siigo connection successful"
        assert recorder.requests[0].headers["Authorization"] == "Bearer k-1"

    def test_invalid_key(self):
        adapter, _ = self._adapter({"/v1/companies": (401, {})})

        result = adapter.test_connection(_ctx(type="siigo", access_token="bad"))

        assert result.message == "Invalid API key"

    @pytest.mark.parametrize("body", [
        [{"id": "a1", "code": "C-1", "name": "Widget", "price": 12.5}],
        {"results": [{"id": "a1", "code": "C-1", "name": "Widget",
                      "prices": [{"price_list": [{"position": 1, "value": 12.5}]}]}]},
    ])
    def test_products_accept_both_list_shapes(self, body):
        adapter, _ = self._adapter({"/v1/products": (200, body)})

        products = adapter.fetch_products(_ctx(type="siigo"))

        assert len(products) == 1
        assert products[0].external_id == "a1"
        assert products[0].sku == "C-1"
        assert products[0].price_cents == 1250

    def test_inventory_export_unsupported(self):
        adapter, _ = self._adapter({})
        assert adapter.supports("inventory", "to_channel") is False

    def test_repeated_product_export_creates_once(self):
        remote = []

        def products(request):
            if request.method == "POST":
                created = dict(json.loads(request.content), id=f"r-{len(remote) + 1}")
                remote.append(created)
                return httpx.Response(201, json=created)
            code = request.url.params.get("code")
            return httpx.Response(200, json={"results": [p for p in remote if p["code"] == code]})

        adapter, recorder = self._adapter({
            "/v1/products": products,
            "/v1/products/r-1": (200, {"id": "r-1"}),
        })
        local = [{"sku": "LOCAL-1", "name": "Local", "price_cents": 1250, "external_id": None, "channel_id": None}]

        assert adapter.push_products(_ctx(type="siigo"), local) == 1
        assert adapter.push_products(_ctx(type="siigo"), local) == 1

        assert len(remote) == 1
        assert remote[0]["prices"][0]["price_list"][0]["value"] == 12.5
        writes = [(r.method, r.url.path) for r in recorder.requests if r.method != "GET"]
        assert writes == [("POST", "/v1/products"), ("PUT", "/v1/products/r-1")]


class TestErp:

    def _adapter(self, routes, default_base_url=""):
        recorder = Recorder(routes)
        return ErpAdapter(default_base_url=default_base_url, transport=httpx.MockTransport(recorder)), recorder

    def test_missing_config(self):
        adapter, recorder = self._adapter({})

        result = adapter.test_connection(_ctx(type="erp", access_token=None, config={"username": "u", "password": "p"}))

        assert result.success is False
        assert result.message == "ERP configuration missing"
        assert recorder.requests == []

    def test_missing_credentials(self):
        adapter, _ = self._adapter({}, default_base_url="https://erp.test")

        result = adapter.test_connection(_ctx(type="erp", access_token=None))

        assert result.message == "ERP configuration missing"

    def test_basic_auth(self):
        adapter, recorder = self._adapter({"/v1/companies": (200, [])})

        result = adapter.test_connection(_ctx(type="erp", access_token=None, config={
            "base_url": "https://erp.test/",
            "username": "api",
            "password": "secret",
        }))

        assert result.success is True
        assert result.message == "ERP connection successful"
        expected = "Basic " + base64.b64encode(b"api:secret").decode()
        assert recorder.requests[0].headers["Authorization"] == expected

    def test_unauthorized(self):
        adapter, _ = self._adapter({"/v1/companies": (401, {})}, default_base_url="https://erp.test")

        result = adapter.test_connection(_ctx(type="erp", access_token=None, config={"username": "u", "password": "p"}))

        assert result.message == "Invalid credentials"


class TestDefaultRegistry:

    def test_builtin_types(self):
        registry = build_default_registry({})
        assert registry.types() == ["erp", "shopify", "siigo"]
        assert "woocommerce" not in registry
        assert registry.get("prestashop") is None
