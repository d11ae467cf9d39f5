# Overview: HTTP-level tests for /api/channels and /api/sync.

import httpx
import pytest

from channelhub.channels import build_default_registry
from channelhub.extensions import CHANNEL_REGISTRY_KEY
from channelhub.models import Channel, Product, SyncLog
from channelhub.services import channel_service


@pytest.fixture
def mock_shopify(app, monkeypatch):
    """Swap the app registry for one whose adapters talk to an httpx.MockTransport."""
    routes = {}

    def handler(request):
        status, body = routes.get(request.url.path, (404, {"errors": "Not Found"}))
        return httpx.Response(status, json=body)

    registry = build_default_registry(app.config, transport=httpx.MockTransport(handler))
    monkeypatch.setitem(app.extensions, CHANNEL_REGISTRY_KEY, registry)
    return routes


class TestConnectChannel:

    def test_connect_with_token_is_connected(self, client, db_session, account, headers):
        r = client.post("/api/channels", json={
            "account_id": account.id,
            "type": "shopify",
            "external_id": "acme",
            "access_token": "shpat_secret",
            "config": {"location_id": 77, "api_key": "hidden"},
        }, headers=headers)

        assert r.status_code == 201
        channel = r.get_json()["channel"]
        assert channel["status"] == "connected"
        assert channel["has_access_token"] is True
        assert "access_token" not in channel
        assert channel["config"] == {"location_id": 77}

        log = db_session.query(SyncLog).filter_by(event_type="shopify_connection_established").one()
        assert log.channel_id == channel["id"]

    def test_connect_without_credentials_is_disconnected(self, client, db_session, account, headers):
        r = client.post("/api/channels", json={
            "account_id": account.id, "type": "erp", "external_id": "erp-1",
        }, headers=headers)

        assert r.status_code == 201
        assert r.get_json()["channel"]["status"] == "disconnected"
        assert db_session.query(SyncLog).count() == 0

    def test_missing_fields(self, client, db_session, headers):
        r = client.post("/api/channels", json={"type": "shopify", "external_id": "x"}, headers=headers)

        assert r.status_code == 400
        assert r.get_json()["error"] == "account_id, type, and external_id are required"

    def test_invalid_type(self, client, db_session, account, headers):
        r = client.post("/api/channels", json={"account_id": account.id, "type": "magento", "external_id": "x"}, headers=headers)

        assert r.status_code == 400
        assert r.get_json()["error"] == (
            "Invalid type. Must be one of: shopify, siigo, erp, woocommerce, prestashop"
        )

    def test_unknown_account(self, client, db_session, headers):
        r = client.post("/api/channels", json={"account_id": 9999, "type": "shopify", "external_id": "x"}, headers=headers)

        assert r.status_code == 401
        assert r.get_json()["error"] == "Invalid account_id: account does not exist"

    def test_other_tenant_account(self, client, db_session, account, other_headers):
        r = client.post("/api/channels", json={"account_id": account.id, "type": "shopify", "external_id": "x"}, headers=other_headers)
        assert r.status_code == 401


class TestManageChannels:

    def test_list_only_member_channels(self, client, db_session, account, other_account, make_channel, headers):
        mine = make_channel(account, "shopify")
        make_channel(other_account, "shopify")

        r = client.get("/api/channels", headers=headers)

        assert [c["id"] for c in r.get_json()["channels"]] == [mine.id]

    def test_update_recomputes_status(self, client, db_session, account, make_channel, headers):
        ch = make_channel(account, "siigo", status="disconnected")

        r = client.put(f"/api/channels/{ch.id}", json={"config": {"api_key": "k"}}, headers=headers)

        assert r.status_code == 200
        assert r.get_json()["channel"]["status"] == "connected"

    def test_update_other_tenant_is_404(self, client, db_session, account, make_channel, other_headers):
        ch = make_channel(account, "shopify")
        r = client.put(f"/api/channels/{ch.id}", json={"name": "mine now"}, headers=other_headers)
        assert r.status_code == 404

    def test_delete_unlinks_products(self, client, db_session, account, make_channel, make_product, headers):
        ch = make_channel(account, "shopify")
        p = make_product(account, "LINKED", external_id="101", channel_id=ch.id)

        r = client.delete(f"/api/channels/{ch.id}", headers=headers)

        assert r.status_code == 200
        db_session.expire_all()
        assert db_session.get(Channel, ch.id) is None
        assert db_session.get(Product, p.id).channel_id is None

    def test_delete_leaves_sync_history_as_written(self, client, db_session, account, make_channel, headers):
        ch = make_channel(account, "shopify")
        log = SyncLog(
            account_id=account.id,
            channel_id=ch.id,
            event_type="manual_product_sync_from_channel",
            status="completed",
            payload={"channel_id": ch.id, "products_synced": 2},
        )
        db_session.add(log)
        db_session.commit()
        channel_id, log_id = ch.id, log.id

        r = client.delete(f"/api/channels/{channel_id}", headers=headers)

        assert r.status_code == 200
        db_session.expire_all()
        kept = db_session.get(SyncLog, log_id)
        assert kept.channel_id == channel_id
        assert kept.payload == {"channel_id": channel_id, "products_synced": 2}
        assert db_session.query(SyncLog).filter_by(account_id=account.id).count() == 1


class TestChannelConnectionTest:

    def test_success_marks_connected(self, client, db_session, account, make_channel, headers, mock_shopify):
        mock_shopify["/admin/api/2024-01/shop.json"] = (200, {"shop": {"name": "Acme", "domain": "acme.com"}})
        ch = make_channel(account, "shopify", status="error", external_id="acme", access_token="tok", last_error="old")

        r = client.post(f"/api/channels/{ch.id}/test", headers=headers)

        assert r.status_code == 200
        body = r.get_json()
        assert body["channel_id"] == ch.id
        assert body["test_result"]["success"] is True
        assert body["test_result"]["details"]["shop_name"] == "Acme"
        db_session.expire_all()
        channel = db_session.get(Channel, ch.id)
        assert channel.status == "connected"
        assert channel.last_error is None

    def test_failure_marks_error(self, client, db_session, account, make_channel, headers, mock_shopify):
        mock_shopify["/admin/api/2024-01/shop.json"] = (401, {})
        ch = make_channel(account, "shopify", external_id="acme", access_token="bad")

        r = client.post(f"/api/channels/{ch.id}/test", headers=headers)

        assert r.get_json()["test_result"]["message"] == "Invalid access token"
        db_session.expire_all()
        assert db_session.get(Channel, ch.id).status == "error"
        assert db_session.get(Channel, ch.id).last_error == "Invalid access token"

    def test_type_without_adapter(self, db_session, app, account, user, make_channel):
        ch = make_channel(account, "prestashop")

        result = channel_service.test_channel_connection(
            channel_id=ch.id, user_id=user.id, registry=app.extensions[CHANNEL_REGISTRY_KEY],
        )

        assert result == {"success": False, "message": "Test not implemented for prestashop", "details": {}}


class TestSyncEndpoints:

    def test_sync_products_through_mock_shop(self, client, db_session, account, make_channel, headers, mock_shopify):
        mock_shopify["/admin/api/2024-01/products.json"] = (200, {"products": [
            {"id": 101, "title": "Shirt", "variants": [{"sku": "SHIRT", "price": "19.99"}]},
        ]})
        ch = make_channel(account, "shopify", external_id="acme", access_token="tok")

        r = client.post("/api/sync/products", json={"account_id": account.id}, headers=headers)

        assert r.status_code == 200
        body = r.get_json()
        assert body["success"] is True
        assert body["results"] == [{
            "channel_id": ch.id,
            "channel_type": "shopify",
            "success": True,
            "message": "Synced 1 product records",
            "products_synced": 1,
        }]
        assert db_session.query(Product).filter_by(sku="SHIRT").one().price_cents == 1999

    def test_all_failed_is_still_200(self, client, db_session, account, make_channel, headers):
        make_channel(account, "woocommerce")

        r = client.post("/api/sync/inventory", json={"account_id": account.id}, headers=headers)

        assert r.status_code == 200
        body = r.get_json()
        assert body["success"] is False
        assert body["results"][0]["message"] == "Inventory sync not implemented for woocommerce"
        assert body["results"][0]["inventory_updated"] == 0

    def test_unknown_channel_is_404(self, client, db_session, account, headers):
        r = client.post("/api/sync/orders", json={"account_id": account.id, "channel_id": 555}, headers=headers)

        assert r.status_code == 404
        assert r.get_json() == {"success": False, "error": "Channel not found or not connected"}

    def test_non_member(self, client, db_session, account, other_headers):
        r = client.post("/api/sync/products", json={"account_id": account.id}, headers=other_headers)
        assert r.status_code == 401

    def test_missing_account_id(self, client, db_session, headers):
        r = client.post("/api/sync/products", json={}, headers=headers)
        assert r.status_code == 400

    def test_status(self, client, db_session, account, make_channel, headers):
        make_channel(account, "woocommerce")
        client.post("/api/sync/products", json={"account_id": account.id}, headers=headers)

        r = client.get(f"/api/sync/status?account_id={account.id}", headers=headers)

        assert r.status_code == 200
        body = r.get_json()
        assert body["channels"][0]["status"] == "error"
        assert body["recent_syncs"][0]["status"] == "error"
