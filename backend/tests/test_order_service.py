# Overview: Pytest coverage for the order fulfillment engine.

"""
Order Fulfillment Tests

Verifies that:
1. A manual order takes its stock in the same transaction that creates it
2. A failed order (stock, ownership, missing product) writes nothing except
   exactly one error SyncLog
3. Prices come from the catalog, never from the request
4. Callers without a membership on account_id are rejected before any write
"""

import pytest

from channelhub.extensions import db
from channelhub.models import Order, OrderItem, SyncLog
from channelhub.services import order_service
from channelhub.services.order_service import OrderError
from channelhub.services.tenant_service import TenantAccessError

from conftest import stock_of


def _manual(account_id, items, user_id, type="manual", notes=None):
    return order_service.create_manual_order(
        account_id=account_id,
        type=type,
        items=items,
        user_id=user_id,
        notes=notes,
    )


def _order_logs(status=None):
    query = db.session.query(SyncLog).filter_by(event_type="manual_order_created")
    if status:
        query = query.filter_by(status=status)
    return query.all()


class TestManualOrderScenario:
    """acc1 / p1 with stock 5: order 3, then a second order of 3 is rejected."""

    def test_first_order_takes_stock(self, db_session, account, user, product):
        order, items = _manual(account.id, [{"product_id": product.id, "quantity": 3}], user.id)

        assert order.status == "created"
        assert order.type == "manual"
        assert order.account_id == account.id
        assert len(items) == 1
        assert items[0].quantity == 3
        assert stock_of(product.id) == 2

        logs = _order_logs()
        assert len(logs) == 1
        assert logs[0].status == "success"
        assert logs[0].payload["order"]["id"] == order.id
        assert logs[0].payload["items"][0]["product_id"] == product.id

    def test_second_order_rejected_and_stock_kept(self, db_session, account, user, product):
        _manual(account.id, [{"product_id": product.id, "quantity": 3}], user.id)

        with pytest.raises(OrderError) as exc:
            _manual(account.id, [{"product_id": product.id, "quantity": 3}], user.id)

        assert exc.value.message == f"Not enough stock for product {product.id}"
        assert stock_of(product.id) == 2
        assert db_session.query(Order).count() == 1
        assert len(_order_logs("success")) == 1
        assert len(_order_logs("error")) == 1


class TestFailedOrdersWriteNothing:

    def test_over_quantity_commits_nothing(self, db_session, account, user, product):
        body_items = [{"product_id": product.id, "quantity": 6}]

        with pytest.raises(OrderError):
            _manual(account.id, body_items, user.id, notes="too many")

        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0
        assert stock_of(product.id) == 5

        logs = _order_logs()
        assert len(logs) == 1
        assert logs[0].status == "error"
        assert logs[0].payload["errorMessage"] == f"Not enough stock for product {product.id}"
        assert logs[0].payload["body"]["items"] == body_items
        assert logs[0].payload["body"]["notes"] == "too many"

    def test_one_short_line_fails_whole_order(self, db_session, account, user, make_product):
        plenty = make_product(account, "PLENTY", stock=100)
        scarce = make_product(account, "SCARCE", stock=1)

        with pytest.raises(OrderError) as exc:
            _manual(account.id, [
                {"product_id": plenty.id, "quantity": 10},
                {"product_id": scarce.id, "quantity": 2},
            ], user.id)

        assert str(scarce.id) in exc.value.message
        assert stock_of(plenty.id) == 100
        assert stock_of(scarce.id) == 1
        assert db_session.query(Order).count() == 0

    def test_missing_inventory_row_is_zero_stock(self, db_session, account, user, make_product):
        unstocked = make_product(account, "NOSTOCK")

        with pytest.raises(OrderError) as exc:
            _manual(account.id, [{"product_id": unstocked.id, "quantity": 1}], user.id)

        assert exc.value.message == f"Not enough stock for product {unstocked.id}"
        assert db_session.query(Order).count() == 0

    def test_cross_tenant_product_rejected(
        self, db_session, account, other_account, user, product, make_product
    ):
        foreign = make_product(other_account, "FOREIGN", stock=50)

        with pytest.raises(OrderError) as exc:
            _manual(account.id, [
                {"product_id": product.id, "quantity": 1},
                {"product_id": foreign.id, "quantity": 1},
            ], user.id)

        assert exc.value.message == "Products account_id does not match body.account_id"
        assert stock_of(product.id) == 5
        assert stock_of(foreign.id) == 50
        assert db_session.query(Order).count() == 0
        assert len(_order_logs("error")) == 1

    def test_unknown_product(self, db_session, account, user, product):
        with pytest.raises(OrderError) as exc:
            _manual(account.id, [{"product_id": 999999, "quantity": 1}], user.id)

        assert exc.value.message == "Some products not found"
        assert len(_order_logs("error")) == 1

    def test_duplicate_product_ids_rejected(self, db_session, account, user, product):
        with pytest.raises(OrderError) as exc:
            _manual(account.id, [
                {"product_id": product.id, "quantity": 1},
                {"product_id": product.id, "quantity": 1},
            ], user.id)

        assert exc.value.message == "Some products not found"
        assert stock_of(product.id) == 5


class TestManualOrderValidation:
    """Input errors are rejected before authorization; nothing is logged."""

    @pytest.mark.parametrize("items,message", [
        ([], "items must be a non-empty array"),
        (None, "items must be a non-empty array"),
        ([{"product_id": 1, "quantity": 0}], "Each item must have product_id and quantity > 0"),
        ([{"product_id": 1, "quantity": -2}], "Each item must have product_id and quantity > 0"),
        ([{"product_id": 1, "quantity": True}], "Each item must have product_id and quantity > 0"),
        ([{"product_id": 1, "quantity": 1.5}], "Each item must have product_id and quantity > 0"),
        ([{"product_id": 1, "quantity": "2"}], "Each item must have product_id and quantity > 0"),
        ([{"quantity": 1}], "Each item must have product_id and quantity > 0"),
    ])
    def test_invalid_items(self, db_session, account, user, items, message):
        with pytest.raises(OrderError) as exc:
            _manual(account.id, items, user.id)
        assert exc.value.message == message
        assert _order_logs() == []

    def test_invalid_type(self, db_session, account, user, product):
        with pytest.raises(OrderError) as exc:
            _manual(account.id, [{"product_id": product.id, "quantity": 1}], user.id, type="shopify")
        assert exc.value.message == "type must be 'manual' or 'whatsapp'"

    def test_missing_account_id(self, db_session, user, product):
        with pytest.raises(OrderError) as exc:
            _manual(None, [{"product_id": product.id, "quantity": 1}], user.id)
        assert exc.value.message == "account_id is required"

    def test_whatsapp_type_accepted(self, db_session, account, user, product):
        order, _ = _manual(account.id, [{"product_id": product.id, "quantity": 1}], user.id, type="whatsapp")
        assert order.type == "whatsapp"


class TestManualOrderAuthorization:

    def test_non_member_rejected_before_any_write(self, db_session, account, other_user, product):
        with pytest.raises(TenantAccessError) as exc:
            _manual(account.id, [{"product_id": product.id, "quantity": 1}], other_user.id)

        assert str(exc.value) == "Account not found for this user"
        assert stock_of(product.id) == 5
        assert db_session.query(Order).count() == 0
        assert _order_logs() == []


class TestOrderPricing:

    def test_unit_price_is_catalog_snapshot(self, db_session, account, user, make_product):
        p = make_product(account, "PRICED", price_cents=1250, stock=10)

        order, items = _manual(account.id, [
            {"product_id": p.id, "quantity": 2, "unit_price_cents": 1},
        ], user.id)

        assert items[0].unit_price_cents == 1250
        assert items[0].total_price_cents == 2500
        assert order.total_amount_cents == 2500

        p.price_cents = 9999
        db_session.commit()
        db_session.expire_all()
        item = db_session.query(OrderItem).filter_by(order_id=order.id).one()
        assert item.unit_price_cents == 1250

    def test_total_sums_lines(self, db_session, account, user, make_product):
        a = make_product(account, "A", price_cents=300, stock=10)
        b = make_product(account, "B", price_cents=150, stock=10)

        order, _ = _manual(account.id, [
            {"product_id": a.id, "quantity": 2},
            {"product_id": b.id, "quantity": 3},
        ], user.id)

        assert order.total_amount_cents == 300 * 2 + 150 * 3


class TestGeneralOrders:

    def test_general_order_is_pending_and_keeps_stock(self, db_session, account, user, product):
        order = order_service.create_order(
            account_id=account.id,
            items=[{"product_id": product.id, "quantity": 2}],
            user_id=user.id,
            customer_name="Ana",
        )

        assert order.status == "pending"
        assert order.total_amount_cents == 2000
        assert order.customer_name == "Ana"
        assert len(order.items) == 1
        assert stock_of(product.id) == 5

    def test_general_order_foreign_product(self, db_session, account, other_account, user, make_product):
        foreign = make_product(other_account, "FOREIGN")

        with pytest.raises(OrderError) as exc:
            order_service.create_order(
                account_id=account.id,
                items=[{"product_id": foreign.id, "quantity": 1}],
                user_id=user.id,
            )
        assert exc.value.message == f"Product {foreign.id} does not belong to this account"


class TestOrderStatus:

    def test_update_status(self, db_session, account, user, product):
        order, _ = _manual(account.id, [{"product_id": product.id, "quantity": 1}], user.id)

        updated = order_service.update_order_status(order_id=order.id, status="confirmed", user_id=user.id)
        assert updated.status == "confirmed"

    def test_invalid_status(self, db_session, account, user, product):
        order, _ = _manual(account.id, [{"product_id": product.id, "quantity": 1}], user.id)

        with pytest.raises(OrderError) as exc:
            order_service.update_order_status(order_id=order.id, status="lost", user_id=user.id)
        assert exc.value.status_code == 400
        assert exc.value.message == (
            "Invalid status. Must be one of: pending, confirmed, processing, shipped, delivered, cancelled"
        )

    def test_other_tenant_order_not_found(self, db_session, account, user, other_user, product):
        order, _ = _manual(account.id, [{"product_id": product.id, "quantity": 1}], user.id)

        with pytest.raises(OrderError) as exc:
            order_service.update_order_status(order_id=order.id, status="confirmed", user_id=other_user.id)
        assert exc.value.status_code == 404
        assert exc.value.message == "Order not found"


class TestListOrders:

    def test_newest_first_with_items(self, db_session, account, user, product):
        first, _ = _manual(account.id, [{"product_id": product.id, "quantity": 1}], user.id)
        second, _ = _manual(account.id, [{"product_id": product.id, "quantity": 1}], user.id, type="whatsapp")

        orders = order_service.list_orders(account_id=account.id, user_id=user.id)
        assert [o.id for o in orders] == [second.id, first.id]

        data = orders[0].to_dict(include_items=True)
        assert data["order_items"][0]["product"] == {"id": product.id, "name": product.name, "sku": "P1"}

    def test_filter_by_type(self, db_session, account, user, product):
        _manual(account.id, [{"product_id": product.id, "quantity": 1}], user.id)
        whatsapp, _ = _manual(account.id, [{"product_id": product.id, "quantity": 1}], user.id, type="whatsapp")

        orders = order_service.list_orders(account_id=account.id, user_id=user.id, type="whatsapp")
        assert [o.id for o in orders] == [whatsapp.id]
