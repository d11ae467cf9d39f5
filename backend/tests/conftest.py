"""
Pytest fixtures for ChannelHub backend tests.

Provides test database setup, two isolated tenants with one member each,
catalog/stock helpers and a bearer-token helper.
"""

import pytest
from channelhub import create_app
from channelhub.extensions import db
from channelhub.models import Account, AccountMembership, User, Product, Inventory, Channel, DEFAULT_WAREHOUSE
from channelhub.services.auth_service import hash_password
from channelhub.services.session_service import create_session

TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SYNC_MAX_WORKERS': 4,
        'SYNC_BATCH_TIMEOUT': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_account(session, name, slug):
    account = Account(name=name, slug=slug)
    session.add(account)
    session.commit()
    return account


def _make_member(session, account, email, password_hash, role="owner"):
    user = User(email=email, full_name=email.split("@")[0], password_hash=password_hash)
    session.add(user)
    session.flush()
    session.add(AccountMembership(account_id=account.id, user_id=user.id, role=role))
    session.commit()
    return user


@pytest.fixture(scope='function')
def account(db_session):
    """Account acc1 (first tenant)."""
    return _make_account(db_session, "Acc One", "acc1")


@pytest.fixture(scope='function')
def other_account(db_session):
    """Account acc2 (second tenant)."""
    return _make_account(db_session, "Acc Two", "acc2")


@pytest.fixture(scope='function')
def user(db_session, account, password_hash):
    """Owner of acc1."""
    return _make_member(db_session, account, "owner@acc1.test", password_hash)


@pytest.fixture(scope='function')
def other_user(db_session, other_account, password_hash):
    """Owner of acc2; no membership on acc1."""
    return _make_member(db_session, other_account, "owner@acc2.test", password_hash)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: product with an optional default-warehouse stock row."""
    def _make(account, sku, price_cents=1000, stock=None, **fields):
        product = Product(account_id=account.id, sku=sku, name=fields.pop("name", sku), price_cents=price_cents, **fields)
        db_session.add(product)
        db_session.flush()
        if stock is not None:
            db_session.add(Inventory(product_id=product.id, warehouse=DEFAULT_WAREHOUSE, quantity=stock))
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product(account, make_product):
    """p1 in acc1: price 1000, stock 5."""
    return make_product(account, "P1", price_cents=1000, stock=5)


@pytest.fixture(scope='function')
def make_channel(db_session):
    def _make(account, type="shopify", status="connected", external_id=None, **fields):
        channel = Channel(
            account_id=account.id,
            type=type,
            external_id=external_id or f"{type}-ext",
            status=status,
            config=fields.pop("config", {}),
            **fields,
        )
        db_session.add(channel)
        db_session.commit()
        return channel
    return _make


def stock_of(product_id, warehouse=DEFAULT_WAREHOUSE):
    db.session.expire_all()
    row = db.session.query(Inventory).filter_by(product_id=product_id, warehouse=warehouse).first()
    return row.quantity if row else None


def token_for(user, account=None, role="owner") -> str:
    """Issue a bearer token directly (skips bcrypt login)."""
    _, token = create_session(user.id, account_id=account.id if account else None, role=role)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers(user, account):
    return auth_headers(token_for(user, account))


@pytest.fixture(scope='function')
def other_headers(other_user, other_account):
    return auth_headers(token_for(other_user, other_account))
