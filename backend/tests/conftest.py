"""
Pytest fixtures for the billing backend tests.

Provides an in-memory database, a shop with owner/manager/cashier staff,
a stocked saree, a recording notifier and bearer-token helpers.
"""

import pytest
from app import create_app
from app.extensions import db
from app.models.auth import ROLE_CASHIER, ROLE_MANAGER, ROLE_OWNER
from app.services import inventory_service, session_service, shop_service, supplier_service
from app.services.auth_service import create_user
from app.services.notification_service import Notifier

PASSWORD = "Password123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'MAIL_PROVIDER': 'console',
    'NOTIFICATIONS_ASYNC': False,
    'BCRYPT_ROUNDS': 4,
}


class RecordingNotifier(Notifier):
    """Keeps every message instead of delivering it."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, to, subject, body):
        if self.fail:
            raise RuntimeError("mail server down")
        self.sent.append({"to": to, "subject": subject, "body": body})


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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


@pytest.fixture(scope='function')
def notifier(app):
    """Swap the app's mail transport for a recorder."""
    original = app.extensions["notifier"]
    recorder = RecordingNotifier()
    app.extensions["notifier"] = recorder
    yield recorder
    app.extensions["notifier"] = original


def _user(name, email, role):
    return create_user(name, email, PASSWORD, role, bcrypt_rounds=4)


@pytest.fixture(scope='function')
def owner(db_session):
    return _user("Owner One", "owner@shop.test", ROLE_OWNER)


@pytest.fixture(scope='function')
def manager(db_session):
    return _user("Manager One", "manager@shop.test", ROLE_MANAGER)


@pytest.fixture(scope='function')
def cashier(db_session):
    return _user("Cashier One", "cashier@shop.test", ROLE_CASHIER)


@pytest.fixture(scope='function')
def other_cashier(db_session):
    return _user("Cashier Two", "cashier2@shop.test", ROLE_CASHIER)


@pytest.fixture(scope='function')
def shop(owner, manager, cashier, other_cashier):
    """Shop with 10% tax; manager and both cashiers have joined."""
    shop = shop_service.create_shop(owner, {"name": "Silk House", "tax_percentage": "10"})
    for member in (manager, cashier, other_cashier):
        shop_service.join_shop(member, shop.secret_code)
    return shop


@pytest.fixture(scope='function')
def other_shop(db_session):
    """A second tenant with its own owner."""
    other_owner = _user("Owner Two", "owner2@shop.test", ROLE_OWNER)
    return shop_service.create_shop(other_owner, {"name": "Cotton Corner", "tax_percentage": "0"})


@pytest.fixture(scope='function')
def saree(shop, owner):
    """Item A: price 100.00, 5 in stock."""
    return inventory_service.create_saree(shop.id, owner, {
        "item_code": "A-001",
        "name": "Kanjivaram A",
        "price": "100.00",
        "stock_quantity": 5,
    })


@pytest.fixture(scope='function')
def saree_b(shop, owner):
    """Item B: price 49.99, 20 in stock."""
    return inventory_service.create_saree(shop.id, owner, {
        "item_code": "B-002",
        "name": "Chanderi B",
        "price": "49.99",
        "stock_quantity": 20,
    })


@pytest.fixture(scope='function')
def supplier(shop, owner):
    return supplier_service.create_supplier(shop.id, owner, {
        "name": "Kanchi Weavers",
        "email": "orders@weavers.test",
    })


@pytest.fixture(scope='function')
def headers_for(db_session):
    """headers_for(user) -> Authorization header dict with a fresh token."""
    def _headers(user):
        _, token = session_service.create_session(user.id)
        return auth_headers(token)
    return _headers


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
