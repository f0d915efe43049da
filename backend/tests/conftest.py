"""
Pytest fixtures for the storefront order engine tests.

Provides an in-memory application, per-test table wipe, seeded accounts and
products, a recording notification sink, and an authenticated test client.
"""

import pytest

from app import create_app
from app.extensions import db
from app.models import UserRole
from app.services import catalog_service, notification_service, session_service, user_service


TEST_PASSWORD = "Password123!"


class RecordingNotificationSink(notification_service.NotificationSink):
    """Keeps every message in memory; optionally raises to simulate delivery failure."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages = []

    def notify(self, user_id, message):
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.messages.append((user_id, message))

    def for_user(self, user_id):
        return [m for uid, m in self.messages if uid == user_id]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'RETRY_BACKOFF_SECONDS': 0.01,
    })

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

        app.config['PAY_ON_DELIVERY_ENABLED'] = True
        app.config['POD_DIRECT_APPROVAL'] = True

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def sink(app, db_session):
    """Install a recording notification sink for the test."""
    recorder = RecordingNotificationSink()
    previous = app.extensions.get(notification_service.EXTENSION_KEY)
    notification_service.set_sink(recorder)
    yield recorder
    app.extensions[notification_service.EXTENSION_KEY] = previous


def _make_user(user_id, name, email, role, **kwargs):
    return user_service.create_user(
        user_id=user_id,
        name=name,
        email=email,
        password=TEST_PASSWORD,
        role=role,
        **kwargs,
    )


@pytest.fixture(scope='function')
def public_user(db_session):
    return _make_user("u-public", "John Doe", "john@public.com", UserRole.PUBLIC)


@pytest.fixture(scope='function')
def other_public_user(db_session):
    return _make_user("u-public-2", "Jane Roe", "jane@public.com", UserRole.PUBLIC)


@pytest.fixture(scope='function')
def wholesale_user(db_session):
    return _make_user(
        "u-wholesale", "MediCorp Pharmacies", "purchasing@medicorp.com",
        UserRole.WHOLESALE, is_active=True, loyalty_points=4500,
    )


@pytest.fixture(scope='function')
def pending_wholesale_user(db_session):
    return _make_user("u-wholesale-new", "NewCo Chemists", "orders@newco.com", UserRole.WHOLESALE)


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user("u-admin", "Admin User", "admin@kingzypharma.com", UserRole.ADMIN)


@pytest.fixture(scope='function')
def logistics_user(db_session):
    return _make_user("u-logistics", "Logistics Team", "delivery@kingzypharma.com", UserRole.LOGISTICS)


@pytest.fixture(scope='function')
def amoxicillin(db_session):
    return catalog_service.create_product(
        product_id="p1", sku="AMX-500", name="Amoxicillin 500mg", category="Antibiotics",
        price="3500.00", wholesale_price="2800.00", stock=500,
        requires_prescription=True, min_order_quantity=10,
    )


@pytest.fixture(scope='function')
def paracetamol(db_session):
    return catalog_service.create_product(
        product_id="p2", sku="PCM-500", name="Paracetamol 500mg", category="Pain Relief",
        price="500.00", wholesale_price="350.00", stock=2000, min_order_quantity=20,
    )


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for products with a chosen stock level."""
    counter = {"n": 0}

    def _make(stock, *, min_order_quantity=1, price="100.00", wholesale_price="80.00"):
        counter["n"] += 1
        n = counter["n"]
        return catalog_service.create_product(
            product_id=f"tp{n}", sku=f"TST-{n:03d}", name=f"Test Product {n}", category="Test",
            price=price, wholesale_price=wholesale_price, stock=stock,
            min_order_quantity=min_order_quantity,
        )

    return _make


def login_token(user) -> str:
    _, token = session_service.create_session(user)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
