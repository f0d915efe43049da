"""
Concurrency tests for approval and inventory sync.

Runs against a file-backed SQLite database so that worker threads use
separate connections, the way concurrent requests would.
"""

import os
import tempfile
import threading

import pytest

from app import create_app
from app.errors import InsufficientStockError, InvalidStateError, OrderEngineError
from app.extensions import db
from app.models import AuditLogEntry, Order, OrderStatus, PaymentMethod, Product, UserRole
from app.services import catalog_service, order_service, user_service


@pytest.fixture
def file_app():
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 15}},
        'BCRYPT_ROUNDS': 4,
        'RETRY_ATTEMPTS': 8,
        'RETRY_BACKOFF_SECONDS': 0.02,
    })

    with app.app_context():
        db.drop_all()
        db.create_all()
        user_service.create_user(
            user_id="u-buyer", name="Concurrent Buyer", email="buyer@example.com",
            password="Password123!", role=UserRole.PUBLIC,
        )
        user_service.create_user(
            user_id="u-admin", name="Admin", email="admin@example.com",
            password="Password123!", role=UserRole.ADMIN,
        )
        user_service.create_user(
            user_id="u-admin-2", name="Second Admin", email="admin2@example.com",
            password="Password123!", role=UserRole.ADMIN,
        )
        catalog_service.create_product(
            product_id="p-last", sku="LAST-5", name="Last Five", category="Test",
            price="1000.00", wholesale_price="800.00", stock=5,
        )

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()
    tmpdir.cleanup()


def _place(app, quantity):
    with app.app_context():
        order = order_service.create_order(
            "u-buyer",
            [{"product_id": "p-last", "quantity": quantity}],
            "1 Test Street",
            PaymentMethod.ONLINE_CARD,
        )
        return order.id


def _run_concurrently(app, calls):
    """Run (func, args) pairs in parallel threads; collect outcome per call."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(index, func, args):
        with app.app_context():
            barrier.wait()
            try:
                order = func(*args)
                results[index] = ("ok", order.status)
            except OrderEngineError as exc:
                results[index] = ("error", exc)
            except Exception as exc:
                results[index] = ("crash", exc)
            finally:
                db.session.remove()

    threads = [
        threading.Thread(target=worker, args=(i, func, args))
        for i, (func, args) in enumerate(calls)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def test_two_orders_racing_for_last_units(file_app):
    first = _place(file_app, 5)
    second = _place(file_app, 5)

    results = _run_concurrently(file_app, [
        (order_service.approve_order, (first, "u-admin")),
        (order_service.approve_order, (second, "u-admin-2")),
    ])

    successes = [r for r in results if r[0] == "ok"]
    failures = [r[1] for r in results if r[0] == "error"]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)

    with file_app.app_context():
        assert db.session.get(Product, "p-last").stock == 0
        statuses = sorted(db.session.get(Order, oid).status for oid in (first, second))
        assert statuses == sorted([OrderStatus.ORDER_APPROVED.value, OrderStatus.PAYMENT_CONFIRMED.value])


def test_double_approval_of_same_order_deducts_once(file_app):
    order_id = _place(file_app, 3)

    results = _run_concurrently(file_app, [
        (order_service.approve_order, (order_id, "u-admin")),
        (order_service.approve_order, (order_id, "u-admin-2")),
    ])

    outcomes = sorted(r[0] for r in results)
    assert outcomes == ["error", "ok"]
    error = next(r[1] for r in results if r[0] == "error")
    assert isinstance(error, InvalidStateError)

    with file_app.app_context():
        assert db.session.get(Product, "p-last").stock == 2
        order = db.session.get(Order, order_id)
        approved = [e for e in order.timeline if e.status == OrderStatus.ORDER_APPROVED.value]
        assert len(approved) == 1
        assert order.timeline[-1].status == order.status
        approvals = db.session.query(AuditLogEntry).filter_by(
            target_id=order_id, action="APPROVE_ORDER"
        ).count()
        assert approvals == 1


def test_many_small_orders_never_oversell(file_app):
    order_ids = [_place(file_app, 1) for _ in range(8)]

    results = _run_concurrently(file_app, [
        (order_service.approve_order, (oid, "u-admin")) for oid in order_ids
    ])

    successes = [r for r in results if r[0] == "ok"]
    failures = [r[1] for r in results if r[0] == "error"]
    assert len(successes) == 5
    assert all(isinstance(f, InsufficientStockError) for f in failures)

    with file_app.app_context():
        assert db.session.get(Product, "p-last").stock == 0
