"""Catalog, stock settlement, audit log, seeding and CLI tests."""

import pytest

from app.errors import NotFoundError, ValidationError
from app.extensions import db
from app.models import Product, User
from app.seed import DEMO_PRODUCTS, DEMO_USERS, seed_catalog, seed_users
from app.services import audit_service, catalog_service


def _stock(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).stock


class TestCatalog:
    def test_unit_price_depends_on_buyer(self, amoxicillin):
        assert str(amoxicillin.unit_price_for(False)) == "3500.00"
        assert str(amoxicillin.unit_price_for(True)) == "2800.00"

    def test_list_filters(self, amoxicillin, paracetamol):
        assert [p.id for p in catalog_service.list_products(category="Pain Relief")] == ["p2"]
        assert [p.id for p in catalog_service.list_products(search="AMX")] == ["p1"]
        assert len(catalog_service.list_products()) == 2

    def test_lookup_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            catalog_service.lookup_product("ghost")

    def test_negative_stock_rejected(self, db_session):
        with pytest.raises(ValidationError):
            catalog_service.create_product(
                product_id="bad", sku="BAD", name="Bad", category="Test",
                price="1.00", wholesale_price="1.00", stock=-1,
            )


class TestTrySettle:
    def test_settles_when_enough_on_hand(self, make_product):
        product = make_product(stock=5)
        assert catalog_service.try_settle(product.id, 5) is True
        db.session.commit()
        assert _stock(product.id) == 0

    def test_refuses_when_short(self, make_product):
        product = make_product(stock=4)
        assert catalog_service.try_settle(product.id, 5) is False
        db.session.commit()
        assert _stock(product.id) == 4

    def test_unknown_product_is_refused(self, db_session):
        assert catalog_service.try_settle("ghost", 1) is False

    def test_non_positive_quantity(self, make_product):
        product = make_product(stock=4)
        with pytest.raises(ValidationError):
            catalog_service.try_settle(product.id, 0)


class TestAuditLog:
    def test_most_recent_first(self, db_session):
        for n in range(3):
            audit_service.append_entry(action="TEST", performed_by="tester", target_id="T-1", details=str(n))
        entries = audit_service.list_entries(target_id="T-1")
        assert [e.details for e in entries] == ["2", "1", "0"]
        assert len({e.entry_id for e in entries}) == 3

    def test_limit_and_action_filter(self, db_session):
        audit_service.append_entry(action="A", performed_by="x", target_id="T-2")
        audit_service.append_entry(action="B", performed_by="x", target_id="T-2")
        assert [e.action for e in audit_service.list_entries(action="A")] == ["A"]
        assert len(audit_service.list_entries(limit=1)) == 1

    def test_blank_actor_becomes_system(self, db_session):
        entry = audit_service.append_entry(action="A", performed_by="", target_id="T-3")
        assert entry.performed_by == audit_service.SYSTEM_ACTOR


class TestSeedAndCli:
    def test_seed_is_idempotent(self, db_session):
        assert seed_catalog() == len(DEMO_PRODUCTS)
        assert seed_catalog() == 0
        assert seed_users() == len(DEMO_USERS)
        assert seed_users() == 0
        assert db.session.query(User).filter_by(is_active=True).count() == len(DEMO_USERS)

    def test_catalog_seed_command(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["catalog", "seed", "--with-users"])
        assert result.exit_code == 0
        assert f"Products created: {len(DEMO_PRODUCTS)}" in result.output

        result = runner.invoke(args=["catalog", "list"])
        assert "Amoxicillin" in result.output

    def test_users_activate_command(self, app, sink, pending_wholesale_user):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["users", "activate", pending_wholesale_user.email])
        assert result.exit_code == 0
        db.session.expire_all()
        assert db.session.get(User, pending_wholesale_user.id).is_active is True

    def test_users_activate_unknown_email(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["users", "activate", "ghost@example.com"])
        assert result.exit_code != 0
