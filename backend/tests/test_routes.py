"""
HTTP API tests.

Checks authentication, permission gating, and the mapping of engine errors
to status codes and JSON bodies.
"""

from app.models import OrderStatus, PaymentMethod

from conftest import TEST_PASSWORD, auth_headers, login_token


def _create(client, token, items, method=PaymentMethod.BANK_TRANSFER.value):
    return client.post(
        "/api/orders/",
        json={"items": items, "shipping_address": "4 Allen Avenue, Ikeja", "payment_method": method},
        headers=auth_headers(token),
    )


class TestAuthRoutes:
    def test_login_returns_token(self, client, public_user):
        response = client.post("/api/auth/login", json={"email": public_user.email, "password": TEST_PASSWORD})
        assert response.status_code == 200
        body = response.get_json()
        assert body["token"]
        assert body["user"]["role"] == "Public"

        me = client.get("/api/auth/me", headers=auth_headers(body["token"]))
        assert me.status_code == 200
        assert me.get_json()["user"]["id"] == public_user.id

    def test_login_wrong_password(self, client, public_user):
        response = client.post("/api/auth/login", json={"email": public_user.email, "password": "nope12345"})
        assert response.status_code == 401

    def test_pending_wholesale_cannot_login(self, client, pending_wholesale_user):
        response = client.post(
            "/api/auth/login", json={"email": pending_wholesale_user.email, "password": TEST_PASSWORD},
        )
        assert response.status_code == 401
        assert "pending verification" in response.get_json()["error"]

    def test_logout_revokes_token(self, client, public_user):
        token = login_token(public_user)
        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_register_wholesale_is_pending(self, client, sink):
        response = client.post("/api/auth/register", json={
            "name": "Ada Pharmacy", "email": "ada@pharmacy.ng", "password": "Secret123", "role": "Wholesale",
        })
        assert response.status_code == 201
        user = response.get_json()["user"]
        assert user["is_active"] is False
        assert sink.for_user(user["id"])

    def test_register_as_admin_is_forbidden(self, client, db_session):
        response = client.post("/api/auth/register", json={
            "name": "Mallory", "email": "mallory@example.com", "password": "Secret123", "role": "Admin",
        })
        assert response.status_code == 403

    def test_missing_token(self, client, db_session):
        assert client.get("/api/orders/").status_code == 401


class TestOrderRoutes:
    def test_full_bank_transfer_flow(self, client, sink, public_user, admin_user, logistics_user, amoxicillin):
        buyer = login_token(public_user)
        admin = login_token(admin_user)
        staff = login_token(logistics_user)

        response = _create(client, buyer, [{"product_id": "p1", "quantity": 2}])
        assert response.status_code == 201
        order = response.get_json()["order"]
        assert order["status"] == OrderStatus.PAYMENT_PENDING.value
        assert order["total_amount"] == "7000.00"
        order_id = order["id"]

        response = client.post(
            f"/api/orders/{order_id}/payment-proof", json={"proof_ref": "uploads/r.jpg"}, headers=auth_headers(buyer),
        )
        assert response.get_json()["order"]["status"] == OrderStatus.PAYMENT_REVIEW.value

        response = client.post(
            f"/api/orders/{order_id}/verify-payment", json={"approved": True}, headers=auth_headers(admin),
        )
        assert response.get_json()["order"]["status"] == OrderStatus.PAYMENT_CONFIRMED.value

        response = client.post(f"/api/orders/{order_id}/approve", headers=auth_headers(admin))
        assert response.status_code == 200

        for target in ("Packed", "Dispatched", "Delivered"):
            response = client.post(
                f"/api/orders/{order_id}/logistics", json={"status": target}, headers=auth_headers(staff),
            )
            assert response.status_code == 200

        order = client.get(f"/api/orders/{order_id}", headers=auth_headers(buyer)).get_json()["order"]
        assert order["status"] == "Delivered"
        assert [e["status"] for e in order["timeline"]][-1] == "Delivered"
        assert client.get("/api/products/p1").get_json()["product"]["stock"] == 498

    def test_insufficient_stock_maps_to_409(self, client, sink, public_user, make_product):
        product = make_product(stock=1)
        response = _create(client, login_token(public_user), [{"product_id": product.id, "quantity": 2}])
        assert response.status_code == 409
        assert response.get_json()["code"] == "INSUFFICIENT_STOCK"

    def test_below_moq_maps_to_400(self, client, sink, wholesale_user, amoxicillin):
        response = _create(client, login_token(wholesale_user), [{"product_id": "p1", "quantity": 2}])
        assert response.status_code == 400
        assert response.get_json()["code"] == "BELOW_MINIMUM_ORDER_QUANTITY"

    def test_unknown_product_maps_to_404(self, client, sink, public_user):
        response = _create(client, login_token(public_user), [{"product_id": "ghost", "quantity": 1}])
        assert response.status_code == 404

    def test_payment_not_settled_maps_to_409(self, client, sink, public_user, admin_user, amoxicillin):
        order_id = _create(client, login_token(public_user), [{"product_id": "p1", "quantity": 1}]).get_json()["order"]["id"]
        response = client.post(f"/api/orders/{order_id}/approve", headers=auth_headers(login_token(admin_user)))
        assert response.status_code == 409
        assert response.get_json()["code"] == "PAYMENT_NOT_SETTLED"

    def test_skipped_logistics_step_maps_to_409(self, client, sink, public_user, admin_user, logistics_user, amoxicillin):
        order_id = _create(
            client, login_token(public_user), [{"product_id": "p1", "quantity": 1}], PaymentMethod.ONLINE_CARD.value,
        ).get_json()["order"]["id"]
        client.post(f"/api/orders/{order_id}/approve", headers=auth_headers(login_token(admin_user)))

        response = client.post(
            f"/api/orders/{order_id}/logistics", json={"status": "Delivered"},
            headers=auth_headers(login_token(logistics_user)),
        )
        assert response.status_code == 409
        assert response.get_json()["code"] == "INVALID_TRANSITION"

    def test_buyer_cannot_approve(self, client, sink, public_user, amoxicillin):
        token = login_token(public_user)
        order_id = _create(client, token, [{"product_id": "p1", "quantity": 1}]).get_json()["order"]["id"]
        response = client.post(f"/api/orders/{order_id}/approve", headers=auth_headers(token))
        assert response.status_code == 403

    def test_logistics_cannot_verify_payment(self, client, sink, public_user, logistics_user, amoxicillin):
        order_id = _create(client, login_token(public_user), [{"product_id": "p1", "quantity": 1}]).get_json()["order"]["id"]
        response = client.post(
            f"/api/orders/{order_id}/verify-payment", json={"approved": True},
            headers=auth_headers(login_token(logistics_user)),
        )
        assert response.status_code == 403

    def test_verify_payment_requires_boolean(self, client, sink, admin_user):
        response = client.post(
            "/api/orders/ORD-X/verify-payment", json={"approved": "yes"},
            headers=auth_headers(login_token(admin_user)),
        )
        assert response.status_code == 400

    def test_other_buyer_cannot_read_order(self, client, sink, public_user, other_public_user, amoxicillin):
        order_id = _create(client, login_token(public_user), [{"product_id": "p1", "quantity": 1}]).get_json()["order"]["id"]
        response = client.get(f"/api/orders/{order_id}", headers=auth_headers(login_token(other_public_user)))
        assert response.status_code == 403

    def test_list_orders_scoped_to_buyer(self, client, sink, public_user, other_public_user, admin_user, amoxicillin):
        _create(client, login_token(public_user), [{"product_id": "p1", "quantity": 1}])
        _create(client, login_token(other_public_user), [{"product_id": "p1", "quantity": 1}])

        mine = client.get("/api/orders/", headers=auth_headers(login_token(public_user))).get_json()["orders"]
        everything = client.get("/api/orders/", headers=auth_headers(login_token(admin_user))).get_json()["orders"]
        assert len(mine) == 1
        assert len(everything) == 2


class TestCatalogAndAdminRoutes:
    def test_catalog_is_public(self, client, amoxicillin, paracetamol):
        response = client.get("/api/products/?q=amox")
        assert response.status_code == 200
        assert [p["id"] for p in response.get_json()["products"]] == ["p1"]

    def test_unknown_product(self, client, db_session):
        assert client.get("/api/products/ghost").status_code == 404

    def test_admin_activates_wholesale(self, client, sink, admin_user, pending_wholesale_user):
        token = login_token(admin_user)
        pending = client.get("/api/admin/users?pending=true", headers=auth_headers(token)).get_json()["users"]
        assert [u["id"] for u in pending] == [pending_wholesale_user.id]

        response = client.post(f"/api/admin/users/{pending_wholesale_user.id}/activate", headers=auth_headers(token))
        assert response.status_code == 200
        assert response.get_json()["user"]["is_active"] is True

    def test_buyer_cannot_manage_users(self, client, public_user):
        response = client.get("/api/admin/users", headers=auth_headers(login_token(public_user)))
        assert response.status_code == 403

    def test_audit_log_for_admin(self, client, sink, public_user, admin_user, amoxicillin):
        order_id = _create(client, login_token(public_user), [{"product_id": "p1", "quantity": 1}]).get_json()["order"]["id"]
        response = client.get(f"/api/audit/?target_id={order_id}", headers=auth_headers(login_token(admin_user)))
        assert response.status_code == 200
        assert [e["action"] for e in response.get_json()["entries"]] == ["CREATE_ORDER"]

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"
