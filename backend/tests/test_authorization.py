"""
Authorization tests for PhonePOS.

Verifies:
- Unauthenticated requests return 401
- Cashier and viewer roles are denied privileged operations (403)
- Admin role can perform privileged operations
- Session lifecycle: login, me, logout, deactivated accounts
- Wrongly typed text and id fields answer 400
"""

import pytest

from phonepos.extensions import db
from phonepos.models import Product

from conftest import TEST_PASSWORD, auth_headers, get_auth_token


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/categories"),
            ("POST", "/api/inventory/adjust"),
            ("GET", "/api/inventory/movements"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("GET", "/api/purchases"),
            ("GET", "/api/customers"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/users"),
            ("GET", "/api/reports/overview"),
            ("GET", "/api/admin/backup"),
            ("POST", "/api/admin/reset"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/products", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401

    def test_health_is_public(self, client, setup_roles):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# CASHIER DENIED HIGH-RISK OPERATIONS: 403
# =============================================================================


class TestCashierDeniedHighRisk:
    """Cashier role cannot perform privileged operations."""

    def test_cannot_adjust_inventory(self, client, cashier_headers, product):
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "quantity": 1, "direction": "out"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_cannot_create_product(self, client, cashier_headers, category):
        resp = client.post(
            "/api/products",
            json={"sku": "X", "name": "X", "brand": "X", "category_id": category.id,
                  "cost_price_cents": 1, "selling_price_cents": 1},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_cannot_list_users(self, client, cashier_headers):
        resp = client.get("/api/users", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_create_user(self, client, cashier_headers):
        resp = client.post(
            "/api/users",
            json={"username": "x", "email": "x@x.com", "password": "P@ssw0rd123!"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_cannot_view_reports(self, client, cashier_headers):
        resp = client.get("/api/reports/overview", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_receive_purchase(self, client, cashier_headers):
        resp = client.post("/api/purchases/1/receive", json={}, headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_reset_data(self, client, cashier_headers):
        resp = client.post("/api/admin/reset", json={"confirm": True}, headers=cashier_headers)
        assert resp.status_code == 403

    def test_can_sell(self, client, cashier_headers, product):
        resp = client.post(
            "/api/sales",
            json={
                "items": [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
                "payment_method": "cash",
            },
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        assert resp.json["sale"]["cashier_name"] == "Cashier"


class TestViewerReadOnly:

    def test_can_read_catalog(self, client, viewer_headers, product):
        resp = client.get("/api/products", headers=viewer_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_batch_lookup_by_ids(self, client, viewer_headers, make_product):
        first = make_product()
        second = make_product()
        resp = client.get(f"/api/products?ids={second.id},{first.id},9999", headers=viewer_headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["items"]] == [second.id, first.id]
        assert resp.json["missing"] == [9999]

        resp = client.get("/api/products?ids=1,abc", headers=viewer_headers)
        assert resp.status_code == 400

    def test_cannot_sell(self, client, viewer_headers, product):
        resp = client.post(
            "/api/sales",
            json={
                "items": [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
                "payment_method": "cash",
            },
            headers=viewer_headers,
        )
        assert resp.status_code == 403

    def test_manager_cannot_restore(self, client, manager_headers):
        resp = client.post("/api/admin/restore", json={"data": {}}, headers=manager_headers)
        assert resp.status_code == 403


# =============================================================================
# ADMIN CAN PERFORM PRIVILEGED OPERATIONS: 200
# =============================================================================


class TestAdminAccess:
    """Admin role can perform privileged operations."""

    def test_can_list_users(self, client, admin_headers):
        resp = client.get("/api/users", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_permission_catalog(self, client, admin_headers):
        resp = client.get("/api/users/permissions", headers=admin_headers)
        assert resp.status_code == 200
        sales_codes = [p["code"] for p in resp.json["categories"]["SALES"]]
        assert "CREATE_SALE" in sales_codes

    def test_can_create_user(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "newcashier", "email": "new@phonepos.test", "password": "P@ssw0rd123!"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "cashier"

    def test_duplicate_user_conflicts(self, client, admin_headers, admin_user):
        resp = client.post(
            "/api/users",
            json={"username": "admin", "email": "other@phonepos.test", "password": "P@ssw0rd123!"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_can_adjust_inventory(self, client, admin_headers, product):
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "quantity": 3, "direction": "out", "reason": "Damaged"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["product"]["current_stock"] == 7

    def test_adjust_below_zero_is_400(self, client, admin_headers, product):
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "quantity": 11, "direction": "out"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert "Insufficient stock" in resp.json["error"]

    def test_can_export_backup(self, client, admin_headers, product):
        resp = client.get("/api/admin/backup", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["metadata"]["record_counts"]["products"] == 1

    def test_reset_needs_confirmation(self, client, admin_headers):
        resp = client.post("/api/admin/reset", json={}, headers=admin_headers)
        assert resp.status_code == 400

    def test_delete_sold_product_conflicts(self, client, admin_headers, product):
        client.post(
            "/api/sales",
            json={
                "items": [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
                "payment_method": "cash",
            },
            headers=admin_headers,
        )
        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 409


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================


class TestSessionLifecycle:

    def test_login_returns_token_and_permissions(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": TEST_PASSWORD})

        assert resp.status_code == 200
        assert resp.json["token"]
        assert resp.json["user"]["role"] == "cashier"
        assert "CREATE_SALE" in resp.json["permissions"]
        assert "SYSTEM_ADMIN" not in resp.json["permissions"]

    def test_login_by_email(self, client, cashier_user):
        assert get_auth_token(client, "cashier@phonepos.test") is not None

    def test_wrong_password(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "cashier"})
        assert resp.status_code == 400

    def test_me_and_logout(self, client, cashier_user):
        headers = auth_headers(get_auth_token(client, "cashier"))

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json["user"]["username"] == "cashier"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_deactivated_user_token_rejected(self, client, admin_headers, cashier_user):
        cashier_id = cashier_user.id
        headers = auth_headers(get_auth_token(client, "cashier"))

        resp = client.delete(f"/api/users/{cashier_id}", headers=admin_headers)
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=headers).status_code == 401
        assert get_auth_token(client, "cashier") is None

    def test_admin_cannot_deactivate_self(self, client, admin_headers, admin_user):
        resp = client.delete(f"/api/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 400


# =============================================================================
# WRONGLY TYPED FIELDS: 400, NEVER 500
# =============================================================================


class TestWronglyTypedFields:
    """Non-string values in text fields are validation errors."""

    @pytest.mark.parametrize(
        "field,value",
        [
            ("payment_method", 7),
            ("customer_name", 5),
            ("customer_name", ["Rahim"]),
            ("customer_id", "abc"),
        ],
    )
    def test_sale_fields(self, client, admin_headers, product, field, value):
        body = {
            "items": [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
            "payment_method": "cash",
            field: value,
        }
        resp = client.post("/api/sales", json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert field in resp.json["error"]

    @pytest.mark.parametrize(
        "field,value",
        [
            ("direction", 1),
            ("reason", ["Damaged"]),
            ("reference", {"id": 3}),
        ],
    )
    def test_adjust_fields(self, client, admin_headers, product, field, value):
        body = {"product_id": product.id, "quantity": 1, "direction": "out", field: value}
        resp = client.post("/api/inventory/adjust", json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert field in resp.json["error"]

    @pytest.mark.parametrize(
        "field,value",
        [
            ("notes", 5),
            ("expected_date", 20260301),
            ("supplier_id", "first"),
        ],
    )
    def test_purchase_fields(self, client, admin_headers, product, supplier, field, value):
        body = {
            "supplier_id": supplier.id,
            "items": [{"product_id": product.id, "quantity": 1, "unit_cost_cents": 50}],
            field: value,
        }
        resp = client.post("/api/purchases", json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert field in resp.json["error"]

    def test_user_fields(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": 42, "email": "x@phonepos.test", "password": TEST_PASSWORD},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert "username" in resp.json["error"]

    def test_login_fields(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": 5, "password": TEST_PASSWORD})
        assert resp.status_code == 400

        resp = client.post("/api/auth/login", json={"username": "cashier", "password": 12345678})
        assert resp.status_code == 400

    def test_rejected_adjust_leaves_stock(self, client, admin_headers, product):
        client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "quantity": 1, "direction": 1},
            headers=admin_headers,
        )
        db.session.expire_all()
        assert db.session.get(Product, product.id).current_stock == 10
