"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Each role is denied the operations outside its permission set (403)
- Ownership is enforced inside a permission (a distributor cannot act on
  another distributor's orders)
- Deactivated accounts lose access immediately
"""

import pytest

from depot.models import Role
from depot.permissions import PERMISSION_CODES, ROLE_PERMISSIONS, permissions_for, role_has_permission
from depot.services import directory_service, order_service, payment_service

from conftest import PASSWORD, auth_headers, get_auth_token, restock, stock_distributor


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/inventory"),
            ("POST", "/api/inventory/restock"),
            ("POST", "/api/inventory/adjust"),
            ("GET", "/api/orders"),
            ("POST", "/api/orders"),
            ("POST", "/api/orders/client"),
            ("POST", "/api/orders/1/fulfill"),
            ("POST", "/api/orders/1/mark-paid"),
            ("GET", "/api/payments"),
            ("GET", "/api/distributors"),
            ("GET", "/api/clients"),
            ("GET", "/api/reports/overview"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/orders", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"


# =============================================================================
# ROLE DENIALS (403)
# =============================================================================


class TestClientDenied:

    @pytest.mark.parametrize(
        "method,path,permission",
        [
            ("POST", "/api/inventory/restock", "RESTOCK_INVENTORY"),
            ("GET", "/api/inventory", "VIEW_WAREHOUSE_INVENTORY"),
            ("POST", "/api/orders", "PLACE_WAREHOUSE_ORDER"),
            ("POST", "/api/orders/1/fulfill-client", "FULFILL_CLIENT_ORDERS"),
            ("POST", "/api/orders/1/mark-paid", "MARK_PAID"),
            ("GET", "/api/reports/revenue", "VIEW_REPORTS"),
            ("POST", "/api/products", "MANAGE_PRODUCTS"),
        ],
    )
    def test_forbidden(self, client, client_headers, method, path, permission):
        resp = getattr(client, method.lower())(path, json={}, headers=client_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == permission


class TestDistributorDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/inventory/restock"),
            ("POST", "/api/inventory/adjust"),
            ("POST", "/api/orders/1/fulfill"),
            ("POST", "/api/orders/client"),
            ("GET", "/api/reports/overview"),
            ("GET", "/api/distributors"),
        ],
    )
    def test_forbidden(self, client, distributor_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=distributor_headers)
        assert resp.status_code == 403

    def test_cannot_fulfill_other_distributors_client_order(
        self, client, db_session, warehouse, distributor, other_distributor, client_account, products, owner
    ):
        mango, _ = products
        restock(warehouse, mango, 10, owner)
        stock_distributor(distributor, warehouse, [(mango, 10)], owner)
        order = order_service.create_client_order(user_id=client_account.user_id, items=[(mango.id, 2)])
        payment_service.mark_paid(order_id=order.id, user_id=distributor.user_id)

        headers = auth_headers(get_auth_token(client, other_distributor.user.email))
        resp = client.post(f"/api/orders/{order.id}/fulfill-client", headers=headers)
        assert resp.status_code == 403


class TestStaffDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/orders"),
            ("POST", "/api/orders/client"),
            ("POST", "/api/orders/1/receive"),
            ("POST", "/api/clients"),
        ],
    )
    def test_manager_cannot_act_as_buyer(self, client, manager_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=manager_headers)
        assert resp.status_code == 403


# =============================================================================
# SESSIONS
# =============================================================================


class TestSessions:

    def test_login_returns_permissions(self, client, db_session, distributor):
        resp = client.post("/api/auth/login", json={"email": "DIST@depot.test", "password": PASSWORD})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["role"] == "DISTRIBUTOR"
        assert "PLACE_WAREHOUSE_ORDER" in body["permissions"]
        assert body["token"]

    def test_wrong_password(self, client, db_session, distributor):
        resp = client.post("/api/auth/login", json={"email": "dist@depot.test", "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_non_text_credentials(self, client, db_session, distributor):
        resp = client.post("/api/auth/login", json={"email": ["dist@depot.test"], "password": PASSWORD})
        assert resp.status_code == 400
        resp = client.post("/api/auth/login", json={"email": "dist@depot.test", "password": 12345678})
        assert resp.status_code == 400

    def test_logout_revokes_token(self, client, db_session, distributor):
        token = get_auth_token(client, "dist@depot.test")
        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_me_includes_profile(self, client, db_session, distributor, distributor_headers):
        resp = client.get("/api/auth/me", headers=distributor_headers)
        assert resp.status_code == 200
        assert resp.get_json()["distributor"]["id"] == distributor.id
        assert resp.get_json()["client"] is None

    def test_deactivated_distributor_is_locked_out(self, client, db_session, distributor, distributor_headers):
        directory_service.set_distributor_active(distributor.id, False)

        assert client.get("/api/orders", headers=distributor_headers).status_code == 401
        resp = client.post("/api/auth/login", json={"email": "dist@depot.test", "password": PASSWORD})
        assert resp.status_code == 401


# =============================================================================
# ROLE TABLE
# =============================================================================


class TestRoleTable:

    def test_every_role_has_permissions(self):
        assert set(ROLE_PERMISSIONS) == set(Role)
        for codes in ROLE_PERMISSIONS.values():
            assert codes <= PERMISSION_CODES

    def test_unknown_role_or_code_denied(self):
        assert role_has_permission("SUPERUSER", "VIEW_ORDERS") is False
        assert role_has_permission(Role.OWNER, "DROP_DATABASE") is False

    def test_owner_and_manager_match(self):
        assert permissions_for(Role.OWNER) == permissions_for(Role.MANAGER)

    def test_client_cannot_touch_stock(self):
        for code in ("RESTOCK_INVENTORY", "ADJUST_INVENTORY", "FULFILL_WAREHOUSE_ORDERS", "FULFILL_CLIENT_ORDERS"):
            assert not role_has_permission(Role.CLIENT, code)
