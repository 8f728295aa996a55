"""
Staff account management tests.

Accounts start from role defaults, only an ADMIN may override flags or
touch ADMIN accounts, and removing or deactivating an account ends its
sessions.
"""

import pytest

from storefront.models import Transaction, TransactionType, User

from conftest import auth_headers, count_rows, get_auth_token


NEW_USER = {
    "username": "newbie",
    "email": "Newbie@Storefront.test",
    "password": "Password123!",
    "role": "cashier",
}


# =============================================================================
# CREATE
# =============================================================================

class TestCreateUser:

    def test_create_applies_role_defaults(self, client, admin_headers):
        resp = client.post("/api/users", headers=admin_headers, json=NEW_USER)
        assert resp.status_code == 201

        user = resp.json["user"]
        assert user["role"] == "CASHIER"
        assert user["email"] == "newbie@storefront.test"
        assert user["permissions"]["canProcessSales"] is True
        assert user["permissions"]["canViewReports"] is False
        assert "password" not in user
        assert "passwordHash" not in user

        row = Transaction.query.filter_by(transaction_type=TransactionType.USER_CREATE.value).one()
        assert row.meta["createdUserId"] == user["id"]
        assert row.meta["createdBy"] == "admin"

        assert get_auth_token(client, "newbie") is not None

    def test_admin_sets_overrides(self, client, admin_headers):
        resp = client.post("/api/users", headers=admin_headers, json={
            **NEW_USER,
            "permissions": {"canViewReports": True, "canProcessSales": False},
        })
        assert resp.status_code == 201
        perms = resp.json["user"]["permissions"]
        assert perms["canViewReports"] is True
        assert perms["canProcessSales"] is False

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"username": "ab"}, "username"),
            ({"email": "not-an-email"}, "email"),
            ({"role": "OWNER"}, "role"),
            ({"permissions": {"canTeleport": True}}, "permissions.canTeleport"),
        ],
    )
    def test_invalid_payload(self, client, admin_headers, overrides, field):
        resp = client.post("/api/users", headers=admin_headers, json={**NEW_USER, **overrides})
        assert resp.status_code == 400
        assert field in [e["field"] for e in resp.json["errors"]]

    def test_weak_password(self, client, admin_headers):
        resp = client.post("/api/users", headers=admin_headers, json={**NEW_USER, "password": "short"})
        assert resp.status_code == 400
        assert count_rows(TransactionType.USER_CREATE.value) == 0

    def test_duplicate_username(self, client, admin_headers, cashier_user):
        resp = client.post("/api/users", headers=admin_headers, json={**NEW_USER, "username": "cashier"})
        assert resp.status_code == 400
        assert resp.json["error"] == "Username already exists"

    def test_duplicate_email(self, client, admin_headers, cashier_user):
        resp = client.post("/api/users", headers=admin_headers, json={**NEW_USER, "email": cashier_user.email})
        assert resp.status_code == 400
        assert resp.json["error"] == "Email already exists"


# =============================================================================
# ADMIN-ONLY CHANGES
# =============================================================================

class TestAdminOnly:

    @pytest.fixture
    def hr_manager_headers(self, client, admin_headers, manager_user):
        """Manager allowed to add and edit users, but not an admin."""
        resp = client.put(f"/api/users/{manager_user.id}", headers=admin_headers, json={
            "permissions": {"canAddUsers": True, "canEditUsers": True},
        })
        assert resp.status_code == 200
        return auth_headers(get_auth_token(client, manager_user.username))

    def test_non_admin_cannot_set_permissions(self, client, hr_manager_headers):
        resp = client.post("/api/users", headers=hr_manager_headers, json={
            **NEW_USER,
            "permissions": {"canViewReports": True},
        })
        assert resp.status_code == 403
        assert resp.json["message"] == "Only administrators can set individual permissions"
        assert User.query.filter_by(username="newbie").first() is None

    def test_non_admin_can_create_with_defaults(self, client, hr_manager_headers):
        resp = client.post("/api/users", headers=hr_manager_headers, json=NEW_USER)
        assert resp.status_code == 201

    def test_non_admin_cannot_grant_admin_role(self, client, hr_manager_headers, cashier_user):
        resp = client.post("/api/users", headers=hr_manager_headers, json={**NEW_USER, "role": "ADMIN"})
        assert resp.status_code == 403

        resp = client.put(f"/api/users/{cashier_user.id}", headers=hr_manager_headers, json={"role": "ADMIN"})
        assert resp.status_code == 403
        assert cashier_user.role == "CASHIER"

    def test_non_admin_cannot_edit_admin(self, client, hr_manager_headers, admin_user):
        resp = client.put(f"/api/users/{admin_user.id}", headers=hr_manager_headers, json={"isActive": False})
        assert resp.status_code == 403
        assert admin_user.is_active is True


# =============================================================================
# UPDATE
# =============================================================================

class TestUpdateUser:

    def test_role_change_resets_flags(self, client, admin_headers, cashier_user, db_session):
        cashier_user.can_delete_products = True
        db_session.commit()

        resp = client.put(f"/api/users/{cashier_user.id}", headers=admin_headers, json={"role": "MANAGER"})
        assert resp.status_code == 200
        perms = resp.json["user"]["permissions"]
        assert perms["canViewReports"] is True
        assert perms["canDeleteProducts"] is False

        row = Transaction.query.filter_by(transaction_type=TransactionType.USER_UPDATE.value).one()
        assert row.meta["updates"]["role"] == {"old": "CASHIER", "new": "MANAGER"}

    def test_role_change_with_overrides(self, client, admin_headers, cashier_user):
        resp = client.put(f"/api/users/{cashier_user.id}", headers=admin_headers, json={
            "role": "MANAGER",
            "permissions": {"canViewReports": False},
        })
        perms = resp.json["user"]["permissions"]
        assert perms["canEditProducts"] is True
        assert perms["canViewReports"] is False

    def test_deactivation_revokes_sessions(self, client, admin_headers, cashier_user, cashier_headers):
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 200

        resp = client.put(f"/api/users/{cashier_user.id}", headers=admin_headers, json={"isActive": False})
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401
        assert get_auth_token(client, "cashier") is None

    def test_password_reset_revokes_sessions(self, client, admin_headers, cashier_user, cashier_headers):
        resp = client.put(f"/api/users/{cashier_user.id}", headers=admin_headers, json={
            "password": "NewPassword456!",
        })
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401
        assert get_auth_token(client, "cashier", "NewPassword456!") is not None

        row = Transaction.query.filter_by(transaction_type=TransactionType.USER_UPDATE.value).one()
        assert row.meta["updates"] == {"password": "changed"}

    def test_rename_conflict(self, client, admin_headers, cashier_user, manager_user):
        resp = client.put(f"/api/users/{cashier_user.id}", headers=admin_headers, json={"username": "manager"})
        assert resp.status_code == 400

    def test_unknown_user(self, client, admin_headers):
        resp = client.put("/api/users/5000", headers=admin_headers, json={"isActive": False})
        assert resp.status_code == 404


# =============================================================================
# DELETE
# =============================================================================

class TestDeleteUser:

    def test_soft_delete(self, client, admin_headers, cashier_user, cashier_headers, db_session):
        resp = client.delete(f"/api/users/{cashier_user.id}", headers=admin_headers)
        assert resp.status_code == 200

        stored = db_session.get(User, cashier_user.id)
        assert stored.deleted_at is not None
        assert stored.is_active is False

        row = Transaction.query.filter_by(transaction_type=TransactionType.USER_DELETE.value).one()
        assert row.meta["deletedUsername"] == "cashier"
        assert row.meta["deletedBy"] == "admin"

        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401
        assert get_auth_token(client, "cashier") is None
        assert client.get(f"/api/users/{cashier_user.id}", headers=admin_headers).status_code == 404

    def test_cannot_delete_self(self, client, admin_headers, admin_user):
        resp = client.delete(f"/api/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Cannot delete your own account"
        assert admin_user.deleted_at is None

    def test_deleted_identity_stays_reserved(self, client, admin_headers, cashier_user):
        client.delete(f"/api/users/{cashier_user.id}", headers=admin_headers)
        resp = client.post("/api/users", headers=admin_headers, json={**NEW_USER, "username": "cashier"})
        assert resp.status_code == 400

    def test_non_admin_cannot_delete_admin(self, client, admin_headers, admin_user, manager_user):
        client.put(f"/api/users/{manager_user.id}", headers=admin_headers, json={
            "permissions": {"canDeleteUsers": True},
        })
        headers = auth_headers(get_auth_token(client, "manager"))

        resp = client.delete(f"/api/users/{admin_user.id}", headers=headers)
        assert resp.status_code == 403


# =============================================================================
# READ
# =============================================================================

class TestListUsers:

    def test_list_and_filter(self, client, admin_headers, manager_user, cashier_user):
        resp = client.get("/api/users?sortBy=username&sortOrder=ASC", headers=admin_headers)
        assert resp.status_code == 200
        assert [u["username"] for u in resp.json["items"]] == ["admin", "cashier", "manager"]

        resp = client.get("/api/users?role=CASHIER", headers=admin_headers)
        assert [u["username"] for u in resp.json["items"]] == ["cashier"]

        resp = client.get("/api/users?search=MANA", headers=admin_headers)
        assert [u["username"] for u in resp.json["items"]] == ["manager"]

    def test_deleted_hidden_by_default(self, client, admin_headers, cashier_user):
        client.delete(f"/api/users/{cashier_user.id}", headers=admin_headers)

        resp = client.get("/api/users", headers=admin_headers)
        assert "cashier" not in [u["username"] for u in resp.json["items"]]

        resp = client.get("/api/users?includeDeleted=true", headers=admin_headers)
        assert "cashier" in [u["username"] for u in resp.json["items"]]

    def test_detail_includes_recent_transactions(self, client, admin_headers, admin_user):
        resp = client.get(f"/api/users/{admin_user.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["username"] == "admin"
        assert resp.json["recentTransactions"][0]["transactionType"] == "LOGIN"
