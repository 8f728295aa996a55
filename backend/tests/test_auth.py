"""
Authentication tests: login, logout, session validation, password change
and the self-registration switch.
"""

from datetime import timedelta

import pytest

from storefront.models import SessionToken, Transaction, TransactionType
from storefront.services import session_service
from storefront.services.auth_service import (
    PasswordValidationError,
    hash_password,
    validate_password_strength,
    verify_password,
)
from storefront.time_utils import utcnow

from conftest import TEST_PASSWORD, auth_headers, count_rows, get_auth_token


# =============================================================================
# PASSWORDS
# =============================================================================

class TestPasswords:

    @pytest.mark.parametrize(
        "password",
        ["", "Sh0rt!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            validate_password_strength(password)

    def test_hash_round_trip(self, app):
        hashed = hash_password(TEST_PASSWORD)
        assert hashed != TEST_PASSWORD
        assert verify_password(TEST_PASSWORD, hashed) is True
        assert verify_password("Password124!", hashed) is False

    def test_malformed_hash(self):
        assert verify_password(TEST_PASSWORD, "not-a-hash") is False


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================

class TestLogin:

    def test_login_returns_token_and_records_login(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"username": "cashier", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert resp.json["message"] == "Login successful"
        assert len(resp.json["token"]) == 64
        assert resp.json["user"]["username"] == "cashier"
        assert resp.json["user"]["lastLogin"] is not None

        row = Transaction.query.filter_by(transaction_type=TransactionType.LOGIN.value).one()
        assert row.user_id == cashier_user.id

    def test_login_by_email(self, client, cashier_user):
        resp = client.post("/api/auth/login", json={"email": "CASHIER@storefront.test", "password": TEST_PASSWORD})
        assert resp.status_code == 200

    def test_token_stored_hashed(self, client, cashier_user):
        token = get_auth_token(client, "cashier")
        stored = SessionToken.query.filter_by(user_id=cashier_user.id).one()
        assert stored.token_hash != token
        assert stored.token_hash == session_service.hash_token(token)

    @pytest.mark.parametrize(
        "body",
        [
            {"username": "cashier", "password": "Wrong123!"},
            {"username": "nobody", "password": TEST_PASSWORD},
        ],
    )
    def test_bad_credentials(self, client, cashier_user, body):
        resp = client.post("/api/auth/login", json=body)
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid credentials"
        assert count_rows(TransactionType.LOGIN.value) == 0

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "cashier"})
        assert resp.status_code == 400

    def test_inactive_user_cannot_login(self, client, cashier_user, db_session):
        cashier_user.is_active = False
        db_session.commit()
        assert get_auth_token(client, "cashier") is None

    def test_logout_revokes_token(self, client, cashier_user):
        headers = auth_headers(get_auth_token(client, "cashier"))

        resp = client.post("/api/auth/logout", headers=headers)
        assert resp.status_code == 200
        assert resp.json["message"] == "Logout successful"

        assert client.get("/api/auth/me", headers=headers).status_code == 401
        assert count_rows(TransactionType.LOGOUT.value) == 1

    def test_me(self, client, manager_headers):
        resp = client.get("/api/auth/me", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["user"]["username"] == "manager"
        assert resp.json["user"]["permissions"]["canViewReports"] is True


# =============================================================================
# SESSION LIFETIME
# =============================================================================

class TestSessions:

    def test_idle_session_expires(self, client, cashier_user, db_session):
        token = get_auth_token(client, "cashier")
        stored = SessionToken.query.filter_by(user_id=cashier_user.id).one()
        stored.last_used_at = utcnow() - timedelta(hours=3)
        db_session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401
        assert stored.is_revoked is True
        assert stored.revoked_reason == "Idle timeout"

    def test_absolute_expiry(self, client, cashier_user, db_session):
        token = get_auth_token(client, "cashier")
        stored = SessionToken.query.filter_by(user_id=cashier_user.id).one()
        stored.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_cleanup_removes_old_dead_sessions(self, client, cashier_user, db_session):
        get_auth_token(client, "cashier")
        live_token = get_auth_token(client, "cashier")
        old, live = SessionToken.query.order_by(SessionToken.id.asc()).all()
        old.is_revoked = True
        old.created_at = utcnow() - timedelta(days=45)
        db_session.commit()

        assert session_service.cleanup_expired_sessions() == 1
        assert SessionToken.query.count() == 1
        assert client.get("/api/auth/me", headers=auth_headers(live_token)).status_code == 200


# =============================================================================
# PASSWORD CHANGE
# =============================================================================

class TestChangePassword:

    def test_change_password_keeps_current_session(self, client, cashier_user):
        first = auth_headers(get_auth_token(client, "cashier"))
        second = auth_headers(get_auth_token(client, "cashier"))

        resp = client.put("/api/auth/password", headers=first, json={
            "currentPassword": TEST_PASSWORD,
            "newPassword": "Changed456!",
        })
        assert resp.status_code == 200

        assert client.get("/api/auth/me", headers=first).status_code == 200
        assert client.get("/api/auth/me", headers=second).status_code == 401
        assert get_auth_token(client, "cashier", "Changed456!") is not None
        assert get_auth_token(client, "cashier") is None

        row = Transaction.query.filter_by(transaction_type=TransactionType.USER_UPDATE.value).one()
        assert row.meta["updates"] == {"password": "changed"}

    def test_wrong_current_password(self, client, cashier_headers):
        resp = client.put("/api/auth/password", headers=cashier_headers, json={
            "currentPassword": "Nope1234!",
            "newPassword": "Changed456!",
        })
        assert resp.status_code == 400
        assert resp.json["error"] == "Current password is incorrect"

    def test_weak_new_password(self, client, cashier_headers):
        resp = client.put("/api/auth/password", headers=cashier_headers, json={
            "currentPassword": TEST_PASSWORD,
            "newPassword": "weak",
        })
        assert resp.status_code == 400
        assert count_rows(TransactionType.USER_UPDATE.value) == 0


# =============================================================================
# SELF-REGISTRATION
# =============================================================================

class TestRegistration:

    BODY = {"username": "walkin", "email": "walkin@storefront.test", "password": TEST_PASSWORD}

    def test_disabled_by_default(self, client, db_session):
        resp = client.post("/api/auth/register", json=self.BODY)
        assert resp.status_code == 403

    def test_enabled_creates_cashier(self, app, client, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "ALLOW_SELF_REGISTRATION", True)

        resp = client.post("/api/auth/register", json={**self.BODY, "role": "ADMIN"})
        # role is not an accepted registration field
        assert resp.status_code == 400

        resp = client.post("/api/auth/register", json=self.BODY)
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "CASHIER"

        row = Transaction.query.filter_by(transaction_type=TransactionType.USER_CREATE.value).one()
        assert row.user_id == resp.json["user"]["id"]
        assert row.meta["selfRegistered"] is True

        headers = auth_headers(resp.json["token"])
        assert client.get("/api/auth/me", headers=headers).status_code == 200

    def test_duplicate_username(self, app, client, cashier_user, monkeypatch):
        monkeypatch.setitem(app.config, "ALLOW_SELF_REGISTRATION", True)
        resp = client.post("/api/auth/register", json={**self.BODY, "username": "cashier"})
        assert resp.status_code == 400
