"""
Authentication tests.

Verifies:
- Registration validates input and rejects duplicate emails
- Login issues a bearer token; bad credentials get one generic message
- Logout revokes the token
- Expired, idle and malformed credentials resolve to anonymous
"""

from datetime import timedelta

import pytest

from teebay.models import SessionToken, User
from teebay.services import auth_service, session_service
from teebay.services.auth_service import PasswordValidationError
from teebay.time_utils import utcnow

from conftest import TEST_PASSWORD, auth_headers, get_auth_token

REGISTRATION = {
    "first_name": "Dana",
    "last_name": "Scully",
    "email": "Dana@Example.com",
    "address": "42 Elm Road",
    "phone_number": "555-0199",
    "password": TEST_PASSWORD,
}


# =============================================================================
# PASSWORD RULES
# =============================================================================


class TestPasswordStrength:

    @pytest.mark.parametrize(
        "password",
        ["Short1!", "lowercase123!", "UPPERCASE123!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_roundtrip(self):
        hashed = auth_service.hash_password(TEST_PASSWORD)
        assert hashed != TEST_PASSWORD
        assert auth_service.verify_password(TEST_PASSWORD, hashed) is True
        assert auth_service.verify_password("Wrong123!", hashed) is False

    def test_malformed_hash_does_not_verify(self):
        assert auth_service.verify_password(TEST_PASSWORD, "not-a-bcrypt-hash") is False


# =============================================================================
# REGISTER / LOGIN / LOGOUT over HTTP
# =============================================================================


class TestRegisterRoute:

    def test_register_creates_user_and_session(self, client, db_session):
        resp = client.post("/api/auth/register", json=REGISTRATION)
        assert resp.status_code == 201

        body = resp.get_json()
        assert body["user"]["email"] == "dana@example.com"
        assert "password_hash" not in body["user"]
        assert body["token"]

        me = client.get("/api/auth/me", headers=auth_headers(body["token"]))
        assert me.status_code == 200
        assert me.get_json()["user"]["id"] == body["user"]["id"]

    def test_duplicate_email_conflicts(self, client, db_session, alice):
        resp = client.post("/api/auth/register", json={**REGISTRATION, "email": alice.email.upper()})
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "User already exists with this email"

    def test_missing_profile_field(self, client, db_session):
        resp = client.post("/api/auth/register", json={**REGISTRATION, "address": "  "})
        assert resp.status_code == 400
        assert "address" in resp.get_json()["error"]

    def test_invalid_email(self, client, db_session):
        resp = client.post("/api/auth/register", json={**REGISTRATION, "email": "not-an-email"})
        assert resp.status_code == 400
        assert resp.get_json()["kind"] == "VALIDATION"

    def test_weak_password(self, client, db_session):
        resp = client.post("/api/auth/register", json={**REGISTRATION, "password": "password"})
        assert resp.status_code == 400
        assert db_session.query(User).count() == 0

    def test_non_object_body(self, client, db_session):
        resp = client.post("/api/auth/register", json=[REGISTRATION])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid JSON payload"
        assert db_session.query(User).count() == 0


class TestLoginRoute:

    def test_login_success(self, client, db_session, alice):
        resp = client.post("/api/auth/login", json={"email": alice.email, "password": TEST_PASSWORD})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["id"] == alice.id
        assert body["token"]

    @pytest.mark.parametrize(
        "email,password",
        [("alice@example.com", "Wrong123!"), ("nobody@example.com", TEST_PASSWORD)],
    )
    def test_bad_credentials_share_one_message(self, client, db_session, alice, email, password):
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid email or password"

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "alice@example.com"})
        assert resp.status_code == 400

    @pytest.mark.parametrize("body", [["alice@example.com", TEST_PASSWORD], "alice@example.com"])
    def test_non_object_body(self, client, db_session, alice, body):
        resp = client.post("/api/auth/login", json=body)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invalid JSON payload"

    def test_logout_revokes_token(self, client, db_session, alice):
        token = get_auth_token(db_session, alice)

        resp = client.post("/api/auth/logout", headers=auth_headers(token))
        assert resp.status_code == 200

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Unauthorized"


# =============================================================================
# SESSION TOKENS
# =============================================================================


class TestSessionTokens:

    def test_token_stored_hashed(self, db_session, alice):
        record, token = session_service.create_session(db_session, user_id=alice.id)
        assert record.token_hash == session_service.hash_token(token)
        assert record.token_hash != token
        assert record.expires_at - record.created_at == session_service.SESSION_ABSOLUTE_TIMEOUT

    def test_resolve_valid_bearer(self, db_session, alice):
        token = get_auth_token(db_session, alice)
        assert session_service.resolve_user_id(db_session, f"Bearer {token}") == alice.id
        assert session_service.resolve_user_id(db_session, f"bearer   {token}  ") == alice.id

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Token abc", "Bearer not-a-real-token"])
    def test_bad_headers_resolve_to_anonymous(self, db_session, alice, header):
        assert session_service.resolve_user_id(db_session, header) is None

    def test_expired_session(self, db_session, alice):
        record, token = session_service.create_session(db_session, user_id=alice.id)
        record.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(db_session, token) is None

    def test_idle_session_is_revoked(self, db_session, alice):
        record, token = session_service.create_session(db_session, user_id=alice.id)
        record.last_used_at = utcnow() - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(db_session, token) is None
        refreshed = db_session.get(SessionToken, record.id)
        assert refreshed.is_revoked is True
        assert refreshed.revoked_reason == "Idle timeout"

    def test_revoke_unknown_token(self, db_session):
        assert session_service.revoke_session(db_session, "nope") is False

    def test_cleanup_removes_old_dead_sessions(self, db_session, alice):
        old, old_token = session_service.create_session(db_session, user_id=alice.id)
        session_service.revoke_session(db_session, old_token)
        old.created_at = utcnow() - timedelta(days=45)
        live, _ = session_service.create_session(db_session, user_id=alice.id)
        db_session.commit()

        assert session_service.cleanup_expired_sessions(db_session, retention_days=30) == 1
        assert db_session.query(SessionToken).filter_by(id=live.id).count() == 1
