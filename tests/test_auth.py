"""
Authentication & access-control gate tests.

Test blocks:
  1. Login
  2. Bearer-token gate (uniform 401)
  3. Role gate (403)
  4. Self-registration and /me
  5. Public and unknown routes
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from conftest import make_user
from sitetrack.models import db
from sitetrack.models.auth import ROLE_ADMIN, ROLE_VIEWER, User
from sitetrack.utils.crypto import hash_password

UNAUTHENTICATED = {"error": "Authentication required", "code": "ERR_UNAUTHENTICATED"}


# ═══════════════════════════════════════════════════════════════════════════════
# Block 1: Login
# ═══════════════════════════════════════════════════════════════════════════════

class TestLogin:

    def test_login_returns_token_and_user(self, client, engineer):
        res = client.post("/api/auth/login",
                          json={"username": "engineer", "password": "secret-pass"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["token"]
        assert data["user"]["username"] == "engineer"
        assert data["user"]["role"] == "site_engineer"
        assert "password" not in data["user"]

    def test_token_from_login_opens_the_api(self, client, engineer):
        token = client.post("/api/auth/login",
                            json={"username": "engineer", "password": "secret-pass"}
                            ).get_json()["token"]
        res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        assert res.get_json()["username"] == "engineer"

    def test_wrong_password_is_401(self, client, engineer):
        res = client.post("/api/auth/login",
                          json={"username": "engineer", "password": "nope"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid credentials"

    def test_unknown_user_is_401(self, client):
        res = client.post("/api/auth/login", json={"username": "ghost", "password": "x"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid credentials"

    def test_missing_fields_is_400(self, client):
        res = client.post("/api/auth/login", json={"username": "engineer"})
        assert res.status_code == 400
        assert "password" in res.get_json()["details"]

    @pytest.mark.parametrize("body", [
        {"username": 123, "password": "secret-pass"},
        {"username": "engineer", "password": 5},
        {"username": ["engineer"], "password": "secret-pass"},
        {"username": "engineer", "password": {"plain": "secret-pass"}},
    ])
    def test_non_text_credentials_are_400(self, client, engineer, body):
        res = client.post("/api/auth/login", json=body)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_inactive_account_cannot_log_in(self, client):
        make_user("sleepy", ROLE_VIEWER, is_active=False)
        res = client.post("/api/auth/login", json={"username": "sleepy", "password": "secret-pass"})
        assert res.status_code == 401

    def test_bcrypt_credential_is_verified(self, client):
        user = User(username="root", email="root@example.com",
                    password=hash_password("hunter22"), role=ROLE_ADMIN)
        db.session.add(user)
        db.session.commit()
        ok = client.post("/api/auth/login", json={"username": "root", "password": "hunter22"})
        bad = client.post("/api/auth/login", json={"username": "root", "password": "hunter23"})
        assert ok.status_code == 200
        assert bad.status_code == 401


# ═══════════════════════════════════════════════════════════════════════════════
# Block 2: Bearer-token gate
# ═══════════════════════════════════════════════════════════════════════════════

class TestBearerGate:

    def test_missing_header(self, client):
        res = client.get("/api/progress")
        assert res.status_code == 401
        assert res.get_json() == UNAUTHENTICATED

    def test_malformed_token(self, client):
        res = client.get("/api/progress", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json() == UNAUTHENTICATED

    def test_wrong_scheme(self, client, engineer, auth_headers):
        token = auth_headers(engineer)["Authorization"].split()[1]
        res = client.get("/api/progress", headers={"Authorization": f"Token {token}"})
        assert res.status_code == 401

    def test_expired_token(self, app, client, engineer):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": str(engineer.id), "role": engineer.role, "type": "access",
             "iat": past, "exp": past + timedelta(minutes=5)},
            app.config["JWT_SECRET_KEY"], algorithm="HS256",
        )
        res = client.get("/api/progress", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json() == UNAUTHENTICATED

    def test_token_signed_with_other_key(self, client, engineer):
        token = jwt.encode(
            {"sub": str(engineer.id), "type": "access",
             "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "some-other-secret-key-of-decent-length", algorithm="HS256",
        )
        res = client.get("/api/progress", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_deactivated_account_token_rejected(self, client, engineer, auth_headers):
        headers = auth_headers(engineer)
        engineer.is_active = False
        db.session.commit()
        res = client.get("/api/progress", headers=headers)
        assert res.status_code == 401
        assert res.get_json() == UNAUTHENTICATED

    def test_deleted_account_token_rejected(self, client, engineer, auth_headers):
        headers = auth_headers(engineer)
        db.session.delete(engineer)
        db.session.commit()
        res = client.get("/api/progress", headers=headers)
        assert res.status_code == 401


# ═══════════════════════════════════════════════════════════════════════════════
# Block 3: Role gate
# ═══════════════════════════════════════════════════════════════════════════════

class TestRoleGate:

    @pytest.mark.parametrize("path", ["/api/users"])
    def test_admin_route_forbidden_for_viewer(self, client, viewer, auth_headers, path):
        res = client.get(path, headers=auth_headers(viewer))
        assert res.status_code == 403
        assert res.get_json() == {"error": "Access denied", "code": "ERR_FORBIDDEN"}

    def test_role_is_read_from_database_not_token(self, client, viewer, auth_headers):
        headers = auth_headers(viewer)
        viewer.role = ROLE_ADMIN
        db.session.commit()
        res = client.get("/api/users", headers=headers)
        assert res.status_code == 200


# ═══════════════════════════════════════════════════════════════════════════════
# Block 4: Self-registration and /me
# ═══════════════════════════════════════════════════════════════════════════════

class TestRegistration:

    def test_register_creates_viewer(self, client):
        res = client.post("/api/auth/register", json={
            "username": "newbie", "email": "Newbie@Example.com", "password": "pw-123456",
        })
        assert res.status_code == 201
        user = res.get_json()["user"]
        assert user["role"] == "viewer"
        assert user["email"] == "newbie@example.com"

    def test_register_rejects_role_field(self, client):
        res = client.post("/api/auth/register", json={
            "username": "sneaky", "email": "s@example.com", "password": "pw", "role": "admin",
        })
        assert res.status_code == 400
        assert User.query.filter_by(username="sneaky").first() is None

    def test_register_rejects_list_email(self, client):
        res = client.post("/api/auth/register", json={
            "username": "listy", "email": ["l@example.com"], "password": "pw",
        })
        assert res.status_code == 400
        assert res.get_json()["details"] == {"email": "must be a string"}
        assert User.query.filter_by(username="listy").first() is None

    def test_register_duplicate_username_is_409(self, client, viewer):
        res = client.post("/api/auth/register", json={
            "username": "viewer", "email": "other@example.com", "password": "pw",
        })
        assert res.status_code == 409

    def test_register_disabled(self, app, client):
        app.config["SELF_REGISTRATION_ENABLED"] = "false"
        try:
            res = client.post("/api/auth/register", json={
                "username": "late", "email": "late@example.com", "password": "pw",
            })
        finally:
            app.config["SELF_REGISTRATION_ENABLED"] = "true"
        assert res.status_code == 403

    def test_me_returns_profile(self, client, authority, auth_headers):
        res = client.get("/api/auth/me", headers=auth_headers(authority))
        assert res.status_code == 200
        data = res.get_json()
        assert data["role"] == "paying_authority"
        assert "password" not in data


# ═══════════════════════════════════════════════════════════════════════════════
# Block 5: Public and unknown routes
# ═══════════════════════════════════════════════════════════════════════════════

class TestPublicRoutes:

    def test_health_needs_no_token(self, client):
        res = client.get("/api/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_unknown_api_route_is_json_404(self, client):
        res = client.get("/api/nope")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_HTTP"

    def test_security_headers_present(self, client):
        res = client.get("/api/health")
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert res.headers["X-Frame-Options"] == "DENY"
        assert "X-Request-ID" in res.headers
