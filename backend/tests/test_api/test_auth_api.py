"""
API tests for authentication, device sessions and notifications
"""
from unittest.mock import MagicMock

from marketplace.api.auth import get_account_service
from marketplace.api.notifications import get_notification_service
from marketplace.core.auth import get_current_user, get_current_user_optional
from marketplace.core.exceptions import AuthenticationError, ConflictError
from marketplace.domain.account import User


def _account_service():
    service = MagicMock()
    service.register.return_value = User(id="user-9", email="ada@example.com", role="SHOPPER")
    service.login.return_value = {
        "token": "signed.jwt.token",
        "user": User(id="user-1", email="ada@example.com", role="SHOPPER"),
        "sid": "sess-1",
    }
    return service


class TestRegisterAndLogin:

    def test_register(self, app, client):
        service = _account_service()
        app.dependency_overrides[get_account_service] = lambda: service

        response = client.post("/api/auth/register", json={"email": "ada@example.com", "password": "s3cret-pass"})

        assert response.status_code == 201
        assert response.json()["data"]["email"] == "ada@example.com"
        assert response.json()["data"]["emailVerified"] is False

    def test_register_rejects_short_password(self, app, client):
        app.dependency_overrides[get_account_service] = _account_service

        response = client.post("/api/auth/register", json={"email": "ada@example.com", "password": "short"})

        assert response.status_code == 422

    def test_register_duplicate_email(self, app, client):
        service = _account_service()
        service.register.side_effect = ConflictError("Email already registered")
        app.dependency_overrides[get_account_service] = lambda: service

        response = client.post("/api/auth/register", json={"email": "ada@example.com", "password": "s3cret-pass"})

        assert response.status_code == 409

    def test_login_sets_cookie(self, app, client):
        service = _account_service()
        app.dependency_overrides[get_account_service] = lambda: service

        response = client.post(
            "/api/auth/login",
            json={"email": "ada@example.com", "password": "s3cret-pass"},
            headers={"user-agent": "pytest", "x-forwarded-for": "41.58.1.2"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["sid"] == "sess-1"
        assert "access_token=signed.jwt.token" in response.headers["set-cookie"]
        assert "httponly" in response.headers["set-cookie"].lower()
        assert service.login.call_args.kwargs["user_agent"] == "pytest"

    def test_bad_credentials(self, app, client):
        service = _account_service()
        service.login.side_effect = AuthenticationError("Invalid credentials")
        app.dependency_overrides[get_account_service] = lambda: service

        response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "wrong-pass"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid credentials"}

    def test_logout_always_clears_cookie(self, app, client):
        service = _account_service()
        service.logout.side_effect = RuntimeError("db down")
        app.dependency_overrides[get_account_service] = lambda: service
        app.dependency_overrides[get_current_user_optional] = lambda: None

        response = client.post("/api/auth/logout")

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert "access_token=" in response.headers["set-cookie"]


class TestSessionEndpoints:

    def test_anonymous_session(self, app, client):
        service = _account_service()
        service.me.return_value = None
        app.dependency_overrides[get_account_service] = lambda: service

        response = client.get("/api/auth/session")

        assert response.status_code == 200
        assert response.json()["data"] == {"user": None, "sid": None}

    def test_signed_in_session(self, app, client, shopper):
        service = _account_service()
        service.me.return_value = User(id="user-1", email="ada@example.com")
        app.dependency_overrides[get_account_service] = lambda: service
        app.dependency_overrides[get_current_user_optional] = lambda: shopper

        response = client.get("/api/auth/session")

        assert response.json()["data"]["sid"] == "sess-1"

    def test_sessions_require_sign_in(self, app, client):
        app.dependency_overrides[get_account_service] = _account_service

        assert client.get("/api/auth/sessions").status_code == 401

    def test_revoke_others(self, app, client, shopper):
        service = _account_service()
        service.revoke_others.return_value = 2
        app.dependency_overrides[get_account_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: shopper

        response = client.post("/api/auth/sessions/revoke-others")

        assert response.json() == {"ok": True, "revoked": 2}

    def test_garbage_bearer_token_is_401(self, app, client):
        app.dependency_overrides[get_account_service] = _account_service

        response = client.get("/api/auth/sessions", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401


class TestNotificationsApi:

    def test_list(self, app, client, shopper):
        service = MagicMock()
        service.list_for_user.return_value = {"items": [], "unreadCount": 0, "nextCursor": None}
        app.dependency_overrides[get_notification_service] = lambda: service
        app.dependency_overrides[get_current_user] = lambda: shopper

        response = client.get("/api/notifications")

        assert response.status_code == 200
        assert response.json()["data"]["unreadCount"] == 0
