"""
Unit tests for AccountService (registration, login, device sessions)
"""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from marketplace.core.auth import decode_access_token, hash_password
from marketplace.core.exceptions import AuthenticationError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from marketplace.domain.account import LoginRequest, RegisterRequest, User, UserSession
from marketplace.services.account_service import AccountService

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _session(session_id):
    return UserSession(id=session_id, user_id="user-1", created_at=NOW, device_name="Pixel 8")


@pytest.fixture
def repos():
    user_repo = MagicMock()
    user_repo.email_exists.return_value = False
    user_repo.create.side_effect = lambda **kw: User(id="user-9", email=kw["email"], role=kw["role"])
    session_repo = MagicMock()
    session_repo.create.return_value = _session("sess-new")
    return user_repo, session_repo


class TestRegister:

    def test_registers_shopper_with_hashed_password(self, repos):
        user_repo, session_repo = repos

        user = AccountService(user_repo, session_repo).register(
            RegisterRequest(email="ada@example.com", password="s3cret-pass")
        )

        assert user.role == "SHOPPER"
        stored_hash = user_repo.create.call_args.kwargs["password_hash"]
        assert stored_hash != "s3cret-pass"

    def test_supplier_can_self_register(self, repos):
        user = AccountService(*repos).register(
            RegisterRequest(email="shop@example.com", password="s3cret-pass", role="supplier")
        )

        assert user.role == "SUPPLIER"

    def test_admin_cannot_self_register(self, repos):
        with pytest.raises(ForbiddenError):
            AccountService(*repos).register(
                RegisterRequest(email="x@example.com", password="s3cret-pass", role="ADMIN")
            )

    def test_duplicate_email(self, repos):
        repos[0].email_exists.return_value = True

        with pytest.raises(ConflictError, match="Email already registered"):
            AccountService(*repos).register(RegisterRequest(email="ada@example.com", password="s3cret-pass"))


class TestLogin:

    def test_login_opens_session_and_signs_token(self, repos):
        user_repo, session_repo = repos
        user = User(id="user-1", email="ada@example.com", role="SHOPPER")
        user_repo.find_with_password.return_value = (user, hash_password("s3cret-pass"))

        result = AccountService(user_repo, session_repo).login(
            LoginRequest(email="ada@example.com", password="s3cret-pass"), ip="41.58.1.2", user_agent="pytest"
        )

        assert result["sid"] == "sess-new"
        assert result["user"] is user
        session_repo.create.assert_called_once_with("user-1", "41.58.1.2", "pytest")
        assert decode_access_token(result["token"])["sid"] == "sess-new"

    def test_wrong_password(self, repos):
        user = User(id="user-1", email="ada@example.com")
        repos[0].find_with_password.return_value = (user, hash_password("s3cret-pass"))

        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            AccountService(*repos).login(LoginRequest(email="ada@example.com", password="wrong-pass"))

        repos[1].create.assert_not_called()

    def test_unknown_email(self, repos):
        repos[0].find_with_password.return_value = None

        with pytest.raises(AuthenticationError):
            AccountService(*repos).login(LoginRequest(email="who@example.com", password="whatever1"))


class TestSessions:

    def test_list_marks_current_session(self, repos, shopper):
        repos[1].find_for_user.return_value = [_session("sess-1"), _session("sess-2")]

        sessions = AccountService(*repos).list_sessions(shopper)

        assert [(s["id"], s["current"]) for s in sessions] == [("sess-1", True), ("sess-2", False)]
        assert sessions[0]["deviceName"] == "Pixel 8"

    def test_revoke_unknown_session(self, repos, shopper):
        repos[1].revoke.return_value = False

        with pytest.raises(NotFoundError):
            AccountService(*repos).revoke_session(shopper, "sess-x")

    def test_revoke_others_needs_current_session(self, repos):
        from marketplace.core.auth import TokenUser

        with pytest.raises(ValidationError):
            AccountService(*repos).revoke_others(TokenUser(id="user-1", email="ada@example.com"))

    def test_revoke_others_keeps_current(self, repos, shopper):
        repos[1].revoke_others.return_value = 2

        assert AccountService(*repos).revoke_others(shopper) == 2
        repos[1].revoke_others.assert_called_once_with("user-1", "sess-1", "Logged out other devices")

    def test_rename_trims_device_name(self, repos, shopper):
        repos[1].rename.return_value = _session("sess-1")

        AccountService(*repos).rename_session(shopper, "sess-1", "  " + "x" * 60)

        assert repos[1].rename.call_args.args[2] == "x" * 40

    def test_rename_blank_clears_name(self, repos, shopper):
        repos[1].rename.return_value = _session("sess-1")

        AccountService(*repos).rename_session(shopper, "sess-1", "   ")

        assert repos[1].rename.call_args.args[2] is None

    def test_logout_revokes_current_session(self, repos, shopper):
        AccountService(*repos).logout(shopper)

        repos[1].revoke.assert_called_once_with("sess-1", "user-1", "Logged out")

    def test_anonymous_logout_is_a_no_op(self, repos):
        AccountService(*repos).logout(None)

        repos[1].revoke.assert_not_called()
