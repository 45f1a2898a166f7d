"""
Account Service - registration, login and device sessions

Each login creates a user_sessions row; its id travels in the JWT as "sid"
so a device can be listed, renamed and revoked independently.
"""
import logging
from typing import List, Optional

from marketplace.core.auth import TokenUser, create_access_token, hash_password, verify_password
from marketplace.core.exceptions import AuthenticationError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from marketplace.core.session_policy import norm_role
from marketplace.domain.account import LoginRequest, RegisterRequest, Role, User
from marketplace.repositories.user_repository import SessionRepository, UserRepository

logger = logging.getLogger(__name__)

DEVICE_NAME_MAX = 40


class AccountService:

    def __init__(
        self,
        user_repo: Optional[UserRepository] = None,
        session_repo: Optional[SessionRepository] = None
    ):
        self.user_repo = user_repo or UserRepository()
        self.session_repo = session_repo or SessionRepository()

    def register(self, data: RegisterRequest) -> User:
        role = norm_role(data.role) or Role.SHOPPER
        if role not in Role.SELF_REGISTER:
            raise ForbiddenError(f"Role {role} cannot self-register")
        if self.user_repo.email_exists(data.email):
            raise ConflictError("Email already registered")

        user = self.user_repo.create(
            email=data.email,
            password_hash=hash_password(data.password),
            role=role,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
        )
        logger.info(f"Registered user {user.id} as {role}")
        return user

    def login(self, data: LoginRequest, ip: Optional[str] = None, user_agent: Optional[str] = None) -> dict:
        """
        Verify credentials and open a session

        Returns:
            {"token", "user", "sid"}
        """
        found = self.user_repo.find_with_password(data.email)
        if not found or not verify_password(data.password, found[1]):
            raise AuthenticationError("Invalid credentials")

        user = found[0]
        session = self.session_repo.create(user.id, ip, user_agent)
        token = create_access_token(user.id, user.email, user.role, session.id)
        logger.info(f"User {user.id} signed in (session {session.id})")
        return {"token": token, "user": user, "sid": session.id}

    def me(self, user: Optional[TokenUser]) -> Optional[User]:
        if user is None:
            return None
        return self.user_repo.find_by_id(user.id)

    def list_sessions(self, user: TokenUser) -> List[dict]:
        sessions = self.session_repo.find_for_user(user.id)
        result = []
        for session in sessions:
            data = session.to_dict()
            data["current"] = session.id == user.sid
            result.append(data)
        return result

    def revoke_session(self, user: TokenUser, session_id: str) -> None:
        if not self.session_repo.revoke(session_id, user.id, "Revoked by user"):
            raise NotFoundError("Session not found")

    def revoke_others(self, user: TokenUser) -> int:
        if not user.sid:
            raise ValidationError("No current session")
        return self.session_repo.revoke_others(user.id, user.sid, "Logged out other devices")

    def rename_session(self, user: TokenUser, session_id: str, device_name: Optional[str]):
        name = (device_name or "").strip()[:DEVICE_NAME_MAX] or None
        session = self.session_repo.rename(session_id, user.id, name)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def logout(self, user: Optional[TokenUser]) -> None:
        if user and user.sid:
            self.session_repo.revoke(user.sid, user.id, "Logged out")
