"""
Authentication for the marketplace API
Issues and validates HS256 JWTs tied to a server-side login session
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from marketplace.core.config import settings
from marketplace.core.session_policy import norm_role, session_expiry_reason

logger = logging.getLogger(__name__)

# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ADMIN_ROLES = ("ADMIN", "SUPER_ADMIN")


class TokenUser(BaseModel):
    """User data extracted from JWT token"""
    id: str
    email: str
    role: str = "SHOPPER"
    sid: Optional[str] = None


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def is_admin(user: Optional[TokenUser]) -> bool:
    return bool(user) and norm_role(user.role) in ADMIN_ROLES


def create_access_token(user_id: str, email: str, role: str, sid: str) -> str:
    """Sign a JWT for a user session"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "role": norm_role(role),
        "sid": sid,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)).timestamp()),
    }
    return jwt.encode(payload, settings.AUTH_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and validate a JWT.

    Payload:
    {
        "sub": "user_id",
        "email": "ada@example.com",
        "role": "SHOPPER",
        "sid": "session_id",
        "iat": 1234567890,
        "exp": 1234567890
    }
    """
    try:
        return jwt.decode(token, settings.AUTH_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        error_msg = str(e).lower()
        if "expired" in error_msg:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"}
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"}
        )


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Bearer header first, then the auth cookie"""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


def _check_session(payload: dict) -> None:
    """Reject tokens whose login session was revoked or has timed out"""
    from marketplace.repositories.user_repository import SessionRepository

    sid = payload.get("sid")
    if not sid:
        return

    repo = SessionRepository()
    session = repo.find_by_id(sid)
    if session is None or session.is_revoked:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has been revoked",
            headers={"WWW-Authenticate": "Bearer"}
        )

    now = datetime.now(timezone.utc)
    reason = session_expiry_reason(payload.get("role"), session.created_at, session.last_seen_at, now)
    if reason:
        repo.revoke(session.id, session.user_id, f"Expired ({reason})")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
            headers={"WWW-Authenticate": "Bearer"}
        )

    repo.touch(session.id, now)


def _user_from_payload(payload: dict) -> Optional[TokenUser]:
    user_id = payload.get("sub") or payload.get("id")
    email = payload.get("email")
    if not user_id or not email:
        return None
    return TokenUser(
        id=user_id,
        email=email,
        role=norm_role(payload.get("role")) or "SHOPPER",
        sid=payload.get("sid"),
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenUser:
    """
    Dependency that extracts and validates the current user from JWT.

    Usage:
        @router.get("/protected")
        async def protected_route(user: TokenUser = Depends(get_current_user)):
            return {"message": f"Hello {user.email}"}
    """
    token = extract_token(request, credentials)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )

    payload = decode_access_token(token)
    user = _user_from_payload(payload)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing user id or email",
            headers={"WWW-Authenticate": "Bearer"}
        )

    _check_session(payload)
    return user


async def get_current_user_optional(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenUser]:
    """
    Optional authentication - returns None if no valid token provided.
    """
    token = extract_token(request, credentials)
    if not token:
        return None

    try:
        payload = decode_access_token(token)
        user = _user_from_payload(payload)
        if user is None:
            return None
        _check_session(payload)
        return user
    except HTTPException:
        return None


def require_role(*roles: str):
    """
    Dependency factory for role-based access control.

    SUPER_ADMIN passes every check that ADMIN passes.

    Usage:
        @router.delete("/categories/{category_id}")
        async def delete_category(
            category_id: str,
            user: TokenUser = Depends(require_role("ADMIN"))
        ):
            pass
    """
    allowed = {norm_role(role) for role in roles}
    if "ADMIN" in allowed:
        allowed.add("SUPER_ADMIN")

    async def role_checker(
        user: TokenUser = Depends(get_current_user)
    ) -> TokenUser:
        if norm_role(user.role) not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(sorted(allowed))}, your role: {user.role}"
            )
        return user

    return role_checker


# Convenience dependencies for common role requirements
require_admin = require_role("ADMIN")
require_super_admin = require_role("SUPER_ADMIN")
require_supplier = require_role("SUPPLIER", "ADMIN")
