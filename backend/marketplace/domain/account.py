"""
Account Domain Models

Users, login sessions and in-app notifications.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from marketplace.domain.base import DomainModel


class Role:
    SHOPPER = "SHOPPER"
    SUPPLIER = "SUPPLIER"
    SUPPLIER_RIDER = "SUPPLIER_RIDER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    ADMINS = (ADMIN, SUPER_ADMIN)
    SELF_REGISTER = (SHOPPER, SUPPLIER)


class User(DomainModel):
    id: str
    email: str
    role: str = Role.SHOPPER
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email_verified_at: Optional[datetime] = None
    phone_verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def to_public(self) -> dict:
        """User payload for /auth/me and /auth/session"""
        data = self.to_dict()
        data["emailVerified"] = self.email_verified_at is not None
        data["phoneVerified"] = self.phone_verified_at is not None
        return data


class RegisterRequest(DomainModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = Role.SHOPPER


class LoginRequest(DomainModel):
    email: EmailStr
    password: str


class UserSession(DomainModel):
    id: str
    user_id: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    device_name: Optional[str] = None
    created_at: datetime
    last_seen_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None


class SessionRename(DomainModel):
    device_name: Optional[str] = None


class Notification(DomainModel):
    id: str
    user_id: str
    type: str
    title: str
    body: str
    data: Optional[dict] = None
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class MarkReadRequest(DomainModel):
    all: bool = False
    ids: List[str] = Field(default_factory=list)
