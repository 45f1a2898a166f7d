"""
Account tables: users, login sessions, notifications and platform settings
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from marketplace.core.database import Base
from marketplace.models._columns import uuid_pk, created_at_column, updated_at_column


class User(Base):
    __tablename__ = "users"

    id = uuid_pk()
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(30), nullable=False, server_default="SHOPPER", index=True)
    first_name = Column(String(120))
    last_name = Column(String(120))
    phone = Column(String(30))
    email_verified_at = Column(DateTime(timezone=True))
    phone_verified_at = Column(DateTime(timezone=True))
    created_at = created_at_column()
    updated_at = updated_at_column()


class UserSession(Base):
    __tablename__ = "user_sessions"
    __table_args__ = (Index("ix_user_sessions_user_last_seen", "user_id", "last_seen_at"),)

    id = uuid_pk()
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    ip = Column(String(64))
    user_agent = Column(Text)
    device_name = Column(String(40))
    created_at = created_at_column()
    last_seen_at = created_at_column()
    revoked_at = Column(DateTime(timezone=True), index=True)
    revoked_reason = Column(String(120))


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)

    id = uuid_pk()
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(40), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSONB)
    read_at = Column(DateTime(timezone=True))
    created_at = created_at_column()


class Setting(Base):
    __tablename__ = "settings"

    id = uuid_pk()
    key = Column(String(120), nullable=False, unique=True)
    value = Column(Text, nullable=False, server_default="")
    is_public = Column(Boolean, nullable=False, server_default="false")
    meta = Column(JSONB)
    created_at = created_at_column()
    updated_at = updated_at_column()
