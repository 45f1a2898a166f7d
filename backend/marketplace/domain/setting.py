"""
Setting Domain Models

Key/value platform settings (margin, fees, tax mode) editable by super admins.
"""
from datetime import datetime
from typing import Optional

from marketplace.domain.base import DomainModel


class Setting(DomainModel):
    id: str
    key: str
    value: str = ""
    is_public: bool = False
    meta: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SettingCreate(DomainModel):
    key: str
    value: Optional[str] = None
    is_public: bool = False
    meta: Optional[dict] = None


class SettingUpdate(DomainModel):
    key: Optional[str] = None
    value: Optional[str] = None
    is_public: Optional[bool] = None
    meta: Optional[dict] = None
