from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, Field

from .base import CamelModel


class AppRegister(CamelModel):
    """Input for app registration"""
    name: str = Field(..., min_length=3, max_length=100)
    owner_email: EmailStr


class AppLookup(CamelModel):
    email: EmailStr


class AppIdRequest(CamelModel):
    app_id: UUID


class AppInfo(CamelModel):
    """Public view of a registered app; never carries the key or its hash"""
    app_id: UUID
    name: str
    owner_email: str
    revoked: bool = False
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: dict) -> "AppInfo":
        return cls(
            app_id=record["id"],
            name=record["name"],
            owner_email=record["owner_email"],
            revoked=record.get("revoked", False),
            created_at=record.get("created_at"),
            expires_at=record.get("expires_at"),
        )


class AppRegistered(AppInfo):
    api_key: str


class KeyRegenerated(CamelModel):
    app_id: UUID
    name: str
    api_key: str
