from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import AnyHttpUrl, Field, IPvAnyAddress, TypeAdapter, ValidationError, field_validator

from .base import CamelModel

_url_adapter = TypeAdapter(AnyHttpUrl)
_ip_adapter = TypeAdapter(IPvAnyAddress)


class EventCreate(CamelModel):
    """Analytics event submitted by a client app"""
    event: str = Field(..., min_length=1, max_length=100)
    url: Optional[str] = None
    referrer: Optional[str] = None
    device: Optional[str] = Field(None, max_length=100)
    ip_address: Optional[str] = None
    timestamp: Optional[datetime] = None
    user_id: Optional[str] = Field(None, max_length=255)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("url", "referrer", "device", "ip_address", "user_id", mode="before")
    @classmethod
    def empty_as_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("url", "referrer")
    @classmethod
    def check_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                _url_adapter.validate_python(value)
            except ValidationError:
                raise ValueError("must be a valid http(s) URL")
        return value

    @field_validator("ip_address")
    @classmethod
    def check_ip(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                return str(_ip_adapter.validate_python(value))
            except ValidationError:
                raise ValueError("must be a valid IP address")
        return value

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
