from sqlalchemy import Column, String, Boolean, DateTime, text
from sqlalchemy.dialects.postgresql import UUID

from .base import Base


class TenantAppDB(Base):
    """
    ORM Model - Mapping 1-1 with table 'apps' in Postgres.
    Only the argon2 hash of the API key is stored, never the key itself.
    """
    __tablename__ = "apps"

    id = Column(UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()"))
    name = Column(String(100), nullable=False)
    owner_email = Column(String(255), unique=True, nullable=False)
    api_key_hash = Column(String(255), nullable=False)
    revoked = Column(Boolean, nullable=False, server_default=text("FALSE"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    expires_at = Column(DateTime(timezone=True))
