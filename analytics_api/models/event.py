from sqlalchemy import Column, BigInteger, String, Text, DateTime, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID, JSONB

from .base import Base


class EventDB(Base):
    """Append-only analytics event log."""
    __tablename__ = "events"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    app_id = Column(UUID(as_uuid=True), ForeignKey("apps.id"), nullable=False)
    event = Column(String(100), nullable=False)
    url = Column(Text)
    referrer = Column(Text)
    device = Column(String(100))
    ip_address = Column(String(45))
    timestamp = Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    user_id = Column(String(255))
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSONB)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))

    __table_args__ = (
        Index("ix_events_app_event_timestamp", "app_id", "event", "timestamp"),
        Index("ix_events_app_user_timestamp", "app_id", "user_id", "timestamp"),
    )
