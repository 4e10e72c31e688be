from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator

from .base import CamelModel


class TimeWindow(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SummaryFilters(TimeWindow):
    event: Optional[str] = None


class UserStatsFilters(TimeWindow):
    pass


class EventSummary(CamelModel):
    """One group of the event summary"""
    event_name: str
    count: int
    unique_user_count: int
    device_breakdown: Dict[str, int]


class RecentEvent(CamelModel):
    event_name: str
    timestamp: datetime
    url: Optional[str] = None
    device: Optional[str] = None


class UserStats(CamelModel):
    user_id: str
    total_event_count: int
    recent_events: List[RecentEvent]
    last_known_metadata: Optional[Dict[str, Any]] = None
    last_known_ip: Optional[str] = None
