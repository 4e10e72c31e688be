import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple
from uuid import UUID

from ..config import settings
from ..exceptions import NotFoundException, ValidationFailedException
from ..repositories.event_repository import EventRepository
from ..schemas.analytics import EventSummary, RecentEvent, SummaryFilters, UserStats, UserStatsFilters
from ..schemas.event import EventCreate
from .cache import ResultCache, build_cache_key

logger = logging.getLogger(__name__)

SUMMARY_CACHE_KIND = "summary"
USER_STATS_CACHE_KIND = "userstats"


def _load_json(value: Any) -> Any:
    # asyncpg hands jsonb back as text unless a codec is registered
    return json.loads(value) if isinstance(value, str) else value


def _check_window(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date and end_date and start_date > end_date:
        raise ValidationFailedException("startDate must not be after endDate")


class AnalyticsService:
    def __init__(self, event_repo: EventRepository, cache: ResultCache):
        self.event_repo = event_repo
        self.cache = cache

    async def collect_event(self, app_id: UUID, event: EventCreate) -> int:
        """Append one event for the authenticated app; server time when none is given."""
        timestamp = event.timestamp or datetime.now(timezone.utc)
        event_id = await self.event_repo.insert_event(app_id, event, timestamp)
        logger.debug(f"Event collected: {event.event}", extra={"app_id": str(app_id)})
        return event_id

    async def get_event_summary(
        self,
        app_id: UUID,
        filters: SummaryFilters
    ) -> Tuple[List[EventSummary], bool]:
        """
        Summary groups sorted by event name, and whether they came from cache.
        Cached results may lag new events by up to CACHE_TTL_SECONDS.
        """
        _check_window(filters.start_date, filters.end_date)

        cache_key = build_cache_key(SUMMARY_CACHE_KIND, app_id, filters.model_dump())
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return [EventSummary.model_validate(item) for item in cached], True

        rows = await self.event_repo.get_event_summary(app_id, filters)
        summary = [
            EventSummary(
                event_name=row["event"],
                count=int(row["count"]),
                unique_user_count=int(row["unique_users"]),
                device_breakdown={
                    device: int(count)
                    for device, count in (_load_json(row["device_data"]) or {}).items()
                },
            )
            for row in rows
        ]

        await self.cache.put(
            cache_key,
            [item.model_dump(mode="json") for item in summary],
            settings.CACHE_TTL_SECONDS
        )
        return summary, False

    async def get_user_stats(
        self,
        app_id: UUID,
        user_id: str,
        filters: UserStatsFilters
    ) -> Tuple[UserStats, bool]:
        _check_window(filters.start_date, filters.end_date)

        cache_key = build_cache_key(
            USER_STATS_CACHE_KIND, app_id, {"user_id": user_id, **filters.model_dump()}
        )
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return UserStats.model_validate(cached), True

        row = await self.event_repo.get_user_stats(app_id, user_id, filters)
        if not row or not row["total_events"]:
            raise NotFoundException("User not found")

        recent = _load_json(row["recent_events"]) or []
        last_metadata = _load_json(row["last_metadata"])
        stats = UserStats(
            user_id=user_id,
            total_event_count=int(row["total_events"]),
            recent_events=[
                RecentEvent(
                    event_name=item["event"],
                    timestamp=item["timestamp"],
                    url=item.get("url"),
                    device=item.get("device"),
                )
                for item in recent
            ],
            last_known_metadata=last_metadata if isinstance(last_metadata, dict) else None,
            last_known_ip=row["last_ip"],
        )

        await self.cache.put(cache_key, stats.model_dump(mode="json"), settings.CACHE_TTL_SECONDS)
        return stats, False
