import json
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from .base_repository import BaseRepository
from ..schemas.analytics import SummaryFilters, UserStatsFilters
from ..schemas.event import EventCreate

RECENT_EVENTS_LIMIT = 10
UNKNOWN_DEVICE = "unknown"


def _time_conditions(
    start_date: Optional[datetime],
    end_date: Optional[datetime],
    params: list
) -> str:
    """Append the time-window filters to params and return the matching SQL."""
    sql = ""
    if start_date:
        params.append(start_date)
        sql += f" AND timestamp >= ${len(params)}"
    if end_date:
        params.append(end_date)
        sql += f" AND timestamp <= ${len(params)}"
    return sql


def build_summary_query(app_id: UUID, filters: SummaryFilters) -> Tuple[str, list]:
    """
    Per event name: row count, distinct users and a device -> count map.
    The app id is always $1; optional filters only ever narrow the scan.
    """
    params: list = [app_id]
    conditions = ""
    if filters.event:
        params.append(filters.event)
        conditions += f" AND event = ${len(params)}"
    conditions += _time_conditions(filters.start_date, filters.end_date, params)

    query = f"""
        WITH filtered AS (
            SELECT
                event,
                user_id,
                COALESCE(NULLIF(device, ''), '{UNKNOWN_DEVICE}') AS device
            FROM events
            WHERE app_id = $1{conditions}
        ),
        totals AS (
            SELECT event, COUNT(*) AS count, COUNT(DISTINCT user_id) AS unique_users
            FROM filtered
            GROUP BY event
        ),
        devices AS (
            SELECT event, device, COUNT(*) AS device_count
            FROM filtered
            GROUP BY event, device
        )
        SELECT
            t.event,
            t.count,
            t.unique_users,
            jsonb_object_agg(d.device, d.device_count) AS device_data
        FROM totals t
        JOIN devices d ON d.event = t.event
        GROUP BY t.event, t.count, t.unique_users
        ORDER BY t.event
    """
    return query, params


def build_user_stats_query(
    app_id: UUID,
    user_id: str,
    filters: UserStatsFilters
) -> Tuple[str, list]:
    """
    Totals plus the newest events for one user of one app.
    Ties on timestamp are broken by insertion order so results are stable.
    Yields no row at all when the user has no matching events.
    """
    params: list = [app_id, user_id]
    conditions = _time_conditions(filters.start_date, filters.end_date, params)

    query = f"""
        WITH ranked AS (
            SELECT
                event,
                timestamp,
                url,
                device,
                metadata,
                ip_address,
                ROW_NUMBER() OVER (ORDER BY timestamp DESC, id DESC) AS rn
            FROM events
            WHERE app_id = $1 AND user_id = $2{conditions}
        )
        SELECT
            COUNT(*) AS total_events,
            COALESCE(
                jsonb_agg(
                    jsonb_build_object(
                        'event', event,
                        'timestamp', timestamp,
                        'url', url,
                        'device', device
                    ) ORDER BY rn
                ) FILTER (WHERE rn <= {RECENT_EVENTS_LIMIT}),
                '[]'::jsonb
            ) AS recent_events,
            (jsonb_agg(metadata) FILTER (WHERE rn = 1)) -> 0 AS last_metadata,
            MAX(ip_address) FILTER (WHERE rn = 1) AS last_ip
        FROM ranked
        HAVING COUNT(*) > 0
    """
    return query, params


class EventRepository(BaseRepository):
    """Append-only event log plus the aggregate queries over it"""

    async def insert_event(self, app_id: UUID, event: EventCreate, timestamp: datetime) -> int:
        query = """
            INSERT INTO events (
                app_id,
                event,
                url,
                referrer,
                device,
                ip_address,
                timestamp,
                user_id,
                metadata
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9::jsonb)
            RETURNING id
        """
        return await self._fetchval(
            "events.insert",
            query,
            app_id,
            event.event,
            event.url,
            event.referrer,
            event.device,
            event.ip_address,
            timestamp,
            event.user_id,
            json.dumps(event.metadata) if event.metadata is not None else None
        )

    async def get_event_summary(self, app_id: UUID, filters: SummaryFilters) -> List[dict]:
        query, params = build_summary_query(app_id, filters)
        return await self._fetch("events.summary", query, *params)

    async def get_user_stats(
        self,
        app_id: UUID,
        user_id: str,
        filters: UserStatsFilters
    ) -> Optional[dict]:
        query, params = build_user_stats_query(app_id, user_id, filters)
        return await self._fetchrow("events.user_stats", query, *params)
