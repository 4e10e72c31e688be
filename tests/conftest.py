
import json
import uuid
from collections import Counter
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from analytics_api.main import app
from analytics_api.dependencies import get_analytics_service, get_api_key_service, get_cache
from analytics_api.exceptions import DuplicateOwnerException
from analytics_api.repositories.event_repository import RECENT_EVENTS_LIMIT, UNKNOWN_DEVICE
from analytics_api.services.analytics_service import AnalyticsService
from analytics_api.services.api_key_service import ApiKeyService
from analytics_api.services.cache import ResultCache

PUBLIC_FIELDS = ("id", "name", "owner_email", "revoked", "created_at", "expires_at")


class FakeAppRepository:
    """In-memory stand-in for AppRepository with the same return shapes"""

    def __init__(self):
        self.rows = {}

    def _public(self, row):
        return {field: row[field] for field in PUBLIC_FIELDS}

    async def get_by_email(self, email):
        for row in self.rows.values():
            if row["owner_email"] == email:
                return self._public(row)
        return None

    async def list_active(self):
        return [
            {**self._public(row), "api_key_hash": row["api_key_hash"]}
            for row in sorted(self.rows.values(), key=lambda r: r["created_at"])
            if not row["revoked"]
        ]

    async def create_app(self, name, owner_email, api_key_hash, expires_at):
        if any(row["owner_email"] == owner_email for row in self.rows.values()):
            raise DuplicateOwnerException()
        app_id = uuid.uuid4()
        self.rows[app_id] = {
            "id": app_id,
            "name": name,
            "owner_email": owner_email,
            "api_key_hash": api_key_hash,
            "revoked": False,
            "created_at": datetime.now(timezone.utc),
            "expires_at": expires_at,
        }
        return self._public(self.rows[app_id])

    async def revoke(self, app_id):
        row = self.rows.get(app_id)
        if not row:
            return None
        row["revoked"] = True
        return self._public(row)

    async def replace_key_hash(self, app_id, api_key_hash):
        row = self.rows.get(app_id)
        if not row:
            return None
        row["api_key_hash"] = api_key_hash
        row["revoked"] = False
        return self._public(row)


class FakeEventRepository:
    """In-memory event log computing what the SQL aggregates compute"""

    def __init__(self):
        self.events = []

    async def insert_event(self, app_id, event, timestamp):
        self.events.append({
            "id": len(self.events) + 1,
            "app_id": app_id,
            "event": event.event,
            "url": event.url,
            "device": event.device,
            "ip_address": event.ip_address,
            "timestamp": timestamp,
            "user_id": event.user_id,
            "metadata": event.metadata,
        })
        return len(self.events)

    def _matching(self, app_id, start_date, end_date):
        for row in self.events:
            if row["app_id"] != app_id:
                continue
            if start_date and row["timestamp"] < start_date:
                continue
            if end_date and row["timestamp"] > end_date:
                continue
            yield row

    async def get_event_summary(self, app_id, filters):
        groups = {}
        for row in self._matching(app_id, filters.start_date, filters.end_date):
            if filters.event and row["event"] != filters.event:
                continue
            groups.setdefault(row["event"], []).append(row)
        return [
            {
                "event": name,
                "count": len(rows),
                "unique_users": len({r["user_id"] for r in rows if r["user_id"] is not None}),
                # asyncpg returns jsonb as text
                "device_data": json.dumps(Counter(r["device"] or UNKNOWN_DEVICE for r in rows)),
            }
            for name, rows in sorted(groups.items())
        ]

    async def get_user_stats(self, app_id, user_id, filters):
        rows = [
            r for r in self._matching(app_id, filters.start_date, filters.end_date)
            if r["user_id"] == user_id
        ]
        if not rows:
            return None
        rows.sort(key=lambda r: (r["timestamp"], r["id"]), reverse=True)
        return {
            "total_events": len(rows),
            "recent_events": json.dumps([
                {
                    "event": r["event"],
                    "timestamp": r["timestamp"].isoformat(),
                    "url": r["url"],
                    "device": r["device"],
                }
                for r in rows[:RECENT_EVENTS_LIMIT]
            ]),
            "last_metadata": json.dumps(rows[0]["metadata"]),
            "last_ip": rows[0]["ip_address"],
        }


class FakeRedis:
    """Dict-backed async Redis double; expire_all() simulates TTL expiry"""

    def __init__(self):
        self.data = {}
        self.ttls = {}
        self.ping_calls = 0

    async def ping(self):
        self.ping_calls += 1
        return True

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    async def aclose(self):
        pass

    def expire_all(self):
        self.data.clear()
        self.ttls.clear()


@pytest.fixture
def app_repo():
    return FakeAppRepository()


@pytest.fixture
def event_repo():
    return FakeEventRepository()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def result_cache(fake_redis):
    return ResultCache(client=fake_redis)


@pytest_asyncio.fixture
async def client(app_repo, event_repo, result_cache):
    # Override dependencies
    app.dependency_overrides[get_api_key_service] = lambda: ApiKeyService(app_repo)
    app.dependency_overrides[get_analytics_service] = lambda: AnalyticsService(event_repo, result_cache)
    app.dependency_overrides[get_cache] = lambda: result_cache

    transport = ASGITransport(app=app)
    from analytics_api.limiter import limiter
    limiter.enabled = False
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    limiter.enabled = True

    app.dependency_overrides = {}


@pytest_asyncio.fixture
async def registered_app(client):
    """Register "Acme" and return its response data (appId, apiKey, ...)"""
    response = await client.post("/api/auth/register", json={
        "name": "Acme",
        "ownerEmail": "acme@x.com"
    })
    assert response.status_code == 201
    return response.json()["data"]
