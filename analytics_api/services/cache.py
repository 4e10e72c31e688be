"""
Best-effort Redis result cache.

The connection is attempted once, lazily, on first use. Its outcome is kept
for the life of the process: CONNECTED clients are reused, DISABLED means
every call is a miss/failure without touching the network again. Errors and
timeouts on individual calls are logged and absorbed; callers always fall
back to computing the result.
"""
import asyncio
import enum
import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import quote

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..config import settings
from ..exceptions import CacheUnavailableException

logger = logging.getLogger(__name__)


class CacheState(enum.Enum):
    UNATTEMPTED = "unattempted"
    CONNECTED = "connected"
    DISABLED = "disabled"


def _canonical(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc).isoformat()
    return quote(str(value), safe="")


def build_cache_key(kind: str, app_id: Any, filters: Mapping[str, Any]) -> str:
    """
    Deterministic key for a query: kind, app id, then every filter as
    name=value sorted by name. Values are percent-encoded so separators in
    user input cannot make two different queries share a key.
    """
    parts = [quote(kind, safe=""), _canonical(app_id)]
    parts.extend(f"{name}={_canonical(filters[name])}" for name in sorted(filters))
    return ":".join(parts)


class ResultCache:
    def __init__(self, redis_url: Optional[str] = None, op_timeout: float = None, client: redis.Redis = None):
        self.redis_url = redis_url
        self.op_timeout = op_timeout if op_timeout is not None else settings.CACHE_OP_TIMEOUT
        self.state = CacheState.UNATTEMPTED
        self._client: Optional[redis.Redis] = client
        self._connect_task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self.state is CacheState.CONNECTED

    async def _connect(self) -> None:
        if self._client is None and not self.redis_url:
            logger.info("REDIS_URL not set, caching disabled")
            self.state = CacheState.DISABLED
            return

        try:
            if self._client is None:
                self._client = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=self.op_timeout,
                    socket_timeout=self.op_timeout,
                )
            await asyncio.wait_for(self._client.ping(), timeout=self.op_timeout)
        except (RedisError, OSError, asyncio.TimeoutError, ValueError) as e:
            # ValueError: malformed REDIS_URL
            logger.warning("Redis connection failed (caching disabled)", extra={"error": type(e).__name__})
            self._client = None
            self.state = CacheState.DISABLED
            return

        logger.info("Redis connected")
        self.state = CacheState.CONNECTED

    async def _require_client(self) -> redis.Redis:
        """Return the live client, connecting on first use."""
        if self.state is CacheState.UNATTEMPTED:
            # concurrent first callers share one connection attempt
            if self._connect_task is None:
                self._connect_task = asyncio.ensure_future(self._connect())
            await asyncio.shield(self._connect_task)
        if self.state is not CacheState.CONNECTED:
            raise CacheUnavailableException()
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        """Cached value, or None on a miss or any cache failure."""
        try:
            client = await self._require_client()
            data = await asyncio.wait_for(client.get(key), timeout=self.op_timeout)
        except CacheUnavailableException:
            return None
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.warning("Cache get error", extra={"cache_key": key, "error": type(e).__name__})
            return None

        if data is None:
            return None
        try:
            return json.loads(data)
        except ValueError:
            logger.warning("Discarding undecodable cache entry", extra={"cache_key": key})
            return None

    async def put(self, key: str, value: Any, ttl: int = None) -> bool:
        ttl = ttl if ttl is not None else settings.CACHE_TTL_SECONDS
        try:
            client = await self._require_client()
            await asyncio.wait_for(client.setex(key, ttl, json.dumps(value, default=str)), timeout=self.op_timeout)
        except CacheUnavailableException:
            return False
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.warning("Cache set error", extra={"cache_key": key, "error": type(e).__name__})
            return False
        return True

    async def invalidate(self, key: str) -> bool:
        try:
            client = await self._require_client()
            await asyncio.wait_for(client.delete(key), timeout=self.op_timeout)
        except CacheUnavailableException:
            return False
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            logger.warning("Cache delete error", extra={"cache_key": key, "error": type(e).__name__})
            return False
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
