import logging
from dataclasses import dataclass
from typing import Optional

import asyncpg
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader

from .config import settings, API_KEY_HEADER
from .core.security import is_admin_key
from .db_init import init_schema
from .exceptions import StoreUnavailableException
from .repositories.app_repository import AppRepository
from .repositories.event_repository import EventRepository
from .services.analytics_service import AnalyticsService
from .services.api_key_service import ApiKeyService
from .services.cache import ResultCache

logger = logging.getLogger(__name__)


# Process-wide connections
class AppState:
    pg_pool: Optional[asyncpg.Pool] = None
    cache: Optional[ResultCache] = None

state = AppState()


async def init_resources():
    """Create the database pool and the (not yet connected) result cache."""
    state.cache = ResultCache(settings.REDIS_URL)

    try:
        state.pg_pool = await asyncpg.create_pool(
            settings.DATABASE_URL,
            min_size=settings.DB_POOL_MIN_SIZE,
            max_size=settings.DB_POOL_MAX_SIZE,
            command_timeout=settings.DB_COMMAND_TIMEOUT,
            timeout=settings.DB_COMMAND_TIMEOUT,
        )
        await init_schema(state.pg_pool)
        logger.info("Database connected")
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        # serve anyway; store-backed routes answer 503 until restart
        logger.error("Database connection failed", extra={"error": type(e).__name__})
        state.pg_pool = None


async def close_resources():
    if state.cache:
        await state.cache.close()
    if state.pg_pool:
        await state.pg_pool.close()


# Dependencies
async def get_db_pool() -> asyncpg.Pool:
    if state.pg_pool is None:
        raise StoreUnavailableException()
    return state.pg_pool

async def get_cache() -> ResultCache:
    if state.cache is None:
        state.cache = ResultCache(settings.REDIS_URL)
    return state.cache

async def get_api_key_service(db = Depends(get_db_pool)) -> ApiKeyService:
    return ApiKeyService(AppRepository(db))

async def get_analytics_service(
    db = Depends(get_db_pool),
    cache = Depends(get_cache)
) -> AnalyticsService:
    return AnalyticsService(EventRepository(db), cache)


# Auth Dependencies
api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


@dataclass
class Caller:
    """Who is making a management request: an app, or the admin key holder"""
    app: Optional[dict] = None
    is_admin: bool = False


async def get_current_app(
    request: Request,
    api_key: Optional[str] = Depends(api_key_header),
    service: ApiKeyService = Depends(get_api_key_service)
) -> dict:
    """Verified app for the x-api-key header; UnauthorizedException otherwise."""
    app = await service.verify(api_key)
    request.state.app_id = str(app["id"])
    return app


async def get_caller(
    request: Request,
    api_key: Optional[str] = Depends(api_key_header),
    service: ApiKeyService = Depends(get_api_key_service)
) -> Caller:
    if is_admin_key(api_key):
        return Caller(is_admin=True)
    app = await service.verify(api_key)
    request.state.app_id = str(app["id"])
    return Caller(app=app)
