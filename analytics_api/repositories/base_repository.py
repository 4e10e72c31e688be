import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import asyncpg
from asyncpg import Pool

from ..exceptions import StoreUnavailableException

logger = logging.getLogger(__name__)

# Failures that mean "the store is unreachable or too slow", as opposed to a bad query
TRANSIENT_STORE_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
    asyncpg.exceptions.QueryCanceledError,
    asyncio.TimeoutError,
    OSError,
)


class BaseRepository:
    def __init__(self, db: Pool):
        self.db = db

    @asynccontextmanager
    async def _store_call(self, operation: str):
        try:
            yield
        except TRANSIENT_STORE_ERRORS as e:
            logger.error(f"Store call failed: {operation}", extra={"error": type(e).__name__})
            raise StoreUnavailableException() from e

    async def _fetch(self, operation: str, query: str, *args) -> List[dict]:
        async with self._store_call(operation):
            rows = await self.db.fetch(query, *args)
        return [dict(row) for row in rows]

    async def _fetchrow(self, operation: str, query: str, *args) -> Optional[dict]:
        async with self._store_call(operation):
            row = await self.db.fetchrow(query, *args)
        return dict(row) if row else None

    async def _fetchval(self, operation: str, query: str, *args) -> Any:
        async with self._store_call(operation):
            return await self.db.fetchval(query, *args)
