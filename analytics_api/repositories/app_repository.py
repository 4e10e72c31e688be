from datetime import datetime
from typing import List, Optional
from uuid import UUID

import asyncpg

from .base_repository import BaseRepository
from ..exceptions import DuplicateOwnerException

# Columns safe to hand out; api_key_hash is only selected for verification
PUBLIC_COLUMNS = "id, name, owner_email, revoked, created_at, expires_at"


class AppRepository(BaseRepository):
    """Credential store: one row per registered app in table 'apps'"""

    async def get_by_email(self, email: str) -> Optional[dict]:
        query = f"SELECT {PUBLIC_COLUMNS} FROM apps WHERE owner_email = $1"
        return await self._fetchrow("apps.get_by_email", query, email)

    async def list_active(self) -> List[dict]:
        """Every non-revoked app with its key hash, oldest first."""
        query = f"""
            SELECT {PUBLIC_COLUMNS}, api_key_hash
            FROM apps
            WHERE revoked = FALSE
            ORDER BY created_at, id
        """
        return await self._fetch("apps.list_active", query)

    async def create_app(
        self,
        name: str,
        owner_email: str,
        api_key_hash: str,
        expires_at: datetime
    ) -> dict:
        query = f"""
            INSERT INTO apps (name, owner_email, api_key_hash, expires_at)
            VALUES ($1, $2, $3, $4)
            RETURNING {PUBLIC_COLUMNS}
        """
        try:
            return await self._fetchrow("apps.create", query, name, owner_email, api_key_hash, expires_at)
        except asyncpg.UniqueViolationError:
            # lost a race with a concurrent registration for the same email
            raise DuplicateOwnerException()

    async def revoke(self, app_id: UUID) -> Optional[dict]:
        query = f"UPDATE apps SET revoked = TRUE WHERE id = $1 RETURNING {PUBLIC_COLUMNS}"
        return await self._fetchrow("apps.revoke", query, app_id)

    async def replace_key_hash(self, app_id: UUID, api_key_hash: str) -> Optional[dict]:
        """Swap in a new key hash and clear revocation in one statement."""
        query = f"""
            UPDATE apps
            SET api_key_hash = $1, revoked = FALSE
            WHERE id = $2
            RETURNING {PUBLIC_COLUMNS}
        """
        return await self._fetchrow("apps.replace_key_hash", query, api_key_hash, app_id)
