import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from uuid import UUID

from starlette.concurrency import run_in_threadpool

from ..config import settings
from ..core.security import create_api_key, hash_api_key, is_well_formed_api_key, verify_api_key
from ..exceptions import DuplicateOwnerException, NotFoundException, UnauthorizedException
from ..repositories.app_repository import AppRepository

logger = logging.getLogger(__name__)


class ApiKeyService:
    def __init__(self, app_repo: AppRepository):
        self.app_repo = app_repo

    async def register_app(self, name: str, owner_email: str) -> Tuple[dict, str]:
        """
        Create an app and return (app record, plaintext key).
        The plaintext is only ever available here; the store gets the hash.
        """
        # Revoked apps still hold their email
        if await self.app_repo.get_by_email(owner_email):
            raise DuplicateOwnerException()

        api_key = create_api_key()
        api_key_hash = await run_in_threadpool(hash_api_key, api_key)
        expires_at = datetime.now(timezone.utc) + timedelta(days=settings.API_KEY_EXPIRY_DAYS)

        app = await self.app_repo.create_app(name, owner_email, api_key_hash, expires_at)
        logger.info("New app registered", extra={"app_id": str(app["id"])})
        return app, api_key

    async def verify(self, api_key: Optional[str]) -> dict:
        """
        Resolve a presented key to its app or raise UnauthorizedException.

        Keys are stored as salted one-way hashes, so there is nothing to look
        a key up by: every non-revoked app is compared in turn, O(apps) hash
        checks per call. If that stops scaling, embed a public key id in the
        token to narrow the candidates before hashing.
        """
        if not is_well_formed_api_key(api_key):
            raise UnauthorizedException()

        for app in await self.app_repo.list_active():
            if await run_in_threadpool(verify_api_key, api_key, app["api_key_hash"]):
                expires_at = app.get("expires_at")
                if expires_at and expires_at < datetime.now(timezone.utc):
                    raise UnauthorizedException()
                app.pop("api_key_hash", None)
                return app

        raise UnauthorizedException()

    async def get_app_by_email(self, email: str) -> dict:
        app = await self.app_repo.get_by_email(email)
        if not app:
            raise NotFoundException("No app found with this email")
        return app

    async def revoke(self, app_id: UUID) -> dict:
        app = await self.app_repo.revoke(app_id)
        if not app:
            raise NotFoundException("App not found")
        logger.info("API key revoked", extra={"app_id": str(app_id)})
        return app

    async def regenerate(self, app_id: UUID) -> Tuple[dict, str]:
        """New key for an existing app; the previous key stops verifying once this commits."""
        api_key = create_api_key()
        api_key_hash = await run_in_threadpool(hash_api_key, api_key)

        app = await self.app_repo.replace_key_hash(app_id, api_key_hash)
        if not app:
            raise NotFoundException("App not found")
        logger.info("API key regenerated", extra={"app_id": str(app_id)})
        return app, api_key
