
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from ..config import settings
from ..dependencies import Caller, get_api_key_service, get_caller
from ..exceptions import NotFoundException
from ..limiter import limiter
from ..schemas.auth import AppIdRequest, AppInfo, AppLookup, AppRegister, AppRegistered, KeyRegenerated
from ..services.api_key_service import ApiKeyService

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _ensure_own_app(caller: Caller, app_id: Optional[UUID] = None, email: Optional[str] = None):
    """Apps may only manage themselves; the admin key may manage any app."""
    if caller.is_admin:
        return
    if app_id is not None and app_id != caller.app["id"]:
        raise NotFoundException("App not found")
    if email is not None and email.lower() != caller.app["owner_email"].lower():
        raise NotFoundException("No app found with this email")


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def register(
    app_data: AppRegister,
    request: Request,
    service: ApiKeyService = Depends(get_api_key_service)
):
    """Register a new app and issue its API key (shown only once)"""
    app, api_key = await service.register_app(app_data.name, app_data.owner_email)
    return {
        "success": True,
        "data": AppRegistered(**AppInfo.from_record(app).model_dump(), api_key=api_key),
        "message": "App registered successfully. Store your API key securely.",
    }


@router.post("/api-key")
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def get_api_key_info(
    lookup: AppLookup,
    request: Request,
    caller: Caller = Depends(get_caller),
    service: ApiKeyService = Depends(get_api_key_service)
):
    """Look up app details by owner email; the key itself is never returned"""
    _ensure_own_app(caller, email=lookup.email)
    app = await service.get_app_by_email(lookup.email)
    return {
        "success": True,
        "data": AppInfo.from_record(app),
        "message": "API key cannot be retrieved for security. Use regenerate if needed.",
    }


@router.post("/revoke")
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def revoke_api_key(
    body: AppIdRequest,
    request: Request,
    caller: Caller = Depends(get_caller),
    service: ApiKeyService = Depends(get_api_key_service)
):
    _ensure_own_app(caller, app_id=body.app_id)
    await service.revoke(body.app_id)
    return {"success": True, "message": "API key revoked successfully"}


@router.post("/regenerate")
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def regenerate_api_key(
    body: AppIdRequest,
    request: Request,
    caller: Caller = Depends(get_caller),
    service: ApiKeyService = Depends(get_api_key_service)
):
    """Replace the app's key; the old key stops working immediately"""
    _ensure_own_app(caller, app_id=body.app_id)
    app, api_key = await service.regenerate(body.app_id)
    return {
        "success": True,
        "data": KeyRegenerated(app_id=app["id"], name=app["name"], api_key=api_key),
        "message": "API key regenerated successfully. Store it securely.",
    }
