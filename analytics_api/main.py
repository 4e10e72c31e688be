"""
=============================================================================
Event Analytics API
=============================================================================
Features:
  - App registration with one-time API keys (argon2 hashed at rest)
  - Key verification, revocation and regeneration
  - Event collection per app
  - Event summaries and per-user stats, cached in Redis when available
=============================================================================
"""

from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .dependencies import init_resources, close_resources
from .exceptions import (
    AnalyticsAPIException,
    analytics_exception_handler,
    global_exception_handler,
    http_exception_handler,
    rate_limit_exception_handler,
    validation_exception_handler,
)
from .limiter import limiter
from .logging_config import setup_logging
from .middleware import RequestTrackingMiddleware
from .routers import analytics_router, auth_router

setup_logging()

app = FastAPI(
    title="Event Analytics API",
    description="Multi-tenant event collection and analytics",
    version=settings.APP_VERSION
)

app.state.limiter = limiter

app.add_middleware(RequestTrackingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(AnalyticsAPIException, analytics_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.include_router(auth_router.router)
app.include_router(analytics_router.router)


@app.on_event("startup")
async def startup():
    await init_resources()


@app.on_event("shutdown")
async def shutdown():
    await close_resources()


@app.get("/")
async def health_check():
    return {
        "success": True,
        "message": "Event Analytics API",
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
