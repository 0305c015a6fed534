"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI

from groupdesk.auth.router import router as auth_router
from groupdesk.calendar.router import router as calendar_router
from groupdesk.config import Settings, get_settings
from groupdesk.database import Database
from groupdesk.health.router import router as health_router
from groupdesk.ledger.router import router as ingest_router
from groupdesk.middleware import setup_middleware
from groupdesk.quota.router import router as stats_router
from groupdesk.redis_client import close_redis, open_redis
from groupdesk.roblox.router import router as roblox_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database, Redis and the outbound HTTP client; close them on shutdown."""
    settings: Settings = app.state.settings
    db = Database(settings.database_url)
    await db.open()
    app.state.db = db
    app.state.redis = open_redis(settings.redis_url)
    app.state.http_client = httpx.AsyncClient(
        timeout=settings.oauth_http_timeout_seconds,
        headers={"User-Agent": f"groupdesk/{settings.app_version}"},
    )
    logger.info("app_started", environment=settings.environment, redis=app.state.redis is not None)

    yield

    await app.state.http_client.aclose()
    await close_redis(app.state.redis)
    await db.close()
    logger.info("app_stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Groupdesk API",
        description="Discord/Roblox group management: identity links, activity quotas, training calendar",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.redis = None

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(ingest_router)
    app.include_router(stats_router)
    app.include_router(roblox_router)
    app.include_router(calendar_router)

    return app


app = create_app()
