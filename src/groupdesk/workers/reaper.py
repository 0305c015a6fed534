"""arq worker that archives live sessions whose heartbeat went stale.

Game servers do not always send an end ping (crashes, shutdowns), so a
periodic job closes those sessions at their last heartbeat.
"""

from __future__ import annotations

from datetime import timedelta

import structlog
from arq import cron
from arq.connections import RedisSettings

from groupdesk.config import get_settings
from groupdesk.database import Database
from groupdesk.ledger.service import reap_stale
from groupdesk.middleware.logging import setup_logging

logger = structlog.get_logger()


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    db = Database(settings.database_url)
    await db.open()
    ctx["db"] = db
    ctx["settings"] = settings
    logger.info("reaper_started", ttl_seconds=settings.live_session_ttl_seconds)


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    db: Database | None = ctx.get("db")
    if db is not None:
        await db.close()
    logger.info("reaper_stopped")


async def reap_stale_sessions(ctx: dict) -> int:  # type: ignore[type-arg]
    """Archive every live session past the heartbeat TTL. Returns the count."""
    db: Database = ctx["db"]
    ttl = timedelta(seconds=ctx["settings"].live_session_ttl_seconds)
    async with db.session() as session:
        reaped = await reap_stale(session, ttl)
        await session.commit()
    return reaped


def _cron_minutes(interval: int) -> set[int]:
    interval = max(1, min(60, interval))
    return set(range(0, 60, interval))


def _redis_settings() -> RedisSettings:
    url = get_settings().redis_url
    return RedisSettings.from_dsn(url) if url else RedisSettings()


class WorkerSettings:
    """arq worker settings for the session reaper."""

    functions = [reap_stale_sessions]
    cron_jobs = [
        cron(reap_stale_sessions, minute=_cron_minutes(get_settings().reap_interval_minutes), run_at_startup=True),
    ]
    redis_settings = _redis_settings()
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = 1
