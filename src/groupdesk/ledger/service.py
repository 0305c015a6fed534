"""Session ledger: live play sessions and their archived records.

Game servers report start, heartbeat and end pings. A live session is keyed
by (user_id, server_id); ending it moves it to the append-only archive with
its duration rounded to whole minutes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.db.models import ArchivedSession, LiveSession
from groupdesk.db.upsert import insert_for

logger = structlog.get_logger()


@dataclass(frozen=True)
class EndResult:
    archived: bool
    minutes: int | None = None


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, rounded half up, never negative."""
    ms = (end - start) / timedelta(milliseconds=1)
    return max(0, math.floor(ms / 60000 + 0.5))


def live_cutoff(now: datetime, ttl: timedelta) -> datetime:
    """Heartbeats older than this mark a live session as stale."""
    return now - ttl


async def start_session(
    db: AsyncSession,
    user_id: int,
    server_id: str,
    place_id: int | None,
    now: datetime | None = None,
) -> None:
    """Open (or reopen) the live session for (user_id, server_id).

    Re-sending a start resets both timestamps to now.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    stmt = insert_for(db, LiveSession).values(
        user_id=user_id,
        server_id=server_id,
        place_id=place_id,
        started_at=now,
        last_heartbeat=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "server_id"],
        set_={
            "place_id": stmt.excluded.place_id,
            "started_at": stmt.excluded.started_at,
            "last_heartbeat": stmt.excluded.last_heartbeat,
        },
    )
    await db.execute(stmt)
    logger.info("session_started", user_id=user_id, server_id=server_id, place_id=place_id)


async def heartbeat(
    db: AsyncSession,
    user_id: int,
    server_id: str,
    now: datetime | None = None,
) -> bool:
    """Refresh last_heartbeat. Returns False (without error) if nothing is live."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        update(LiveSession)
        .where(LiveSession.user_id == user_id, LiveSession.server_id == server_id)
        .values(last_heartbeat=now)
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)


async def _archive(
    db: AsyncSession,
    user_id: int,
    server_id: str,
    place_id: int | None,
    started_at: datetime,
    last_heartbeat: datetime | None,
    ended_at: datetime,
) -> int:
    minutes = elapsed_minutes(started_at, ended_at)
    db.add(
        ArchivedSession(
            user_id=user_id,
            server_id=server_id,
            place_id=place_id,
            started_at=started_at,
            last_heartbeat=last_heartbeat,
            ended_at=ended_at,
            minutes=minutes,
        )
    )
    await db.flush()
    return minutes


async def end_session(
    db: AsyncSession,
    user_id: int,
    server_id: str,
    now: datetime | None = None,
) -> EndResult:
    """Archive and remove the live session.

    The live row is removed with DELETE .. RETURNING, so two concurrent end
    pings archive at most once. A missing live session is not an error.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        delete(LiveSession)
        .where(LiveSession.user_id == user_id, LiveSession.server_id == server_id)
        .returning(LiveSession.place_id, LiveSession.started_at, LiveSession.last_heartbeat)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is None:
        return EndResult(archived=False)

    place_id, started_at, last_heartbeat = row
    minutes = await _archive(db, user_id, server_id, place_id, started_at, last_heartbeat, now)
    logger.info("session_archived", user_id=user_id, server_id=server_id, minutes=minutes)
    return EndResult(archived=True, minutes=minutes)


async def reap_stale(
    db: AsyncSession,
    ttl: timedelta,
    now: datetime | None = None,
) -> int:
    """Archive every live session whose last heartbeat is older than ``ttl``.

    Reaped sessions end at their last heartbeat, not at reap time.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    cutoff = live_cutoff(now, ttl)
    stale = await db.execute(select(LiveSession.id).where(LiveSession.last_heartbeat < cutoff))

    reaped = 0
    for (live_id,) in stale.all():
        result = await db.execute(
            delete(LiveSession)
            .where(LiveSession.id == live_id, LiveSession.last_heartbeat < cutoff)
            .returning(
                LiveSession.user_id,
                LiveSession.server_id,
                LiveSession.place_id,
                LiveSession.started_at,
                LiveSession.last_heartbeat,
            )
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            continue
        user_id, server_id, place_id, started_at, last_heartbeat = row
        await _archive(db, user_id, server_id, place_id, started_at, last_heartbeat, last_heartbeat)
        reaped += 1

    if reaped:
        logger.info("stale_sessions_reaped", count=reaped, cutoff=cutoff.isoformat())
    return reaped


async def count_live(db: AsyncSession, ttl: timedelta, now: datetime | None = None) -> int:
    """Number of live sessions that are not stale."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        select(func.count()).select_from(LiveSession).where(LiveSession.last_heartbeat >= live_cutoff(now, ttl))
    )
    return int(result.scalar_one())


async def get_live_sessions(db: AsyncSession, ttl: timedelta, now: datetime | None = None) -> list[LiveSession]:
    """Live sessions that are not stale."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(select(LiveSession).where(LiveSession.last_heartbeat >= live_cutoff(now, ttl)))
    return list(result.scalars().all())
