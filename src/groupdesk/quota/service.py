"""Weekly activity totals and quota classification.

Totals are archived minutes for sessions that ended inside the week window,
plus in-progress minutes of non-stale live sessions when the window is the
current one. In-progress minutes use the smaller of "since start" and
"since last heartbeat" so a stalled client is not over-credited.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.config import Settings
from groupdesk.db.models import ArchivedSession
from groupdesk.ledger.service import count_live, get_live_sessions
from groupdesk.quota.week_utils import day_start, week_window


@dataclass(frozen=True)
class QuotaPolicy:
    target_minutes: int
    week_start_day: int = 1
    tz_name: str = "UTC"
    live_ttl: timedelta = timedelta(minutes=5)

    @classmethod
    def from_settings(cls, settings: Settings) -> QuotaPolicy:
        return cls(
            target_minutes=settings.quota_minutes,
            week_start_day=settings.week_start_day,
            tz_name=settings.week_timezone,
            live_ttl=timedelta(seconds=settings.live_session_ttl_seconds),
        )

    def window(self, reference: datetime) -> tuple[datetime, datetime]:
        return week_window(reference, self.week_start_day, self.tz_name)


@dataclass(frozen=True)
class UserProgress:
    user_id: int
    minutes: int
    remaining: int
    met: bool


@dataclass(frozen=True)
class QuotaSummary:
    week_start: datetime
    week_end: datetime
    required_minutes: int
    met_count: int
    total_users: int
    quota_pct: int


@dataclass(frozen=True)
class ActivitySummary:
    live_count: int
    today_minutes: int
    week_minutes: int
    quota_pct: int
    quota_target: int
    week_start: datetime
    next_week_start: datetime


@dataclass(frozen=True)
class ProgressPage:
    rows: list[UserProgress]
    total: int
    page: int
    pages: int
    limit: int


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def in_progress_minutes(started_at: datetime, last_heartbeat: datetime | None, now: datetime) -> int:
    """Conservative whole minutes credited for a session that is still live."""
    beat = last_heartbeat or started_at
    elapsed = max(timedelta(0), min(now - started_at, now - beat))
    return math.floor(elapsed / timedelta(minutes=1))


def classify(user_id: int, minutes: int, target: int) -> UserProgress:
    return UserProgress(
        user_id=user_id,
        minutes=minutes,
        remaining=max(0, target - minutes),
        met=minutes >= target,
    )


def build_progress(totals: dict[int, int], target: int) -> list[UserProgress]:
    """Rows sorted by minutes descending (user id breaks ties)."""
    rows = [classify(uid, mins, target) for uid, mins in totals.items()]
    rows.sort(key=lambda r: (-r.minutes, r.user_id))
    return rows


def percent(part: int, whole: int) -> int:
    """Rounded percentage; 0 when there is nothing to divide by."""
    if whole <= 0:
        return 0
    return math.floor(part * 100 / whole + 0.5)


def order_unmet_first(rows: list[UserProgress]) -> list[UserProgress]:
    """Unmet users first (most remaining first), then met users by minutes."""
    return sorted(
        rows,
        key=lambda r: (r.met, -r.minutes if r.met else -r.remaining, r.user_id),
    )


def paginate(rows: list[UserProgress], page: int, limit: int, search: str = "") -> ProgressPage:
    """Filter by user-id substring, then slice one page out of ``rows``."""
    limit = min(100, max(1, limit))
    page = max(1, page)
    needle = search.strip().lower()
    if needle:
        rows = [r for r in rows if needle in str(r.user_id)]
    total = len(rows)
    offset = (page - 1) * limit
    return ProgressPage(
        rows=rows[offset : offset + limit],
        total=total,
        page=page,
        pages=max(1, math.ceil(total / limit)),
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def archived_minutes_by_user(
    db: AsyncSession,
    start: datetime,
    end: datetime,
    user_id: int | None = None,
) -> dict[int, int]:
    """Sum of archived minutes per user for sessions ended in ``[start, end)``."""
    query = (
        select(ArchivedSession.user_id, func.sum(ArchivedSession.minutes))
        .where(ArchivedSession.ended_at >= start, ArchivedSession.ended_at < end)
        .group_by(ArchivedSession.user_id)
    )
    if user_id is not None:
        query = query.where(ArchivedSession.user_id == user_id)
    result = await db.execute(query)
    return {int(uid): int(total or 0) for uid, total in result.all()}


async def archived_minutes_total(db: AsyncSession, start: datetime, end: datetime | None = None) -> int:
    query = select(func.coalesce(func.sum(ArchivedSession.minutes), 0)).where(ArchivedSession.ended_at >= start)
    if end is not None:
        query = query.where(ArchivedSession.ended_at < end)
    result = await db.execute(query)
    return int(result.scalar_one())


async def live_minutes_by_user(db: AsyncSession, ttl: timedelta, now: datetime) -> dict[int, int]:
    """In-progress minutes per user across all of their non-stale live sessions."""
    minutes: dict[int, int] = {}
    for live in await get_live_sessions(db, ttl, now):
        credited = in_progress_minutes(live.started_at, live.last_heartbeat, now)
        minutes[live.user_id] = minutes.get(live.user_id, 0) + credited
    return minutes


async def weekly_totals(
    db: AsyncSession,
    policy: QuotaPolicy,
    window: tuple[datetime, datetime],
    now: datetime | None = None,
    user_id: int | None = None,
) -> dict[int, int]:
    """Per-user minutes for ``window``; live minutes only count if ``now`` is inside it."""
    if now is None:
        now = datetime.now(timezone.utc)
    start, end = window
    totals = await archived_minutes_by_user(db, start, end, user_id)
    if start <= now < end:
        for uid, mins in (await live_minutes_by_user(db, policy.live_ttl, now)).items():
            if user_id is None or uid == user_id:
                totals[uid] = totals.get(uid, 0) + mins
    return totals


async def quota_rows(db: AsyncSession, policy: QuotaPolicy, now: datetime | None = None) -> list[UserProgress]:
    """Current-week progress for every user with activity."""
    if now is None:
        now = datetime.now(timezone.utc)
    totals = await weekly_totals(db, policy, policy.window(now), now)
    return build_progress(totals, policy.target_minutes)


async def quota_summary(db: AsyncSession, policy: QuotaPolicy, now: datetime | None = None) -> QuotaSummary:
    if now is None:
        now = datetime.now(timezone.utc)
    start, end = policy.window(now)
    rows = build_progress(await weekly_totals(db, policy, (start, end), now), policy.target_minutes)
    met_count = sum(1 for r in rows if r.met)
    return QuotaSummary(
        week_start=start,
        week_end=end,
        required_minutes=policy.target_minutes,
        met_count=met_count,
        total_users=len(rows),
        quota_pct=percent(met_count, len(rows)),
    )


async def user_quota(
    db: AsyncSession,
    policy: QuotaPolicy,
    user_id: int,
    now: datetime | None = None,
) -> tuple[UserProgress, tuple[datetime, datetime]]:
    if now is None:
        now = datetime.now(timezone.utc)
    window = policy.window(now)
    totals = await weekly_totals(db, policy, window, now, user_id=user_id)
    return classify(user_id, totals.get(user_id, 0), policy.target_minutes), window


async def activity_summary(db: AsyncSession, policy: QuotaPolicy, now: datetime | None = None) -> ActivitySummary:
    """Dashboard header numbers. Quota percentage here uses archived minutes only."""
    if now is None:
        now = datetime.now(timezone.utc)
    start, end = policy.window(now)
    per_user = await archived_minutes_by_user(db, start, end)
    met = sum(1 for mins in per_user.values() if mins >= policy.target_minutes)
    return ActivitySummary(
        live_count=await count_live(db, policy.live_ttl, now),
        today_minutes=await archived_minutes_total(db, day_start(now, policy.tz_name)),
        week_minutes=await archived_minutes_total(db, start, end),
        quota_pct=percent(met, len(per_user)),
        quota_target=policy.target_minutes,
        week_start=start,
        next_week_start=end,
    )


async def recent_sessions(db: AsyncSession, limit: int = 20) -> list[ArchivedSession]:
    result = await db.execute(select(ArchivedSession).order_by(ArchivedSession.ended_at.desc()).limit(limit))
    return list(result.scalars().all())


async def leaderboard(
    db: AsyncSession,
    policy: QuotaPolicy,
    now: datetime | None = None,
    limit: int = 10,
) -> list[tuple[int, int]]:
    """Top users by archived minutes this week."""
    if now is None:
        now = datetime.now(timezone.utc)
    start, end = policy.window(now)
    totals = await archived_minutes_by_user(db, start, end)
    ranked = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    return ranked[:limit]
