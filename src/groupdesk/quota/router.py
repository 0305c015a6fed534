"""Activity statistics and quota endpoints: /stats/*."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.config import Settings
from groupdesk.database import get_session
from groupdesk.dependencies import get_app_settings
from groupdesk.errors import ValidationFailure
from groupdesk.quota import service
from groupdesk.quota.schemas import (
    ActivitySummaryResponse,
    LeaderboardEntry,
    ProgressResponse,
    ProgressRow,
    QuotaListEntry,
    QuotaSummaryResponse,
    RecentSessionResponse,
    UserQuotaResponse,
)
from groupdesk.quota.service import QuotaPolicy
from groupdesk.roblox.client import RobloxClient
from groupdesk.roblox.router import get_roblox_client

router = APIRouter(prefix="/stats", tags=["Statistics"])


def get_policy(settings: Settings = Depends(get_app_settings)) -> QuotaPolicy:
    return QuotaPolicy.from_settings(settings)


@router.get("/summary", response_model=ActivitySummaryResponse)
async def summary(
    db: AsyncSession = Depends(get_session),
    policy: QuotaPolicy = Depends(get_policy),
) -> ActivitySummaryResponse:
    """Live count, today's and this week's minutes, archived-only quota percentage."""
    result = await service.activity_summary(db, policy)
    return ActivitySummaryResponse(**asdict(result))


@router.get("/recent", response_model=list[RecentSessionResponse])
async def recent(db: AsyncSession = Depends(get_session)) -> list[RecentSessionResponse]:
    """Last 20 archived sessions."""
    rows = await service.recent_sessions(db, limit=20)
    return [RecentSessionResponse.model_validate(r) for r in rows]


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    db: AsyncSession = Depends(get_session),
    policy: QuotaPolicy = Depends(get_policy),
) -> list[LeaderboardEntry]:
    """Top 10 users by archived minutes this week."""
    rows = await service.leaderboard(db, policy, limit=10)
    return [LeaderboardEntry(user_id=uid, minutes=mins) for uid, mins in rows]


@router.get("/quota/summary", response_model=QuotaSummaryResponse)
async def quota_summary(
    db: AsyncSession = Depends(get_session),
    policy: QuotaPolicy = Depends(get_policy),
) -> QuotaSummaryResponse:
    """How many active users met the weekly quota (live minutes included)."""
    result = await service.quota_summary(db, policy)
    return QuotaSummaryResponse(**asdict(result))


@router.get("/quota/list", response_model=list[QuotaListEntry])
async def quota_list(
    db: AsyncSession = Depends(get_session),
    policy: QuotaPolicy = Depends(get_policy),
    roblox: RobloxClient = Depends(get_roblox_client),
) -> list[QuotaListEntry]:
    """Per-user quota rows, unmet first, enriched with Roblox names and headshots."""
    rows = service.order_unmet_first(await service.quota_rows(db, policy))
    user_ids = [r.user_id for r in rows]
    profiles = {p.id: p for p in await roblox.fetch_users(user_ids)}
    thumbs = await roblox.headshot_urls(user_ids) if user_ids else {}
    return [
        QuotaListEntry(
            user_id=r.user_id,
            minutes=r.minutes,
            remaining=r.remaining,
            met=r.met,
            username=profiles[r.user_id].name,
            display_name=profiles[r.user_id].display_name,
            thumb=thumbs.get(r.user_id, ""),
        )
        for r in rows
    ]


@router.get("/quota/user/{user_id}", response_model=UserQuotaResponse)
async def quota_user(
    user_id: str,
    db: AsyncSession = Depends(get_session),
    policy: QuotaPolicy = Depends(get_policy),
) -> UserQuotaResponse:
    """This week's progress for one user."""
    try:
        uid = int(user_id)
    except ValueError:
        uid = 0
    if uid <= 0:
        raise ValidationFailure("Invalid userId")

    progress, (start, end) = await service.user_quota(db, policy, uid)
    return UserQuotaResponse(
        user_id=uid,
        week_start=start,
        week_end=end,
        minutes=progress.minutes,
        remaining=progress.remaining,
        met=progress.met,
    )


@router.get("/progress", response_model=ProgressResponse)
async def progress(
    limit: int = Query(default=25),
    page: int = Query(default=1),
    search: str = Query(default=""),
    db: AsyncSession = Depends(get_session),
    policy: QuotaPolicy = Depends(get_policy),
) -> ProgressResponse:
    """Paginated directory of this week's minutes, most active first."""
    rows = await service.quota_rows(db, policy)
    result = service.paginate(rows, page=page, limit=limit, search=search)
    return ProgressResponse(
        rows=[ProgressRow(user_id=r.user_id, minutes=r.minutes) for r in result.rows],
        total=result.total,
        page=result.page,
        pages=result.pages,
        limit=result.limit,
        quota_target=policy.target_minutes,
    )
