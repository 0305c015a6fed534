"""Calendar board endpoints: /sessions."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.auth.dependencies import DashboardUser, get_current_admin, get_current_user
from groupdesk.calendar import service
from groupdesk.calendar.schemas import (
    BoardSessionResponse,
    ClaimRequest,
    ClaimResponse,
    PublishRequest,
    PublishResponse,
    UnclaimResponse,
)
from groupdesk.calendar.service import BoardConfig
from groupdesk.config import Settings
from groupdesk.database import get_session
from groupdesk.dependencies import get_app_settings

router = APIRouter(prefix="/sessions", tags=["Calendar"])


def get_board_config(settings: Settings = Depends(get_app_settings)) -> BoardConfig:
    return BoardConfig.from_settings(settings)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@router.get("", response_model=list[BoardSessionResponse])
async def list_sessions(
    week_start: datetime | None = Query(default=None, alias="weekStart"),
    db: AsyncSession = Depends(get_session),
    config: BoardConfig = Depends(get_board_config),
) -> list[BoardSessionResponse]:
    """Slots of the week containing ``weekStart`` (default: this week)."""
    _, rows = await service.list_week(db, config, _as_utc(week_start))
    return [BoardSessionResponse.model_validate(r) for r in rows]


@router.post("/publish", response_model=PublishResponse)
async def publish(
    body: PublishRequest,
    db: AsyncSession = Depends(get_session),
    config: BoardConfig = Depends(get_board_config),
    _admin: DashboardUser = Depends(get_current_admin),
) -> PublishResponse:
    """Create slot grids for the coming weeks. Safe to repeat."""
    result = await service.publish(
        db,
        config,
        reference=_as_utc(body.start_iso),
        weeks=body.weeks,
        title=body.title,
        max_trainers=body.max_trainers,
    )
    await db.commit()
    return PublishResponse(weeks_published=result.weeks, created=result.created)


@router.post("/claim", response_model=ClaimResponse)
async def claim(
    body: ClaimRequest,
    db: AsyncSession = Depends(get_session),
    user: DashboardUser = Depends(get_current_user),
) -> ClaimResponse:
    """Claim host, co-host or a trainer seat for the calling user."""
    role = service.parse_role(body.role)
    session = await service.claim(db, body.session_id, role, user.roblox_user_id)
    await db.commit()
    return ClaimResponse(session=BoardSessionResponse.model_validate(session))


@router.post("/unclaim", response_model=UnclaimResponse)
async def unclaim(
    body: ClaimRequest,
    db: AsyncSession = Depends(get_session),
    user: DashboardUser = Depends(get_current_user),
) -> UnclaimResponse:
    """Release a role held by the calling user."""
    role = service.parse_role(body.role)
    released = await service.unclaim(db, body.session_id, role, user.roblox_user_id)
    await db.commit()
    return UnclaimResponse(released=released)
