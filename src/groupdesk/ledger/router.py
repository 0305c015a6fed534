"""Game-server ingestion endpoints: /ingest/session/*."""

from __future__ import annotations

import hmac
from datetime import timedelta

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.auth.dependencies import DashboardUser, get_current_admin
from groupdesk.config import Settings
from groupdesk.database import get_session
from groupdesk.dependencies import get_app_settings
from groupdesk.ledger import service
from groupdesk.ledger.schemas import (
    OkResponse,
    ReapResponse,
    SessionEndRequest,
    SessionEndResponse,
    SessionHeartbeatRequest,
    SessionStartRequest,
)

router = APIRouter(prefix="/ingest", tags=["Ingestion"])


async def require_game_key(
    x_game_key: str | None = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Only game servers holding the shared ingest key may post."""
    expected = settings.game_ingest_key
    if not expected or not x_game_key or not hmac.compare_digest(x_game_key.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/session/start", response_model=OkResponse, dependencies=[Depends(require_game_key)])
async def session_start(
    body: SessionStartRequest,
    db: AsyncSession = Depends(get_session),
) -> OkResponse:
    """Open or reset the live session for a player on a server."""
    await service.start_session(db, body.user_id, body.server_id, body.place_id)
    await db.commit()
    return OkResponse()


@router.post("/session/heartbeat", response_model=OkResponse, dependencies=[Depends(require_game_key)])
async def session_heartbeat(
    body: SessionHeartbeatRequest,
    db: AsyncSession = Depends(get_session),
) -> OkResponse:
    """Refresh a live session; silently ignored when none exists."""
    await service.heartbeat(db, body.user_id, body.server_id)
    await db.commit()
    return OkResponse()


@router.post(
    "/session/end",
    response_model=SessionEndResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_game_key)],
)
async def session_end(
    body: SessionEndRequest,
    db: AsyncSession = Depends(get_session),
) -> SessionEndResponse:
    """Archive the live session. Duplicate end pings answer archived=false."""
    result = await service.end_session(db, body.user_id, body.server_id)
    await db.commit()
    return SessionEndResponse(archived=result.archived, minutes=result.minutes)


@router.post("/reap", response_model=ReapResponse)
async def reap(
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    _admin: DashboardUser = Depends(get_current_admin),
) -> ReapResponse:
    """Archive live sessions whose heartbeat has gone stale."""
    reaped = await service.reap_stale(db, timedelta(seconds=settings.live_session_ttl_seconds))
    await db.commit()
    return ReapResponse(reaped=reaped)
