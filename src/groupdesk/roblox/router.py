"""Roblox lookup proxy for the dashboard: /roblox/users and /roblox/thumbs."""

from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Depends, Query

from groupdesk.dependencies import get_http_client
from groupdesk.roblox.client import RobloxClient
from groupdesk.roblox.schemas import RobloxUserResponse

router = APIRouter(prefix="/roblox", tags=["Roblox"])


def parse_ids(raw: str) -> list[int]:
    """``"1, 2,,x,3"`` -> ``[1, 2, 3]``; anything but plain ASCII digits is skipped."""
    return [int(part) for part in (p.strip() for p in raw.split(",")) if part.isdecimal() and part.isascii()]


def get_roblox_client(http: httpx.AsyncClient = Depends(get_http_client)) -> RobloxClient:
    return RobloxClient(http)


@router.get("/users", response_model=list[RobloxUserResponse])
async def users(
    ids: str = Query(default=""),
    roblox: RobloxClient = Depends(get_roblox_client),
) -> list[RobloxUserResponse]:
    """Batch profile lookup; unknown ids come back with placeholder names."""
    profiles = await roblox.fetch_users(parse_ids(ids))
    return [RobloxUserResponse(id=p.id, name=p.name, displayName=p.display_name) for p in profiles]


@router.get("/thumbs")
async def thumbs(
    ids: str = Query(default=""),
    roblox: RobloxClient = Depends(get_roblox_client),
) -> dict[str, Any]:
    """Avatar headshots, passed through from the thumbnails API."""
    return await roblox.fetch_headshots(parse_ids(ids))
