"""Pydantic schemas for /auth endpoints."""

from __future__ import annotations

from datetime import datetime

from groupdesk.schemas import CamelModel


class DashboardUserResponse(CamelModel):
    roblox_user_id: int
    username: str
    role_rank: int
    role_name: str


class VerifyTokenResponse(CamelModel):
    ok: bool = True
    user: DashboardUserResponse


class IdentityLinkResponse(CamelModel):
    discord_id: str
    guild_id: str
    roblox_user_id: int
    roblox_username: str
    role_rank: int
    role_name: str
    verified_at: datetime
    last_sync_at: datetime
