"""Pydantic schemas for the /stats endpoints."""

from __future__ import annotations

from datetime import datetime

from groupdesk.schemas import CamelModel


class ActivitySummaryResponse(CamelModel):
    live_count: int
    today_minutes: int
    week_minutes: int
    quota_pct: int
    quota_target: int
    week_start: datetime
    next_week_start: datetime


class RecentSessionResponse(CamelModel):
    user_id: int
    minutes: int
    started_at: datetime
    ended_at: datetime
    last_heartbeat: datetime | None = None


class LeaderboardEntry(CamelModel):
    user_id: int
    minutes: int


class QuotaSummaryResponse(CamelModel):
    week_start: datetime
    week_end: datetime
    required_minutes: int
    met_count: int
    total_users: int
    quota_pct: int


class QuotaListEntry(CamelModel):
    user_id: int
    minutes: int
    remaining: int
    met: bool
    username: str
    display_name: str
    thumb: str


class UserQuotaResponse(CamelModel):
    user_id: int
    week_start: datetime
    week_end: datetime
    minutes: int
    remaining: int
    met: bool


class ProgressRow(CamelModel):
    user_id: int
    minutes: int


class ProgressResponse(CamelModel):
    rows: list[ProgressRow]
    total: int
    page: int
    pages: int
    limit: int
    quota_target: int
