"""Pydantic schemas for the calendar board."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from groupdesk.schemas import CamelModel


class BoardSessionResponse(CamelModel):
    id: str
    week_start: datetime
    start: datetime
    end: datetime
    est_hour: int
    title: str
    server_tag: str | None = None
    host_id: int | None = None
    cohost_id: int | None = None
    trainer_ids: list[int] = []
    max_trainers: int
    notes: str = ""


class PublishRequest(CamelModel):
    start_iso: datetime | None = Field(default=None, alias="startISO")
    weeks: int = 1
    title: str | None = Field(default=None, max_length=200)
    max_trainers: int | None = None


class PublishResponse(CamelModel):
    ok: bool = True
    weeks_published: int
    created: int


class ClaimRequest(CamelModel):
    session_id: str = Field(min_length=1, max_length=64)
    role: str


class ClaimResponse(CamelModel):
    ok: bool = True
    session: BoardSessionResponse


class UnclaimResponse(CamelModel):
    ok: bool = True
    released: bool
