"""Pydantic schemas for the Roblox proxy."""

from __future__ import annotations

from pydantic import BaseModel


class RobloxUserResponse(BaseModel):
    id: int
    name: str
    displayName: str  # noqa: N815
