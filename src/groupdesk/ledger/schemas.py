"""Pydantic schemas for game-server session pings."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _Ping(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    server_id: str = Field(alias="serverId", min_length=1, max_length=128)


class SessionStartRequest(_Ping):
    place_id: int = Field(alias="placeId")


class SessionHeartbeatRequest(_Ping):
    pass


class SessionEndRequest(_Ping):
    pass


class OkResponse(BaseModel):
    ok: bool = True


class SessionEndResponse(BaseModel):
    ok: bool = True
    archived: bool
    minutes: int | None = None


class ReapResponse(BaseModel):
    ok: bool = True
    reaped: int
