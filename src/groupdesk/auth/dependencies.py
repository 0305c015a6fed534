"""FastAPI authentication dependencies."""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from groupdesk.auth.jwt import verify_token
from groupdesk.config import Settings
from groupdesk.dependencies import get_app_settings

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class DashboardUser:
    roblox_user_id: int
    username: str
    role_rank: int
    role_name: str


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    settings: Settings = Depends(get_app_settings),
) -> DashboardUser:
    """
    Extract and verify the dashboard JWT.

    Raises 401 on a missing, invalid or expired token.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing token")
    try:
        payload = verify_token(settings, credentials.credentials)
        return DashboardUser(
            roblox_user_id=int(payload["sub"]),
            username=str(payload.get("name", "")),
            role_rank=int(payload.get("rank", 0)),
            role_name=str(payload.get("role", "")),
        )
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise HTTPException(status_code=401, detail=str(e) or "Invalid token") from e


async def get_current_admin(
    user: DashboardUser = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
) -> DashboardUser:
    """Same as get_current_user but requires the configured minimum group rank."""
    if user.role_rank < settings.admin_min_rank:
        raise HTTPException(status_code=403, detail="Insufficient group rank")
    return user
