"""
Access tokens for the admin dashboard.

Issued after a successful site login through Roblox OAuth. The subject is
the Roblox user id; the token also carries the username and group rank
observed at login time.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from groupdesk.config import Settings


def create_access_token(
    settings: Settings,
    roblox_user_id: int,
    username: str,
    role_rank: int,
    role_name: str,
    now: datetime | None = None,
) -> str:
    """
    Create a dashboard access token.

    Args:
        settings: Application settings (secret, algorithm, lifetime, issuer).
        roblox_user_id: Authenticated Roblox user id.
        username: Roblox username.
        role_rank: Group rank at login time.
        role_name: Group role name at login time.

    Returns:
        Encoded JWT string.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(roblox_user_id),
        "name": username,
        "rank": role_rank,
        "role": role_name,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(settings: Settings, token: str) -> dict[str, Any]:
    """
    Verify and decode a dashboard access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or wrong type.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != "access":
        msg = f"Expected token type 'access', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
