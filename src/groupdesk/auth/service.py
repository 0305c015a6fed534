"""Completion steps of the two OAuth flows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.auth.jwt import create_access_token
from groupdesk.auth.oauth import OAuthExchange, OAuthIdentity
from groupdesk.auth.state_token import StateClaims, StateTokenCodec
from groupdesk.config import Settings
from groupdesk.errors import AuthenticationFailure, ValidationFailure
from groupdesk.links.service import upsert_link
from groupdesk.notify.companion import build_verify_payload

logger = structlog.get_logger()


@dataclass(frozen=True)
class VerificationResult:
    claims: StateClaims
    guild_id: str
    identity: OAuthIdentity
    companion_payload: dict[str, Any]


@dataclass(frozen=True)
class LoginResult:
    identity: OAuthIdentity
    access_token: str | None

    @property
    def allowed(self) -> bool:
        return self.access_token is not None


def resolve_state(codec: StateTokenCodec, raw_state: str | None, fallback_guild_id: str) -> tuple[StateClaims, str]:
    """Verify the state cookie and pick the guild it applies to.

    Legacy tokens carry no guild and use the configured fallback.
    """
    claims = codec.decode(raw_state)
    if claims is None:
        raise AuthenticationFailure("Invalid or missing state")
    guild_id = claims.guild_id or fallback_guild_id
    if not guild_id:
        raise ValidationFailure("Missing guild context")
    return claims, guild_id


async def complete_verification(
    db: AsyncSession,
    exchange: OAuthExchange,
    codec: StateTokenCodec,
    code: str,
    raw_state: str | None,
    fallback_guild_id: str = "",
) -> VerificationResult:
    """Link the Discord account in the state token to the Roblox account behind ``code``.

    The state is checked before any call to the provider. The link is
    flushed but not committed; the caller commits.
    """
    claims, guild_id = resolve_state(codec, raw_state, fallback_guild_id)
    identity = await exchange.complete(code)
    await upsert_link(
        db,
        discord_id=claims.discord_id,
        guild_id=guild_id,
        roblox_user_id=identity.profile.id,
        roblox_username=identity.profile.name,
        role_rank=identity.role.rank,
        role_name=identity.role.role_name,
    )
    payload = build_verify_payload(
        state=raw_state or "",
        roblox_id=identity.profile.id,
        username=identity.profile.name,
        display_name=identity.profile.display_name,
        roles=[
            {
                "groupId": identity.role.group_id,
                "roleId": identity.role.role_id if identity.role.role_id is not None else identity.role.rank,
                "roleName": identity.role.role_name,
            }
        ],
    )
    return VerificationResult(claims=claims, guild_id=guild_id, identity=identity, companion_payload=payload)


async def complete_login(exchange: OAuthExchange, settings: Settings, code: str) -> LoginResult:
    """Sign a group member in. No token is issued below ``admin_min_rank``."""
    identity = await exchange.complete(code)
    if identity.role.rank < settings.admin_min_rank:
        logger.info("login_denied", roblox_user_id=identity.profile.id, role_rank=identity.role.rank)
        return LoginResult(identity=identity, access_token=None)

    token = create_access_token(
        settings,
        roblox_user_id=identity.profile.id,
        username=identity.profile.name,
        role_rank=identity.role.rank,
        role_name=identity.role.role_name,
    )
    logger.info("login_succeeded", roblox_user_id=identity.profile.id, role_rank=identity.role.rank)
    return LoginResult(identity=identity, access_token=token)
