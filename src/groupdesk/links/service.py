"""Identity link store: Discord account to Roblox account, per guild."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.db.models import IdentityLink
from groupdesk.db.upsert import insert_for

logger = structlog.get_logger()


async def upsert_link(
    db: AsyncSession,
    discord_id: str,
    guild_id: str,
    roblox_user_id: int,
    roblox_username: str,
    role_rank: int = 0,
    role_name: str = "Guest",
    now: datetime | None = None,
) -> None:
    """Insert or refresh the link for (discord_id, guild_id).

    ``verified_at`` is set on first write only; everything else is last
    write wins.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    stmt = insert_for(db, IdentityLink).values(
        discord_id=discord_id,
        guild_id=guild_id,
        roblox_user_id=roblox_user_id,
        roblox_username=roblox_username,
        role_rank=role_rank,
        role_name=role_name,
        verified_at=now,
        last_sync_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["discord_id", "guild_id"],
        set_={
            "roblox_user_id": stmt.excluded.roblox_user_id,
            "roblox_username": stmt.excluded.roblox_username,
            "role_rank": stmt.excluded.role_rank,
            "role_name": stmt.excluded.role_name,
            "last_sync_at": stmt.excluded.last_sync_at,
        },
    )
    await db.execute(stmt)
    logger.info(
        "identity_linked",
        discord_id=discord_id,
        guild_id=guild_id,
        roblox_user_id=roblox_user_id,
        role_rank=role_rank,
    )


async def get_link(db: AsyncSession, discord_id: str, guild_id: str) -> IdentityLink | None:
    result = await db.execute(
        select(IdentityLink)
        .where(IdentityLink.discord_id == discord_id, IdentityLink.guild_id == guild_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_links(db: AsyncSession, guild_id: str | None = None) -> list[IdentityLink]:
    """All links, most recently synced first, optionally for one guild."""
    stmt = select(IdentityLink).order_by(IdentityLink.last_sync_at.desc(), IdentityLink.id.desc())
    if guild_id:
        stmt = stmt.where(IdentityLink.guild_id == guild_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())
