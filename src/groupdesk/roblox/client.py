"""Roblox public web API client: users, avatar headshots, group roles."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from groupdesk.errors import UpstreamFailure

logger = structlog.get_logger()

USERS_URL = "https://users.roblox.com/v1/users/{user_id}"
HEADSHOTS_URL = "https://thumbnails.roblox.com/v1/users/avatar-headshot"
GROUP_ROLES_URL = "https://groups.roblox.com/v2/users/{user_id}/groups/roles"

GUEST_ROLE = "Guest"
# The thumbnails batch endpoint rejects more ids than this per request.
HEADSHOT_BATCH_SIZE = 100


@dataclass(frozen=True)
class RobloxProfile:
    id: int
    name: str
    display_name: str


@dataclass(frozen=True)
class GroupRole:
    group_id: int
    rank: int
    role_name: str
    role_id: int | None = None


def _batches(ids: list[int], size: int) -> list[list[int]]:
    return [ids[i : i + size] for i in range(0, len(ids), size)]


def fallback_profile(user_id: int) -> RobloxProfile:
    placeholder = f"User_{user_id}"
    return RobloxProfile(id=user_id, name=placeholder, display_name=placeholder)


class RobloxClient:
    """Thin async wrapper over the unauthenticated Roblox web APIs."""

    def __init__(self, http: httpx.AsyncClient, timeout: float = 10.0) -> None:
        self.http = http
        self.timeout = timeout

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:  # noqa: ANN401
        try:
            response = await self.http.get(url, params=params, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise UpstreamFailure("Roblox API unreachable", url=url) from e
        if response.status_code != 200:
            raise UpstreamFailure("Roblox API error", url=url, upstream_status=response.status_code)
        return response.json()

    async def fetch_user(self, user_id: int) -> RobloxProfile:
        """Profile for one user; placeholder names when the lookup fails."""
        try:
            data = await self._get_json(USERS_URL.format(user_id=user_id))
        except UpstreamFailure:
            logger.warning("roblox_user_lookup_failed", user_id=user_id)
            return fallback_profile(user_id)
        name = data.get("name") or f"User_{user_id}"
        return RobloxProfile(id=user_id, name=name, display_name=data.get("displayName") or name)

    async def fetch_users(self, user_ids: list[int]) -> list[RobloxProfile]:
        return list(await asyncio.gather(*(self.fetch_user(uid) for uid in user_ids)))

    async def _headshot_batch(self, user_ids: list[int], size: str, circular: bool) -> dict[str, Any]:
        return await self._get_json(
            HEADSHOTS_URL,
            params={
                "userIds": ",".join(str(uid) for uid in user_ids),
                "size": size,
                "format": "Png",
                "isCircular": "true" if circular else "false",
            },
        )

    async def fetch_headshots(
        self,
        user_ids: list[int],
        size: str = "150x150",
        circular: bool = False,
    ) -> dict[str, Any]:
        """Raw thumbnails payload ``{"data": [{"targetId", "imageUrl", ...}]}``.

        Large id lists are split into batches the thumbnails API accepts and
        the ``data`` lists merged; any failed batch fails the whole call.
        """
        if not user_ids:
            return {"data": []}
        payloads = await asyncio.gather(
            *(self._headshot_batch(batch, size, circular) for batch in _batches(user_ids, HEADSHOT_BATCH_SIZE))
        )
        return {"data": [entry for payload in payloads for entry in payload.get("data") or []]}

    async def _headshot_url_batch(self, user_ids: list[int], size: str) -> dict[int, str]:
        try:
            payload = await self._headshot_batch(user_ids, size, circular=True)
        except UpstreamFailure:
            logger.warning("roblox_headshot_lookup_failed", count=len(user_ids))
            return {}
        urls: dict[int, str] = {}
        for entry in payload.get("data") or []:
            if entry.get("targetId") is not None:
                urls[int(entry["targetId"])] = entry.get("imageUrl") or ""
        return urls

    async def headshot_urls(self, user_ids: list[int], size: str = "100x100") -> dict[int, str]:
        """Map of user id to circular headshot URL; a failed batch only loses its own ids."""
        urls: dict[int, str] = {}
        for part in await asyncio.gather(
            *(self._headshot_url_batch(batch, size) for batch in _batches(user_ids, HEADSHOT_BATCH_SIZE))
        ):
            urls.update(part)
        return urls

    async def fetch_group_roles(self, user_id: int) -> list[GroupRole]:
        """Every group membership of ``user_id``."""
        data = await self._get_json(GROUP_ROLES_URL.format(user_id=user_id))
        roles = []
        for entry in data.get("data") or []:
            group = entry.get("group") or {}
            role = entry.get("role") or {}
            if group.get("id") is None:
                continue
            roles.append(
                GroupRole(
                    group_id=int(group["id"]),
                    rank=int(role.get("rank") or 0),
                    role_name=role.get("name") or GUEST_ROLE,
                    role_id=role.get("id"),
                )
            )
        return roles

    async def group_role(self, user_id: int, group_id: int) -> GroupRole:
        """Role in ``group_id``; rank 0 / Guest when not a member or the lookup fails."""
        guest = GroupRole(group_id=group_id, rank=0, role_name=GUEST_ROLE)
        if group_id <= 0:
            return guest
        try:
            roles = await self.fetch_group_roles(user_id)
        except UpstreamFailure:
            logger.warning("roblox_group_lookup_failed", user_id=user_id, group_id=group_id)
            return guest
        return next((r for r in roles if r.group_id == group_id), guest)
