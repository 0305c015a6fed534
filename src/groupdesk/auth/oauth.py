"""Roblox OAuth 2.0 / OIDC client and the exchange shared by both sign-in flows.

``OAuthMode.VERIFY`` links a Discord account (the Discord side arrives in a
signed state token); ``OAuthMode.LOGIN`` signs a group member into the
admin dashboard. Both run the same exchange: authorization code for an
access token, token for the OIDC profile, profile for the group role.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
import structlog

from groupdesk.config import Settings
from groupdesk.errors import AuthenticationFailure, GroupdeskError, UpstreamFailure
from groupdesk.roblox.client import GroupRole, RobloxClient, RobloxProfile

logger = structlog.get_logger()

AUTHORIZE_URL = "https://apis.roblox.com/oauth/v1/authorize"
TOKEN_URL = "https://apis.roblox.com/oauth/v1/token"
USERINFO_URL = "https://apis.roblox.com/oauth/v1/userinfo"
DEFAULT_SCOPE = "openid profile"


class OAuthMode(str, enum.Enum):
    VERIFY = "verify"
    LOGIN = "login"


@dataclass(frozen=True)
class OAuthIdentity:
    profile: RobloxProfile
    role: GroupRole


class RobloxOAuth:
    """Authorization-code client for apps.roblox.com OAuth applications."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
    ) -> None:
        self.http = http
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.web = RobloxClient(http, timeout=timeout)

    def authorize_url(self, state: str, redirect_uri: str, scope: str = DEFAULT_SCOPE) -> str:
        query = urlencode(
            {
                "client_id": self.client_id,
                "response_type": "code",
                "redirect_uri": redirect_uri,
                "scope": scope,
                "state": state,
            }
        )
        return f"{AUTHORIZE_URL}?{query}"

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        """Trade an authorization code for an access token.

        Raises:
            AuthenticationFailure: the provider rejected the code (4xx).
            UpstreamFailure: transport error, 5xx, or a reply without a token.
        """
        try:
            response = await self.http.post(
                TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
                auth=httpx.BasicAuth(self.client_id, self.client_secret),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise UpstreamFailure("Token exchange failed") from e

        if 400 <= response.status_code < 500:
            logger.warning("oauth_code_rejected", status_code=response.status_code)
            raise AuthenticationFailure("Token exchange failed", upstream_status=response.status_code)
        if response.status_code != 200:
            raise UpstreamFailure("Token exchange failed", upstream_status=response.status_code)

        token = response.json().get("access_token")
        if not token:
            raise UpstreamFailure("Token exchange returned no access token")
        return str(token)

    async def fetch_profile(self, access_token: str) -> RobloxProfile:
        """OIDC userinfo for the token owner."""
        try:
            response = await self.http.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise UpstreamFailure("User info failed") from e
        if response.status_code != 200:
            raise UpstreamFailure("User info failed", upstream_status=response.status_code)

        data = response.json()
        try:
            user_id = int(data["sub"])
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamFailure("User info has no subject") from e
        name = data.get("name") or data.get("preferred_username") or f"Roblox_{user_id}"
        return RobloxProfile(id=user_id, name=name, display_name=data.get("nickname") or name)

    async def fetch_group_roles(self, user_id: int) -> list[GroupRole]:
        return await self.web.fetch_group_roles(user_id)

    async def group_role(self, user_id: int, group_id: int) -> GroupRole:
        return await self.web.group_role(user_id, group_id)


class OAuthExchange:
    """One sign-in flow: a provider, the redirect URI registered for it, and the group to rank against."""

    def __init__(self, mode: OAuthMode, provider: RobloxOAuth, redirect_uri: str, group_id: int) -> None:
        self.mode = mode
        self.provider = provider
        self.redirect_uri = redirect_uri
        self.group_id = group_id

    @classmethod
    def from_settings(cls, mode: OAuthMode, settings: Settings, http: httpx.AsyncClient) -> OAuthExchange:
        redirect_uri = (
            settings.roblox_redirect_uri if mode is OAuthMode.VERIFY else settings.roblox_login_redirect_uri
        )
        provider = RobloxOAuth(
            http,
            settings.roblox_client_id,
            settings.roblox_client_secret,
            timeout=settings.oauth_http_timeout_seconds,
        )
        return cls(mode, provider, redirect_uri, settings.roblox_group_id)

    def _require_configured(self) -> None:
        if not self.provider.client_id or not self.redirect_uri:
            logger.error("oauth_not_configured", mode=self.mode.value)
            raise GroupdeskError("Server misconfigured")

    def begin(self, state: str) -> str:
        """Provider URL to send the browser to."""
        self._require_configured()
        return self.provider.authorize_url(state, self.redirect_uri)

    async def complete(self, code: str) -> OAuthIdentity:
        """Code to profile plus group role."""
        self._require_configured()
        token = await self.provider.exchange_code(code, self.redirect_uri)
        profile = await self.provider.fetch_profile(token)
        role = await self.provider.group_role(profile.id, self.group_id)
        logger.info(
            "oauth_exchange_completed",
            mode=self.mode.value,
            roblox_user_id=profile.id,
            role_rank=role.rank,
        )
        return OAuthIdentity(profile=profile, role=role)
