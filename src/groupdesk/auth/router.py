"""Authentication router: all /auth/* endpoints.

Discord verification:  /auth/roblox  ->  Roblox  ->  /auth/callback
Dashboard login:       /auth/login   ->  Roblox  ->  /auth/login/callback
"""

from __future__ import annotations

import hmac
import secrets
from datetime import timedelta
from urllib.parse import urlencode

import httpx
import structlog
from fastapi import APIRouter, BackgroundTasks, Cookie, Depends, Query
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.auth import service
from groupdesk.auth.dependencies import DashboardUser, get_current_admin, get_current_user
from groupdesk.auth.oauth import OAuthExchange, OAuthMode
from groupdesk.auth.schemas import DashboardUserResponse, IdentityLinkResponse, VerifyTokenResponse
from groupdesk.auth.state_token import StateTokenCodec
from groupdesk.config import Settings
from groupdesk.database import get_session
from groupdesk.dependencies import get_app_settings, get_http_client
from groupdesk.errors import AuthenticationFailure, ValidationFailure
from groupdesk.links.service import list_links
from groupdesk.notify.companion import CompanionNotifier

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["Authentication"])

STATE_COOKIE = "rs"
LOGIN_COOKIE = "login_state"

VERIFIED_PAGE = """<!doctype html>
<html><body style="text-align:center;padding-top:20vh;font-family:sans-serif;">
<h1>Verified!</h1><p>You may now close this tab and return to Discord.</p>
</body></html>"""


def get_state_codec(settings: Settings = Depends(get_app_settings)) -> StateTokenCodec:
    return StateTokenCodec(
        settings.state_secret,
        legacy_window=timedelta(seconds=settings.legacy_state_window_seconds),
    )


def get_verify_exchange(
    settings: Settings = Depends(get_app_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> OAuthExchange:
    return OAuthExchange.from_settings(OAuthMode.VERIFY, settings, http)


def get_login_exchange(
    settings: Settings = Depends(get_app_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> OAuthExchange:
    return OAuthExchange.from_settings(OAuthMode.LOGIN, settings, http)


def get_companion(
    settings: Settings = Depends(get_app_settings),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> CompanionNotifier:
    return CompanionNotifier(
        http=http,
        base_url=settings.companion_base_url,
        secret=settings.companion_webhook_secret,
        timeout=settings.companion_timeout_seconds,
    )


def _set_flow_cookie(response: RedirectResponse, name: str, value: str, settings: Settings) -> None:
    response.set_cookie(
        name,
        value,
        max_age=settings.state_cookie_max_age_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.environment != "development",
    )


# ---------------------------------------------------------------------------
# Discord verification
# ---------------------------------------------------------------------------


@router.get("/roblox")
async def start_verification(
    state: str = Query(default=""),
    settings: Settings = Depends(get_app_settings),
    exchange: OAuthExchange = Depends(get_verify_exchange),
) -> RedirectResponse:
    """Remember the bot-issued state and send the browser to Roblox."""
    if not state:
        raise ValidationFailure("Missing state")
    response = RedirectResponse(exchange.begin(state), status_code=302)
    _set_flow_cookie(response, STATE_COOKIE, state, settings)
    return response


@router.get("/callback", response_class=HTMLResponse)
async def verification_callback(
    background_tasks: BackgroundTasks,
    code: str = Query(default=""),
    rs: str | None = Cookie(default=None),
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    codec: StateTokenCodec = Depends(get_state_codec),
    exchange: OAuthExchange = Depends(get_verify_exchange),
    companion: CompanionNotifier = Depends(get_companion),
) -> HTMLResponse:
    """Finish linking: store the link, then tell the bot in the background."""
    if not code:
        raise ValidationFailure("Missing code")

    result = await service.complete_verification(
        db,
        exchange,
        codec,
        code=code,
        raw_state=rs,
        fallback_guild_id=settings.fallback_guild_id,
    )
    await db.commit()
    background_tasks.add_task(companion.send_verification, result.companion_payload)

    response = HTMLResponse(VERIFIED_PAGE)
    response.delete_cookie(STATE_COOKIE)
    return response


# ---------------------------------------------------------------------------
# Dashboard login
# ---------------------------------------------------------------------------


@router.get("/login")
async def start_login(
    settings: Settings = Depends(get_app_settings),
    exchange: OAuthExchange = Depends(get_login_exchange),
) -> RedirectResponse:
    """Send an admin to Roblox with a one-time CSRF nonce."""
    nonce = secrets.token_urlsafe(24)
    response = RedirectResponse(exchange.begin(nonce), status_code=302)
    _set_flow_cookie(response, LOGIN_COOKIE, nonce, settings)
    return response


@router.get("/login/callback")
async def login_callback(
    code: str = Query(default=""),
    state: str = Query(default=""),
    login_state: str | None = Cookie(default=None),
    settings: Settings = Depends(get_app_settings),
    exchange: OAuthExchange = Depends(get_login_exchange),
) -> RedirectResponse:
    """Issue a dashboard token and hand it to the frontend."""
    if not code:
        raise ValidationFailure("Missing code")
    if not state or not login_state or not hmac.compare_digest(state.encode(), login_state.encode()):
        raise AuthenticationFailure("Invalid login state")

    result = await service.complete_login(exchange, settings, code)
    frontend = settings.frontend_base_url.rstrip("/")
    if result.allowed:
        target = f"{frontend}/auth/success?{urlencode({'token': result.access_token})}"
    else:
        target = f"{frontend}/access-denied"

    response = RedirectResponse(target, status_code=302)
    response.delete_cookie(LOGIN_COOKIE)
    return response


@router.get("/verify", response_model=VerifyTokenResponse)
async def verify(user: DashboardUser = Depends(get_current_user)) -> VerifyTokenResponse:
    """Confirm a dashboard token and return who it belongs to."""
    return VerifyTokenResponse(
        user=DashboardUserResponse(
            roblox_user_id=user.roblox_user_id,
            username=user.username,
            role_rank=user.role_rank,
            role_name=user.role_name,
        )
    )


@router.get("/team", response_model=list[IdentityLinkResponse])
async def team(
    guild_id: str | None = Query(default=None, alias="guildId"),
    db: AsyncSession = Depends(get_session),
    _admin: DashboardUser = Depends(get_current_admin),
) -> list[IdentityLinkResponse]:
    """Linked members, most recently synced first."""
    links = await list_links(db, guild_id)
    return [IdentityLinkResponse.model_validate(link) for link in links]
