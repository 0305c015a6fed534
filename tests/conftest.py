"""Shared test fixtures.

Each test gets its own SQLite database file and an app whose outbound HTTP
client is wired to an in-process fake of the Roblox and companion APIs.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.auth.jwt import create_access_token
from groupdesk.config import Settings
from groupdesk.database import Database
from groupdesk.main import create_app

GAME_KEY = "test-game-key"
STATE_SECRET = "test-state-secret"
COMPANION_URL = "http://companion.test"
ADMIN_ID = 9001
MEMBER_ID = 4242


class FakeUpstream:
    """Routes outbound requests by (method, scheme://host/path) to canned replies."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, status: int = 200, json: Any = None) -> None:  # noqa: ANN401
        self.routes[(method, url)] = lambda _req: httpx.Response(status, json=json)

    def add_handler(self, method: str, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method, url)] = handler

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and _route_key(r)[1] == url]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(_route_key(request))
        if handler is None:
            return httpx.Response(404, json={"errors": [{"message": "NotFound"}]})
        return handler(request)


def _route_key(request: httpx.Request) -> tuple[str, str]:
    url = request.url
    base = f"{url.scheme}://{url.host}"
    if url.port:
        base += f":{url.port}"
    return request.method, base + url.path


def make_settings(database_url: str, **overrides: Any) -> Settings:  # noqa: ANN401
    values: dict[str, Any] = {
        "database_url": database_url,
        "redis_url": "",
        "log_format": "console",
        "game_ingest_key": GAME_KEY,
        "state_secret": STATE_SECRET,
        "jwt_secret": "test-jwt-secret",
        "roblox_client_id": "client-123",
        "roblox_client_secret": "client-secret",
        "roblox_redirect_uri": "http://test/auth/callback",
        "roblox_login_redirect_uri": "http://test/auth/login/callback",
        "roblox_group_id": 777,
        "fallback_guild_id": "guild-fallback",
        "companion_base_url": COMPANION_URL,
        "companion_webhook_secret": "companion-secret",
        "frontend_base_url": "http://dashboard.test",
        "admin_min_rank": 200,
        "quota_minutes": 30,
        "week_start_day": 1,
        "week_timezone": "UTC",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(f"sqlite+aiosqlite:///{tmp_path / 'groupdesk.db'}")


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings.database_url)
    await db.open()
    await db.create_all()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service calls and assertions."""
    async with database.session() as session:
        yield session


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest_asyncio.fixture
async def app(settings: Settings, database: Database, upstream: FakeUpstream) -> AsyncGenerator[FastAPI, None]:
    """The application with its state wired up by hand (ASGITransport skips lifespan)."""
    application = create_app(settings)
    application.state.db = database
    application.state.redis = None
    application.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handle))
    yield application
    await application.state.http_client.aclose()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def bearer(settings: Settings, user_id: int = ADMIN_ID, rank: int = 255, name: str = "admin") -> dict[str, str]:
    token = create_access_token(settings, user_id, name, rank, "Owner" if rank >= 255 else "Member")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(settings: Settings) -> dict[str, str]:
    return bearer(settings)


@pytest.fixture
def member_headers(settings: Settings) -> dict[str, str]:
    return bearer(settings, user_id=MEMBER_ID, rank=10, name="member")


@pytest.fixture
def game_headers() -> dict[str, str]:
    return {"X-Game-Key": GAME_KEY}
