"""Async SQLAlchemy engine and session management.

The engine is owned by a ``Database`` instance that the application creates
at startup and keeps on ``app.state``; nothing here is module-global.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from groupdesk.db import models  # noqa: F401
from groupdesk.db.base import Base


class Database:
    """Owns one async engine and its session factory."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    def _engine_options(self) -> dict[str, Any]:
        if self.url.startswith("sqlite"):
            return {"echo": False}
        return {
            "pool_size": 20,
            "max_overflow": 10,
            "pool_pre_ping": True,
            "echo": False,
            "connect_args": {"statement_cache_size": 0},
        }

    async def open(self) -> None:
        """Create the engine and session factory."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self.url, **self._engine_options())
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def close(self) -> None:
        """Dispose of the engine."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            msg = "Database not opened. Call open() first."
            raise RuntimeError(msg)
        return self._engine

    async def create_all(self) -> None:
        """Create all tables (development and tests; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session bound to this database."""
        if self._session_factory is None:
            msg = "Database not opened. Call open() first."
            raise RuntimeError(msg)
        async with self._session_factory() as session:
            yield session


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    db: Database = request.app.state.db
    async with db.session() as session:
        yield session
