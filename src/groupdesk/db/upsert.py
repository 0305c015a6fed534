"""Dialect-aware ``INSERT .. ON CONFLICT`` builders.

PostgreSQL is the production store; SQLite backs the test suite. Both
dialects expose the same ``on_conflict_do_*`` API.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, model: Any) -> Any:  # noqa: ANN401
    """Return an ``Insert`` construct for ``model`` that supports ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
