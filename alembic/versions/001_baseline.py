"""Baseline schema: session ledger, identity links, calendar board.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# SQLite only auto-increments INTEGER PRIMARY KEY columns.
_BIGINT_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    # --- Session ledger ---
    op.create_table(
        "live_sessions",
        sa.Column("id", _BIGINT_PK, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("server_id", sa.String(length=128), nullable=False),
        sa.Column("place_id", sa.BigInteger(), nullable=True),
        _ts("started_at"),
        _ts("last_heartbeat"),
        sa.UniqueConstraint("user_id", "server_id", name="uq_live_sessions_user_server"),
    )
    op.create_index("ix_live_sessions_last_heartbeat", "live_sessions", ["last_heartbeat"])

    op.create_table(
        "archived_sessions",
        sa.Column("id", _BIGINT_PK, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("server_id", sa.String(length=128), nullable=False),
        sa.Column("place_id", sa.BigInteger(), nullable=True),
        _ts("started_at"),
        _ts("last_heartbeat", nullable=True),
        _ts("ended_at"),
        sa.Column("minutes", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.CheckConstraint("minutes >= 0", name="ck_archived_sessions_minutes"),
    )
    op.create_index("ix_archived_sessions_user_ended", "archived_sessions", ["user_id", "ended_at"])
    op.create_index("ix_archived_sessions_ended_at", "archived_sessions", ["ended_at"])

    # --- Identity links ---
    op.create_table(
        "identity_links",
        sa.Column("id", _BIGINT_PK, primary_key=True, autoincrement=True),
        sa.Column("discord_id", sa.String(length=32), nullable=False),
        sa.Column("guild_id", sa.String(length=32), nullable=False),
        sa.Column("roblox_user_id", sa.BigInteger(), nullable=False),
        sa.Column("roblox_username", sa.String(length=64), nullable=False),
        sa.Column("role_rank", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("role_name", sa.String(length=100), server_default=sa.text("'Guest'"), nullable=False),
        _ts("verified_at"),
        _ts("last_sync_at"),
        sa.UniqueConstraint("discord_id", "guild_id", name="uq_identity_links_discord_guild"),
    )

    # --- Calendar board ---
    op.create_table(
        "calendar_sessions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        _ts("week_start"),
        _ts("start"),
        _ts("end"),
        sa.Column("est_hour", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("server_tag", sa.String(length=64), nullable=True),
        sa.Column("host_id", sa.BigInteger(), nullable=True),
        sa.Column("cohost_id", sa.BigInteger(), nullable=True),
        sa.Column("trainer_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("max_trainers", sa.Integer(), server_default=sa.text("4"), nullable=False),
        sa.Column("notes", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.UniqueConstraint("start"),
        sa.CheckConstraint("max_trainers >= 0", name="ck_calendar_sessions_max_trainers"),
        sa.CheckConstraint(
            "trainer_count >= 0 AND trainer_count <= max_trainers",
            name="ck_calendar_sessions_trainer_count",
        ),
    )
    op.create_index("ix_calendar_sessions_week_start", "calendar_sessions", ["week_start"])

    op.create_table(
        "calendar_trainers",
        sa.Column(
            "session_id",
            sa.String(length=64),
            sa.ForeignKey("calendar_sessions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.BigInteger(), primary_key=True),
        _ts("claimed_at"),
    )


def downgrade() -> None:
    op.drop_table("calendar_trainers")
    op.drop_index("ix_calendar_sessions_week_start", table_name="calendar_sessions")
    op.drop_table("calendar_sessions")
    op.drop_table("identity_links")
    op.drop_index("ix_archived_sessions_ended_at", table_name="archived_sessions")
    op.drop_index("ix_archived_sessions_user_ended", table_name="archived_sessions")
    op.drop_table("archived_sessions")
    op.drop_index("ix_live_sessions_last_heartbeat", table_name="live_sessions")
    op.drop_table("live_sessions")
