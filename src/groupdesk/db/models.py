"""ORM models for the session ledger, identity links and the calendar board."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groupdesk.db.base import Base, BigIntPK, UTCDateTime


# ---------------------------------------------------------------------------
# Session ledger
# ---------------------------------------------------------------------------


class LiveSession(Base):
    """An in-progress play session. At most one per (user_id, server_id)."""

    __tablename__ = "live_sessions"
    __table_args__ = (
        UniqueConstraint("user_id", "server_id", name="uq_live_sessions_user_server"),
        Index("ix_live_sessions_last_heartbeat", "last_heartbeat"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    server_id: Mapped[str] = mapped_column(String(128), nullable=False)
    place_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_heartbeat: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class ArchivedSession(Base):
    """A finished play session. Append-only."""

    __tablename__ = "archived_sessions"
    __table_args__ = (
        Index("ix_archived_sessions_user_ended", "user_id", "ended_at"),
        CheckConstraint("minutes >= 0", name="ck_archived_sessions_minutes"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    server_id: Mapped[str] = mapped_column(String(128), nullable=False)
    place_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_heartbeat: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    ended_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ---------------------------------------------------------------------------
# Identity links
# ---------------------------------------------------------------------------


class IdentityLink(Base):
    """Discord account to Roblox account mapping, per Discord guild."""

    __tablename__ = "identity_links"
    __table_args__ = (UniqueConstraint("discord_id", "guild_id", name="uq_identity_links_discord_guild"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    discord_id: Mapped[str] = mapped_column(String(32), nullable=False)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    roblox_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    roblox_username: Mapped[str] = mapped_column(String(64), nullable=False)
    role_rank: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    role_name: Mapped[str] = mapped_column(String(100), nullable=False, default="Guest")
    verified_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_sync_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Calendar / claim board
# ---------------------------------------------------------------------------


class CalendarSession(Base):
    """A fixed scheduled slot that users can claim as host, co-host or trainer."""

    __tablename__ = "calendar_sessions"
    __table_args__ = (
        CheckConstraint("max_trainers >= 0", name="ck_calendar_sessions_max_trainers"),
        CheckConstraint(
            "trainer_count >= 0 AND trainer_count <= max_trainers",
            name="ck_calendar_sessions_trainer_count",
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    week_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, unique=True)
    end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    est_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    server_tag: Mapped[str | None] = mapped_column(String(64), nullable=True)
    host_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    cohost_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    trainer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_trainers: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    trainers: Mapped[list[CalendarTrainer]] = relationship(
        "CalendarTrainer",
        back_populates="session",
        order_by="CalendarTrainer.claimed_at",
        cascade="all, delete-orphan",
    )

    @property
    def trainer_ids(self) -> list[int]:
        return [t.user_id for t in self.trainers]


class CalendarTrainer(Base):
    """Trainer membership of a calendar session. Unique per (session, user)."""

    __tablename__ = "calendar_trainers"

    session_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("calendar_sessions.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    claimed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    session: Mapped[CalendarSession] = relationship("CalendarSession", back_populates="trainers")
