"""Calendar claim board: publish weekly slot grids and claim roles on them.

Host and co-host are single-holder roles; trainers are a capped set. Every
claim is a single conditional UPDATE so two concurrent claimants cannot
both win. ``trainer_count`` on the session row mirrors the size of
``calendar_trainers`` and is what the capacity check runs against.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from groupdesk.calendar.slots import board_week, publish_plan
from groupdesk.config import Settings
from groupdesk.db.models import CalendarSession, CalendarTrainer
from groupdesk.db.upsert import insert_for
from groupdesk.errors import ConflictFailure, NotFoundFailure, ValidationFailure

logger = structlog.get_logger()


class ClaimRole(str, enum.Enum):
    HOST = "host"
    COHOST = "cohost"
    TRAINER = "trainer"


@dataclass(frozen=True)
class BoardConfig:
    tz_name: str = "America/New_York"
    slot_hours: tuple[int, ...] = (0, 3, 6, 9, 12, 15, 18, 21)
    slot_length: timedelta = timedelta(hours=2)
    max_weeks: int = 12
    default_max_trainers: int = 4
    default_title: str = "Training Session"

    @classmethod
    def from_settings(cls, settings: Settings) -> BoardConfig:
        return cls(
            tz_name=settings.calendar_timezone,
            slot_hours=tuple(settings.calendar_slot_hours),
            slot_length=timedelta(minutes=settings.calendar_slot_length_minutes),
            max_weeks=settings.calendar_max_publish_weeks,
            default_max_trainers=settings.calendar_default_max_trainers,
            default_title=settings.calendar_default_title,
        )


@dataclass(frozen=True)
class PublishResult:
    weeks: int
    created: int
    session_ids: list[str] = field(default_factory=list)


def parse_role(raw: str) -> ClaimRole:
    try:
        return ClaimRole(raw)
    except ValueError:
        raise ValidationFailure("Invalid role", role=raw) from None


def _holder_column(role: ClaimRole):  # noqa: ANN202
    return CalendarSession.host_id if role is ClaimRole.HOST else CalendarSession.cohost_id


async def get_board_session(db: AsyncSession, session_id: str) -> CalendarSession:
    """Load a session with its trainers, bypassing stale identity-map state."""
    result = await db.execute(
        select(CalendarSession)
        .where(CalendarSession.id == session_id)
        .options(selectinload(CalendarSession.trainers))
        .execution_options(populate_existing=True)
    )
    row = result.scalar_one_or_none()
    if row is None:
        raise NotFoundFailure("Session not found", session_id=session_id)
    return row


async def list_week(
    db: AsyncSession,
    config: BoardConfig,
    reference: datetime | None = None,
) -> tuple[tuple[datetime, datetime], list[CalendarSession]]:
    """Sessions of the board week containing ``reference``, ordered by start."""
    if reference is None:
        reference = datetime.now(timezone.utc)
    start, end = board_week(reference, config.tz_name)
    result = await db.execute(
        select(CalendarSession)
        .where(CalendarSession.start >= start, CalendarSession.start < end)
        .options(selectinload(CalendarSession.trainers))
        .order_by(CalendarSession.start)
    )
    return (start, end), list(result.scalars().all())


async def publish(
    db: AsyncSession,
    config: BoardConfig,
    reference: datetime | None = None,
    weeks: int = 1,
    title: str | None = None,
    max_trainers: int | None = None,
) -> PublishResult:
    """Create the slot grid for ``weeks`` weeks, skipping slots that already exist.

    Existing slots are never touched, so their claims survive a republish.
    """
    if reference is None:
        reference = datetime.now(timezone.utc)
    weeks = min(config.max_weeks, max(1, weeks))
    title = title or config.default_title
    capacity = config.default_max_trainers if max_trainers is None else max(0, max_trainers)

    created: list[str] = []
    for week in publish_plan(reference, weeks, config.tz_name, config.slot_hours, config.slot_length):
        stmt = (
            insert_for(db, CalendarSession)
            .values(
                [
                    {
                        "id": slot.id,
                        "week_start": slot.week_start,
                        "start": slot.start,
                        "end": slot.end,
                        "est_hour": slot.local_hour,
                        "title": title,
                        "server_tag": None,
                        "host_id": None,
                        "cohost_id": None,
                        "trainer_count": 0,
                        "max_trainers": capacity,
                        "notes": "",
                    }
                    for slot in week
                ]
            )
            .on_conflict_do_nothing()
            .returning(CalendarSession.id)
        )
        result = await db.execute(stmt)
        created.extend(result.scalars().all())

    logger.info("calendar_published", weeks=weeks, created=len(created))
    return PublishResult(weeks=weeks, created=len(created), session_ids=created)


async def claim(
    db: AsyncSession,
    session_id: str,
    role: ClaimRole,
    user_id: int,
    now: datetime | None = None,
) -> CalendarSession:
    """Give ``user_id`` the role on the session.

    Re-claiming a role already held by the same user is a no-op.

    Raises:
        NotFoundFailure: unknown session id.
        ValidationFailure: the session has already ended.
        ConflictFailure: the role is held by someone else, or trainers are full.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    session = await get_board_session(db, session_id)
    if session.end < now:
        raise ValidationFailure("Session is in the past", session_id=session_id)

    if role is ClaimRole.TRAINER:
        await _claim_trainer(db, session, user_id, now)
    else:
        column = _holder_column(role)
        result = await db.execute(
            update(CalendarSession)
            .where(CalendarSession.id == session_id, or_(column.is_(None), column == user_id))
            .values({column: user_id})
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            current = await get_board_session(db, session_id)
            label = "Host" if role is ClaimRole.HOST else "Co-host"
            raise ConflictFailure(
                f"{label} already claimed",
                role=role.value,
                holder_id=getattr(current, column.key),
            )

    logger.info("calendar_claimed", session_id=session_id, role=role.value, user_id=user_id)
    return await get_board_session(db, session_id)


async def _claim_trainer(db: AsyncSession, session: CalendarSession, user_id: int, now: datetime) -> None:
    if user_id in session.trainer_ids:
        return

    bumped = await db.execute(
        update(CalendarSession)
        .where(
            CalendarSession.id == session.id,
            CalendarSession.trainer_count < CalendarSession.max_trainers,
        )
        .values(trainer_count=CalendarSession.trainer_count + 1)
        .execution_options(synchronize_session=False)
    )
    if not bumped.rowcount:
        raise ConflictFailure(
            "Trainer slots full",
            role=ClaimRole.TRAINER.value,
            max_trainers=session.max_trainers,
            trainer_ids=session.trainer_ids,
        )

    inserted = await db.execute(
        insert_for(db, CalendarTrainer)
        .values(session_id=session.id, user_id=user_id, claimed_at=now)
        .on_conflict_do_nothing()
        .returning(CalendarTrainer.user_id)
    )
    if inserted.first() is None:
        # Lost a race against our own duplicate claim; give the seat back.
        await db.execute(
            update(CalendarSession)
            .where(CalendarSession.id == session.id)
            .values(trainer_count=CalendarSession.trainer_count - 1)
            .execution_options(synchronize_session=False)
        )


async def unclaim(
    db: AsyncSession,
    session_id: str,
    role: ClaimRole,
    user_id: int,
) -> bool:
    """Release the role if ``user_id`` holds it. Returns whether anything changed.

    Releasing a role held by someone else (or by nobody) is a silent no-op.
    """
    await get_board_session(db, session_id)

    if role is ClaimRole.TRAINER:
        removed = await db.execute(
            delete(CalendarTrainer)
            .where(CalendarTrainer.session_id == session_id, CalendarTrainer.user_id == user_id)
            .returning(CalendarTrainer.user_id)
            .execution_options(synchronize_session=False)
        )
        released = removed.first() is not None
        if released:
            await db.execute(
                update(CalendarSession)
                .where(CalendarSession.id == session_id, CalendarSession.trainer_count > 0)
                .values(trainer_count=CalendarSession.trainer_count - 1)
                .execution_options(synchronize_session=False)
            )
    else:
        column = _holder_column(role)
        result = await db.execute(
            update(CalendarSession)
            .where(CalendarSession.id == session_id, column == user_id)
            .values({column: None})
            .execution_options(synchronize_session=False)
        )
        released = bool(result.rowcount)

    if released:
        logger.info("calendar_released", session_id=session_id, role=role.value, user_id=user_id)
    return released
