"""Integration tests for the calendar claim board."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.calendar.service import (
    BoardConfig,
    ClaimRole,
    claim,
    get_board_session,
    list_week,
    parse_role,
    publish,
    unclaim,
)
from groupdesk.db.models import CalendarSession, CalendarTrainer
from groupdesk.errors import ConflictFailure, NotFoundFailure, ValidationFailure

CONFIG = BoardConfig(default_max_trainers=2)
REF = datetime(2026, 2, 25, 15, 0, tzinfo=timezone.utc)
BEFORE = datetime(2026, 2, 20, tzinfo=timezone.utc)


async def _count(db: AsyncSession, model) -> int:
    return int((await db.execute(select(func.count()).select_from(model))).scalar_one())


@pytest_asyncio.fixture
async def slot_id(db_session: AsyncSession) -> str:
    """One published week; returns the id of its first slot."""
    result = await publish(db_session, CONFIG, reference=REF, weeks=1)
    await db_session.commit()
    return sorted(result.session_ids)[0]


class TestPublish:
    @pytest.mark.asyncio
    async def test_creates_full_grid(self, db_session: AsyncSession):
        result = await publish(db_session, CONFIG, reference=REF, weeks=2)
        await db_session.commit()
        assert result.weeks == 2
        assert result.created == 2 * 7 * 8
        assert await _count(db_session, CalendarSession) == 112

    @pytest.mark.asyncio
    async def test_republish_is_idempotent(self, db_session: AsyncSession):
        await publish(db_session, CONFIG, reference=REF, weeks=1)
        second = await publish(db_session, CONFIG, reference=REF, weeks=1)
        await db_session.commit()
        assert second.created == 0
        assert await _count(db_session, CalendarSession) == 56

    @pytest.mark.asyncio
    async def test_republish_keeps_claims(self, db_session: AsyncSession, slot_id: str):
        await claim(db_session, slot_id, ClaimRole.HOST, 7, now=BEFORE)
        await publish(db_session, CONFIG, reference=REF, weeks=1, title="Renamed")
        await db_session.commit()
        session = await get_board_session(db_session, slot_id)
        assert session.host_id == 7
        assert session.title == CONFIG.default_title

    @pytest.mark.asyncio
    async def test_weeks_clamped(self, db_session: AsyncSession):
        low = await publish(db_session, CONFIG, reference=REF, weeks=0)
        assert low.weeks == 1
        high = await publish(db_session, BoardConfig(max_weeks=3), reference=REF, weeks=50)
        assert high.weeks == 3

    @pytest.mark.asyncio
    async def test_custom_title_and_capacity(self, db_session: AsyncSession):
        await publish(db_session, CONFIG, reference=REF, weeks=1, title="Cadet Training", max_trainers=6)
        await db_session.commit()
        _, rows = await list_week(db_session, CONFIG, REF)
        assert {r.title for r in rows} == {"Cadet Training"}
        assert {r.max_trainers for r in rows} == {6}

    @pytest.mark.asyncio
    async def test_default_reference_is_current_week(self, db_session: AsyncSession):
        await publish(db_session, CONFIG, weeks=1)
        await db_session.commit()
        (start, end), rows = await list_week(db_session, CONFIG)
        assert len(rows) == 56
        assert all(start <= r.start < end for r in rows)

    @pytest.mark.asyncio
    async def test_list_week_ordered(self, db_session: AsyncSession):
        await publish(db_session, CONFIG, reference=REF, weeks=2)
        await db_session.commit()
        (start, end), rows = await list_week(db_session, CONFIG, REF)
        assert len(rows) == 56
        assert [r.start for r in rows] == sorted(r.start for r in rows)
        assert all(start <= r.start < end for r in rows)
        assert rows[0].id == "slot-2026-02-23T05:00:00Z"


class TestHostClaims:
    @pytest.mark.asyncio
    async def test_claim_host(self, db_session: AsyncSession, slot_id: str):
        session = await claim(db_session, slot_id, ClaimRole.HOST, 7, now=BEFORE)
        assert session.host_id == 7

    @pytest.mark.asyncio
    async def test_reclaim_by_same_user_is_noop(self, db_session: AsyncSession, slot_id: str):
        await claim(db_session, slot_id, ClaimRole.HOST, 7, now=BEFORE)
        session = await claim(db_session, slot_id, ClaimRole.HOST, 7, now=BEFORE)
        assert session.host_id == 7

    @pytest.mark.asyncio
    async def test_conflict_leaves_holder_unchanged(self, db_session: AsyncSession, slot_id: str):
        await claim(db_session, slot_id, ClaimRole.HOST, 7, now=BEFORE)
        with pytest.raises(ConflictFailure) as exc_info:
            await claim(db_session, slot_id, ClaimRole.HOST, 8, now=BEFORE)
        assert exc_info.value.context["holder_id"] == 7
        assert (await get_board_session(db_session, slot_id)).host_id == 7

    @pytest.mark.asyncio
    async def test_host_and_cohost_are_independent(self, db_session: AsyncSession, slot_id: str):
        await claim(db_session, slot_id, ClaimRole.HOST, 7, now=BEFORE)
        session = await claim(db_session, slot_id, ClaimRole.COHOST, 8, now=BEFORE)
        assert (session.host_id, session.cohost_id) == (7, 8)

    @pytest.mark.asyncio
    async def test_unclaim_only_by_holder(self, db_session: AsyncSession, slot_id: str):
        await claim(db_session, slot_id, ClaimRole.COHOST, 7, now=BEFORE)
        assert await unclaim(db_session, slot_id, ClaimRole.COHOST, 8) is False
        assert (await get_board_session(db_session, slot_id)).cohost_id == 7
        assert await unclaim(db_session, slot_id, ClaimRole.COHOST, 7) is True
        assert (await get_board_session(db_session, slot_id)).cohost_id is None

    @pytest.mark.asyncio
    async def test_released_role_can_be_claimed(self, db_session: AsyncSession, slot_id: str):
        await claim(db_session, slot_id, ClaimRole.HOST, 7, now=BEFORE)
        await unclaim(db_session, slot_id, ClaimRole.HOST, 7)
        session = await claim(db_session, slot_id, ClaimRole.HOST, 8, now=BEFORE)
        assert session.host_id == 8


class TestTrainerClaims:
    @pytest.mark.asyncio
    async def test_capacity_enforced(self, db_session: AsyncSession, slot_id: str):
        await claim(db_session, slot_id, ClaimRole.TRAINER, 1, now=BEFORE)
        await claim(db_session, slot_id, ClaimRole.TRAINER, 2, now=BEFORE)
        with pytest.raises(ConflictFailure) as exc_info:
            await claim(db_session, slot_id, ClaimRole.TRAINER, 3, now=BEFORE)
        assert exc_info.value.context["max_trainers"] == 2

        session = await get_board_session(db_session, slot_id)
        assert sorted(session.trainer_ids) == [1, 2]
        assert session.trainer_count == 2

    @pytest.mark.asyncio
    async def test_duplicate_trainer_claim_is_noop(self, db_session: AsyncSession, slot_id: str):
        await claim(db_session, slot_id, ClaimRole.TRAINER, 1, now=BEFORE)
        session = await claim(db_session, slot_id, ClaimRole.TRAINER, 1, now=BEFORE)
        assert session.trainer_ids == [1]
        assert session.trainer_count == 1
        assert await _count(db_session, CalendarTrainer) == 1

    @pytest.mark.asyncio
    async def test_unclaim_frees_exactly_one_seat(self, db_session: AsyncSession, slot_id: str):
        await claim(db_session, slot_id, ClaimRole.TRAINER, 1, now=BEFORE)
        await claim(db_session, slot_id, ClaimRole.TRAINER, 2, now=BEFORE)
        assert await unclaim(db_session, slot_id, ClaimRole.TRAINER, 1) is True

        session = await claim(db_session, slot_id, ClaimRole.TRAINER, 3, now=BEFORE)
        assert sorted(session.trainer_ids) == [2, 3]
        with pytest.raises(ConflictFailure):
            await claim(db_session, slot_id, ClaimRole.TRAINER, 4, now=BEFORE)

    @pytest.mark.asyncio
    async def test_unclaim_absent_trainer_is_noop(self, db_session: AsyncSession, slot_id: str):
        assert await unclaim(db_session, slot_id, ClaimRole.TRAINER, 99) is False
        assert (await get_board_session(db_session, slot_id)).trainer_count == 0

    @pytest.mark.asyncio
    async def test_zero_capacity_session(self, db_session: AsyncSession):
        result = await publish(db_session, CONFIG, reference=REF, weeks=1, max_trainers=0)
        sid = result.session_ids[0]
        with pytest.raises(ConflictFailure):
            await claim(db_session, sid, ClaimRole.TRAINER, 1, now=BEFORE)


class TestGuards:
    @pytest.mark.asyncio
    async def test_unknown_session(self, db_session: AsyncSession):
        with pytest.raises(NotFoundFailure):
            await claim(db_session, "slot-nope", ClaimRole.HOST, 1, now=BEFORE)
        with pytest.raises(NotFoundFailure):
            await unclaim(db_session, "slot-nope", ClaimRole.HOST, 1)

    @pytest.mark.asyncio
    async def test_past_session_rejected(self, db_session: AsyncSession, slot_id: str):
        with pytest.raises(ValidationFailure):
            await claim(db_session, slot_id, ClaimRole.HOST, 1, now=REF + timedelta(days=30))
        assert (await get_board_session(db_session, slot_id)).host_id is None

    def test_parse_role(self):
        assert parse_role("cohost") is ClaimRole.COHOST
        with pytest.raises(ValidationFailure):
            parse_role("janitor")
