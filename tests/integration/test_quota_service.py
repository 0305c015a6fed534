"""Integration tests for weekly quota aggregation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from groupdesk.db.models import ArchivedSession
from groupdesk.ledger.service import start_session
from groupdesk.quota.service import (
    QuotaPolicy,
    activity_summary,
    leaderboard,
    quota_rows,
    quota_summary,
    recent_sessions,
    user_quota,
    weekly_totals,
)

# Wednesday; the UTC Monday-start week is [2026-03-02, 2026-03-09).
NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)
POLICY = QuotaPolicy(target_minutes=30, week_start_day=1, tz_name="UTC", live_ttl=timedelta(minutes=5))


def _archived(user_id: int, minutes: int, ended_at: datetime) -> ArchivedSession:
    return ArchivedSession(
        user_id=user_id,
        server_id="srv",
        place_id=1,
        started_at=ended_at - timedelta(minutes=minutes),
        last_heartbeat=ended_at,
        ended_at=ended_at,
        minutes=minutes,
    )


@pytest.fixture
def week_start():
    return datetime(2026, 3, 2, tzinfo=timezone.utc)


class TestWeeklyTotals:
    @pytest.mark.asyncio
    async def test_two_sessions_meet_quota(self, db_session: AsyncSession):
        db_session.add_all([_archived(1, 20, NOW - timedelta(hours=5)), _archived(1, 15, NOW - timedelta(hours=1))])
        await db_session.commit()

        progress, (start, end) = await user_quota(db_session, POLICY, 1, now=NOW)
        assert progress.minutes == 35
        assert progress.met is True
        assert progress.remaining == 0
        assert start == datetime(2026, 3, 2, tzinfo=timezone.utc)
        assert end == datetime(2026, 3, 9, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_sessions_outside_window_ignored(self, db_session: AsyncSession, week_start):
        db_session.add_all(
            [
                _archived(1, 50, week_start - timedelta(seconds=1)),
                _archived(1, 10, week_start),
                _archived(1, 70, week_start + timedelta(days=7)),
            ]
        )
        await db_session.commit()

        totals = await weekly_totals(db_session, POLICY, POLICY.window(NOW), now=NOW)
        assert totals == {1: 10}

    @pytest.mark.asyncio
    async def test_live_minutes_added_conservatively(self, db_session: AsyncSession):
        db_session.add(_archived(1, 10, NOW - timedelta(hours=2)))
        await db_session.commit()
        await start_session(db_session, 1, "srv", 1, now=NOW - timedelta(minutes=3, seconds=30))
        await db_session.commit()

        totals = await weekly_totals(db_session, POLICY, POLICY.window(NOW), now=NOW)
        assert totals == {1: 13}

    @pytest.mark.asyncio
    async def test_stale_live_session_not_credited(self, db_session: AsyncSession):
        await start_session(db_session, 2, "srv", 1, now=NOW - timedelta(minutes=40))
        await db_session.commit()

        totals = await weekly_totals(db_session, POLICY, POLICY.window(NOW), now=NOW)
        assert totals == {}

    @pytest.mark.asyncio
    async def test_live_minutes_not_added_to_past_week(self, db_session: AsyncSession):
        await start_session(db_session, 1, "srv", 1, now=NOW - timedelta(minutes=2))
        await db_session.commit()

        last_week = POLICY.window(NOW - timedelta(days=7))
        assert await weekly_totals(db_session, POLICY, last_week, now=NOW) == {}


class TestSummaries:
    @pytest.mark.asyncio
    async def test_quota_summary(self, db_session: AsyncSession):
        db_session.add_all(
            [
                _archived(1, 40, NOW - timedelta(hours=1)),
                _archived(2, 10, NOW - timedelta(hours=1)),
                _archived(3, 30, NOW - timedelta(hours=1)),
            ]
        )
        await db_session.commit()

        summary = await quota_summary(db_session, POLICY, now=NOW)
        assert summary.met_count == 2
        assert summary.total_users == 3
        assert summary.quota_pct == 67
        assert summary.required_minutes == 30

    @pytest.mark.asyncio
    async def test_quota_summary_empty_week(self, db_session: AsyncSession):
        summary = await quota_summary(db_session, POLICY, now=NOW)
        assert summary.total_users == 0
        assert summary.quota_pct == 0

    @pytest.mark.asyncio
    async def test_quota_rows_include_live_users(self, db_session: AsyncSession):
        db_session.add(_archived(1, 45, NOW - timedelta(hours=1)))
        await db_session.commit()
        await start_session(db_session, 2, "srv", 1, now=NOW - timedelta(minutes=4))
        await db_session.commit()

        rows = await quota_rows(db_session, POLICY, now=NOW)
        assert [(r.user_id, r.minutes, r.met) for r in rows] == [(1, 45, True), (2, 4, False)]

    @pytest.mark.asyncio
    async def test_activity_summary(self, db_session: AsyncSession):
        db_session.add_all(
            [
                _archived(1, 40, NOW - timedelta(hours=1)),  # today
                _archived(2, 10, NOW - timedelta(days=1)),  # yesterday, same week
                _archived(3, 99, NOW - timedelta(days=8)),  # last week
            ]
        )
        await db_session.commit()
        await start_session(db_session, 4, "srv", 1, now=NOW - timedelta(minutes=1))
        await db_session.commit()

        summary = await activity_summary(db_session, POLICY, now=NOW)
        assert summary.live_count == 1
        assert summary.today_minutes == 40
        assert summary.week_minutes == 50
        assert summary.quota_pct == 50
        assert summary.quota_target == 30
        assert summary.next_week_start - summary.week_start == timedelta(days=7)

    @pytest.mark.asyncio
    async def test_leaderboard_and_recent(self, db_session: AsyncSession):
        for uid in range(1, 13):
            db_session.add(_archived(uid, uid * 5, NOW - timedelta(minutes=uid)))
        await db_session.commit()

        board = await leaderboard(db_session, POLICY, now=NOW, limit=10)
        assert len(board) == 10
        assert board[0] == (12, 60)
        assert board[-1] == (3, 15)

        recent = await recent_sessions(db_session, limit=5)
        assert [s.user_id for s in recent] == [1, 2, 3, 4, 5]
