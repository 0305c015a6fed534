"""Unit tests for the calendar slot grid."""

from datetime import date, datetime, timedelta, timezone

from groupdesk.calendar.slots import board_week, local_monday, publish_plan, slot_id, week_slots

NY = "America/New_York"
HOURS = [0, 3, 6, 9, 12, 15, 18, 21]
TWO_HOURS = timedelta(hours=2)


class TestSlotId:
    def test_format(self):
        assert slot_id(datetime(2026, 3, 2, 5, 0, tzinfo=timezone.utc)) == "slot-2026-03-02T05:00:00Z"


class TestWeekSlots:
    def test_seven_days_of_eight_slots(self):
        slots = week_slots(date(2026, 2, 23), NY, HOURS, TWO_HOURS)
        assert len(slots) == 56
        assert [s.start for s in slots] == sorted(s.start for s in slots)
        assert len({s.id for s in slots}) == 56

    def test_standard_time_offset(self):
        first = week_slots(date(2026, 2, 23), NY, HOURS, TWO_HOURS)[0]
        assert first.start == datetime(2026, 2, 23, 5, 0, tzinfo=timezone.utc)
        assert first.end == datetime(2026, 2, 23, 7, 0, tzinfo=timezone.utc)
        assert first.local_hour == 0
        assert first.week_start == first.start

    def test_wall_clock_hours_survive_dst(self):
        slots = week_slots(date(2026, 3, 2), NY, HOURS, TWO_HOURS)
        saturday_nine = next(s for s in slots if s.start.date() == date(2026, 3, 7) and s.local_hour == 9)
        sunday_nine = next(s for s in slots if s.start.date() == date(2026, 3, 8) and s.local_hour == 9)
        assert saturday_nine.start.hour == 14  # EST, UTC-5
        assert sunday_nine.start.hour == 13  # EDT, UTC-4

    def test_unsorted_hours_accepted(self):
        slots = week_slots(date(2026, 2, 23), NY, [21, 0], TWO_HOURS)
        assert [s.local_hour for s in slots[:2]] == [0, 21]


class TestPublishPlan:
    def test_weeks_are_consecutive(self):
        ref = datetime(2026, 2, 25, 15, 0, tzinfo=timezone.utc)
        plan = publish_plan(ref, 3, NY, HOURS, TWO_HOURS)
        assert len(plan) == 3
        starts = [week[0].week_start for week in plan]
        assert starts[0] == datetime(2026, 2, 23, 5, 0, tzinfo=timezone.utc)
        assert starts[1] == datetime(2026, 3, 2, 5, 0, tzinfo=timezone.utc)
        assert starts[2] == datetime(2026, 3, 9, 4, 0, tzinfo=timezone.utc)

    def test_local_monday_uses_zone(self):
        # Monday 02:00 UTC is still Sunday in New York.
        ref = datetime(2026, 3, 2, 2, 0, tzinfo=timezone.utc)
        assert local_monday(ref, NY) == date(2026, 2, 23)

    def test_board_week_matches_grid(self):
        ref = datetime(2026, 2, 25, 15, 0, tzinfo=timezone.utc)
        start, end = board_week(ref, NY)
        slots = week_slots(local_monday(ref, NY), NY, HOURS, TWO_HOURS)
        assert all(start <= s.start < end for s in slots)
