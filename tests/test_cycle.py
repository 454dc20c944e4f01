# ABOUTME: Tests for cycle calendar math: actual week clamping, Monday snapping, week date ranges.
# ABOUTME: conftest pins CYCLE_TIMEZONE to UTC so dates here are unambiguous.

from datetime import date, datetime, timedelta, timezone

from core.cycle import (
    actual_week,
    is_monday_midnight,
    parse_start_date,
    reset_anchor,
    snap_to_monday,
    week_date_range,
)

START = "2026-01-05T00:00:00+00:00"  # a Monday


def _at(days: int, hour: int = 12) -> datetime:
    return datetime(2026, 1, 5, hour, tzinfo=timezone.utc) + timedelta(days=days)


def test_first_seven_days_are_week_one():
    """Days 0..6 after the start fall in week 1; day 7 starts week 2."""
    assert actual_week(START, _at(0)) == 1
    assert actual_week(START, _at(6, hour=23)) == 1
    assert actual_week(START, _at(7, hour=0)) == 2


def test_actual_week_clamps_to_twelve():
    """200 days after the start is week 12, not 29."""
    assert actual_week(START, _at(200)) == 12


def test_actual_week_future_start_is_week_one():
    """A start in the future gives week 1, never 0 or negative."""
    assert actual_week(START, _at(-30)) == 1


def test_parse_start_date_accepts_z_suffix():
    """Trailing Z parses as UTC."""
    assert parse_start_date("2026-01-05T00:00:00Z") == datetime(2026, 1, 5, tzinfo=timezone.utc)


def test_snap_to_monday_from_midweek_and_sunday():
    """Wednesday snaps back two days; Sunday snaps back six."""
    wednesday = datetime(2026, 1, 7, 15, 30, tzinfo=timezone.utc)
    sunday = datetime(2026, 1, 11, 9, tzinfo=timezone.utc)
    assert snap_to_monday(wednesday).date() == date(2026, 1, 5)
    assert snap_to_monday(sunday).date() == date(2026, 1, 5)
    assert snap_to_monday(sunday).hour == 0


def test_reset_anchor_is_monday_midnight():
    """Reset anchors to the Monday of the current week at 00:00."""
    anchor = reset_anchor(datetime(2026, 3, 12, 18, tzinfo=timezone.utc))
    assert is_monday_midnight(anchor)
    assert parse_start_date(anchor).date() == date(2026, 3, 9)


def test_is_monday_midnight_rejects_other_days():
    assert is_monday_midnight(START)
    assert not is_monday_midnight("2026-01-06T00:00:00+00:00")
    assert not is_monday_midnight("2026-01-05T08:00:00+00:00")


def test_week_date_range():
    """Week 3 of a cycle starting Jan 5 runs Jan 19..Jan 25."""
    assert week_date_range(START, 3) == (date(2026, 1, 19), date(2026, 1, 25))
