# ABOUTME: Cycle calendar math: actual week (1-12) from a Monday start date, snap-to-Monday, week date ranges.
# ABOUTME: Dates are interpreted in CYCLE_TIMEZONE; nothing here touches storage.

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from core.config import CYCLE_TIMEZONE, CYCLE_WEEKS, DAYS_PER_WEEK


def local_zone() -> ZoneInfo:
    return ZoneInfo(CYCLE_TIMEZONE)


def parse_start_date(start_iso: str) -> datetime:
    """Parse an ISO timestamp (a trailing Z is accepted). Naive values are taken as local time."""
    parsed = datetime.fromisoformat(start_iso.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=local_zone())
    return parsed


def _local_date(moment: datetime) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(local_zone()).date()


def clamp_week(week: int) -> int:
    return min(max(week, 1), CYCLE_WEEKS)


def actual_week(start_iso: str, now: datetime | None = None) -> int:
    """Calendar week of the cycle that `now` falls in, clamped to 1..12.

    Days 0-6 after the start are week 1. A start in the future reports week 1 and a cycle that ran
    past twelve weeks stays frozen at 12. The start is assumed to be a Monday; other days still
    compute, with week boundaries falling on that weekday.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elapsed_days = (_local_date(now) - _local_date(parse_start_date(start_iso))).days
    return clamp_week(elapsed_days // DAYS_PER_WEEK + 1)


def snap_to_monday(moment: datetime | None = None) -> datetime:
    """Monday 00:00 (local) of the week containing `moment`; Sunday belongs to the week that began six days earlier."""
    if moment is None:
        moment = datetime.now(timezone.utc)
    day = _local_date(moment)
    monday = day - timedelta(days=day.weekday())
    return datetime.combine(monday, time.min, tzinfo=local_zone())


def is_monday_midnight(start_iso: str) -> bool:
    start = parse_start_date(start_iso).astimezone(local_zone())
    return start.weekday() == 0 and start.time() == time.min


def week_date_range(start_iso: str, week: int) -> tuple[date, date]:
    """Monday and Sunday dates of a cycle week."""
    first = _local_date(parse_start_date(start_iso)) + timedelta(weeks=clamp_week(week) - 1)
    return first, first + timedelta(days=DAYS_PER_WEEK - 1)


def reset_anchor(now: datetime | None = None) -> str:
    """Start date for a cycle reset to the current real-world week, as an ISO string."""
    return snap_to_monday(now).isoformat()
