"""
Calendar helpers shared by the lifecycle, gamification and migration code

All functions are pure. Anything that depends on "now" or "today" takes an
optional argument so callers can pin the clock; when omitted the local wall
clock is used.

RULES:
- Calendar days are local dates serialized as YYYY-MM-DD
- Weeks run Sunday through Saturday
- Months are calendar months
- Timestamps are ISO-8601 strings; untagged ones are read as local time
"""

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DateLike = Union[str, date, datetime]


def now_local() -> datetime:
    """Current local wall-clock time (naive)"""
    return datetime.now()


def epoch_ms(moment: datetime) -> int:
    """Milliseconds since the Unix epoch"""
    return int(moment.timestamp() * 1000)


def iso_date(value: Optional[Union[date, datetime]] = None) -> str:
    """YYYY-MM-DD for the given date (today when omitted)"""
    if value is None:
        value = now_local()
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def iso_timestamp(value: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp with millisecond precision"""
    if value is None:
        value = now_local()
    return value.isoformat(timespec="milliseconds")


def to_date(value: DateLike) -> date:
    """
    Coerce a date, datetime or ISO string to a calendar date

    Accepts both plain dates ("2026-10-19") and full timestamps
    ("2026-10-19T08:30:00.000Z"); only the calendar day is kept.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO timestamp into an aware datetime

    Naive timestamps are interpreted as local time so records written by
    different versions of the app sort together.
    """
    if isinstance(value, str):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.astimezone()
    return value


def _today(today: Optional[date]) -> date:
    if today is None:
        return now_local().date()
    if isinstance(today, datetime):
        return today.date()
    return today


def is_past_date(value: DateLike, today: Optional[date] = None) -> bool:
    """True if the calendar day is strictly before today"""
    return to_date(value) < _today(today)


def is_today(value: DateLike, today: Optional[date] = None) -> bool:
    return to_date(value) == _today(today)


def week_bounds(today: Optional[date] = None) -> tuple[date, date]:
    """Sunday and Saturday of the week containing today"""
    current = _today(today)
    # date.weekday(): Monday=0 ... Sunday=6
    days_since_sunday = (current.weekday() + 1) % 7
    week_start = current - timedelta(days=days_since_sunday)
    return week_start, week_start + timedelta(days=6)


def is_this_week(value: DateLike, today: Optional[date] = None) -> bool:
    """True if the day falls in the current Sunday-Saturday week"""
    week_start, week_end = week_bounds(today)
    return week_start <= to_date(value) <= week_end


def is_this_month(value: DateLike, today: Optional[date] = None) -> bool:
    current = _today(today)
    day = to_date(value)
    return day.year == current.year and day.month == current.month


def days_between(first: DateLike, second: DateLike) -> int:
    """Absolute number of calendar days between two dates"""
    return abs((to_date(second) - to_date(first)).days)


def days_remaining(target: DateLike, today: Optional[date] = None) -> int:
    """Signed number of days until the target (negative when overdue)"""
    return (to_date(target) - _today(today)).days


def format_date(value: DateLike) -> str:
    """Display format, e.g. 'Oct 19, 2026'"""
    day = to_date(value)
    return f"{calendar.month_abbr[day.month]} {day.day}, {day.year}"


def get_target_date(
    target_type: str,
    custom_date: Optional[str] = None,
    today: Optional[date] = None
) -> str:
    """
    Concrete target day for a target type

    Args:
        target_type: today, this_week, this_month or custom_date
        custom_date: YYYY-MM-DD, used only for custom_date
        today: Reference day (defaults to the local date)

    Returns:
        YYYY-MM-DD string. Unknown types and a missing custom date fall
        back to today.
    """
    current = _today(today)

    if target_type == "this_week":
        _, saturday = week_bounds(current)
        return saturday.isoformat()

    if target_type == "this_month":
        last_day = calendar.monthrange(current.year, current.month)[1]
        return current.replace(day=last_day).isoformat()

    if target_type == "custom_date":
        return custom_date or current.isoformat()

    if target_type != "today":
        logger.debug(f"Unknown target type '{target_type}', using today")

    return current.isoformat()
