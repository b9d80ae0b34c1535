"""
Streak Tracking

The streak is the number of consecutive calendar days, ending today, with
at least one completion. There is no grace period: if nothing was completed
today the streak is 0 regardless of earlier history.

Also provides weekly / monthly completion counts and the title badge that
is derived from the streak.
"""

from datetime import date, timedelta
from typing import Optional, Sequence
import logging

from excuse_killer.models.completion import Completion
from excuse_killer.utils.datetime_helpers import is_this_month, is_this_week, now_local

logger = logging.getLogger(__name__)

# (min streak, max streak, title)
TITLE_BADGES: list[tuple[int, float, str]] = [
    (0, 2, "Starter"),
    (3, 6, "Overcomer"),
    (7, 14, "Super Overcomer"),
    (15, float("inf"), "Unstoppable"),
]

STREAK_MESSAGES: list[tuple[int, float, str]] = [
    (0, 0, "Start your journey!"),
    (1, 2, "Keep going!"),
    (3, 6, "You're making progress!"),
    (7, 14, "Amazing consistency!"),
    (15, float("inf"), "You're unstoppable!"),
]


def _today(today: Optional[date]) -> date:
    return today if today is not None else now_local().date()


def calculate_streak(
    completions: Sequence[Completion],
    today: Optional[date] = None
) -> int:
    """
    Count consecutive days with a completion, walking back from today

    Only the completion dates matter, so the order of ``completions``
    does not affect the result.
    """
    if not completions:
        return 0

    completed_days = {c.date_iso[:10] for c in completions}
    current = _today(today)

    streak = 0
    while current.isoformat() in completed_days:
        streak += 1
        current -= timedelta(days=1)

    return streak


def _dated_in(period_check, completion: Completion, today: date) -> bool:
    try:
        return period_check(completion.date_iso, today=today)
    except (ValueError, TypeError):
        logger.warning(f"Completion {completion.id} has unreadable dateISO {completion.date_iso!r}; not counted")
        return False


def count_weekly_completions(
    completions: Sequence[Completion],
    today: Optional[date] = None
) -> int:
    """Completions dated in the current Sunday-Saturday week"""
    if not completions:
        return 0
    today = _today(today)
    return sum(1 for c in completions if _dated_in(is_this_week, c, today))


def count_monthly_completions(
    completions: Sequence[Completion],
    today: Optional[date] = None
) -> int:
    """Completions dated in the current calendar month"""
    if not completions:
        return 0
    today = _today(today)
    return sum(1 for c in completions if _dated_in(is_this_month, c, today))


def get_title_badge(streak: int) -> str:
    """Title for a streak length"""
    for low, high, title in TITLE_BADGES:
        if low <= streak <= high:
            return title
    return "Starter"


def get_streak_message(streak: int) -> str:
    """Encouragement line shown next to the streak"""
    for low, high, message in STREAK_MESSAGES:
        if low <= streak <= high:
            return message
    return STREAK_MESSAGES[0][2]
