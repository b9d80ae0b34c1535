"""
Gamification Dashboards

Bundles the derived statistics shown on the progress and achievements
pages, and formats them for the terminal.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional, Sequence

from excuse_killer.gamification.achievement_system import (
    check_achievement_unlocks,
    get_achievement_listing,
)
from excuse_killer.gamification.streak_system import (
    calculate_streak,
    count_monthly_completions,
    count_weekly_completions,
    get_streak_message,
    get_title_badge,
)
from excuse_killer.gamification.xp_system import calculate_total_xp
from excuse_killer.models.completion import Completion
from excuse_killer.utils.datetime_helpers import format_date, now_local, parse_timestamp

logger = logging.getLogger(__name__)


@dataclass
class GameStats:
    """Derived statistics for a completion history"""
    streak: int
    weekly_count: int
    monthly_count: int
    total_xp: int
    title: str
    message: str
    unlocked_achievements: dict[str, str] = field(default_factory=dict)


def get_game_stats(
    completions: Sequence[Completion],
    achievements: Mapping[str, str],
    now: Optional[datetime] = None
) -> GameStats:
    """Compute every derived statistic in one pass over the history"""
    now = now or now_local()
    today = now.date()
    streak = calculate_streak(completions, today=today)

    return GameStats(
        streak=streak,
        weekly_count=count_weekly_completions(completions, today=today),
        monthly_count=count_monthly_completions(completions, today=today),
        total_xp=calculate_total_xp(completions),
        title=get_title_badge(streak),
        message=get_streak_message(streak),
        unlocked_achievements=check_achievement_unlocks(
            completions, achievements, now=now, today=today
        ),
    )


def get_last_completions(completions: Sequence[Completion], count: int = 5) -> list[Completion]:
    """Most recent completions by completion timestamp"""
    if not completions:
        return []
    ordered = sorted(completions, key=lambda c: parse_timestamp(c.completed_at), reverse=True)
    return ordered[:count]


def format_stats_display(stats: GameStats, recent: Sequence[Completion] = ()) -> str:
    """
    Format stats for terminal display

    Args:
        stats: Output of get_game_stats()
        recent: Completions to list under the summary

    Returns:
        Multi-line string
    """
    lines = [
        f"🔥 Streak: {stats.streak} days ({stats.title})",
        f"   {stats.message}",
        f"📅 This week: {stats.weekly_count}",
        f"🗓️ This month: {stats.monthly_count}",
        f"⭐ Total XP: {stats.total_xp}",
    ]

    if recent:
        lines.append("")
        lines.append("Recent completions:")
        for completion in recent:
            on_time = "✅" if completion.finished_on_time else "⌛"
            lines.append(
                f"  {on_time} {completion.task_text} "
                f"({format_date(completion.date_iso)}) +{completion.xp_earned} XP"
            )

    return "\n".join(lines)


def format_achievement_display(achievements: Mapping[str, str]) -> str:
    """Achievement grid as text; locked entries stay hidden"""
    lines = ["🏆 ACHIEVEMENTS\n"]
    for item in get_achievement_listing(achievements):
        if item.unlocked:
            lines.append(f"{item.icon} {item.name}: {item.description} "
                         f"(unlocked {format_date(item.unlocked_at)})")
        else:
            lines.append(f"??? Locked: {item.unlock_condition}")
    return "\n".join(lines)
