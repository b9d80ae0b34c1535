"""
Gamification engine for Excuse Killer

Pure functions over the completion history:
- XP per intensity and XP totals
- Day streak, weekly / monthly counts, title badge
- Achievement unlock evaluation
"""

from excuse_killer.gamification.xp_system import calculate_xp, calculate_total_xp, get_timer_duration
from excuse_killer.gamification.streak_system import (
    calculate_streak,
    count_weekly_completions,
    count_monthly_completions,
    get_title_badge,
)
from excuse_killer.gamification.achievement_system import check_achievement_unlocks, get_achievement_listing
from excuse_killer.gamification.dashboards import GameStats, get_game_stats, get_last_completions

__all__ = [
    "calculate_xp",
    "calculate_total_xp",
    "get_timer_duration",
    "calculate_streak",
    "count_weekly_completions",
    "count_monthly_completions",
    "get_title_badge",
    "check_achievement_unlocks",
    "get_achievement_listing",
    "GameStats",
    "get_game_stats",
    "get_last_completions",
]
