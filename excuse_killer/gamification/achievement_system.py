"""
Achievement System

Achievements are stored as a mapping of achievement id to the ISO
timestamp it was unlocked. A missing key means locked.

Unlock rules:
- first-step: 1 completion
- week-warrior: 7-day streak
- unstoppable: 15-day streak
- consistency-king: 30 completions

Unlocks are permanent: evaluation only ever adds keys.
"""

from datetime import date, datetime
from typing import Mapping, Optional, Sequence
import logging

from excuse_killer.gamification.streak_system import calculate_streak
from excuse_killer.models.achievement import Achievement, AchievementStatus
from excuse_killer.models.completion import Completion
from excuse_killer.utils.datetime_helpers import iso_timestamp, now_local

logger = logging.getLogger(__name__)


ACHIEVEMENTS: list[Achievement] = [
    Achievement(
        id="first-step",
        name="First Step",
        description="Complete your first challenge",
        icon="🎯",
        unlock_condition="Complete 1 challenge",
    ),
    Achievement(
        id="week-warrior",
        name="Week Warrior",
        description="Maintain a 7-day streak",
        icon="🔥",
        unlock_condition="Reach 7-day streak",
    ),
    Achievement(
        id="unstoppable",
        name="Unstoppable",
        description="Maintain a 15-day streak",
        icon="⚡",
        unlock_condition="Reach 15-day streak",
    ),
    Achievement(
        id="speed-demon",
        name="Speed Demon",
        description="Complete a challenge in under 5 minutes",
        icon="⚡",
        unlock_condition="Complete challenge < 5 min",
        auto_unlock=False,
    ),
    Achievement(
        id="consistency-king",
        name="Consistency King",
        description="Complete 30 challenges",
        icon="👑",
        unlock_condition="Complete 30 challenges",
    ),
    Achievement(
        id="ai-believer",
        name="AI Believer",
        description="Use AI coach feature",
        icon="🤖",
        unlock_condition="Use AI coach",
        auto_unlock=False,
    ),
]

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}

# achievement id -> (criteria type, threshold)
UNLOCK_RULES: dict[str, tuple[str, int]] = {
    "first-step": ("completion_count", 1),
    "week-warrior": ("streak", 7),
    "unstoppable": ("streak", 15),
    "consistency-king": ("completion_count", 30),
}


def check_achievement_unlocks(
    completions: Sequence[Completion],
    current_achievements: Mapping[str, str],
    now: Optional[datetime] = None,
    today: Optional[date] = None
) -> dict[str, str]:
    """
    Evaluate unlock rules against the completion history

    Args:
        completions: Full completion history
        current_achievements: Stored id -> unlock timestamp map
        now: Unlock time to record (defaults to the local clock)
        today: Reference day for the streak (defaults to now's date)

    Returns:
        A new map containing every existing unlock plus any newly earned
        ones. The input map is never modified.
    """
    now = now or now_local()
    today = today or now.date()
    unlocked = dict(current_achievements or {})

    measures = {
        "completion_count": len(completions or []),
        "streak": calculate_streak(completions or [], today=today),
    }

    for achievement_id, (criteria_type, threshold) in UNLOCK_RULES.items():
        if unlocked.get(achievement_id):
            continue
        if measures[criteria_type] >= threshold:
            unlocked[achievement_id] = iso_timestamp(now)
            logger.info(
                f"Unlocked achievement: {achievement_id} "
                f"({criteria_type} {measures[criteria_type]} >= {threshold})"
            )

    return unlocked


def newly_unlocked(old: Mapping[str, str], new: Mapping[str, str]) -> list[str]:
    """Ids present in ``new`` but not in ``old``"""
    return [achievement_id for achievement_id in new if not old.get(achievement_id)]


def get_achievement_listing(achievements: Mapping[str, str]) -> list[AchievementStatus]:
    """Every defined achievement with its lock state, in catalogue order"""
    listing = []
    for achievement in ACHIEVEMENTS:
        unlocked_at = (achievements or {}).get(achievement.id)
        listing.append(AchievementStatus(
            id=achievement.id,
            name=achievement.name,
            description=achievement.description,
            icon=achievement.icon,
            unlock_condition=achievement.unlock_condition,
            unlocked=bool(unlocked_at),
            unlocked_at=unlocked_at or None,
        ))
    return listing
