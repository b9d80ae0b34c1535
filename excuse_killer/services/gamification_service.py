"""
GamificationService - Gamification read side

Reads the completion history and achievement map from the store, exposes
the derived statistics, and persists achievement unlocks.
"""

import logging
from typing import Optional

from excuse_killer.db import keys
from excuse_killer.db.adapter import StoreAdapter
from excuse_killer.gamification.achievement_system import (
    check_achievement_unlocks,
    get_achievement_listing,
    newly_unlocked,
)
from excuse_killer.gamification.dashboards import GameStats, get_game_stats, get_last_completions
from excuse_killer.gamification.streak_system import (
    calculate_streak,
    count_monthly_completions,
    count_weekly_completions,
    get_title_badge,
)
from excuse_killer.gamification.xp_system import calculate_total_xp
from excuse_killer.models.achievement import AchievementStatus
from excuse_killer.models.completion import Completion
from excuse_killer.utils.datetime_helpers import Clock, now_local

logger = logging.getLogger(__name__)


class GamificationService:
    """
    Service for gamification features.

    Responsibilities:
    - Streak, weekly / monthly counts, XP total and title
    - Achievement evaluation with write-only-if-changed persistence
    """

    def __init__(self, store: StoreAdapter, clock: Clock = now_local):
        """
        Initialize GamificationService.

        Args:
            store: Store adapter
            clock: Returns the current local time
        """
        self.store = store
        self.clock = clock
        logger.debug("GamificationService initialized")

    def load_completions(self) -> list[Completion]:
        return self.store.read_records(keys.COMPLETIONS, Completion)

    def load_achievements(self) -> dict[str, str]:
        raw = self.store.read_or_default(keys.ACHIEVEMENTS, {})
        if not isinstance(raw, dict):
            logger.warning(f"Achievement map has unexpected type {type(raw).__name__}; treating as empty")
            return {}
        return raw

    def get_streak(self) -> int:
        return calculate_streak(self.load_completions(), today=self.clock().date())

    def get_weekly_count(self) -> int:
        return count_weekly_completions(self.load_completions(), today=self.clock().date())

    def get_monthly_count(self) -> int:
        return count_monthly_completions(self.load_completions(), today=self.clock().date())

    def get_total_xp(self) -> int:
        return calculate_total_xp(self.load_completions())

    def get_title(self) -> str:
        return get_title_badge(self.get_streak())

    def get_achievements(self) -> list[AchievementStatus]:
        return get_achievement_listing(self.load_achievements())

    def get_stats(self) -> GameStats:
        return get_game_stats(self.load_completions(), self.load_achievements(), now=self.clock())

    def get_recent_completions(self, count: int = 5) -> list[Completion]:
        return get_last_completions(self.load_completions(), count)

    def refresh_achievements(self, completions: Optional[list[Completion]] = None) -> list[str]:
        """
        Re-evaluate achievements and persist the map if it changed

        Args:
            completions: History to evaluate (read from the store when omitted)

        Returns:
            Ids unlocked by this evaluation
        """
        if completions is None:
            completions = self.load_completions()

        current = self.load_achievements()
        updated = check_achievement_unlocks(completions, current, now=self.clock())

        if updated == current:
            return []

        self.store.write(keys.ACHIEVEMENTS, updated)
        unlocked = newly_unlocked(current, updated)
        logger.info(f"Achievements unlocked: {', '.join(unlocked)}")
        return unlocked
