"""Unit tests for GamificationService and dashboards"""
from excuse_killer.db import keys
from excuse_killer.db.adapter import StoreAdapter
from excuse_killer.db.store import MemoryKeyValueStore
from excuse_killer.gamification.dashboards import (
    format_achievement_display,
    format_stats_display,
    get_game_stats,
    get_last_completions,
)
from excuse_killer.services.gamification_service import GamificationService


class CountingStore(MemoryKeyValueStore):
    """Records every key written"""

    def __init__(self):
        super().__init__()
        self.writes = []

    def set(self, key, value):
        self.writes.append(key)
        super().set(key, value)


# ============================================================================
# Derived Statistic Tests
# ============================================================================

def test_stats_from_store(gamification_service, seed_completions):
    seed_completions(0, 1, 2, 5)

    assert gamification_service.get_streak() == 3
    assert gamification_service.get_weekly_count() == 2
    assert gamification_service.get_monthly_count() == 4
    assert gamification_service.get_total_xp() == 200
    assert gamification_service.get_title() == "Overcomer"


def test_stats_empty_store(gamification_service):
    stats = gamification_service.get_stats()
    assert stats.streak == 0
    assert stats.total_xp == 0
    assert stats.title == "Starter"
    assert stats.message == "Start your journey!"
    assert stats.unlocked_achievements == {}


def test_get_game_stats_bundle(make_completion, clock):
    completions = [make_completion(days_ago=d, xp=75) for d in range(7)]

    stats = get_game_stats(completions, {}, now=clock())

    assert stats.streak == 7
    assert stats.total_xp == 525
    assert stats.title == "Super Overcomer"
    assert "week-warrior" in stats.unlocked_achievements


def test_corrupted_achievements_read_as_empty(gamification_service, kv_store):
    kv_store.set(keys.ACHIEVEMENTS, "{{{")
    assert gamification_service.load_achievements() == {}


def test_achievement_map_of_wrong_type(gamification_service, store):
    store.write(keys.ACHIEVEMENTS, ["first-step"])
    assert gamification_service.load_achievements() == {}


# ============================================================================
# Achievement Persistence Tests
# ============================================================================

class TestRefreshAchievements:
    """Write-only-if-changed achievement persistence"""

    def test_unlocks_are_persisted(self, gamification_service, store, seed_completions):
        seed_completions(0)

        assert gamification_service.refresh_achievements() == ["first-step"]
        assert store.read(keys.ACHIEVEMENTS) == {"first-step": "2026-10-19T10:00:00.000"}

    def test_no_write_when_nothing_changes(self, clock, make_completion):
        backend = CountingStore()
        store = StoreAdapter(backend)
        service = GamificationService(store, clock=clock)
        completions = [make_completion()]

        service.refresh_achievements(completions)
        backend.writes.clear()

        assert service.refresh_achievements(completions) == []
        assert backend.writes == []

    def test_no_write_for_empty_history(self, clock):
        backend = CountingStore()
        service = GamificationService(StoreAdapter(backend), clock=clock)

        assert service.refresh_achievements([]) == []
        assert backend.writes == []

    def test_listing(self, gamification_service, seed_completions):
        seed_completions(0)
        gamification_service.refresh_achievements()

        unlocked = [a.id for a in gamification_service.get_achievements() if a.unlocked]
        assert unlocked == ["first-step"]


# ============================================================================
# Recent Completions and Display Tests
# ============================================================================

def test_last_completions_sorted_by_timestamp(make_completion):
    old = make_completion(days_ago=3)
    new = make_completion(days_ago=0)
    utc = make_completion(days_ago=1, completedAt="2026-10-18T09:00:00.000Z")

    recent = get_last_completions([old, new, utc], count=2)

    assert [c.id for c in recent] == [new.id, utc.id]


def test_recent_completions_from_service(gamification_service, seed_completions):
    seeded = seed_completions(4, 0, 2)
    recent = gamification_service.get_recent_completions(count=5)
    assert [c.id for c in recent] == [seeded[1].id, seeded[2].id, seeded[0].id]


def test_format_stats_display(make_completion, clock):
    completions = [make_completion(days_ago=0, xp=75, taskText="Run 5k")]
    stats = get_game_stats(completions, {}, now=clock())

    text = format_stats_display(stats, completions)

    assert "Streak: 1 days (Starter)" in text
    assert "Total XP: 75" in text
    assert "Run 5k (Oct 19, 2026) +75 XP" in text


def test_format_achievement_display():
    text = format_achievement_display({"first-step": "2026-10-19T10:00:00.000"})
    assert "First Step" in text
    assert "unlocked Oct 19, 2026" in text
    assert "??? Locked: Reach 7-day streak" in text
