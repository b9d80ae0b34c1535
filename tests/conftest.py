"""Global test fixtures and utilities for excuse-killer tests"""
import pytest
from datetime import datetime, timedelta

from excuse_killer.db import keys
from excuse_killer.db.adapter import StoreAdapter
from excuse_killer.db.store import MemoryKeyValueStore
from excuse_killer.models.completion import Completion
from excuse_killer.services.challenge_service import ChallengeService
from excuse_killer.services.gamification_service import GamificationService
from excuse_killer.utils.datetime_helpers import iso_timestamp


# Monday 19 October 2026; the week runs Sun 18 - Sat 24
FIXED_NOW = datetime(2026, 10, 19, 10, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# ============================================================================
# Clock Fixtures
# ============================================================================

@pytest.fixture
def clock():
    """Fixed, manually advanced clock"""
    return FakeClock()


@pytest.fixture
def today(clock):
    return clock().date()


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def kv_store():
    """Empty in-memory key-value store"""
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv_store):
    """Store adapter over the in-memory backend"""
    return StoreAdapter(kv_store)


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def gamification_service(store, clock):
    return GamificationService(store, clock=clock)


@pytest.fixture
def challenge_service(store, gamification_service, clock):
    return ChallengeService(store, gamification=gamification_service, clock=clock)


# ============================================================================
# Record Factories
# ============================================================================

@pytest.fixture
def make_completion(clock):
    """Factory for Completion records dated relative to the fixed clock"""
    counter = {"n": 0}

    def _make(days_ago: int = 0, xp: int = 50, intensity: str = "normal", **overrides) -> Completion:
        counter["n"] += 1
        moment = clock() - timedelta(days=days_ago)
        data = {
            "id": f"completion-test-{counter['n']}",
            "taskText": f"Task {counter['n']}",
            "dateISO": moment.date().isoformat(),
            "targetType": "today",
            "targetDateISO": moment.date().isoformat(),
            "finishedOnTime": True,
            "xpEarned": xp,
            "completedAt": iso_timestamp(moment),
            "intensity": intensity,
        }
        data.update(overrides)
        return Completion.model_validate(data)

    return _make


@pytest.fixture
def seed_completions(store, make_completion):
    """Write completions for the given day offsets and return them"""

    def _seed(*days_ago: int) -> list[Completion]:
        completions = [make_completion(days_ago=d) for d in days_ago]
        store.write_records(keys.COMPLETIONS, completions)
        return completions

    return _seed


@pytest.fixture
def legacy_challenge():
    """Version 1 pending record: no duration, recurrence, status or createdAt"""
    return {
        "id": "challenge-1700000000000-abc123def",
        "taskText": "Write the report",
        "intensity": "hardcore",
        "targetType": "custom_date",
        "targetDateISO": "2026-10-25",
        "useTimer": True,
        "dateISO": "2026-10-10",
    }
