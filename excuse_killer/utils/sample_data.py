"""Demo data: a 5-day streak, three pending challenges, two achievements"""
import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from excuse_killer.db import keys
from excuse_killer.db.adapter import StoreAdapter
from excuse_killer.models.challenge import CURRENT_SCHEMA_VERSION
from excuse_killer.utils.datetime_helpers import get_target_date, iso_date, iso_timestamp, now_local

logger = logging.getLogger(__name__)

SAMPLE_TASKS = [
    ("Complete morning workout", "normal", 50),
    ("Read 30 pages of a book", "chill", 30),
    ("Practice coding for 1 hour", "hardcore", 75),
    ("Meditate for 15 minutes", "chill", 30),
    ("Write in journal", "normal", 50),
]

SAMPLE_CHALLENGES = [
    ("challenge-sample-1", "Finish project documentation", "today", "normal", True, 20),
    ("challenge-sample-2", "Learn asyncio in depth", "this_week", "hardcore", True, 30),
    ("challenge-sample-3", "Build a side project", "this_month", "hardcore", False, 30),
]


def generate_sample_data(now: Optional[datetime] = None) -> dict[str, Any]:
    """Build sample collections relative to ``now``"""
    now = now or now_local()
    today = now.date()

    completions = []
    for i, (task_text, intensity, xp) in enumerate(SAMPLE_TASKS):
        moment = now - timedelta(days=i)
        day = iso_date(moment)
        completions.append({
            "id": f"completion-sample-{i}",
            "taskText": task_text,
            "dateISO": day,
            "targetType": "today",
            "targetDateISO": day,
            "finishedOnTime": True,
            "xpEarned": xp,
            "completedAt": iso_timestamp(moment),
            "intensity": intensity,
        })

    timestamp = iso_timestamp(now)
    pending = []
    for challenge_id, task_text, target_type, intensity, use_timer, duration in SAMPLE_CHALLENGES:
        pending.append({
            "id": challenge_id,
            "taskText": task_text,
            "intensity": intensity,
            "durationMinutes": duration,
            "targetType": target_type,
            "targetDateISO": get_target_date(target_type, today=today),
            "customDateISO": None,
            "recurrence": "once",
            "scheduleTime": None,
            "useTimer": use_timer,
            "notes": "",
            "status": "pending",
            "notificationSent": False,
            "createdAt": timestamp,
            "updatedAt": timestamp,
            "timerStartedAt": None,
            "schemaVersion": CURRENT_SCHEMA_VERSION,
        })

    achievements = {
        "first-step": iso_timestamp(now - timedelta(days=4)),
        "week-warrior": iso_timestamp(now - timedelta(days=1)),
    }

    return {
        "completions": completions,
        "pending": pending,
        "achievements": achievements,
    }


def load_sample_data(store: StoreAdapter, now: Optional[datetime] = None) -> None:
    """Overwrite the collections with sample data"""
    data = generate_sample_data(now)
    store.write(keys.COMPLETIONS, data["completions"])
    store.write(keys.PENDING, data["pending"])
    store.write(keys.ACHIEVEMENTS, data["achievements"])

    logger.info(
        f"Sample data loaded: {len(data['completions'])} completions, "
        f"{len(data['pending'])} pending challenges, {len(data['achievements'])} achievements"
    )
