"""Storage key layout"""

KEY_PREFIX = "excuse-killer"

COMPLETIONS = f"{KEY_PREFIX}-completions"
PENDING = f"{KEY_PREFIX}-pending"
ACHIEVEMENTS = f"{KEY_PREFIX}-achievements"
NOTIFICATIONS = f"{KEY_PREFIX}-notifications"
PROFILE = f"{KEY_PREFIX}-profile"

# Logical collections, in the order they are reported by storage_info()
STORAGE_KEYS: dict[str, str] = {
    "COMPLETIONS": COMPLETIONS,
    "PENDING": PENDING,
    "ACHIEVEMENTS": ACHIEVEMENTS,
    "NOTIFICATIONS": NOTIFICATIONS,
    "PROFILE": PROFILE,
}

TIMER_KEY_PREFIX = f"{KEY_PREFIX}-timer-"
BACKUP_KEY_PREFIX = f"{KEY_PREFIX}-backup-"


def timer_key(challenge_id: str) -> str:
    """Recovery record key for a challenge's running timer"""
    return f"{TIMER_KEY_PREFIX}{challenge_id}"


def backup_key(timestamp_ms: int) -> str:
    """Pre-migration snapshot key"""
    return f"{BACKUP_KEY_PREFIX}{timestamp_ms}"
