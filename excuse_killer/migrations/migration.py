"""
Pending-challenge schema migration

Legacy (version 1) challenge records lack durationMinutes, recurrence,
status and createdAt. Migration backfills only the missing fields and tags
the record with the current schema version; fields that are already present
are never touched, so migrating twice is a no-op.

The collections are snapshotted under a timestamped backup key before
anything is rewritten. If the snapshot cannot be written the migration is
aborted and the store is left exactly as it was.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from excuse_killer.db import keys
from excuse_killer.db.adapter import StoreAdapter
from excuse_killer.exceptions import MigrationError, StorageError
from excuse_killer.gamification.xp_system import get_timer_duration
from excuse_killer.models.challenge import CURRENT_SCHEMA_VERSION, LEGACY_SCHEMA_VERSION, Challenge
from excuse_killer.utils.datetime_helpers import Clock, epoch_ms, iso_timestamp, now_local

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("durationMinutes", "recurrence", "status", "createdAt")


@dataclass
class MigrationResult:
    """Outcome of run_migration(); migrated=True means in-memory state must be reloaded"""
    migrated: bool
    backup_key: Optional[str] = None
    migrated_count: int = 0


def _missing_fields(challenge: dict[str, Any]) -> list[str]:
    # null counts as missing: none of these fields has a meaningful null value
    return [name for name in REQUIRED_FIELDS if challenge.get(name) is None]


def _fill(record: dict[str, Any], name: str, value: Any) -> None:
    if record.get(name) is None:
        record[name] = value


def schema_version(challenge: dict[str, Any]) -> int:
    """Explicit schemaVersion tag, or the version implied by the record's shape"""
    tagged = challenge.get("schemaVersion")
    if isinstance(tagged, int) and not isinstance(tagged, bool):
        return tagged
    return LEGACY_SCHEMA_VERSION if _missing_fields(challenge) else CURRENT_SCHEMA_VERSION


def _is_record(challenge: Any) -> bool:
    if isinstance(challenge, dict):
        return True
    logger.warning(f"Pending entry of type {type(challenge).__name__} is not a record; leaving it as is")
    return False


def needs_migration(challenges: Optional[Sequence[Any]]) -> bool:
    """True if any record is missing a current-schema field or carries an older version tag"""
    if not challenges:
        return False

    return any(
        _missing_fields(challenge) or schema_version(challenge) < CURRENT_SCHEMA_VERSION
        for challenge in challenges
        if _is_record(challenge)
    )


def migrate_one(old: dict[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Upgrade a single challenge record

    Every existing field is preserved; only absent fields are filled:
    - durationMinutes from the intensity default (10 / 20 / 30)
    - recurrence "once", scheduleTime None, notes "", status "pending",
      notificationSent False
    - createdAt from the legacy dateISO, else now; updatedAt now
    - customDateISO from targetDateISO for custom_date challenges, else None
    """
    timestamp = iso_timestamp(now or now_local())
    new = dict(old)

    _fill(new, "durationMinutes", get_timer_duration(old.get("intensity")))
    _fill(new, "recurrence", "once")
    new.setdefault("scheduleTime", None)
    _fill(new, "notes", "")
    _fill(new, "status", "pending")
    _fill(new, "notificationSent", False)
    _fill(new, "createdAt", old.get("dateISO") or timestamp)
    _fill(new, "updatedAt", timestamp)

    if "customDateISO" not in new:
        if old.get("targetType") == "custom_date" and old.get("targetDateISO"):
            new["customDateISO"] = old["targetDateISO"]
        else:
            new["customDateISO"] = None

    if schema_version(new) < CURRENT_SCHEMA_VERSION or new.get("schemaVersion") is None:
        new["schemaVersion"] = CURRENT_SCHEMA_VERSION

    return new


def migrate_all(challenges: Optional[Sequence[Any]], now: Optional[datetime] = None) -> list[Any]:
    """Migrate every record; entries that are not records are kept unchanged"""
    if not challenges:
        return []
    now = now or now_local()
    return [
        migrate_one(challenge, now=now) if _is_record(challenge) else challenge
        for challenge in challenges
    ]


def upgrade_record(raw: dict[str, Any], now: Optional[datetime] = None) -> tuple[int, Challenge]:
    """
    Bring a record of any known version to the current typed model

    Returns:
        (CURRENT_SCHEMA_VERSION, Challenge)
    """
    version = schema_version(raw)
    if version > CURRENT_SCHEMA_VERSION:
        raise MigrationError(
            f"Challenge {raw.get('id')} has unknown schema version {version}",
        )
    if version < CURRENT_SCHEMA_VERSION or _missing_fields(raw):
        raw = migrate_one(raw, now=now)
    return CURRENT_SCHEMA_VERSION, Challenge.model_validate(raw)


def create_backup(store: StoreAdapter, data: dict[str, Any], now: Optional[datetime] = None) -> str:
    """
    Write a snapshot under a timestamped backup key

    Raises:
        MigrationError: The snapshot could not be written
    """
    backup_key = keys.backup_key(epoch_ms(now or now_local()))
    try:
        store.write(backup_key, data)
    except StorageError as e:
        raise MigrationError(
            f"Failed to create backup {backup_key}: {e.message}",
            backup_key=backup_key,
            operation="create_backup",
            cause=e,
        ) from e

    logger.info(f"Backup created: {backup_key}")
    return backup_key


def list_backups(store: StoreAdapter) -> list[str]:
    """Backup keys, newest first"""
    return sorted(
        store.keys(prefix=keys.BACKUP_KEY_PREFIX),
        key=lambda k: int(k[len(keys.BACKUP_KEY_PREFIX):]) if k[len(keys.BACKUP_KEY_PREFIX):].isdigit() else 0,
        reverse=True,
    )


def restore_backup(store: StoreAdapter, backup_key: str) -> None:
    """
    Roll the collections back to a snapshot

    Raises:
        MigrationError: The backup is missing or malformed
    """
    snapshot = store.read_or_default(backup_key)
    if not isinstance(snapshot, dict):
        raise MigrationError(f"Backup {backup_key} not found or unreadable", backup_key=backup_key,
                             operation="restore_backup")

    store.write(keys.PENDING, snapshot.get("pending", []))
    store.write(keys.COMPLETIONS, snapshot.get("completions", []))
    store.write(keys.ACHIEVEMENTS, snapshot.get("achievements", {}))
    store.write(keys.NOTIFICATIONS, snapshot.get("notifications", []))
    logger.info(f"Restored collections from {backup_key}")


def run_migration(store: StoreAdapter, clock: Clock = now_local) -> MigrationResult:
    """
    Migrate the pending collection if it holds legacy records

    Must run before any other component reads the store.

    Returns:
        MigrationResult; when ``migrated`` is true the caller should reload
        everything it has cached.

    Raises:
        MigrationError: The backup failed; nothing was modified
    """
    pending = store.read_or_default(keys.PENDING, [])
    if not isinstance(pending, list):
        logger.warning("Pending collection is not a list; skipping migration")
        return MigrationResult(migrated=False)

    if not needs_migration(pending):
        logger.info("No migration needed - data is already in the current format")
        return MigrationResult(migrated=False)

    logger.info("Legacy format detected - starting migration...")
    now = clock()

    backup_data = {
        "pending": pending,
        "completions": store.read_or_default(keys.COMPLETIONS, []),
        "achievements": store.read_or_default(keys.ACHIEVEMENTS, {}),
        "notifications": store.read_or_default(keys.NOTIFICATIONS, []),
    }
    backup_key = create_backup(store, backup_data, now=now)

    migrated = migrate_all(pending, now=now)
    migrated_count = sum(1 for challenge in migrated if isinstance(challenge, dict))
    store.write(keys.PENDING, migrated)

    logger.info(f"Migration complete! {migrated_count} challenges migrated (backup: {backup_key})")
    return MigrationResult(migrated=True, backup_key=backup_key, migrated_count=migrated_count)
