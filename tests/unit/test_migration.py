"""Unit tests for the pending-challenge schema migration"""
import pytest

from excuse_killer.db import keys
from excuse_killer.db.adapter import StoreAdapter
from excuse_killer.db.store import MemoryKeyValueStore
from excuse_killer.exceptions import MigrationError
from excuse_killer.migrations.migration import (
    list_backups,
    migrate_all,
    migrate_one,
    needs_migration,
    restore_backup,
    run_migration,
    schema_version,
    upgrade_record,
)
from excuse_killer.models.challenge import CURRENT_SCHEMA_VERSION, ChallengeStatus
from excuse_killer.utils.datetime_helpers import epoch_ms


class BackupRejectingStore(MemoryKeyValueStore):
    """Accepts every write except backups"""

    def set(self, key, value):
        if key.startswith(keys.BACKUP_KEY_PREFIX):
            raise RuntimeError("backup volume unavailable")
        super().set(key, value)


def current_record(**overrides):
    record = {
        "id": "challenge-2",
        "taskText": "Stretch",
        "intensity": "chill",
        "durationMinutes": 10,
        "recurrence": "daily",
        "status": "ongoing",
        "createdAt": "2026-10-01T08:00:00.000",
        "schemaVersion": CURRENT_SCHEMA_VERSION,
    }
    record.update(overrides)
    return record


# ============================================================================
# Detection Tests
# ============================================================================

class TestNeedsMigration:
    """Legacy record detection"""

    def test_empty(self):
        assert needs_migration([]) is False
        assert needs_migration(None) is False

    def test_legacy_record(self, legacy_challenge):
        assert needs_migration([current_record(), legacy_challenge]) is True

    def test_current_records(self):
        assert needs_migration([current_record()]) is False

    def test_null_field_counts_as_missing(self):
        assert needs_migration([current_record(recurrence=None)]) is True

    def test_old_version_tag(self):
        assert needs_migration([current_record(schemaVersion=1)]) is True

    def test_untagged_complete_record(self):
        record = current_record()
        del record["schemaVersion"]
        assert needs_migration([record]) is False
        assert schema_version(record) == CURRENT_SCHEMA_VERSION

    def test_non_record_entries_are_ignored(self, legacy_challenge):
        assert needs_migration(["garbage", legacy_challenge]) is True
        assert needs_migration(["garbage", 42, None, current_record()]) is False

    def test_schema_version_inferred_from_shape(self, legacy_challenge):
        assert schema_version(legacy_challenge) == 1


# ============================================================================
# Record Upgrade Tests
# ============================================================================

class TestMigrateOne:
    """Backfilling missing fields"""

    def test_backfills_missing_fields(self, legacy_challenge, clock):
        migrated = migrate_one(legacy_challenge, now=clock())

        assert migrated["durationMinutes"] == 30
        assert migrated["recurrence"] == "once"
        assert migrated["scheduleTime"] is None
        assert migrated["notes"] == ""
        assert migrated["status"] == "pending"
        assert migrated["notificationSent"] is False
        assert migrated["createdAt"] == "2026-10-10"
        assert migrated["updatedAt"] == "2026-10-19T10:00:00.000"
        assert migrated["customDateISO"] == "2026-10-25"
        assert migrated["schemaVersion"] == CURRENT_SCHEMA_VERSION

    def test_existing_fields_preserved(self, legacy_challenge, clock):
        legacy_challenge["notes"] = "keep me"
        legacy_challenge["legacyFlag"] = True

        migrated = migrate_one(legacy_challenge, now=clock())

        for name, value in legacy_challenge.items():
            assert migrated[name] == value

    def test_input_not_modified(self, legacy_challenge, clock):
        before = dict(legacy_challenge)
        migrate_one(legacy_challenge, now=clock())
        assert legacy_challenge == before

    def test_created_at_falls_back_to_now(self, clock):
        migrated = migrate_one({"id": "c", "taskText": "t", "intensity": "normal"}, now=clock())
        assert migrated["createdAt"] == "2026-10-19T10:00:00.000"
        assert migrated["durationMinutes"] == 20
        assert migrated["customDateISO"] is None

    def test_unknown_intensity_gets_default_duration(self, clock):
        assert migrate_one({"id": "c", "intensity": "legendary"}, now=clock())["durationMinutes"] == 20

    def test_idempotent(self, legacy_challenge, clock):
        once = migrate_all([legacy_challenge], now=clock())
        clock.advance(days=1)
        twice = migrate_all(once, now=clock())
        assert twice == once

    def test_non_record_entries_pass_through(self, legacy_challenge, clock):
        migrated = migrate_all(["garbage", legacy_challenge, 7], now=clock())

        assert migrated[0] == "garbage"
        assert migrated[1]["schemaVersion"] == CURRENT_SCHEMA_VERSION
        assert migrated[2] == 7

    def test_current_record_unchanged(self, clock):
        record = current_record(scheduleTime="07:30", notes="", notificationSent=False,
                                updatedAt="2026-10-02T08:00:00.000", customDateISO=None)
        assert migrate_one(record, now=clock()) == record


class TestUpgradeRecord:
    """Typed upgrade of a single record"""

    def test_legacy_to_model(self, legacy_challenge, clock):
        version, challenge = upgrade_record(legacy_challenge, now=clock())
        assert version == CURRENT_SCHEMA_VERSION
        assert challenge.status == ChallengeStatus.PENDING
        assert challenge.duration_minutes == 30
        assert challenge.schema_version == CURRENT_SCHEMA_VERSION

    def test_current_record(self):
        version, challenge = upgrade_record(current_record())
        assert version == CURRENT_SCHEMA_VERSION
        assert challenge.status == ChallengeStatus.ONGOING

    def test_future_version_rejected(self):
        with pytest.raises(MigrationError):
            upgrade_record(current_record(schemaVersion=CURRENT_SCHEMA_VERSION + 1))


# ============================================================================
# Store Migration Tests
# ============================================================================

class TestRunMigration:
    """Backup-then-rewrite of the pending collection"""

    def test_nothing_to_migrate(self, store, clock):
        result = run_migration(store, clock=clock)
        assert result.migrated is False
        assert list_backups(store) == []

    def test_migrates_and_backs_up(self, store, clock, legacy_challenge, make_completion):
        store.write(keys.PENDING, [legacy_challenge])
        store.write_records(keys.COMPLETIONS, [make_completion()])
        store.write(keys.ACHIEVEMENTS, {"first-step": "2026-10-01T00:00:00.000"})

        result = run_migration(store, clock=clock)

        assert result.migrated is True
        assert result.migrated_count == 1
        assert result.backup_key == keys.backup_key(epoch_ms(clock()))
        snapshot = store.read(result.backup_key)
        assert snapshot["pending"] == [legacy_challenge]
        assert len(snapshot["completions"]) == 1
        assert snapshot["achievements"] == {"first-step": "2026-10-01T00:00:00.000"}

        pending = store.read(keys.PENDING)
        assert pending[0]["status"] == "pending"
        assert pending[0]["schemaVersion"] == CURRENT_SCHEMA_VERSION

    def test_needs_migration_false_afterwards(self, store, clock, legacy_challenge):
        store.write(keys.PENDING, [legacy_challenge, current_record()])
        run_migration(store, clock=clock)
        assert needs_migration(store.read(keys.PENDING)) is False

    def test_counts_only_records(self, store, clock, legacy_challenge):
        store.write(keys.PENDING, ["garbage", legacy_challenge])

        result = run_migration(store, clock=clock)

        assert result.migrated_count == 1
        assert store.read(keys.PENDING)[0] == "garbage"
        assert store.read(result.backup_key)["pending"] == ["garbage", legacy_challenge]

    def test_second_run_is_noop(self, store, clock, legacy_challenge):
        store.write(keys.PENDING, [legacy_challenge])
        run_migration(store, clock=clock)
        migrated = store.read(keys.PENDING)

        result = run_migration(store, clock=clock)

        assert result.migrated is False
        assert store.read(keys.PENDING) == migrated
        assert len(list_backups(store)) == 1

    def test_failed_backup_leaves_store_untouched(self, clock, legacy_challenge):
        store = StoreAdapter(BackupRejectingStore())
        store.write(keys.PENDING, [legacy_challenge])

        with pytest.raises(MigrationError):
            run_migration(store, clock=clock)

        assert store.read(keys.PENDING) == [legacy_challenge]

    def test_corrupted_pending_is_skipped(self, store, kv_store, clock):
        kv_store.set(keys.PENDING, "not json")
        assert run_migration(store, clock=clock).migrated is False


class TestBackups:
    """Listing and restoring snapshots"""

    def test_list_backups_newest_first(self, store):
        store.write(keys.backup_key(100), {})
        store.write(keys.backup_key(300), {})
        store.write(keys.backup_key(200), {})

        assert list_backups(store) == [keys.backup_key(300), keys.backup_key(200), keys.backup_key(100)]

    def test_restore_backup(self, store, clock, legacy_challenge):
        store.write(keys.PENDING, [legacy_challenge])
        result = run_migration(store, clock=clock)

        restore_backup(store, result.backup_key)

        assert store.read(keys.PENDING) == [legacy_challenge]
        assert store.read(keys.NOTIFICATIONS) == []

    def test_restore_missing_backup(self, store):
        with pytest.raises(MigrationError):
            restore_backup(store, keys.backup_key(1))
