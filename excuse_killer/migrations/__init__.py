"""Schema migration for persisted records"""

from excuse_killer.migrations.migration import (
    MigrationResult,
    needs_migration,
    migrate_one,
    migrate_all,
    upgrade_record,
    create_backup,
    list_backups,
    restore_backup,
    run_migration,
)

__all__ = [
    "MigrationResult",
    "needs_migration",
    "migrate_one",
    "migrate_all",
    "upgrade_record",
    "create_backup",
    "list_backups",
    "restore_backup",
    "run_migration",
]
