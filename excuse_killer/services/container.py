"""
Service Container - Dependency Injection Container

Wires the store capability into every service. Services are lazy-loaded
on first access; the store and clock are injected, never global.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from excuse_killer.db.adapter import StoreAdapter
from excuse_killer.db.store import KeyValueStore
from excuse_killer.exceptions import MigrationError
from excuse_killer.migrations.migration import MigrationResult, run_migration
from excuse_killer.utils.datetime_helpers import Clock, now_local

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    """

    # Infrastructure dependencies (injected)
    store: StoreAdapter
    clock: Clock = now_local

    # Services (lazy-loaded via properties)
    _gamification_service: Optional[object] = field(default=None, init=False, repr=False)
    _challenge_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def gamification_service(self):
        """Get GamificationService instance (lazy-loaded)"""
        if self._gamification_service is None:
            from excuse_killer.services.gamification_service import GamificationService
            self._gamification_service = GamificationService(self.store, clock=self.clock)
            logger.debug("GamificationService instantiated")
        return self._gamification_service

    @property
    def challenge_service(self):
        """Get ChallengeService instance (lazy-loaded)"""
        if self._challenge_service is None:
            from excuse_killer.services.challenge_service import ChallengeService
            self._challenge_service = ChallengeService(
                self.store,
                gamification=self.gamification_service,
                clock=self.clock,
            )
            logger.debug("ChallengeService instantiated")
        return self._challenge_service

    def create_timer(self, challenge, on_outcome=None):
        """Timer for an ongoing challenge, persisted under the challenge's timer key"""
        from excuse_killer.services.timer import ChallengeTimer
        from excuse_killer.gamification.xp_system import get_timer_duration

        duration = challenge.duration_minutes or get_timer_duration(challenge.intensity)
        return ChallengeTimer(
            duration,
            self.store,
            challenge_id=challenge.id,
            clock=self.clock,
            on_outcome=on_outcome,
        )


def bootstrap(store: KeyValueStore, clock: Clock = now_local) -> tuple[ServiceContainer, MigrationResult]:
    """
    Run the migration, then build the container

    A failed migration backup is logged and the app keeps working on the
    unmigrated data.

    Returns:
        (container, migration result)
    """
    adapter = StoreAdapter(store)

    try:
        result = run_migration(adapter, clock=clock)
        if result.migrated:
            logger.info(f"Data migration completed successfully (backup: {result.backup_key})")
    except MigrationError as e:
        logger.error(f"Migration failed, continuing with unmigrated data: {e.message}")
        result = MigrationResult(migrated=False)

    container = ServiceContainer(store=adapter, clock=clock)
    logger.info("Service container initialized")
    return container, result
