"""
ChallengeService - Challenge lifecycle

State machine:
    pending -> ongoing -> completed | abandoned
    pending -> completed              (direct complete)
    pending -> abandoned              (direct abandon)

The service keeps no state between calls: each operation reads the
collections it needs from the store, applies the transition and writes
them back. Terminal challenges are removed from the pending collection;
completion leaves a Completion record behind, abandonment only a streak
penalty and a notification.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional, Union
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from excuse_killer.db import keys
from excuse_killer.db.adapter import StoreAdapter
from excuse_killer.exceptions import InvalidTransitionError, NotFoundError, StorageError, ValidationError
from excuse_killer.gamification.dashboards import GameStats, get_game_stats, get_last_completions
from excuse_killer.gamification.streak_system import calculate_streak
from excuse_killer.gamification.xp_system import DEFAULT_TIMER_DURATION, calculate_xp
from excuse_killer.models.challenge import (
    CURRENT_SCHEMA_VERSION,
    Challenge,
    ChallengeInput,
    ChallengeStatus,
    TargetType,
)
from excuse_killer.models.completion import Completion, Notification, NotificationType
from excuse_killer.services.gamification_service import GamificationService
from excuse_killer.utils.datetime_helpers import (
    Clock,
    days_remaining,
    epoch_ms,
    get_target_date,
    is_past_date,
    iso_date,
    iso_timestamp,
    now_local,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

ABANDON_MESSAGE = "❌ Task not completed. Streak deducted by 1."

ChallengeRef = Union[Challenge, str]


@dataclass
class CompletionResult:
    """Outcome of completing a challenge"""
    completion: Completion
    unlocked_achievements: list[str]
    stats: Optional[GameStats] = None

    @property
    def xp_earned(self) -> int:
        return self.completion.xp_earned


@dataclass
class AbandonResult:
    """Outcome of abandoning a challenge"""
    challenge: Challenge
    notification: Notification
    removed_completion: Optional[Completion] = None

    @property
    def streak_penalized(self) -> bool:
        return self.removed_completion is not None


@dataclass
class Deadline:
    days_remaining: int
    label: str

    @property
    def overdue(self) -> bool:
        return self.days_remaining < 0


@dataclass
class LiveProgress:
    """Countdown shown on an ongoing timed challenge"""
    remaining_seconds: int
    percent: float

    def format_remaining(self) -> str:
        minutes, seconds = divmod(self.remaining_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"


def _new_id(prefix: str, now) -> str:
    return f"{prefix}-{epoch_ms(now)}-{uuid4().hex[:9]}"


def _completed_at(completion: Completion) -> datetime:
    try:
        return parse_timestamp(completion.completed_at)
    except ValueError:
        logger.warning(f"Completion {completion.id} has unreadable completedAt {completion.completed_at!r}")
        return datetime.min.replace(tzinfo=timezone.utc)


def _collect_errors(error: PydanticValidationError) -> dict[str, str]:
    """Flatten pydantic errors into field -> first message"""
    errors: dict[str, str] = {}
    for item in error.errors():
        field = str(item["loc"][0]) if item["loc"] else "__root__"
        errors.setdefault(field, item["msg"])
    return errors


class ChallengeService:
    """
    Service for the challenge lifecycle.

    Responsibilities:
    - Validating and creating challenges
    - Start / complete / abandon transitions
    - Writing Completion and notification records
    - Triggering achievement re-evaluation after the history changes
    """

    def __init__(
        self,
        store: StoreAdapter,
        gamification: Optional[GamificationService] = None,
        clock: Clock = now_local
    ):
        """
        Initialize ChallengeService.

        Args:
            store: Store adapter
            gamification: Service notified when the completion history changes
            clock: Returns the current local time
        """
        self.store = store
        self.clock = clock
        self.gamification = gamification or GamificationService(store, clock=clock)
        logger.debug("ChallengeService initialized")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_pending(self) -> list[Challenge]:
        return self.store.read_records(keys.PENDING, Challenge)

    def get_completions(self) -> list[Completion]:
        return self.store.read_records(keys.COMPLETIONS, Completion)

    def get_notifications(self) -> list[Notification]:
        return self.store.read_records(keys.NOTIFICATIONS, Notification)

    def get_challenge(self, challenge_id: str) -> Challenge:
        raw_pending, index = self._locate(challenge_id)
        return Challenge.model_validate(raw_pending[index])

    def recent_completions(self, count: int = 5) -> list[Completion]:
        return get_last_completions(self.get_completions(), count)

    def describe_deadline(self, challenge: Challenge, today: Optional[date] = None) -> Deadline:
        """Days left until the target date, with the label shown in the pending list"""
        today = today or self.clock().date()
        target = challenge.target_date_iso or get_target_date(
            challenge.target_type.value, challenge.custom_date_iso, today=today
        )
        days = days_remaining(target, today=today)

        if days < 0:
            label = f"{abs(days)} days overdue"
        elif days == 0:
            label = "Due today"
        else:
            label = f"{days} days left"
        return Deadline(days_remaining=days, label=label)

    def describe_progress(self, challenge: Challenge, now: Optional[datetime] = None) -> Optional[LiveProgress]:
        """
        Time left on an ongoing challenge's timer, from its timerStartedAt

        Returns None unless the challenge is ongoing with a started timer.
        """
        if challenge.status != ChallengeStatus.ONGOING or not challenge.timer_started_at:
            return None

        try:
            started = parse_timestamp(challenge.timer_started_at)
        except ValueError:
            logger.warning(f"Challenge {challenge.id} has unreadable timerStartedAt {challenge.timer_started_at!r}")
            return None

        now = now or self.clock()
        duration = (challenge.duration_minutes or DEFAULT_TIMER_DURATION) * 60
        elapsed = max((parse_timestamp(now) - started).total_seconds(), 0)

        return LiveProgress(
            remaining_seconds=max(0, math.floor(duration - elapsed)),
            percent=min(100.0, elapsed / duration * 100),
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(self, data: Mapping[str, Any]) -> Challenge:
        """
        Validate a form submission and add it to the pending collection

        Args:
            data: Form fields (taskText, intensity, durationMinutes, targetType,
                customDate, recurrence, scheduleTime, useTimer, notes)

        Returns:
            The created challenge

        Raises:
            ValidationError: One entry per invalid field
        """
        now = self.clock()
        try:
            form = ChallengeInput.model_validate(dict(data), context={"today": now.date()})
        except PydanticValidationError as e:
            raise ValidationError(errors=_collect_errors(e), operation="create_challenge")

        is_custom = form.target_type == TargetType.CUSTOM_DATE
        timestamp = iso_timestamp(now)

        challenge = Challenge(
            id=_new_id("challenge", now),
            task_text=form.task_text,
            intensity=form.intensity,
            duration_minutes=form.duration_minutes,
            target_type=form.target_type,
            target_date_iso=get_target_date(form.target_type.value, form.custom_date, today=now.date()),
            custom_date_iso=form.custom_date if is_custom else None,
            recurrence=form.recurrence,
            schedule_time=form.schedule_time,
            use_timer=form.use_timer,
            notes=form.notes,
            status=ChallengeStatus.PENDING,
            notification_sent=False,
            created_at=timestamp,
            updated_at=timestamp,
            timer_started_at=None,
            schema_version=CURRENT_SCHEMA_VERSION,
        )

        raw_pending = self._load_pending_raw()
        raw_pending.append(challenge.to_storage())
        self.store.write(keys.PENDING, raw_pending)

        logger.info(
            f"Created challenge {challenge.id} ({challenge.intensity.value}, "
            f"target {challenge.target_date_iso})"
        )
        return challenge

    def start(self, challenge_id: str) -> Challenge:
        """
        Move a pending challenge to ongoing

        Raises:
            NotFoundError: No pending challenge with this id
            InvalidTransitionError: The challenge is already ongoing
        """
        raw_pending, index = self._locate(challenge_id)
        challenge = Challenge.model_validate(raw_pending[index])

        if challenge.status != ChallengeStatus.PENDING:
            raise InvalidTransitionError(
                challenge_id, challenge.status.value, ChallengeStatus.ONGOING.value,
                operation="start_challenge",
            )

        timestamp = iso_timestamp(self.clock())
        challenge = challenge.model_copy(update={
            "status": ChallengeStatus.ONGOING,
            "timer_started_at": timestamp if challenge.use_timer else None,
            "updated_at": timestamp,
        })

        raw_pending[index] = challenge.to_storage()
        self.store.write(keys.PENDING, raw_pending)

        logger.info(f"Started challenge {challenge_id} (timer: {challenge.use_timer})")
        return challenge

    def complete(self, challenge: ChallengeRef) -> CompletionResult:
        """
        Record a completion and drop the challenge from the pending collection

        finishedOnTime is true unless the target date is strictly before
        today. XP comes from the intensity table. The completion and the
        pending removal are written together; if either write fails
        neither is kept.

        Raises:
            NotFoundError: The challenge is not pending
            QuotaError: The store is full (nothing was changed)
            WriteError: The store rejected the write (nothing was changed)
        """
        raw_pending, index = self._locate(self._challenge_id(challenge))
        current = Challenge.model_validate(raw_pending[index])
        now = self.clock()
        today = now.date()

        target_date = current.target_date_iso or get_target_date(
            current.target_type.value, current.custom_date_iso, today=today
        )

        completion = Completion(
            id=_new_id("completion", now),
            task_text=current.task_text,
            date_iso=iso_date(today),
            target_type=current.target_type.value,
            target_date_iso=target_date,
            finished_on_time=not is_past_date(target_date, today=today),
            xp_earned=calculate_xp(current.intensity),
            completed_at=iso_timestamp(now),
            intensity=current.intensity.value,
        )

        raw_completions = self._load_raw_list(keys.COMPLETIONS)
        raw_completions.append(completion.to_storage())
        del raw_pending[index]

        self.store.write_many({
            keys.COMPLETIONS: raw_completions,
            keys.PENDING: raw_pending,
        })
        self.store.remove(keys.timer_key(current.id))

        logger.info(
            f"Completed challenge {current.id}: +{completion.xp_earned} XP "
            f"(on time: {completion.finished_on_time})"
        )

        completions = [c for _, c in self._parse_completions(raw_completions)]
        try:
            unlocked = self.gamification.refresh_achievements(completions)
        except StorageError as e:
            # Unlocks are derived from history and are picked up on the next refresh
            logger.warning(f"Achievements not saved after completing {current.id}: {e.message}")
            unlocked = []

        stats = get_game_stats(completions, self.gamification.load_achievements(), now=now)
        return CompletionResult(completion=completion, unlocked_achievements=unlocked, stats=stats)

    def abandon(self, challenge: ChallengeRef) -> AbandonResult:
        """
        Drop a challenge without completing it

        When the current streak is above zero, the completion with the
        latest completedAt is deleted as a penalty. A notification is
        appended either way. The penalty, the notification and the pending
        removal are written together; if any write fails none is kept.

        Raises:
            NotFoundError: The challenge is not pending
            QuotaError: The store is full (nothing was changed)
            WriteError: The store rejected the write (nothing was changed)
        """
        raw_pending, index = self._locate(self._challenge_id(challenge))
        current = Challenge.model_validate(raw_pending[index])
        now = self.clock()
        updates: dict[str, Any] = {}

        raw_completions = self._load_raw_list(keys.COMPLETIONS)
        entries = self._parse_completions(raw_completions)
        streak = calculate_streak([c for _, c in entries], today=now.date())

        removed = None
        if streak > 0 and entries:
            removed_index, removed = max(entries, key=lambda entry: _completed_at(entry[1]))
            del raw_completions[removed_index]
            updates[keys.COMPLETIONS] = raw_completions

        notification = Notification(
            id=f"notif-{epoch_ms(now)}",
            message=ABANDON_MESSAGE,
            type=NotificationType.ERROR,
            timestamp=iso_timestamp(now),
        )
        raw_notifications = self._load_raw_list(keys.NOTIFICATIONS)
        raw_notifications.append(notification.to_storage())
        updates[keys.NOTIFICATIONS] = raw_notifications

        del raw_pending[index]
        updates[keys.PENDING] = raw_pending

        self.store.write_many(updates)
        self.store.remove(keys.timer_key(current.id))

        if removed is not None:
            logger.info(f"Streak penalty: removed completion {removed.id} (streak was {streak})")
        logger.info(f"Abandoned challenge {current.id}")

        abandoned = current.model_copy(update={
            "status": ChallengeStatus.ABANDONED,
            "timer_started_at": None,
            "updated_at": iso_timestamp(now),
        })
        return AbandonResult(challenge=abandoned, notification=notification, removed_completion=removed)

    def resolve_timer_outcome(
        self,
        challenge_id: str,
        completed: bool
    ) -> Union[CompletionResult, AbandonResult]:
        """Apply the answer to the timer's completion prompt"""
        if completed:
            return self.complete(challenge_id)
        return self.abandon(challenge_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _challenge_id(challenge: ChallengeRef) -> str:
        return challenge if isinstance(challenge, str) else challenge.id

    def _load_raw_list(self, key: str) -> list:
        raw = self.store.read_or_default(key, [])
        if not isinstance(raw, list):
            logger.warning(f"{key} has unexpected type {type(raw).__name__}; treating as empty")
            return []
        return raw

    def _load_pending_raw(self) -> list[dict]:
        return self._load_raw_list(keys.PENDING)

    @staticmethod
    def _parse_completions(raw_completions: list) -> list[tuple[int, Completion]]:
        """Valid completions paired with their position in the stored list"""
        entries = []
        for index, item in enumerate(raw_completions):
            try:
                entries.append((index, Completion.model_validate(item)))
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid Completion #{index}: {e.error_count()} errors")
        return entries

    def _locate(self, challenge_id: str) -> tuple[list[dict], int]:
        raw_pending = self._load_pending_raw()
        for index, item in enumerate(raw_pending):
            if isinstance(item, dict) and item.get("id") == challenge_id:
                return raw_pending, index

        raise NotFoundError(
            f"Challenge {challenge_id} is not pending",
            record_type="Challenge",
            record_id=challenge_id,
        )
