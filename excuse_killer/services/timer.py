"""
Challenge countdown timer

Remaining time is always recomputed from the wall clock as
``durationSeconds - (now - startTimestamp)``; nothing is decremented, so
the countdown stays correct across reloads, suspended event loops and
scheduling jitter.

While running, a recovery record ``{startTimestamp, durationSeconds}`` is
kept in the store under the owning challenge's timer key. ``recover()``
rebuilds the timer from that record. Pausing clears the record: a paused
timer is not persisted and starts over at full duration after a reload.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from excuse_killer.config import TIMER_TICK_INTERVAL
from excuse_killer.db import keys
from excuse_killer.db.adapter import StoreAdapter
from excuse_killer.models.timer import TimerRecoveryRecord
from excuse_killer.utils.datetime_helpers import Clock, epoch_ms, now_local

logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    EXPIRED = "expired"


@dataclass
class CompletionPrompt:
    """
    Raised when the countdown reaches zero

    The timer does not decide what happens next; whoever handles the
    prompt calls ``resolve(True)`` to mark the task completed or
    ``resolve(False)`` to mark it not completed.
    """
    challenge_id: Optional[str]
    on_outcome: Optional[Callable[[bool], object]] = None
    outcome: Optional[bool] = field(default=None, init=False)

    @property
    def resolved(self) -> bool:
        return self.outcome is not None

    def resolve(self, completed: bool):
        if self.resolved:
            logger.warning(f"Completion prompt for {self.challenge_id} already resolved")
            return None
        self.outcome = completed
        logger.info(f"Timer outcome for {self.challenge_id}: {'completed' if completed else 'not completed'}")
        if self.on_outcome:
            return self.on_outcome(completed)
        return None


TickListener = Callable[[int], object]
ExpiryListener = Callable[[CompletionPrompt], object]


class ChallengeTimer:
    """
    Countdown for an ongoing challenge.

    States: idle -> running -> paused | expired, paused -> running.
    The tick is a background asyncio task; it is cancelled and awaited on
    pause, reset and close so no tick fires after teardown.

    Example:
        timer = ChallengeTimer(20, store, challenge_id="challenge-1",
                               on_outcome=lambda ok: service.resolve_timer_outcome("challenge-1", ok))
        timer.subscribe_expiry(lambda prompt: prompt.resolve(True))
        await timer.recover()
        if timer.state == TimerState.IDLE:
            await timer.start()
    """

    def __init__(
        self,
        duration_minutes: int,
        store: StoreAdapter,
        challenge_id: Optional[str] = None,
        clock: Clock = now_local,
        tick_interval: float = TIMER_TICK_INTERVAL,
        on_outcome: Optional[Callable[[bool], object]] = None
    ):
        """
        Args:
            duration_minutes: Countdown length
            store: Store adapter holding the recovery record
            challenge_id: Owner of the timer; without it nothing is persisted
            clock: Returns the current local time
            tick_interval: Seconds between ticks
            on_outcome: Receives the completion prompt's answer
        """
        if not isinstance(duration_minutes, int) or isinstance(duration_minutes, bool) or duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be a positive integer, got {duration_minutes!r}")

        self.duration_seconds = duration_minutes * 60
        self.store = store
        self.challenge_id = challenge_id
        self.clock = clock
        self.tick_interval = tick_interval
        self.on_outcome = on_outcome

        self.state = TimerState.IDLE
        self.prompt: Optional[CompletionPrompt] = None
        self._remaining = self.duration_seconds
        self._start_ms: Optional[int] = None
        self._task: Optional[asyncio.Task] = None
        self._tick_listeners: list[TickListener] = []
        self._expiry_listeners: list[ExpiryListener] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def recovery_key(self) -> Optional[str]:
        return keys.timer_key(self.challenge_id) if self.challenge_id else None

    @property
    def remaining(self) -> int:
        """Seconds left, recomputed from the wall clock while running"""
        if self.state == TimerState.RUNNING:
            return max(self._compute_remaining(), 0)
        return self._remaining

    @property
    def progress(self) -> float:
        """Elapsed share of the countdown, 0-100"""
        return (self.duration_seconds - self.remaining) / self.duration_seconds * 100

    def format_remaining(self) -> str:
        """MM:SS"""
        minutes, seconds = divmod(self.remaining, 60)
        return f"{minutes:02d}:{seconds:02d}"

    def subscribe_tick(self, listener: TickListener) -> Callable[[], None]:
        """Call ``listener(remaining_seconds)`` on every tick; returns an unsubscribe function"""
        self._tick_listeners.append(listener)
        return lambda: self._tick_listeners.remove(listener) if listener in self._tick_listeners else None

    def subscribe_expiry(self, listener: ExpiryListener) -> Callable[[], None]:
        """Call ``listener(prompt)`` when the countdown reaches zero"""
        self._expiry_listeners.append(listener)
        return lambda: self._expiry_listeners.remove(listener) if listener in self._expiry_listeners else None

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start from idle or resume from paused"""
        if self.state == TimerState.RUNNING:
            logger.warning(f"Timer for {self.challenge_id} already running")
            return
        if self.state == TimerState.EXPIRED:
            logger.warning(f"Timer for {self.challenge_id} has expired; reset it first")
            return

        now_ms = epoch_ms(self.clock())
        record = self._read_record()
        if record is not None:
            self.duration_seconds = record.duration_seconds
            self._start_ms = record.start_timestamp
        else:
            # Back-date the start so the already elapsed share is kept on resume
            elapsed = self.duration_seconds - self._remaining
            self._start_ms = now_ms - elapsed * 1000
            self._write_record()

        self.state = TimerState.RUNNING
        logger.info(f"Timer for {self.challenge_id} running ({self.remaining}s left)")

        if self._compute_remaining() <= 0:
            self._expire()
            return
        self._schedule()

    async def resume(self) -> None:
        await self.start()

    async def pause(self) -> None:
        """Stop the countdown; the recovery record is discarded"""
        if self.state != TimerState.RUNNING:
            return

        self._remaining = max(self._compute_remaining(), 0)
        self.state = TimerState.PAUSED
        self._start_ms = None
        await self._cancel_tick()
        self._clear_record()
        logger.info(f"Timer for {self.challenge_id} paused at {self._remaining}s")

    async def reset(self) -> None:
        """Back to idle at full duration"""
        self.state = TimerState.IDLE
        self._remaining = self.duration_seconds
        self._start_ms = None
        self.prompt = None
        await self._cancel_tick()
        self._clear_record()
        logger.info(f"Timer for {self.challenge_id} reset")

    async def close(self) -> None:
        """Tear down the tick without touching the recovery record"""
        await self._cancel_tick()

    async def recover(self) -> TimerState:
        """
        Rebuild state from the recovery record, if any

        Returns:
            RUNNING when time is left, EXPIRED when the countdown finished
            while nobody was watching (the prompt is raised immediately),
            otherwise the current state.
        """
        if self.state == TimerState.RUNNING:
            return self.state

        record = self._read_record()
        if record is None:
            return self.state

        self.duration_seconds = record.duration_seconds
        self._start_ms = record.start_timestamp
        remaining = self._compute_remaining()

        if remaining > 0:
            self._remaining = remaining
            self.state = TimerState.RUNNING
            logger.info(f"Recovered running timer for {self.challenge_id} ({remaining}s left)")
            self._schedule()
        else:
            logger.info(f"Timer for {self.challenge_id} finished while closed")
            self._expire()

        return self.state

    def sync(self) -> int:
        """
        Recompute remaining time now (e.g. when a suspended view becomes visible)

        Returns:
            Seconds left
        """
        if self.state == TimerState.RUNNING:
            self._tick()
        return self.remaining

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _compute_remaining(self) -> int:
        if self._start_ms is None:
            return self._remaining
        elapsed = math.floor((epoch_ms(self.clock()) - self._start_ms) / 1000)
        return self.duration_seconds - elapsed

    def _schedule(self) -> None:
        self._task = asyncio.create_task(self._tick_loop())

    async def _tick_loop(self) -> None:
        while self.state == TimerState.RUNNING:
            await asyncio.sleep(self.tick_interval)
            if self.state != TimerState.RUNNING:
                break
            self._tick()

    def _tick(self) -> None:
        remaining = self._compute_remaining()
        if remaining <= 0:
            self._expire()
            return

        self._remaining = remaining
        for listener in list(self._tick_listeners):
            try:
                listener(remaining)
            except Exception as e:
                logger.error(f"Tick listener failed for {self.challenge_id}: {e}", exc_info=True)

    def _expire(self) -> None:
        self.state = TimerState.EXPIRED
        self._remaining = 0
        self._start_ms = None
        self._clear_record()

        self.prompt = CompletionPrompt(challenge_id=self.challenge_id, on_outcome=self.on_outcome)
        logger.info(f"Timer for {self.challenge_id} expired")

        for listener in list(self._expiry_listeners):
            try:
                listener(self.prompt)
            except Exception as e:
                logger.error(f"Expiry listener failed for {self.challenge_id}: {e}", exc_info=True)

    async def _cancel_tick(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # Called from a listener inside the tick; the loop exits on the state change
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass  # Expected when we cancel the task

    def _read_record(self) -> Optional[TimerRecoveryRecord]:
        if not self.recovery_key:
            return None

        raw = self.store.read_or_default(self.recovery_key)
        if raw is None:
            return None
        try:
            return TimerRecoveryRecord.model_validate(raw)
        except PydanticValidationError as e:
            logger.error(f"Discarding malformed timer record {self.recovery_key}: {e.error_count()} errors")
            self.store.remove(self.recovery_key)
            return None

    def _write_record(self) -> None:
        if not self.recovery_key:
            return
        record = TimerRecoveryRecord(
            start_timestamp=self._start_ms,
            duration_seconds=self.duration_seconds,
        )
        self.store.write(self.recovery_key, record.to_storage())

    def _clear_record(self) -> None:
        if self.recovery_key:
            self.store.remove(self.recovery_key)
