"""Challenge models"""
import re
from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

# Schema version 1: legacy records (no duration, recurrence, status or createdAt)
# Schema version 2: current layout
LEGACY_SCHEMA_VERSION = 1
CURRENT_SCHEMA_VERSION = 2

SCHEDULE_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class Intensity(str, Enum):
    """Difficulty tier, drives default duration and XP"""
    CHILL = "chill"
    NORMAL = "normal"
    HARDCORE = "hardcore"


class TargetType(str, Enum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"
    CUSTOM_DATE = "custom_date"


class Recurrence(str, Enum):
    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ChallengeStatus(str, Enum):
    """Lifecycle status"""
    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


TERMINAL_STATUSES = frozenset({ChallengeStatus.COMPLETED, ChallengeStatus.ABANDONED})


class StoredRecord(BaseModel):
    """
    Base for records persisted in the key-value store

    Field names are snake_case in Python and camelCase on disk. Unknown
    keys are kept so a read-modify-write never drops data written by
    another version of the app.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class Challenge(StoredRecord):
    """A task the user commits to"""
    id: str
    task_text: str = Field(alias="taskText")
    intensity: Intensity
    duration_minutes: Optional[int] = Field(None, alias="durationMinutes")
    target_type: TargetType = Field(TargetType.TODAY, alias="targetType")
    target_date_iso: Optional[str] = Field(None, alias="targetDateISO")
    custom_date_iso: Optional[str] = Field(None, alias="customDateISO")
    recurrence: Recurrence = Recurrence.ONCE
    schedule_time: Optional[str] = Field(None, alias="scheduleTime")
    use_timer: bool = Field(False, alias="useTimer")
    notes: str = ""
    status: ChallengeStatus = ChallengeStatus.PENDING
    notification_sent: bool = Field(False, alias="notificationSent")
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")
    timer_started_at: Optional[str] = Field(None, alias="timerStartedAt")
    # None for records written before versions were tagged
    schema_version: Optional[int] = Field(None, alias="schemaVersion")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def _custom_error(field: str, message: str) -> PydanticCustomError:
    return PydanticCustomError(f"invalid_{field}", message)


class ChallengeInput(BaseModel):
    """
    Challenge form submission

    Every field is validated independently so a single submission reports
    all of its problems at once. Validation that depends on the calendar
    reads ``today`` from the validation context.

    Example:
        ChallengeInput.model_validate(
            {"taskText": "Run 5k", "intensity": "hardcore"},
            context={"today": date(2026, 10, 19)},
        )
    """
    model_config = ConfigDict(populate_by_name=True)

    task_text: Any = Field("", alias="taskText", validate_default=True)
    intensity: Any = Field("normal", validate_default=True)
    duration_minutes: Any = Field(None, alias="durationMinutes", validate_default=True)
    target_type: Any = Field("today", alias="targetType", validate_default=True)
    custom_date: Any = Field(None, alias="customDate", validate_default=True)
    recurrence: Any = Field("once", validate_default=True)
    schedule_time: Any = Field(None, alias="scheduleTime", validate_default=True)
    use_timer: bool = Field(False, alias="useTimer")
    notes: Any = ""

    @field_validator("task_text")
    @classmethod
    def validate_task_text(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise _custom_error("task_text", "Task description is required")
        return v.strip()

    @field_validator("intensity")
    @classmethod
    def validate_intensity(cls, v: Any) -> Intensity:
        try:
            return Intensity(v)
        except ValueError:
            raise _custom_error("intensity", "Invalid intensity level")

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, v: Any, info: ValidationInfo) -> int:
        """Positive whole number of minutes; defaults from intensity"""
        if v is None or v == "":
            from excuse_killer.gamification.xp_system import get_timer_duration

            intensity = info.data.get("intensity")
            return get_timer_duration(intensity.value if intensity else None)

        if isinstance(v, bool):
            raise _custom_error("duration", "Duration must be a positive number")
        if isinstance(v, float):
            if not v.is_integer():
                raise _custom_error("duration", "Duration must be a whole number of minutes")
            v = int(v)
        try:
            minutes = int(str(v).strip())
        except ValueError:
            raise _custom_error("duration", "Duration must be a positive number")
        if minutes <= 0:
            raise _custom_error("duration", "Duration must be a positive number")
        return minutes

    @field_validator("target_type")
    @classmethod
    def validate_target_type(cls, v: Any) -> TargetType:
        try:
            return TargetType(v)
        except ValueError:
            raise _custom_error("target_type", "Invalid target type")

    @field_validator("custom_date")
    @classmethod
    def validate_custom_date(cls, v: Any, info: ValidationInfo) -> Optional[str]:
        """Required and not in the past when the target type is custom_date"""
        if info.data.get("target_type") != TargetType.CUSTOM_DATE:
            return v or None

        if not v:
            raise _custom_error("custom_date", "Custom date is required")
        try:
            day = date.fromisoformat(str(v)[:10])
        except ValueError:
            raise _custom_error("custom_date", "Date must be in YYYY-MM-DD format")

        today = (info.context or {}).get("today") or date.today()
        if day < today:
            raise _custom_error("custom_date", "Date cannot be in the past")
        return day.isoformat()

    @field_validator("recurrence")
    @classmethod
    def validate_recurrence(cls, v: Any) -> Recurrence:
        try:
            return Recurrence(v)
        except ValueError:
            raise _custom_error("recurrence", "Invalid recurrence option")

    @field_validator("schedule_time")
    @classmethod
    def validate_schedule_time(cls, v: Any) -> Optional[str]:
        """Ensure HH:MM 24-hour format when provided"""
        if v is None or v == "":
            return None
        if not isinstance(v, str) or not SCHEDULE_TIME_PATTERN.match(v):
            raise _custom_error(
                "schedule_time", "Time must be in HH:MM format (00:00 to 23:59)"
            )
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: Any) -> str:
        return str(v or "").strip()
