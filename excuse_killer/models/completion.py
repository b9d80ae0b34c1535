"""Completion and notification records"""
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from excuse_killer.models.challenge import StoredRecord


class Completion(StoredRecord):
    """Immutable trace of a finished challenge"""
    id: str
    task_text: str = Field(alias="taskText")
    date_iso: str = Field(alias="dateISO")  # calendar day it was completed
    target_type: Optional[str] = Field(None, alias="targetType")
    target_date_iso: Optional[str] = Field(None, alias="targetDateISO")
    finished_on_time: bool = Field(False, alias="finishedOnTime")
    xp_earned: int = Field(0, alias="xpEarned")
    completed_at: str = Field(alias="completedAt")
    intensity: Optional[str] = None

    @field_validator("xp_earned", mode="before")
    @classmethod
    def null_xp_is_zero(cls, v: Any) -> Any:
        # Older histories store xpEarned: null; it still counts toward streaks
        return 0 if v is None else v


class NotificationType(str, Enum):
    ERROR = "error"
    INFO = "info"


class Notification(StoredRecord):
    """Message surfaced to the user after a lifecycle event"""
    id: str
    message: str
    type: NotificationType = NotificationType.ERROR
    timestamp: str
