"""Timer recovery record"""
from pydantic import Field

from excuse_killer.models.challenge import StoredRecord


class TimerRecoveryRecord(StoredRecord):
    """Persisted while a timer runs so a reload can rebuild its state"""
    start_timestamp: int = Field(alias="startTimestamp")  # epoch milliseconds
    duration_seconds: int = Field(alias="durationSeconds", gt=0)
