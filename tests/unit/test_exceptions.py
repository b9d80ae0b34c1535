"""Unit tests for custom exception hierarchy"""
import errno
import logging
import pytest
from datetime import datetime

from excuse_killer.exceptions import (
    ExcuseKillerError,
    ValidationError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    CorruptionError,
    QuotaError,
    WriteError,
    MigrationError,
    ConfigurationError,
    QuotaExceeded,
    wrap_storage_exception,
)


class TestExcuseKillerError:
    """Test base exception class"""

    def test_basic_exception(self):
        """Test basic exception creation"""
        error = ExcuseKillerError("Test error")
        assert error.message == "Test error"
        assert error.user_message == "An error occurred. Please try again."
        assert error.request_id is not None
        assert isinstance(error.timestamp, datetime)

    def test_exception_with_context(self):
        """Test exception with full context"""
        error = ExcuseKillerError(
            message="Failed to save challenge",
            operation="create_challenge",
            context={"challenge_id": "challenge-123"},
            user_message="Could not save your challenge"
        )
        assert error.operation == "create_challenge"
        assert error.context["challenge_id"] == "challenge-123"
        assert error.user_message == "Could not save your challenge"

    def test_exception_with_cause(self):
        """Test exception wrapping another exception"""
        original_error = ValueError("Invalid value")
        error = ExcuseKillerError(message="Validation failed", cause=original_error)
        assert error.cause == original_error

    def test_to_dict(self):
        """Test exception serialization"""
        error = ExcuseKillerError(message="Test error", user_message="User friendly message")
        data = error.to_dict()
        assert data["error"] == "ExcuseKillerError"
        assert data["message"] == "Test error"
        assert data["user_message"] == "User friendly message"
        assert "request_id" in data
        assert "timestamp" in data

    def test_logged_on_creation(self, caplog):
        """Test exceptions log themselves at their level"""
        with caplog.at_level(logging.INFO, logger="excuse_killer.exceptions"):
            ExcuseKillerError("boom")
            ValidationError(errors={"taskText": "Task description is required"})

        levels = {r.levelno for r in caplog.records}
        assert logging.ERROR in levels
        assert logging.INFO in levels


class TestValidationError:
    """Per-field validation errors"""

    def test_collects_every_field(self):
        error = ValidationError(errors={
            "taskText": "Task description is required",
            "scheduleTime": "Time must be in HH:MM format (00:00 to 23:59)",
        })
        assert error.fields == ["taskText", "scheduleTime"]
        assert error.message == "Invalid input: scheduleTime, taskText"
        assert "Task description is required" in error.user_message
        assert error.to_dict()["errors"]["taskText"] == "Task description is required"

    def test_without_errors(self):
        error = ValidationError()
        assert error.message == "Invalid input"
        assert error.errors == {}

    def test_invalid_transition_is_validation_error(self):
        error = InvalidTransitionError("challenge-1", "ongoing", "ongoing")
        assert isinstance(error, ValidationError)
        assert error.errors == {"status": "Challenge is already ongoing"}
        assert "challenge-1" in error.message


def test_not_found_error():
    error = NotFoundError("Challenge x is not pending", record_type="Challenge", record_id="x")
    assert error.user_message == "Challenge not found."
    assert error.context == {"record_type": "Challenge", "record_id": "x"}


class TestStorageErrors:
    """Storage taxonomy"""

    def test_hierarchy(self):
        for cls in (CorruptionError, QuotaError, WriteError):
            assert issubclass(cls, StorageError)
        assert issubclass(StorageError, ExcuseKillerError)

    def test_default_messages(self):
        assert CorruptionError(key="k").message == "Corrupted data detected and cleared"
        assert QuotaError(key="k").message == "Storage quota exceeded. Please clear old data."
        assert QuotaError(key="k").key == "k"

    def test_wrap_quota_exceeded(self):
        error = wrap_storage_exception(QuotaExceeded("full"), "k")
        assert isinstance(error, QuotaError)
        assert error.operation == "write"

    @pytest.mark.parametrize("code", [errno.ENOSPC, errno.EDQUOT])
    def test_wrap_disk_full(self, code):
        assert isinstance(wrap_storage_exception(OSError(code, "full"), "k"), QuotaError)

    def test_wrap_other_oserror(self):
        error = wrap_storage_exception(OSError(errno.EACCES, "denied"), "k")
        assert isinstance(error, WriteError)

    def test_wrap_unknown(self):
        cause = RuntimeError("boom")
        error = wrap_storage_exception(cause, "k", operation="backup")
        assert isinstance(error, WriteError)
        assert error.cause is cause
        assert error.operation == "backup"


def test_migration_error_keeps_backup_key():
    error = MigrationError("Failed", backup_key="excuse-killer-backup-1")
    assert error.backup_key == "excuse-killer-backup-1"
    assert error.context["backup_key"] == "excuse-killer-backup-1"


def test_configuration_error():
    error = ConfigurationError("bad", config_key="LOG_LEVEL")
    assert error.config_key == "LOG_LEVEL"
