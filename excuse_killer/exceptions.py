"""
Standardized exception hierarchy for excuse-killer
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime
from typing import Optional, Dict, Any
from uuid import uuid4
import errno
import logging

logger = logging.getLogger(__name__)


class ExcuseKillerError(Exception):
    """
    Base exception for all excuse-killer errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise ExcuseKillerError(
            message="Failed to save challenge",
            operation="create_challenge",
            context={"challenge_id": "challenge-123"}
        )
    """

    log_level: int = logging.ERROR

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now()

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(
                self.log_level,
                f"{self.__class__.__name__}: {self.message}",
                extra=log_data,
                exc_info=self.cause,
            )
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for the presentation layer"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (User Input)
# ==========================================

class ValidationError(ExcuseKillerError):
    """
    Raised when user input fails one or more declared constraints

    Every violation is reported, keyed by the input field name, so the
    form can flag all invalid fields at once.

    Example:
        raise ValidationError(
            errors={
                "taskText": "Task description is required",
                "scheduleTime": "Time must be in HH:MM format (00:00 to 23:59)",
            }
        )
    """

    log_level = logging.INFO

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[Dict[str, str]] = None,
        **kwargs
    ):
        self.errors = dict(errors or {})
        if message is None:
            message = "Invalid input: " + ", ".join(sorted(self.errors)) if self.errors else "Invalid input"
        kwargs.setdefault("user_message", "; ".join(self.errors.values()) or message)
        kwargs.setdefault("context", {"errors": self.errors})
        super().__init__(message=message, **kwargs)

    @property
    def fields(self) -> list[str]:
        return list(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class InvalidTransitionError(ValidationError):
    """Lifecycle transition not allowed from the challenge's current status"""

    def __init__(
        self,
        challenge_id: str,
        current_status: str,
        target_status: str,
        **kwargs
    ):
        self.challenge_id = challenge_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            message=f"Cannot move challenge {challenge_id} from {current_status} to {target_status}",
            errors={"status": f"Challenge is already {current_status}"},
            **kwargs
        )


class NotFoundError(ExcuseKillerError):
    """Operation referenced an id that does not exist"""

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


# ==========================================
# Storage Errors
# ==========================================

class StorageError(ExcuseKillerError):
    """
    Base class for key-value store failures
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        **kwargs
    ):
        self.key = key
        kwargs.setdefault("context", {"key": key})
        super().__init__(message=message, **kwargs)


class CorruptionError(StorageError):
    """Stored value was not valid JSON; the key has been cleared"""

    log_level = logging.WARNING

    def __init__(self, message: str = "Corrupted data detected and cleared", **kwargs):
        super().__init__(
            message=message,
            user_message="Some saved data was corrupted and has been reset.",
            **kwargs
        )


class QuotaError(StorageError):
    """Store is full"""

    def __init__(self, message: str = "Storage quota exceeded. Please clear old data.", **kwargs):
        super().__init__(
            message=message,
            user_message="Storage is full. Please clear old data and try again.",
            **kwargs
        )


class WriteError(StorageError):
    """Unknown write failure; the operation was not applied"""

    def __init__(self, message: str = "Failed to save data", **kwargs):
        super().__init__(
            message=message,
            user_message="We couldn't save your changes. Please try again.",
            **kwargs
        )


# ==========================================
# Migration Errors
# ==========================================

class MigrationError(ExcuseKillerError):
    """Migration aborted; persisted data was left untouched"""

    def __init__(
        self,
        message: str,
        backup_key: Optional[str] = None,
        **kwargs
    ):
        self.backup_key = backup_key
        super().__init__(
            message=message,
            user_message="Your data could not be upgraded. The app will keep using it as-is.",
            context={"backup_key": backup_key},
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(ExcuseKillerError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The app is not properly configured. Check your environment settings.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

class QuotaExceeded(Exception):
    """Raised by key-value store backends when a write would exceed their capacity"""


def wrap_storage_exception(
    error: Exception,
    key: str,
    operation: str = "write",
) -> StorageError:
    """
    Wrap a low-level store failure into the storage error taxonomy

    Args:
        error: Original exception raised by the key-value backend
        key: Key being written
        operation: What operation was being performed

    Returns:
        QuotaError for capacity failures, WriteError for anything else

    Example:
        try:
            store.set(key, serialized)
        except Exception as e:
            raise wrap_storage_exception(e, key) from e
    """
    if isinstance(error, QuotaExceeded) or (
        isinstance(error, OSError) and error.errno in (errno.ENOSPC, errno.EDQUOT)
    ):
        return QuotaError(key=key, operation=operation, cause=error)

    return WriteError(
        message=f"Failed to save data (key: {key}): {error}",
        key=key,
        operation=operation,
        cause=error,
    )
