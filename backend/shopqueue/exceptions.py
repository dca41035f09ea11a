from enum import Enum
from typing import Any, Dict, Optional


class APIError(Exception):
    """
    Base exception for all API-related errors.
    """
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class QueueErrorType(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    VALIDATION_ERROR = "validation_error"
    OPERATION_FAILED = "operation_failed"
    UNKNOWN = "unknown"


_STATUS_CODES = {
    QueueErrorType.NOT_FOUND: 404,
    QueueErrorType.UNAUTHORIZED: 403,
    QueueErrorType.VALIDATION_ERROR: 400,
    QueueErrorType.OPERATION_FAILED: 500,
    QueueErrorType.UNKNOWN: 500,
}

# Messages of these types are written for end users and can be shown as-is.
USER_FACING_ERROR_TYPES = frozenset({
    QueueErrorType.NOT_FOUND,
    QueueErrorType.UNAUTHORIZED,
    QueueErrorType.VALIDATION_ERROR,
})


class QueueError(APIError):
    """
    Typed error raised by the queue services.

    Carries the name of the failing operation and the context it ran with,
    plus the underlying exception for OPERATION_FAILED / UNKNOWN wrappers.
    """
    def __init__(
        self,
        error_type: QueueErrorType,
        message: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        self.error_type = error_type
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        super().__init__(message, _STATUS_CODES[error_type])
        if cause is not None:
            self.__cause__ = cause

    @property
    def is_user_facing(self) -> bool:
        return self.error_type in USER_FACING_ERROR_TYPES

    def public_message(self) -> str:
        """Message that is safe to return to an end user."""
        if self.is_user_facing:
            return self.message
        return "Something went wrong while processing the queue request. Please try again."

    def __repr__(self) -> str:
        return f"QueueError({self.error_type.value!r}, {self.message!r}, operation={self.operation!r})"


class QueueNotFoundError(QueueError):
    def __init__(self, message: str = "Queue entry not found.", operation: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(QueueErrorType.NOT_FOUND, message, operation, context)


class QueueValidationError(QueueError):
    def __init__(self, message: str = "Queue request is invalid.", operation: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(QueueErrorType.VALIDATION_ERROR, message, operation, context)


class QueueUnauthorizedError(QueueError):
    def __init__(self, message: str = "Queue does not belong to the specified shop.",
                 operation: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(QueueErrorType.UNAUTHORIZED, message, operation, context)
