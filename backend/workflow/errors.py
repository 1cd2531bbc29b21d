"""Error taxonomy and classification for step execution.

Every failure a handler reports, raised or returned as error text, is
mapped onto an ErrorType. The type decides whether the retry wrapper
tries again.
"""

import asyncio
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx


class ErrorType(str, Enum):
    """Failure categories for step execution."""
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    INTEGRATION_ERROR = "INTEGRATION_ERROR"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


RETRYABLE_ERROR_TYPES = frozenset({
    ErrorType.NETWORK_ERROR,
    ErrorType.TIMEOUT_ERROR,
    ErrorType.RATE_LIMIT_ERROR,
    ErrorType.UNKNOWN_ERROR,
})


def is_retryable_type(error_type: ErrorType) -> bool:
    return error_type in RETRYABLE_ERROR_TYPES


class WorkflowExecutionError(Exception):
    """An error that already knows its classification.

    Handlers raise this when they can tell what went wrong (a 401 from an
    API, a rate-limit response) so the message heuristics are bypassed.
    """

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.EXECUTION_ERROR,
        retryable: Optional[bool] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.error_type = ErrorType(error_type)
        self.retryable = is_retryable_type(self.error_type) if retryable is None else retryable
        self.details = details or {}
        super().__init__(message)


@dataclass(frozen=True)
class ErrorClassification:
    """Result of classify_error()."""
    type: ErrorType
    retryable: bool
    message: str


# Checked in order, first match wins. Patterns are matched lowercase.
MESSAGE_PATTERNS: list[tuple[ErrorType, tuple[str, ...]]] = [
    (ErrorType.NETWORK_ERROR, ("econnrefused", "enotfound", "etimedout", "network", "connection refused")),
    (ErrorType.TIMEOUT_ERROR, ("timeout", "timed out", "aborterror")),
    (ErrorType.AUTHENTICATION_ERROR, (
        "unauthorized", "authentication", "401", "403", "forbidden", "invalid_auth", "api key",
    )),
    (ErrorType.RATE_LIMIT_ERROR, ("rate limit", "rate_limited", "too many requests", "429")),
    (ErrorType.VALIDATION_ERROR, ("validation", "invalid", "required")),
    (ErrorType.INTEGRATION_ERROR, ("integration", "credentials")),
    (ErrorType.CONFIGURATION_ERROR, ("configuration", "not configured")),
]

TIMEOUT_EXCEPTIONS = (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)
NETWORK_EXCEPTIONS = (ConnectionError, httpx.NetworkError)


def _message_of(error: Any) -> str:
    if isinstance(error, BaseException):
        message = str(error)
        return message or type(error).__name__
    return str(error) if error is not None else "Unknown error"


def classify_error(error: Any) -> ErrorClassification:
    """Classify an exception or a handler's error text."""
    if isinstance(error, WorkflowExecutionError):
        return ErrorClassification(error.error_type, error.retryable, error.message)

    message = _message_of(error)

    if isinstance(error, TIMEOUT_EXCEPTIONS):
        return ErrorClassification(ErrorType.TIMEOUT_ERROR, True, message)
    if isinstance(error, NETWORK_EXCEPTIONS):
        return ErrorClassification(ErrorType.NETWORK_ERROR, True, message)

    lowered = message.lower()
    for error_type, patterns in MESSAGE_PATTERNS:
        if any(pattern in lowered for pattern in patterns):
            return ErrorClassification(error_type, is_retryable_type(error_type), message)

    return ErrorClassification(ErrorType.UNKNOWN_ERROR, True, message)


def should_retry(error: Any) -> bool:
    """Determine if an error should be retried."""
    return classify_error(error).retryable


def format_error(error: Any) -> dict:
    """Format an error for logging or storage."""
    classification = classify_error(error)
    formatted = {
        "type": classification.type.value,
        "message": classification.message,
        "retryable": classification.retryable,
    }
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        formatted["stack"] = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
    if isinstance(error, WorkflowExecutionError) and error.details:
        formatted["details"] = error.details
    return formatted
