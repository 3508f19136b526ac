"""
Centralized error handling for the job intelligence pipeline.

Defines the error taxonomy shared by every stage and the HTTP layer:

- RequestValidationError: bad input, rejected before any network call (4xx)
- StageTimeoutError: a stage's network call exceeded its budget
- UpstreamError: non-2xx or malformed response from an external service
- ParseError: LLM response not valid JSON or missing schema fields
- StageCancelledError: the client went away; never reported to anyone

Mandatory stages (job fetch, LLM) turn StageError into a terminal error
event. The optional research stage downgrades it to a progress event.
"""

import logging
from typing import Optional

from job_intel.common.html_sanitizer import sanitize_text

GENERIC_ERROR_MESSAGE = "An unexpected error occurred."


class JobIntelError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def user_message(self) -> str:
        """Client-safe, markup-free message."""
        return sanitize_text(self.message) or GENERIC_ERROR_MESSAGE


class RequestValidationError(JobIntelError):
    """Raised when request input is invalid. Never reaches the network."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class StageError(JobIntelError):
    """Base class for failures scoped to a single pipeline stage."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class StageTimeoutError(StageError):
    """Raised when a stage's network call exceeds its time budget."""


class UpstreamError(StageError):
    """Raised when an external service fails or answers with garbage."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, stage)
        self.status_code = status_code


class ParseError(StageError):
    """Raised when the LLM response cannot be parsed or misses required fields."""


class StageCancelledError(Exception):
    """Raised inside a run when the client connection has gone away."""

    def __init__(self, stage: Optional[str] = None):
        super().__init__(f"Stage {stage or 'unknown'} cancelled by client disconnect")
        self.stage = stage


def client_message(error: BaseException) -> str:
    """
    Render an exception as a message safe to show a client.

    Known pipeline errors keep their (HTML-stripped) message. Anything else
    collapses to a generic message so stack traces and internal identifiers
    never leak.

    Args:
        error: The exception to render

    Returns:
        Sanitized message string
    """
    if isinstance(error, JobIntelError):
        return error.user_message
    return GENERIC_ERROR_MESSAGE


def log_on_exception(
    logger: logging.Logger,
    operation: str,
    level: int = logging.WARNING,
    include_traceback: bool = False,
):
    """
    Context manager for logging exceptions without swallowing them silently.

    Usage:
        with log_on_exception(logger, "research page fetch"):
            response = await client.get(url)

    Args:
        logger: Logger instance to use
        operation: Operation description for the log message
        level: Log level (default: WARNING)
        include_traceback: Whether to include stack trace in log
    """

    class ExceptionLogger:
        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            if exc_val is not None:
                if include_traceback:
                    logger.log(level, f"[{operation}] Failed: {exc_val}", exc_info=True)
                else:
                    logger.log(level, f"[{operation}] Failed: {exc_val}")
            # Return False to not suppress the exception
            return False

    return ExceptionLogger()
