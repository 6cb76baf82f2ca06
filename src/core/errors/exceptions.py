"""
Exception types and error classification for the library events pipeline.

Provides:
- ErrorCategory enum for retry decisions
- Typed exception hierarchy for pipeline errors
- Error classification utilities
"""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """
    Classification of error types for routing decisions.

    Categories:
        TRANSIENT: Temporary failures that should be retried
                   (e.g., store unavailable, lock timeouts)
        PERMANENT: Non-retriable failures that won't succeed on retry
                   (e.g., malformed payloads, constraint violations)
        UNKNOWN: Unclassified errors, retried conservatively
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class PipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Transient Errors
# =============================================================================


class TransientError(PipelineError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class TransientStoreError(TransientError):
    """Store unavailable, locked, or timed out."""

    pass


# =============================================================================
# Permanent Errors (Don't Retry)
# =============================================================================


class PermanentError(PipelineError):
    """Base class for permanent/non-retriable errors."""

    category = ErrorCategory.PERMANENT


class DecodeError(PermanentError):
    """Payload is not well-formed for the event schema."""

    pass


class ValidationError(PermanentError):
    """Payload decoded but is logically invalid."""

    pass


class IntegrityError(PermanentError):
    """Store rejected the write with a constraint violation."""

    pass


# =============================================================================
# Unclassified
# =============================================================================


class UnclassifiedError(PipelineError):
    """Failure with no known classification. Retried up to the retry limit."""

    category = ErrorCategory.UNKNOWN


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_exception(exc: Exception) -> ErrorCategory:
    """
    Classify an exception into error category.

    Args:
        exc: Exception to classify

    Returns:
        Appropriate ErrorCategory
    """
    # Already classified
    if isinstance(exc, PipelineError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    # Constraint violations from DB-API drivers
    integrity_markers = (
        "integrityerror",
        "constraint failed",
        "unique constraint",
        "foreign key constraint",
        "not null constraint",
    )
    if any(m in exc_type or m in exc_str for m in integrity_markers):
        return ErrorCategory.PERMANENT

    # Connection errors
    connection_markers = (
        "connectionerror",
        "connection refused",
        "connection reset",
        "connection aborted",
        "no route to host",
        "network unreachable",
        "name resolution",
        "broken pipe",
        "unable to open database",
        "disk i/o error",
    )
    if any(m in exc_type or m in exc_str for m in connection_markers):
        return ErrorCategory.TRANSIENT

    # Lock contention
    if "database is locked" in exc_str or "database is busy" in exc_str:
        return ErrorCategory.TRANSIENT

    # Timeout errors
    if "timeout" in exc_type or "timed out" in exc_str or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def wrap_exception(
    exc: Exception,
    default_class: type = UnclassifiedError,
    context: Optional[dict] = None,
) -> PipelineError:
    """
    Wrap a generic exception in appropriate PipelineError subclass.

    Args:
        exc: Exception to wrap
        default_class: Class to use if can't classify
        context: Additional context to include

    Returns:
        Appropriate PipelineError subclass instance
    """
    if isinstance(exc, PipelineError):
        if context:
            exc.context.update(context)
        return exc

    category = classify_exception(exc)

    if category == ErrorCategory.TRANSIENT:
        return TransientStoreError(str(exc), cause=exc, context=context)

    if category == ErrorCategory.PERMANENT:
        return IntegrityError(str(exc), cause=exc, context=context)

    return default_class(str(exc), cause=exc, context=context)


def is_retryable_error(exc: Exception) -> bool:
    """Whether an exception should be routed to the retry topic."""
    return classify_exception(exc) in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)
