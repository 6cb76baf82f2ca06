"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- PipelineError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Base classes
    PipelineError,
    TransientError,
    PermanentError,
    # Transient errors
    TransientStoreError,
    # Permanent errors
    DecodeError,
    ValidationError,
    IntegrityError,
    # Unclassified
    UnclassifiedError,
    # Classification utilities
    classify_exception,
    is_retryable_error,
    wrap_exception,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "TransientError",
    "PermanentError",
    # Transient errors
    "TransientStoreError",
    # Permanent errors
    "DecodeError",
    "ValidationError",
    "IntegrityError",
    # Unclassified
    "UnclassifiedError",
    # Classification utilities
    "classify_exception",
    "is_retryable_error",
    "wrap_exception",
]
