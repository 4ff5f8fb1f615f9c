# core/exceptions.py
"""Define standardized exception types for the conversion core.

This module provides a small exception hierarchy and helpers used across `core/`
to propagate actionable error details without losing the original exception.
"""

from typing import Any


class ConverterCoreError(Exception):
    """Base exception for all converter core errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class InvalidDocumentError(ConverterCoreError):
    """The classic document is not a JSON object with a `values` object."""


class ClassificationError(ConverterCoreError):
    """The classic document does not map to a format the converter can build.

    Non-retryable. `format_tag` carries the detected tag, or `"unknown"`.
    """

    def __init__(self, message: str, format_tag: str = "unknown", details: dict[str, Any] | None = None):
        super().__init__(message, details=create_error_context(format_tag=format_tag, **(details or {})))
        self.format_tag = format_tag


class UnsupportedFormatError(ClassificationError):
    """The format was recognized but no builder strategy exists for it."""


class BuilderInvariantError(ConverterCoreError):
    """An internal graph-building invariant was violated.

    Policy:
        - This is a defect in per-format conversion logic, not bad input.
        - It is fatal and never retried.
    """


class ConversionCancelledError(ConverterCoreError):
    """Raised once cancellation is observed at a transfer boundary.

    Callers distinguish this from other failures to suppress user-facing error messaging.
    """

    def __init__(self, message: str = "Conversion cancelled by user intervention", details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class TransferError(ConverterCoreError):
    """A single media transfer failed. Recorded per item by the orchestrator, never fatal."""


class PortalRequestError(ConverterCoreError):
    """A portal HTTP request failed after retries."""


def create_error_context(**kwargs: Any) -> dict[str, Any]:
    """Build a context dictionary for structured errors.

    Args:
        **kwargs: Key-value pairs to include.

    Returns:
        A dictionary containing only keys whose values are not `None`.
    """
    return {k: v for k, v in kwargs.items() if v is not None}


def wrap_builder_error(step: str, original_error: Exception, **context: Any) -> BuilderInvariantError:
    """Convert an unexpected exception raised while building into a builder error.

    Args:
        step: Name of the conversion step that failed.
        original_error: The caught exception.
        **context: Additional structured context to attach.

    Returns:
        A `BuilderInvariantError` carrying the original error type and text.
    """
    error_details = create_error_context(
        step=step,
        original_error=str(original_error),
        error_type=type(original_error).__name__,
        **context,
    )
    return BuilderInvariantError(f"Unexpected builder failure during {step}", details=error_details)
