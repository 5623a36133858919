"""
Structured error types for rhythm.

Every failure the scheduler reports is a RhythmError subclass carrying a
category, structured context, and an optional chained cause. Callback
failures never escape ``tick()``; they are wrapped in a CallbackFault and
handed to the diagnostic sink instead.

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different concerns
    - **Rich Context:** Errors carry the task id and operation for logging
    - **Error Chaining:** Preserve the original exception as ``cause``
    - **Contain callback faults:** A user callback can never take the loop down

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       RhythmError                               │
        │  (category, context, cause)                                     │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  InvalidArgumentError   CallbackFault      SchedulerStateError  │
        │  (VALIDATION)           (CALLBACK)         (STATE)              │
        │                                                                 │
        │  ConfigError                                                    │
        │  (CONFIG)                                                       │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = InvalidArgumentError("Delay must be non-negative")
    >>> error.category
    <ErrorCategory.VALIDATION: 'VALIDATION'>

    >>> fault = CallbackFault(7, ValueError("boom"))
    >>> fault.reason
    'ValueError: boom'

Guardrails:
    ❌ DON'T: Raise bare ValueError for bad scheduling arguments
    ✅ DO: Raise InvalidArgumentError so hosts can catch one type

    ❌ DON'T: Let a callback exception propagate out of tick()
    ✅ DO: Wrap it in CallbackFault and report it to the diagnostic sink

Tags:
    error-handling, exception-hierarchy, error-context, rhythm

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"     # Bad arguments from the caller
    CALLBACK = "CALLBACK"         # A user or cleanup callback raised
    STATE = "STATE"               # Operation not allowed in current state
    CONFIG = "CONFIG"             # Invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        task_id: Identifier of the task involved, if any
        operation: Scheduler operation that raised (``schedule_after``, ``tick``...)
        phase: Callback phase for faults (``run`` or ``cleanup``)
        metadata: Additional key-value pairs
    """

    task_id: int | None = None
    operation: str | None = None
    phase: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["task_id", "operation", "phase"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RhythmError(Exception):
    """
    Base exception for all rhythm errors.

    Subclasses set ``default_category`` so callers only pass a message in
    the common case.

    Examples:
        >>> error = RhythmError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>

        >>> error = RhythmError("Bad").with_context(task_id=3, operation="tick")
        >>> error.context.task_id
        3
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RhythmError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CALLER ERRORS
# =============================================================================


class InvalidArgumentError(RhythmError):
    """A scheduling call received an argument it cannot accept.

    Raised for negative delays or intervals, non-callable task functions,
    and host values of the wrong type. No task is created.
    """

    default_category = ErrorCategory.VALIDATION


class ConfigError(RhythmError):
    """Settings could not be loaded or failed validation."""

    default_category = ErrorCategory.CONFIG


class SchedulerStateError(RhythmError):
    """Operation is not allowed while the scheduler is in its current state.

    ``tick()`` and ``loop()`` are not reentrant; calling either from inside a
    running callback raises this error, which the outer tick then reports as
    a callback fault.
    """

    default_category = ErrorCategory.STATE


# =============================================================================
# CALLBACK FAULTS
# =============================================================================


class CallbackFault(RhythmError):
    """A user or cleanup callback raised while being dispatched.

    Built at the dispatch boundary, handed to the diagnostic sink and then
    discarded. The task still counts as having run.
    """

    default_category = ErrorCategory.CALLBACK

    def __init__(self, task_id: int, cause: BaseException, *, phase: str = "run"):
        self.task_id = task_id
        self.phase = phase
        super().__init__(
            f"Error in scheduled task {task_id}: {_describe(cause)}",
            context=ErrorContext(task_id=task_id, phase=phase),
            cause=cause,
        )

    @property
    def reason(self) -> str:
        """Short textual reason, ``ExceptionType: message``."""
        return _describe(self.cause)


def _describe(exc: BaseException | None) -> str:
    if exc is None:
        return "unknown error"
    text = str(exc)
    name = type(exc).__name__
    return f"{name}: {text}" if text else name


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RhythmError",
    "InvalidArgumentError",
    "ConfigError",
    "SchedulerStateError",
    "CallbackFault",
]
