"""
Structured error types for spine-cron.

Every failure the scheduler surfaces is a ``SchedulerError``: a message plus
a category, a retry flag, structured context and an optional cause.

    ┌──────────────────────────────────────────────────────────────────┐
    │  SchedulerError (INTERNAL)                                        │
    │   ├── ParseError           PARSE      bad cron text               │
    │   ├── ConfigError          CONFIG     bad schedule or settings    │
    │   │     └── UnsupportedBackend        unknown backend selector    │
    │   ├── SearchExhausted      SCHEDULE   cron never matches          │
    │   └── BackendUnavailable   STORAGE    store unreachable (retry)   │
    └──────────────────────────────────────────────────────────────────┘

Registration errors (parse, config, search) reach the caller of
``Scheduler.register`` directly. ``BackendUnavailable`` is raised by a
backend during a poll; the scheduler logs it and skips that tick.

Examples:
    >>> error = ParseError("step must be positive in '*/0'")
    >>> error.category, error.retryable
    (<ErrorCategory.PARSE: 'PARSE'>, False)
    >>> error.with_context(expression="*/0 * * * *").context.expression
    '*/0 * * * *'
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse classification used in logs and alerts."""

    PARSE = "PARSE"
    CONFIG = "CONFIG"
    STORAGE = "STORAGE"
    SCHEDULE = "SCHEDULE"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """What the error was about. Unset fields are omitted from ``to_dict``."""

    job: str | None = None
    expression: str | None = None
    backend: str | None = None
    key: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def known_fields(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls)) - {"metadata"}

    def to_dict(self) -> dict[str, Any]:
        known = {name: getattr(self, name) for name in ("job", "expression", "backend", "key")}
        return {k: v for k, v in known.items() if v is not None} | self.metadata


class SchedulerError(Exception):
    """Base class of every spine-cron error.

    Subclasses pick a ``default_category`` and ``default_retryable``;
    either can still be overridden per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = self.default_category if category is None else category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = context if context is not None else ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **values: Any) -> SchedulerError:
        """Attach context and return ``self``, so it can be chained onto ``raise``."""
        known = ErrorContext.known_fields()
        for name, value in values.items():
            if name in known:
                setattr(self.context, name, value)
            else:
                self.context.metadata[name] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if context := self.context.to_dict():
            data["context"] = context
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


class ParseError(SchedulerError):
    """Malformed cron text: wrong field count, bad range, step or ordinal token."""

    default_category = ErrorCategory.PARSE


class ConfigError(SchedulerError):
    """Invalid schedule or scheduler configuration. Fix it, do not retry."""

    default_category = ErrorCategory.CONFIG


class UnsupportedBackend(ConfigError):
    """Unknown backend selector."""

    def __init__(self, selector: Any, message: str | None = None):
        self.selector = selector
        super().__init__(message or f"Unsupported backend {selector!r}")


class BackendUnavailable(SchedulerError):
    """The shared store could not be reached during a poll."""

    default_category = ErrorCategory.STORAGE
    default_retryable = True


class SearchExhausted(SchedulerError):
    """No occurrence satisfies a cron expression within the search bound."""

    default_category = ErrorCategory.SCHEDULE


def categorize_error(error: Exception) -> ErrorCategory:
    """Category of any exception, falling back on its builtin type."""
    if isinstance(error, SchedulerError):
        return error.category
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    if isinstance(error, ValueError):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SchedulerError",
    "ParseError",
    "ConfigError",
    "UnsupportedBackend",
    "BackendUnavailable",
    "SearchExhausted",
    "categorize_error",
]
