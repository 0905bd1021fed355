"""Core primitives shared by the scheduler: errors, logging, settings."""

from spine_cron.core.errors import (
    BackendUnavailable,
    ConfigError,
    ErrorCategory,
    ParseError,
    SchedulerError,
    SearchExhausted,
    UnsupportedBackend,
)

__all__ = [
    "ErrorCategory",
    "SchedulerError",
    "ParseError",
    "ConfigError",
    "UnsupportedBackend",
    "BackendUnavailable",
    "SearchExhausted",
]
