"""
Structured logging for spine-cron.

Modules log short event names with key/value context through a structlog
logger from :func:`get_logger`::

    logger.info("job_dispatched", job="heartbeat", at="2024-01-01T12:00:00+00:00")

Nothing is configured at import time, so a library user who never calls
:func:`configure_logging` gets structlog's own defaults. The CLI calls
:func:`configure_from_settings` once at startup.

Processor chain:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │  TimeStamper(iso)            (optional)                       │
        │  merge_contextvars           tick=…, job=… from LogContext    │
        │  add_log_level                                                │
        │  ServiceName                 service.name                     │
        │  expand_scheduler_errors     error=SchedulerError → fields    │
        │  ┌─────────── json ───────────┐  ┌────────── console ───────┐ │
        │  │ ecs_field_names            │  │ ConsoleRenderer          │ │
        │  │ format_exc_info            │  │ (colors when on a tty)   │ │
        │  │ JSONRenderer               │  └──────────────────────────┘ │
        │  └────────────────────────────┘                               │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> from spine_cron.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=True, service="billing-cron")
    >>> get_logger(__name__).debug("job_seeded", job="invoice")
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from spine_cron.core.settings import SchedulerSettings

DEFAULT_SERVICE = "spine-cron"


class ServiceName:
    """Processor stamping every event with the emitting service."""

    def __init__(self, service: str = DEFAULT_SERVICE):
        self.service = service

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", self.service)
        return event_dict


def expand_scheduler_errors(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace a ``SchedulerError`` under ``error`` with its structured fields."""
    from spine_cron.core.errors import SchedulerError

    error = event_dict.get("error")
    if isinstance(error, SchedulerError):
        details = error.to_dict()
        event_dict["error"] = details.pop("message")
        event_dict["error.type"] = details.pop("error_type")
        event_dict["error.category"] = details.pop("category")
        event_dict["error.retryable"] = details.pop("retryable")
        event_dict.update({f"error.{k}": v for k, v in details.items()})
    return event_dict


def ecs_field_names(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename ``timestamp``/``level`` to the ECS ``@timestamp``/``log.level``."""
    for plain, ecs in (("timestamp", "@timestamp"), ("level", "log.level")):
        if plain in event_dict:
            event_dict[ecs] = event_dict.pop(plain)
    return event_dict


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level}")
    return number


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = DEFAULT_SERVICE,
    add_timestamp: bool = True,
) -> None:
    """Install the spine-cron processor chain.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines when True, console when False,
            JSON unless stdout is a tty when None
        service: Value of the ``service.name`` field
        add_timestamp: Prefix events with an ISO timestamp
    """
    threshold = _level_number(level)
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = []
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        ServiceName(service),
        expand_scheduler_errors,
    ]
    if json_format:
        processors += [
            ecs_field_names,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: SchedulerSettings) -> None:
    """Apply ``log_level`` and ``log_format`` (``json`` or ``console``) from settings."""
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to every subsequent event in this thread or task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind context for the duration of a ``with`` block.

    Values bound by an enclosing block are restored on exit.

    Example:
        with LogContext(tick=42):
            logger.info("job_dispatched", job="heartbeat")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._scope: AbstractContextManager[None] | None = None

    def __enter__(self) -> LogContext:
        self._scope = structlog.contextvars.bound_contextvars(**self._context)
        self._scope.__enter__()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._scope is not None:
            self._scope.__exit__(*exc_info)
            self._scope = None


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
    "ServiceName",
    "expand_scheduler_errors",
]
