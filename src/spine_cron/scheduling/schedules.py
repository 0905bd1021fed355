"""Schedule capability and its two variants.

A schedule answers one question: given a moment, when is the next
occurrence strictly after it? ``CronExpression`` and ``IntervalSchedule``
both satisfy the :class:`Schedule` protocol.

Registration accepts a :class:`ScheduleSpec`, a tagged union with exactly
one of ``every`` (seconds) or ``cron`` (text) set, and turns it into a
schedule with :func:`build_schedule`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from spine_cron.core.errors import ConfigError

from .cron import CronExpression
from .timeutil import shift


@runtime_checkable
class Schedule(Protocol):
    """Anything that can compute its next occurrence."""

    def next_occurrence(self, from_: datetime) -> datetime:
        """Return the first occurrence strictly after ``from_``."""
        ...


@dataclass(frozen=True)
class IntervalSchedule:
    """Fires every ``seconds`` seconds of elapsed time, whatever the wall clock does.

    Example:
        >>> IntervalSchedule(15).next_occurrence(datetime(2024, 1, 1, 12, 0))
        datetime.datetime(2024, 1, 1, 12, 0, 15)
    """

    seconds: float

    def __post_init__(self) -> None:
        if isinstance(self.seconds, bool) or not isinstance(self.seconds, (int, float)):
            raise ConfigError(f"Interval must be a number of seconds, got {self.seconds!r}")
        if self.seconds <= 0:
            raise ConfigError(f"Interval must be positive, got {self.seconds}")

    def next_occurrence(self, from_: datetime) -> datetime:
        return shift(from_, timedelta(seconds=self.seconds))

    def __str__(self) -> str:
        return f"every {self.seconds:g}s"


@dataclass(frozen=True)
class ScheduleSpec:
    """When a job runs: exactly one of ``every`` or ``cron``.

    Example:
        >>> ScheduleSpec(every=5)
        ScheduleSpec(every=5, cron=None)
        >>> ScheduleSpec(cron="0 3-6 * * *")
        ScheduleSpec(every=None, cron='0 3-6 * * *')
    """

    every: float | None = None
    cron: str | None = None

    def __post_init__(self) -> None:
        if self.every is None and self.cron is None:
            raise ConfigError("Missing schedule: set either 'every' or 'cron'")
        if self.every is not None and self.cron is not None:
            raise ConfigError("Schedule cannot set both 'every' and 'cron'")

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> ScheduleSpec:
        unknown = set(options) - {"every", "cron"}
        if unknown:
            raise ConfigError(f"Unknown schedule keys: {sorted(unknown)}")
        return cls(every=options.get("every"), cron=options.get("cron"))

    def build(self) -> Schedule:
        if self.every is not None:
            return IntervalSchedule(self.every)
        return CronExpression.parse(self.cron)


def build_schedule(spec: ScheduleSpec | Mapping[str, Any] | Schedule) -> Schedule:
    """Turn any accepted schedule specification into a :class:`Schedule`.

    Raises:
        ConfigError: neither or both alternatives, or a non-positive interval.
        ParseError: invalid cron text.
    """
    if isinstance(spec, ScheduleSpec):
        return spec.build()
    if isinstance(spec, Mapping):
        return ScheduleSpec.from_mapping(spec).build()
    if isinstance(spec, Schedule):
        return spec
    raise ConfigError(f"Unsupported schedule specification: {spec!r}")


__all__ = [
    "Schedule",
    "IntervalSchedule",
    "ScheduleSpec",
    "build_schedule",
]
