"""Job descriptor - a named schedule bound to an opaque action."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .schedules import Schedule

Action = Callable[[], Any]


@dataclass(frozen=True)
class JobDescriptor:
    """Describes a registered job.

    The scheduler never calls ``action`` itself; it hands the descriptor to a
    dispatcher. ``action`` may be a plain callable or a coroutine function.
    """

    name: str
    schedule: Schedule
    action: Action

    def next_occurrence(self, from_: datetime) -> datetime:
        return self.schedule.next_occurrence(from_)


__all__ = ["Action", "JobDescriptor"]
