"""In-process scheduling backend.

Keeps every job's next due time in a private dict, in UTC so that instants
compare correctly across clock changes. Correct only while a single polling
loop calls :meth:`InProcessBackend.advance`; do not share one instance
between processes or run several schedulers against the same jobs on
different hosts. Use :class:`~spine_cron.scheduling.DistributedBackend` for
that.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from spine_cron.core.logging import get_logger

from .job import JobDescriptor
from .protocol import BackendHealth
from .timeutil import to_utc

logger = get_logger(__name__)


class InProcessBackend:
    """Single-process backend using a dict.

    Example:
        >>> backend = InProcessBackend()
        >>> due = backend.advance(scheduler.jobs, datetime.now(UTC))
    """

    name = "memory"

    def __init__(self) -> None:
        self._schedule: dict[str, datetime] = {}
        self._last_poll: datetime | None = None

    def advance(
        self,
        jobs: Mapping[str, JobDescriptor],
        now: datetime,
    ) -> dict[str, JobDescriptor]:
        last_poll = self._last_poll or now
        self._last_poll = now
        instant = to_utc(now)

        due: dict[str, JobDescriptor] = {}
        for name, job in jobs.items():
            next_due = self._schedule.get(name)
            if next_due is None:
                next_due = self._schedule[name] = to_utc(job.next_occurrence(last_poll))
                logger.debug("job_seeded", job=name, next_due=next_due.isoformat())

            if next_due <= instant:
                self._schedule[name] = to_utc(job.next_occurrence(now))
                due[name] = job

        return due

    def next_due(self, name: str) -> datetime | None:
        """Tracked next due time for ``name`` (UTC for aware times), or None if never polled."""
        return self._schedule.get(name)

    def forget(self, name: str) -> None:
        """Drop tracked state so the job is re-seeded at the next poll."""
        self._schedule.pop(name, None)

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        """Return structured health status."""
        return BackendHealth(
            healthy=True,
            backend=self.name,
            tracked_jobs=len(self._schedule),
            last_poll=self._last_poll,
        )


__all__ = ["InProcessBackend"]
