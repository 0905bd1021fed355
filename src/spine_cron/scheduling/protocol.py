"""What a scheduling backend must do.

The Scheduler owns the job table and the poll loop. A backend owns the
timing state: for each job name, the next moment that job is due. Each
poll hands the table to ``advance`` and gets back the jobs to fire::

    Scheduler ── advance(jobs, now) ──► InProcessBackend   (dict)
              ◄──── due subset ──────── DistributedBackend (shared store)

Every implementation keeps these rules:

* A job seen for the first time is seeded from ``next_occurrence(last_poll)``
  rather than ``next_occurrence(now)``, so a job added between polls is not
  skipped.
* A job is due when its tracked time is at or before ``now``.
* A due job's tracked time moves to ``next_occurrence(now)`` before it is
  returned. After that, no later or concurrent poll, here or in another
  process, selects the same occurrence.
* State left behind by jobs that are no longer registered is harmless.
* ``forget(name)`` drops a job's state and the next poll seeds it again.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from .job import JobDescriptor


@runtime_checkable
class SchedulingBackend(Protocol):
    """Pluggable store of per-job due times.

    ``InProcessBackend`` keeps a local dict and is safe for a single poll
    loop. ``DistributedBackend`` keeps the times in a shared store and
    claims occurrences with compare-and-swap, so any number of processes
    can poll together.
    """

    name: str

    def advance(
        self,
        jobs: Mapping[str, JobDescriptor],
        now: datetime,
    ) -> dict[str, JobDescriptor]:
        """Reschedule jobs and return those due at ``now``.

        Args:
            jobs: The current job table, name -> descriptor.
            now: Wall-clock time of this poll.

        Returns:
            The due subset, already rescheduled past ``now``.

        Raises:
            BackendUnavailable: the backing store could not be reached.
        """
        ...

    def forget(self, name: str) -> None:
        """Drop tracked state for ``name``; the next poll seeds it afresh."""
        ...

    def health(self) -> dict[str, Any]:
        """Snapshot with ``healthy``, ``backend`` and ``tracked_jobs`` (None if unknown)."""
        ...


@dataclass
class BackendHealth:
    healthy: bool
    backend: str
    tracked_jobs: int | None = None
    last_poll: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        report: dict[str, Any] = {
            "healthy": self.healthy,
            "backend": self.backend,
            "tracked_jobs": self.tracked_jobs,
            "last_poll": None if self.last_poll is None else self.last_poll.isoformat(),
        }
        report.update(self.extra)
        return report


__all__ = ["SchedulingBackend", "BackendHealth"]
