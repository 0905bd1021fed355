"""Distributed scheduling backend.

Any number of scheduler processes may share one store. Whichever process
first finds a job due moves the job's next-run time forward with a
conditional write; only a process whose write succeeds runs the job, so
each occurrence runs at most once across the cluster.

┌──────────────────────────────────────────────────────────────────────────────┐
│  STORE LAYOUT (flat keyspace, integer epoch seconds)                          │
│                                                                               │
│   <prefix>_last_run        time of the most recent poll by any process       │
│   <prefix>_job_<name>      next due time of job <name>                       │
│                                                                               │
│  PER POLL                                                                     │
│   1. last = setnx(last_run, now); get(last_run); set(last_run, now)          │
│   2. for each job:                                                            │
│        setnx(job_<name>, next_occurrence(last))                               │
│        read job_<name> with version marker                                    │
│        now >= stored → write next_occurrence(now) if marker unchanged        │
│                        written → due;  rejected → someone else claimed it    │
│        otherwise     → release the read, not due                             │
└──────────────────────────────────────────────────────────────────────────────┘

Seeding ``last_run`` with "now" on a cold store keeps a fresh cluster from
firing a backlog of historical occurrences.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from spine_cron.core.logging import get_logger

from .job import JobDescriptor
from .protocol import BackendHealth
from .stores import SharedStore

logger = get_logger(__name__)

DEFAULT_PREFIX = "spine_cron"


def _to_epoch(dt: datetime) -> int:
    return int(dt.timestamp())


def _from_epoch(value: int, like: datetime) -> datetime:
    """Epoch seconds back to a datetime in ``like``'s timezone."""
    if like.tzinfo is None:
        return datetime.fromtimestamp(value)
    return datetime.fromtimestamp(value, tz=like.tzinfo)


class DistributedBackend:
    """Backend keeping schedule state in a :class:`SharedStore`.

    Example:
        >>> store = RedisStore.from_url("redis://localhost:6379/0")
        >>> backend = DistributedBackend(store, prefix="reports")
        >>> due = backend.advance(scheduler.jobs, datetime.now(UTC))
    """

    name = "distributed"

    def __init__(
        self,
        store: SharedStore,
        prefix: str = DEFAULT_PREFIX,
        reset: bool = False,
    ) -> None:
        """Initialize distributed backend.

        Args:
            store: Shared store with linearizable conditional writes
            prefix: Key namespace shared by cooperating schedulers
            reset: Delete stored job timings so every job is re-seeded
        """
        self.store = store
        self.prefix = prefix
        self._last_poll: datetime | None = None

        if reset:
            self.reset()

    def job_key(self, name: str) -> str:
        return f"{self.prefix}_job_{name}"

    @property
    def last_run_key(self) -> str:
        return f"{self.prefix}_last_run"

    def reset(self) -> int:
        """Delete all job timing keys under this prefix."""
        removed = self.store.delete_prefix(self.job_key(""))
        logger.info("backend_reset", prefix=self.prefix, removed=removed)
        return removed

    def advance(
        self,
        jobs: Mapping[str, JobDescriptor],
        now: datetime,
    ) -> dict[str, JobDescriptor]:
        last_poll = self._swap_last_poll(now)
        self._last_poll = now

        due: dict[str, JobDescriptor] = {}
        for name, job in jobs.items():
            key = self.job_key(name)
            self.store.set_if_absent(key, _to_epoch(job.next_occurrence(last_poll)))
            if self._claim(key, job, now):
                due[name] = job
        return due

    def _swap_last_poll(self, now: datetime) -> datetime:
        """Return the previous poll time and record ``now`` as the latest."""
        self.store.set_if_absent(self.last_run_key, _to_epoch(now))
        previous = self.store.get(self.last_run_key)
        self.store.set(self.last_run_key, _to_epoch(now))
        return _from_epoch(previous if previous is not None else _to_epoch(now), now)

    def _claim(self, key: str, job: JobDescriptor, now: datetime) -> bool:
        """Try to move ``job`` past ``now``; True when this process won."""
        read = self.store.read_versioned(key)

        if read.value is None or read.value > _to_epoch(now):
            self.store.release(read)
            return False

        next_due = _to_epoch(job.next_occurrence(now))
        if self.store.write_if_unchanged(read, next_due):
            return True

        logger.debug("job_claimed_elsewhere", job=job.name, key=key)
        return False

    def next_due(self, name: str) -> int | None:
        """Stored next due time for ``name`` in epoch seconds."""
        return self.store.get(self.job_key(name))

    def forget(self, name: str) -> None:
        self.store.delete(self.job_key(name))

    def health(self) -> dict[str, Any]:
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        """Return structured health status."""
        return BackendHealth(
            healthy=self.store.ping(),
            backend=self.name,
            last_poll=self._last_poll,
            extra={"store": self.store.name, "prefix": self.prefix},
        )


__all__ = ["DistributedBackend", "DEFAULT_PREFIX"]
