"""Scheduler - job table, poll loop and dispatch.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER ARCHITECTURE                                                       │
│                                                                               │
│   register(name, spec, action) ──► job table  {name: JobDescriptor}           │
│                                                                               │
│   ┌────────────┐   tick()   ┌──────────────────────────────────────────┐     │
│   │  PollLoop  │ ─────────► │  Scheduler.tick(now)                     │     │
│   │  (thread)  │            │   1. due = backend.advance(jobs, now)    │     │
│   └────────────┘            │   2. for job in due:                     │     │
│                             │        dispatcher.dispatch(job)          │     │
│                             │      (fire-and-forget, never awaited)    │     │
│                             └──────────────────────────────────────────┘     │
│                                                                               │
│   Public API:                                                                 │
│   ├── register / unregister / job()   Manage the job table                   │
│   ├── start()                         Start the poll loop                    │
│   ├── stop()                          Ask the loop to exit                   │
│   ├── join()                          Wait for the loop to exit              │
│   ├── tick(now)                       One poll, for tests and manual use     │
│   └── health()                        Loop + backend status                  │
└──────────────────────────────────────────────────────────────────────────────┘

A tick whose backend is unreachable is skipped and logged; the loop keeps
running. A job's next occurrence is computed from the poll time whether or
not its previous firing has finished.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from types import MappingProxyType
from typing import Any

from spine_cron.core.errors import BackendUnavailable, ConfigError, categorize_error
from spine_cron.core.logging import LogContext, get_logger

from .dispatch import Dispatcher, ThreadDispatcher
from .job import Action, JobDescriptor
from .loop import DEFAULT_INTERVAL, PollLoop
from .memory_backend import InProcessBackend
from .protocol import SchedulingBackend
from .schedules import Schedule, ScheduleSpec, build_schedule

logger = get_logger(__name__)


@dataclass
class SchedulerStats:
    """Statistics for the scheduler."""

    tick_count: int = 0
    jobs_fired: int = 0
    ticks_skipped: int = 0
    dispatch_failures: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None


class Scheduler:
    """Recurring-job scheduler.

    Example:
        >>> scheduler = Scheduler(interval_seconds=0.5)
        >>> scheduler.register("heartbeat", ScheduleSpec(every=1), send_heartbeat)
        >>> scheduler.register("nightly", {"cron": "0 2 * * *"}, rebuild_index)
        >>> scheduler.start()
        >>> scheduler.join()   # keep the host process alive
    """

    def __init__(
        self,
        backend: SchedulingBackend | None = None,
        dispatcher: Dispatcher | None = None,
        interval_seconds: float = DEFAULT_INTERVAL,
        timezone: tzinfo = UTC,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            backend: Schedule-state backend (default: InProcessBackend)
            dispatcher: Job launcher (default: ThreadDispatcher)
            interval_seconds: Sleep between polls (default: 0.333s)
            timezone: Zone for "now" and therefore for cron evaluation
            clock: Override for the current time, mainly for tests
        """
        if interval_seconds <= 0:
            raise ConfigError(f"Poll interval must be positive, got {interval_seconds}")

        self.backend = backend or InProcessBackend()
        self.dispatcher = dispatcher or ThreadDispatcher()
        self.interval = interval_seconds
        self.timezone = timezone
        self._clock = clock

        self._jobs: dict[str, JobDescriptor] = {}
        self._replaced: set[str] = set()
        self._jobs_lock = threading.Lock()
        self._loop = PollLoop()
        self._stats = SchedulerStats()

    # === Job Table ===

    @property
    def jobs(self) -> Mapping[str, JobDescriptor]:
        """Read-only view of the job table."""
        return MappingProxyType(self._jobs)

    def register(
        self,
        name: str,
        spec: ScheduleSpec | Mapping[str, Any] | Schedule,
        action: Action,
    ) -> JobDescriptor:
        """Register ``action`` to run on ``spec``.

        Registering an existing name replaces that job. Its tracked next-due
        time is discarded at the start of the next tick, on the poll thread,
        so the new schedule applies from that tick on.

        Raises:
            ConfigError: bad schedule definition
            ParseError: invalid cron text
            SearchExhausted: the cron expression never matches
        """
        if not callable(action):
            raise ConfigError(f"Action for job {name!r} is not callable").with_context(job=name)

        schedule = build_schedule(spec)
        schedule.next_occurrence(self.now())

        job = JobDescriptor(name=str(name), schedule=schedule, action=action)
        with self._jobs_lock:
            if job.name in self._jobs:
                self._replaced.add(job.name)
                logger.info("job_replaced", job=job.name, schedule=str(schedule))
            else:
                logger.info("job_registered", job=job.name, schedule=str(schedule))
            self._jobs[job.name] = job
        return job

    def unregister(self, name: str) -> bool:
        """Remove a job. Returns False if it was not registered."""
        with self._jobs_lock:
            removed = self._jobs.pop(name, None) is not None
        if removed:
            logger.info("job_unregistered", job=name)
        return removed

    def job(
        self,
        name: str,
        *,
        every: float | None = None,
        cron: str | None = None,
    ) -> Callable[[Action], Action]:
        """Decorator form of :meth:`register`.

        Example:
            >>> @scheduler.job("cleanup", cron="0 */6 * * *")
            ... def cleanup():
            ...     purge_temp_files()
        """
        spec = ScheduleSpec(every=every, cron=cron)

        def decorator(action: Action) -> Action:
            self.register(name, spec, action)
            return action

        return decorator

    # === Lifecycle ===

    def start(self) -> None:
        """Start the poll loop in a background thread."""
        if self._loop.is_running:
            logger.warning("scheduler_already_running")
            return

        logger.info(
            "scheduler_starting",
            backend=self.backend.name,
            dispatcher=self.dispatcher.name,
            interval=self.interval,
            jobs=len(self._jobs),
        )
        self._loop.start(self.tick, self.interval)

    def stop(self) -> None:
        """Ask the poll loop to exit; in-flight polls are not awaited."""
        logger.info("scheduler_stopping")
        self._loop.stop()

    def join(self, timeout: float | None = None) -> bool:
        """Block until the poll loop exits. Returns True once it has."""
        return self._loop.join(timeout)

    @property
    def is_running(self) -> bool:
        return self._loop.is_running

    # === Tick Processing ===

    def now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        return datetime.now(self.timezone)

    def tick(self, now: datetime | None = None) -> list[str]:
        """Run one poll: advance the backend and dispatch due jobs.

        Args:
            now: Poll time (default: current time in the scheduler's zone)

        Returns:
            Names of the jobs dispatched in this tick.
        """
        now = now or self.now()
        self._stats.tick_count += 1
        self._stats.last_tick = now

        with self._jobs_lock:
            jobs = dict(self._jobs)
            replaced, self._replaced = self._replaced, set()

        with LogContext(tick=self._stats.tick_count):
            try:
                for name in replaced:
                    self.backend.forget(name)
                due = self.backend.advance(jobs, now)
            except BackendUnavailable as e:
                with self._jobs_lock:
                    self._replaced |= replaced
                self._stats.ticks_skipped += 1
                self._stats.last_error = str(e)
                logger.warning("tick_skipped", backend=self.backend.name, error=e)
                return []

            fired = []
            for name, job in due.items():
                try:
                    self.dispatcher.dispatch(job)
                except Exception as e:
                    self._stats.dispatch_failures += 1
                    self._stats.last_error = str(e)
                    logger.exception(
                        "dispatch_failed", job=name, category=categorize_error(e).value
                    )
                    continue
                self._stats.jobs_fired += 1
                fired.append(name)
                logger.info("job_dispatched", job=name, at=now.isoformat())

        return fired

    # === Health & Stats ===

    def health(self) -> dict[str, Any]:
        """Loop, backend and job-table status in one dict."""
        backend_health = self.backend.health()
        loop_health = self._loop.health()
        return {
            "healthy": loop_health["healthy"] and backend_health.get("healthy", False),
            "loop": loop_health,
            "backend": backend_health,
            "dispatcher": self.dispatcher.name,
            "jobs": sorted(self._jobs),
            "stats": {
                "tick_count": self._stats.tick_count,
                "jobs_fired": self._stats.jobs_fired,
                "ticks_skipped": self._stats.ticks_skipped,
                "dispatch_failures": self._stats.dispatch_failures,
                "last_error": self._stats.last_error,
            },
        }

    def get_stats(self) -> SchedulerStats:
        return self._stats


__all__ = ["Scheduler", "SchedulerStats"]
