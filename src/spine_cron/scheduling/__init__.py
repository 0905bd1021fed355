"""Scheduling package for spine-cron.

Manifesto:
    Recurring jobs in a multi-instance deployment need more than
    ``time.sleep()`` in a loop. Each occurrence must run once, not once per
    instance, and a job registered between two polls must not lose its first
    occurrence. This package separates the cron arithmetic, the per-job
    timing state, and the launching of work so each part can be tested
    alone.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SPINE-CRON SCHEDULER                                                         │
│                                                                               │
│  Quick Start:                                                                 │
│  ┌──────────────────────────────────────────────────────────────────────┐   │
│  │   from spine_cron.scheduling import create_scheduler, ScheduleSpec   │   │
│  │                                                                      │   │
│  │   scheduler = create_scheduler()            # settings from env      │   │
│  │   scheduler.register("heartbeat", ScheduleSpec(every=5), beat)       │   │
│  │   scheduler.register("report", {"cron": "0 8 * * mon-fri"}, report)  │   │
│  │   scheduler.start()                                                  │   │
│  │   scheduler.join()                                                   │   │
│  └──────────────────────────────────────────────────────────────────────┘   │
│                                                                               │
│  Components:                                                                  │
│   CronExpression / IntervalSchedule  ─ when (Schedule protocol)              │
│   InProcessBackend / DistributedBackend ─ who is due now (at-most-once)      │
│   MemoryStore / RedisStore           ─ shared state for the distributed one  │
│   ThreadDispatcher / ProcessDispatcher ─ how due jobs are launched           │
│   PollLoop + Scheduler               ─ the background loop and job table     │
└──────────────────────────────────────────────────────────────────────────────┘

Tags:
    spine-cron, scheduling, cron, interval, distributed, redis, at-most-once
"""

from __future__ import annotations

from .cron import CronExpression, parse_cron
from .dispatch import Dispatcher, ProcessDispatcher, ThreadDispatcher
from .distributed_backend import DistributedBackend
from .factory import create_backend, create_dispatcher, create_scheduler, run_scheduler
from .job import JobDescriptor
from .loop import PollLoop
from .memory_backend import InProcessBackend
from .protocol import BackendHealth, SchedulingBackend
from .schedules import IntervalSchedule, Schedule, ScheduleSpec, build_schedule
from .service import Scheduler, SchedulerStats
from .stores import MemoryStore, RedisStore, SharedStore, VersionedValue

__all__ = [
    # Schedules
    "Schedule",
    "CronExpression",
    "parse_cron",
    "IntervalSchedule",
    "ScheduleSpec",
    "build_schedule",
    # Jobs
    "JobDescriptor",
    # Backends
    "SchedulingBackend",
    "BackendHealth",
    "InProcessBackend",
    "DistributedBackend",
    # Stores
    "SharedStore",
    "VersionedValue",
    "MemoryStore",
    "RedisStore",
    # Dispatch
    "Dispatcher",
    "ThreadDispatcher",
    "ProcessDispatcher",
    # Loop & service
    "PollLoop",
    "Scheduler",
    "SchedulerStats",
    # Factories
    "create_backend",
    "create_dispatcher",
    "create_scheduler",
    "run_scheduler",
]
