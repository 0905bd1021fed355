"""Job dispatchers - isolated, fire-and-forget execution of due jobs.

The poll loop hands each due job to a dispatcher and moves on. A dispatcher
must never block the caller on the job, must never let a job's exception
reach the caller, and never retries.

ARCHITECTURE
────────────
::

    Dispatcher (protocol)
      ├── ThreadDispatcher   ─ one daemon thread per firing (default)
      │                        coroutine functions run under asyncio.run
      └── ProcessDispatcher  ─ one child process per firing, never joined
                               action must be picklable (top-level function)

A job that hangs only ties up its own thread or process.
"""

from __future__ import annotations

import asyncio
import inspect
import multiprocessing
import threading
from typing import Any, Protocol, runtime_checkable

from spine_cron.core.errors import categorize_error
from spine_cron.core.logging import bind_context, clear_context, get_logger, unbind_context

from .job import Action, JobDescriptor

logger = get_logger(__name__)


@runtime_checkable
class Dispatcher(Protocol):
    """Launches a job's action without waiting for it."""

    name: str

    def dispatch(self, job: JobDescriptor) -> None: ...


def run_action(name: str, action: Action) -> None:
    """Invoke ``action`` and log, rather than raise, any failure.

    Events the action logs through structlog carry ``job=<name>``.
    """
    clear_context()
    bind_context(job=name)
    try:
        if inspect.iscoroutinefunction(action):
            asyncio.run(action())
        else:
            result = action()
            if inspect.iscoroutine(result):
                asyncio.run(result)
    except Exception as exc:
        logger.exception("job_failed", job=name, category=categorize_error(exc).value)
    else:
        logger.debug("job_finished", job=name)
    finally:
        unbind_context("job")


class ThreadDispatcher:
    """Runs each firing in its own daemon thread.

    Example:
        >>> dispatcher = ThreadDispatcher()
        >>> dispatcher.dispatch(JobDescriptor("ping", IntervalSchedule(5), ping))
    """

    name = "thread"

    def __init__(self) -> None:
        self._dispatched = 0

    def dispatch(self, job: JobDescriptor) -> None:
        thread = threading.Thread(
            target=run_action,
            args=(job.name, job.action),
            daemon=True,
            name=f"spine-cron-job-{job.name}",
        )
        thread.start()
        self._dispatched += 1

    @property
    def dispatched(self) -> int:
        """Number of firings launched so far."""
        return self._dispatched


class ProcessDispatcher:
    """Runs each firing in its own child process.

    Crashes, including hard ones that would take a thread's interpreter
    down, stay in the child. Actions cross the process boundary, so they
    must be picklable under the chosen start method.
    """

    name = "process"

    def __init__(self, start_method: str | None = None) -> None:
        self._context: Any = multiprocessing.get_context(start_method)
        self._dispatched = 0

    def dispatch(self, job: JobDescriptor) -> None:
        process = self._context.Process(
            target=run_action,
            args=(job.name, job.action),
            name=f"spine-cron-job-{job.name}",
        )
        process.start()
        self._dispatched += 1
        logger.debug("job_process_started", job=job.name, pid=process.pid)

    @property
    def dispatched(self) -> int:
        return self._dispatched


__all__ = [
    "Dispatcher",
    "ThreadDispatcher",
    "ProcessDispatcher",
    "run_action",
]
