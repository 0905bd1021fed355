"""Job and dispatcher doubles for scheduling tests."""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from datetime import datetime

from spine_cron.scheduling import (
    InProcessBackend,
    IntervalSchedule,
    JobDescriptor,
    MemoryStore,
    VersionedValue,
    parse_cron,
)


class RecordingDispatcher:
    """Dispatcher that records job names instead of launching anything."""

    name = "recording"

    def __init__(self, fail_for: set[str] | None = None):
        self.fired: list[str] = []
        self._fail_for = fail_for or set()
        self._lock = threading.Lock()

    def dispatch(self, job: JobDescriptor) -> None:
        if job.name in self._fail_for:
            raise RuntimeError(f"cannot launch {job.name}")
        with self._lock:
            self.fired.append(job.name)


class InterleavingStore(MemoryStore):
    """MemoryStore that runs a hook right after the next versioned read of a key.

    Lets a test slot a competing poll between one process's read and its
    conditional write.
    """

    def __init__(self) -> None:
        super().__init__()
        self._hooks: dict[str, Callable[[], object]] = {}

    def after_read(self, key: str, hook: Callable[[], object]) -> None:
        self._hooks[key] = hook

    def read_versioned(self, key: str) -> VersionedValue:
        read = super().read_versioned(key)
        hook = self._hooks.pop(key, None)
        if hook is not None:
            hook()
        return read


class _HookAfterFirst(dict):
    """Job table that runs a hook once the first job has been handled."""

    def __init__(self, jobs: Mapping[str, JobDescriptor], hook: Callable[[], object]) -> None:
        super().__init__(jobs)
        self._hook = hook

    def items(self):
        for index, pair in enumerate(list(super().items())):
            yield pair
            if index == 0:
                self._hook()


class MidPollBackend(InProcessBackend):
    """InProcessBackend that runs a hook partway through its next poll.

    Stands in for another thread calling into the scheduler while the poll
    loop is inside ``advance``.
    """

    def __init__(self) -> None:
        super().__init__()
        self._hook: Callable[[], object] | None = None

    def during_next_poll(self, hook: Callable[[], object]) -> None:
        self._hook = hook

    def advance(self, jobs: Mapping[str, JobDescriptor], now: datetime) -> dict[str, JobDescriptor]:
        hook, self._hook = self._hook, None
        if hook is not None:
            jobs = _HookAfterFirst(jobs, hook)
        return super().advance(jobs, now)


def noop() -> None:
    pass


def every(name: str, seconds: float) -> JobDescriptor:
    return JobDescriptor(name=name, schedule=IntervalSchedule(seconds), action=noop)


def cron(name: str, text: str) -> JobDescriptor:
    return JobDescriptor(name=name, schedule=parse_cron(text), action=noop)


def table(*jobs: JobDescriptor) -> dict[str, JobDescriptor]:
    return {job.name: job for job in jobs}
