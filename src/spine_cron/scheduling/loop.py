"""Threading-based poll loop.

A daemon thread alternates between one ``tick()`` and a fixed sleep::

    start(tick, interval)
        └── thread: tick() → wait(interval) → tick() → ...
    stop()   sets the stop flag and returns at once
    join()   waits for the thread to exit

The sleep does not subtract the time spent in ``tick``, so the effective
period drifts longer under load.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from spine_cron.core.logging import get_logger

logger = get_logger(__name__)

TickCallback = Callable[[], Any]

DEFAULT_INTERVAL = 0.333


class PollLoop:
    """Runs a tick callback at a fixed interval in a daemon thread.

    Example:
        >>> loop = PollLoop()
        >>> loop.start(lambda: print("tick"), interval_seconds=1.0)
        >>> loop.stop()
        >>> loop.join()
    """

    def __init__(self, name: str = "spine-cron-poller") -> None:
        self.name = name
        self._stopping = threading.Event()
        self._worker: threading.Thread | None = None
        self._ticks = 0
        self._last_tick_at: datetime | None = None
        self._interval: float = DEFAULT_INTERVAL
        self._counters = threading.Lock()

    def start(self, tick: TickCallback, interval_seconds: float = DEFAULT_INTERVAL) -> None:
        """Start ticking in a daemon thread.

        Args:
            tick: Called once per tick. Exceptions are logged.
            interval_seconds: Sleep between ticks.
        """
        if self.is_running:
            logger.warning("poll_loop_already_started", loop=self.name)
            return

        self._interval = interval_seconds
        self._stopping.clear()
        self._worker = threading.Thread(
            target=self._run, args=(tick, interval_seconds), daemon=True, name=self.name
        )
        self._worker.start()

    def _run(self, tick: TickCallback, interval: float) -> None:
        logger.info("poll_loop_started", loop=self.name, interval=interval)
        while not self._stopping.is_set():
            with self._counters:
                self._ticks += 1
                self._last_tick_at = datetime.now(UTC)
            try:
                tick()
            except Exception:
                logger.exception("tick_failed", loop=self.name)
            self._stopping.wait(interval)
        logger.info("poll_loop_stopped", loop=self.name)

    def stop(self) -> None:
        """Ask the loop to exit at its next safe point; does not wait."""
        self._stopping.set()

    def join(self, timeout: float | None = None) -> bool:
        """Block until the loop exits. Returns True once it has."""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def health(self) -> dict[str, Any]:
        last = self._last_tick_at
        return {
            "healthy": self.is_running,
            "tick_count": self._ticks,
            "last_tick": None if last is None else last.isoformat(),
            "interval_seconds": self._interval,
        }

    @property
    def is_running(self) -> bool:
        """True while the worker thread is alive and not asked to stop."""
        worker = self._worker
        return worker is not None and worker.is_alive() and not self._stopping.is_set()

    @property
    def tick_count(self) -> int:
        return self._ticks

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick_at


__all__ = ["PollLoop", "TickCallback", "DEFAULT_INTERVAL"]
