"""Tests for PollLoop."""

import threading
import time

import pytest

from spine_cron.scheduling import PollLoop


@pytest.mark.slow
class TestPollLoop:
    """Test the threaded poll loop."""

    def test_start_and_stop(self):
        """Loop starts, ticks, and stops cleanly."""
        loop = PollLoop()
        tick_count = 0

        def tick():
            nonlocal tick_count
            tick_count += 1

        loop.start(tick, interval_seconds=0.1)
        assert loop.is_running

        # Wait for a few ticks
        time.sleep(0.35)

        loop.stop()
        assert not loop.is_running
        assert loop.join(timeout=2)

        # Should have ticked at least 2 times
        assert tick_count >= 2
        assert loop.tick_count == tick_count

    def test_ticks_immediately_on_start(self):
        """First tick happens before the first sleep."""
        loop = PollLoop()
        ticked = threading.Event()

        loop.start(ticked.set, interval_seconds=60)
        try:
            assert ticked.wait(1)
        finally:
            loop.stop()
        assert loop.join(timeout=2)

    def test_health_before_start(self):
        """Health returns unhealthy before start."""
        loop = PollLoop()
        health = loop.health()

        assert health["healthy"] is False
        assert health["tick_count"] == 0
        assert health["last_tick"] is None

    def test_health_after_start(self):
        """Health returns healthy after start."""
        loop = PollLoop()

        loop.start(lambda: None, interval_seconds=0.1)
        time.sleep(0.15)

        health = loop.health()
        assert health["healthy"] is True
        assert health["tick_count"] >= 1
        assert health["last_tick"] is not None
        assert health["interval_seconds"] == 0.1

        loop.stop()
        loop.join(timeout=2)

    def test_double_start_ignored(self):
        """Double start is ignored with warning."""
        loop = PollLoop()

        loop.start(lambda: None, interval_seconds=1.0)
        first_worker = loop._worker
        loop.start(lambda: None, interval_seconds=1.0)  # Should be ignored

        assert loop.is_running
        assert loop._worker is first_worker

        loop.stop()
        loop.join(timeout=2)

    def test_tick_exception_keeps_loop_running(self):
        """A failing tick is logged and the loop continues."""
        loop = PollLoop()
        calls = 0

        def failing_tick():
            nonlocal calls
            calls += 1
            raise RuntimeError("poll failed")

        loop.start(failing_tick, interval_seconds=0.05)
        time.sleep(0.3)

        assert loop.is_running
        assert calls >= 2

        loop.stop()
        loop.join(timeout=2)

    def test_stop_does_not_wait_for_tick(self):
        """stop() returns while a tick is still in flight; join() waits."""
        loop = PollLoop()
        entered = threading.Event()
        release = threading.Event()

        def slow_tick():
            entered.set()
            release.wait(5)

        loop.start(slow_tick, interval_seconds=0.05)
        assert entered.wait(1)

        start = time.monotonic()
        loop.stop()
        assert time.monotonic() - start < 0.5
        assert loop.join(timeout=0.1) is False

        release.set()
        assert loop.join(timeout=2) is True

    def test_join_without_start(self):
        assert PollLoop().join(timeout=0.1) is True

    def test_restart_after_stop(self):
        """Loop can be started again after it has exited."""
        loop = PollLoop()
        loop.start(lambda: None, interval_seconds=0.05)
        loop.stop()
        assert loop.join(timeout=2)

        loop.start(lambda: None, interval_seconds=0.05)
        assert loop.is_running
        loop.stop()
        assert loop.join(timeout=2)
