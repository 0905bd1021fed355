"""Tests for backend, dispatcher and scheduler factories."""

from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from spine_cron.core.errors import ConfigError, UnsupportedBackend
from spine_cron.core.settings import BackendKind, DispatcherKind, SchedulerSettings, get_settings
from spine_cron.scheduling import (
    DistributedBackend,
    InProcessBackend,
    MemoryStore,
    ProcessDispatcher,
    RedisStore,
    Scheduler,
    ThreadDispatcher,
    create_backend,
    create_dispatcher,
    create_scheduler,
    run_scheduler,
)
from tests._support.jobs import noop

redis = pytest.importorskip("redis")


class TestCreateBackend:
    def test_default_is_in_process(self):
        assert isinstance(create_backend(), InProcessBackend)

    @pytest.mark.parametrize("selector", ["memory", "in_process", "InProcess", BackendKind.MEMORY])
    def test_memory_selectors(self, selector):
        assert isinstance(create_backend(selector), InProcessBackend)

    def test_redis_with_client(self):
        client = MagicMock()
        backend = create_backend("redis", client=client, prefix="ops")

        assert isinstance(backend, DistributedBackend)
        assert isinstance(backend.store, RedisStore)
        assert backend.store.client is client
        assert backend.prefix == "ops"

    def test_distributed_alias_with_store(self):
        store = MemoryStore()
        backend = create_backend("distributed", store=store)

        assert isinstance(backend, DistributedBackend)
        assert backend.store is store

    def test_redis_from_url(self):
        with pytest.MonkeyPatch.context() as mp:
            mock_from_url = MagicMock(return_value=MagicMock())
            mp.setattr(redis, "from_url", mock_from_url)

            backend = create_backend(BackendKind.REDIS, redis_url="redis://cache:6379/3")

            mock_from_url.assert_called_once_with("redis://cache:6379/3", decode_responses=False)
            assert backend.store.client is mock_from_url.return_value

    def test_reset_passed_through(self):
        store = MemoryStore()
        store.set("spine_cron_job_a", 1)

        create_backend("redis", store=store, reset=True)

        assert store.keys() == []

    def test_instance_passes_through(self):
        backend = InProcessBackend()
        assert create_backend(backend) is backend

    @pytest.mark.parametrize("selector", ["postgres", "", 42, None])
    def test_unknown_selector(self, selector):
        with pytest.raises(UnsupportedBackend) as exc_info:
            create_backend(selector)

        assert isinstance(exc_info.value, ConfigError)
        assert exc_info.value.selector == selector


class TestCreateDispatcher:
    def test_default_is_thread(self):
        assert isinstance(create_dispatcher(), ThreadDispatcher)

    def test_process(self):
        assert isinstance(create_dispatcher(DispatcherKind.PROCESS), ProcessDispatcher)
        assert isinstance(create_dispatcher("process"), ProcessDispatcher)

    def test_instance_passes_through(self):
        dispatcher = ThreadDispatcher()
        assert create_dispatcher(dispatcher) is dispatcher

    def test_unknown(self):
        with pytest.raises(ConfigError, match="Unsupported dispatcher"):
            create_dispatcher("celery")


class TestCreateScheduler:
    @pytest.fixture(autouse=True)
    def clean_settings(self, monkeypatch):
        for name in ("BACKEND", "DISPATCHER", "POLL_INTERVAL", "TIMEZONE"):
            monkeypatch.delenv(f"SPINE_CRON_{name}", raising=False)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_from_settings(self):
        settings = SchedulerSettings(poll_interval=2.5, timezone="Asia/Tokyo", dispatcher="process")

        scheduler = create_scheduler(settings)

        assert isinstance(scheduler, Scheduler)
        assert isinstance(scheduler.backend, InProcessBackend)
        assert isinstance(scheduler.dispatcher, ProcessDispatcher)
        assert scheduler.interval == 2.5
        assert scheduler.timezone == ZoneInfo("Asia/Tokyo")

    def test_overrides(self):
        scheduler = create_scheduler(SchedulerSettings(), poll_interval=1.0)
        assert scheduler.interval == 1.0

    def test_invalid_override_rejected(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            create_scheduler(SchedulerSettings(), poll_interval=0)

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("SPINE_CRON_POLL_INTERVAL", "0.75")

        assert create_scheduler().interval == 0.75

    def test_redis_backend(self):
        with pytest.MonkeyPatch.context() as mp:
            mock_from_url = MagicMock(return_value=MagicMock())
            mp.setattr(redis, "from_url", mock_from_url)

            settings = SchedulerSettings(backend="redis", redis_url="redis://cache:6379/0", key_prefix="ops")
            scheduler = create_scheduler(settings)

            mock_from_url.assert_called_once_with("redis://cache:6379/0", decode_responses=False)
            assert isinstance(scheduler.backend, DistributedBackend)
            assert scheduler.backend.prefix == "ops"


class TestRunScheduler:
    @pytest.fixture
    def settings(self):
        return SchedulerSettings(backend="memory", dispatcher="thread", poll_interval=0.02)

    def test_configures_before_starting(self, settings):
        seen = []

        def configure(scheduler):
            seen.append(scheduler.is_running)
            scheduler.register("sync", {"every": 60}, noop)

        scheduler = run_scheduler(configure, settings=settings)
        try:
            assert seen == [False]
            assert scheduler.is_running
            assert list(scheduler.jobs) == ["sync"]
        finally:
            scheduler.stop()
            scheduler.join(timeout=2)

    @pytest.mark.slow
    def test_join_blocks_until_stopped(self, settings):
        def configure(scheduler):
            scheduler.register("shutdown", {"every": 0.05}, scheduler.stop)

        scheduler = run_scheduler(configure, join=True, settings=settings)

        assert not scheduler.is_running
        assert scheduler.get_stats().jobs_fired >= 1
