"""Factories wiring scheduler components from tagged configuration.

Backends and dispatchers are chosen by value (``BackendKind``,
``DispatcherKind``), never by subclassing. An already-built backend or
dispatcher instance is accepted as-is.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import redis

from spine_cron.core.errors import ConfigError, UnsupportedBackend
from spine_cron.core.settings import BackendKind, DispatcherKind, SchedulerSettings, get_settings

from .dispatch import Dispatcher, ProcessDispatcher, ThreadDispatcher
from .distributed_backend import DEFAULT_PREFIX, DistributedBackend
from .memory_backend import InProcessBackend
from .protocol import SchedulingBackend
from .service import Scheduler
from .stores import RedisStore, SharedStore


def create_backend(
    selector: BackendKind | str | SchedulingBackend = BackendKind.MEMORY,
    *,
    redis_url: str = "redis://localhost:6379/0",
    client: redis.Redis | None = None,
    store: SharedStore | None = None,
    prefix: str = DEFAULT_PREFIX,
    reset: bool = False,
) -> SchedulingBackend:
    """Build a scheduling backend.

    Args:
        selector: ``"memory"`` / ``"redis"`` (or their aliases), or a backend instance
        redis_url: Connection URL when no ``client`` or ``store`` is given
        client: Existing redis client to reuse
        store: Existing shared store, overriding ``client`` and ``redis_url``
        prefix: Key namespace for the distributed backend
        reset: Delete stored job timings at startup (distributed only)

    Raises:
        UnsupportedBackend: unknown selector
    """
    if not isinstance(selector, (str, BackendKind)) and isinstance(selector, SchedulingBackend):
        return selector

    try:
        kind = BackendKind(selector)
    except (ValueError, TypeError) as exc:
        raise UnsupportedBackend(selector) from exc

    if kind is BackendKind.MEMORY:
        return InProcessBackend()

    if store is None:
        store = RedisStore(client) if client is not None else RedisStore.from_url(redis_url)
    return DistributedBackend(store, prefix=prefix, reset=reset)


def create_dispatcher(selector: DispatcherKind | str | Dispatcher = DispatcherKind.THREAD) -> Dispatcher:
    """Build a job dispatcher from a ``DispatcherKind`` or return an instance unchanged."""
    if not isinstance(selector, (str, DispatcherKind)) and isinstance(selector, Dispatcher):
        return selector

    try:
        kind = DispatcherKind(selector)
    except (ValueError, TypeError) as exc:
        raise ConfigError(f"Unsupported dispatcher {selector!r}") from exc

    if kind is DispatcherKind.PROCESS:
        return ProcessDispatcher()
    return ThreadDispatcher()


def create_scheduler(
    settings: SchedulerSettings | None = None,
    **overrides: Any,
) -> Scheduler:
    """Create a scheduler with all components wired from settings.

    Args:
        settings: Settings to use (default: loaded from the environment)
        **overrides: Field overrides, validated like settings fields

    Example:
        >>> scheduler = create_scheduler(backend="redis", redis_url="redis://cache:6379/0")
        >>> scheduler.register("sync", {"every": 30}, sync_accounts)
        >>> scheduler.start()
    """
    settings = settings or get_settings()
    if overrides:
        settings = SchedulerSettings.model_validate({**settings.model_dump(), **overrides})

    backend = create_backend(
        settings.backend,
        redis_url=settings.redis_url,
        prefix=settings.key_prefix,
        reset=settings.reset,
    )
    return Scheduler(
        backend=backend,
        dispatcher=create_dispatcher(settings.dispatcher),
        interval_seconds=settings.poll_interval,
        timezone=settings.tzinfo,
    )



def run_scheduler(
    configure: Callable[[Scheduler], Any],
    *,
    join: bool = False,
    settings: SchedulerSettings | None = None,
    **overrides: Any,
) -> Scheduler:
    """Create a scheduler, let ``configure`` register jobs, then start it.

    Args:
        configure: Called with the new scheduler before the loop starts
        join: Block until the loop exits (keeps a worker process alive)
        settings: Passed to :func:`create_scheduler`
        **overrides: Passed to :func:`create_scheduler`

    Example:
        >>> def jobs(scheduler):
        ...     scheduler.register("sync", {"every": 30}, sync_accounts)
        ...     scheduler.register("digest", {"cron": "0 7 * * mon"}, send_digest)
        >>> run_scheduler(jobs, join=True)
    """
    scheduler = create_scheduler(settings, **overrides)
    configure(scheduler)
    scheduler.start()
    if join:
        scheduler.join()
    return scheduler


__all__ = ["create_backend", "create_dispatcher", "create_scheduler", "run_scheduler"]
