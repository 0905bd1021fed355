"""Shared key-value stores for the distributed backend.

The distributed backend needs four things from its store: plain get/set,
set-if-absent, and an optimistic read-then-conditional-write per key. The
conditional write must be linearizable; without it two processes can claim
the same occurrence.

┌──────────────────────────────────────────────────────────────────────────────┐
│  OPTIMISTIC CONCURRENCY                                                       │
│                                                                               │
│   read = store.read_versioned(key)         value + version marker            │
│   if due(read.value):                                                         │
│       ok = store.write_if_unchanged(read, next_value)                        │
│       ok == False  →  another process changed the key first                  │
│   else:                                                                       │
│       store.release(read)                                                     │
│                                                                               │
│   RedisStore:  WATCH key / GET key  →  MULTI / SET / EXEC (WatchError)       │
│   MemoryStore: per-key version counter checked under a lock                  │
└──────────────────────────────────────────────────────────────────────────────┘

Values are integer seconds since the epoch.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from spine_cron.core.errors import BackendUnavailable
from spine_cron.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VersionedValue:
    """A value read together with the marker guarding a later write."""

    key: str
    value: int | None
    version: Any


@runtime_checkable
class SharedStore(Protocol):
    """Protocol for stores reachable from every cooperating scheduler."""

    name: str

    def get(self, key: str) -> int | None: ...

    def set(self, key: str, value: int) -> None: ...

    def set_if_absent(self, key: str, value: int) -> bool:
        """Store ``value`` only if ``key`` is missing. True when written."""
        ...

    def read_versioned(self, key: str) -> VersionedValue: ...

    def write_if_unchanged(self, read: VersionedValue, value: int) -> bool:
        """Write ``value`` unless the key changed since ``read``. True when written."""
        ...

    def release(self, read: VersionedValue) -> None:
        """Abandon a versioned read without writing."""
        ...

    def delete(self, key: str) -> None: ...

    def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; return how many."""
        ...

    def ping(self) -> bool: ...


# ------------------------------------------------------------------ #
# In-Memory Store
# ------------------------------------------------------------------ #


class MemoryStore:
    """Thread-safe in-process store with per-key version counters.

    Linearizable within one process, so several schedulers sharing one
    instance behave like cooperating processes sharing Redis.
    """

    name = "memory"

    def __init__(self) -> None:
        self._data: dict[str, int] = {}
        self._versions: dict[str, int] = {}
        self._lock = threading.Lock()

    def _bump(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    def get(self, key: str) -> int | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: int) -> None:
        with self._lock:
            self._data[key] = int(value)
            self._bump(key)

    def set_if_absent(self, key: str, value: int) -> bool:
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = int(value)
            self._bump(key)
            return True

    def read_versioned(self, key: str) -> VersionedValue:
        with self._lock:
            return VersionedValue(key, self._data.get(key), self._versions.get(key, 0))

    def write_if_unchanged(self, read: VersionedValue, value: int) -> bool:
        with self._lock:
            if self._versions.get(read.key, 0) != read.version:
                return False
            self._data[read.key] = int(value)
            self._bump(read.key)
            return True

    def release(self, read: VersionedValue) -> None:
        pass

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._bump(key)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._data if k.startswith(prefix)]
            for key in keys:
                del self._data[key]
                self._bump(key)
            return len(keys)

    def ping(self) -> bool:
        return True

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


# ------------------------------------------------------------------ #
# Redis Store
# ------------------------------------------------------------------ #


def _to_int(raw: Any) -> int | None:
    return None if raw is None else int(raw)


@contextmanager
def _unavailable_on_redis_errors(key: str | None = None) -> Iterator[None]:
    """Translate connection-level redis failures into BackendUnavailable."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as exc:
        raise BackendUnavailable(f"Redis unreachable: {exc}", cause=exc).with_context(
            backend="redis", key=key
        ) from exc


class RedisStore:
    """Redis-backed shared store.

    Conditional writes use WATCH/MULTI/EXEC on a dedicated pipeline per
    read, so each read holds its own connection until it is written or
    released.

    Example:
        store = RedisStore.from_url("redis://localhost:6379/0")
        backend = DistributedBackend(store, prefix="billing")
    """

    name = "redis"

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str = "redis://localhost:6379/0", **kwargs: Any) -> RedisStore:
        """Build a store from a connection URL (``redis://host:port/db``)."""
        return cls(redis.from_url(url, decode_responses=False, **kwargs))

    @property
    def client(self) -> redis.Redis:
        return self._client

    def get(self, key: str) -> int | None:
        with _unavailable_on_redis_errors(key):
            return _to_int(self._client.get(key))

    def set(self, key: str, value: int) -> None:
        with _unavailable_on_redis_errors(key):
            self._client.set(key, int(value))

    def set_if_absent(self, key: str, value: int) -> bool:
        with _unavailable_on_redis_errors(key):
            return bool(self._client.setnx(key, int(value)))

    def read_versioned(self, key: str) -> VersionedValue:
        pipe = self._client.pipeline()
        try:
            with _unavailable_on_redis_errors(key):
                pipe.watch(key)
                raw = pipe.get(key)
        except BackendUnavailable:
            pipe.reset()
            raise
        return VersionedValue(key, _to_int(raw), pipe)

    def write_if_unchanged(self, read: VersionedValue, value: int) -> bool:
        pipe = read.version
        try:
            with _unavailable_on_redis_errors(read.key):
                pipe.multi()
                pipe.set(read.key, int(value))
                pipe.execute()
            return True
        except WatchError:
            logger.debug("conditional_write_rejected", key=read.key)
            return False
        finally:
            pipe.reset()

    def release(self, read: VersionedValue) -> None:
        with _unavailable_on_redis_errors(read.key):
            read.version.reset()

    def delete(self, key: str) -> None:
        with _unavailable_on_redis_errors(key):
            self._client.delete(key)

    def delete_prefix(self, prefix: str) -> int:
        with _unavailable_on_redis_errors(prefix):
            keys = list(self._client.scan_iter(match=f"{prefix}*"))
            if keys:
                self._client.delete(*keys)
            return len(keys)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except (RedisConnectionError, RedisTimeoutError):
            return False


__all__ = [
    "SharedStore",
    "VersionedValue",
    "MemoryStore",
    "RedisStore",
]
