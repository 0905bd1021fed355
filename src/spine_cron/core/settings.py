"""Scheduler settings.

All fields can be set via ``SPINE_CRON_*`` environment variables (e.g.
``SPINE_CRON_BACKEND=redis``) or a ``.env`` file.

Examples:
    >>> from spine_cron.core.settings import SchedulerSettings
    >>> settings = SchedulerSettings(backend="redis", redis_url="redis://cache:6379/0")
    >>> settings.backend
    <BackendKind.REDIS: 'redis'>
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendKind(str, Enum):
    """Supported scheduling backends."""

    MEMORY = "memory"
    REDIS = "redis"

    @classmethod
    def _missing_(cls, value: object) -> BackendKind | None:
        aliases = {"in_process": cls.MEMORY, "inprocess": cls.MEMORY, "distributed": cls.REDIS}
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None


class DispatcherKind(str, Enum):
    """Supported job dispatchers."""

    THREAD = "thread"
    PROCESS = "process"


class SchedulerSettings(BaseSettings):
    """spine-cron centralized configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPINE_CRON_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Components ───────────────────────────────────────────────
    backend: BackendKind = Field(default=BackendKind.MEMORY)
    dispatcher: DispatcherKind = Field(default=DispatcherKind.THREAD)

    # ── Polling ──────────────────────────────────────────────────
    poll_interval: float = Field(default=0.333, gt=0, description="Seconds between polls")
    timezone: str = Field(default="UTC", description="Zone used for 'now' and cron evaluation")

    # ── Redis ────────────────────────────────────────────────────
    redis_url: str = Field(default="redis://localhost:6379/0")
    key_prefix: str = Field(default="spine_cron", min_length=1)
    reset: bool = Field(default=False, description="Delete stored job timings at startup")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache(maxsize=1)
def get_settings() -> SchedulerSettings:
    """Return the process-wide settings, loaded once from the environment."""
    return SchedulerSettings()


__all__ = [
    "BackendKind",
    "DispatcherKind",
    "SchedulerSettings",
    "get_settings",
]
