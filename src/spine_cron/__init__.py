"""
spine-cron - recurring-job scheduling with cron and interval schedules.

- spine_cron.core: errors, structured logging, settings
- spine_cron.scheduling: cron parsing, backends, poll loop, scheduler
- spine_cron.cli: ``spine-cron`` command line
"""

__version__ = "0.1.0"

from spine_cron.core.errors import (  # noqa: E402
    BackendUnavailable,
    ConfigError,
    ParseError,
    SchedulerError,
    SearchExhausted,
    UnsupportedBackend,
)
from spine_cron.scheduling import (  # noqa: E402
    CronExpression,
    IntervalSchedule,
    Scheduler,
    ScheduleSpec,
    create_scheduler,
    parse_cron,
    run_scheduler,
)

__all__ = [
    "__version__",
    "CronExpression",
    "IntervalSchedule",
    "ScheduleSpec",
    "Scheduler",
    "create_scheduler",
    "run_scheduler",
    "parse_cron",
    "SchedulerError",
    "ParseError",
    "ConfigError",
    "UnsupportedBackend",
    "BackendUnavailable",
    "SearchExhausted",
]
