"""Zone-safe datetime arithmetic.

Two aware datetimes sharing one tzinfo are added and compared on their
wall-clock fields, with ``fold`` ignored. On a clocks-go-back night that
puts 01:30 (second pass) before 01:10 (first pass). Durations are therefore
added, and instants compared, in UTC. Naive datetimes are left as they are.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta


def to_utc(dt: datetime) -> datetime:
    """The same instant in UTC (naive datetimes pass through)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC)


def shift(dt: datetime, delta: timedelta) -> datetime:
    """Add elapsed time and return the result in ``dt``'s zone, ``fold`` set."""
    if dt.tzinfo is None:
        return dt + delta
    return (dt.astimezone(UTC) + delta).astimezone(dt.tzinfo)


def start_of_day(day: date, like: datetime) -> datetime:
    """First instant of ``day`` in ``like``'s zone.

    A midnight that falls in a spring-forward gap resolves to the first wall
    time that exists on that day.
    """
    if like.tzinfo is None:
        return datetime.combine(day, time())
    midnight = datetime.combine(day, time(), tzinfo=like.tzinfo)
    return midnight.astimezone(UTC).astimezone(like.tzinfo)


__all__ = ["to_utc", "shift", "start_of_day"]
