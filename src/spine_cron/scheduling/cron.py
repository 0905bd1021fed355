"""Cron expression parsing and next-occurrence search.

A ``CronExpression`` holds six field predicates (seconds, minutes, hours,
day-of-month, month, weekday) plus an optional set of ordinal-weekday
tokens such as ``mon#1``. Each predicate is either ``None`` ("any") or a
frozen set of allowed integers.

┌──────────────────────────────────────────────────────────────────────────────┐
│  FIELD GRAMMAR                                                                │
│                                                                               │
│   [sec] min hour dom month dow         (5 fields → seconds = {0})            │
│                                                                               │
│   *            any value                                                      │
│   5            literal (clamped into the field range)                         │
│   1,15,30      list of items                                                  │
│   9-17         range                  9-17/2   stepped range                  │
│   */15         whole range stepped    5/15     5-max stepped                  │
│   mon-fri      weekday names          jan,jul  month names                    │
│   fri#2        second Friday of the month (weekday field only)               │
│                                                                               │
│  NEXT OCCURRENCE (coarse to fine, starting at from + 1s)                      │
│                                                                               │
│   date fails?   → jump to 00:00:00 of the next day                            │
│   hour fails?   → jump to the top of the next hour (elapsed time)             │
│   minute fails? → jump to the top of the next minute                          │
│   second fails? → +1 second                                                   │
│   otherwise     → occurrence found                                            │
└──────────────────────────────────────────────────────────────────────────────┘

The date predicate ANDs day-of-month, month, weekday and ordinal weekday,
even when both day-of-month and weekday are restricted. This differs from
the POSIX rule, which ORs the two day fields.

Example:
    >>> from datetime import datetime, UTC
    >>> expr = CronExpression.parse("*/15 9-17 * * mon-fri")
    >>> expr.next_occurrence(datetime(2024, 1, 6, 12, 0, tzinfo=UTC))
    datetime.datetime(2024, 1, 8, 9, 0, tzinfo=datetime.timezone.utc)
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from spine_cron.core.errors import ParseError, SearchExhausted

from .timeutil import shift, start_of_day, to_utc

WEEKDAY_NAMES = {name: i for i, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])}
MONTH_NAMES = {
    name: i + 1
    for i, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"]
    )
}

SECONDS = (0, 59)
MINUTES = (0, 59)
HOURS = (0, 23)
DAYS = (1, 31)
MONTHS = (1, 12)
WEEKDAYS = (0, 7)

DEFAULT_MAX_YEARS = 5

_INT_RE = re.compile(r"\d+")

Field = frozenset[int] | None


def _to_int(text: str, names: dict[str, int] | None = None) -> int:
    token = text.strip().lower()
    if names and token in names:
        return names[token]
    if not _INT_RE.fullmatch(token):
        raise ParseError(f"invalid cron value {text!r}")
    return int(token)


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, value))


def _parse_item(item: str, bounds: tuple[int, int], names: dict[str, int] | None) -> range:
    """Expand one list item (literal, range, or stepped range) to its values."""
    base, slash, step_text = item.partition("/")
    step = 1
    if slash:
        step = _to_int(step_text)
        if step < 1:
            raise ParseError(f"step must be positive in {item!r}")

    if base == "*":
        start, end = bounds
    elif "-" in base:
        first, _, last = base.partition("-")
        start = _clamp(_to_int(first, names), bounds)
        end = _clamp(_to_int(last, names), bounds)
    else:
        start = _clamp(_to_int(base, names), bounds)
        end = bounds[1] if slash else start

    if start > end:
        raise ParseError(f"range start exceeds range end in {item!r}")
    return range(start, end + 1, step)


def _parse_field(text: str, bounds: tuple[int, int], names: dict[str, int] | None = None) -> Field:
    if text == "*":
        return None

    values: set[int] = set()
    for item in text.split(","):
        if not item:
            raise ParseError(f"empty item in cron field {text!r}")
        values.update(_parse_item(item, bounds, names))
    return frozenset(values)


def _parse_weekdays(text: str) -> tuple[Field, frozenset[tuple[int, int]] | None]:
    """Split the weekday field into plain weekdays and ``day#k`` ordinals."""
    if text == "*":
        return None, None

    weekdays: set[int] = set()
    ordinals: set[tuple[int, int]] = set()

    for item in text.lower().split(","):
        if not item:
            raise ParseError(f"empty item in cron field {text!r}")

        if "#" in item:
            if "-" in item or "/" in item:
                raise ParseError(f"ranges are not supported for ordinal weekdays ({item})")
            day_text, _, nth_text = item.partition("#")
            nth = _to_int(nth_text)
            if not 1 <= nth <= 5:
                raise ParseError(f"ordinal must be between 1 and 5 in {item!r}")
            day = _clamp(_to_int(day_text, WEEKDAY_NAMES), WEEKDAYS) % 7
            ordinals.add((day, nth))
        else:
            weekdays.update(day % 7 for day in _parse_item(item, WEEKDAYS, WEEKDAY_NAMES))

    return (frozenset(weekdays) or None), (frozenset(ordinals) or None)


def _matches(values: Field, value: int) -> bool:
    return values is None or value in values


def cron_weekday(dt: datetime) -> int:
    """Weekday in cron numbering (Sunday=0 .. Saturday=6)."""
    return dt.isoweekday() % 7


def weekday_ordinal(dt: datetime) -> int:
    """How many times ``dt``'s weekday has occurred in its month, up to and including ``dt``."""
    return (dt.day - 1) // 7 + 1


@dataclass(frozen=True)
class CronExpression:
    """A parsed, immutable cron expression.

    Use :meth:`parse` rather than constructing fields by hand.

    Attributes:
        seconds, minutes, hours, days, months, weekdays: allowed values
            per field, or ``None`` for "any".
        ordinals: ``(weekday, k)`` pairs from ``name#k`` tokens, or ``None``.
        text: the source text.
        max_years: how far ahead :meth:`next_occurrence` searches.
    """

    seconds: Field
    minutes: Field
    hours: Field
    days: Field
    months: Field
    weekdays: Field
    ordinals: frozenset[tuple[int, int]] | None = None
    text: str = field(default="", compare=False)
    max_years: int = field(default=DEFAULT_MAX_YEARS, compare=False)

    @classmethod
    def parse(cls, text: str, *, max_years: int = DEFAULT_MAX_YEARS) -> CronExpression:
        """Parse 5- or 6-field cron text.

        Raises:
            ParseError: wrong field count or a malformed field.
        """
        items = text.split()
        if len(items) not in (5, 6):
            raise ParseError(f"not a valid cron expression: {text!r}").with_context(expression=text)

        offset = len(items) - 5
        try:
            seconds = _parse_field(items[0], SECONDS) if offset else frozenset({0})
            minutes = _parse_field(items[offset], MINUTES)
            hours = _parse_field(items[offset + 1], HOURS)
            days = _parse_field(items[offset + 2], DAYS)
            months = _parse_field(items[offset + 3].lower(), MONTHS, MONTH_NAMES)
            weekdays, ordinals = _parse_weekdays(items[offset + 4])
        except ParseError as exc:
            raise exc.with_context(expression=text)

        return cls(
            seconds=seconds,
            minutes=minutes,
            hours=hours,
            days=days,
            months=months,
            weekdays=weekdays,
            ordinals=ordinals,
            text=" ".join(items),
            max_years=max_years,
        )

    def date_matches(self, dt: datetime) -> bool:
        """Check day-of-month, month, weekday and ordinal weekday together."""
        if not _matches(self.days, dt.day):
            return False
        if not _matches(self.months, dt.month):
            return False
        weekday = cron_weekday(dt)
        if not _matches(self.weekdays, weekday):
            return False
        if self.ordinals is not None and (weekday, weekday_ordinal(dt)) not in self.ordinals:
            return False
        return True

    def matches(self, dt: datetime) -> bool:
        """True when ``dt`` (at whole-second resolution) is an occurrence."""
        return (
            self.date_matches(dt)
            and _matches(self.hours, dt.hour)
            and _matches(self.minutes, dt.minute)
            and _matches(self.seconds, dt.second)
        )

    def next_occurrence(self, from_: datetime) -> datetime:
        """Return the first occurrence strictly after ``from_``.

        Fields are matched against wall-clock time in ``from_``'s zone while
        the search steps forward in elapsed time. Wall times skipped by a
        spring-forward change never match; wall times repeated when clocks
        go back match once per pass. The result keeps ``from_``'s tzinfo.

        Raises:
            SearchExhausted: nothing matches within ``max_years``.
        """
        time = shift(from_.replace(microsecond=0), timedelta(seconds=1))
        limit = to_utc(time) + timedelta(days=366 * self.max_years)

        while to_utc(time) <= limit:
            if not self.date_matches(time):
                time = self._next_day(time)
                continue
            if not _matches(self.hours, time.hour):
                time = shift(time, timedelta(minutes=60 - time.minute, seconds=-time.second))
                continue
            if not _matches(self.minutes, time.minute):
                time = shift(time, timedelta(seconds=60 - time.second))
                continue
            if not _matches(self.seconds, time.second):
                time = shift(time, timedelta(seconds=1))
                continue
            return time

        raise SearchExhausted(
            f"no occurrence of {self.text!r} within {self.max_years} years of {from_.isoformat()}"
        ).with_context(expression=self.text)

    @staticmethod
    def _next_day(time: datetime) -> datetime:
        midnight = start_of_day(time.date() + timedelta(days=1), like=time)
        if to_utc(midnight) <= to_utc(time):
            # clocks went back across midnight
            return shift(time, timedelta(seconds=1))
        return midnight

    def iter_occurrences(self, start: datetime, count: int | None = None) -> Iterator[datetime]:
        """Yield successive occurrences after ``start`` (forever when ``count`` is None)."""
        current = start
        produced = 0
        while count is None or produced < count:
            current = self.next_occurrence(current)
            produced += 1
            yield current

    def __str__(self) -> str:
        return self.text


def parse_cron(text: str, *, max_years: int = DEFAULT_MAX_YEARS) -> CronExpression:
    """Shorthand for :meth:`CronExpression.parse`."""
    return CronExpression.parse(text, max_years=max_years)


__all__ = [
    "CronExpression",
    "parse_cron",
    "cron_weekday",
    "weekday_ordinal",
    "WEEKDAY_NAMES",
    "MONTH_NAMES",
]
