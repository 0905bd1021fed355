"""Tests for IntervalSchedule, ScheduleSpec and build_schedule."""

from datetime import UTC, timedelta

import pytest

from spine_cron.core.errors import ConfigError, ParseError
from spine_cron.scheduling import (
    CronExpression,
    IntervalSchedule,
    Schedule,
    ScheduleSpec,
    build_schedule,
)
from tests._support.times import london, utc


class TestIntervalSchedule:
    def test_implements_protocol(self):
        assert isinstance(IntervalSchedule(5), Schedule)
        assert isinstance(CronExpression.parse("* * * * *"), Schedule)

    def test_next_occurrence_adds_interval(self, t0):
        assert IntervalSchedule(15).next_occurrence(t0) == t0 + timedelta(seconds=15)

    def test_fractional_seconds(self, t0):
        assert IntervalSchedule(0.5).next_occurrence(t0) == t0 + timedelta(milliseconds=500)

    def test_keeps_sub_second_offset(self, t0):
        start = t0 + timedelta(microseconds=250)
        assert IntervalSchedule(1).next_occurrence(start) == start + timedelta(seconds=1)

    @pytest.mark.parametrize("seconds", [0, -1, -0.5])
    def test_non_positive_rejected(self, seconds):
        with pytest.raises(ConfigError, match="positive"):
            IntervalSchedule(seconds)

    @pytest.mark.parametrize("seconds", ["5", None, True])
    def test_non_number_rejected(self, seconds):
        with pytest.raises(ConfigError):
            IntervalSchedule(seconds)

    def test_adds_elapsed_time_when_clocks_go_back(self):
        result = IntervalSchedule(5).next_occurrence(london(2024, 10, 27, 1, 59, 58))

        assert result.astimezone(UTC) == utc(2024, 10, 27, 1, 0, 3)
        assert (result.hour, result.minute, result.second, result.fold) == (1, 0, 3, 1)

    def test_adds_elapsed_time_when_clocks_go_forward(self):
        result = IntervalSchedule(60).next_occurrence(london(2024, 3, 31, 0, 59, 30))
        assert result == london(2024, 3, 31, 2, 0, 30)

    def test_str(self):
        assert str(IntervalSchedule(30)) == "every 30s"
        assert str(IntervalSchedule(0.5)) == "every 0.5s"


class TestScheduleSpec:
    def test_every(self):
        assert ScheduleSpec(every=5).build() == IntervalSchedule(5)

    def test_cron(self):
        assert ScheduleSpec(cron="0 3-6 * * *").build() == CronExpression.parse("0 3-6 * * *")

    def test_neither_rejected(self):
        with pytest.raises(ConfigError, match="Missing schedule"):
            ScheduleSpec()

    def test_both_rejected(self):
        with pytest.raises(ConfigError, match="both"):
            ScheduleSpec(every=5, cron="* * * * *")

    def test_from_mapping(self):
        assert ScheduleSpec.from_mapping({"every": 10}) == ScheduleSpec(every=10)
        assert ScheduleSpec.from_mapping({"cron": "0 0 * * *"}) == ScheduleSpec(cron="0 0 * * *")

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(ConfigError, match="Unknown schedule keys"):
            ScheduleSpec.from_mapping({"every": 10, "at": "noon"})

    def test_bad_cron_raises_parse_error_on_build(self):
        spec = ScheduleSpec(cron="not a cron")
        with pytest.raises(ParseError):
            spec.build()


class TestBuildSchedule:
    def test_from_spec(self):
        assert build_schedule(ScheduleSpec(every=2)) == IntervalSchedule(2)

    def test_from_mapping(self):
        assert build_schedule({"cron": "*/5 * * * *"}) == CronExpression.parse("*/5 * * * *")

    def test_schedule_passes_through(self):
        schedule = IntervalSchedule(7)
        assert build_schedule(schedule) is schedule

    def test_empty_mapping_rejected(self):
        with pytest.raises(ConfigError):
            build_schedule({})

    def test_unsupported_object_rejected(self):
        with pytest.raises(ConfigError, match="Unsupported schedule"):
            build_schedule(42)
