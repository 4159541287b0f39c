"""Tests for clock, timestamp and task-ID helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from knbn.errors import InvalidArgumentError
from knbn.utils import now_iso, parse_iso, parse_task_id


class TestNowIso:
    def test_uses_given_clock(self) -> None:
        moment = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
        assert now_iso(lambda: moment) == "2024-05-06T07:08:09+00:00"

    def test_naive_clock_is_treated_as_utc(self) -> None:
        assert now_iso(lambda: datetime(2024, 5, 6, 7, 8, 9)) == "2024-05-06T07:08:09+00:00"

    def test_default_clock_is_utc(self) -> None:
        assert parse_iso(now_iso()).utcoffset() == timedelta(0)


class TestParseIso:
    def test_z_suffix(self) -> None:
        assert parse_iso("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_offset_is_kept(self) -> None:
        parsed = parse_iso("2024-01-01T02:00:00+02:00")
        assert parsed == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_naive_assumed_utc(self) -> None:
        assert parse_iso("2024-01-01T00:00:00").tzinfo is not None

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_unparseable_returns_none(self, value) -> None:
        assert parse_iso(value) is None


class TestParseTaskId:
    @pytest.mark.parametrize("value,expected", [(3, 3), ("12", 12), (" 7 ", 7), (2.0, 2), ("-1", -1)])
    def test_accepts_integral_values(self, value, expected) -> None:
        assert parse_task_id(value) == expected

    @pytest.mark.parametrize("value", ["abc", "1.5", 1.5, True, None, ""])
    def test_rejects_everything_else(self, value) -> None:
        with pytest.raises(InvalidArgumentError, match="Task ID must be a number"):
            parse_task_id(value)
