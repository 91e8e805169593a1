"""Unit tests for series shaping."""

import time
import zoneinfo
from collections.abc import Generator
from datetime import UTC, datetime, timedelta, timezone

import pytest

from metricfeed.fetch.models import TimeRangeMode, TimeValue
from metricfeed.fetch.shaper import shape_series, window_start
from tests.helpers.time import FIXED_NOW


def _hourly(count: int, end: datetime = FIXED_NOW) -> list[TimeValue]:
    """Build `count` hourly points ending at `end`, in ascending order."""
    return [
        TimeValue(t=end - timedelta(hours=count - 1 - i), v=float(i))
        for i in range(count)
    ]


# Clocks went forward at 01:00 UTC; 12:00 UTC is 14:00 CEST (+02:00),
# but local midnight was 00:00 CET (+01:00), i.e. 23:00 UTC the day before.
DST_START_NOW = datetime(2024, 3, 31, 12, 0, tzinfo=UTC)
DST_START_CUTOFF = datetime(2024, 3, 30, 22, 30, tzinfo=UTC)


@pytest.fixture
def berlin() -> zoneinfo.ZoneInfo:
    """Europe/Berlin, skipped where no tz database is installed."""
    try:
        return zoneinfo.ZoneInfo("Europe/Berlin")
    except zoneinfo.ZoneInfoNotFoundError:
        pytest.skip("tz database not available")


@pytest.fixture
def berlin_system_tz(
    berlin: zoneinfo.ZoneInfo, monkeypatch: pytest.MonkeyPatch
) -> Generator[None]:
    """Set the process timezone to Europe/Berlin for the test."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset not available")
    monkeypatch.setenv("TZ", "Europe/Berlin")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


class TestWindowStart:
    """Tests for the since-midnight cutoff."""

    def test_utc_midnight_minus_margin(self) -> None:
        """Test that the cutoff is local midnight minus 30 minutes."""
        assert window_start(FIXED_NOW, UTC) == datetime(
            2024, 3, 14, 23, 30, tzinfo=UTC
        )

    def test_uses_local_timezone(self) -> None:
        """Test that midnight is computed in the given timezone."""
        tz = timezone(timedelta(hours=8))

        cutoff = window_start(FIXED_NOW, tz)

        # 12:00 UTC is 20:00 at +08:00; local midnight is 16:00 UTC the day before.
        assert cutoff == datetime(2024, 3, 14, 15, 30, tzinfo=UTC)

    def test_dst_start_uses_offset_at_midnight(
        self, berlin: zoneinfo.ZoneInfo
    ) -> None:
        """Test that midnight keeps its winter offset on the spring-forward day."""
        assert window_start(DST_START_NOW, berlin) == DST_START_CUTOFF

    def test_dst_end_uses_offset_at_midnight(self, berlin: zoneinfo.ZoneInfo) -> None:
        """Test that midnight keeps its summer offset on the fall-back day."""
        # 2024-10-27: local midnight is 00:00 CEST, i.e. 22:00 UTC the day before.
        now = datetime(2024, 10, 27, 12, 0, tzinfo=UTC)

        assert window_start(now, berlin) == datetime(2024, 10, 26, 21, 30, tzinfo=UTC)

    @pytest.mark.usefixtures("berlin_system_tz")
    def test_dst_start_with_system_timezone(self) -> None:
        """Test the default system-timezone path on the spring-forward day."""
        assert window_start(DST_START_NOW) == DST_START_CUTOFF


class TestShapeSeries:
    """Tests for sorting, windowing, and capping."""

    def test_sorts_ascending(self) -> None:
        """Test that output is sorted by timestamp."""
        series = list(reversed(_hourly(5)))

        shaped = shape_series(series, TimeRangeMode.LAST_24H, 24, FIXED_NOW, UTC)

        assert [p.t for p in shaped] == sorted(p.t for p in series)

    def test_caps_to_most_recent_hourly_points(self) -> None:
        """Test that 30 hourly points keep the last 24 in ascending order."""
        series = _hourly(30)

        shaped = shape_series(series, TimeRangeMode.LAST_24H, 24, FIXED_NOW, UTC)

        assert len(shaped) == 24
        assert shaped == series[-24:]
        assert shaped[-1].t == FIXED_NOW

    def test_caps_ten_minute_series_to_144(self) -> None:
        """Test that a dense series is capped at 144 points."""
        series = [
            TimeValue(t=FIXED_NOW - timedelta(minutes=10 * i), v=float(i))
            for i in range(200)
        ]

        shaped = shape_series(series, TimeRangeMode.LAST_24H, 144, FIXED_NOW, UTC)

        assert len(shaped) == 144
        assert shaped[-1].t == FIXED_NOW
        assert shaped[0].t == FIXED_NOW - timedelta(minutes=10 * 143)

    def test_short_series_unchanged(self) -> None:
        """Test that series under the budget are kept whole."""
        series = _hourly(3)

        shaped = shape_series(series, TimeRangeMode.LAST_24H, 24, FIXED_NOW, UTC)

        assert shaped == series

    def test_empty_series(self) -> None:
        """Test that an empty series stays empty."""
        assert shape_series([], TimeRangeMode.SINCE_MIDNIGHT, 24, FIXED_NOW, UTC) == []

    def test_since_midnight_drops_points_before_cutoff(self) -> None:
        """Test that only points from 23:30 the previous day onwards survive."""
        series = _hourly(24)

        shaped = shape_series(
            series, TimeRangeMode.SINCE_MIDNIGHT, 24, FIXED_NOW, UTC
        )

        cutoff = datetime(2024, 3, 14, 23, 30, tzinfo=UTC)
        assert all(p.t >= cutoff for p in shaped)
        # 00:00 through 12:00 inclusive
        assert len(shaped) == 13
        assert shaped[0].t == datetime(2024, 3, 15, 0, 0, tzinfo=UTC)

    def test_since_midnight_keeps_point_inside_margin(self) -> None:
        """Test that a point 15 minutes before midnight is kept."""
        inside = TimeValue(t=datetime(2024, 3, 14, 23, 45, tzinfo=UTC), v=1.0)
        outside = TimeValue(t=datetime(2024, 3, 14, 23, 15, tzinfo=UTC), v=2.0)

        shaped = shape_series(
            [outside, inside], TimeRangeMode.SINCE_MIDNIGHT, 24, FIXED_NOW, UTC
        )

        assert shaped == [inside]

    def test_last_24h_does_not_filter_by_time(self) -> None:
        """Test that 24h mode keeps old points if within budget."""
        series = _hourly(10, end=FIXED_NOW - timedelta(days=3))

        shaped = shape_series(series, TimeRangeMode.LAST_24H, 24, FIXED_NOW, UTC)

        assert shaped == series

    @pytest.mark.parametrize(
        "time_range", [TimeRangeMode.LAST_24H, TimeRangeMode.SINCE_MIDNIGHT]
    )
    def test_idempotent(self, time_range: TimeRangeMode) -> None:
        """Test that shaping a shaped series changes nothing."""
        series = list(reversed(_hourly(40)))

        once = shape_series(series, time_range, 24, FIXED_NOW, UTC)
        twice = shape_series(once, time_range, 24, FIXED_NOW, UTC)

        assert twice == once

    @pytest.mark.usefixtures("berlin_system_tz")
    def test_since_midnight_on_dst_day_drops_previous_evening(self) -> None:
        """Test that a point before local midnight minus 30 minutes is dropped."""
        before = TimeValue(t=datetime(2024, 3, 30, 22, 0, tzinfo=UTC), v=1.0)
        inside = TimeValue(t=datetime(2024, 3, 30, 22, 45, tzinfo=UTC), v=2.0)

        shaped = shape_series(
            [before, inside], TimeRangeMode.SINCE_MIDNIGHT, 24, DST_START_NOW
        )

        assert shaped == [inside]
