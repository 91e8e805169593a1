"""Series shaping: time-window filter and point-budget cap."""

from datetime import datetime, time, timedelta, tzinfo

from metricfeed.fetch.constants import MIDNIGHT_MARGIN_SECONDS
from metricfeed.fetch.models import Series, TimeRangeMode


def window_start(now: datetime, tz: tzinfo | None = None) -> datetime:
    """Get the earliest timestamp kept in since-midnight mode.

    Midnight gets its own UTC offset, which differs from the offset of
    `now` on a daylight-saving transition day.

    Args:
        now: Current time (timezone-aware).
        tz: Local timezone; defaults to the system timezone.

    Returns:
        Start of the local day containing `now`, minus 30 minutes.
    """
    local_now = now.astimezone(tz)
    if tz is None:
        # A naive local time resolves to the system offset at that instant.
        start_of_day = datetime.combine(local_now.date(), time.min).astimezone()
    else:
        start_of_day = datetime.combine(local_now.date(), time.min, tzinfo=tz)
    return start_of_day - timedelta(seconds=MIDNIGHT_MARGIN_SECONDS)


def shape_series(
    series: Series,
    time_range: TimeRangeMode,
    point_budget: int,
    now: datetime,
    tz: tzinfo | None = None,
) -> Series:
    """Sort, window, and cap a raw series.

    The result is sorted ascending by `t`, contains only points inside the
    requested window, and holds at most `point_budget` of the most recent
    points. Applying it to its own output returns the same series.

    Args:
        series: Decoded series, in any order.
        time_range: Requested display window.
        point_budget: Maximum number of points to keep.
        now: Current time (timezone-aware).
        tz: Local timezone for since-midnight mode; defaults to the system timezone.

    Returns:
        The shaped series.
    """
    shaped = sorted(series, key=lambda point: point.t)

    if time_range == TimeRangeMode.SINCE_MIDNIGHT:
        cutoff = window_start(now, tz)
        shaped = [point for point in shaped if point.t >= cutoff]

    if len(shaped) > point_budget:
        shaped = shaped[len(shaped) - point_budget :]

    return shaped
