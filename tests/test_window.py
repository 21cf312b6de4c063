from datetime import datetime, timedelta

import pytest

from barflow.exceptions import ConfigurationError
from barflow.indicators.trackers import SumTracker
from barflow.indicators.window import Window, WindowKind
from barflow.models import MarketHours


@pytest.mark.parametrize("n", [0, -3, 2.5, True])
def test_count_window_rejects_non_positive_or_non_integer(n):
    with pytest.raises(ConfigurationError):
        Window.count(n)


@pytest.mark.parametrize("d", [timedelta(0), timedelta(minutes=-1), 0, -5])
def test_duration_window_rejects_non_positive(d):
    with pytest.raises(ConfigurationError):
        Window.duration(d)


def test_constructors():
    assert Window.count(5).kind == WindowKind.COUNT
    assert Window.minutes(30) == Window.duration(timedelta(minutes=30))
    assert Window.hours(2).size == timedelta(hours=2)
    assert Window.days(1).size == timedelta(days=1)
    assert Window.count(5).is_count
    assert not Window.days(1).is_count


def test_count_expiry_by_ordinal():
    w = Window.count(3)
    # latest observation is #4: #1 has three newer ones and expires
    assert w.expired(1, None, 4, None)
    assert not w.expired(2, None, 4, None)


def test_duration_expiry_is_half_open():
    w = Window.duration(5)
    assert w.expired(0, 5, 0, 10)
    assert not w.expired(0, 6, 0, 10)
    assert not w.expired(0, 10, 0, 10)


def test_window_is_hashable_and_immutable():
    w = Window.count(3)
    assert {w: 1}[Window.count(3)] == 1
    with pytest.raises(Exception):
        w.size = 4


# ---------------------------------------------------------------------------
# Rounded windows
# ---------------------------------------------------------------------------

NOW = datetime(2024, 1, 2, 11, 15)


def test_rounded_keeps_whole_hours_and_days_only():
    rounded = Window.days(1).rounded()
    assert rounded.kind == WindowKind.ROUNDED
    assert rounded.market_hours == MarketHours()
    assert Window.hours(3).rounded().kind == WindowKind.ROUNDED
    assert Window.minutes(30).rounded() == Window.minutes(30)
    assert Window.count(3).rounded() == Window.count(3)
    assert rounded.rounded() is rounded
    with pytest.raises(ConfigurationError):
        Window.duration(5).rounded()


def test_rounded_day_window_starts_at_the_session_open():
    assert Window.days(1).rounded().start(NOW) == datetime(2024, 1, 2, 9, 30)
    assert Window.days(2).rounded().start(NOW) == datetime(2024, 1, 1, 9, 30)
    premarket = Window.days(1).rounded(MarketHours(include_premarket=True))
    assert premarket.start(NOW) == datetime(2024, 1, 2, 4, 0)


def test_rounded_hour_window_starts_at_the_top_of_the_hour():
    assert Window.hours(1).rounded().start(NOW) == datetime(2024, 1, 2, 11, 0)
    assert Window.hours(3).rounded().start(NOW) == datetime(2024, 1, 2, 9, 0)
    assert Window.hours(1).start(NOW) == datetime(2024, 1, 2, 10, 15)


def test_rounded_expiry_includes_the_start():
    w = Window.days(1).rounded()
    assert not w.expired(0, datetime(2024, 1, 2, 9, 30), 0, NOW)
    assert w.expired(0, datetime(2024, 1, 2, 9, 29), 0, NOW)
    assert w.expired(0, datetime(2024, 1, 1, 15, 59), 0, NOW)


def test_rounded_window_needs_datetimes():
    with pytest.raises(ConfigurationError):
        Window.days(1).rounded().start(100)
    with pytest.raises(ConfigurationError):
        Window.count(3).start(NOW)


def test_sum_tracker_over_a_rounded_day():
    tracker = SumTracker(Window.days(1).rounded())
    for ts, volume in [(datetime(2024, 1, 2, 9, 0), 50.0),
                       (datetime(2024, 1, 2, 9, 30), 100.0),
                       (datetime(2024, 1, 2, 15, 0), 200.0)]:
        tracker.push(ts, volume)
        tracker.prune(ts)
    assert tracker.sum == 300.0
    tracker.push(datetime(2024, 1, 3, 9, 31), 7.0)
    tracker.prune(datetime(2024, 1, 3, 9, 31))
    assert tracker.sum == 7.0
