"""Bar builders and test doubles shared by the test modules."""

import datetime as dt

from barflow.models import Bar


T0 = dt.datetime(2024, 1, 2, 9, 30)


def make_bar(i, close, ticker="AAA", high=None, low=None, open_=None, volume=1000.0, step=dt.timedelta(minutes=1)):
    """Bar number ``i`` of a regular series starting at 09:30; high/low default to close +/- 0.5."""
    return Bar(
        ticker=ticker,
        timestamp=T0 + i * step,
        open=close if open_ is None else open_,
        high=close + 0.5 if high is None else high,
        low=close - 0.5 if low is None else low,
        close=close,
        volume=volume,
    )


class StubIndicator:
    """Indicator double whose value is set by the test."""

    def __init__(self, value=None):
        self.value = value

    def get(self):
        return self.value
