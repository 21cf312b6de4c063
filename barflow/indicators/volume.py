"""
Daily volume indicators.

``ADV`` is the average total volume of the last ``days`` completed trading
days.  ``ACV`` compares the volume traded so far today with the share of
an average day's volume that is usually done by the same time of day.

Both accumulate the current day in a ``SumTracker`` over a rounded
one-day window (anchored at the regular open, or at the premarket open
when ``MarketHours.include_premarket`` is set) and move the day's total
into a ``Count(days)`` average on ``on_market_close()``.  The first bar of
a new calendar date closes the previous day if nobody did, so bars from
several sessions can be streamed without explicit calls.

Both need datetime timestamps.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from barflow.exceptions import ConfigurationError
from barflow.indicators.fields import Field
from barflow.indicators.indicators import Indicator
from barflow.indicators.trackers import SumTracker
from barflow.indicators.window import Window
from barflow.models import Bar, MarketHours

# Cumulative intraday volume profile
PREOPEN_FRACTION  = 0.08   # share of the day assumed done before the open
OPENING_MINUTES   = 46     # length of the opening surge
OPENING_FRACTION  = 0.60   # share of the day done by the end of the surge
OPENING_EXPONENT  = 0.73
CLOSING_EXPONENT  = 2.3


def intraday_volume_fraction(minutes: float, session_minutes: float = 390.0) -> float:
    """
    Expected fraction of a full day's volume traded ``minutes`` after the open.

    Concave rise from 8 % to 60 % over the first 46 minutes, then a convex
    ramp to 100 % at the close; flat at 8 % before the open and at 100 %
    after the close.
    """
    if minutes < 0:
        return PREOPEN_FRACTION
    if minutes <= OPENING_MINUTES:
        ramp = (minutes / OPENING_MINUTES) ** OPENING_EXPONENT
        return PREOPEN_FRACTION + (OPENING_FRACTION - PREOPEN_FRACTION) * ramp
    rest = max(session_minutes - OPENING_MINUTES, 1.0)
    progress = min(1.0, (minutes - OPENING_MINUTES) / rest)
    return OPENING_FRACTION + (1.0 - OPENING_FRACTION) * progress ** CLOSING_EXPONENT


class ADV(Indicator):
    """
    Average daily volume over the last ``days`` completed days.

    Unavailable until the first day has been closed.

    Parameters
    ----------
    days : int
        Number of completed days averaged (20 for ADV20).
    market_hours : MarketHours | None
        Session used to anchor the current-day window.
    """

    label = "ADV"

    def __init__(self, days: int, market_hours: Optional[MarketHours] = None, name: Optional[str] = None) -> None:
        self.market_hours = market_hours or MarketHours()
        super().__init__(SumTracker(Window.count(days)), Field.VOLUME, name or f"{self.label}({days})")
        self.day_tracker = SumTracker(Window.days(1).rounded(self.market_hours))
        self._last_timestamp: Any = None
        self._day_open = False

    def update(self, bar: Bar) -> None:
        if not isinstance(bar.timestamp, datetime):
            raise ConfigurationError(f"{self.name} needs datetime timestamps, got {type(bar.timestamp).__name__}")
        if self._day_open and bar.timestamp.date() != self._last_timestamp.date():
            self.on_market_close()
        self.day_tracker.push(bar.timestamp, self.field.extract(bar))
        self.day_tracker.prune(bar.timestamp)
        self._last_timestamp = bar.timestamp
        self._day_open = True
        self._value = self._compute()

    def on_market_close(self) -> None:
        """Record the current day's total and start a new day.  No-op if no bar arrived since the last close."""
        if not self._day_open:
            return
        self.tracker.push(self._last_timestamp, self._day_total())
        self.tracker.prune(self._last_timestamp)
        self._start_new_day()
        self._value = self._compute()

    @property
    def current_day_volume(self) -> float:
        return self.day_tracker.sum

    def _day_total(self) -> float:
        return self.day_tracker.sum

    def _start_new_day(self) -> None:
        self.day_tracker.clear()
        self._day_open = False

    def reset(self) -> None:
        super().reset()
        self.day_tracker.clear()
        self._last_timestamp = None
        self._day_open = False


class ACV(ADV):
    """
    Current volume relative to what an average day has done by now.

    ``ACV = current_volume / (ADV * intraday_volume_fraction(minutes since open))``

    1.0 means the day is on pace with the average; unavailable until ADV
    is.  ``premarket_volume`` is added to the current day's volume, for
    feeds that report premarket volume separately; it is cleared at every
    close.
    """

    label = "ACV"

    def __init__(self, days: int, market_hours: Optional[MarketHours] = None,
                 premarket_volume: float = 0.0, name: Optional[str] = None) -> None:
        super().__init__(days, market_hours, name)
        self.premarket_volume = float(premarket_volume)

    def set_premarket_volume(self, volume: float) -> None:
        self.premarket_volume = float(volume)
        self._value = self._compute()

    @property
    def current_volume(self) -> float:
        return self._day_total()

    @property
    def adv(self) -> Optional[float]:
        return self.tracker.get()

    def _day_total(self) -> float:
        return self.premarket_volume + self.day_tracker.sum

    def _start_new_day(self) -> None:
        super()._start_new_day()
        self.premarket_volume = 0.0

    def _compute(self) -> Optional[float]:
        adv = self.tracker.get()
        if adv is None or adv <= 0 or self._last_timestamp is None:
            return None
        minutes = self.market_hours.minutes_since_open(self._last_timestamp.time())
        expected = adv * intraday_volume_fraction(minutes, self.market_hours.session_minutes)
        return self.current_volume / expected

    def reset(self) -> None:
        super().reset()
        self.premarket_volume = 0.0
