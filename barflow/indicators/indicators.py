"""
Indicators: a window tracker bound to a bar field.

``Indicator.update(bar)`` extracts the field, pushes it with the bar's
timestamp, prunes, and caches the tracker's result; ``get()`` returns the
cached value (``None`` while unavailable).  One instance serves exactly one
ticker; the ``TickerContext`` builds a fresh set per ticker.

Subclasses only choose the tracker, the field and, where needed, a final
transform of the tracker value (``StandardDeviation``, ``Momentum``) or
what gets pushed (``VWAP``, ``ATR``).
"""

from __future__ import annotations

import math
from typing import Optional

from barflow.indicators.fields import Field
from barflow.indicators.trackers import (
    BaseTracker,
    ExtremumTracker,
    HistoryTracker,
    RelativeStrengthTracker,
    SumTracker,
    VarianceTracker,
    VolumeWeightedTracker,
)
from barflow.indicators.window import Window
from barflow.models import Bar


class Indicator:
    """
    Base indicator.

    Parameters
    ----------
    tracker : BaseTracker
        Incremental aggregate fed on every ``update``.
    field : Field
        Which bar value is pushed.
    name : str | None
        Human-readable label for logs and diagnostics.
    """

    label = "Indicator"

    def __init__(self, tracker: BaseTracker, field: Field = Field.CLOSE, name: Optional[str] = None) -> None:
        self.tracker = tracker
        self.field = field
        self.name = name or f"{self.label}({tracker.window}, {field.value})"
        self._value: Optional[float] = None

    def update(self, bar: Bar) -> None:
        self._push(bar)
        self.tracker.prune(bar.timestamp)
        self._value = self._compute()

    def get(self) -> Optional[float]:
        return self._value

    def reset(self) -> None:
        self.tracker.clear()
        self._value = None

    def _push(self, bar: Bar) -> None:
        self.tracker.push(bar.timestamp, self.field.extract(bar))

    def _compute(self) -> Optional[float]:
        return self.tracker.get()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} value={self._value}>"


class MovingAverage(Indicator):
    label = "SMA"

    def __init__(self, window: Window, field: Field = Field.CLOSE, name: Optional[str] = None) -> None:
        super().__init__(SumTracker(window), field, name)


class HighOfPeriod(Indicator):
    label = "High"

    def __init__(self, window: Window, field: Field = Field.HIGH, name: Optional[str] = None) -> None:
        super().__init__(ExtremumTracker.maximum(window), field, name)


class LowOfPeriod(Indicator):
    label = "Low"

    def __init__(self, window: Window, field: Field = Field.LOW, name: Optional[str] = None) -> None:
        super().__init__(ExtremumTracker.minimum(window), field, name)


class Variance(Indicator):
    label = "Var"

    def __init__(self, window: Window, field: Field = Field.CLOSE, name: Optional[str] = None) -> None:
        super().__init__(VarianceTracker(window), field, name)


class StandardDeviation(Variance):
    label = "StdDev"

    def _compute(self) -> Optional[float]:
        variance = self.tracker.get()
        return None if variance is None else math.sqrt(variance)


class VWAP(Indicator):
    """Volume-weighted average of ``field`` (typical price by default)."""

    label = "VWAP"

    def __init__(self, window: Window, field: Field = Field.TYPICAL, name: Optional[str] = None) -> None:
        super().__init__(VolumeWeightedTracker(window), field, name)

    def _push(self, bar: Bar) -> None:
        self.tracker.push(bar.timestamp, self.field.extract(bar), float(bar.volume))


class RSI(Indicator):
    label = "RSI"

    def __init__(self, window: Window, field: Field = Field.CLOSE, name: Optional[str] = None) -> None:
        super().__init__(RelativeStrengthTracker(window), field, name)


class Momentum(Indicator):
    """Percent change from the oldest in-window value to the latest one."""

    label = "Momentum"

    def __init__(self, window: Window, field: Field = Field.CLOSE, name: Optional[str] = None) -> None:
        super().__init__(HistoryTracker(window), field, name)

    def _compute(self) -> Optional[float]:
        values = self.tracker.values()
        if len(values) < 2 or values[0] == 0:
            return None
        return (values[-1] - values[0]) / values[0] * 100.0


class ATR(Indicator):
    """
    Average true range: the mean of ``Bar.true_range`` over the window.

    The first bar has no previous close and contributes ``high - low``.
    """

    label = "ATR"

    def __init__(self, window: Window, name: Optional[str] = None) -> None:
        super().__init__(SumTracker(window), Field.CLOSE, name)
        self._prev_close: Optional[float] = None

    def _push(self, bar: Bar) -> None:
        self.tracker.push(bar.timestamp, bar.true_range(self._prev_close))
        self._prev_close = bar.close

    def reset(self) -> None:
        super().reset()
        self._prev_close = None
