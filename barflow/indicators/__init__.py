"""
indicators: windows, incremental trackers and the indicators built on them.

- **window**:     ``Window`` (count, duration or rounded lookback)
- **trackers**:   Extremum / Sum / Variance / VWAP / RSI / History trackers
- **fields**:     ``Field`` selectors over a ``Bar``
- **indicators**: tracker + field bindings (SMA, RSI, VWAP, ATR, ...)
- **volume**:     daily volume indicators (ADV, ACV)
"""

from barflow.indicators.window import Window, WindowKind
from barflow.indicators.fields import Field
from barflow.indicators.trackers import (
    BaseTracker,
    ExtremumTracker,
    SumTracker,
    VarianceTracker,
    VolumeWeightedTracker,
    RelativeStrengthTracker,
    HistoryTracker,
)
from barflow.indicators.indicators import (
    Indicator,
    MovingAverage,
    HighOfPeriod,
    LowOfPeriod,
    Variance,
    StandardDeviation,
    VWAP,
    RSI,
    Momentum,
    ATR,
)
from barflow.indicators.volume import ADV, ACV, intraday_volume_fraction

__all__ = [
    # Window
    "Window",
    "WindowKind",
    # Fields
    "Field",
    # Trackers
    "BaseTracker",
    "ExtremumTracker",
    "SumTracker",
    "VarianceTracker",
    "VolumeWeightedTracker",
    "RelativeStrengthTracker",
    "HistoryTracker",
    # Indicators
    "Indicator",
    "MovingAverage",
    "HighOfPeriod",
    "LowOfPeriod",
    "Variance",
    "StandardDeviation",
    "VWAP",
    "RSI",
    "Momentum",
    "ATR",
    # Volume
    "ADV",
    "ACV",
    "intraday_volume_fraction",
]
