"""
Stop-loss and take-profit levels.

A config is declared once on the ``EntryStrategy`` and resolved to an
absolute price when a position is opened.  Resolution never changes after
entry; there is no trailing or break-even logic.

Level kinds
~~~~~~~~~~~
- ``FIXED``:       absolute price.
- ``PERCENT``:     percent offset from entry (``2.0`` is two percent).
- ``POINTS``:      price offset from entry.
- ``ATR``:         multiple of a volatility indicator's value at entry.
- ``RISK_REWARD``: take-profit only; multiple of the realised stop distance.

Offsets are applied against the position for stops (below entry for a
long) and with the position for targets (above entry for a long).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from barflow.configuration import DEFAULT_ATR_INDICATOR
from barflow.exceptions import ConfigurationError, MissingIndicatorError
from barflow.models import Side


class LevelKind(enum.Enum):
    FIXED       = "fixed"
    PERCENT     = "percent"
    POINTS      = "points"
    ATR         = "atr"
    RISK_REWARD = "risk_reward"


def _offset(kind: LevelKind, value: float, entry_price: float, indicator: str,
            indicators: Mapping[str, Any]) -> float:
    if kind == LevelKind.PERCENT:
        return entry_price * value / 100.0
    if kind == LevelKind.POINTS:
        return value
    if kind == LevelKind.ATR:
        if indicator not in indicators:
            raise MissingIndicatorError(
                f"ATR-based level needs indicator {indicator!r}, context has {sorted(indicators)}"
            )
        atr = indicators[indicator].get()
        if atr is None:
            raise ConfigurationError(f"Indicator {indicator!r} has no value yet; cannot place ATR level")
        return atr * value
    raise ConfigurationError(f"{kind.value} is not an offset level")


@dataclass(frozen=True)
class StopLossConfig:
    """
    Parameters
    ----------
    kind : LevelKind
        Any kind except ``RISK_REWARD``.
    value : float
        Price, percent, points or ATR multiple depending on ``kind``.
    indicator : str
        Context name of the volatility indicator for ``ATR`` levels.
    """
    kind: LevelKind
    value: float
    indicator: str = DEFAULT_ATR_INDICATOR

    def __post_init__(self) -> None:
        if self.kind == LevelKind.RISK_REWARD:
            raise ConfigurationError("A stop-loss cannot be expressed as a risk/reward ratio")
        if self.value <= 0:
            raise ConfigurationError(f"Stop-loss {self.kind.value} value must be positive, got {self.value}")

    @classmethod
    def fixed(cls, price: float) -> "StopLossConfig":
        return cls(LevelKind.FIXED, price)

    @classmethod
    def percent(cls, pct: float) -> "StopLossConfig":
        return cls(LevelKind.PERCENT, pct)

    @classmethod
    def points(cls, pts: float) -> "StopLossConfig":
        return cls(LevelKind.POINTS, pts)

    @classmethod
    def atr(cls, multiple: float, indicator: str = DEFAULT_ATR_INDICATOR) -> "StopLossConfig":
        return cls(LevelKind.ATR, multiple, indicator)

    def resolve(self, entry_price: float, side: Side, indicators: Mapping[str, Any]) -> float:
        if self.kind == LevelKind.FIXED:
            stop = self.value
        else:
            stop = entry_price - int(side) * _offset(self.kind, self.value, entry_price, self.indicator, indicators)
        if (entry_price - stop) * int(side) <= 0:
            raise ConfigurationError(
                f"Stop {stop:.4f} is not on the losing side of entry {entry_price:.4f} for a {side.name} position"
            )
        return stop


@dataclass(frozen=True)
class TakeProfitConfig:
    """Same kinds as ``StopLossConfig`` plus ``RISK_REWARD``."""
    kind: LevelKind
    value: float
    indicator: str = DEFAULT_ATR_INDICATOR

    def __post_init__(self) -> None:
        if self.value <= 0:
            raise ConfigurationError(f"Take-profit {self.kind.value} value must be positive, got {self.value}")

    @classmethod
    def fixed(cls, price: float) -> "TakeProfitConfig":
        return cls(LevelKind.FIXED, price)

    @classmethod
    def percent(cls, pct: float) -> "TakeProfitConfig":
        return cls(LevelKind.PERCENT, pct)

    @classmethod
    def points(cls, pts: float) -> "TakeProfitConfig":
        return cls(LevelKind.POINTS, pts)

    @classmethod
    def atr(cls, multiple: float, indicator: str = DEFAULT_ATR_INDICATOR) -> "TakeProfitConfig":
        return cls(LevelKind.ATR, multiple, indicator)

    @classmethod
    def risk_reward(cls, ratio: float) -> "TakeProfitConfig":
        return cls(LevelKind.RISK_REWARD, ratio)

    def resolve(self, entry_price: float, side: Side, indicators: Mapping[str, Any],
                stop_distance: Optional[float] = None) -> float:
        if self.kind == LevelKind.FIXED:
            target = self.value
        elif self.kind == LevelKind.RISK_REWARD:
            if stop_distance is None:
                raise ConfigurationError("Risk/reward take-profit needs a stop-loss")
            target = entry_price + int(side) * self.value * stop_distance
        else:
            target = entry_price + int(side) * _offset(self.kind, self.value, entry_price, self.indicator, indicators)
        if (target - entry_price) * int(side) <= 0:
            raise ConfigurationError(
                f"Target {target:.4f} is not on the winning side of entry {entry_price:.4f} for a {side.name} position"
            )
        return target
