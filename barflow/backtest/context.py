"""Per-ticker registry of indicators, updated once per bar."""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from barflow.exceptions import ConfigurationError, TimestampOrderError
from barflow.indicators.indicators import Indicator
from barflow.models import Bar


class TickerContext:
    """
    Owns the indicators of exactly one ticker.

    ``update(bar)`` feeds the bar to every indicator in registration order;
    until it returns, no indicator has seen the bar.  Bars must arrive in
    non-decreasing timestamp order.
    """

    def __init__(self, ticker: str) -> None:
        self.ticker = ticker
        self._indicators: Dict[str, Indicator] = {}
        self.latest_bar: Optional[Bar] = None
        self.bars_seen = 0

    def add_indicator(self, name: str, indicator: Indicator) -> None:
        if name in self._indicators:
            raise ConfigurationError(f"{self.ticker}: indicator {name!r} is already registered")
        self._indicators[name] = indicator

    @property
    def indicators(self) -> Mapping[str, Indicator]:
        return self._indicators

    def update(self, bar: Bar) -> None:
        """
        Raises
        ------
        TimestampOrderError
            If ``bar`` is older than the previous bar for this ticker.
        """
        if bar.ticker != self.ticker:
            raise ConfigurationError(f"Context for {self.ticker} received a bar for {bar.ticker}")
        if self.latest_bar is not None and bar.timestamp < self.latest_bar.timestamp:
            raise TimestampOrderError(
                f"{self.ticker}: bar at {bar.timestamp} is older than the previous bar at {self.latest_bar.timestamp}"
            )
        for indicator in self._indicators.values():
            indicator.update(bar)
        self.latest_bar = bar
        self.bars_seen += 1

    def on_market_close(self) -> None:
        """Close the trading day for every indicator that keeps daily state (``ADV``, ``ACV``)."""
        for indicator in self._indicators.values():
            close = getattr(indicator, "on_market_close", None)
            if close is not None:
                close()

    def get(self, name: str) -> Optional[float]:
        """Latest value of indicator ``name``; ``None`` if unavailable or unknown."""
        indicator = self._indicators.get(name)
        return None if indicator is None else indicator.get()

    def values(self) -> Dict[str, Optional[float]]:
        return {name: ind.get() for name, ind in self._indicators.items()}

    def reset(self) -> None:
        for indicator in self._indicators.values():
            indicator.reset()
        self.latest_bar = None
        self.bars_seen = 0

    def __repr__(self) -> str:
        return f"<TickerContext {self.ticker} bars={self.bars_seen} indicators={list(self._indicators)}>"
