"""
One simulated trade from entry to exit.

``Position`` is the only mutable record in the simulator.  It moves
``OPEN -> CLOSED`` exactly once.  While open, ``evaluate_exit`` is called
once per subsequent bar of its ticker and checks, in this fixed order:

1. stop-loss breach   (bar low / high against the stop level)
2. take-profit breach (bar high / low against the target level)
3. maximum time in position
4. custom exit conditions, in registration order

The first trigger wins and the rest are skipped for that bar.  Stop and
target exits fill at the level price, time and condition exits at the
bar's close.  When a single bar spans both the stop and the target the
stop wins; no intrabar path is inferred from OHLC data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, List, Mapping, Optional

from barflow.events.conditions import BaseCondition
from barflow.exceptions import ConfigurationError, PositionClosedError
from barflow.models import Bar, ExitReason, ExitSignal, PositionStatus, Side
from barflow.position.execution import FillSimulator


@dataclass(slots=True)
class Position:
    """
    Mutable trade record.

    ``entry_price`` and ``exit_price`` are the ideal prices (bar close or
    level price); slippage only enters through ``realized_pnl``.
    ``exit_conditions`` are owned by this position alone.
    """
    id: int
    ticker: str
    side: Side
    quantity: int
    entry_price: float
    entry_timestamp: Any
    strategy_name: str = ""
    exit_conditions: List[BaseCondition] = field(default_factory=list)
    stop_price: Optional[float] = None
    target_price: Optional[float] = None
    max_duration: Optional[Any] = None
    status: PositionStatus = PositionStatus.OPEN
    exit_price: Optional[float] = None
    exit_timestamp: Any = None
    exit_reason: Optional[ExitReason] = None
    realized_pnl: Optional[float] = None

    # Running extremes for MAE/MFE
    max_favorable_price: float = 0.0
    max_adverse_price: float = 0.0
    bars_held: int = 0

    def __post_init__(self) -> None:
        self.max_favorable_price = self.entry_price
        self.max_adverse_price = self.entry_price

    # ------------------------------------------------------------------ #
    #  State                                                              #
    # ------------------------------------------------------------------ #

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN

    @property
    def notional(self) -> float:
        return self.entry_price * self.quantity

    def prime(self, indicators: Mapping[str, Any], bar: Bar) -> None:
        """Feed the entry bar to the exit conditions so crossings have a baseline."""
        for condition in self.exit_conditions:
            condition.update(indicators, bar)

    def update_extremes(self, bar: Bar) -> None:
        """Track running MAE / MFE prices (called once per bar while open)."""
        self.bars_held += 1
        if self.side == Side.LONG:
            self.max_favorable_price = max(self.max_favorable_price, bar.high)
            self.max_adverse_price = min(self.max_adverse_price, bar.low)
        else:
            self.max_favorable_price = min(self.max_favorable_price, bar.low)
            self.max_adverse_price = max(self.max_adverse_price, bar.high)

    # ------------------------------------------------------------------ #
    #  Exit evaluation                                                    #
    # ------------------------------------------------------------------ #

    def _stop_hit(self, bar: Bar) -> bool:
        if self.stop_price is None:
            return False
        if self.side == Side.LONG:
            return bar.low <= self.stop_price
        return bar.high >= self.stop_price

    def _target_hit(self, bar: Bar) -> bool:
        if self.target_price is None:
            return False
        if self.side == Side.LONG:
            return bar.high >= self.target_price
        return bar.low <= self.target_price

    def _expired(self, bar: Bar) -> bool:
        if self.max_duration is None:
            return False
        held = bar.timestamp - self.entry_timestamp
        limit = self.max_duration
        # numbers count seconds against datetime timestamps
        if isinstance(held, timedelta) and isinstance(limit, (int, float)):
            limit = timedelta(seconds=limit)
        try:
            return held >= limit
        except TypeError as exc:
            raise ConfigurationError(
                f"Position {self.id} ({self.ticker}): max duration {limit!r} "
                f"cannot be compared with holding time {held!r}"
            ) from exc

    def evaluate_exit(self, bar: Bar, indicators: Mapping[str, Any]) -> ExitSignal:
        """Advance the position by one bar and report whether it must close."""
        if not self.is_open:
            return ExitSignal(should_exit=False)

        self.update_extremes(bar)

        # 1. Stop loss
        if self._stop_hit(bar):
            return ExitSignal(True, ExitReason.STOP_LOSS, self.stop_price, {"level": self.stop_price})

        # 2. Take profit
        if self._target_hit(bar):
            return ExitSignal(True, ExitReason.TAKE_PROFIT, self.target_price, {"level": self.target_price})

        # 3. Time in position
        if self._expired(bar):
            return ExitSignal(True, ExitReason.MAX_DURATION, bar.close,
                              {"held": bar.timestamp - self.entry_timestamp})

        # 4. Custom conditions
        for condition in self.exit_conditions:
            if condition.update(indicators, bar):
                return ExitSignal(True, ExitReason.CONDITION, bar.close, {"condition": condition.name})

        return ExitSignal(should_exit=False)

    # ------------------------------------------------------------------ #
    #  Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    def close(self, price: float, timestamp: Any, reason: ExitReason, fills: FillSimulator) -> float:
        """
        Close the position and return the realised P&L after slippage.

        Raises
        ------
        PositionClosedError
            If the position was already closed.
        """
        if not self.is_open:
            raise PositionClosedError(f"Position {self.id} ({self.ticker}) is already closed")
        self.status = PositionStatus.CLOSED
        self.exit_price = price
        self.exit_timestamp = timestamp
        self.exit_reason = reason
        self.realized_pnl = fills.round_trip_pnl(self.entry_price, price, self.quantity, self.side)
        for condition in self.exit_conditions:
            condition.reset()
        return self.realized_pnl

    # ------------------------------------------------------------------ #
    #  P&L                                                                #
    # ------------------------------------------------------------------ #

    def unrealized_pnl(self, price: float) -> float:
        """Mark-to-market P&L at ``price``, before exit slippage."""
        return (price - self.entry_price) * self.quantity * int(self.side)

    @property
    def pnl_percent(self) -> Optional[float]:
        if self.realized_pnl is None or self.notional == 0:
            return None
        return self.realized_pnl / self.notional * 100.0

    @property
    def mfe(self) -> float:
        """Maximum favourable excursion per share, in price units."""
        return (self.max_favorable_price - self.entry_price) * int(self.side)

    @property
    def mae(self) -> float:
        """Maximum adverse excursion per share, in price units (non-negative)."""
        return max(0.0, (self.entry_price - self.max_adverse_price) * int(self.side))
