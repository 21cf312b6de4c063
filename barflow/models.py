"""
Data models, enums, and type definitions for the bar-by-bar simulator.

All value objects are intentionally kept immutable (frozen dataclasses / enums)
so nothing downstream can rewrite a bar or an action once it is produced.
``Position`` (see ``barflow.position.position``) is the sole mutable record
and lives in its own module.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import time, timedelta
from typing import Any, Dict, Mapping, Optional

from barflow.configuration import (
    DEFAULT_SLIPPAGE_FRACTION,
    DEFAULT_STARTING_ACCOUNT_VALUE,
    MARKET_CLOSE_TIME,
    MARKET_OPEN_TIME,
    POSTMARKET_CLOSE_TIME,
    PREMARKET_OPEN_TIME,
)
from barflow.exceptions import ConfigurationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Side(enum.IntEnum):
    """Trade direction. The integer value is the P&L sign."""
    SHORT = -1
    LONG  = 1


class PositionStatus(enum.Enum):
    OPEN   = "open"
    CLOSED = "closed"


class ExitReason(enum.Enum):
    """Why a position was closed."""
    STOP_LOSS    = "stop_loss"
    TAKE_PROFIT  = "take_profit"
    MAX_DURATION = "max_duration"
    CONDITION    = "condition"
    END_OF_DATA  = "end_of_data"


# ---------------------------------------------------------------------------
# Immutable value objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Bar:
    """
    One OHLCV observation for one ticker.

    Attributes
    ----------
    ticker : str
    timestamp : Any
        Any ordered instant that supports subtraction: ``datetime`` /
        ``pd.Timestamp`` (paired with ``timedelta`` windows) or plain
        integers (paired with integer windows).
    open, high, low, close : float
    volume : float
    """
    ticker: str
    timestamp: Any
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def median_price(self) -> float:
        return (self.high + self.low) / 2.0

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3.0

    @property
    def weighted_close(self) -> float:
        return (self.high + self.low + self.close + self.close) / 4.0

    def true_range(self, previous_close: Optional[float]) -> float:
        """Largest of high-low, |high-prev close| and |low-prev close|."""
        h_l = self.high - self.low
        if previous_close is None:
            return h_l
        return max(h_l, abs(self.high - previous_close), abs(self.low - previous_close))


@dataclass(frozen=True, slots=True)
class ExitSignal:
    """
    Returned by ``Position.evaluate_exit`` to instruct the manager to close.

    Attributes
    ----------
    should_exit : bool
        ``True`` if the position should be closed **now**.
    reason : ExitReason
        Categorical reason for the exit.
    exit_price : float | None
        Fill price before slippage.  Stop / target exits carry the level
        price; time and condition exits carry the bar's close.
    metadata : dict
        Arbitrary key/value bag for diagnostics (level hit, condition name).
    """
    should_exit: bool = False
    reason: ExitReason = ExitReason.CONDITION
    exit_price: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class EntryAction:
    """Emitted once when a position is opened."""
    position_id: int
    ticker: str
    side: Side
    price: float
    quantity: int
    timestamp: Any
    strategy_name: str = ""


@dataclass(frozen=True, slots=True)
class ExitAction:
    """Emitted once when a position is closed."""
    position_id: int
    ticker: str
    price: float
    quantity: int
    pnl: float
    reason: ExitReason
    timestamp: Any


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class MarketHours:
    """
    Trading session boundaries (exchange-local wall clock).

    Bars are expected to carry timestamps already expressed in the
    exchange's local time; no timezone conversion happens here.
    """
    include_premarket: bool = False
    include_postmarket: bool = False
    market_open: time = MARKET_OPEN_TIME
    market_close: time = MARKET_CLOSE_TIME
    premarket_open: time = PREMARKET_OPEN_TIME
    postmarket_close: time = POSTMARKET_CLOSE_TIME

    @property
    def earliest_valid_time(self) -> time:
        return self.premarket_open if self.include_premarket else self.market_open

    @property
    def latest_valid_time(self) -> time:
        return self.postmarket_close if self.include_postmarket else self.market_close

    @property
    def session_minutes(self) -> int:
        """Length of the regular session (open to close) in minutes."""
        return (self.market_close.hour * 60 + self.market_close.minute) - (
            self.market_open.hour * 60 + self.market_open.minute
        )

    def minutes_since_open(self, moment: time) -> int:
        """Whole minutes from the regular open to ``moment``; negative before the open."""
        return (moment.hour * 60 + moment.minute) - (self.market_open.hour * 60 + self.market_open.minute)

    def is_valid_time(self, moment: time) -> bool:
        return self.earliest_valid_time <= moment <= self.latest_valid_time


@dataclass(frozen=True, slots=True)
class BacktestConfig:
    """
    Immutable run configuration.

    Attributes
    ----------
    starting_account_value : float
        Account value used by percent-of-account and risk-based sizing
        until ``PositionManager.update_account_value`` overwrites it.
    slippage_fraction : float
        Fraction applied symmetrically against the trader on entry and
        exit fills (0.001 == 10 bps).
    max_position_duration : timedelta | float | None
        If set, positions open at least this long are force-closed.  A
        number counts seconds against datetime timestamps and raw units
        against integer timestamps.
    market_hours : MarketHours | None
        If set, bars outside the session are skipped by the engine.
    """
    starting_account_value: float = DEFAULT_STARTING_ACCOUNT_VALUE
    slippage_fraction: float = DEFAULT_SLIPPAGE_FRACTION
    max_position_duration: Optional[Any] = None
    market_hours: Optional[MarketHours] = None

    def __post_init__(self) -> None:
        if self.starting_account_value < 0:
            raise ConfigurationError(
                f"starting_account_value must be non-negative, got {self.starting_account_value}"
            )
        if not 0.0 <= self.slippage_fraction < 1.0:
            raise ConfigurationError(
                f"slippage_fraction must be in [0, 1), got {self.slippage_fraction}"
            )

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "BacktestConfig":
        """
        Build a config from a plain mapping (e.g. a parsed TOML/JSON file).

        ``max_position_duration`` may be a ``timedelta`` or a number, kept as
        given: a number is in the bars' own timestamp units, or seconds when
        the timestamps are datetimes.  ``market_hours`` may be a nested
        mapping of ``MarketHours`` fields.  Unknown keys raise
        ``ConfigurationError``.
        """
        known = {"starting_account_value", "slippage_fraction", "max_position_duration", "market_hours"}
        unknown = set(options) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration options: {sorted(unknown)}")

        kwargs: Dict[str, Any] = {}
        if "starting_account_value" in options:
            kwargs["starting_account_value"] = float(options["starting_account_value"])
        if "slippage_fraction" in options:
            kwargs["slippage_fraction"] = float(options["slippage_fraction"])

        duration = options.get("max_position_duration")
        if duration is not None and not isinstance(duration, (timedelta, int, float)):
            raise ConfigurationError(
                f"max_position_duration must be a timedelta or a number, got {duration!r}"
            )
        kwargs["max_position_duration"] = duration

        hours = options.get("market_hours")
        if isinstance(hours, Mapping):
            hours = MarketHours(**hours)
        kwargs["market_hours"] = hours

        return cls(**kwargs)
