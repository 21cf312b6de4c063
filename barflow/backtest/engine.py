"""
Row-driven backtesting engine.

Architecture
~~~~~~~~~~~~
The engine owns one ``TickerContext`` per ticker and a reference to the
``PositionManager``.  For every bar it

1. drops the bar if it falls outside the configured market session,
2. creates the ticker's context on first sight (fresh indicator instances
   from the registered factories),
3. updates the context's indicators with the bar,
4. hands the bar and context to ``PositionManager.process_row``,
5. records the returned actions.

Nothing sees a bar before step 3 and nothing ever sees a later bar, so a
signal on bar *t* depends only on bars up to *t*.  Rows of different
tickers may interleave; each ticker must be in non-decreasing timestamp
order.

Usage
-----
>>> manager = PositionManager(BacktestConfig(slippage_fraction=0.001))
>>> manager.add_entry_strategy(strategy)
>>> engine = BacktestEngine(manager, {"sma_fast": lambda: MovingAverage(Window.count(10)),
...                                   "sma_slow": lambda: MovingAverage(Window.count(30))})
>>> result = engine.run(bars, flatten_at_end=True)
>>> result.summary()
"""

from __future__ import annotations

import logging
from collections.abc import Sized
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional

import pandas as pd
from tqdm import tqdm

from barflow.backtest.context import TickerContext
from barflow.backtest.metrics import PerformanceMetrics, compute_metrics
from barflow.exceptions import ConfigurationError, MissingIndicatorError, TimestampOrderError
from barflow.indicators.indicators import Indicator
from barflow.models import BacktestConfig, Bar, EntryAction, ExitAction
from barflow.position.manager import Action, PositionManager
from barflow.position.position import Position

logger = logging.getLogger(__name__)

IndicatorFactory = Callable[[], Indicator]


# ======================================================================== #
#  Result container                                                        #
# ======================================================================== #

@dataclass
class BacktestResult:
    """
    Container returned by ``BacktestEngine.run()``.

    Attributes
    ----------
    actions : list
        ``EntryAction`` / ``ExitAction`` records in the order they happened.
    positions : list[Position]
        Every position of the run, open and closed, by id.
    trades_df : pd.DataFrame
        Closed positions in tabular form for analysis / export.
    metrics : PerformanceMetrics
        Aggregated performance statistics.
    config : BacktestConfig
        The configuration used for this run.
    last_prices : dict
        Last close seen per ticker (for marking open positions).
    skipped_bars : int
        Bars dropped by the session filter or for being out of order.
    """
    actions: List[Action] = field(default_factory=list)
    positions: List[Position] = field(default_factory=list)
    trades_df: pd.DataFrame = field(default_factory=pd.DataFrame)
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    config: BacktestConfig = field(default_factory=BacktestConfig)
    last_prices: Dict[str, float] = field(default_factory=dict)
    skipped_bars: int = 0

    @property
    def entries(self) -> List[EntryAction]:
        return [a for a in self.actions if isinstance(a, EntryAction)]

    @property
    def exits(self) -> List[ExitAction]:
        return [a for a in self.actions if isinstance(a, ExitAction)]

    def summary(self) -> str:
        """Print and return the performance summary."""
        s = self.metrics.summary()
        print(s)
        return s


# ======================================================================== #
#  Engine                                                                  #
# ======================================================================== #

class BacktestEngine:
    """
    Bar-by-bar backtesting engine.

    Parameters
    ----------
    manager : PositionManager
        Portfolio that receives every bar after its indicators are updated.
    indicators : mapping of name -> zero-argument factory
        Each ticker gets its own instances, built on the ticker's first bar.
    config : BacktestConfig | None
        Defaults to ``manager.config``.  Only ``market_hours`` is read here.
    progress_bar : bool
        Show a ``tqdm`` progress bar during ``run``.
    """

    def __init__(
        self,
        manager: PositionManager,
        indicators: Optional[Mapping[str, IndicatorFactory]] = None,
        config: Optional[BacktestConfig] = None,
        progress_bar: bool = False,
    ) -> None:
        self.manager = manager
        self.indicator_factories: Dict[str, IndicatorFactory] = dict(indicators or {})
        self.config = config or manager.config
        self.progress_bar = progress_bar

        self._contexts: Dict[str, TickerContext] = {}
        self.actions: List[Action] = []
        self.last_prices: Dict[str, float] = {}
        self.skipped_bars = 0

        self._validate_strategies()

    # ------------------------------------------------------------------ #
    #  Validation                                                         #
    # ------------------------------------------------------------------ #

    def _validate_strategies(self) -> None:
        for strategy in self.manager.strategies:
            for name in strategy.required_indicators():
                if name not in self.indicator_factories:
                    raise MissingIndicatorError(
                        f"Strategy {strategy.name!r} places ATR levels from {name!r}, "
                        f"which is not among the registered indicators {sorted(self.indicator_factories)}"
                    )

    def _in_session(self, bar: Bar) -> bool:
        hours = self.config.market_hours
        if hours is None:
            return True
        to_time = getattr(bar.timestamp, "time", None)
        if to_time is None:
            raise ConfigurationError(
                f"market_hours needs datetime timestamps, got {type(bar.timestamp).__name__}"
            )
        return hours.is_valid_time(to_time())

    # ------------------------------------------------------------------ #
    #  Contexts                                                           #
    # ------------------------------------------------------------------ #

    def _context_for(self, ticker: str) -> TickerContext:
        context = self._contexts.get(ticker)
        if context is None:
            context = TickerContext(ticker)
            for name, factory in self.indicator_factories.items():
                context.add_indicator(name, factory())
            self._contexts[ticker] = context
            logger.debug("New ticker %s with indicators %s", ticker, list(self.indicator_factories))
        return context

    def context(self, ticker: str) -> Optional[TickerContext]:
        return self._contexts.get(ticker)

    @property
    def tickers(self) -> List[str]:
        return list(self._contexts)

    # ------------------------------------------------------------------ #
    #  Public API                                                         #
    # ------------------------------------------------------------------ #

    def process_bar(self, bar: Bar) -> List[Action]:
        """
        Advance the simulation by one bar.

        Raises
        ------
        TimestampOrderError
            If ``bar`` is older than the previous bar of its ticker.  No
            state has been changed when this is raised.
        """
        if not self._in_session(bar):
            self.skipped_bars += 1
            return []

        context = self._context_for(bar.ticker)
        context.update(bar)

        actions = self.manager.process_row(bar, context)
        self.last_prices[bar.ticker] = bar.close
        self.actions.extend(actions)
        return actions

    def run(self, bars: Iterable[Bar], flatten_at_end: bool = False) -> BacktestResult:
        """
        Feed every bar through ``process_bar`` and collect the result.

        Out-of-order bars are logged and skipped instead of aborting the run.
        With ``flatten_at_end`` every position still open afterwards is
        closed at its ticker's last close (reason ``END_OF_DATA``).
        """
        self._validate_strategies()

        total = len(bars) if isinstance(bars, Sized) else None
        for bar in tqdm(bars, total=total, desc="Backtesting", disable=not self.progress_bar):
            try:
                self.process_bar(bar)
            except TimestampOrderError as exc:
                self.skipped_bars += 1
                logger.warning("Skipping out-of-order bar: %s", exc)

        if flatten_at_end:
            self.flatten()

        positions = self.manager.positions
        result = BacktestResult(
            actions=list(self.actions),
            positions=positions,
            trades_df=self._trades_to_dataframe(positions),
            metrics=compute_metrics(positions, initial_capital=self.manager.config.starting_account_value),
            config=self.config,
            last_prices=dict(self.last_prices),
            skipped_bars=self.skipped_bars,
        )
        logger.info(
            "Backtest finished: %d bars skipped, %d entries, %d exits, realized P&L %.2f",
            self.skipped_bars, len(result.entries), len(result.exits), self.manager.total_realized_pnl(),
        )
        return result

    def flatten(self) -> List[ExitAction]:
        """Close every open position at its ticker's last close and bar time."""
        closed: List[ExitAction] = []
        for ticker, context in self._contexts.items():
            if context.latest_bar is None:
                continue
            closed.extend(self.manager.close_all(
                self.last_prices, context.latest_bar.timestamp, ticker=ticker,
            ))
        self.actions.extend(closed)
        return closed

    # ------------------------------------------------------------------ #
    #  Helpers                                                            #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _trades_to_dataframe(positions: List[Position]) -> pd.DataFrame:
        """Convert the closed positions into a Pandas DataFrame."""
        rows = []
        for p in positions:
            if p.is_open:
                continue
            rows.append({
                "position_id": p.id,
                "ticker": p.ticker,
                "strategy": p.strategy_name,
                "side": p.side.name,
                "quantity": p.quantity,
                "entry_timestamp": p.entry_timestamp,
                "exit_timestamp": p.exit_timestamp,
                "entry_price": p.entry_price,
                "exit_price": p.exit_price,
                "stop_price": p.stop_price,
                "target_price": p.target_price,
                "realized_pnl": p.realized_pnl,
                "pnl_percent": p.pnl_percent,
                "exit_reason": p.exit_reason.value,
                "mae": p.mae,
                "mfe": p.mfe,
                "bars_held": p.bars_held,
            })
        if not rows:
            return pd.DataFrame()
        return pd.DataFrame(rows)
