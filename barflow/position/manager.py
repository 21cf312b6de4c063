"""
Portfolio bookkeeping: strategies in, positions and actions out.

The ``PositionManager`` owns every position of one run (open and closed),
the account value and the registered entry strategies.  The engine calls
``process_row`` once per bar after the ticker's indicators have been
updated; the manager

1. snapshots the positions already open on that ticker,
2. evaluates every strategy's entry conditions (in registration order) and
   opens positions for the ones that fire,
3. runs exit evaluation on the snapshot,

and returns the resulting ``EntryAction`` / ``ExitAction`` records in the
order they happened.  Positions opened on a bar are first exit-checked on
the next bar of their ticker.

Per-row failures (a stop that cannot be placed, an unaffordable size, a
max duration that does not fit the timestamps) are logged and skip that
one entry or exit check; they never abort the row.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from barflow.events.conditions import BaseCondition, evaluate_all
from barflow.exceptions import ConfigurationError
from barflow.models import (
    BacktestConfig,
    Bar,
    EntryAction,
    ExitAction,
    ExitReason,
)
from barflow.position.execution import FillSimulator
from barflow.position.position import Position
from barflow.position.strategy import EntryStrategy

logger = logging.getLogger(__name__)

Action = Union[EntryAction, ExitAction]


class PositionManager:
    """
    Parameters
    ----------
    config : BacktestConfig | None
        Account value, slippage and default max duration.  ``None`` uses the
        defaults.
    """

    def __init__(self, config: Optional[BacktestConfig] = None) -> None:
        self.config = config or BacktestConfig()
        self.account_value: float = float(self.config.starting_account_value)
        self.fills = FillSimulator(self.config.slippage_fraction)
        self._strategies: List[EntryStrategy] = []
        self._positions: Dict[int, Position] = {}
        self._entry_conditions: Dict[Tuple[int, str], List[BaseCondition]] = {}
        self._next_id = 1

    # ------------------------------------------------------------------ #
    #  Registration                                                       #
    # ------------------------------------------------------------------ #

    def add_entry_strategy(self, strategy: EntryStrategy) -> None:
        """
        Register a strategy.  Names need not be unique.

        Raises
        ------
        ConfigurationError
            If the strategy can never size or exit (see ``EntryStrategy.validate``).
        """
        strategy.validate()
        self._strategies.append(strategy)
        logger.debug("Registered strategy %r (%s)", strategy.name, strategy.side.name)

    @property
    def strategies(self) -> List[EntryStrategy]:
        return list(self._strategies)

    def _conditions_for(self, index: int, ticker: str) -> List[BaseCondition]:
        key = (index, ticker)
        conditions = self._entry_conditions.get(key)
        if conditions is None:
            conditions = copy.deepcopy(self._strategies[index].conditions)
            self._entry_conditions[key] = conditions
        return conditions

    # ------------------------------------------------------------------ #
    #  Per-row processing                                                 #
    # ------------------------------------------------------------------ #

    def process_row(self, bar: Bar, context: Any) -> List[Action]:
        """
        Run entries then exits for ``bar``.

        ``context`` is the ticker's ``TickerContext`` (anything with an
        ``indicators`` mapping of name to indicator).
        """
        indicators: Mapping[str, Any] = context.indicators
        held = [p for p in self._positions.values() if p.is_open and p.ticker == bar.ticker]
        actions: List[Action] = []

        for index, strategy in enumerate(self._strategies):
            conditions = self._conditions_for(index, bar.ticker)
            if not evaluate_all(conditions, indicators, bar):
                continue
            try:
                action = self._open(strategy, bar, indicators)
            except ConfigurationError as exc:
                logger.warning("Skipped %r entry on %s at %s: %s", strategy.name, bar.ticker, bar.timestamp, exc)
                continue
            if action is not None:
                actions.append(action)

        for position in held:
            try:
                signal = position.evaluate_exit(bar, indicators)
            except ConfigurationError as exc:
                logger.warning("Skipped exit check of #%d on %s at %s: %s",
                               position.id, bar.ticker, bar.timestamp, exc)
                continue
            if signal.should_exit:
                actions.append(self._close(position, signal.exit_price, bar.timestamp, signal.reason))

        return actions

    def _open(self, strategy: EntryStrategy, bar: Bar, indicators: Mapping[str, Any]) -> Optional[EntryAction]:
        price = strategy.fill_field.extract(bar)
        side = strategy.side

        stop_price = stop_distance = None
        if strategy.stop_loss is not None:
            stop_price = strategy.stop_loss.resolve(price, side, indicators)
            stop_distance = abs(price - stop_price)

        target_price = None
        if strategy.take_profit is not None:
            target_price = strategy.take_profit.resolve(price, side, indicators, stop_distance)

        quantity = strategy.sizing.resolve(price, self.account_value, stop_distance)
        if quantity <= 0:
            logger.info("Skipped %r entry on %s at %s: sized to zero shares", strategy.name, bar.ticker, bar.timestamp)
            return None

        cost = self.fills.fill_entry(price, side) * quantity
        if cost > self.buying_power:
            logger.info(
                "Skipped %r entry on %s at %s: needs %.2f, buying power %.2f",
                strategy.name, bar.ticker, bar.timestamp, cost, self.buying_power,
            )
            return None

        position = Position(
            id=self._next_id,
            ticker=bar.ticker,
            side=side,
            quantity=quantity,
            entry_price=price,
            entry_timestamp=bar.timestamp,
            strategy_name=strategy.name,
            exit_conditions=copy.deepcopy(strategy.exit_conditions),
            stop_price=stop_price,
            target_price=target_price,
            max_duration=(strategy.max_duration if strategy.max_duration is not None
                          else self.config.max_position_duration),
        )
        position.prime(indicators, bar)
        self._positions[position.id] = position
        self._next_id += 1

        logger.debug("Opened #%d %s %s x%d @ %.4f", position.id, side.name, bar.ticker, quantity, price)
        return EntryAction(
            position_id=position.id,
            ticker=position.ticker,
            side=side,
            price=price,
            quantity=quantity,
            timestamp=bar.timestamp,
            strategy_name=strategy.name,
        )

    def _close(self, position: Position, price: float, timestamp: Any, reason: ExitReason) -> ExitAction:
        pnl = position.close(price, timestamp, reason, self.fills)
        self.account_value += pnl
        logger.debug("Closed #%d %s @ %.4f (%s) pnl=%.2f", position.id, position.ticker, price, reason.value, pnl)
        return ExitAction(
            position_id=position.id,
            ticker=position.ticker,
            price=price,
            quantity=position.quantity,
            pnl=pnl,
            reason=reason,
            timestamp=timestamp,
        )

    def close_all(self, prices: Mapping[str, float], timestamp: Any,
                  reason: ExitReason = ExitReason.END_OF_DATA,
                  ticker: Optional[str] = None) -> List[ExitAction]:
        """
        Force-close open positions at their ticker's price in ``prices``.

        ``ticker`` restricts the sweep to one ticker.  Positions whose ticker
        has no price stay open and are logged.
        """
        targets = self.open_positions(ticker)
        missing = sorted({p.ticker for p in targets if p.ticker not in prices})
        if missing:
            logger.warning("Cannot flatten positions without a price: %s", missing)
        return [self._close(p, prices[p.ticker], timestamp, reason) for p in targets if p.ticker in prices]

    # ------------------------------------------------------------------ #
    #  Queries                                                            #
    # ------------------------------------------------------------------ #

    def get_position(self, position_id: int) -> Optional[Position]:
        """The position with ``position_id``, or ``None`` if there is none."""
        return self._positions.get(position_id)

    @property
    def positions(self) -> List[Position]:
        return list(self._positions.values())

    def open_positions(self, ticker: Optional[str] = None) -> List[Position]:
        return [p for p in self._positions.values() if p.is_open and (ticker is None or p.ticker == ticker)]

    def closed_positions(self) -> List[Position]:
        return [p for p in self._positions.values() if not p.is_open]

    def total_realized_pnl(self) -> float:
        return sum(p.realized_pnl for p in self.closed_positions())

    def unpriced_tickers(self, prices: Mapping[str, float]) -> List[str]:
        """Tickers with open positions but no entry in ``prices``."""
        return sorted({p.ticker for p in self.open_positions() if p.ticker not in prices})

    def total_unrealized_pnl(self, prices: Mapping[str, float]) -> float:
        """
        Mark-to-market P&L of all open positions.

        Positions whose ticker is missing from ``prices`` contribute zero and
        are logged at WARNING; use ``unpriced_tickers`` to get the list.
        """
        missing = self.unpriced_tickers(prices)
        if missing:
            logger.warning("No current price for open positions in %s; counted as zero", missing)
        return sum(p.unrealized_pnl(prices[p.ticker]) for p in self.open_positions() if p.ticker in prices)

    # ------------------------------------------------------------------ #
    #  Account                                                            #
    # ------------------------------------------------------------------ #

    def update_account_value(self, value: float) -> None:
        """Overwrite the account value used by subsequent sizing decisions."""
        if value < 0:
            raise ConfigurationError(f"Account value must be non-negative, got {value}")
        self.account_value = float(value)

    @property
    def buying_power(self) -> float:
        """Account value not tied up in the notional of open positions."""
        return self.account_value - sum(p.notional for p in self.open_positions())
