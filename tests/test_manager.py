import logging

import pytest

from barflow.events import Compare, Cross
from barflow.exceptions import ConfigurationError
from barflow.indicators import Field
from barflow.models import BacktestConfig, Bar, EntryAction, ExitAction, ExitReason, Side
from barflow.position import (
    EntryStrategy,
    FixedShares,
    PercentOfAccount,
    PositionManager,
    RiskBased,
    StopLossConfig,
    TakeProfitConfig,
)

from helpers import StubIndicator


def _breakout(name="breakout", side=Side.LONG, level=100.0, sizing=None, **kwargs):
    cross = Cross.above(Field.CLOSE, level) if side == Side.LONG else Cross.below(Field.CLOSE, level)
    return EntryStrategy(name=name, side=side, sizing=sizing or FixedShares(10), conditions=[cross], **kwargs)


def _feed(manager, bars, context):
    out = []
    for bar in bars:
        out.append(manager.process_row(bar, context))
    return out


def test_entry_then_stop_exit(bars_from_closes, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout(stop_loss=StopLossConfig.points(3.0)))
    rows = _feed(manager, bars_from_closes([99, 101, 102, 97]), empty_context)

    assert rows[0] == []
    (entry,) = rows[1]
    assert isinstance(entry, EntryAction)
    assert (entry.position_id, entry.price, entry.quantity, entry.side) == (1, 101.0, 10, Side.LONG)
    assert rows[2] == []
    (exit_,) = rows[3]
    assert isinstance(exit_, ExitAction)
    assert exit_.reason == ExitReason.STOP_LOSS
    assert exit_.price == pytest.approx(98.0)
    assert exit_.pnl == pytest.approx(-30.0)

    assert manager.total_realized_pnl() == pytest.approx(-30.0)
    assert manager.account_value == pytest.approx(100_000.0 - 30.0)
    assert manager.get_position(1).exit_reason == ExitReason.STOP_LOSS


def test_position_not_exit_checked_on_entry_row(make_bar, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout(stop_loss=StopLossConfig.points(0.2)))
    manager.process_row(make_bar(0, 99.0), empty_context)
    # entry bar low (100.5) is below the 100.8 stop, yet the position survives the row
    actions = manager.process_row(make_bar(1, 101.0), empty_context)
    assert [type(a) for a in actions] == [EntryAction]
    assert manager.get_position(1).is_open
    (exit_,) = manager.process_row(make_bar(2, 101.0), empty_context)
    assert exit_.reason == ExitReason.STOP_LOSS


def test_entries_are_reported_before_exits(bars_from_closes, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout(take_profit=TakeProfitConfig.points(1.0)))
    manager.add_entry_strategy(_breakout(name="second", level=101.5))
    rows = _feed(manager, bars_from_closes([99, 101, 103]), empty_context)
    assert [type(a) for a in rows[2]] == [EntryAction, ExitAction]
    assert rows[2][0].strategy_name == "second"
    assert rows[2][1].position_id == 1


def test_duplicate_strategy_names_are_independent(bars_from_closes, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout())
    manager.add_entry_strategy(_breakout())
    rows = _feed(manager, bars_from_closes([99, 101]), empty_context)
    assert [a.position_id for a in rows[1]] == [1, 2]


def test_risk_based_sizing_requires_stop():
    manager = PositionManager()
    with pytest.raises(ConfigurationError):
        manager.add_entry_strategy(_breakout(sizing=RiskBased(1.0)))
    with pytest.raises(ConfigurationError):
        manager.add_entry_strategy(_breakout(take_profit=TakeProfitConfig.risk_reward(2.0)))


def test_risk_based_sizing_uses_stop_distance(bars_from_closes, empty_context):
    manager = PositionManager(BacktestConfig(starting_account_value=10_000.0))
    manager.add_entry_strategy(_breakout(sizing=RiskBased(1.0), stop_loss=StopLossConfig.points(2.0),
                                         take_profit=TakeProfitConfig.risk_reward(3.0)))
    (entry,) = _feed(manager, bars_from_closes([99, 101]), empty_context)[1]
    assert entry.quantity == 50
    pos = manager.get_position(entry.position_id)
    assert pos.stop_price == pytest.approx(99.0)
    assert pos.target_price == pytest.approx(107.0)


def test_insufficient_buying_power_skips_entry(bars_from_closes, empty_context, caplog):
    manager = PositionManager(BacktestConfig(starting_account_value=1_000.0))
    manager.add_entry_strategy(_breakout(sizing=FixedShares(100)))
    with caplog.at_level(logging.INFO, logger="barflow.position.manager"):
        rows = _feed(manager, bars_from_closes([99, 101]), empty_context)
    assert rows[1] == []
    assert manager.positions == []
    assert "buying power" in caplog.text


def test_buying_power_accounts_for_open_positions(bars_from_closes, empty_context):
    manager = PositionManager(BacktestConfig(starting_account_value=1_500.0))
    manager.add_entry_strategy(_breakout(sizing=FixedShares(10)))
    manager.add_entry_strategy(_breakout(sizing=FixedShares(10)))
    rows = _feed(manager, bars_from_closes([99, 101]), empty_context)
    assert len(rows[1]) == 1
    assert manager.buying_power == pytest.approx(1_500.0 - 1_010.0)


def test_zero_quantity_skips_entry(bars_from_closes, empty_context):
    manager = PositionManager(BacktestConfig(starting_account_value=50.0))
    manager.add_entry_strategy(_breakout(sizing=PercentOfAccount(10.0)))
    rows = _feed(manager, bars_from_closes([99, 101]), empty_context)
    assert rows[1] == []


def test_configuration_error_aborts_only_that_entry(bars_from_closes, empty_context, caplog):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout(name="needs-atr", stop_loss=StopLossConfig.atr(2.0)))
    manager.add_entry_strategy(_breakout(name="plain"))
    with caplog.at_level(logging.WARNING, logger="barflow.position.manager"):
        rows = _feed(manager, bars_from_closes([99, 101]), empty_context)
    assert [a.strategy_name for a in rows[1]] == ["plain"]
    assert "needs-atr" in caplog.text


def test_atr_stop_uses_context_indicator(bars_from_closes):
    from types import SimpleNamespace

    context = SimpleNamespace(indicators={"atr": StubIndicator(0.5)})
    manager = PositionManager()
    manager.add_entry_strategy(_breakout(stop_loss=StopLossConfig.atr(2.0)))
    _feed(manager, bars_from_closes([99, 101]), context)
    assert manager.get_position(1).stop_price == pytest.approx(100.0)


def test_short_strategy(bars_from_closes, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout(side=Side.SHORT, take_profit=TakeProfitConfig.percent(2.0)))
    rows = _feed(manager, bars_from_closes([101, 99, 96]), empty_context)
    (entry,) = rows[1]
    assert entry.side == Side.SHORT
    (exit_,) = rows[2]
    assert exit_.reason == ExitReason.TAKE_PROFIT
    assert exit_.price == pytest.approx(97.02)
    assert exit_.pnl == pytest.approx((99.0 - 97.02) * 10)


def test_entry_conditions_are_per_ticker(make_bar, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout())
    manager.process_row(make_bar(0, 99.0, ticker="AAA"), empty_context)
    # BBB's first row has no baseline, so no cross even though AAA was below the level
    assert manager.process_row(make_bar(0, 101.0, ticker="BBB"), empty_context) == []
    (entry,) = manager.process_row(make_bar(1, 101.0, ticker="AAA"), empty_context)
    assert entry.ticker == "AAA"


def test_exit_conditions_are_copied_per_position(bars_from_closes, empty_context):
    exit_cross = Cross.below(Field.CLOSE, 100.0)
    strategy = _breakout(exit_conditions=[exit_cross])
    manager = PositionManager()
    manager.add_entry_strategy(strategy)
    manager.add_entry_strategy(_breakout(exit_conditions=[exit_cross]))
    _feed(manager, bars_from_closes([99, 101]), empty_context)
    p1, p2 = manager.get_position(1), manager.get_position(2)
    assert p1.exit_conditions[0] is not p2.exit_conditions[0]
    assert p1.exit_conditions[0] is not exit_cross
    assert exit_cross._prev is None


def test_condition_exit_fires_once_per_position(bars_from_closes, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout(exit_conditions=[Cross.below(Field.CLOSE, 100.0)]))
    rows = _feed(manager, bars_from_closes([99, 101, 102, 98, 97]), empty_context)
    (exit_,) = rows[3]
    assert exit_.reason == ExitReason.CONDITION
    assert exit_.price == 98.0
    assert rows[4] == []


def test_max_duration_from_config(bars_from_closes, empty_context):
    from datetime import timedelta

    manager = PositionManager(BacktestConfig(max_position_duration=timedelta(minutes=2)))
    manager.add_entry_strategy(_breakout())
    rows = _feed(manager, bars_from_closes([99, 101, 101, 101]), empty_context)
    assert rows[2] == []
    (exit_,) = rows[3]
    assert exit_.reason == ExitReason.MAX_DURATION


def test_zero_strategy_max_duration_overrides_config(bars_from_closes, empty_context):
    from datetime import timedelta

    manager = PositionManager(BacktestConfig(max_position_duration=timedelta(hours=1)))
    manager.add_entry_strategy(_breakout(max_duration=timedelta(0)))
    rows = _feed(manager, bars_from_closes([99, 101, 101]), empty_context)
    (exit_,) = rows[2]
    assert exit_.reason == ExitReason.MAX_DURATION


def test_failed_exit_check_is_logged_and_the_row_continues(make_bar, empty_context, caplog):
    from datetime import timedelta

    manager = PositionManager()
    manager.add_entry_strategy(_breakout(name="bad-duration", max_duration=timedelta(minutes=1)))
    manager.add_entry_strategy(_breakout(name="stopped", stop_loss=StopLossConfig.points(1.0)))

    def bar(i, close):
        return Bar("AAA", i, close, close + 0.5, close - 0.5, close, 100)

    with caplog.at_level(logging.WARNING, logger="barflow.position.manager"):
        rows = _feed(manager, [bar(0, 99.0), bar(1, 101.0), bar(2, 99.0), bar(3, 98.0)], empty_context)

    assert [a.strategy_name for a in rows[1]] == ["bad-duration", "stopped"]
    (stop_exit,) = rows[2]
    assert stop_exit.reason == ExitReason.STOP_LOSS
    assert rows[3] == []
    assert [p.strategy_name for p in manager.open_positions()] == ["bad-duration"]
    assert caplog.text.count("Skipped exit check") == 2


def test_get_unknown_position_is_none():
    assert PositionManager().get_position(42) is None


def test_unrealized_pnl_flags_missing_prices(make_bar, empty_context, caplog):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout())
    for ticker in ("AAA", "BBB"):
        manager.process_row(make_bar(0, 99.0, ticker=ticker), empty_context)
        manager.process_row(make_bar(1, 101.0, ticker=ticker), empty_context)

    with caplog.at_level(logging.WARNING, logger="barflow.position.manager"):
        total = manager.total_unrealized_pnl({"AAA": 103.0})
    assert total == pytest.approx(20.0)
    assert manager.unpriced_tickers({"AAA": 103.0}) == ["BBB"]
    assert "BBB" in caplog.text


def test_update_account_value_changes_sizing(bars_from_closes, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout(sizing=PercentOfAccount(10.0)))
    manager.update_account_value(20_200.0)
    (entry,) = _feed(manager, bars_from_closes([99, 101]), empty_context)[1]
    assert entry.quantity == 20
    with pytest.raises(ConfigurationError):
        manager.update_account_value(-1.0)


def test_close_all(make_bar, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(_breakout())
    for ticker in ("AAA", "BBB"):
        manager.process_row(make_bar(0, 99.0, ticker=ticker), empty_context)
        manager.process_row(make_bar(1, 101.0, ticker=ticker), empty_context)

    closed = manager.close_all({"AAA": 105.0}, make_bar(2, 105.0).timestamp)
    assert [(a.ticker, a.reason) for a in closed] == [("AAA", ExitReason.END_OF_DATA)]
    assert [p.ticker for p in manager.open_positions()] == ["BBB"]
    assert [p.ticker for p in manager.closed_positions()] == ["AAA"]


def test_level_entry_condition_fires_every_row(bars_from_closes, empty_context):
    manager = PositionManager()
    manager.add_entry_strategy(EntryStrategy("level", Side.LONG, FixedShares(1),
                                             conditions=[Compare(Field.CLOSE, ">", 100.0)]))
    rows = _feed(manager, bars_from_closes([101, 102, 99]), empty_context)
    assert [len(r) for r in rows] == [1, 1, 0]
    assert len(manager.open_positions("AAA")) == 2
