import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402

from barflow.backtest import BacktestEngine  # noqa: E402
from barflow.events import Cross  # noqa: E402
from barflow.indicators import Field  # noqa: E402
from barflow.models import Side  # noqa: E402
from barflow.position import EntryStrategy, FixedShares, PositionManager, TakeProfitConfig  # noqa: E402
from barflow.viz import plot_equity_curve, plot_trades  # noqa: E402


def _result(bars):
    manager = PositionManager()
    manager.add_entry_strategy(EntryStrategy("breakout", Side.LONG, FixedShares(5),
                                             conditions=[Cross.above(Field.CLOSE, 100.0)],
                                             take_profit=TakeProfitConfig.points(2.0)))
    return BacktestEngine(manager).run(bars, flatten_at_end=True)


def test_plot_equity_curve(bars_from_closes):
    result = _result(bars_from_closes([99, 101, 104, 99, 101, 100]))
    fig, ax = plot_equity_curve(result)
    assert "2 trades" in ax.get_title()
    plt.close(fig)


def test_plot_equity_curve_without_trades(bars_from_closes):
    fig, ax = plot_equity_curve(_result(bars_from_closes([90, 91])))
    assert "no closed trades" in ax.get_title()
    plt.close(fig)


def test_plot_trades(bars_from_closes):
    bars = bars_from_closes([99, 101, 104, 99, 101, 100])
    result = _result(bars)
    fig, ax = plot_trades(bars, result, "AAA")
    assert ax.get_title() == "AAA: 2 entries, 2 exits"
    plt.close(fig)
