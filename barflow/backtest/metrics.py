"""
Post-trade performance analytics.

Computes summary statistics from the closed ``Position`` objects of a run.
Dollar amounts are realised P&L after slippage; excursions (MAE/MFE) are
per share, in price units.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Tuple

import numpy as np
import pandas as pd

from barflow.configuration import ANNUALISATION_FACTOR
from barflow.models import Side
from barflow.position.position import Position


# (label, attribute, format); ``None`` starts a new block
_REPORT_ROWS = (
    ("Trades", "total_trades", "d"),
    ("Winners / losers", None, None),
    ("Break-even", "break_even_trades", "d"),
    ("Win rate", "win_rate", ".1%"),
    None,
    ("Net P&L", "net_profit", ",.2f"),
    ("Gross profit", "gross_profit", ",.2f"),
    ("Gross loss", "gross_loss", ",.2f"),
    ("Profit factor", "profit_factor", ".3f"),
    ("Mean trade", "avg_trade_pnl", ",.2f"),
    ("Best / worst trade", None, None),
    None,
    ("Sharpe (annualised)", "sharpe_ratio", ".3f"),
    ("Max drawdown", "max_drawdown", ",.2f"),
    ("Max drawdown of peak", "max_drawdown_pct", ".2%"),
    None,
    ("Mean MAE", "avg_mae", ".4f"),
    ("Mean MFE", "avg_mfe", ".4f"),
    ("Mean bars held", "avg_bars_held", ".1f"),
    ("Long / short", None, None),
    ("Long / short win rate", None, None),
)


@dataclass(frozen=True, slots=True)
class PerformanceMetrics:
    """
    Statistics of one run's closed trades.

    ``profit_factor`` is infinite when there are winners and no losers.
    ``max_drawdown_pct`` is the worst drawdown as a fraction of the equity
    peak it fell from.  ``equity_curve`` holds the account value after each
    closed trade, in exit order.
    """
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    break_even_trades: int = 0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    net_profit: float = 0.0
    avg_trade_pnl: float = 0.0
    max_win: float = 0.0
    max_loss: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_pct: float = 0.0
    avg_mae: float = 0.0
    avg_mfe: float = 0.0
    avg_bars_held: float = 0.0
    long_trades: int = 0
    short_trades: int = 0
    long_win_rate: float = 0.0
    short_win_rate: float = 0.0
    exit_reason_counts: Dict[str, int] = field(default_factory=dict)
    equity_curve: np.ndarray = field(default_factory=lambda: np.array([]))

    def _pair(self, label: str) -> str:
        if label == "Winners / losers":
            return f"{self.winning_trades} / {self.losing_trades}"
        if label == "Best / worst trade":
            return f"{self.max_win:,.2f} / {self.max_loss:,.2f}"
        if label == "Long / short":
            return f"{self.long_trades} / {self.short_trades}"
        return f"{self.long_win_rate:.1%} / {self.short_win_rate:.1%}"

    def summary(self) -> str:
        width = 52
        out = ["BACKTEST PERFORMANCE REPORT".center(width), "=" * width]
        for row in _REPORT_ROWS:
            if row is None:
                out.append("-" * width)
                continue
            label, attr, fmt = row
            value = self._pair(label) if attr is None else format(getattr(self, attr), fmt)
            out.append(f"{label:<26}{value:>26}")
        if self.exit_reason_counts:
            out.append("-" * width)
            out.append("Exits by reason")
            out.extend(f"  {reason:<24}{count:>26}" for reason, count in sorted(self.exit_reason_counts.items()))
        out.append("=" * width)
        return "\n".join(out)

    def to_dataframe(self) -> pd.DataFrame:
        """One row of scalar metrics, with ``exit_<reason>`` counts as extra columns."""
        row = {name: getattr(self, name) for name in self.__dataclass_fields__
               if name not in ("equity_curve", "exit_reason_counts")}
        for reason, count in self.exit_reason_counts.items():
            row[f"exit_{reason}"] = count
        return pd.DataFrame([row])


# ---------------------------------------------------------------------------
# Computation
# ---------------------------------------------------------------------------

def _sharpe(pnls: np.ndarray, periods: float) -> float:
    if pnls.size < 2:
        return 0.0
    spread = pnls.std(ddof=1)
    return float(pnls.mean() / spread * np.sqrt(periods)) if spread > 0 else 0.0


def _drawdown(equity: np.ndarray, start: float) -> Tuple[float, float]:
    """Worst peak-to-trough fall of ``equity`` (starting from ``start``), absolute and as a fraction of that peak."""
    peaks = np.fmax.accumulate(np.insert(equity, 0, start))[1:]
    falls = peaks - equity
    worst = int(falls.argmax())
    peak = peaks[worst]
    return float(falls[worst]), float(falls[worst] / peak) if peak > 0 else 0.0


def _rate(hits: int, total: int) -> float:
    return hits / total if total else 0.0


def compute_metrics(
    positions: Iterable[Position],
    initial_capital: float = 0.0,
    annualisation_factor: float = ANNUALISATION_FACTOR,
) -> PerformanceMetrics:
    """
    Compute ``PerformanceMetrics`` from a run's positions.

    Open positions are ignored; closed ones are ordered by exit time (then
    id) before the equity curve is built.  ``initial_capital`` seeds the
    equity curve; ``annualisation_factor`` scales the Sharpe ratio.
    """
    trades = sorted((p for p in positions if not p.is_open), key=lambda p: (p.exit_timestamp, p.id))
    if not trades:
        return PerformanceMetrics()

    pnls = np.fromiter((p.realized_pnl for p in trades), dtype=np.float64, count=len(trades))
    wins = pnls > 0
    losses = pnls < 0
    longs = np.array([p.side is Side.LONG for p in trades], dtype=bool)

    gross_profit = float(pnls[wins].sum())
    gross_loss = float(-pnls[losses].sum())
    if gross_loss > 0:
        profit_factor = gross_profit / gross_loss
    else:
        profit_factor = float("inf") if gross_profit > 0 else 0.0

    equity = initial_capital + pnls.cumsum()
    max_dd, max_dd_pct = _drawdown(equity, initial_capital)

    n_long = int(longs.sum())
    n_short = len(trades) - n_long

    return PerformanceMetrics(
        total_trades=len(trades),
        winning_trades=int(wins.sum()),
        losing_trades=int(losses.sum()),
        break_even_trades=int((pnls == 0).sum()),
        win_rate=_rate(int(wins.sum()), len(trades)),
        profit_factor=profit_factor,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        net_profit=float(pnls.sum()),
        avg_trade_pnl=float(pnls.mean()),
        max_win=float(pnls.max()),
        max_loss=float(pnls.min()),
        sharpe_ratio=_sharpe(pnls, annualisation_factor),
        max_drawdown=max_dd,
        max_drawdown_pct=max_dd_pct,
        avg_mae=float(np.mean([p.mae for p in trades])),
        avg_mfe=float(np.mean([p.mfe for p in trades])),
        avg_bars_held=float(np.mean([p.bars_held for p in trades])),
        long_trades=n_long,
        short_trades=n_short,
        long_win_rate=_rate(int((wins & longs).sum()), n_long),
        short_win_rate=_rate(int((wins & ~longs).sum()), n_short),
        exit_reason_counts=dict(Counter(p.exit_reason.value for p in trades)),
        equity_curve=equity,
    )
