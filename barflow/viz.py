"""
viz.py: plotting utilities (matplotlib)

Public API:
    plot_equity_curve
    plot_trades

Design
------
• Both functions take a finished ``BacktestResult`` and never touch the engine.
• Every function returns the ``(fig, ax)`` pair and only calls ``plt.show()``
  when ``show=True``, so plots can be saved or tested headless.
"""
from __future__ import annotations

from typing import Iterable, Optional, Tuple

import matplotlib as mpl
import matplotlib.pyplot as plt
import pandas as pd

from barflow.models import Bar, ExitAction, Side

__all__ = ["plot_equity_curve", "plot_trades"]

# --- light theme shared by every plot ---
_RC = {
    "axes.facecolor": "#fbfbfd",
    "figure.facecolor": "#ffffff",
    "axes.edgecolor": "#9aa3ad",
    "axes.labelcolor": "#1f2937",
    "xtick.color": "#334155",
    "ytick.color": "#334155",
    "grid.color": "#e5e7eb",
    "axes.titlesize": 12,
    "axes.titleweight": "semibold",
    "axes.titlepad": 10,
}

_SIDE_COLOR = {Side.LONG: "#1f7a8c", Side.SHORT: "#c44536"}


def _style_axis(ax) -> None:
    ax.set_axisbelow(True)
    ax.grid(True, which="major", linestyle="--", linewidth=0.9, alpha=0.6)
    for s in ax.spines.values():
        s.set_alpha(0.5)


def plot_equity_curve(result, *, show: bool = False, figsize: Tuple[float, float] = (11, 5)):
    """
    Account value after each closed trade, with the running peak shaded.

    ``result`` is a ``BacktestResult``.
    """
    equity = pd.Series(result.metrics.equity_curve, name="equity")
    with mpl.rc_context(_RC):
        fig, ax = plt.subplots(figsize=figsize)
        _style_axis(ax)
        if equity.empty:
            ax.set_title("Equity curve (no closed trades)")
        else:
            peak = equity.cummax()
            ax.plot(equity.index + 1, equity.values, color="#1f7a8c", linewidth=1.4, label="Equity")
            ax.fill_between(equity.index + 1, equity.values, peak.values, color="#c44536", alpha=0.15,
                            label="Drawdown")
            ax.set_title(f"Equity curve ({len(equity)} trades)")
            ax.legend(fontsize=9)
        ax.set_xlabel("Trade #")
        ax.set_ylabel("Account value")
        fig.tight_layout()
        if show:
            plt.show()
    return fig, ax


def plot_trades(bars: Iterable[Bar], result, ticker: str, *, show: bool = False,
                figsize: Tuple[float, float] = (11, 6), title: Optional[str] = None):
    """
    Close price of ``ticker`` with entry (triangle) and exit (x) markers.

    Long entries point up, short entries point down.
    """
    prices = pd.Series(
        {b.timestamp: b.close for b in bars if b.ticker == ticker},
        name="close",
    ).sort_index()
    entries = [a for a in result.entries if a.ticker == ticker]
    exits = [a for a in result.exits if a.ticker == ticker]

    with mpl.rc_context(_RC):
        fig, ax = plt.subplots(figsize=figsize)
        _style_axis(ax)
        ax.plot(prices.index, prices.values, color="#334155", linewidth=1.0, label=ticker)

        for side in (Side.LONG, Side.SHORT):
            picked = [a for a in entries if a.side == side]
            if picked:
                ax.scatter([a.timestamp for a in picked], [a.price for a in picked],
                           marker="^" if side == Side.LONG else "v", s=60,
                           color=_SIDE_COLOR[side], zorder=3, label=f"{side.name.title()} entry")
        if exits:
            ax.scatter([a.timestamp for a in exits], [a.price for a in exits], marker="x", s=50,
                       color=["#16a34a" if a.pnl > 0 else "#dc2626" for a in exits], zorder=3, label="Exit")
            for a in exits:
                _annotate_exit(ax, a)

        ax.set_title(title or f"{ticker}: {len(entries)} entries, {len(exits)} exits")
        ax.set_xlabel("Time")
        ax.set_ylabel("Price")
        ax.legend(fontsize=9)
        fig.tight_layout()
        if show:
            plt.show()
    return fig, ax


def _annotate_exit(ax, action: ExitAction) -> None:
    ax.annotate(action.reason.value, (action.timestamp, action.price), textcoords="offset points",
                xytext=(4, 6), fontsize=7, color="#475569")
