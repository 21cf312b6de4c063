"""
backtest: per-ticker contexts, the bar-by-bar engine and run metrics.

Public API
----------
- ``TickerContext``
- ``BacktestEngine`` / ``BacktestResult``
- ``PerformanceMetrics`` / ``compute_metrics``
"""

from barflow.backtest.context import TickerContext
from barflow.backtest.metrics import PerformanceMetrics, compute_metrics
from barflow.backtest.engine import BacktestEngine, BacktestResult, IndicatorFactory

__all__ = [
    "TickerContext",
    "BacktestEngine",
    "BacktestResult",
    "IndicatorFactory",
    "PerformanceMetrics",
    "compute_metrics",
]
