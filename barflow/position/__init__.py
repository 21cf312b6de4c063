"""
position: sizing, stop / target levels, the position state machine and the
portfolio that owns them.
"""

from barflow.position.execution import FillSimulator
from barflow.position.sizing import (
    SizingRule,
    FixedShares,
    FixedDollar,
    PercentOfAccount,
    RiskBased,
)
from barflow.position.risk import LevelKind, StopLossConfig, TakeProfitConfig
from barflow.position.strategy import EntryStrategy
from barflow.position.position import Position
from barflow.position.manager import PositionManager

__all__ = [
    # Execution
    "FillSimulator",
    # Sizing
    "SizingRule",
    "FixedShares",
    "FixedDollar",
    "PercentOfAccount",
    "RiskBased",
    # Levels
    "LevelKind",
    "StopLossConfig",
    "TakeProfitConfig",
    # Strategy / positions
    "EntryStrategy",
    "Position",
    "PositionManager",
]
