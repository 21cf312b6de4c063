"""Entry strategy: the declarative bundle the position manager evaluates per row."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from barflow.events.conditions import BaseCondition
from barflow.exceptions import ConfigurationError
from barflow.indicators.fields import Field
from barflow.models import Side
from barflow.position.risk import LevelKind, StopLossConfig, TakeProfitConfig
from barflow.position.sizing import SizingRule


@dataclass
class EntryStrategy:
    """
    Named entry rule.

    Parameters
    ----------
    name : str
        Free-form label; duplicates are allowed and tracked independently.
    side : Side
        Direction of every position this strategy opens.
    sizing : SizingRule
        Resolves the share quantity at entry.
    conditions : list[BaseCondition]
        Entry conditions, AND-combined.  The manager keeps its own copy per
        ticker, so these instances are templates and are never updated.
    exit_conditions : list[BaseCondition]
        Custom exits attached (as fresh copies) to every position opened.
    stop_loss, take_profit : optional level configs
    max_duration : timedelta | float | None
        Overrides ``BacktestConfig.max_position_duration`` for this
        strategy's positions, including with a zero duration.
    fill_field : Field
        Bar value used as the entry price (close by default).
    """
    name: str
    side: Side
    sizing: SizingRule
    conditions: List[BaseCondition] = field(default_factory=list)
    exit_conditions: List[BaseCondition] = field(default_factory=list)
    stop_loss: Optional[StopLossConfig] = None
    take_profit: Optional[TakeProfitConfig] = None
    max_duration: Optional[Any] = None
    fill_field: Field = Field.CLOSE

    def validate(self) -> None:
        """Raise ``ConfigurationError`` for combinations that can never size or exit."""
        if not isinstance(self.side, Side):
            raise ConfigurationError(f"Strategy {self.name!r}: side must be a Side, got {self.side!r}")
        if getattr(self.sizing, "requires_stop", False) and self.stop_loss is None:
            raise ConfigurationError(f"Strategy {self.name!r}: risk-based sizing requires a stop-loss")
        if (self.take_profit is not None and self.take_profit.kind == LevelKind.RISK_REWARD
                and self.stop_loss is None):
            raise ConfigurationError(f"Strategy {self.name!r}: risk/reward take-profit requires a stop-loss")
        if not self.conditions:
            raise ConfigurationError(f"Strategy {self.name!r}: at least one entry condition is required")

    def required_indicators(self) -> List[str]:
        """Indicator names the stop / target configs read at entry."""
        names = []
        for level in (self.stop_loss, self.take_profit):
            if level is not None and level.kind == LevelKind.ATR:
                names.append(level.indicator)
        return names
