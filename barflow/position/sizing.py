"""
Position sizing rules.

Each rule resolves a whole-share quantity at entry time:

.. code-block:: python

    quantity = rule.resolve(price, account_value, stop_distance)

Quantities are floored to whole shares.  A result of zero means the entry
is skipped by the position manager.  Percentages are in percent units
(``2.0`` is two percent).
"""

from __future__ import annotations

import abc
import math
from dataclasses import dataclass
from typing import Optional

from barflow.exceptions import ConfigurationError


class SizingRule(abc.ABC):
    """Interface every sizing rule must implement."""

    #: whether ``resolve`` needs a stop distance
    requires_stop: bool = False

    @abc.abstractmethod
    def resolve(self, price: float, account_value: float, stop_distance: Optional[float] = None) -> int:
        ...


def _floor_shares(amount: float) -> int:
    if not math.isfinite(amount) or amount <= 0:
        return 0
    return int(math.floor(amount))


@dataclass(frozen=True)
class FixedShares(SizingRule):
    shares: int

    def __post_init__(self) -> None:
        if self.shares <= 0:
            raise ConfigurationError(f"FixedShares needs a positive share count, got {self.shares}")

    def resolve(self, price: float, account_value: float, stop_distance: Optional[float] = None) -> int:
        return int(self.shares)


@dataclass(frozen=True)
class FixedDollar(SizingRule):
    """Spend a fixed notional: ``floor(amount / price)`` shares."""
    amount: float

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ConfigurationError(f"FixedDollar needs a positive amount, got {self.amount}")

    def resolve(self, price: float, account_value: float, stop_distance: Optional[float] = None) -> int:
        if price <= 0:
            return 0
        return _floor_shares(self.amount / price)


@dataclass(frozen=True)
class PercentOfAccount(SizingRule):
    """Spend ``percent`` of the current account value."""
    percent: float

    def __post_init__(self) -> None:
        if not 0 < self.percent <= 100:
            raise ConfigurationError(f"PercentOfAccount needs a percent in (0, 100], got {self.percent}")

    def resolve(self, price: float, account_value: float, stop_distance: Optional[float] = None) -> int:
        if price <= 0:
            return 0
        return _floor_shares(account_value * self.percent / 100.0 / price)


@dataclass(frozen=True)
class RiskBased(SizingRule):
    """
    Risk a fixed share of the account between entry and stop.

    ``quantity = floor(risk_percent% * account_value / stop_distance)``.
    Registering a strategy with this rule and no stop-loss is a
    ``ConfigurationError``.
    """
    risk_percent: float
    requires_stop = True

    def __post_init__(self) -> None:
        if not 0 < self.risk_percent <= 100:
            raise ConfigurationError(f"RiskBased needs a risk percent in (0, 100], got {self.risk_percent}")

    def resolve(self, price: float, account_value: float, stop_distance: Optional[float] = None) -> int:
        if stop_distance is None:
            raise ConfigurationError("RiskBased sizing needs a stop-loss distance")
        if stop_distance <= 0:
            return 0
        return _floor_shares(account_value * self.risk_percent / 100.0 / stop_distance)
