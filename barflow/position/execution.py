"""
Constant-fraction slippage.

The ``FillSimulator`` turns an *ideal* fill price (bar close, stop level,
target level) into the *effective* price the trade is booked at.  Slippage
always works **against** the trader:

- LONG entry  → price goes UP   by ``price * fraction``
- SHORT entry → price goes DOWN by ``price * fraction``
- LONG exit   → price goes DOWN by ``price * fraction``
- SHORT exit  → price goes UP   by ``price * fraction``

so a round trip costs ``fraction`` of both the entry and the exit notional.
"""

from __future__ import annotations

from dataclasses import dataclass

from barflow.exceptions import ConfigurationError
from barflow.models import Side


@dataclass(frozen=True, slots=True)
class FillSimulator:
    slippage_fraction: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.slippage_fraction < 1.0:
            raise ConfigurationError(f"slippage_fraction must be in [0, 1), got {self.slippage_fraction}")

    def fill_entry(self, price: float, side: Side) -> float:
        return price * (1.0 + int(side) * self.slippage_fraction)

    def fill_exit(self, price: float, side: Side) -> float:
        return price * (1.0 - int(side) * self.slippage_fraction)

    def round_trip_pnl(self, entry_price: float, exit_price: float, quantity: float, side: Side) -> float:
        """
        Realised P&L of a closed trade after slippage on both legs.

        A long of 10 shares from 100 to 110 at 0.001 books
        ``(110 * 0.999 - 100 * 1.001) * 10``, about 97.90.
        """
        entry_fill = self.fill_entry(entry_price, side)
        exit_fill = self.fill_exit(exit_price, side)
        return (exit_fill - entry_fill) * quantity * int(side)
