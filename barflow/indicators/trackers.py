"""
Incremental sliding-window aggregates.

Every tracker consumes ``(timestamp, value)`` observations in non-decreasing
timestamp order and maintains one aggregate over the observations still
inside its ``Window``.  The contract is shared:

.. code-block:: python

    tracker.push(timestamp, value)   # admit one observation
    tracker.prune(timestamp)         # evict what fell out of the window
    tracker.get()                    # aggregate, or None if unavailable
    tracker.clear()                  # back to empty

Each tracker stores ``(seq, timestamp, ...)`` tuples in a ``deque`` where
``seq`` is the observation ordinal.  Count windows expire by ordinal,
duration windows by timestamp (see ``barflow.indicators.window``).  Expired
entries always form a prefix of the deque, so eviction only ever pops from
the left: every observation is appended once and popped once, which makes
``push`` + ``prune`` amortised O(1).

For any input the value of ``get()`` matches a brute-force re-scan of the
in-window subsequence (up to floating-point accumulation error).
"""

from __future__ import annotations

import abc
from collections import deque
from typing import Any, Deque, List, Optional, Tuple

from barflow.indicators.window import Window


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class BaseTracker(abc.ABC):
    """
    Shared bookkeeping: the retained deque, the latest ordinal and eviction.

    Subclasses implement ``push`` / ``get`` and override ``_on_evict`` to
    keep their running aggregates in step with the deque.
    """

    def __init__(self, window: Window) -> None:
        self.window = window
        self._entries: Deque[Tuple[Any, ...]] = deque()
        self._seq = 0

    def __len__(self) -> int:
        return len(self._entries)

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _evict(self, now: Any) -> None:
        entries = self._entries
        while entries and self.window.expired(entries[0][0], entries[0][1], self._seq, now):
            self._on_evict(entries.popleft())
        if not entries:
            self._on_empty()

    def _trim_count(self, now: Any) -> None:
        # Count windows stay bounded even if the caller never prunes.
        if self.window.is_count:
            self._evict(now)

    def _on_evict(self, entry: Tuple[Any, ...]) -> None:
        pass

    def _on_empty(self) -> None:
        pass

    @abc.abstractmethod
    def push(self, timestamp: Any, value: float) -> None:
        ...

    @abc.abstractmethod
    def get(self) -> Optional[float]:
        ...

    def prune(self, timestamp: Any) -> None:
        """Evict every retained observation outside the window ending at ``timestamp``."""
        self._evict(timestamp)

    def clear(self) -> None:
        self._entries.clear()
        self._seq = 0
        self._on_empty()


# ---------------------------------------------------------------------------
# Extremum (monotonic deque)
# ---------------------------------------------------------------------------

class ExtremumTracker(BaseTracker):
    """
    Running maximum or minimum via a monotonic deque.

    Only observations that can still become the extremum are kept: an
    incoming value removes from the back every stored value it dominates
    (``<=`` incoming for a max tracker, ``>=`` for a min tracker).  The deque
    is therefore strictly decreasing (max) or increasing (min) from front to
    back and the front is always the current extremum.

    For monotonically increasing input a max tracker holds one entry.
    """

    def __init__(self, window: Window, track_max: bool = True) -> None:
        super().__init__(window)
        self.track_max = track_max

    @classmethod
    def maximum(cls, window: Window) -> "ExtremumTracker":
        return cls(window, track_max=True)

    @classmethod
    def minimum(cls, window: Window) -> "ExtremumTracker":
        return cls(window, track_max=False)

    def _dominated(self, stored: float, incoming: float) -> bool:
        return stored <= incoming if self.track_max else stored >= incoming

    def push(self, timestamp: Any, value: float) -> None:
        entries = self._entries
        while entries and self._dominated(entries[-1][2], value):
            entries.pop()
        entries.append((self._next_seq(), timestamp, value))
        self._trim_count(timestamp)

    def get(self) -> Optional[float]:
        return self._entries[0][2] if self._entries else None


# ---------------------------------------------------------------------------
# Sum / mean
# ---------------------------------------------------------------------------

class SumTracker(BaseTracker):
    """Running sum and count; ``get()`` is the in-window mean."""

    def __init__(self, window: Window) -> None:
        super().__init__(window)
        self._sum = 0.0

    @property
    def sum(self) -> float:
        return self._sum

    @property
    def count(self) -> int:
        return len(self._entries)

    def push(self, timestamp: Any, value: float) -> None:
        self._entries.append((self._next_seq(), timestamp, value))
        self._sum += value
        self._trim_count(timestamp)

    def get(self) -> Optional[float]:
        if not self._entries:
            return None
        return self._sum / len(self._entries)

    def _on_evict(self, entry: Tuple[Any, ...]) -> None:
        self._sum -= entry[2]

    def _on_empty(self) -> None:
        self._sum = 0.0


# ---------------------------------------------------------------------------
# Variance
# ---------------------------------------------------------------------------

class VarianceTracker(BaseTracker):
    """
    Population variance from running sum and sum of squares.

    Values are accumulated relative to a shift ``K`` (the first value pushed
    into an empty tracker), which leaves the variance unchanged but keeps the
    two accumulators small for price-like series.  The result is clamped at
    zero; fewer than two observations is unavailable.
    """

    def __init__(self, window: Window) -> None:
        super().__init__(window)
        self._shift: Optional[float] = None
        self._sum = 0.0
        self._sum_sq = 0.0

    def push(self, timestamp: Any, value: float) -> None:
        if self._shift is None:
            self._shift = value
        d = value - self._shift
        self._entries.append((self._next_seq(), timestamp, value))
        self._sum += d
        self._sum_sq += d * d
        self._trim_count(timestamp)

    def mean(self) -> Optional[float]:
        if not self._entries:
            return None
        return self._shift + self._sum / len(self._entries)

    def get(self) -> Optional[float]:
        n = len(self._entries)
        if n < 2:
            return None
        mean_d = self._sum / n
        return max(0.0, self._sum_sq / n - mean_d * mean_d)

    def _on_evict(self, entry: Tuple[Any, ...]) -> None:
        d = entry[2] - self._shift
        self._sum -= d
        self._sum_sq -= d * d

    def _on_empty(self) -> None:
        self._shift = None
        self._sum = 0.0
        self._sum_sq = 0.0


# ---------------------------------------------------------------------------
# Volume-weighted average
# ---------------------------------------------------------------------------

class VolumeWeightedTracker(BaseTracker):
    """
    Running ``sum(price * volume) / sum(volume)``.

    ``push`` takes the volume as an extra argument.  A window whose every
    retained observation has zero volume is unavailable.
    """

    def __init__(self, window: Window) -> None:
        super().__init__(window)
        self._sum_pv = 0.0
        self._sum_v = 0.0
        self._weighted = 0

    def push(self, timestamp: Any, value: float, volume: float = 0.0) -> None:
        self._entries.append((self._next_seq(), timestamp, value * volume, volume))
        self._sum_pv += value * volume
        self._sum_v += volume
        if volume != 0:
            self._weighted += 1
        self._trim_count(timestamp)

    def get(self) -> Optional[float]:
        if self._weighted == 0 or self._sum_v == 0:
            return None
        return self._sum_pv / self._sum_v

    def _on_evict(self, entry: Tuple[Any, ...]) -> None:
        self._sum_pv -= entry[2]
        self._sum_v -= entry[3]
        if entry[3] != 0:
            self._weighted -= 1

    def _on_empty(self) -> None:
        self._sum_pv = 0.0
        self._sum_v = 0.0
        self._weighted = 0


# ---------------------------------------------------------------------------
# Relative strength
# ---------------------------------------------------------------------------

class RelativeStrengthTracker(BaseTracker):
    """
    Relative-strength index over the deltas between successive values.

    Each delta is stamped with the ordinal and timestamp of the *later*
    observation, so a ``Count(n)`` window holds the last ``n`` deltas.  The
    previous value survives eviction; only ``clear()`` forgets it.

    ``RSI = 100 - 100 / (1 + avg_gain / avg_loss)``; no losses gives 100,
    no gains and no losses (or no deltas) is unavailable.
    """

    def __init__(self, window: Window) -> None:
        super().__init__(window)
        self._prev: Optional[float] = None
        self._gain_sum = 0.0
        self._loss_sum = 0.0
        self._gains = 0
        self._losses = 0

    def push(self, timestamp: Any, value: float) -> None:
        seq = self._next_seq()
        if self._prev is not None:
            delta = value - self._prev
            self._entries.append((seq, timestamp, delta))
            if delta > 0:
                self._gain_sum += delta
                self._gains += 1
            elif delta < 0:
                self._loss_sum -= delta
                self._losses += 1
        self._prev = value
        self._trim_count(timestamp)

    @property
    def average_gain(self) -> float:
        if not self._entries or self._gains == 0:
            return 0.0
        return max(0.0, self._gain_sum) / len(self._entries)

    @property
    def average_loss(self) -> float:
        if not self._entries or self._losses == 0:
            return 0.0
        return max(0.0, self._loss_sum) / len(self._entries)

    def get(self) -> Optional[float]:
        avg_gain = self.average_gain
        avg_loss = self.average_loss
        if avg_gain == 0.0 and avg_loss == 0.0:
            return None
        if avg_loss == 0.0:
            return 100.0
        return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)

    def _on_evict(self, entry: Tuple[Any, ...]) -> None:
        delta = entry[2]
        if delta > 0:
            self._gain_sum -= delta
            self._gains -= 1
        elif delta < 0:
            self._loss_sum += delta
            self._losses -= 1

    def _on_empty(self) -> None:
        self._gain_sum = 0.0
        self._loss_sum = 0.0
        self._gains = 0
        self._losses = 0

    def clear(self) -> None:
        super().clear()
        self._prev = None


# ---------------------------------------------------------------------------
# History (fallback)
# ---------------------------------------------------------------------------

class HistoryTracker(BaseTracker):
    """
    Keeps every in-window observation with no aggregate.

    ``get()`` is the most recent value; ``values()`` exposes the whole
    window for indicators that need an arbitrary scan.
    """

    def push(self, timestamp: Any, value: float) -> None:
        self._entries.append((self._next_seq(), timestamp, value))
        self._trim_count(timestamp)

    def get(self) -> Optional[float]:
        return self._entries[-1][2] if self._entries else None

    def values(self) -> List[float]:
        return [entry[2] for entry in self._entries]

    def timestamps(self) -> List[Any]:
        return [entry[1] for entry in self._entries]
