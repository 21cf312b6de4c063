"""
Lookback horizons for trackers and indicators.

A ``Window`` is a fixed **count** of observations, a fixed **duration**, or
a **rounded** duration anchored to the clock.  Trackers ask the window
whether a retained observation has expired relative to the latest
observation, identified by its ordinal (``seq``) and its timestamp.

Expiry rules
~~~~~~~~~~~~
- ``Count(n)``:    an observation expires once ``n`` newer ones exist,
  i.e. ``seq <= latest_seq - n``.
- ``Duration(d)``: an observation expires once ``timestamp <= now - d``;
  the window is the half-open interval ``(now - d, now]``.
- ``Rounded(d)``:  an observation expires once ``timestamp < start(now)``.
  Whole-day windows start at the session open of ``now``'s date (the
  premarket open when ``MarketHours.include_premarket`` is set) minus
  ``days - 1`` days; whole-hour windows start at the top of ``now``'s hour
  minus ``hours - 1`` hours.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from barflow.exceptions import ConfigurationError
from barflow.models import MarketHours

_DAY = timedelta(days=1)
_HOUR = timedelta(hours=1)


class WindowKind(enum.Enum):
    COUNT    = "count"
    DURATION = "duration"
    ROUNDED  = "rounded"


@dataclass(frozen=True, slots=True)
class Window:
    """
    Immutable lookback horizon.

    Build through the constructors rather than directly:

    .. code-block:: python

        Window.count(20)
        Window.duration(timedelta(minutes=30))
        Window.days(1)
        Window.days(1).rounded(MarketHours(include_premarket=True))
    """
    kind: WindowKind
    size: Any
    market_hours: Optional[MarketHours] = None

    def __post_init__(self) -> None:
        if self.kind == WindowKind.COUNT:
            if isinstance(self.size, bool) or not isinstance(self.size, int) or self.size <= 0:
                raise ConfigurationError(f"Count window needs a positive integer, got {self.size!r}")
        else:
            zero = timedelta(0) if isinstance(self.size, timedelta) else 0
            try:
                positive = self.size > zero
            except TypeError as exc:
                raise ConfigurationError(f"Duration window has an unusable size {self.size!r}") from exc
            if not positive:
                raise ConfigurationError(f"Duration window needs a positive length, got {self.size!r}")
        if self.kind == WindowKind.ROUNDED and self.market_hours is None:
            raise ConfigurationError("Rounded window needs market hours")

    # ------------------------------------------------------------------ #
    #  Constructors                                                       #
    # ------------------------------------------------------------------ #

    @classmethod
    def count(cls, n: int) -> "Window":
        return cls(WindowKind.COUNT, n)

    @classmethod
    def duration(cls, d: Any) -> "Window":
        return cls(WindowKind.DURATION, d)

    @classmethod
    def minutes(cls, m: float) -> "Window":
        return cls.duration(timedelta(minutes=m))

    @classmethod
    def hours(cls, h: float) -> "Window":
        return cls.duration(timedelta(hours=h))

    @classmethod
    def days(cls, d: float) -> "Window":
        return cls.duration(timedelta(days=d))

    def rounded(self, market_hours: Optional[MarketHours] = None) -> "Window":
        """
        Anchor a whole-day or whole-hour duration to the clock.

        Count windows, already rounded windows and durations that are not a
        whole number of hours come back unchanged.

        Raises
        ------
        ConfigurationError
            If the duration is not a ``timedelta``.
        """
        if self.kind != WindowKind.DURATION:
            return self
        if not isinstance(self.size, timedelta):
            raise ConfigurationError(f"Only timedelta windows can be rounded, got {self.size!r}")
        if self.size % _HOUR:
            return self
        return Window(WindowKind.ROUNDED, self.size, market_hours or MarketHours())

    # ------------------------------------------------------------------ #
    #  Predicates                                                         #
    # ------------------------------------------------------------------ #

    @property
    def is_count(self) -> bool:
        return self.kind == WindowKind.COUNT

    def start(self, now: Any) -> Any:
        """Earliest timestamp still inside a time window ending at ``now``."""
        if self.kind == WindowKind.COUNT:
            raise ConfigurationError("Count windows have no start time")
        if self.kind == WindowKind.DURATION:
            return now - self.size
        if not isinstance(now, datetime):
            raise ConfigurationError(f"Rounded windows need datetime timestamps, got {type(now).__name__}")
        if self.size % _DAY:
            top_of_hour = now.replace(minute=0, second=0, microsecond=0)
            return top_of_hour - (self.size // _HOUR - 1) * _HOUR
        anchor = self.market_hours.earliest_valid_time
        session_open = now.replace(hour=anchor.hour, minute=anchor.minute, second=anchor.second, microsecond=0)
        return session_open - (self.size // _DAY - 1) * _DAY

    def expired(self, seq: int, timestamp: Any, latest_seq: int, now: Any) -> bool:
        """``True`` if the observation ``(seq, timestamp)`` is outside the window."""
        if self.kind == WindowKind.COUNT:
            return seq <= latest_seq - self.size
        if self.kind == WindowKind.ROUNDED:
            return timestamp < self.start(now)
        return timestamp <= now - self.size

    def __str__(self) -> str:
        if self.kind == WindowKind.COUNT:
            return f"{self.size} bars"
        if self.kind == WindowKind.ROUNDED:
            return f"{self.size} rounded"
        return str(self.size)
