"""Bar field selectors: each member is a pure function of a ``Bar``."""

from __future__ import annotations

import enum

from barflow.models import Bar


class Field(enum.Enum):
    OPEN           = "open"
    HIGH           = "high"
    LOW            = "low"
    CLOSE          = "close"
    VOLUME         = "volume"
    MEDIAN         = "median"
    TYPICAL        = "typical"
    WEIGHTED_CLOSE = "weighted_close"

    def extract(self, bar: Bar) -> float:
        if self is Field.MEDIAN:
            return bar.median_price
        if self is Field.TYPICAL:
            return bar.typical_price
        if self is Field.WEIGHTED_CLOSE:
            return bar.weighted_close
        return float(getattr(bar, self.value))
