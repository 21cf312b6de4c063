"""
DataFrame adapters feeding the engine.

The simulator consumes ``Bar`` objects only; this module turns an already
loaded pandas or polars frame into bars and serves them by ticker and
trading date.  Reading files is left to pandas / polars themselves.

Public API:
    bars_from_frame
    FrameBarSource
"""

from __future__ import annotations

import logging
from datetime import date as Date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import pandas as pd
import polars as pl

from barflow.exceptions import ConfigurationError
from barflow.models import Bar

logger = logging.getLogger(__name__)

__all__ = ["bars_from_frame", "FrameBarSource"]

#: Bar attribute -> default column name
DEFAULT_COLUMNS: Dict[str, str] = {
    "ticker":    "ticker",
    "timestamp": "timestamp",
    "open":      "open",
    "high":      "high",
    "low":       "low",
    "close":     "close",
    "volume":    "volume",
}

Frame = Union[pd.DataFrame, pl.DataFrame]


def _to_polars(frame: Frame) -> pl.DataFrame:
    if isinstance(frame, pl.DataFrame):
        return frame
    if isinstance(frame, pd.DataFrame):
        return pl.from_pandas(frame)
    raise ConfigurationError(f"Expected a pandas or polars DataFrame, got {type(frame).__name__}")


def _normalise(frame: Frame, columns: Optional[Mapping[str, str]]) -> pl.DataFrame:
    """Rename the source columns to ``Bar`` attribute names and sort by time."""
    unknown = set(columns or {}) - set(DEFAULT_COLUMNS)
    if unknown:
        raise ConfigurationError(f"Unknown bar attributes in column mapping: {sorted(unknown)}")
    mapping = {**DEFAULT_COLUMNS, **(columns or {})}
    df = _to_polars(frame)

    required = [mapping[k] for k in ("ticker", "timestamp", "open", "high", "low", "close")]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ConfigurationError(
            f"Bar frame is missing required columns: {missing}. "
            f"Available columns: {df.columns}"
        )

    if mapping["volume"] not in df.columns:
        df = df.with_columns(pl.lit(0.0).alias(mapping["volume"]))

    return (
        df
        .select([pl.col(src).alias(dst) for dst, src in mapping.items()])
        .with_columns([pl.col(c).cast(pl.Float64) for c in ("open", "high", "low", "close", "volume")])
        .sort("timestamp", maintain_order=True)
    )


def _rows_to_bars(df: pl.DataFrame) -> List[Bar]:
    return [Bar(**row) for row in df.iter_rows(named=True)]


def bars_from_frame(frame: Frame, columns: Optional[Mapping[str, str]] = None) -> List[Bar]:
    """
    Convert a frame with one row per bar into a time-ordered list of ``Bar``.

    Parameters
    ----------
    frame : pd.DataFrame | pl.DataFrame
        Must hold ticker, timestamp and OHLC columns; volume is optional
        (zero when absent).
    columns : mapping, optional
        ``Bar`` attribute -> column name overrides, e.g.
        ``{"timestamp": "Datetime", "close": "Price"}``.
    """
    return _rows_to_bars(_normalise(frame, columns))


class FrameBarSource:
    """
    In-memory, date-indexed view over a bar frame.

    Lookups are cached per ``(ticker, date)``; ``stats()`` reports the cache
    hit rate.

    Parameters
    ----------
    frame : pd.DataFrame | pl.DataFrame
        Timestamps must be datetimes.
    columns : mapping, optional
        Same as ``bars_from_frame``.
    """

    def __init__(self, frame: Frame, columns: Optional[Mapping[str, str]] = None) -> None:
        df = _normalise(frame, columns)
        if not df.schema["timestamp"].is_temporal():
            raise ConfigurationError("FrameBarSource needs a datetime timestamp column")
        self._df = df.with_columns(pl.col("timestamp").dt.date().alias("_date"))
        self._cache: Dict[Tuple[Optional[str], Date], List[Bar]] = {}
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _as_date(value: Any) -> Date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, Date):
            return value
        return pd.to_datetime(value).date()

    def _lookup(self, ticker: Optional[str], day: Any) -> List[Bar]:
        key = (ticker, self._as_date(day))
        cached = self._cache.get(key)
        if cached is not None:
            self._hits += 1
            return list(cached)

        self._misses += 1
        expr = pl.col("_date") == key[1]
        if ticker is not None:
            expr = expr & (pl.col("ticker") == ticker)
        bars = _rows_to_bars(self._df.filter(expr).drop("_date"))
        if not bars:
            logger.debug("No bars for %s on %s", ticker or "any ticker", key[1])
        self._cache[key] = bars
        return list(bars)

    def get_ticker_date(self, ticker: str, day: Any) -> List[Bar]:
        """Bars of one ticker on one trading date, time-ordered."""
        return self._lookup(ticker, day)

    def get_all_tickers_date(self, day: Any) -> List[Bar]:
        """Bars of every ticker on one trading date, time-ordered (tickers interleaved)."""
        return self._lookup(None, day)

    @property
    def tickers(self) -> List[str]:
        return self._df.get_column("ticker").unique().sort().to_list()

    @property
    def dates(self) -> List[Date]:
        return self._df.get_column("_date").unique().sort().to_list()

    def stats(self) -> Dict[str, float]:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total if total else 0.0,
        }

    def clear_cache(self) -> None:
        self._cache.clear()
        self._hits = 0
        self._misses = 0
