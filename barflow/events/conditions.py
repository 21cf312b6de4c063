"""
Stateful boolean predicates over a ticker's indicators and the current bar.

Every condition implements:

.. code-block:: python

    def update(self, indicators, bar) -> bool   # advance state, report this row
    def check(self, indicators, bar) -> bool    # same question, no state change
    def reset(self) -> None                     # forget edge-detection state

``indicators`` is the ``name -> Indicator`` mapping of the ticker context.
An indicator that is missing or still unavailable (``None``) makes the
condition false for the row; it never raises.

Two flavours ship here:

* ``Compare`` is a **level** condition: true on every row the comparison
  holds.
* ``Cross`` is an **edge** condition: true only on the row where the order
  of its two operands flips in the requested direction.

``AllOf`` combines any conditions with AND.  Every member is updated on
every row so that edge state never goes stale behind a false sibling.

Example
-------
>>> fast_over_slow = Cross.above(IndicatorValue("sma_fast"), IndicatorValue("sma_slow"))
>>> oversold = Compare(IndicatorValue("rsi"), "<", Constant(30))
>>> entry = AllOf([fast_over_slow, oversold])
"""

from __future__ import annotations

import abc
import enum
import operator
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from barflow.exceptions import ConfigurationError
from barflow.indicators.fields import Field
from barflow.models import Bar


# ---------------------------------------------------------------------------
# Operands
# ---------------------------------------------------------------------------

class Value(abc.ABC):
    """Something a condition can read on the current row."""

    @abc.abstractmethod
    def resolve(self, indicators: Mapping[str, Any], bar: Bar) -> Optional[float]:
        ...


class IndicatorValue(Value):
    def __init__(self, name: str) -> None:
        self.name = name

    def resolve(self, indicators: Mapping[str, Any], bar: Bar) -> Optional[float]:
        indicator = indicators.get(self.name)
        return None if indicator is None else indicator.get()

    def __str__(self) -> str:
        return self.name


class Constant(Value):
    def __init__(self, value: float) -> None:
        self.value = float(value)

    def resolve(self, indicators: Mapping[str, Any], bar: Bar) -> Optional[float]:
        return self.value

    def __str__(self) -> str:
        return f"{self.value:g}"


class FieldValue(Value):
    def __init__(self, field: Field) -> None:
        self.field = field

    def resolve(self, indicators: Mapping[str, Any], bar: Bar) -> Optional[float]:
        return self.field.extract(bar)

    def __str__(self) -> str:
        return self.field.value


def _as_value(operand: Any) -> Value:
    if isinstance(operand, Value):
        return operand
    if isinstance(operand, Field):
        return FieldValue(operand)
    if isinstance(operand, str):
        return IndicatorValue(operand)
    return Constant(operand)


# ---------------------------------------------------------------------------
# Abstract base
# ---------------------------------------------------------------------------

class BaseCondition(abc.ABC):
    """
    Interface every condition must implement.

    Subclasses with no edge state only need ``check``; the default
    ``update`` delegates to it.
    """

    def update(self, indicators: Mapping[str, Any], bar: Bar) -> bool:
        return self.check(indicators, bar)

    @abc.abstractmethod
    def check(self, indicators: Mapping[str, Any], bar: Bar) -> bool:
        ...

    def reset(self) -> None:
        pass

    @property
    def name(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


# ---------------------------------------------------------------------------
# Level comparison
# ---------------------------------------------------------------------------

_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">":  operator.gt,
    ">=": operator.ge,
    "<":  operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


class Compare(BaseCondition):
    """
    ``left <op> right`` evaluated on the current row.

    Operands may be ``Value`` objects or shorthands: a ``str`` is an
    indicator name, a ``Field`` reads the bar, a number is a constant.
    """

    def __init__(self, left: Any, op: str, right: Any) -> None:
        if op not in _OPERATORS:
            raise ConfigurationError(f"Unknown comparison operator {op!r}; expected one of {sorted(_OPERATORS)}")
        self.left = _as_value(left)
        self.right = _as_value(right)
        self.op = op
        self._fn = _OPERATORS[op]

    def check(self, indicators: Mapping[str, Any], bar: Bar) -> bool:
        a = self.left.resolve(indicators, bar)
        b = self.right.resolve(indicators, bar)
        if a is None or b is None:
            return False
        return bool(self._fn(a, b))

    @property
    def name(self) -> str:
        return f"{self.left} {self.op} {self.right}"


# ---------------------------------------------------------------------------
# Crossing
# ---------------------------------------------------------------------------

class CrossDirection(enum.Enum):
    ABOVE = "above"
    BELOW = "below"


class Cross(BaseCondition):
    """
    Edge-triggered crossing of ``left`` over ``right``.

    ``ABOVE`` fires when the previous row had ``left <= right`` and the
    current row has ``left > right``; ``BELOW`` is the mirror image.  The
    first row with both operands available only records state.  A row with
    an unavailable operand clears the remembered state, so a cross is never
    reported across a gap in the data.
    """

    def __init__(self, left: Any, right: Any, direction: CrossDirection = CrossDirection.ABOVE) -> None:
        self.left = _as_value(left)
        self.right = _as_value(right)
        self.direction = direction
        self._prev: Optional[tuple] = None

    @classmethod
    def above(cls, left: Any, right: Any) -> "Cross":
        return cls(left, right, CrossDirection.ABOVE)

    @classmethod
    def below(cls, left: Any, right: Any) -> "Cross":
        return cls(left, right, CrossDirection.BELOW)

    def _current(self, indicators: Mapping[str, Any], bar: Bar) -> Optional[tuple]:
        a = self.left.resolve(indicators, bar)
        b = self.right.resolve(indicators, bar)
        if a is None or b is None:
            return None
        return a, b

    def _fired(self, prev: Optional[tuple], cur: Optional[tuple]) -> bool:
        if prev is None or cur is None:
            return False
        (pa, pb), (ca, cb) = prev, cur
        if self.direction == CrossDirection.ABOVE:
            return pa <= pb and ca > cb
        return pa >= pb and ca < cb

    def update(self, indicators: Mapping[str, Any], bar: Bar) -> bool:
        cur = self._current(indicators, bar)
        fired = self._fired(self._prev, cur)
        self._prev = cur
        return fired

    def check(self, indicators: Mapping[str, Any], bar: Bar) -> bool:
        return self._fired(self._prev, self._current(indicators, bar))

    def reset(self) -> None:
        self._prev = None

    @property
    def name(self) -> str:
        return f"{self.left} crosses {self.direction.value} {self.right}"


# ---------------------------------------------------------------------------
# AND composite
# ---------------------------------------------------------------------------

class AllOf(BaseCondition):
    """True when every member is true on the row.  Empty is never true."""

    def __init__(self, conditions: Iterable[BaseCondition]) -> None:
        self.conditions: List[BaseCondition] = list(conditions)

    def update(self, indicators: Mapping[str, Any], bar: Bar) -> bool:
        return evaluate_all(self.conditions, indicators, bar)

    def check(self, indicators: Mapping[str, Any], bar: Bar) -> bool:
        if not self.conditions:
            return False
        results = [c.check(indicators, bar) for c in self.conditions]
        return all(results)

    def reset(self) -> None:
        for c in self.conditions:
            c.reset()

    @property
    def name(self) -> str:
        return " AND ".join(f"({c.name})" for c in self.conditions) or "AllOf()"


def evaluate_all(conditions: List[BaseCondition], indicators: Mapping[str, Any], bar: Bar) -> bool:
    """Update every condition, then AND the results; an empty list is false."""
    if not conditions:
        return False
    results = [c.update(indicators, bar) for c in conditions]
    return all(results)
