"""
events: conditions that turn indicator values into entry / exit signals.
"""

from barflow.events.conditions import (
    BaseCondition,
    Value,
    IndicatorValue,
    Constant,
    FieldValue,
    Compare,
    Cross,
    CrossDirection,
    AllOf,
    evaluate_all,
)

__all__ = [
    # Operands
    "Value",
    "IndicatorValue",
    "Constant",
    "FieldValue",
    # Conditions
    "BaseCondition",
    "Compare",
    "Cross",
    "CrossDirection",
    "AllOf",
    "evaluate_all",
]
