import copy

import pytest

from barflow.events import (
    AllOf,
    Compare,
    Constant,
    Cross,
    CrossDirection,
    FieldValue,
    IndicatorValue,
    evaluate_all,
)
from barflow.exceptions import ConfigurationError
from barflow.indicators import Field


def _drive(condition, stub, values, bar, method="update"):
    """Feed ``values`` through the stub indicator 'x' and collect the results."""
    indicator = stub()
    indicators = {"x": indicator}
    out = []
    for v in values:
        indicator.value = v
        out.append(getattr(condition, method)(indicators, bar))
    return out


def test_compare_level(stub, make_bar):
    cond = Compare(IndicatorValue("x"), ">", Constant(2))
    assert _drive(cond, stub, [1, 3, 3, 2], make_bar(0, 1.0)) == [False, True, True, False]


def test_compare_shorthand_operands(make_bar):
    bar = make_bar(0, 10.0)
    assert Compare(Field.CLOSE, ">=", 10).check({}, bar)
    assert not Compare(Field.HIGH, "<", Field.LOW).check({}, bar)
    assert isinstance(Compare("rsi", "<", 30).left, IndicatorValue)


def test_missing_or_unavailable_indicator_is_not_satisfied(stub, make_bar):
    bar = make_bar(0, 10.0)
    cond = Compare("x", ">", 0)
    assert cond.update({}, bar) is False
    assert cond.update({"x": stub(None)}, bar) is False
    assert Cross.above("x", 0).update({"x": stub(None)}, bar) is False


def test_unknown_operator_rejected():
    with pytest.raises(ConfigurationError):
        Compare("x", "=>", 1)


def test_cross_above_fires_only_on_flip(stub, make_bar):
    cond = Cross.above(IndicatorValue("x"), Constant(2))
    got = _drive(cond, stub, [1, 2, 3, 2, 1, 3, 4], make_bar(0, 1.0))
    assert got == [False, False, True, False, False, True, False]


def test_cross_below_mirrors_above(stub, make_bar):
    cond = Cross.below("x", 2)
    assert cond.direction == CrossDirection.BELOW
    got = _drive(cond, stub, [3, 2, 1, 2, 3, 1], make_bar(0, 1.0))
    assert got == [False, False, True, False, False, True]


def test_cross_does_not_fire_across_a_gap(stub, make_bar):
    cond = Cross.above("x", 2)
    got = _drive(cond, stub, [1, None, 3], make_bar(0, 1.0))
    assert got == [False, False, False]


def test_check_does_not_mutate_state(stub, make_bar):
    bar = make_bar(0, 1.0)
    ind = stub(1)
    indicators = {"x": ind}
    cond = Cross.above("x", 2)
    cond.update(indicators, bar)
    ind.value = 3
    assert cond.check(indicators, bar) is True
    assert cond.check(indicators, bar) is True
    assert cond.update(indicators, bar) is True
    assert cond.update(indicators, bar) is False


def test_reset_replays_identically(stub, make_bar):
    values = [1, 3, 1, 3, 3, None, 1, 4, 0]
    bar = make_bar(0, 1.0)
    cond = AllOf([Cross.above("x", 2), Compare("x", "<", 10)])
    first = _drive(cond, stub, values, bar)
    cond.reset()
    second = _drive(cond, stub, values, bar)
    assert first == second
    assert any(first)


def test_and_requires_every_member(stub, make_bar):
    bar = make_bar(0, 1.0)
    a, b = stub(), stub()
    indicators = {"a": a, "b": b}
    conds = [Compare("a", ">", 0), Compare("b", ">", 0)]
    for va, vb, expected in [(1, 1, True), (1, -1, False), (-1, 1, False), (-1, -1, False)]:
        a.value, b.value = va, vb
        assert evaluate_all(conds, indicators, bar) is expected


def test_and_updates_every_member_without_short_circuit(stub, make_bar):
    bar = make_bar(0, 1.0)
    gate, x = stub(-1), stub(1)
    indicators = {"gate": gate, "x": x}
    cross = Cross.above("x", 2)
    conds = [Compare("gate", ">", 0), cross]

    assert evaluate_all(conds, indicators, bar) is False   # x=1 recorded
    x.value = 3
    assert evaluate_all(conds, indicators, bar) is False   # cross fires but gate is closed
    gate.value = 1
    # the crossing was consumed on the previous row even though the AND was false
    assert evaluate_all(conds, indicators, bar) is False


def test_empty_condition_list_never_fires(make_bar):
    assert evaluate_all([], {}, make_bar(0, 1.0)) is False
    assert AllOf([]).check({}, make_bar(0, 1.0)) is False


def test_deep_copies_have_independent_state(stub, make_bar):
    bar = make_bar(0, 1.0)
    original = Cross.above("x", 2)
    clone = copy.deepcopy(original)
    original.update({"x": stub(1)}, bar)
    assert original.update({"x": stub(3)}, bar) is True
    # the clone never saw the first row
    assert clone.update({"x": stub(3)}, bar) is False


def test_names():
    assert Compare("rsi", "<", 30).name == "rsi < 30"
    assert Cross.above("fast", "slow").name == "fast crosses above slow"
    assert FieldValue(Field.CLOSE).__str__() == "close"
    assert "AND" in AllOf([Compare("a", ">", 1), Compare("b", ">", 1)]).name
