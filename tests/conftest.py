from types import SimpleNamespace

import pytest

from helpers import StubIndicator, make_bar as _make_bar


@pytest.fixture
def make_bar():
    return _make_bar


@pytest.fixture
def bars_from_closes():
    def build(closes, ticker="AAA"):
        return [_make_bar(i, c, ticker=ticker) for i, c in enumerate(closes)]
    return build


@pytest.fixture
def stub():
    return StubIndicator


@pytest.fixture
def empty_context():
    return SimpleNamespace(indicators={})
