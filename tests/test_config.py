import datetime as dt
import logging

import pytest

from barflow.exceptions import BarflowError, ConfigurationError, MissingIndicatorError
from barflow.logging_setup import get_logger, setup_logging, teardown_logging
from barflow.models import BacktestConfig, MarketHours


def test_defaults():
    config = BacktestConfig()
    assert config.starting_account_value == 100_000.0
    assert config.slippage_fraction == 0.0
    assert config.max_position_duration is None
    assert config.market_hours is None


@pytest.mark.parametrize("kwargs", [{"starting_account_value": -1.0}, {"slippage_fraction": 1.0},
                                    {"slippage_fraction": -0.01}])
def test_invalid_config(kwargs):
    with pytest.raises(ConfigurationError):
        BacktestConfig(**kwargs)


def test_from_dict():
    config = BacktestConfig.from_dict({
        "starting_account_value": 50_000,
        "slippage_fraction": 0.0005,
        "max_position_duration": 3600,
        "market_hours": {"include_premarket": True},
    })
    assert config.starting_account_value == 50_000.0
    assert config.max_position_duration == 3600
    assert config.market_hours == MarketHours(include_premarket=True)
    duration = BacktestConfig.from_dict({"max_position_duration": dt.timedelta(minutes=5)}).max_position_duration
    assert duration == dt.timedelta(minutes=5)


def test_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigurationError):
        BacktestConfig.from_dict({"slipage": 0.1})
    with pytest.raises(ConfigurationError):
        BacktestConfig.from_dict({"max_position_duration": "1h"})


def test_market_hours_boundaries():
    regular = MarketHours()
    assert regular.is_valid_time(dt.time(9, 30))
    assert regular.is_valid_time(dt.time(16, 0))
    assert not regular.is_valid_time(dt.time(9, 29))
    extended = MarketHours(include_premarket=True, include_postmarket=True)
    assert extended.earliest_valid_time == dt.time(4, 0)
    assert extended.latest_valid_time == dt.time(20, 0)


def test_error_hierarchy():
    assert issubclass(MissingIndicatorError, ConfigurationError)
    assert issubclass(ConfigurationError, BarflowError)
    assert issubclass(BarflowError, Exception)


def test_setup_logging_writes_rotating_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        logger = setup_logging("DEBUG", logs_dir=tmp_path, console_output=False)
        get_logger("barflow.test").debug("hello from the test")
        for handler in logger.handlers:
            handler.flush()
        assert "hello from the test" in (tmp_path / "barflow.log").read_text(encoding="utf-8")
        assert logger.level == logging.DEBUG
    finally:
        teardown_logging(root)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
