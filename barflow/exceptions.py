"""
Exceptions thrown by barflow package that are specific to this package only
"""


class BarflowError(Exception):
    """Root of every error raised by barflow"""
    pass

class ConfigurationError(BarflowError):
    """Raised when a window, sizing rule or stop/target config cannot be honoured"""
    pass

class MissingIndicatorError(ConfigurationError):
    """Raised when an ATR-based level needs a volatility indicator the context lacks"""
    pass

class TimestampOrderError(BarflowError):
    """Raised when a bar is older than the previous bar seen for the same ticker"""
    pass

class PositionClosedError(BarflowError):
    """Raised when closing a position that is already closed"""
    pass
