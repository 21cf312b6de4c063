from barflow.exceptions import (
    BarflowError,
    ConfigurationError,
    MissingIndicatorError,
    TimestampOrderError,
    PositionClosedError
)

from barflow.models import (
    Bar,
    Side,
    PositionStatus,
    ExitReason,
    ExitSignal,
    EntryAction,
    ExitAction,
    MarketHours,
    BacktestConfig
)

from barflow.logging_setup import (
    setup_logging,
    teardown_logging,
    get_logger
)

from barflow.indicators import (
    Window,
    Field,
    ExtremumTracker,
    SumTracker,
    VarianceTracker,
    VolumeWeightedTracker,
    RelativeStrengthTracker,
    HistoryTracker,
    Indicator,
    MovingAverage,
    HighOfPeriod,
    LowOfPeriod,
    Variance,
    StandardDeviation,
    VWAP,
    RSI,
    Momentum,
    ATR,
    ADV,
    ACV
)

from barflow.events import (
    BaseCondition,
    IndicatorValue,
    Constant,
    FieldValue,
    Compare,
    Cross,
    CrossDirection,
    AllOf
)

from barflow.position import (
    FixedShares,
    FixedDollar,
    PercentOfAccount,
    RiskBased,
    StopLossConfig,
    TakeProfitConfig,
    EntryStrategy,
    Position,
    PositionManager
)

from barflow.backtest import (
    TickerContext,
    BacktestEngine,
    BacktestResult,
    PerformanceMetrics,
    compute_metrics
)

from barflow.data import (
    bars_from_frame,
    FrameBarSource
)
