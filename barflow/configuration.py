# Default values for a simulation run.
#
#     - Session Times: US equities regular session plus the extended pre-market and
#     post-market sessions. Bars are expected in exchange-local wall-clock time; the engine
#     only compares the time of day against these boundaries.
#
#     - Account: the starting account value feeds percent-of-account and risk-based
#     position sizing until the caller overwrites it.
#
#     - Slippage: a constant fraction charged against the trader on both the entry and the
#     exit fill. Anything more realistic (spread, market impact) is outside this package.


import pandas as pd


PREMARKET_OPEN_TIME            = pd.to_datetime('04:00:00', format='%H:%M:%S').time() # New York timezone
MARKET_OPEN_TIME               = pd.to_datetime('09:30:00', format='%H:%M:%S').time() # New York timezone
MARKET_CLOSE_TIME              = pd.to_datetime('16:00:00', format='%H:%M:%S').time() # New York timezone
POSTMARKET_CLOSE_TIME          = pd.to_datetime('20:00:00', format='%H:%M:%S').time() # New York timezone
DEFAULT_STARTING_ACCOUNT_VALUE = 100_000.0
DEFAULT_SLIPPAGE_FRACTION      = 0.0
DEFAULT_ATR_INDICATOR          = 'atr'
ANNUALISATION_FACTOR           = 252.0
