# constants.py
# ------------------------------------------------------------------
# Shared reporting constants used across portfolio_engine modules.
#
# Every module (resolver, valuation, aggregation, the Streamlit page
# and the PDF export) reads its defaults from here, so a change to a
# window length or a rounding precision propagates everywhere.
#
# A handful of values can be overridden from the environment, e.g.:
#   export PORTFOLIO_LOOKBACK_MONTHS=36
#   export PORTFOLIO_STRICT_RESOLVER=1
# Bad values are logged and ignored.
# ------------------------------------------------------------------

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

_logger = logging.getLogger(__name__)

# Price history window requested from the data feed, in calendar months
# back from the as-of date.
LOOKBACK_MONTHS: int = 60

# Trailing simple moving averages, in trading days.
SHORT_MA_WINDOW: int = 50
LONG_MA_WINDOW: int = 200

# Trading-day resolver.
#   RESOLVER_DEPTH           : D, D-1, D-2 are probed; D-3 is returned
#                              unconditionally when none of them has data.
#   STRICT_MAX_LOOKBACK_DAYS : how far the hardened resolver searches
#                              before reporting "no data".
RESOLVER_DEPTH: int = 3
STRICT_MAX_LOOKBACK_DAYS: int = 10
STRICT_RESOLVER: bool = False

# Rounding. Portfolio returns are rounded as fractions at valuation time;
# percentage tables are rounded once when they are built.
RETURN_DECIMALS: int = 6
PERCENT_DECIMALS: int = 2

# Return reported when no capital is open on the valuation date.
NO_CAPITAL_RETURN: float = 0.0

# Column names of the external position log.
POSITION_COLUMNS = ("Symbol", "Quantity", "Open Date", "Cost Per Share")
PRICE_COLUMNS = ("symbol", "date", "close")


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        _logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default
    if value < minimum:
        _logger.warning("Ignoring %s=%r: must be >= %d", name, raw, minimum)
        return default
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    _logger.warning("Ignoring %s=%r: not a boolean", name, raw)
    return default


@dataclass(frozen=True)
class ReportConfig:
    """
    Tunable inputs for one report run.

    Defaults mirror the module constants above; use from_env() to pick up
    the PORTFOLIO_* environment overrides.
    """
    lookback_months: int = LOOKBACK_MONTHS
    short_window: int = SHORT_MA_WINDOW
    long_window: int = LONG_MA_WINDOW
    resolver_depth: int = RESOLVER_DEPTH
    strict_resolver: bool = STRICT_RESOLVER
    strict_max_lookback_days: int = STRICT_MAX_LOOKBACK_DAYS

    def __post_init__(self):
        if self.short_window < 1 or self.long_window < 1:
            raise ValueError("moving-average windows must be >= 1")
        if self.short_window > self.long_window:
            raise ValueError(
                f"short window ({self.short_window}) must not exceed "
                f"long window ({self.long_window})"
            )
        if self.resolver_depth < 1:
            raise ValueError("resolver_depth must be >= 1")

    @classmethod
    def from_env(cls) -> "ReportConfig":
        short = _env_int("PORTFOLIO_SHORT_MA", SHORT_MA_WINDOW)
        long_ = _env_int("PORTFOLIO_LONG_MA", LONG_MA_WINDOW)
        if short > long_:
            _logger.warning(
                "PORTFOLIO_SHORT_MA (%d) exceeds PORTFOLIO_LONG_MA (%d); using defaults",
                short, long_,
            )
            short, long_ = SHORT_MA_WINDOW, LONG_MA_WINDOW
        return cls(
            lookback_months=_env_int("PORTFOLIO_LOOKBACK_MONTHS", LOOKBACK_MONTHS),
            short_window=short,
            long_window=long_,
            strict_resolver=_env_bool("PORTFOLIO_STRICT_RESOLVER", STRICT_RESOLVER),
            strict_max_lookback_days=_env_int(
                "PORTFOLIO_STRICT_LOOKBACK_DAYS", STRICT_MAX_LOOKBACK_DAYS, minimum=0
            ),
        )
