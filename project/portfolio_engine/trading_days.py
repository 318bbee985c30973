# trading_days.py
# ------------------------------------------------------------------
# Map a calendar date to the trading day whose prices value it.
#
# Default policy (kept for parity with existing reports):
#   probe D, D-1, D-2 against the whole price series (any symbol);
#   if none has an observation, return D-3 unconditionally.
# A long holiday cluster or a fresh listing can therefore resolve to a
# day with no prices at all; the valuation engine reads that as zero
# priced positions rather than failing.
#
# Strict policy (strict=True): search back up to max_lookback_days and
# return None when nothing is found, so callers can tell "no data"
# apart from "data at D-3".
# ------------------------------------------------------------------

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from portfolio_engine.constants import RESOLVER_DEPTH, STRICT_MAX_LOOKBACK_DAYS
from portfolio_engine.prices import PriceSeries

_logger = logging.getLogger(__name__)


class TradingDayResolver:
    def __init__(
        self,
        prices: PriceSeries,
        depth: int = RESOLVER_DEPTH,
        strict: bool = False,
        max_lookback_days: int = STRICT_MAX_LOOKBACK_DAYS,
    ):
        if depth < 1:
            raise ValueError("depth must be >= 1")
        if max_lookback_days < 0:
            raise ValueError("max_lookback_days must be >= 0")
        self.prices = prices
        self.depth = depth
        self.strict = strict
        self.max_lookback_days = max_lookback_days

    def resolve(self, d: date) -> Optional[date]:
        """Latest date <= d with at least one price, per the configured policy."""
        if self.strict:
            for back in range(self.max_lookback_days + 1):
                candidate = d - timedelta(days=back)
                if self.prices.has_date(candidate):
                    return candidate
            _logger.debug("No prices within %d days before %s", self.max_lookback_days, d)
            return None

        for back in range(self.depth):
            candidate = d - timedelta(days=back)
            if self.prices.has_date(candidate):
                return candidate
        fallback = d - timedelta(days=self.depth)
        if not self.prices.has_date(fallback):
            _logger.debug("Stale resolver window: %s falls back to %s with no prices", d, fallback)
        return fallback


def resolve_trading_day(
    prices: PriceSeries,
    d: date,
    depth: int = RESOLVER_DEPTH,
    strict: bool = False,
    max_lookback_days: int = STRICT_MAX_LOOKBACK_DAYS,
) -> Optional[date]:
    return TradingDayResolver(prices, depth, strict, max_lookback_days).resolve(d)
