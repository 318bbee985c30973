# timeseries.py
# ------------------------------------------------------------------
# Daily portfolio return series.
#
# One row per calendar day from the first open date to the as-of date,
# inclusive. Weekends and holidays are valued through the trading-day
# resolver, so they carry the latest trading day's valuation.
#
# Cost is O(days x positions). Fine for one portfolio over a few years;
# independent date ranges could be valued in parallel if that changes.
# ------------------------------------------------------------------

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterator, Optional

import pandas as pd

from portfolio_engine.ledger import PositionLedger
from portfolio_engine.prices import PriceSeries
from portfolio_engine.trading_days import TradingDayResolver
from portfolio_engine.valuation import PortfolioValuationEngine, ValuationSnapshot

_logger = logging.getLogger(__name__)

SERIES_COLUMNS = ["Date", "Return (%)"]


def iter_snapshots(
    ledger: PositionLedger,
    prices: PriceSeries,
    as_of: date,
    resolver: Optional[TradingDayResolver] = None,
) -> Iterator[ValuationSnapshot]:
    start = ledger.first_open_date()
    if start is None:
        return
    engine = PortfolioValuationEngine(ledger, prices, resolver)
    d = start
    while d <= as_of:
        yield engine.snapshot(d)
        d += timedelta(days=1)


def build_return_series(
    ledger: PositionLedger,
    prices: PriceSeries,
    as_of: date,
    resolver: Optional[TradingDayResolver] = None,
) -> pd.DataFrame:
    """
    Daily return series: columns Date and Return (%).

    Return (%) is the valuation's fractional return times 100. An empty
    ledger, or an as-of date before the first position, yields an empty
    frame with the same columns.
    """
    rows = []
    gap_days = 0
    for snap in iter_snapshots(ledger, prices, as_of, resolver):
        if snap.has_missing_prices:
            gap_days += 1
        rows.append({"Date": snap.date, "Return (%)": snap.return_pct * 100})

    if gap_days:
        _logger.warning(
            "%d of %d days valued with at least one position missing a price",
            gap_days, len(rows),
        )
    return pd.DataFrame(rows, columns=SERIES_COLUMNS)
