# report.py
# ------------------------------------------------------------------
# One report run: every table the page and the PDF need, computed
# from a single ledger, a single price series and an explicit as-of
# date. Nothing here reads the clock.
# ------------------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import numpy as np
import pandas as pd

from portfolio_engine.aggregation import (
    capital_allocation,
    concentration_curve,
    holding_period_returns,
    moving_averages,
    risk_return,
)
from portfolio_engine.constants import ReportConfig
from portfolio_engine.ledger import PositionLedger
from portfolio_engine.prices import PriceSeries
from portfolio_engine.timeseries import build_return_series
from portfolio_engine.trading_days import TradingDayResolver

_logger = logging.getLogger(__name__)


@dataclass
class PortfolioReport:
    as_of: date
    start: Optional[date]
    total_invested: float
    latest_return_pct: float          # percent, NaN when the series is empty
    allocation: pd.DataFrame = field(default_factory=pd.DataFrame)
    concentration: pd.DataFrame = field(default_factory=pd.DataFrame)
    returns: pd.DataFrame = field(default_factory=pd.DataFrame)
    holdings: pd.DataFrame = field(default_factory=pd.DataFrame)
    moving_averages: pd.DataFrame = field(default_factory=pd.DataFrame)
    risk: pd.DataFrame = field(default_factory=pd.DataFrame)
    config: ReportConfig = field(default_factory=ReportConfig)

    @property
    def is_empty(self) -> bool:
        return self.returns.empty


def make_resolver(prices: PriceSeries, config: ReportConfig) -> TradingDayResolver:
    return TradingDayResolver(
        prices,
        depth=config.resolver_depth,
        strict=config.strict_resolver,
        max_lookback_days=config.strict_max_lookback_days,
    )


def build_report(
    ledger: PositionLedger,
    prices: PriceSeries,
    as_of: date,
    config: Optional[ReportConfig] = None,
) -> PortfolioReport:
    config = config or ReportConfig()
    resolver = make_resolver(prices, config)
    symbols = ledger.symbols()

    returns = build_return_series(ledger, prices, as_of, resolver)
    latest = float(returns["Return (%)"].iloc[-1]) if not returns.empty else np.nan

    report = PortfolioReport(
        as_of=as_of,
        start=ledger.first_open_date(),
        total_invested=sum(p.cost for p in ledger.open_as_of(as_of)),
        latest_return_pct=latest,
        allocation=capital_allocation(ledger, as_of),
        concentration=concentration_curve(ledger, as_of),
        returns=returns,
        holdings=holding_period_returns(ledger, prices, as_of),
        moving_averages=moving_averages(prices, config.short_window, config.long_window, symbols),
        risk=risk_return(prices, symbols),
        config=config,
    )
    _logger.info("Report as of %s: %d days, %d holdings", as_of, len(returns), len(report.holdings))
    return report
