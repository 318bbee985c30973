# valuation.py
# ------------------------------------------------------------------
# Point-in-time portfolio valuation.
#
# For a calendar date d:
#   1. keep positions opened on or before d,
#   2. resolve d to one as-of trading day (no look-ahead),
#   3. inner-join those positions to that day's closes by symbol;
#      a position without a close contributes no row,
#   4. net change per row = (close - cost_per_share) * quantity,
#   5. return = round(sum(net change) / sum(cost of open positions), 6).
#
# Cost in step 5 covers every open position, priced or not. With no
# open capital the return is NO_CAPITAL_RETURN (0.0).
# ------------------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Tuple

from portfolio_engine.constants import NO_CAPITAL_RETURN, RETURN_DECIMALS
from portfolio_engine.ledger import PositionLedger
from portfolio_engine.prices import PriceSeries
from portfolio_engine.trading_days import TradingDayResolver

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValuationSnapshot:
    date: date
    as_of: Optional[date]          # trading day whose prices were used
    return_pct: float              # fractional return, 0.1 == 10%
    open_positions: int = 0
    priced_positions: int = 0
    invested: float = 0.0
    net_change: float = 0.0
    missing_symbols: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_missing_prices(self) -> bool:
        return self.priced_positions < self.open_positions


class PortfolioValuationEngine:
    """Values one ledger against one price series; inputs are never mutated."""

    def __init__(
        self,
        ledger: PositionLedger,
        prices: PriceSeries,
        resolver: Optional[TradingDayResolver] = None,
    ):
        self.ledger = ledger
        self.prices = prices
        self.resolver = resolver or TradingDayResolver(prices)

    def snapshot(self, d: date) -> ValuationSnapshot:
        open_positions = self.ledger.open_as_of(d)
        invested = sum(p.cost for p in open_positions)
        as_of = self.resolver.resolve(d)
        closes = self.prices.closes_on(as_of) if as_of is not None else {}

        net_change = 0.0
        priced = 0
        missing = []
        for p in open_positions:
            close = closes.get(p.symbol)
            if close is None:
                missing.append(p.symbol)
                continue
            net_change += (close - p.cost_per_share) * p.quantity
            priced += 1

        if missing:
            _logger.debug("%s (as of %s): no price for %s", d, as_of, ", ".join(sorted(set(missing))))

        if invested <= 0:
            return_pct = NO_CAPITAL_RETURN
        else:
            return_pct = round(net_change / invested, RETURN_DECIMALS)

        return ValuationSnapshot(
            date=d,
            as_of=as_of,
            return_pct=return_pct,
            open_positions=len(open_positions),
            priced_positions=priced,
            invested=invested,
            net_change=net_change,
            missing_symbols=tuple(sorted(set(missing))),
        )

    def valuation_as_of(self, d: date) -> float:
        return self.snapshot(d).return_pct


def snapshot_as_of(
    ledger: PositionLedger,
    prices: PriceSeries,
    d: date,
    resolver: Optional[TradingDayResolver] = None,
) -> ValuationSnapshot:
    return PortfolioValuationEngine(ledger, prices, resolver).snapshot(d)


def valuation_as_of(
    ledger: PositionLedger,
    prices: PriceSeries,
    d: date,
    resolver: Optional[TradingDayResolver] = None,
) -> float:
    """Net fractional return of the portfolio as of calendar date d."""
    return snapshot_as_of(ledger, prices, d, resolver).return_pct
