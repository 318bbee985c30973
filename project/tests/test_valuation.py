# tests/test_valuation.py
# -----------------------------------------------------------------------
# Unit tests for portfolio_engine/valuation.py
#
# Hand-computable portfolios only: every expected value below can be
# checked with a calculator.
# -----------------------------------------------------------------------

from datetime import date

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portfolio_engine.constants import NO_CAPITAL_RETURN
from portfolio_engine.ledger import Position, PositionLedger
from portfolio_engine.prices import PricePoint, PriceSeries
from portfolio_engine.trading_days import TradingDayResolver
from portfolio_engine.valuation import (
    PortfolioValuationEngine,
    snapshot_as_of,
    valuation_as_of,
)

MON, TUE, WED, THU, FRI, SAT, SUN = (date(2024, 1, d) for d in range(1, 8))


# ═══════════════════════════════════════════════════════════════════════
# Single position
# ═══════════════════════════════════════════════════════════════════════

class TestSinglePosition:
    def test_ten_percent_gain(self):
        ledger = PositionLedger([Position("AAPL", 10, TUE, 100)])
        prices = PriceSeries([PricePoint("AAPL", TUE, 110)])
        assert valuation_as_of(ledger, prices, TUE) == pytest.approx(0.1)

    def test_loss(self):
        ledger = PositionLedger([Position("AAPL", 10, TUE, 100)])
        prices = PriceSeries([PricePoint("AAPL", TUE, 80)])
        assert valuation_as_of(ledger, prices, TUE) == pytest.approx(-0.2)

    def test_rounded_to_six_decimals(self):
        ledger = PositionLedger([Position("AAPL", 1, TUE, 3)])
        prices = PriceSeries([PricePoint("AAPL", TUE, 4)])
        assert valuation_as_of(ledger, prices, TUE) == 0.333333

    def test_before_first_open_is_sentinel(self):
        ledger = PositionLedger([Position("AAPL", 10, WED, 100)])
        prices = PriceSeries([PricePoint("AAPL", TUE, 110)])
        snap = snapshot_as_of(ledger, prices, TUE)
        assert snap.return_pct == NO_CAPITAL_RETURN
        assert snap.open_positions == 0
        assert snap.invested == 0.0


# ═══════════════════════════════════════════════════════════════════════
# Joins and missing prices
# ═══════════════════════════════════════════════════════════════════════

class TestPriceJoin:
    def test_unpriced_position_keeps_cost_in_denominator(self):
        ledger = PositionLedger([
            Position("AAPL", 10, TUE, 100),
            Position("MSFT", 10, TUE, 100),
        ])
        prices = PriceSeries([PricePoint("AAPL", TUE, 110)])
        snap = snapshot_as_of(ledger, prices, TUE)
        # net +100 on 2000 invested
        assert snap.return_pct == pytest.approx(0.05)
        assert snap.missing_symbols == ("MSFT",)
        assert snap.has_missing_prices
        assert snap.priced_positions == 1

    def test_prices_for_unheld_symbols_ignored(self):
        ledger = PositionLedger([Position("AAPL", 10, TUE, 100)])
        prices = PriceSeries([PricePoint("AAPL", TUE, 110), PricePoint("TSLA", TUE, 1.0)])
        assert valuation_as_of(ledger, prices, TUE) == pytest.approx(0.1)

    def test_multiple_lots_same_symbol(self):
        ledger = PositionLedger([
            Position("AAPL", 10, MON, 100),
            Position("AAPL", 10, TUE, 120),
        ])
        prices = PriceSeries([PricePoint("AAPL", MON, 100), PricePoint("AAPL", TUE, 110)])
        # (110-100)*10 + (110-120)*10 = 0
        assert valuation_as_of(ledger, prices, TUE) == pytest.approx(0.0)

    def test_later_position_excluded(self):
        ledger = PositionLedger([
            Position("AAPL", 10, MON, 100),
            Position("MSFT", 10, FRI, 100),
        ])
        prices = PriceSeries([PricePoint("AAPL", TUE, 110), PricePoint("MSFT", TUE, 50)])
        assert valuation_as_of(ledger, prices, TUE) == pytest.approx(0.1)

    def test_strict_gap_counts_every_position_missing(self):
        ledger = PositionLedger([Position("AAPL", 10, MON, 100)])
        prices = PriceSeries([PricePoint("AAPL", MON, 110)])
        resolver = TradingDayResolver(prices, strict=True, max_lookback_days=2)
        snap = snapshot_as_of(ledger, prices, date(2024, 1, 10), resolver)
        assert snap.as_of is None
        assert snap.return_pct == 0.0
        assert snap.missing_symbols == ("AAPL",)


# ═══════════════════════════════════════════════════════════════════════
# Non-trading days
# ═══════════════════════════════════════════════════════════════════════

class TestNonTradingDays:
    def _setup(self):
        ledger = PositionLedger([Position("AAPL", 10, MON, 100)])
        prices = PriceSeries([PricePoint("AAPL", d, 100 + i) for i, d in enumerate([MON, TUE, WED, THU, FRI])])
        return ledger, prices

    def test_weekend_equals_friday(self):
        ledger, prices = self._setup()
        engine = PortfolioValuationEngine(ledger, prices)
        fri = engine.valuation_as_of(FRI)
        assert engine.valuation_as_of(SAT) == fri
        assert engine.valuation_as_of(SUN) == fri

    def test_snapshot_reports_resolved_day(self):
        ledger, prices = self._setup()
        assert snapshot_as_of(ledger, prices, SUN).as_of == FRI

    def test_inputs_not_mutated(self):
        ledger, prices = self._setup()
        before = (ledger.positions, prices.to_frame())
        PortfolioValuationEngine(ledger, prices).snapshot(SUN)
        assert ledger.positions == before[0]
        assert prices.to_frame().equals(before[1])
