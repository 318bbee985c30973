# tests/test_timeseries.py
# -----------------------------------------------------------------------
# Unit tests for portfolio_engine/timeseries.py
# -----------------------------------------------------------------------

import logging
from datetime import date, timedelta

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portfolio_engine.ledger import Position, PositionLedger
from portfolio_engine.prices import PricePoint, PriceSeries
from portfolio_engine.timeseries import SERIES_COLUMNS, build_return_series, iter_snapshots
from portfolio_engine.valuation import ValuationSnapshot

MON, TUE, WED, THU, FRI, SAT, SUN = (date(2024, 1, d) for d in range(1, 8))
WEEK = [MON, TUE, WED, THU, FRI]


def _week_prices(symbol="AAPL", start=100.0):
    return PriceSeries([PricePoint(symbol, d, start + i) for i, d in enumerate(WEEK)])


# ═══════════════════════════════════════════════════════════════════════
# build_return_series
# ═══════════════════════════════════════════════════════════════════════

class TestBuildReturnSeries:
    def test_one_row_per_calendar_day(self):
        ledger = PositionLedger([Position("AAPL", 10, MON, 100)])
        df = build_return_series(ledger, _week_prices(), SUN)
        assert list(df.columns) == SERIES_COLUMNS
        assert df["Date"].tolist() == [MON + timedelta(days=i) for i in range(7)]

    def test_dates_ascending_and_unique(self):
        ledger = PositionLedger([Position("AAPL", 10, MON, 100)])
        df = build_return_series(ledger, _week_prices(), SUN)
        assert df["Date"].is_monotonic_increasing
        assert df["Date"].is_unique

    def test_values_are_percent(self):
        ledger = PositionLedger([Position("AAPL", 10, MON, 100)])
        df = build_return_series(ledger, _week_prices(), FRI)
        # Friday close 104 on cost 100
        assert df["Return (%)"].iloc[-1] == pytest.approx(4.0)
        assert df["Return (%)"].iloc[0] == pytest.approx(0.0)

    def test_weekend_carries_friday(self):
        ledger = PositionLedger([Position("AAPL", 10, MON, 100)])
        df = build_return_series(ledger, _week_prices(), SUN).set_index("Date")
        assert df.loc[SAT, "Return (%)"] == df.loc[FRI, "Return (%)"]
        assert df.loc[SUN, "Return (%)"] == df.loc[FRI, "Return (%)"]

    def test_starts_at_first_open_date(self):
        ledger = PositionLedger([Position("AAPL", 10, WED, 102)])
        df = build_return_series(ledger, _week_prices(), FRI)
        assert df["Date"].iloc[0] == WED
        assert len(df) == 3

    def test_empty_ledger(self):
        df = build_return_series(PositionLedger(), _week_prices(), FRI)
        assert df.empty
        assert list(df.columns) == SERIES_COLUMNS

    def test_as_of_before_first_open(self):
        ledger = PositionLedger([Position("AAPL", 10, FRI, 100)])
        df = build_return_series(ledger, _week_prices(), MON)
        assert df.empty

    def test_single_day(self):
        ledger = PositionLedger([Position("AAPL", 10, TUE, 100)])
        df = build_return_series(ledger, _week_prices(), TUE)
        assert len(df) == 1
        assert df["Return (%)"].iloc[0] == pytest.approx(1.0)

    def test_gap_days_logged_once(self, caplog):
        ledger = PositionLedger([
            Position("AAPL", 10, MON, 100),
            Position("MSFT", 10, MON, 100),
        ])
        with caplog.at_level(logging.WARNING, logger="portfolio_engine.timeseries"):
            build_return_series(ledger, _week_prices(), WED)
        warnings = [r for r in caplog.records if r.name == "portfolio_engine.timeseries"]
        assert len(warnings) == 1
        assert "3 of 3 days" in warnings[0].getMessage()


# ═══════════════════════════════════════════════════════════════════════
# iter_snapshots
# ═══════════════════════════════════════════════════════════════════════

class TestIterSnapshots:
    def test_yields_snapshots(self):
        ledger = PositionLedger([Position("AAPL", 10, MON, 100)])
        snaps = list(iter_snapshots(ledger, _week_prices(), WED))
        assert len(snaps) == 3
        assert all(isinstance(s, ValuationSnapshot) for s in snaps)
        assert [s.date for s in snaps] == [MON, TUE, WED]

    def test_empty_ledger_yields_nothing(self):
        assert list(iter_snapshots(PositionLedger(), _week_prices(), WED)) == []
