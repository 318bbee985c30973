# tests/test_report.py
# -----------------------------------------------------------------------
# End-to-end tests for portfolio_engine/report.py: one ledger, one
# price series, one as-of date in; every report table out.
# -----------------------------------------------------------------------

import math
from datetime import date, timedelta

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portfolio_engine.constants import ReportConfig
from portfolio_engine.ledger import Position, PositionLedger
from portfolio_engine.prices import PricePoint, PriceSeries
from portfolio_engine.report import build_report, make_resolver


def _prices():
    # Weekdays from 2024-01-01 (Mon) through 2024-03-29, AAPL +1/day, MSFT flat.
    points = []
    d, i = date(2024, 1, 1), 0
    while d <= date(2024, 3, 29):
        if d.weekday() < 5:
            points.append(PricePoint("AAPL", d, 100.0 + i))
            points.append(PricePoint("MSFT", d, 400.0))
            i += 1
        d += timedelta(days=1)
    return PriceSeries(points)


def _ledger():
    return PositionLedger([
        Position("AAPL", 10, date(2024, 1, 1), 100),
        Position("MSFT", 5, date(2024, 2, 1), 400),
    ])


# ═══════════════════════════════════════════════════════════════════════
# build_report
# ═══════════════════════════════════════════════════════════════════════

class TestBuildReport:
    def test_headline_figures(self):
        report = build_report(_ledger(), _prices(), date(2024, 3, 31))
        assert report.start == date(2024, 1, 1)
        assert report.total_invested == pytest.approx(3000.0)
        assert not report.is_empty
        assert report.latest_return_pct == pytest.approx(report.returns["Return (%)"].iloc[-1])

    def test_series_covers_every_day(self):
        report = build_report(_ledger(), _prices(), date(2024, 3, 31))
        assert len(report.returns) == (date(2024, 3, 31) - date(2024, 1, 1)).days + 1

    def test_latest_return_matches_hand_calc(self):
        # Sunday 3/31 resolves to Friday 3/29: AAPL close 100 + 64 weekdays after 1/1
        report = build_report(_ledger(), _prices(), date(2024, 3, 31))
        aapl_close = _prices().close("AAPL", date(2024, 3, 29))
        expected = round((aapl_close - 100) * 10 / 3000, 6) * 100
        assert report.latest_return_pct == pytest.approx(expected)

    def test_tables_present(self):
        report = build_report(_ledger(), _prices(), date(2024, 3, 31))
        assert report.allocation["Symbol"].tolist() == ["MSFT", "AAPL"]
        assert report.concentration["Cumulative (%)"].iloc[-1] == pytest.approx(100.0)
        assert set(report.holdings["Symbol"]) == {"AAPL", "MSFT"}
        assert set(report.moving_averages["symbol"]) == {"AAPL", "MSFT"}
        assert set(report.risk["symbol"]) == {"AAPL", "MSFT"}

    def test_allocation_respects_as_of(self):
        report = build_report(_ledger(), _prices(), date(2024, 1, 15))
        assert report.allocation["Symbol"].tolist() == ["AAPL"]
        assert report.total_invested == pytest.approx(1000.0)

    def test_config_windows_used(self):
        cfg = ReportConfig(short_window=2, long_window=5)
        report = build_report(_ledger(), _prices(), date(2024, 3, 31), cfg)
        aapl = report.moving_averages[report.moving_averages["symbol"] == "AAPL"]
        assert aapl["short_avg"].notna().sum() == len(aapl) - 1
        assert report.config is cfg

    def test_empty_ledger(self):
        report = build_report(PositionLedger(), _prices(), date(2024, 3, 31))
        assert report.is_empty
        assert math.isnan(report.latest_return_pct)
        assert report.allocation.empty
        assert report.start is None

    def test_as_of_before_first_position(self):
        report = build_report(_ledger(), _prices(), date(2023, 12, 1))
        assert report.is_empty
        assert report.total_invested == 0


class TestMakeResolver:
    def test_strict_flag_passed_through(self):
        cfg = ReportConfig(strict_resolver=True, strict_max_lookback_days=4)
        r = make_resolver(_prices(), cfg)
        assert r.strict is True
        assert r.max_lookback_days == 4
        assert r.depth == cfg.resolver_depth
