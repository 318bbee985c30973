# tests/test_price_fetch.py
# -----------------------------------------------------------------------
# Tests for portfolio_engine/price_fetch.py
#
# yfinance is replaced with a fake Ticker via monkeypatch; no network.
# time.sleep is patched out so retry paths run instantly.
# -----------------------------------------------------------------------

from datetime import date

import pandas as pd
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portfolio_engine import price_fetch
from portfolio_engine.price_fetch import (
    PriceFetchError,
    fetch_price_history,
    fetch_symbol_history,
    lookback_start,
)


def _history(days, closes):
    idx = pd.DatetimeIndex(pd.to_datetime(days), name="Date").tz_localize("America/New_York")
    return pd.DataFrame({"Open": closes, "Close": closes, "Volume": 1}, index=idx)


class FakeTicker:
    """Stand-in for yf.Ticker driven by a per-symbol script of responses."""
    script = {}
    calls = []

    def __init__(self, symbol):
        self.symbol = symbol

    def history(self, start=None, end=None, auto_adjust=True):
        FakeTicker.calls.append((self.symbol, start, end))
        responses = FakeTicker.script.get(self.symbol, [])
        result = responses.pop(0) if len(responses) > 1 else (responses[0] if responses else pd.DataFrame())
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_yf(monkeypatch):
    FakeTicker.script = {}
    FakeTicker.calls = []
    sleeps = []
    monkeypatch.setattr(price_fetch.yf, "Ticker", FakeTicker)
    monkeypatch.setattr(price_fetch.time, "sleep", lambda s: sleeps.append(s))
    FakeTicker.sleeps = sleeps
    return FakeTicker


# ═══════════════════════════════════════════════════════════════════════
# lookback_start
# ═══════════════════════════════════════════════════════════════════════

class TestLookbackStart:
    def test_sixty_months(self):
        assert lookback_start(date(2024, 6, 15), 60) == date(2019, 6, 15)

    def test_clamped_to_month_end(self):
        assert lookback_start(date(2024, 3, 31), 1) == date(2024, 2, 29)


# ═══════════════════════════════════════════════════════════════════════
# fetch_symbol_history
# ═══════════════════════════════════════════════════════════════════════

class TestFetchSymbolHistory:
    def test_normalises_dates(self, fake_yf):
        fake_yf.script["AAPL"] = [_history(["2024-01-02", "2024-01-03"], [100.0, 101.0])]
        df = fetch_symbol_history("AAPL", date(2024, 1, 1), date(2024, 1, 3))
        assert list(df.columns) == ["date", "close"]
        assert df["date"].dt.tz is None
        assert df["date"].iloc[0] == pd.Timestamp("2024-01-02")

    def test_end_is_inclusive(self, fake_yf):
        fake_yf.script["AAPL"] = [_history(["2024-01-02"], [100.0])]
        fetch_symbol_history("AAPL", date(2024, 1, 1), date(2024, 1, 3))
        _, _, end = fake_yf.calls[0]
        assert end == date(2024, 1, 4)

    def test_retries_then_succeeds(self, fake_yf):
        fake_yf.script["AAPL"] = [ConnectionError("boom"), _history(["2024-01-02"], [100.0])]
        df = fetch_symbol_history("AAPL", date(2024, 1, 1), date(2024, 1, 3))
        assert len(df) == 1
        assert len(fake_yf.calls) == 2
        assert len(fake_yf.sleeps) == 1

    def test_gives_up_after_max_retries(self, fake_yf):
        fake_yf.script["AAPL"] = [ConnectionError("boom")]
        df = fetch_symbol_history("AAPL", date(2024, 1, 1), date(2024, 1, 3))
        assert df.empty
        assert len(fake_yf.calls) == price_fetch._MAX_RETRIES
        assert len(fake_yf.sleeps) == price_fetch._MAX_RETRIES - 1

    def test_non_positive_closes_dropped(self, fake_yf):
        fake_yf.script["AAPL"] = [_history(["2024-01-02", "2024-01-03"], [0.0, 101.0])]
        df = fetch_symbol_history("AAPL", date(2024, 1, 1), date(2024, 1, 3))
        assert df["close"].tolist() == [101.0]


# ═══════════════════════════════════════════════════════════════════════
# fetch_price_history
# ═══════════════════════════════════════════════════════════════════════

class TestFetchPriceHistory:
    def test_builds_price_series(self, fake_yf):
        fake_yf.script["AAPL"] = [_history(["2024-01-02", "2024-01-03"], [100.0, 101.0])]
        fake_yf.script["MSFT"] = [_history(["2024-01-03"], [400.0])]
        series = fetch_price_history(["aapl", "MSFT"], date(2024, 1, 1), date(2024, 1, 3))
        assert series.symbols() == ["AAPL", "MSFT"]
        assert series.close("AAPL", date(2024, 1, 2)) == 100.0
        assert series.closes_on(date(2024, 1, 3)) == {"AAPL": 101.0, "MSFT": 400.0}

    def test_partial_failure_tolerated(self, fake_yf):
        fake_yf.script["AAPL"] = [_history(["2024-01-02"], [100.0])]
        fake_yf.script["BAD"] = [KeyError("delisted")]
        series = fetch_price_history(["AAPL", "BAD"], date(2024, 1, 1), date(2024, 1, 3))
        assert series.symbols() == ["AAPL"]

    def test_total_failure_raises(self, fake_yf):
        fake_yf.script["BAD"] = [ConnectionError("down")]
        with pytest.raises(PriceFetchError) as info:
            fetch_price_history(["BAD", "WORSE"], date(2024, 1, 1), date(2024, 1, 3))
        assert info.value.symbols == ["BAD", "WORSE"]

    def test_no_symbols(self, fake_yf):
        series = fetch_price_history([], date(2024, 1, 1), date(2024, 1, 3))
        assert len(series) == 0
        assert fake_yf.calls == []

    def test_symbols_deduplicated(self, fake_yf):
        fake_yf.script["AAPL"] = [_history(["2024-01-02"], [100.0])]
        fetch_price_history(["AAPL", "aapl", " AAPL "], date(2024, 1, 1), date(2024, 1, 3))
        assert len(fake_yf.calls) == 1
