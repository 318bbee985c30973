# price_fetch.py
# ------------------------------------------------------------------
# Daily close history from Yahoo Finance (via yfinance).
#
#   - One Ticker.history() call per symbol, auto-adjusted closes,
#     tz-aware index normalised to naive calendar dates.
#   - Transient failures (network errors, empty throttled responses)
#     are retried with exponential backoff.
#   - A symbol that still fails is logged and left out: gaps in the
#     price series are legal and the valuation core treats them as
#     zero contribution. Only a total failure raises PriceFetchError.
# ------------------------------------------------------------------

from __future__ import annotations

import logging
import time
from datetime import date, timedelta
from typing import Iterable, List, Optional

import pandas as pd
import yfinance as yf

from portfolio_engine.constants import LOOKBACK_MONTHS
from portfolio_engine.prices import PricePoint, PriceSeries

_logger = logging.getLogger(__name__)

# Retry configuration
_MAX_RETRIES = 3
_RETRY_BACKOFF_BASE = 1.5   # seconds; doubles each retry


class PriceFetchError(Exception):
    """Raised when no price history could be downloaded at all."""
    def __init__(self, symbols: List[str], message: str):
        self.symbols = list(symbols)
        super().__init__(f"Price download failed for {', '.join(self.symbols) or '(none)'}: {message}")


def lookback_start(as_of: date, months: int = LOOKBACK_MONTHS) -> date:
    """as_of minus `months` calendar months (day clamped to month end)."""
    return (pd.Timestamp(as_of) - pd.DateOffset(months=months)).date()


def _history_frame(symbol: str, start: date, end: date) -> pd.DataFrame:
    # yfinance treats `end` as exclusive.
    hist = yf.Ticker(symbol).history(
        start=start, end=end + timedelta(days=1), auto_adjust=True
    )
    if hist is None or hist.empty or "Close" not in hist.columns:
        return pd.DataFrame(columns=["date", "close"])
    df = hist.reset_index()
    date_col = "Date" if "Date" in df.columns else df.columns[0]
    df = df[[date_col, "Close"]].copy()
    df.columns = ["date", "close"]
    dates = pd.to_datetime(df["date"])
    if dates.dt.tz is not None:
        dates = dates.dt.tz_localize(None)
    df["date"] = dates.dt.normalize()
    df = df.dropna(subset=["date", "close"])
    return df[df["close"] > 0].sort_values("date").reset_index(drop=True)


def fetch_symbol_history(symbol: str, start: date, end: date) -> pd.DataFrame:
    """
    Download one symbol's daily closes, retrying transient failures.

    Returns a frame with columns date, close (possibly empty).
    """
    last_exc: Optional[Exception] = None
    for attempt in range(_MAX_RETRIES):
        try:
            df = _history_frame(symbol, start, end)
            if not df.empty:
                return df
            last_exc = None
        except Exception as exc:  # yfinance raises a mix of requests/json/key errors
            last_exc = exc
            _logger.debug("Attempt %d for %s failed: %s", attempt + 1, symbol, exc)
        if attempt < _MAX_RETRIES - 1:
            time.sleep(_RETRY_BACKOFF_BASE * (2 ** attempt))

    if last_exc is not None:
        _logger.warning("Giving up on %s after %d attempts: %s", symbol, _MAX_RETRIES, last_exc)
    else:
        _logger.warning("No price history returned for %s between %s and %s", symbol, start, end)
    return pd.DataFrame(columns=["date", "close"])


def fetch_price_history(symbols: Iterable[str], start: date, end: date) -> PriceSeries:
    """
    Download daily closes for every symbol over [start, end].

    Raises:
        PriceFetchError: when not a single symbol returned data.
    """
    symbols = sorted({str(s).strip().upper() for s in symbols if str(s).strip()})
    if not symbols:
        return PriceSeries()

    points: List[PricePoint] = []
    missing: List[str] = []
    for sym in symbols:
        df = fetch_symbol_history(sym, start, end)
        if df.empty:
            missing.append(sym)
            continue
        points.extend(
            PricePoint(sym, ts.date(), float(px)) for ts, px in zip(df["date"], df["close"])
        )

    if len(missing) == len(symbols):
        raise PriceFetchError(missing, "no data returned")
    if missing:
        _logger.warning("No prices for %s; they will not contribute to valuations", ", ".join(missing))
    series = PriceSeries(points)
    _logger.info("Fetched %r", series)
    return series
