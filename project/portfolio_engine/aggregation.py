# aggregation.py
# ------------------------------------------------------------------
# Report tables built around the valuation core:
#
#   capital_allocation      Symbol, Invested ($), Invested (%)
#   concentration_curve     Rank, Symbol, Invested (%), Cumulative (%)
#   holding_period_returns  per-symbol return at the latest close
#   moving_averages         trailing SMAs per symbol
#   month_end_prices        (symbol, month) -> last close of the month
#   monthly_returns         month-over-month returns per symbol
#   risk_return             mean / stdev of monthly returns per symbol
#
# Percentages are rounded once, here, to PERCENT_DECIMALS.
# ------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from portfolio_engine.constants import LONG_MA_WINDOW, PERCENT_DECIMALS, SHORT_MA_WINDOW
from portfolio_engine.ledger import PositionLedger
from portfolio_engine.prices import PriceSeries

_logger = logging.getLogger(__name__)


def safe_divide(a, b, default=np.nan):
    try:
        if b is None or a is None or pd.isna(b) or pd.isna(a) or b == 0:
            return default
        return a / b
    except (TypeError, ValueError):
        return default


def _select(symbols: Optional[Iterable[str]], available: List[str]) -> List[str]:
    if symbols is None:
        return available
    wanted = {str(s).strip().upper() for s in symbols}
    return [s for s in available if s in wanted]


# ── Capital allocation ──────────────────────────────────────────────────────

ALLOCATION_COLUMNS = ["Symbol", "Invested ($)", "Invested (%)"]


def _invested_by_symbol(ledger: PositionLedger, as_of: Optional[date] = None) -> Dict[str, float]:
    positions = ledger.open_as_of(as_of) if as_of is not None else list(ledger)
    invested: Dict[str, float] = defaultdict(float)
    for p in positions:
        invested[p.symbol] += p.cost
    return dict(invested)


def capital_allocation(ledger: PositionLedger, as_of: Optional[date] = None) -> pd.DataFrame:
    """Capital invested per symbol, largest first."""
    invested = _invested_by_symbol(ledger, as_of)
    total = sum(invested.values())
    if not invested or total <= 0:
        return pd.DataFrame(columns=ALLOCATION_COLUMNS)
    df = pd.DataFrame(
        [{"Symbol": s, "Invested ($)": v, "Invested (%)": v / total * 100}
         for s, v in invested.items()]
    )
    df = df.sort_values(["Invested ($)", "Symbol"], ascending=[False, True]).reset_index(drop=True)
    df["Invested ($)"] = df["Invested ($)"].round(2)
    df["Invested (%)"] = df["Invested (%)"].round(PERCENT_DECIMALS)
    return df[ALLOCATION_COLUMNS]


def concentration_curve(ledger: PositionLedger, as_of: Optional[date] = None) -> pd.DataFrame:
    """
    Cumulative share of capital held by the largest N positions.

    Row k answers "how much of my money sits in my top k holdings?".
    The last row is always 100%.
    """
    invested = _invested_by_symbol(ledger, as_of)
    total = sum(invested.values())
    columns = ["Rank", "Symbol", "Invested (%)", "Cumulative (%)"]
    if not invested or total <= 0:
        return pd.DataFrame(columns=columns)
    ranked = sorted(invested.items(), key=lambda kv: (-kv[1], kv[0]))
    rows, running = [], 0.0
    for rank, (sym, value) in enumerate(ranked, start=1):
        running += value
        rows.append({
            "Rank": rank,
            "Symbol": sym,
            "Invested (%)": round(value / total * 100, PERCENT_DECIMALS),
            "Cumulative (%)": round(running / total * 100, PERCENT_DECIMALS),
        })
    return pd.DataFrame(rows, columns=columns)


# ── Holding-period return ───────────────────────────────────────────────────

HPR_COLUMNS = ["Symbol", "Quantity", "Invested ($)", "Last Close", "Price Date",
               "Market Value ($)", "Return (%)"]


def holding_period_return(invested: float, market_value: float) -> float:
    """Percentage gain on invested capital; NaN when nothing is invested."""
    if invested is None or invested <= 0:
        return np.nan
    return safe_divide(market_value - invested, invested) * 100


def holding_period_returns(ledger: PositionLedger, prices: PriceSeries, as_of: date) -> pd.DataFrame:
    """
    Per-symbol return on capital, valued at each symbol's latest close on
    or before as_of. Symbols with no price at all are left out.
    """
    qty: Dict[str, float] = defaultdict(float)
    cost: Dict[str, float] = defaultdict(float)
    for p in ledger.open_as_of(as_of):
        qty[p.symbol] += p.quantity
        cost[p.symbol] += p.cost

    rows, unpriced = [], []
    for sym in sorted(qty):
        latest = prices.latest_close(sym, as_of)
        if latest is None:
            unpriced.append(sym)
            continue
        px_date, close = latest
        value = qty[sym] * close
        ret = holding_period_return(cost[sym], value)
        rows.append({
            "Symbol": sym,
            "Quantity": qty[sym],
            "Invested ($)": round(cost[sym], 2),
            "Last Close": close,
            "Price Date": px_date,
            "Market Value ($)": round(value, 2),
            "Return (%)": ret if math.isnan(ret) else round(ret, PERCENT_DECIMALS),
        })
    if unpriced:
        _logger.warning("No price on or before %s for %s; excluded from holding returns",
                        as_of, ", ".join(unpriced))
    return pd.DataFrame(rows, columns=HPR_COLUMNS)


# ── Moving averages ─────────────────────────────────────────────────────────

MA_COLUMNS = ["symbol", "date", "close", "short_avg", "long_avg"]


def moving_averages(
    prices: PriceSeries,
    short_window: int = SHORT_MA_WINDOW,
    long_window: int = LONG_MA_WINDOW,
    symbols: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """Trailing simple moving averages over each symbol's trading days."""
    if short_window < 1 or long_window < 1:
        raise ValueError("moving-average windows must be >= 1")
    frames = []
    for sym in _select(symbols, prices.symbols()):
        pts = prices.points(sym)
        if not pts:
            continue
        df = pd.DataFrame({"symbol": sym,
                           "date": [p.date for p in pts],
                           "close": [p.close for p in pts]})
        df["short_avg"] = df["close"].rolling(short_window, min_periods=short_window).mean()
        df["long_avg"] = df["close"].rolling(long_window, min_periods=long_window).mean()
        frames.append(df)
    if not frames:
        return pd.DataFrame(columns=MA_COLUMNS)
    return pd.concat(frames, ignore_index=True)[MA_COLUMNS]


# ── Monthly returns & risk ──────────────────────────────────────────────────

def month_end_prices(
    prices: PriceSeries, symbols: Optional[Iterable[str]] = None
) -> Dict[Tuple[str, date], float]:
    """
    Keyed lookup (symbol, month_end) -> close, where month_end is the
    symbol's last trading day in each calendar month.
    """
    out: Dict[Tuple[str, date], float] = {}
    for sym in _select(symbols, prices.symbols()):
        last_in_month: Dict[Tuple[int, int], Tuple[date, float]] = {}
        for p in prices.points(sym):
            last_in_month[(p.date.year, p.date.month)] = (p.date, p.close)
        for d, close in last_in_month.values():
            out[(sym, d)] = close
    return out


def monthly_returns(prices: PriceSeries, symbols: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """
    Month-over-month close-to-close returns per symbol.

    Only adjacent calendar months are paired; a month with no trading
    data breaks the chain rather than producing a multi-month return.
    """
    by_symbol: Dict[str, List[Tuple[date, float]]] = defaultdict(list)
    for (sym, d), close in month_end_prices(prices, symbols).items():
        by_symbol[sym].append((d, close))

    rows = []
    for sym in sorted(by_symbol):
        series = sorted(by_symbol[sym])
        for (d0, p0), (d1, p1) in zip(series, series[1:]):
            if (d1.year * 12 + d1.month) - (d0.year * 12 + d0.month) != 1:
                continue
            rows.append({"symbol": sym, "month": d1, "return": p1 / p0 - 1.0})
    return pd.DataFrame(rows, columns=["symbol", "month", "return"])


RISK_COLUMNS = ["symbol", "mean_monthly_return", "stdev_monthly_return", "months"]


def risk_return(prices: PriceSeries, symbols: Optional[Iterable[str]] = None) -> pd.DataFrame:
    """Mean and sample standard deviation of monthly returns per symbol."""
    mr = monthly_returns(prices, symbols)
    if mr.empty:
        return pd.DataFrame(columns=RISK_COLUMNS)
    rows = []
    for sym, grp in mr.groupby("symbol", sort=True):
        r = grp["return"].astype(float)
        rows.append({
            "symbol": sym,
            "mean_monthly_return": float(r.mean()),
            "stdev_monthly_return": float(r.std(ddof=1)) if len(r) >= 2 else np.nan,
            "months": int(len(r)),
        })
    return pd.DataFrame(rows, columns=RISK_COLUMNS)
