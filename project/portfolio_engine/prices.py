# prices.py
# ------------------------------------------------------------------
# Historical daily close prices over the report's lookback window.
#
# Prices are held as an explicit keyed lookup, (symbol, date) -> close,
# plus a per-date index of which symbols traded that day. Trading days
# are a subset of calendar days and not every symbol is present on
# every trading day (IPOs, delistings, feed gaps).
# ------------------------------------------------------------------

from __future__ import annotations

import bisect
import logging
import math
from dataclasses import dataclass
from datetime import date
from io import StringIO
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from portfolio_engine.constants import PRICE_COLUMNS

_logger = logging.getLogger(__name__)


def _norm_symbol(symbol) -> str:
    return str(symbol).strip().upper()


@dataclass(frozen=True)
class PricePoint:
    symbol: str
    date: date
    close: float


class PriceSeries:
    """
    Read-only, date-ordered price observations.

    Duplicate (symbol, date) observations keep the last one seen.
    Non-positive or NaN closes are dropped.
    """

    def __init__(self, points: Iterable[PricePoint] = ()):
        closes: Dict[Tuple[str, date], float] = {}
        dropped = 0
        for p in points:
            close = float(p.close)
            if math.isnan(close) or close <= 0:
                dropped += 1
                continue
            closes[(_norm_symbol(p.symbol), p.date)] = close
        if dropped:
            _logger.debug("Dropped %d non-positive price observations", dropped)

        self._closes = closes
        by_date: Dict[date, Dict[str, float]] = {}
        by_symbol: Dict[str, List[date]] = {}
        for (sym, d), close in closes.items():
            by_date.setdefault(d, {})[sym] = close
            by_symbol.setdefault(sym, []).append(d)
        for dates in by_symbol.values():
            dates.sort()
        self._by_date = by_date
        self._by_symbol = by_symbol
        self._days = sorted(by_date)

    def __len__(self) -> int:
        return len(self._closes)

    def __bool__(self) -> bool:
        return bool(self._closes)

    def __repr__(self) -> str:
        if not self._days:
            return "PriceSeries(empty)"
        return (f"PriceSeries({len(self)} points, {len(self._by_symbol)} symbols, "
                f"{self._days[0]} → {self._days[-1]})")

    @property
    def start(self) -> Optional[date]:
        return self._days[0] if self._days else None

    @property
    def end(self) -> Optional[date]:
        return self._days[-1] if self._days else None

    def trading_days(self) -> List[date]:
        return list(self._days)

    def symbols(self) -> List[str]:
        return sorted(self._by_symbol)

    def has_date(self, d: date) -> bool:
        return d in self._by_date

    def closes_on(self, d: date) -> Dict[str, float]:
        return dict(self._by_date.get(d, {}))

    def close(self, symbol: str, d: date) -> Optional[float]:
        return self._closes.get((_norm_symbol(symbol), d))

    def latest_close(self, symbol: str, as_of: date) -> Optional[Tuple[date, float]]:
        """Latest (date, close) for symbol on or before as_of."""
        symbol = _norm_symbol(symbol)
        dates = self._by_symbol.get(symbol)
        if not dates:
            return None
        i = bisect.bisect_right(dates, as_of)
        if i == 0:
            return None
        d = dates[i - 1]
        return d, self._closes[(symbol, d)]

    def points(self, symbol: str) -> List[PricePoint]:
        symbol = _norm_symbol(symbol)
        return [PricePoint(symbol, d, self._closes[(symbol, d)])
                for d in self._by_symbol.get(symbol, [])]

    # ── DataFrame conversion ─────────────────────────────────────────────

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "PriceSeries":
        """Build from a long-format frame with columns symbol, date, close."""
        missing = [c for c in PRICE_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Price frame missing columns: {', '.join(missing)}")
        if df.empty:
            return cls()
        dates = pd.to_datetime(df["date"])
        if getattr(dates.dt, "tz", None) is not None:
            dates = dates.dt.tz_localize(None)
        closes = pd.to_numeric(df["close"], errors="coerce")
        points = (
            PricePoint(str(sym), ts.date(), float(px))
            for sym, ts, px in zip(df["symbol"], dates, closes)
            if pd.notna(ts)
        )
        return cls(points)

    def to_frame(self) -> pd.DataFrame:
        rows = [{"symbol": s, "date": d, "close": c}
                for (s, d), c in self._closes.items()]
        df = pd.DataFrame(rows, columns=list(PRICE_COLUMNS))
        return df.sort_values(["date", "symbol"]).reset_index(drop=True)


def load_prices_csv(source) -> PriceSeries:
    """Read a long-format price feed (symbol, date, close) from CSV."""
    if isinstance(source, str) and "\n" in source:
        source = StringIO(source)
    df = pd.read_csv(source, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip().lower() for c in df.columns]
    return PriceSeries.from_frame(df)
