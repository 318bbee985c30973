# ledger.py
# ------------------------------------------------------------------
# Position ledger: the immutable list of buy transactions.
#
# A ledger is loaded once per report run and then only read. Positions
# are never edited or removed; cost basis is fixed at recording time.
#
# load_positions_csv() is the ingestion boundary. It fails fast on a
# malformed file (missing columns or symbols, bad dates, non-positive
# quantities or prices) so the valuation core never has to guess.
# ------------------------------------------------------------------

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from io import StringIO
from typing import Iterable, Iterator, List, Optional, Tuple

import pandas as pd

from portfolio_engine.constants import POSITION_COLUMNS

_logger = logging.getLogger(__name__)


class LedgerError(ValueError):
    """Raised when a position log cannot be turned into a ledger."""


class MalformedDateError(LedgerError):
    """Raised when an Open Date cannot be parsed."""
    def __init__(self, row: int, value):
        self.row = row
        self.value = value
        super().__init__(f"Row {row}: unparseable Open Date {value!r}")


def _to_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, pd.Timestamp):
        return value.date()
    return pd.Timestamp(value).date()


@dataclass(frozen=True)
class Position:
    symbol: str
    quantity: float
    open_date: date
    cost_per_share: float

    def __post_init__(self):
        symbol = str(self.symbol).strip().upper()
        if not symbol:
            raise LedgerError("Position symbol must not be empty")
        object.__setattr__(self, "symbol", symbol)
        object.__setattr__(self, "open_date", _to_date(self.open_date))
        for name in ("quantity", "cost_per_share"):
            v = float(getattr(self, name))
            if math.isnan(v) or v <= 0:
                raise LedgerError(f"{symbol}: {name} must be positive, got {v}")
            object.__setattr__(self, name, v)

    @property
    def cost(self) -> float:
        return self.quantity * self.cost_per_share


class PositionLedger:
    """
    Ordered, read-only collection of positions.

    Positions are kept sorted by open date; positions opened on the same
    day keep the order in which they were recorded.
    """

    def __init__(self, positions: Iterable[Position] = ()):
        self._positions: Tuple[Position, ...] = tuple(
            sorted(positions, key=lambda p: p.open_date)
        )

    def __iter__(self) -> Iterator[Position]:
        return iter(self._positions)

    def __len__(self) -> int:
        return len(self._positions)

    def __bool__(self) -> bool:
        return bool(self._positions)

    def __repr__(self) -> str:
        return f"PositionLedger({len(self)} positions)"

    @property
    def positions(self) -> Tuple[Position, ...]:
        return self._positions

    def open_as_of(self, as_of: date) -> List[Position]:
        """Positions with open_date <= as_of (point-in-time membership)."""
        as_of = _to_date(as_of)
        return [p for p in self._positions if p.open_date <= as_of]

    def first_open_date(self) -> Optional[date]:
        return self._positions[0].open_date if self._positions else None

    def symbols(self) -> List[str]:
        return sorted({p.symbol for p in self._positions})

    def total_cost(self) -> float:
        return float(sum(p.cost for p in self._positions))

    # ── DataFrame conversion ─────────────────────────────────────────────

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "PositionLedger":
        missing = [c for c in POSITION_COLUMNS if c not in df.columns]
        if missing:
            raise LedgerError(f"Missing columns: {', '.join(missing)}")
        positions = []
        for rec in df.to_dict("records"):
            positions.append(Position(
                symbol=rec["Symbol"],
                quantity=rec["Quantity"],
                open_date=rec["Open Date"],
                cost_per_share=rec["Cost Per Share"],
            ))
        return cls(positions)

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {"Symbol": p.symbol, "Quantity": p.quantity, "Open Date": p.open_date,
             "Cost Per Share": p.cost_per_share, "Cost": p.cost}
            for p in self._positions
        ]
        return pd.DataFrame(rows, columns=list(POSITION_COLUMNS) + ["Cost"])


# ── Ingestion ────────────────────────────────────────────────────────────────

def _norm_col(name) -> str:
    return "".join(ch for ch in str(name).lower() if ch.isalnum())


_COLUMN_ALIASES = {_norm_col(c): c for c in POSITION_COLUMNS}


def load_positions_csv(source) -> PositionLedger:
    """
    Read a position log into a PositionLedger.

    `source` may be a path, a file-like object (e.g. a Streamlit upload)
    or the CSV text itself. Column names are matched ignoring case,
    spaces and punctuation, so "open_date" and "Open Date" are the same.

    Raises:
        LedgerError: unreadable source, missing columns or symbols,
            bad quantities or prices.
        MalformedDateError: an Open Date that cannot be parsed.
    """
    if isinstance(source, str) and "\n" in source:
        source = StringIO(source)
    try:
        # Cells stay raw strings: "NA" is a ticker, not a missing value.
        raw = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as exc:
        raise LedgerError(f"Couldn't read the position log: {exc}") from exc

    raw = raw.rename(columns={c: _COLUMN_ALIASES.get(_norm_col(c), c) for c in raw.columns})
    missing = [c for c in POSITION_COLUMNS if c not in raw.columns]
    if missing:
        raise LedgerError(f"Missing columns: {', '.join(missing)}")

    df = raw[list(POSITION_COLUMNS)].apply(lambda col: col.str.strip())
    df = df[(df != "").any(axis=1)].copy()

    blank = df.index[df["Symbol"] == ""]
    if len(blank):
        rows = ", ".join(str(int(i) + 1) for i in blank[:5])
        raise LedgerError(f"Symbol is missing (rows {rows})")
    df["Symbol"] = df["Symbol"].str.upper()

    dates = []
    for row_no, value in zip(df.index, df["Open Date"]):
        try:
            parsed = pd.to_datetime(value)
        except (ValueError, TypeError) as exc:
            raise MalformedDateError(int(row_no) + 1, value) from exc
        if pd.isna(parsed):
            raise MalformedDateError(int(row_no) + 1, value)
        dates.append(parsed.date())
    df["Open Date"] = dates

    for col in ("Quantity", "Cost Per Share"):
        numeric = pd.to_numeric(df[col], errors="coerce")
        bad = df.index[numeric.isna() | (numeric <= 0)]
        if len(bad):
            rows = ", ".join(str(int(i) + 1) for i in bad[:5])
            raise LedgerError(f"{col} must be a positive number (rows {rows})")
        df[col] = numeric.astype(float)

    ledger = PositionLedger.from_frame(df)
    _logger.info("Loaded %d positions across %d symbols", len(ledger), len(ledger.symbols()))
    return ledger
