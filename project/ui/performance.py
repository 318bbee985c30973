# ui/performance.py
"""
Portfolio Performance: Plain-English Edition
=============================================
Design philosophy: "Your money's story, told simply."

The page only gathers inputs (position log, as-of date, windows), fetches
prices and renders. All numbers come from portfolio_engine.report.
"""

from __future__ import annotations

import logging
import os
import traceback
from datetime import date
from typing import List

import numpy as np
import pandas as pd
import streamlit as st

from portfolio_engine.constants import ReportConfig
from portfolio_engine.ledger import LedgerError, PositionLedger, load_positions_csv
from portfolio_engine.price_fetch import PriceFetchError, fetch_price_history, lookback_start
from portfolio_engine.prices import PriceSeries
from portfolio_engine.report import PortfolioReport, build_report
from ui.charts import (
    BLUE, DOWN, UP,
    chart_allocation,
    chart_concentration,
    chart_holding_returns,
    chart_moving_averages,
    chart_returns,
    chart_risk_return,
)

_logger = logging.getLogger(__name__)

BORDER  = "#E5E5EA"
CARD_BG = "transparent"


def _metric_card(label: str, value_str: str, color: str = "#ffffff", tooltip: str = "") -> str:
    return f"""
<div title="{tooltip}" style="background:{CARD_BG};border-radius:12px;padding:16px 18px;
     cursor:help;border:1px solid {BORDER};height:100%;">
  <div style="font-size:11px;font-weight:600;letter-spacing:0.05em;color:#ffffff;
              text-transform:uppercase;margin-bottom:6px;">{label}</div>
  <div style="font-size:26px;font-weight:700;line-height:1.1;color:{color};">{value_str}</div>
  <div style="font-size:11px;color:#ffffff;margin-top:6px;line-height:1.4;opacity:0.7;">{tooltip}</div>
</div>"""

def _section_header(title, subtitle="") -> None:
    sub = f'<p style="color:#ffffff;opacity:0.7;font-size:14px;margin:2px 0 0 0;">{subtitle}</p>' if subtitle else ""
    st.markdown(
        f'<div style="margin:28px 0 12px 0;"><h3 style="font-size:20px;font-weight:700;color:#ffffff;margin:0;">'
        f'{title}</h3>{sub}</div>', unsafe_allow_html=True)


# ── Narrative ────────────────────────────────────────────────────────────────

def _generate_narrative(report: PortfolioReport) -> str:
    parts = []
    days = (report.as_of - report.start).days if report.start else 0
    if days < 60:        tenure = "just started investing"
    elif days < 365:     tenure = f"been investing for about {days//30} month{'s' if days//30>1 else ''}"
    elif days < 730:     tenure = "been investing for about a year"
    else:                tenure = f"been investing for {round(days/365.25,1)} years"
    parts.append(f"I've {tenure}.")

    pct = report.latest_return_pct
    if report.total_invested > 0 and not np.isnan(pct):
        gain = report.total_invested * pct / 100
        if gain > 0:
            parts.append(f"I put in **${report.total_invested:,.0f}** and I'm up **${gain:,.0f} ({pct:+.1f}%)**.")
        elif gain < 0:
            parts.append(f"I put in **${report.total_invested:,.0f}** and I'm down **${abs(gain):,.0f} ({pct:+.1f}%)**.")
        else:
            parts.append(f"I put in **${report.total_invested:,.0f}** and it's worth about the same today.")

    conc = report.concentration
    if not conc.empty and len(conc) >= 3:
        top3 = float(conc["Cumulative (%)"].iloc[2])
        parts.append(f"My three largest holdings hold **{top3:.0f}%** of my money.")

    hold = report.holdings.dropna(subset=["Return (%)"]) if not report.holdings.empty else report.holdings
    if not hold.empty:
        best = hold.loc[hold["Return (%)"].idxmax()]
        parts.append(f"My best position so far is **{best['Symbol']}** at {best['Return (%)']:+.1f}%.")
    return " ".join(parts)


# ── Default ledger ───────────────────────────────────────────────────────────
# Loaded on first run so the page never opens empty. Any user can
# override it by uploading their own position log.

_DEFAULT_POSITIONS_CSV = """Symbol,Quantity,Open Date,Cost Per Share
AAPL,10,2023-01-10,130.73
MSFT,5,2023-01-10,239.23
NVDA,3,2023-06-15,42.30
AAPL,5,2023-12-01,191.24
GOOGL,8,2024-03-01,138.50
WM,3,2024-06-13,210.39
AMZN,5,2024-09-03,176.25
"""

_DEFAULT_CSV_PATHS = [
    "portfolio_positions.csv",
    "ui/portfolio_positions.csv",
    "data/portfolio_positions.csv",
]


def _try_autoload_csv() -> bool:
    """Silently load portfolio_positions.csv from well-known paths on first run."""
    for path in _DEFAULT_CSV_PATHS:
        if not os.path.exists(path):
            continue
        try:
            st.session_state.ledger  = load_positions_csv(path)
            st.session_state._source = f"file:{path}"
            return True
        except LedgerError as exc:
            _logger.warning("Skipping %s: %s", path, exc)
    return False


def _init_state() -> None:
    if "ledger" not in st.session_state and not _try_autoload_csv():
        st.session_state.ledger  = load_positions_csv(_DEFAULT_POSITIONS_CSV)
        st.session_state._source = "default"
    if "report_config" not in st.session_state:
        st.session_state.report_config = ReportConfig.from_env()


def load_positions_from_csv(file) -> bool:
    """Replace the session ledger with an uploaded position log."""
    try:
        ledger = load_positions_csv(file)
    except LedgerError as exc:
        st.error(f"Couldn't read the file: {exc}")
        return False
    if not ledger:
        st.error("The file has no positions in it.")
        return False
    st.session_state.ledger  = ledger
    st.session_state._source = "uploaded"
    return True


# ── Price data ────────────────────────────────────────────────────────────────

@st.cache_data(ttl=1800, show_spinner=False)
def _price_frame(symbols: tuple, start: date, end: date) -> pd.DataFrame:
    return fetch_price_history(symbols, start, end).to_frame()


def _load_prices(ledger: PositionLedger, as_of: date, months: int) -> PriceSeries:
    start = min(lookback_start(as_of, months), ledger.first_open_date() or as_of)
    return PriceSeries.from_frame(_price_frame(tuple(ledger.symbols()), start, as_of))


# ── Sidebar controls ──────────────────────────────────────────────────────────

def _sidebar_controls() -> ReportConfig:
    cfg: ReportConfig = st.session_state.report_config
    with st.sidebar.expander("Portfolio settings", expanded=False):
        upload = st.file_uploader("Position log (CSV)", type=["csv"], key="positions_file")
        if upload is not None and st.session_state.get("_uploaded_name") != upload.name:
            if load_positions_from_csv(upload):
                st.session_state._uploaded_name = upload.name
                st.success(f"Loaded {len(st.session_state.ledger)} positions.")
        st.date_input("Value portfolio as of", value=date.today(), max_value=date.today(), key="as_of")
        months = st.number_input("Price history (months)", min_value=1, max_value=240,
                                 value=cfg.lookback_months, step=6)
        short = st.number_input("Short average (days)", min_value=1, max_value=400,
                                value=cfg.short_window, step=5)
        long_ = st.number_input("Long average (days)", min_value=1, max_value=400,
                                value=cfg.long_window, step=10)
        strict = st.toggle("Strict trading-day lookup", value=cfg.strict_resolver,
                           help="Search up to "
                                f"{cfg.strict_max_lookback_days} days back and report gaps "
                                "instead of falling back to three days earlier.")
    try:
        return ReportConfig(lookback_months=int(months), short_window=int(short), long_window=int(long_),
                            strict_resolver=bool(strict),
                            strict_max_lookback_days=cfg.strict_max_lookback_days)
    except ValueError as exc:
        st.sidebar.warning(f"{exc}. Using defaults.")
        return cfg


# ── Empty state ───────────────────────────────────────────────────────────────

def _render_empty_state() -> None:
    st.markdown("""
<div style="max-width:680px;margin:40px auto;text-align:center;">
  <h2 style="font-size:28px;font-weight:700;color:#ffffff;margin-bottom:8px;">Let\'s see how your investments are doing</h2>
  <p style="font-size:16px;color:#ffffff;opacity:0.8;line-height:1.6;margin-bottom:32px;">
    Upload a simple spreadsheet of your purchases and we\'ll show you where your money sits
    and how each position has done since you bought it.
  </p>
</div>""", unsafe_allow_html=True)

    with st.expander("What file do I need to upload?", expanded=True):
        st.markdown("""
**You need a CSV file** with one row per purchase.

| Column | What to put | Example |
|--------|-------------|---------|
| `Symbol` | The stock\'s ticker | `AAPL` |
| `Quantity` | How many shares you bought | `10` |
| `Open Date` | When you bought them | `2024-01-15` |
| `Cost Per Share` | What you paid for each share | `185.50` |
        """)
    st.download_button(label="⬇ Download sample CSV to try", data=_DEFAULT_POSITIONS_CSV,
                       file_name="sample_positions.csv", mime="text/csv")


# ── Main render ───────────────────────────────────────────────────────────────

def _fmt_table(df: pd.DataFrame, money: List[str], pct: List[str]) -> pd.DataFrame:
    out = df.copy()
    for c in money:
        out[c] = out[c].map(lambda v: "—" if pd.isna(v) else f"${float(v):,.2f}")
    for c in pct:
        out[c] = out[c].map(lambda v: "—" if pd.isna(v) else f"{float(v):+.2f}%")
    return out


def render_performance() -> None:
    st.markdown('<h1 style="font-size:32px;font-weight:800;color:#ffffff;margin-bottom:4px;">Performance</h1>',
                unsafe_allow_html=True)

    _init_state()
    config = _sidebar_controls()
    debug_mode = os.environ.get("PORTFOLIO_DEBUG", "").lower() in ("1", "true", "yes")

    ledger: PositionLedger = st.session_state.ledger
    if not ledger:
        _render_empty_state(); return

    as_of: date = st.session_state.get("as_of") or date.today()

    with st.spinner("Downloading price history…"):
        try:
            prices = _load_prices(ledger, as_of, config.lookback_months)
        except PriceFetchError as exc:
            _logger.warning("Price download failed: %s", exc)
            st.error(f"Couldn't download prices: {exc}")
            return

    with st.spinner("Rebuilding your portfolio day by day…"):
        try:
            report = build_report(ledger, prices, as_of, config)
        except Exception as e:
            _logger.exception("Report build failed")
            st.error(f"Something went wrong building the report: {e}")
            if debug_mode: st.code(traceback.format_exc())
            return

    if report.is_empty:
        st.info("None of your positions were open on the selected date yet.")
        return

    st.markdown(
        f'<div style="background:linear-gradient(135deg,rgba(10,124,255,0.15),rgba(10,124,255,0.08));'
        f'border-radius:14px;padding:20px 24px;margin-bottom:20px;border:1px solid rgba(10,124,255,0.4);">'
        f'<div style="font-size:11px;font-weight:700;color:#ffffff;letter-spacing:0.08em;'
        f'text-transform:uppercase;margin-bottom:8px;">My Portfolio at a Glance</div>'
        f'<div style="font-size:15px;color:#ffffff;line-height:1.7;">{_generate_narrative(report)}</div></div>',
        unsafe_allow_html=True)

    c1, c2, c3 = st.columns(3)
    pct = report.latest_return_pct
    with c1: st.markdown(_metric_card("Money I Put In", f"${report.total_invested:,.0f}",
                                      tooltip="Cost of every position opened so far."), unsafe_allow_html=True)
    with c2: st.markdown(_metric_card("Total Return", f"{pct:+.2f}%", UP if pct >= 0 else DOWN,
                                      tooltip=f"Gain on invested capital as of {as_of:%b %d, %Y}."), unsafe_allow_html=True)
    with c3: st.markdown(_metric_card("Holdings", f"{len(report.allocation)}", BLUE,
                                      tooltip="Distinct symbols in the portfolio."), unsafe_allow_html=True)

    tabs = st.tabs(["Where Is My Money?", "How Am I Doing?", "Each Holding", "Trends", "Risk vs Reward"])

    # ════════════ TAB 0: ALLOCATION ═════════════════════════════════════════
    with tabs[0]:
        ca, cb = st.columns([1, 1])
        with ca:
            _section_header("Capital allocation", "Share of invested money per stock")
            st.plotly_chart(chart_allocation(report.allocation), width="stretch")
            st.dataframe(_fmt_table(report.allocation, ["Invested ($)"], []),
                         hide_index=True, width="stretch")
        with cb:
            _section_header("Concentration", "How much of my money sits in my biggest positions")
            st.plotly_chart(chart_concentration(report.concentration), width="stretch")

    # ════════════ TAB 1: RETURN SERIES ══════════════════════════════════════
    with tabs[1]:
        _section_header("Daily return", "Gain on invested capital, every calendar day since my first purchase")
        st.plotly_chart(chart_returns(report.returns), width="stretch")
        st.download_button(label="⬇ Download daily returns as CSV",
                           data=report.returns.to_csv(index=False),
                           file_name=f"portfolio_returns_{as_of:%Y-%m-%d}.csv", mime="text/csv")

    # ════════════ TAB 2: HOLDINGS ═══════════════════════════════════════════
    with tabs[2]:
        _section_header("Holding-period return", "Each stock's gain since I bought it, at its latest price")
        st.plotly_chart(chart_holding_returns(report.holdings), width="stretch")
        st.dataframe(_fmt_table(report.holdings, ["Invested ($)", "Last Close", "Market Value ($)"], ["Return (%)"]),
                     hide_index=True, width="stretch")

    # ════════════ TAB 3: MOVING AVERAGES ════════════════════════════════════
    with tabs[3]:
        symbols = ledger.symbols()
        sym = st.selectbox("Stock", symbols, key="trend_symbol")
        st.plotly_chart(chart_moving_averages(report.moving_averages, sym,
                                              config.short_window, config.long_window), width="stretch")
        st.caption(f"When the {config.short_window}-day line is above the {config.long_window}-day line "
                   "the stock has been trending up.")

    # ════════════ TAB 4: RISK / RETURN ══════════════════════════════════════
    with tabs[4]:
        _section_header("Risk vs reward", "Average monthly return against how much it bounces around")
        st.plotly_chart(chart_risk_return(report.risk), width="stretch")
        if not report.risk.empty:
            risk_tbl = report.risk.rename(columns={
                "symbol": "Stock", "mean_monthly_return": "Avg monthly return",
                "stdev_monthly_return": "Monthly volatility", "months": "Months"})
            for c in ("Avg monthly return", "Monthly volatility"):
                risk_tbl[c] = risk_tbl[c].map(lambda v: "—" if pd.isna(v) else f"{v*100:.2f}%")
            st.dataframe(risk_tbl, hide_index=True, width="stretch")

    # ── PDF ───────────────────────────────────────────────────────────────────
    st.markdown("---")
    try:
        from pdf_export import generate_portfolio_report_pdf
        pdf_bytes = generate_portfolio_report_pdf(report)
        st.download_button("⬇ Download PDF report", data=pdf_bytes,
                           file_name=f"portfolio_report_{as_of:%Y-%m-%d}.pdf", mime="application/pdf")
    except Exception as e:
        _logger.warning("PDF export failed: %s", e)
        st.caption(f"PDF export unavailable: {e}")

    if debug_mode:
        with st.expander("🔧 Diagnostics"):
            st.info(f"Positions: {len(ledger)} | Prices: {prices!r} | "
                    f"Days valued: {len(report.returns)} | Source: {st.session_state.get('_source', 'unknown')} | "
                    f"Strict resolver: {config.strict_resolver}")


if __name__ == "__main__":
    render_performance()
