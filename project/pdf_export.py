"""
pdf_export.py
=============
Portfolio performance PDF.

Sections:
  1.  Summary                – as-of date, invested capital, total return
  2.  Daily Return           – line chart of the return series
  3.  Capital Allocation     – donut + table + concentration
  4.  Holding-Period Return  – per-symbol table
  5.  Risk vs Reward         – monthly mean / stdev table
  6.  Notes                  – methodology and data caveats
"""

import io
import math
import datetime
import warnings
import numpy as np
import pandas as pd

warnings.filterwarnings("ignore")

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.ticker import FuncFormatter

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, Image, KeepTogether,
)

# ─────────────────────────────────────────────────────────────────
# BRAND / DESIGN CONSTANTS
# ─────────────────────────────────────────────────────────────────
NAVY        = colors.HexColor("#0B1F3A")
NAVY_MID    = colors.HexColor("#1A3A5C")
TEAL        = colors.HexColor("#0D7A8A")
GREY_DARK   = colors.HexColor("#1F2937")
GREY_MID    = colors.HexColor("#6B7280")
GREY_LIGHT  = colors.HexColor("#F3F4F6")
GREY_LINE   = colors.HexColor("#E5E7EB")
WHITE       = colors.white
GREEN       = colors.HexColor("#059669")
RED         = colors.HexColor("#DC2626")

PAGE_W, PAGE_H = A4
MARGIN    = 16 * mm
CONTENT_W = PAGE_W - 2 * MARGIN

# ─────────────────────────────────────────────────────────────────
# MATPLOTLIB THEME
# ─────────────────────────────────────────────────────────────────
CHART_COLORS = ["#0D7A8A", "#C9A84C", "#0B1F3A", "#059669", "#DC2626", "#7C3AED", "#EA580C", "#0891B2"]

MPL_STYLE = {
    "font.family":          "DejaVu Sans",
    "axes.facecolor":       "#FAFBFC",
    "figure.facecolor":     "white",
    "axes.edgecolor":       "#D1D5DB",
    "axes.grid":            True,
    "grid.color":           "#E5E7EB",
    "grid.linestyle":       "--",
    "grid.linewidth":       0.5,
    "axes.spines.top":      False,
    "axes.spines.right":    False,
    "axes.titlesize":       9,
    "axes.titleweight":     "bold",
    "axes.titlecolor":      "#1F2937",
    "axes.labelsize":       8,
    "xtick.labelsize":      7.5,
    "ytick.labelsize":      7.5,
    "legend.fontsize":      7.5,
}

def _mpl_to_img(fig, dpi=160):
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight", facecolor=fig.get_facecolor())
    buf.seek(0)
    plt.close(fig)
    return buf

def _Pct(x, pos=None): return f"{x:.1f}%"

# ─────────────────────────────────────────────────────────────────
# VALUE FORMATTERS
# ─────────────────────────────────────────────────────────────────
def _fm(v, dec=2, na="—"):
    try:
        f = float(v)
        if math.isnan(f) or math.isinf(f): return na
        return f"${f:,.{dec}f}"
    except (TypeError, ValueError): return na

def _fp(v, dec=2, na="—", signed=True):
    try:
        f = float(v)
        if math.isnan(f) or math.isinf(f): return na
        return f"{f:+.{dec}f}%" if signed else f"{f:.{dec}f}%"
    except (TypeError, ValueError): return na


def _styles():
    def S(name, **kw): return ParagraphStyle(name, **kw)
    return {
        "title":   S("title",   fontName="Helvetica-Bold",    fontSize=20, textColor=NAVY, leading=26, spaceAfter=2),
        "sub":     S("sub",     fontName="Helvetica",         fontSize=9,  textColor=GREY_MID, spaceAfter=8),
        "h1":      S("h1",      fontName="Helvetica-Bold",    fontSize=13, textColor=NAVY, spaceBefore=8, spaceAfter=4),
        "body":    S("body",    fontName="Helvetica",         fontSize=8.5, textColor=GREY_DARK, leading=12),
        "caption": S("caption", fontName="Helvetica-Oblique", fontSize=6.5, textColor=GREY_MID, spaceBefore=2),
        "disc":    S("disc",    fontName="Helvetica",         fontSize=6.5, textColor=GREY_MID, leading=9, alignment=TA_JUSTIFY),
        "footer":  S("foot",    fontName="Helvetica",         fontSize=7,   textColor=GREY_MID, alignment=TA_CENTER),
    }


# ─────────────────────────────────────────────────────────────────
# SHARED TABLE STYLE
# ─────────────────────────────────────────────────────────────────
def _ts(header_rows=1, alt=True):
    cmds = [
        ("BACKGROUND",   (0, 0), (-1, header_rows - 1), NAVY),
        ("TEXTCOLOR",    (0, 0), (-1, header_rows - 1), WHITE),
        ("FONTNAME",     (0, 0), (-1, header_rows - 1), "Helvetica-Bold"),
        ("FONTSIZE",     (0, 0), (-1, -1), 7.5),
        ("ALIGN",        (0, 0), (-1, -1), "CENTER"),
        ("ALIGN",        (0, header_rows), (0, -1), "LEFT"),
        ("VALIGN",       (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING",   (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING",(0, 0), (-1, -1), 4),
        ("LINEBELOW",    (0, 0), (-1, 0), 1.5, TEAL),
        ("LINEBELOW",    (0, -1), (-1, -1), 1, NAVY),
        ("GRID",         (0, 0), (-1, -1), 0.1, GREY_LINE),
    ]
    if alt:
        cmds.append(("ROWBACKGROUND", (0, header_rows), (-1, -1), [GREY_LIGHT, WHITE]))
    return TableStyle(cmds)


def _sign_colors(col, values, header_rows=1):
    cmds = []
    for i, v in enumerate(values):
        try:
            f = float(v)
        except (TypeError, ValueError):
            continue
        if math.isnan(f): continue
        cmds.append(("TEXTCOLOR", (col, i + header_rows), (col, i + header_rows), GREEN if f >= 0 else RED))
    return cmds


def _make_footer(report_date):
    def on_page(canvas, doc):
        canvas.saveState()
        pw, ph = A4
        m = MARGIN
        canvas.setStrokeColor(TEAL)
        canvas.setLineWidth(1.2)
        canvas.line(m, ph - 12*mm, pw - m, ph - 12*mm)
        canvas.setFont("Helvetica-Bold", 7)
        canvas.setFillColor(NAVY)
        canvas.drawString(m, ph - 9*mm, "Portfolio Performance Report")
        canvas.setStrokeColor(GREY_LINE)
        canvas.setLineWidth(0.4)
        canvas.line(m, 11*mm, pw - m, 11*mm)
        canvas.setFont("Helvetica", 6)
        canvas.setFillColor(GREY_MID)
        canvas.drawString(m, 7*mm, f"Generated: {report_date}  |  Prices: Yahoo Finance")
        canvas.setFont("Helvetica-Bold", 6.5)
        canvas.setFillColor(NAVY)
        canvas.drawRightString(pw - m, 7*mm, f"Page {doc.page}")
        canvas.restoreState()
    return on_page


# ─────────────────────────────────────────────────────────────────
# CHART BUILDERS
# ─────────────────────────────────────────────────────────────────
def _return_line(returns: pd.DataFrame, figsize=(6.8, 2.7)):
    with plt.rc_context(MPL_STYLE):
        fig, ax = plt.subplots(figsize=figsize)
        x = pd.to_datetime(returns["Date"])
        y = returns["Return (%)"].astype(float)
        color = CHART_COLORS[3] if float(y.iloc[-1]) >= 0 else CHART_COLORS[4]
        ax.plot(x, y, color=color, linewidth=1.8, zorder=3)
        ax.fill_between(x, y, 0, color=color, alpha=0.08)
        ax.axhline(0, color="#9CA3AF", linewidth=0.6)
        ax.yaxis.set_major_formatter(FuncFormatter(_Pct))
        ax.set_title("Daily portfolio return", pad=6)
        fig.autofmt_xdate()
        fig.tight_layout()
        return fig


def _donut(labels, values, title="", figsize=(3.4, 2.7)):
    with plt.rc_context(MPL_STYLE):
        fig, ax = plt.subplots(figsize=figsize)
        cols = [CHART_COLORS[i % len(CHART_COLORS)] for i in range(len(labels))]
        ax.pie(
            values, labels=None, colors=cols, autopct="%1.0f%%", startangle=90,
            wedgeprops={"width": 0.52, "edgecolor": "white", "linewidth": 1.5},
            pctdistance=0.75, textprops={"fontsize": 6.5}
        )
        ax.legend(labels, loc="center left", bbox_to_anchor=(0.95, 0.5), fontsize=7, framealpha=0.9)
        ax.set_title(title, pad=6)
        fig.tight_layout()
        return fig


# ─────────────────────────────────────────────────────────────────
# SECTIONS
# ─────────────────────────────────────────────────────────────────
def _build_summary(story, ST, report):
    story.append(Paragraph("Portfolio Performance", ST["title"]))
    start = report.start.strftime("%B %d, %Y") if report.start else "—"
    story.append(Paragraph(f"As of {report.as_of:%B %d, %Y}  ·  first purchase {start}", ST["sub"]))
    rows = [
        ["Invested capital", "Total return", "Holdings", "Days valued"],
        [_fm(report.total_invested, 0), _fp(report.latest_return_pct),
         str(len(report.allocation)), str(len(report.returns))],
    ]
    t = Table(rows, colWidths=[CONTENT_W / 4] * 4)
    t.setStyle(_ts(alt=False))
    story.append(t)


def _build_returns(story, ST, report):
    story.append(Paragraph("Daily Return", ST["h1"]))
    if len(report.returns) < 2:
        story.append(Paragraph("Not enough history to chart yet.", ST["body"]))
        return
    story.append(Image(_mpl_to_img(_return_line(report.returns)), width=CONTENT_W, height=CONTENT_W * 2.7 / 6.8))
    story.append(Paragraph(
        "Gain or loss on the capital open each calendar day, valued at the latest trading-day close "
        "on or before that day.", ST["caption"]))


def _build_allocation(story, ST, report):
    story.append(Paragraph("Capital Allocation", ST["h1"]))
    alloc = report.allocation
    if alloc.empty:
        story.append(Paragraph("No capital invested.", ST["body"]))
        return
    donut = Image(_mpl_to_img(_donut(alloc["Symbol"].tolist(), alloc["Invested ($)"].tolist())),
                  width=CONTENT_W * 0.45, height=CONTENT_W * 0.45 * 2.7 / 3.4)
    conc = report.concentration.set_index("Symbol")["Cumulative (%)"] if not report.concentration.empty else pd.Series(dtype=float)
    rows = [["Symbol", "Invested", "Share", "Cumulative"]]
    for _, r in alloc.iterrows():
        rows.append([r["Symbol"], _fm(r["Invested ($)"]), _fp(r["Invested (%)"], signed=False),
                     _fp(conc.get(r["Symbol"], np.nan), signed=False)])
    t = Table(rows, colWidths=[CONTENT_W * 0.12, CONTENT_W * 0.16, CONTENT_W * 0.12, CONTENT_W * 0.13],
              repeatRows=1)
    t.setStyle(_ts())
    story.append(Table([[donut, t]], colWidths=[CONTENT_W * 0.46, CONTENT_W * 0.54],
                       style=[("VALIGN", (0, 0), (-1, -1), "TOP")]))


def _build_holdings(story, ST, report):
    story.append(Paragraph("Holding-Period Return", ST["h1"]))
    h = report.holdings
    if h.empty:
        story.append(Paragraph("No priced holdings.", ST["body"]))
        return
    rows = [["Symbol", "Shares", "Invested", "Last close", "Price date", "Value", "Return"]]
    for _, r in h.iterrows():
        rows.append([r["Symbol"], f"{r['Quantity']:g}", _fm(r["Invested ($)"]), _fm(r["Last Close"]),
                     str(r["Price Date"]), _fm(r["Market Value ($)"]), _fp(r["Return (%)"])])
    t = Table(rows, colWidths=[CONTENT_W * w for w in (0.12, 0.10, 0.16, 0.14, 0.16, 0.18, 0.14)], repeatRows=1)
    t.setStyle(_ts())
    t.setStyle(TableStyle(_sign_colors(6, h["Return (%)"].tolist())))
    story.append(KeepTogether([t]))


def _build_risk(story, ST, report):
    story.append(Paragraph("Risk vs Reward (monthly)", ST["h1"]))
    risk = report.risk
    if risk.empty:
        story.append(Paragraph("Not enough monthly history.", ST["body"]))
        return
    rows = [["Symbol", "Avg monthly return", "Monthly volatility", "Months"]]
    for _, r in risk.iterrows():
        rows.append([r["symbol"], _fp(r["mean_monthly_return"] * 100), _fp(r["stdev_monthly_return"] * 100, signed=False),
                     str(int(r["months"]))])
    t = Table(rows, colWidths=[CONTENT_W * w for w in (0.2, 0.28, 0.28, 0.24)], repeatRows=1)
    t.setStyle(_ts())
    t.setStyle(TableStyle(_sign_colors(1, risk["mean_monthly_return"].tolist())))
    story.append(KeepTogether([t]))


def _build_notes(story, ST, report):
    cfg = report.config
    story.append(Spacer(1, 6 * mm))
    lookup = (f"strict lookup up to {cfg.strict_max_lookback_days} days back" if cfg.strict_resolver
              else f"{cfg.resolver_depth}-day lookback with fixed fallback")
    story.append(Paragraph(
        f"Weekends and holidays use the most recent trading day ({lookup}). Positions without a price on that "
        f"day add no gain or loss but their cost stays in the denominator. Moving averages use "
        f"{cfg.short_window}- and {cfg.long_window}-trading-day windows. Fees, dividends and currency effects "
        f"are not included. This report is for information only and is not investment advice.", ST["disc"]))


# ─────────────────────────────────────────────────────────────────
# MAIN ENTRY POINT
# ─────────────────────────────────────────────────────────────────
def generate_portfolio_report_pdf(report, author: str = "Portfolio Performance Analyzer") -> bytes:
    """
    Render a PortfolioReport to PDF.

    Returns:
        bytes: Complete PDF byte string for st.download_button.
    """
    buf         = io.BytesIO()
    report_date = datetime.datetime.now().strftime("%B %d, %Y")

    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=MARGIN, rightMargin=MARGIN,
        topMargin=16*mm, bottomMargin=15*mm,
        title=f"Portfolio Performance — {report.as_of:%Y-%m-%d}",
        author=author,
    )

    ST = _styles()
    story = []
    _build_summary(story, ST, report)
    _build_returns(story, ST, report)
    _build_allocation(story, ST, report)
    _build_holdings(story, ST, report)
    _build_risk(story, ST, report)
    _build_notes(story, ST, report)

    on_page = _make_footer(report_date)
    doc.build(story, onFirstPage=on_page, onLaterPages=on_page)

    buf.seek(0)
    return buf.read()
