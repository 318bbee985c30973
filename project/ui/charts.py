"""
Plotly figure builders for the portfolio report.

Pure functions: report tables in, go.Figure out. No Streamlit calls,
so the page and the tests can share them.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from scipy import stats

UP      = "#00C805"
DOWN    = "#FF3B30"
BLUE    = "#0A7CFF"
ORANGE  = "#FF9F0A"
GREY    = "#6E6E73"

_CHART_LAYOUT = dict(
    template="plotly_white", hovermode="x unified",
    plot_bgcolor="rgba(0,0,0,0)", paper_bgcolor="rgba(0,0,0,0)",
    font=dict(family="'SF Pro Display', 'Segoe UI', sans-serif", size=12, color="#ffffff"),
)
_GRID = dict(showgrid=True, gridcolor="rgba(255,255,255,0.1)", zeroline=False,
             tickfont=dict(color="#ffffff"))


def _hex_to_rgb(hex_color: str) -> tuple:
    hex_color = hex_color.lstrip("#")
    return tuple(int(hex_color[i : i + 2], 16) for i in (0, 2, 4))

def _rgb_to_hex(rgb: tuple) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)

def _interpolate_hex(c1: str, c2: str, t: float) -> str:
    r1, g1, b1 = _hex_to_rgb(c1)
    r2, g2, b2 = _hex_to_rgb(c2)
    return _rgb_to_hex((
        int(round(r1 + (r2 - r1) * t)),
        int(round(g1 + (g2 - g1) * t)),
        int(round(b1 + (b2 - b1) * t)),
    ))

def ranked_blue_map(values: pd.Series, darkest: str = "#104861", lightest: str = "#d9f0ff") -> dict:
    """Map values to ranked shades of blue (highest = darkest)."""
    vals = values.fillna(0.0).astype(float)
    if vals.empty:
        return {}
    order = vals.sort_values(ascending=True).index.tolist()
    n = len(order)
    if n == 1:
        return {order[0]: darkest}
    return {key: _interpolate_hex(lightest, darkest, rank / (n - 1)) for rank, key in enumerate(order)}


def _empty(message: str, height: int = 320) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(text=message, xref="paper", yref="paper", x=0.5, y=0.5,
                       showarrow=False, font=dict(size=14, color=GREY))
    fig.update_layout(**_CHART_LAYOUT, height=height,
                      xaxis=dict(visible=False), yaxis=dict(visible=False))
    return fig


# ── Allocation ──────────────────────────────────────────────────────────────

def chart_allocation(allocation: pd.DataFrame) -> go.Figure:
    """Donut of invested capital per symbol."""
    if allocation is None or allocation.empty:
        return _empty("No capital invested yet.")
    pct = allocation.set_index("Symbol")["Invested (%)"]
    cmap = ranked_blue_map(pct)
    fig = go.Figure(go.Pie(
        labels=pct.index.tolist(), values=pct.values.tolist(), hole=0.55,
        marker=dict(colors=[cmap.get(s, BLUE) for s in pct.index], line=dict(width=0)),
        textinfo="label+percent", sort=False,
        customdata=allocation["Invested ($)"].values,
        hovertemplate="<b>%{label}</b><br>%{value:.2f}%  ·  $%{customdata:,.0f}<extra></extra>",
    ))
    fig.update_layout(height=340, margin=dict(l=10, r=10, t=10, b=10), showlegend=False,
                      paper_bgcolor="rgba(0,0,0,0)")
    return fig


def chart_concentration(concentration: pd.DataFrame) -> go.Figure:
    """Cumulative share of capital by number of holdings, against an even split."""
    if concentration is None or concentration.empty:
        return _empty("No capital invested yet.")
    n = len(concentration)
    ranks = [0] + concentration["Rank"].astype(int).tolist()
    cum = [0.0] + concentration["Cumulative (%)"].astype(float).tolist()
    labels = [""] + concentration["Symbol"].tolist()
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=ranks, y=[r / n * 100 for r in ranks], name="Even split", mode="lines",
        line=dict(color=GREY, width=1.5, dash="dash"), hoverinfo="skip",
    ))
    fig.add_trace(go.Scatter(
        x=ranks, y=cum, name="My portfolio", mode="lines+markers",
        line=dict(color=BLUE, width=3), fill="tonexty", fillcolor="rgba(10,124,255,0.10)",
        text=labels,
        hovertemplate="Top %{x} (%{text}): <b>%{y:.1f}%</b> of capital<extra></extra>",
    ))
    fig.update_layout(
        **_CHART_LAYOUT, height=340, margin=dict(l=55, r=20, t=20, b=40),
        legend=dict(orientation="h", yanchor="top", y=1.12, xanchor="left", x=0),
        xaxis=dict(title="Number of holdings", dtick=1, **_GRID),
        yaxis=dict(title="Cumulative capital", ticksuffix="%", range=[0, 105], **_GRID),
    )
    return fig


# ── Returns ─────────────────────────────────────────────────────────────────

def chart_returns(returns: pd.DataFrame) -> go.Figure:
    """Daily portfolio return (%) line, coloured by the final sign."""
    if returns is None or len(returns) < 2:
        return _empty("Not enough data to draw a chart yet.", height=380)
    y = returns["Return (%)"].astype(float)
    final = float(y.iloc[-1])
    color = UP if final >= 0 else DOWN
    rc, gc, bc = _hex_to_rgb(color)
    fig = go.Figure(go.Scatter(
        x=pd.to_datetime(returns["Date"]), y=y, name="Portfolio", mode="lines",
        line=dict(color=color, width=3),
        fill="tozeroy", fillcolor=f"rgba({rc},{gc},{bc},0.08)",
        hovertemplate="<b>%{x|%B %d, %Y}</b><br>Return: <b>%{y:+.2f}%</b><extra></extra>",
    ))
    fig.add_annotation(
        xref="paper", x=1.01, yref="y", y=final,
        text=f"{'▲' if final >= 0 else '▼'} {final:+.1f}%",
        showarrow=False, xanchor="left", yanchor="middle",
        font=dict(size=12, color=color), bgcolor="rgba(0,0,0,0.45)", borderpad=4,
    )
    fig.update_layout(
        **_CHART_LAYOUT, height=380, margin=dict(l=55, r=120, t=20, b=40), showlegend=False,
        xaxis=_GRID, yaxis=dict(ticksuffix="%", tickformat="+.1f", **_GRID),
    )
    return fig


def chart_holding_returns(holdings: pd.DataFrame) -> go.Figure:
    """Horizontal bars of holding-period return per symbol."""
    if holdings is None or holdings.empty:
        return _empty("No priced holdings yet.")
    df = holdings.dropna(subset=["Return (%)"]).sort_values("Return (%)")
    if df.empty:
        return _empty("No priced holdings yet.")
    fig = go.Figure(go.Bar(
        y=df["Symbol"], x=df["Return (%)"], orientation="h",
        marker_color=[UP if v >= 0 else DOWN for v in df["Return (%)"]],
        text=df["Return (%)"].map(lambda v: f"{v:+.1f}%"), textposition="outside",
        customdata=df["Market Value ($)"],
        hovertemplate="<b>%{y}</b><br>%{x:+.2f}%  ·  worth $%{customdata:,.0f}<extra></extra>",
    ))
    fig.update_layout(
        **{**_CHART_LAYOUT, "hovermode": "closest"},
        height=max(220, 40 * len(df) + 60), margin=dict(l=80, r=40, t=10, b=30),
        showlegend=False, xaxis=dict(ticksuffix="%", **_GRID),
        yaxis=dict(showgrid=False, tickfont=dict(color="#ffffff")),
    )
    return fig


# ── Trends ──────────────────────────────────────────────────────────────────

def chart_moving_averages(ma: pd.DataFrame, symbol: str,
                          short_window: Optional[int] = None,
                          long_window: Optional[int] = None) -> go.Figure:
    """Close with short and long trailing averages for one symbol."""
    df = ma[ma["symbol"] == symbol] if ma is not None and not ma.empty else pd.DataFrame()
    if df.empty:
        return _empty(f"No price history for {symbol}.", height=380)
    short_lbl = f"{short_window}-day avg" if short_window else "Short avg"
    long_lbl = f"{long_window}-day avg" if long_window else "Long avg"
    x = pd.to_datetime(df["date"])
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=x, y=df["close"], name="Close", mode="lines",
                             line=dict(color="#ffffff", width=1.5)))
    fig.add_trace(go.Scatter(x=x, y=df["short_avg"], name=short_lbl, mode="lines",
                             line=dict(color=BLUE, width=2.5)))
    fig.add_trace(go.Scatter(x=x, y=df["long_avg"], name=long_lbl, mode="lines",
                             line=dict(color=ORANGE, width=2.5, dash="dash")))
    fig.update_layout(
        **_CHART_LAYOUT, height=380, margin=dict(l=55, r=20, t=30, b=40),
        legend=dict(orientation="h", yanchor="top", y=1.12, xanchor="left", x=0),
        xaxis=_GRID, yaxis=dict(tickprefix="$", **_GRID),
    )
    return fig


# ── Risk ────────────────────────────────────────────────────────────────────

def chart_risk_return(risk: pd.DataFrame) -> go.Figure:
    """Mean vs stdev of monthly returns per holding, with an OLS trend line."""
    if risk is None or risk.empty:
        return _empty("Need at least two months of prices per holding.", height=400)
    df = risk.dropna(subset=["mean_monthly_return", "stdev_monthly_return"])
    if df.empty:
        return _empty("Need at least two months of prices per holding.", height=400)
    x = df["stdev_monthly_return"].astype(float) * 100
    y = df["mean_monthly_return"].astype(float) * 100
    fig = go.Figure(go.Scatter(
        x=x, y=y, mode="markers+text", text=df["symbol"], textposition="top center",
        marker=dict(size=14, color=[UP if v >= 0 else DOWN for v in y],
                    line=dict(width=1, color="#ffffff")),
        hovertemplate="<b>%{text}</b><br>Risk %{x:.2f}%  ·  Return %{y:+.2f}% / month<extra></extra>",
        name="Holdings",
    ))
    if len(df) >= 3 and float(np.std(x)) > 1e-10:
        fit = stats.linregress(x.values, y.values)
        xs = np.linspace(float(x.min()), float(x.max()), 20)
        fig.add_trace(go.Scatter(
            x=xs, y=fit.intercept + fit.slope * xs, mode="lines", name="Trend",
            line=dict(color=GREY, width=1.5, dash="dot"), hoverinfo="skip",
        ))
    fig.update_layout(
        **{**_CHART_LAYOUT, "hovermode": "closest"},
        height=400, margin=dict(l=60, r=20, t=20, b=50), showlegend=False,
        xaxis=dict(title="Monthly volatility (stdev)", ticksuffix="%", **_GRID),
        yaxis=dict(title="Average monthly return", ticksuffix="%", **_GRID),
    )
    return fig
