# app.py
"""
Portfolio Performance Analyzer - Main Application
=================================================

Streamlit entry point. Reconstructs a position log day by day against
closing prices and shows:
- Capital allocation and concentration
- Daily return on invested capital
- Holding-period return per stock
- Short / long moving averages
- Monthly risk vs reward

Run with:  streamlit run project/app.py
Set LOG_LEVEL=DEBUG to see resolver and valuation diagnostics.
"""
import sys
import os
import logging

from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent
sys.path.append(str(ROOT_DIR))

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
_logger = logging.getLogger(__name__)

import streamlit as st

from ui.performance import render_performance


st.set_page_config(page_title="Portfolio Performance Analyzer", layout="wide")


# =================================================================
# SIDEBAR
# =================================================================
st.sidebar.markdown(
    """
    <div style="text-align:center;font-weight:900;font-size:40px;line-height:1.05;margin:0.2rem 0 0.9rem 0;">
        Portfolio Performance
    </div>
    """,
    unsafe_allow_html=True,
)
st.sidebar.markdown("---")


# =================================================================
# PERFORMANCE PAGE
# =================================================================
_logger.debug("Rendering performance page")
render_performance()


# =================================================================
# FOOTER
# =================================================================
st.sidebar.markdown("---")
st.sidebar.caption("Prices: Yahoo Finance (adjusted closes). Not investment advice.")
