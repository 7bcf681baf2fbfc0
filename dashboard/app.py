"""GreenCart Analytics Dashboard

Main Streamlit application with sidebar navigation across report tabs.
Run with: streamlit run dashboard/app.py
"""

import logging
import streamlit as st
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="GreenCart Analytics",
    page_icon="🌱",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    [data-testid="stSidebar"] {
        background: linear-gradient(180deg, #14532d 0%, #1f3d2b 100%);
    }
    [data-testid="stSidebar"] * {
        color: #f0fdf4 !important;
    }
    [data-testid="stSidebar"] .stButton > button {
        width: 100%;
        text-align: left;
        padding: 10px 14px;
        border-radius: 10px;
        border: none;
        background: transparent;
        font-size: 0.95rem;
        margin-bottom: 4px;
    }
    [data-testid="stSidebar"] .stButton > button[kind="primary"] {
        background: rgba(124, 181, 24, 0.3) !important;
        border-left: 3px solid #7cb518 !important;
    }
    .main .block-container { padding-top: 2rem; }
</style>
""", unsafe_allow_html=True)

TAB_ICONS = {
    "sales": "📈",
    "orders": "🧾",
    "customers": "👥",
    "carts": "🛒",
    "catalog": "📦",
    "health": "❤️",
    "impact": "🍃",
    "payments": "💳",
    "cohorts": "📅",
    "geo": "📍",
    "reviews": "⭐",
}


def _get_session():
    """Lazy-initialize the dashboard session in Streamlit state."""
    if "analytics_session" not in st.session_state:
        from src.app import AnalyticsApp
        st.session_state.analytics_session = AnalyticsApp().create_session()
    return st.session_state.analytics_session


def main():
    session = _get_session()

    with st.sidebar:
        st.markdown("### 🌱 GreenCart Analytics")
        st.markdown("---")
        for tab in TAB_ICONS:
            label = session.spec(tab).label
            is_active = session.active_tab == tab
            if st.button(
                f"{TAB_ICONS[tab]}  {label}",
                key=f"nav_{tab}",
                type="primary" if is_active else "secondary",
                use_container_width=True,
            ):
                session.set_tab(tab)
                st.rerun()

    from pages.analytics import render_analytics_page
    render_analytics_page(session)


if __name__ == "__main__":
    main()
