"""
app/pages/actions.py

Navigator quick actions.
"""

from __future__ import annotations

import streamlit as st

from app.ui import card_close, card_open
from workflow.session import navigate

BROCK_CALCULATOR_URL = (
    "https://www.uptodate.com/contents/calculator-solitary-pulmonary-nodule-malignancy-risk-"
    "in-adults-brock-university-cancer-prediction-equation"
)


def render() -> None:
    st.title("Quick Actions")

    c1, c2 = st.columns(2, gap="large")
    with c1:
        card_open("Nodule malignancy risk", "Brock University cancer prediction equation")
        st.link_button("Open Brock calculator ↗", BROCK_CALCULATOR_URL, use_container_width=True)
        card_close()
    with c2:
        card_open("Case management")
        if st.button("➕ Register a new case", use_container_width=True):
            navigate(st.session_state, "new_case")
            st.rerun()
        if st.button("👥 Review sign-up requests", use_container_width=True):
            navigate(st.session_state, "users")
            st.rerun()
        if st.button("📊 Open reports", use_container_width=True):
            navigate(st.session_state, "reports")
            st.rerun()
        card_close()
