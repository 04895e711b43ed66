"""
app/pages/provider.py

Provider dashboard: case counts, search by patient id or classification,
archive / restore, and a shortcut to the New Case form.
"""

from __future__ import annotations

from datetime import datetime

import streamlit as st

from app.case_board import render_board
from workflow.session import current_session, navigate


def render() -> None:
    session = current_session(st.session_state)
    st.title("Provider Dashboard")
    st.caption(datetime.now().strftime("%A, %d %B %Y"))

    if st.button("➕ New Case", type="primary"):
        navigate(st.session_state, "new_case")
        st.rerun()

    render_board(session, secondary="classification", search_label="Search patient ID or classification")
