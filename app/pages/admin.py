"""
app/pages/admin.py

Navigator (admin) dashboard: all cases with counts, search by patient id
or physician, archive / restore, and the full CSV export.
"""

from __future__ import annotations

from datetime import date, datetime

import streamlit as st

from app.case_board import render_board
from storage.export import cases_to_csv, export_filename
from workflow.session import current_session, navigate


def render() -> None:
    session = current_session(st.session_state)
    st.title("Navigator Dashboard")
    st.caption(datetime.now().strftime("%A, %d %B %Y"))

    all_cases = render_board(session, secondary="physician", search_label="Search patient ID or physician")

    st.markdown("<div style='height:12px'></div>", unsafe_allow_html=True)
    c1, c2 = st.columns(2)
    with c1:
        today = date.today()
        csv_text = cases_to_csv(all_cases, today)
        if csv_text is None:
            if st.button("⬇️ Export CSV", use_container_width=True):
                st.info("No data to export.")
        else:
            st.download_button(
                "⬇️ Export CSV",
                data=csv_text,
                file_name=export_filename(today),
                mime="text/csv",
                use_container_width=True,
            )
    with c2:
        if st.button("➕ New Case", use_container_width=True):
            navigate(st.session_state, "new_case")
            st.rerun()
