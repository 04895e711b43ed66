"""
app/pages/patient.py

Patient portal: the care timeline for the signed-in patient's case.
Read-only; the care team makes every change.
"""

from __future__ import annotations

import streamlit as st

from app.ui import _esc, card_close, card_open, metric_row, render_timeline, show_error
from storage import cases as case_store
from storage.errors import LakbayError
from workflow.lifecycle import duration_days, is_completed, timeline
from workflow.session import current_session


def render() -> None:
    session = current_session(st.session_state)
    st.title("My Care Timeline")
    st.caption(f"Hello, {session.patient_full_name or session.display_name}.")

    if not session.patient_case_id:
        st.info("Your account is not linked to a case yet. Please contact your care navigator.")
        return

    try:
        cases = case_store.cases_for_patient(session.patient_case_id)
    except LakbayError as exc:
        show_error(exc)
        return

    if not cases:
        st.info(f"No case found for ID {session.patient_case_id}. Please contact your care navigator.")
        return

    # Most recent encounter first
    case = cases[0]
    metric_row([
        ("Case ID", case.patient_identifier),
        ("Days in care", duration_days(case)),
        ("Physician", case.physician or "—"),
    ])
    st.markdown("<div style='height:12px'></div>", unsafe_allow_html=True)

    left, right = st.columns([1.2, 1], gap="large")
    with left:
        card_open("Progress", case.current_stage)
        render_timeline(timeline(case))
        card_close()
    with right:
        card_open("About your care")
        if is_completed(case):
            st.success(f"Your care pathway is complete ({case.completion_reason or case.current_stage}).")
        else:
            st.markdown(
                f"<div class='mc-sub'>Current step</div><div style='font-weight:800;'>{_esc(case.current_stage)}</div>",
                unsafe_allow_html=True,
            )
        st.markdown(
            f"<div class='mc-sub' style='margin-top:10px;'>Classification</div><div>{_esc(case.classification)}</div>",
            unsafe_allow_html=True,
        )
        if len(cases) > 1:
            st.caption(f"{len(cases) - 1} earlier encounter(s) on file.")
        card_close()
