"""
app/pages/new_case.py

New Case form (providers and admins).  A case starts at stage "New Case"
with a normal alert.
"""

from __future__ import annotations

from datetime import date

import streamlit as st

from app.ui import card_close, card_open, flash, show_error
from storage.errors import LakbayError
from storage.models import CaseDraft, Classification, ImagingType
from workflow import editor
from workflow.session import HOME_PAGE, current_session, navigate


def render() -> None:
    session = current_session(st.session_state)
    st.title("New Case")
    st.caption("Register a patient encounter to start tracking it.")

    card_open("Patient & encounter")
    with st.form("new_case_form"):
        c1, c2 = st.columns(2)
        patient_identifier = c1.text_input("Patient ID *", placeholder="e.g. JD-2025-001")
        patient_name = c2.text_input(
            "Patient full name",
            help="Patients sign up with this exact name.",
        )
        c3, c4 = st.columns(2)
        encounter = c3.date_input("Date of encounter", value=date.today(), max_value=date.today())
        physician = c4.text_input("Attending physician *")
        classification = st.selectbox("Classification", [c.value for c in Classification])

        c5, c6 = st.columns(2)
        imaging_type = c5.selectbox(
            "Imaging type",
            [t.value for t in ImagingType],
            index=None,
            placeholder="Not yet imaged",
        )
        imaging_date = c6.date_input("Imaging date", value=None)

        symptoms = st.text_area("Symptoms")
        findings = st.text_area("Initial findings")
        submitted = st.form_submit_button("Create case", type="primary")
    card_close()

    if st.button("Cancel"):
        navigate(st.session_state, HOME_PAGE[session.role])
        st.rerun()

    if not submitted:
        return

    draft = CaseDraft(
        patient_identifier=patient_identifier,
        patient_name=patient_name,
        date_of_encounter=encounter,
        physician=physician,
        classification=classification,
        symptoms=symptoms,
        findings=findings,
        imaging_date=imaging_date,
        imaging_type=imaging_type,
    )
    try:
        case = editor.create_case(session, draft)
    except LakbayError as exc:
        show_error(exc)
        return

    flash(f"Case {case.patient_identifier} created")
    navigate(st.session_state, "patient_detail", patientId=case.id)
    st.rerun()
