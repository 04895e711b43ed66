"""
app/pages/patient_detail.py

Case detail and editor (providers and admins).

- Summary card + care timeline
- Edit form: stage (legal successors only), alert, classification,
  symptoms, a new findings entry, physician (admin only)
- Admin: "Mark as completed" dialog with a fixed list of reasons
- Delete case

Edits carry the version that was loaded; a concurrent change makes the
save fail with a reload hint instead of overwriting.
"""

from __future__ import annotations

import logging
from datetime import date

import streamlit as st

from app.ui import (
    _esc,
    alert_badge,
    card_close,
    card_open,
    flash,
    render_timeline,
    show_error,
)
from storage import cases as case_store
from storage.errors import LakbayError
from storage.models import AlertLevel, CaseRecord, CaseUpdate, Classification, CompletionReason
from workflow import editor
from workflow.lifecycle import (
    allowed_next_stages,
    alert_level,
    duration_days,
    is_completed,
    parse_stage,
    timeline,
)
from workflow.session import HOME_PAGE, PAGE_PARAMS_KEY, Session, current_session, navigate

logger = logging.getLogger(__name__)


def _summary(case: CaseRecord) -> None:
    card_open(case.patient_identifier, case.patient_name or "")
    c1, c2, c3, c4 = st.columns(4)
    c1.markdown(f"<div class='mc-sub'>Stage</div><div>{_esc(case.current_stage)}</div>", unsafe_allow_html=True)
    c2.markdown(f"<div class='mc-sub'>Physician</div><div>{_esc(case.physician or '—')}</div>", unsafe_allow_html=True)
    c3.markdown(
        f"<div class='mc-sub'>Encounter</div><div>{case.date_of_encounter:%d %b %Y} · "
        f"{duration_days(case)} days</div>",
        unsafe_allow_html=True,
    )
    c4.markdown(
        f"<div class='mc-sub'>Alert</div>{alert_badge(alert_level(case))}",
        unsafe_allow_html=True,
    )
    if case.completion_reason:
        st.info(f"Completed on {case.completion_date}: {case.completion_reason}")
    if case.notes_unreadable:
        st.warning("Clinical notes for this case could not be decrypted.")
    card_close()


def _notes(case: CaseRecord) -> None:
    card_open("Clinical notes")
    st.markdown("**Symptoms**")
    st.text(case.symptoms or "—")
    st.markdown("**Findings**")
    st.text(case.findings or "—")
    if case.imaging_type or case.imaging_date:
        st.caption(f"Imaging: {case.imaging_type or '—'} on {case.imaging_date or '—'}")
    card_close()


def _edit_form(session: Session, case: CaseRecord) -> None:
    stage_options = [case.current_stage] + [
        s.value for s in allowed_next_stages(case.current_stage) if s is not parse_stage(case.current_stage)
    ]
    classifications = [c.value for c in Classification]
    alerts = [a.value for a in AlertLevel]

    card_open("Update case")
    with st.form(f"edit_{case.id}"):
        stage = st.selectbox("Stage", stage_options)
        c1, c2 = st.columns(2)
        alert = c1.selectbox("Alert", alerts, index=alerts.index(alert_level(case).value))
        classification = c2.selectbox(
            "Classification",
            classifications,
            index=classifications.index(case.classification) if case.classification in classifications else 0,
        )
        physician = st.text_input(
            "Physician",
            value=case.physician,
            disabled=not session.is_admin,
            help=None if session.is_admin else "Only navigators can reassign the physician.",
        )
        locked = case.notes_unreadable
        symptoms = st.text_area("Symptoms", value=case.symptoms, disabled=locked)
        findings = st.text_area(
            "Add findings entry",
            placeholder="Appended with today's date",
            disabled=locked,
        )
        submitted = st.form_submit_button("Save changes", type="primary")
    card_close()

    if not submitted:
        return
    update = CaseUpdate(
        current_stage=stage,
        alert=alert,
        classification=classification,
        symptoms=None if locked else symptoms,
        findings=None if locked else (findings or None),
        physician=physician if session.is_admin else None,
    )
    try:
        editor.edit_case(session, case.id, update, expected_version=case.version)
    except LakbayError as exc:
        show_error(exc)
        return
    flash("Case updated")
    st.rerun()


@st.dialog("Mark case as completed")
def _completion_dialog(session: Session, case: CaseRecord) -> None:
    reason = st.radio("Reason", [r.value for r in CompletionReason], index=None)
    notes = st.text_area("Completion notes (optional)")
    if st.button("Complete case", type="primary"):
        try:
            editor.complete_case(
                session,
                case.id,
                reason,
                notes,
                expected_version=case.version,
                today=date.today(),
            )
        except LakbayError as exc:
            show_error(exc)
            return
        flash(f"Case {case.patient_identifier} marked as completed")
        st.rerun()


def render() -> None:
    session = current_session(st.session_state)
    case_id = (st.session_state.get(PAGE_PARAMS_KEY) or {}).get("patientId")

    if st.button("← Back to dashboard"):
        navigate(st.session_state, HOME_PAGE[session.role])
        st.rerun()

    if not case_id:
        st.warning("No case selected.")
        return

    try:
        case = case_store.get_case(case_id)
    except LakbayError as exc:
        show_error(exc)
        return

    st.title("Case Details")
    _summary(case)

    left, right = st.columns([1, 1.6], gap="large")
    with left:
        card_open("Care timeline")
        render_timeline(timeline(case))
        card_close()
    with right:
        _notes(case)
        if is_completed(case):
            st.caption("This case is completed and can no longer be progressed.")
        else:
            _edit_form(session, case)
            if session.is_admin and st.button("✅ Mark as completed"):
                _completion_dialog(session, case)

    with st.expander("Activity"):
        try:
            history = case_store.case_history(case.id)
        except LakbayError as exc:
            show_error(exc)
        else:
            for entry in history:
                st.caption(f"{entry.timestamp[:19].replace('T', ' ')} · {entry.action} · user {entry.user_id or '—'}")

    st.divider()
    with st.expander("Danger zone"):
        confirm = st.checkbox("I understand this permanently deletes the case.")
        if st.button("Delete case", disabled=not confirm):
            try:
                editor.delete_case(session, case.id)
            except LakbayError as exc:
                show_error(exc)
                return
            logger.info("Case %s deleted from detail page", case.id)
            flash(f"Case {case.patient_identifier} deleted")
            navigate(st.session_state, HOME_PAGE[session.role])
            st.rerun()
