"""
app/case_board.py

Case dashboard shared by the provider and admin portals.

- Headline counts (total / active / overdue / completed)
- Search on patient id + one secondary column
- Active view, or archived + completed view behind a toggle
- Per-row actions: open, archive / restore, delete
"""

from __future__ import annotations

import logging
from datetime import date

import streamlit as st

from app.ui import _esc, alert_badge, card_close, card_open, flash, metric_row, show_error
from storage import cases as case_store
from storage.errors import LakbayError
from storage.models import CaseRecord
from workflow import dashboard, editor
from workflow.lifecycle import alert_level, duration_days, is_completed
from workflow.local_state import get_local_state, owner_key
from workflow.session import Session, navigate

logger = logging.getLogger(__name__)


def load_cases() -> list[CaseRecord] | None:
    """Fetch every case; shows an error and returns ``None`` on store failure."""
    try:
        return case_store.list_cases()
    except LakbayError as exc:
        show_error(exc)
        return None


def _toggle_archived(owner: str, case: CaseRecord, archive: bool) -> None:
    state = get_local_state()
    try:
        if archive:
            state.archive(owner, case.id)
        else:
            state.unarchive(owner, case.id)
    except OSError as exc:
        logger.error("Could not save archived cases to %s: %s", state.path, exc)
        st.error("Could not save your archived cases. Please try again.")
        return
    flash(f"Case {case.patient_identifier} {'archived' if archive else 'restored'}")
    st.rerun()


def _row(case: CaseRecord, session: Session, owner: str, archived: bool, today: date) -> None:
    done = is_completed(case)
    c1, c2, c3, c4 = st.columns([2.2, 2.4, 1.2, 1.6], gap="small")
    with c1:
        st.markdown(
            f"<div style='font-weight:900;'>{_esc(case.patient_identifier)}</div>"
            f"<div class='mc-sub'>{_esc(case.classification)}</div>",
            unsafe_allow_html=True,
        )
    with c2:
        st.markdown(
            f"<div>{_esc(case.current_stage)}</div>"
            f"<div class='mc-sub'>{_esc(case.physician or '—')} · "
            f"{duration_days(case, today)} days</div>",
            unsafe_allow_html=True,
        )
    with c3:
        if not done:
            st.markdown(alert_badge(alert_level(case)), unsafe_allow_html=True)
        else:
            st.caption("Completed")
    with c4:
        b1, b2, b3 = st.columns(3)
        if b1.button("Open", key=f"open_{case.id}"):
            navigate(st.session_state, "patient_detail", patientId=case.id)
            st.rerun()
        if not done:
            if archived:
                if b2.button("Restore", key=f"unarch_{case.id}"):
                    _toggle_archived(owner, case, archive=False)
            elif b2.button("Archive", key=f"arch_{case.id}"):
                _toggle_archived(owner, case, archive=True)
        if b3.button("Delete", key=f"del_{case.id}"):
            try:
                editor.delete_case(session, case.id)
            except LakbayError as exc:
                show_error(exc)
            else:
                flash(f"Case {case.patient_identifier} deleted")
                st.rerun()


def render_board(session: Session, *, secondary: str, search_label: str) -> list[CaseRecord]:
    """
    Render counts, search and the case table.

    Returns:
        The full case list that was loaded (for extra widgets on the page).
    """
    all_cases = load_cases()
    if all_cases is None:
        return []

    owner = owner_key(session.role, session.user_id)
    archived_ids = get_local_state().archived_ids(owner)
    parts = dashboard.partition(all_cases, archived_ids)
    counts = dashboard.case_counts(parts)
    today = date.today()

    metric_row([
        ("Total cases", counts.total),
        ("Active", counts.active),
        ("Overdue", counts.overdue),
        ("Completed", counts.completed),
    ])
    st.markdown("<div style='height:12px'></div>", unsafe_allow_html=True)

    c_search, c_toggle = st.columns([3, 1])
    term = c_search.text_input(search_label, key=f"search_{secondary}")
    show_archived = c_toggle.toggle("Show archived", key=f"show_archived_{secondary}")

    rows = dashboard.visible_cases(
        all_cases,
        archived_ids,
        term,
        show_archived=show_archived,
        secondary=secondary,
    )

    card_open(
        "Archived & completed cases" if show_archived else "Active cases",
        f"{len(rows)} shown · {len(dashboard.unique_patients(rows))} patients",
    )
    if not rows:
        st.caption("No cases match.")
    for case in rows:
        _row(case, session, owner, case.id in archived_ids, today)
    card_close()
    return all_cases
