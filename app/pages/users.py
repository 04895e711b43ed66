"""
app/pages/users.py

Navigator user management:
- Pending sign-up requests: approve / reject (reject deletes the account)
- Approved users, with case-ID reassignment for patients
"""

from __future__ import annotations

import streamlit as st

from app.ui import _esc, card_close, card_open, flash, show_error
from storage import accounts
from storage.errors import LakbayError
from storage.models import UserRecord, UserRole
from workflow.session import Session, current_session


def _identity(user: UserRecord) -> str:
    if user.role == UserRole.patient.value:
        return f"Case {user.case_number or '—'}"
    return user.email or "—"


def _pending(session: Session, users: list[UserRecord]) -> None:
    card_open("Pending requests", f"{len(users)} awaiting approval")
    if not users:
        st.caption("No pending requests.")
    for u in users:
        c1, c2, c3, c4 = st.columns([2.2, 1.2, 1, 1])
        c1.markdown(
            f"<div style='font-weight:800;'>{_esc(u.label)}</div><div class='mc-sub'>{_esc(_identity(u))}</div>",
            unsafe_allow_html=True,
        )
        c2.caption(u.role)
        if c3.button("Approve", key=f"approve_{u.id}", type="primary"):
            try:
                accounts.approve_user(u.id, actor_id=session.user_id)
            except LakbayError as exc:
                show_error(exc)
            else:
                flash(f"{u.label} approved")
                st.rerun()
        if c4.button("Reject", key=f"reject_{u.id}"):
            try:
                accounts.reject_user(u.id, actor_id=session.user_id)
            except LakbayError as exc:
                show_error(exc)
            else:
                flash(f"{u.label} rejected")
                st.rerun()
    card_close()


def _approved(session: Session, users: list[UserRecord]) -> None:
    card_open("Approved users", f"{len(users)} active accounts")
    for u in users:
        c1, c2, c3 = st.columns([2.2, 1, 2.2])
        c1.markdown(
            f"<div style='font-weight:800;'>{_esc(u.label)}</div><div class='mc-sub'>{_esc(_identity(u))}</div>",
            unsafe_allow_html=True,
        )
        c2.caption(u.role)
        if u.role != UserRole.patient.value:
            continue
        with c3.form(f"case_no_{u.id}", border=False):
            new_number = st.text_input("Case ID", value=u.case_number or "", label_visibility="collapsed")
            if st.form_submit_button("Assign case ID"):
                try:
                    accounts.assign_case_number(u.id, new_number, actor_id=session.user_id)
                except LakbayError as exc:
                    show_error(exc)
                else:
                    flash(f"Case ID updated for {u.label}")
                    st.rerun()
    card_close()


def render() -> None:
    session = current_session(st.session_state)
    st.title("Users")
    try:
        pending = accounts.pending_users()
        approved = accounts.approved_users()
    except LakbayError as exc:
        show_error(exc)
        return

    _pending(session, pending)
    st.markdown("<div style='height:12px'></div>", unsafe_allow_html=True)
    _approved(session, approved)
