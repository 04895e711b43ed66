"""
app/pages/auth.py

LAKBAY auth landing page:
- Left hero panel (raw HTML via components.html)
- Right: role selector + Sign in / Sign up tabs
  - provider / admin use email + password
  - patients use their full name (as registered on their case) + password
"""

from __future__ import annotations

import streamlit as st
import streamlit.components.v1 as components

from app.ui import flash, portal_choice, show_error
from storage import accounts
from storage.errors import LakbayError
from storage.models import UserRole
from workflow.session import start_session


_ROLE_LABELS = {
    "Healthcare Provider": UserRole.provider,
    "Patient": UserRole.patient,
    "Navigator / Admin": UserRole.admin,
}

_HERO_HTML = """
<div style="
  border-radius: 18px;
  height: 600px;
  padding: 26px 26px;
  background:
    radial-gradient(1200px 600px at 10% 20%, rgba(255,255,255,0.08), rgba(255,255,255,0.00) 60%),
    linear-gradient(145deg, hsl(212 72% 18%), hsl(212 72% 12%));
  border: 1px solid rgba(255,255,255,0.10);
  position: relative;
  overflow: hidden;
  font-family: system-ui, -apple-system, Segoe UI, Roboto, Arial, sans-serif;
">
  <div style="display:flex; align-items:center; gap:12px; margin-bottom:22px;">
    <div style="
      width:46px; height:46px; border-radius:14px;
      background: hsla(177,60%,38%,0.18);
      display:flex; align-items:center; justify-content:center;
      border: 1px solid rgba(255,255,255,0.08);
    ">🫁</div>
    <div style="color: rgba(255,255,255,0.95); font-weight:900; font-size:20px;">LAKBAY</div>
  </div>

  <div style="position:absolute; left:26px; bottom:22px; right:26px;">
    <div style="color:white; font-weight:1000; font-size:48px; line-height:1.02; margin-bottom:14px;">
      Every nodule,<br>followed through.
    </div>
    <div style="color: rgba(255,255,255,0.75); font-size:15px; max-width:520px; margin-bottom:22px;">
      Track pulmonary nodule and mass cases from first encounter through imaging,
      biopsy, MDC review and treatment.
    </div>
    <div style="display:flex; gap:24px; flex-wrap:wrap; margin-top:12px;">
      <div>
        <div style="color: hsl(177 60% 55%); font-weight:900; font-size:12px; letter-spacing:0.06em;">PROVIDERS</div>
        <div style="color: rgba(255,255,255,0.80); font-size:13px;">Case workflow</div>
      </div>
      <div>
        <div style="color: hsl(177 60% 55%); font-weight:900; font-size:12px; letter-spacing:0.06em;">PATIENTS</div>
        <div style="color: rgba(255,255,255,0.80); font-size:13px;">Care timeline</div>
      </div>
      <div>
        <div style="color: hsl(177 60% 55%); font-weight:900; font-size:12px; letter-spacing:0.06em;">NAVIGATORS</div>
        <div style="color: rgba(255,255,255,0.80); font-size:13px;">Oversight &amp; reports</div>
      </div>
    </div>
  </div>
</div>
"""


def _role_picker(key: str) -> UserRole | None:
    label = st.selectbox(
        "I am a…",
        options=list(_ROLE_LABELS),
        index=None,
        placeholder="Select your role",
        key=key,
    )
    return _ROLE_LABELS.get(label) if label else None


def _sign_in_form() -> None:
    role = _role_picker("signin_role")
    with st.form("signin_form"):
        if role is UserRole.patient:
            full_name = st.text_input("Full name", placeholder="As registered on your case")
            email = ""
        else:
            email = st.text_input("Email")
            full_name = ""
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary", use_container_width=True)

    if not submitted:
        return
    try:
        user = accounts.sign_in(role, email=email, password=password, full_name=full_name)
    except LakbayError as exc:
        show_error(exc)
        return
    start_session(st.session_state, user)
    flash(f"Welcome, {user.label}")
    st.rerun()


def _sign_up_form() -> None:
    role = _role_picker("signup_role")
    with st.form("signup_form", clear_on_submit=False):
        full_name = st.text_input(
            "Full name",
            help="Patients: use your name exactly as your care team registered it.",
        )
        email = "" if role is UserRole.patient else st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Request access", use_container_width=True)

    if not submitted:
        return
    try:
        user = accounts.sign_up(role, email=email, password=password, full_name=full_name)
    except LakbayError as exc:
        show_error(exc)
        return
    if user.case_number:
        st.success(
            f"Account created and linked to case {user.case_number}. "
            "You can sign in once an administrator approves it."
        )
    else:
        st.success("Account created. You can sign in once an administrator approves it.")


def render() -> None:
    colL, colR = st.columns([1.15, 1], gap="large")

    with colL:
        # components.html renders raw HTML, no Markdown parsing
        components.html(_HERO_HTML, height=620)

    with colR:
        st.markdown(
            """
<div style="padding: 10px 4px;">
  <div style="font-weight:1000; font-size:36px; color: rgba(15,23,42,0.92);">Welcome</div>
  <div style="margin-top:6px; color: rgba(15,23,42,0.55); font-size:15px;">Sign in to your portal</div>
</div>
            """,
            unsafe_allow_html=True,
        )
        portal_choice("One login, three portals", "Providers, patients and navigators", icon_text="🔐")
        st.markdown("<div style='height:10px'></div>", unsafe_allow_html=True)

        tab_in, tab_up = st.tabs(["Sign in", "Sign up"])
        with tab_in:
            _sign_in_form()
        with tab_up:
            _sign_up_form()
