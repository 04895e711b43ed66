"""
app/pages/not_found.py
"""

from __future__ import annotations

import streamlit as st

from workflow.session import HOME_PAGE, current_session, navigate


def render() -> None:
    st.title("404")
    st.markdown("Oops! Page not found.")
    session = current_session(st.session_state)
    if st.button("Return to Home", type="primary"):
        navigate(st.session_state, HOME_PAGE[session.role] if session else "auth")
        st.rerun()
