"""
app/main.py

LAKBAY — Streamlit entry point.
- Role-based session gate (provider / patient / admin)
- Sidebar navigation built from the route table
- Deep links via ?path=/provider/patient/<id>
- Global theme injection
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

logging.basicConfig(
    level=os.environ.get("LAKBAY_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

from app.ui import inject_theme, show_flash  # noqa: E402
from storage.db import init_db  # noqa: E402
from workflow.session import (  # noqa: E402
    HOME_PAGE,
    NOT_FOUND,
    PAGE_KEY,
    PAGE_PARAMS_KEY,
    can_access,
    current_session,
    end_session,
    nav_items,
    navigate,
    resolve_path,
)

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="LAKBAY",
    page_icon="🫁",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def _bootstrap() -> bool:
    init_db()
    logger.info("LAKBAY started")
    return True


_bootstrap()

# ---------------------------------------------------------------------------
# Session defaults / deep link
# ---------------------------------------------------------------------------
if PAGE_KEY not in st.session_state:
    key, params = resolve_path(st.query_params.get("path", "/"))
    st.session_state[PAGE_KEY] = key
    st.session_state[PAGE_PARAMS_KEY] = params

session = current_session(st.session_state)

# ---------------------------------------------------------------------------
# Import helper
# ---------------------------------------------------------------------------
def _import_render(module_name: str):
    """Import `render` from app.pages.<module_name>."""
    mod = __import__(f"app.pages.{module_name}", fromlist=["render"])
    return mod.render


def _logout() -> None:
    logger.info("User id=%s signed out", session.user_id if session else None)
    end_session(st.session_state)
    st.rerun()


inject_theme()

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title("🫁 LAKBAY")
st.sidebar.markdown("Pulmonary nodule and mass care tracking.")
st.sidebar.divider()

if session is not None:
    st.sidebar.success(f"**{session.display_name}**\n\nRole: **{session.role}**")
    if st.sidebar.button("↩️ Sign out"):
        _logout()
else:
    st.sidebar.info("Not signed in")

st.sidebar.divider()

# ---------------------------------------------------------------------------
# Navigation (role-based)
# ---------------------------------------------------------------------------
nav_options = nav_items(session)
page_key = st.session_state[PAGE_KEY]

# Gate: guests go to sign-in, signed-in users leave the sign-in page,
# and pages outside the role fall back to the role's home.
if session is None and page_key != NOT_FOUND:
    page_key = "auth"
elif session is not None and page_key == "auth":
    page_key = HOME_PAGE[session.role]
elif not can_access(session, page_key):
    logger.warning("Blocked %s from page %s", session.role if session else "guest", page_key)
    page_key = HOME_PAGE[session.role] if session else "auth"
if page_key != st.session_state[PAGE_KEY]:
    navigate(st.session_state, page_key)

labels = [x[0] for x in nav_options]
keys = [x[1] for x in nav_options]

if page_key in keys:
    chosen = st.sidebar.radio("Navigate", options=labels, index=keys.index(page_key))
    chosen_key = dict(nav_options)[chosen]
    if chosen_key != page_key:
        navigate(st.session_state, chosen_key)
        st.rerun()
else:
    # Off-nav pages (patient detail, new case from admin, not found)
    for label, key in nav_options:
        if st.sidebar.button(label, key=f"nav_{key}", use_container_width=True):
            navigate(st.session_state, key)
            st.rerun()

st.sidebar.divider()
st.sidebar.caption(
    "Clinical data is confidential. Do not share screenshots outside the care team."
)

show_flash()

# ---------------------------------------------------------------------------
# Page routing
# ---------------------------------------------------------------------------
_import_render(page_key)()
