# =========================
# app/ui.py
# =========================
from __future__ import annotations

import html
from typing import Any, Iterable

import streamlit as st

from storage.errors import LakbayError
from storage.models import AlertLevel
from workflow.lifecycle import TimelineStep


def inject_theme() -> None:
    st.markdown(
        """
<style>
/* ============================================================
   LAKBAY theme
   - Dark navy sidebar
   - Light canvas + white cards
   - Teal accent
   - Alert pills (on track / due soon / overdue)
   ============================================================ */

/* Hide Streamlit built-in multipage nav (we route ourselves) */
[data-testid="stSidebarNav"] { display: none !important; }

:root{
  --primary: 212 72% 20%;          /* clinical navy */
  --primary-2: 212 72% 16%;        /* darker sidebar */
  --accent: 177 60% 38%;           /* teal */
  --sidebar-text: 210 40% 92%;

  --canvas: #F6F8FB;
  --card: #FFFFFF;
  --border: rgba(15,23,42,0.10);
  --muted: rgba(15,23,42,0.55);
  --text: rgba(15,23,42,0.92);

  /* Alert tokens */
  --ok: 142 70% 33%;
  --ok-bg: 142 70% 95%;
  --warn: 38 92% 45%;
  --warn-bg: 38 92% 95%;
  --late: 0 72% 45%;
  --late-bg: 0 72% 95%;
}

.stApp { background: var(--canvas); }

.stApp, .stMarkdown, .stMarkdown p, .stCaption, .stText, .stAlert, label,
h1, h2, h3, h4, h5, h6, div[data-testid="stMarkdownContainer"] {
  color: var(--text) !important;
}

div.block-container {
  padding-top: 2.2rem;
  padding-bottom: 2.2rem;
}

html, body, [class*="css"] { letter-spacing: -0.01em; }

/* =========================
   Inputs
   ========================= */
div[data-testid="stTextInput"] input,
div[data-testid="stTextArea"] textarea {
  background: #FFFFFF !important;
  color: var(--text) !important;
  border: 1px solid var(--border) !important;
  border-radius: 12px !important;
}

/* =========================
   Sidebar
   ========================= */
section[data-testid="stSidebar"]{
  background: hsl(var(--primary-2)) !important;
  border-right: 1px solid rgba(255,255,255,0.07);
}
section[data-testid="stSidebar"] *{
  color: hsl(var(--sidebar-text)) !important;
}
section[data-testid="stSidebar"] hr{
  border-color: rgba(255,255,255,0.10) !important;
}
section[data-testid="stSidebar"] .stRadio div[role="radiogroup"] > label{
  background: rgba(255,255,255,0.03);
  border: 1px solid rgba(255,255,255,0.08);
  border-radius: 14px;
  padding: 10px 12px;
  margin-bottom: 8px;
}
section[data-testid="stSidebar"] .stRadio div[role="radiogroup"] > label:hover{
  border-color: hsla(var(--accent), 0.55);
}

/* =========================
   Buttons
   ========================= */
.stButton>button{
  border-radius: 12px;
  border: 1px solid rgba(15,23,42,0.14);
}
.stButton>button[kind="primary"]{
  background: hsl(var(--accent)) !important;
  border: 1px solid hsl(var(--accent)) !important;
  color: white !important;
}

/* =========================
   Cards
   ========================= */
.mc-card{
  background: var(--card);
  border: 1px solid var(--border);
  border-radius: 16px;
  padding: 16px 16px;
}
.mc-title{ font-weight: 800; font-size: 16px; margin-bottom: 2px; color: var(--text); }
.mc-sub{ color: var(--muted); font-size: 13px; margin-bottom: 0px; }

.mc-metric-label{ color: var(--muted); font-size: 13px; margin-bottom: 6px; }
.mc-metric-value{ font-size: 30px; font-weight: 900; color: var(--text); line-height: 1.0; }
.mc-metric-foot{ margin-top: 6px; color: var(--muted); font-size: 12px; }

/* =========================
   Pills
   ========================= */
.alert-badge{
  display:inline-block;
  padding: 6px 10px;
  border-radius: 999px;
  font-size: 12px;
  font-weight: 800;
  border: 1px solid rgba(15,23,42,0.08);
}
.alert-normal{ background: hsl(var(--ok-bg)); color: hsl(var(--ok)); }
.alert-warning{ background: hsl(var(--warn-bg)); color: hsl(var(--warn)); }
.alert-overdue{ background: hsl(var(--late-bg)); color: hsl(var(--late)); }

/* =========================
   Care timeline
   ========================= */
.lk-timeline{ display:flex; flex-direction:column; gap:10px; }
.lk-step{ display:flex; gap:12px; align-items:center; }
.lk-dot{
  width:26px; height:26px; border-radius:999px;
  display:flex; align-items:center; justify-content:center;
  font-size:13px; font-weight:900;
  border:2px solid var(--border);
  background:#FFFFFF; color: var(--muted);
}
.lk-step.completed .lk-dot{ background: hsl(var(--accent)); border-color: hsl(var(--accent)); color:#FFFFFF; }
.lk-step.ongoing .lk-dot{ border-color: hsl(var(--accent)); color: hsl(var(--accent)); }
.lk-step.pending .lk-label{ color: var(--muted); }
.lk-label{ font-weight: 700; color: var(--text); }
.lk-status{ color: var(--muted); font-size: 12px; }

/* =========================
   Portal cards (Auth)
   ========================= */
.mc-portal{
  display:flex; gap:14px; align-items:center;
  padding:16px;
  border-radius:16px;
  border:1px solid var(--border);
  background:#FFFFFF;
}
.mc-portal-ico{
  width:42px; height:42px; border-radius:12px;
  background: hsla(var(--accent),0.12);
  display:flex; align-items:center; justify-content:center;
  font-weight: 900;
  color: hsl(var(--accent));
}
.mc-portal-title{ font-weight: 900; color: var(--text); }
.mc-portal-sub{ color: var(--muted); font-size: 13px; }
</style>
        """,
        unsafe_allow_html=True,
    )


def _esc(x: Any) -> str:
    """Escape any user/DB-provided strings before injecting into HTML."""
    return html.escape(str(x or ""), quote=True)


def card_open(title: str, subtitle: str = "") -> None:
    sub = f'<div class="mc-sub">{_esc(subtitle)}</div>' if subtitle else ""
    st.markdown(
        f'<div class="mc-card"><div class="mc-title">{_esc(title)}</div>{sub}',
        unsafe_allow_html=True,
    )


def card_close() -> None:
    st.markdown("</div>", unsafe_allow_html=True)


ALERT_LABELS = {
    AlertLevel.normal: "On Track",
    AlertLevel.warning: "Due Soon",
    AlertLevel.overdue: "Overdue",
}


def alert_badge(level: AlertLevel) -> str:
    return f'<span class="alert-badge alert-{level.value}">{ALERT_LABELS[level]}</span>'


def metric_card(label: str, value: Any, foot: str | None = None) -> None:
    """
    Plain-text metric tile (escaped).  Render badges outside it with
    st.markdown(..., unsafe_allow_html=True).
    """
    foot_html = f'<div class="mc-metric-foot">{_esc(foot)}</div>' if foot else ""
    st.markdown(
        f"""
<div class="mc-card">
  <div class="mc-metric-label">{_esc(label)}</div>
  <div class="mc-metric-value">{_esc(value)}</div>
  {foot_html}
</div>
        """,
        unsafe_allow_html=True,
    )


def metric_row(items: Iterable[tuple[str, Any]]) -> None:
    items = list(items)
    for col, (label, value) in zip(st.columns(len(items)), items):
        with col:
            metric_card(label, value)


_STEP_MARK = {"completed": "✓", "ongoing": "●", "pending": ""}


def render_timeline(steps: list[TimelineStep]) -> None:
    rows = []
    for i, step in enumerate(steps, start=1):
        mark = _STEP_MARK.get(step.status) or str(i)
        rows.append(
            f'<div class="lk-step {_esc(step.status)}">'
            f'<div class="lk-dot">{_esc(mark)}</div>'
            f'<div><div class="lk-label">{_esc(step.label)}</div>'
            f'<div class="lk-status">{_esc(step.status.title())}</div></div>'
            "</div>"
        )
    st.markdown(f'<div class="lk-timeline">{"".join(rows)}</div>', unsafe_allow_html=True)


def portal_choice(title: str, subtitle: str, icon_text: str = "•") -> None:
    st.markdown(
        f"""
<div class="mc-portal">
  <div class="mc-portal-ico">{_esc(icon_text)}</div>
  <div>
    <div class="mc-portal-title">{_esc(title)}</div>
    <div class="mc-portal-sub">{_esc(subtitle)}</div>
  </div>
</div>
        """,
        unsafe_allow_html=True,
    )


# -------------------------------------------------------------------
# Notifications
# Flash messages survive one st.rerun() so a success toast shows after
# the page reloads its data.
# -------------------------------------------------------------------
_FLASH_KEY = "flash"


def flash(message: str, kind: str = "success") -> None:
    st.session_state[_FLASH_KEY] = (kind, message)


def show_flash() -> None:
    item = st.session_state.pop(_FLASH_KEY, None)
    if not item:
        return
    kind, message = item
    if kind == "success":
        st.toast(message, icon="✅")
    else:
        st.toast(message, icon="⚠️")


def show_error(exc: LakbayError) -> None:
    st.error(exc.message)
