"""
workflow/session.py

The signed-in session and role-based route gating.

A ``Session`` is created at sign-in, kept under ``SESSION_KEY`` in
Streamlit's session state, and removed at sign-out.  Pages receive it
explicitly instead of reading role flags scattered around the state.

The helpers that touch state take any ``MutableMapping`` so they work with
``st.session_state`` and with a plain dict.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import MutableMapping, Optional

from pydantic import BaseModel

from storage.errors import AccessDeniedError
from storage.models import UserRecord, UserRole

SESSION_KEY = "session"
PAGE_KEY = "current_page"
PAGE_PARAMS_KEY = "page_params"


class Session(BaseModel):
    role: UserRole
    user_id: int
    display_name: str = ""
    patient_full_name: Optional[str] = None
    patient_case_id: Optional[str] = None
    provider_email: Optional[str] = None
    admin_email: Optional[str] = None

    class Config:
        use_enum_values = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin.value


def session_from_user(user: UserRecord) -> Session:
    role = UserRole(user.role)
    return Session(
        role=role,
        user_id=user.id,
        display_name=user.label,
        patient_full_name=user.full_name if role is UserRole.patient else None,
        patient_case_id=user.case_number if role is UserRole.patient else None,
        provider_email=user.email if role is UserRole.provider else None,
        admin_email=user.email if role is UserRole.admin else None,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Route:
    key: str
    path: str
    label: str
    roles: tuple[str, ...]  # empty = public
    in_nav: bool = True


ROUTES: tuple[Route, ...] = (
    Route("auth", "/auth", "Sign in", ()),
    Route("provider", "/provider", "Dashboard", ("provider",)),
    Route("new_case", "/provider/cases/new", "New Case", ("provider", "admin")),
    Route("patient_detail", "/provider/patient/:patientId", "Patient", ("provider", "admin"), in_nav=False),
    Route("patient", "/patient", "My Care Timeline", ("patient",)),
    Route("admin", "/admin", "Dashboard", ("admin",)),
    Route("reports", "/admin/reports", "Reports", ("admin",)),
    Route("actions", "/admin/actions", "Quick Actions", ("admin",)),
    Route("users", "/admin/users", "Users", ("admin",)),
)

NOT_FOUND = "not_found"
_BY_KEY = {r.key: r for r in ROUTES}

HOME_PAGE = {
    UserRole.provider.value: "provider",
    UserRole.patient.value: "patient",
    UserRole.admin.value: "admin",
}


def resolve_path(path: str) -> tuple[str, dict[str, str]]:
    """
    Map a URL path to ``(page_key, params)``.

    ``/`` and ``/auth`` go to the sign-in page; anything unmatched gives
    ``("not_found", {})``.
    """
    clean = "/" + (path or "").strip().strip("/")
    if clean == "/":
        return "auth", {}

    parts = clean.strip("/").split("/")
    for route in ROUTES:
        pattern = route.path.strip("/").split("/")
        if len(pattern) != len(parts):
            continue
        params: dict[str, str] = {}
        for want, got in zip(pattern, parts):
            if want.startswith(":"):
                params[want[1:]] = got
            elif want != got:
                break
        else:
            return route.key, params
    return NOT_FOUND, {}


def can_access(session: Optional[Session], page_key: str) -> bool:
    if page_key == NOT_FOUND:
        return True
    route = _BY_KEY.get(page_key)
    if route is None:
        return False
    if not route.roles:
        return True
    return session is not None and session.role in route.roles


def nav_items(session: Optional[Session]) -> list[tuple[str, str]]:
    """Sidebar entries ``(label, page_key)`` visible to *session*."""
    if session is None:
        return [("Sign in", "auth")]
    return [
        (r.label, r.key)
        for r in ROUTES
        if r.in_nav and r.roles and session.role in r.roles
        and not (r.key == "new_case" and session.is_admin)
    ]


def require_role(session: Optional[Session], action: str, *roles: UserRole) -> Session:
    """
    Return *session* when its role is one of *roles*.

    Raises:
        AccessDeniedError: Not signed in, or signed in with another role.
    """
    allowed = {r.value for r in roles}
    if session is None or session.role not in allowed:
        raise AccessDeniedError(action, session.role if session else None)
    return session


# ---------------------------------------------------------------------------
# Session state lifecycle
# ---------------------------------------------------------------------------


def current_session(state: MutableMapping) -> Optional[Session]:
    value = state.get(SESSION_KEY)
    return value if isinstance(value, Session) else None


def start_session(state: MutableMapping, user: UserRecord) -> Session:
    session = session_from_user(user)
    state[SESSION_KEY] = session
    state[PAGE_KEY] = HOME_PAGE[session.role]
    state[PAGE_PARAMS_KEY] = {}
    return session


def end_session(state: MutableMapping) -> None:
    for key in (SESSION_KEY, PAGE_PARAMS_KEY):
        if key in state:
            del state[key]
    state[PAGE_KEY] = "auth"


def navigate(state: MutableMapping, page_key: str, **params: str) -> None:
    state[PAGE_KEY] = page_key
    state[PAGE_PARAMS_KEY] = dict(params)
