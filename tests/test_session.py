"""
Tests for the session object, route resolution and role gating.
"""
import pytest

from storage.errors import AccessDeniedError
from storage.models import UserRecord, UserRole
from workflow import session as sess


class TestResolvePath:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/", ("auth", {})),
            ("", ("auth", {})),
            ("/auth", ("auth", {})),
            ("/provider", ("provider", {})),
            ("/provider/cases/new", ("new_case", {})),
            ("/provider/patient/P-1/", ("patient_detail", {"patientId": "P-1"})),
            ("/admin/reports", ("reports", {})),
            ("/admin/users", ("users", {})),
            ("/nowhere/at/all", ("not_found", {})),
        ],
    )
    def test_paths(self, path, expected):
        assert sess.resolve_path(path) == expected


class TestGating:
    def test_guest_sees_only_sign_in(self):
        assert sess.nav_items(None) == [("Sign in", "auth")]
        assert not sess.can_access(None, "provider")
        assert sess.can_access(None, "not_found")

    def test_patient_cannot_open_admin_pages(self, patient_session):
        assert sess.can_access(patient_session, "patient")
        assert not sess.can_access(patient_session, "admin")
        assert not sess.can_access(patient_session, "patient_detail")

    def test_admin_nav(self, admin_session):
        keys = [k for _, k in sess.nav_items(admin_session)]
        assert keys == ["admin", "reports", "actions", "users"]
        assert sess.can_access(admin_session, "new_case")

    def test_require_role(self, provider_session):
        assert sess.require_role(provider_session, "edit", UserRole.provider) is provider_session
        with pytest.raises(AccessDeniedError):
            sess.require_role(provider_session, "complete cases", UserRole.admin)


class TestLifecycle:
    def test_start_and_end_session(self):
        state = {}
        user = UserRecord(id=5, role="patient", full_name="Ana Reyes", case_number="AR-9", approved=True)

        session = sess.start_session(state, user)

        assert sess.current_session(state) is session
        assert session.patient_case_id == "AR-9"
        assert session.provider_email is None
        assert state[sess.PAGE_KEY] == "patient"

        sess.end_session(state)
        assert sess.current_session(state) is None
        assert state[sess.PAGE_KEY] == "auth"

    def test_navigate_sets_params(self):
        state = {}
        sess.navigate(state, "patient_detail", patientId="P-1")
        assert state[sess.PAGE_KEY] == "patient_detail"
        assert state[sess.PAGE_PARAMS_KEY] == {"patientId": "P-1"}

    def test_admin_session_flag(self, admin_session, provider_session):
        assert admin_session.is_admin
        assert not provider_session.is_admin
