"""
Shared fixtures: every test gets its own SQLite file, local-state file and
notes key.
"""
import os
from datetime import date

import pytest
from cryptography.fernet import Fernet

from storage import crypto, db
from storage.models import CaseDraft, UserRecord, UserRole
from workflow import local_state
from workflow.session import session_from_user


@pytest.fixture(autouse=True)
def isolated_store(tmp_path, monkeypatch):
    monkeypatch.setenv("LAKBAY_DB_PATH", str(tmp_path / "lakbay.db"))
    monkeypatch.setenv("LAKBAY_LOCAL_STATE_PATH", str(tmp_path / "local_state.json"))
    monkeypatch.setenv("LAKBAY_DATA_KEY", Fernet.generate_key().decode())
    monkeypatch.delenv("LAKBAY_SUPERUSER_EMAIL", raising=False)
    monkeypatch.delenv("LAKBAY_SUPERUSER_PASSWORD", raising=False)
    monkeypatch.setattr(local_state, "_STATE_SINGLETON", None)
    crypto._get_fernet.cache_clear()
    db.init_db()
    yield tmp_path
    crypto._get_fernet.cache_clear()


def _session(role, user_id, **extra):
    user = UserRecord(id=user_id, role=role, approved=True, **extra)
    return session_from_user(user)


@pytest.fixture
def provider_session():
    return _session(UserRole.provider, 10, email="dr.santos@lakbay.ph", full_name="Dr. Santos")


@pytest.fixture
def admin_session():
    return _session(UserRole.admin, 20, email="nav@lakbay.ph", full_name="Navigator Cruz")


@pytest.fixture
def patient_session():
    return _session(UserRole.patient, 30, full_name="Juan Dela Cruz", case_number="JD-2025-001")


@pytest.fixture
def draft():
    def _make(**overrides):
        fields = dict(
            patient_identifier="JD-2025-001",
            patient_name="Juan Dela Cruz",
            date_of_encounter=date(2025, 1, 6),
            physician="Dr. Santos",
            classification="Pulmonary nodule",
            symptoms="Chronic cough",
            findings="8 mm RUL nodule on CXR",
        )
        fields.update(overrides)
        return CaseDraft(**fields)

    return _make


@pytest.fixture
def swap_data_key(monkeypatch):
    """Switch the notes key (a fresh one by default); returns the previous key."""
    def _swap(key=None):
        previous = os.environ["LAKBAY_DATA_KEY"]
        monkeypatch.setenv("LAKBAY_DATA_KEY", key or Fernet.generate_key().decode())
        crypto._get_fernet.cache_clear()
        return previous

    return _swap
