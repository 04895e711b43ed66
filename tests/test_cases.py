"""
Tests for the case store: ids, encrypted notes, conditional updates.
"""
import re
import sqlite3
from datetime import date, datetime, timezone

import pytest
from cryptography.fernet import Fernet

from storage import cases, crypto, db
from storage.errors import CaseNotFoundError, StaleCaseError, StoreError, UnreadableNotesError
from storage.models import CaseFilter


class TestCaseIds:
    def test_id_format(self):
        case_id = cases.new_case_id(datetime(2025, 1, 5, 9, 30, tzinfo=timezone.utc))
        assert re.fullmatch(r"P-20250105093000-[0-9a-f]{4}", case_id)


class TestCreateAndRead:
    def test_new_case_starts_at_new_case_with_normal_alert(self, draft):
        case = cases.create_case(draft(), actor_id=1)
        assert case.current_stage == "New Case"
        assert case.alert == "normal"
        assert case.version == 1
        assert case.findings == "8 mm RUL nodule on CXR"

    def test_notes_are_encrypted_at_rest(self, draft):
        case = cases.create_case(draft())
        with db._connect() as conn:
            blob = conn.execute(
                "SELECT encrypted_blob FROM case_notes WHERE case_id = ?", (case.id,)
            ).fetchone()[0]
        assert "Chronic cough" not in blob
        assert crypto.open_notes(blob)["symptoms"] == "Chronic cough"

    def test_unreadable_notes_are_flagged_not_fatal(self, draft, monkeypatch):
        case = cases.create_case(draft())
        monkeypatch.setenv("LAKBAY_DATA_KEY", Fernet.generate_key().decode())
        crypto._get_fernet.cache_clear()

        loaded = cases.get_case(case.id)

        assert loaded.notes_unreadable is True
        assert loaded.findings == ""
        assert loaded.patient_identifier == "JD-2025-001"

    def test_unreadable_notes_are_never_overwritten(self, draft, swap_data_key):
        case = cases.create_case(draft())
        original_key = swap_data_key()

        with pytest.raises(UnreadableNotesError):
            cases.update_case(case.id, {"symptoms": ""})
        cases.update_case(case.id, {"alert": "warning"})

        swap_data_key(original_key)
        kept = cases.get_case(case.id)
        assert kept.alert == "warning"
        assert kept.symptoms == "Chronic cough"
        assert kept.findings == "8 mm RUL nodule on CXR"

    def test_missing_case_raises(self):
        with pytest.raises(CaseNotFoundError):
            cases.get_case("P-00000000000000-0000")

    def test_list_is_newest_encounter_first_and_filterable(self, draft):
        cases.create_case(draft(patient_identifier="A-1", date_of_encounter=date(2025, 1, 1)))
        cases.create_case(draft(patient_identifier="B-1", date_of_encounter=date(2025, 3, 1), physician="Dr. Lim"))

        assert [c.patient_identifier for c in cases.list_cases()] == ["B-1", "A-1"]
        only_lim = cases.list_cases(CaseFilter(physician="dr. lim"))
        assert [c.patient_identifier for c in only_lim] == ["B-1"]
        assert [c.patient_identifier for c in cases.cases_for_patient("A-1")] == ["A-1"]

    def test_store_failure_becomes_store_error(self, draft, monkeypatch):
        def boom(**_):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(db, "select_cases", boom)
        with pytest.raises(StoreError) as exc_info:
            cases.list_cases()
        assert exc_info.value.details["operation"] == "load cases"


class TestUpdate:
    def test_update_bumps_version(self, draft):
        case = cases.create_case(draft())
        updated = cases.update_case(case.id, {"alert": "warning"})
        assert updated.alert == "warning"
        assert updated.version == 2

    def test_note_fields_are_merged(self, draft):
        case = cases.create_case(draft())
        updated = cases.update_case(case.id, {"symptoms": "Hemoptysis"})
        assert updated.symptoms == "Hemoptysis"
        assert updated.findings == "8 mm RUL nodule on CXR"

    def test_stale_version_is_rejected_and_row_unchanged(self, draft):
        case = cases.create_case(draft())
        cases.update_case(case.id, {"alert": "warning"}, expected_version=1)

        with pytest.raises(StaleCaseError):
            cases.update_case(case.id, {"alert": "overdue"}, expected_version=1)

        current = cases.get_case(case.id)
        assert current.alert == "warning"
        assert current.version == 2

    def test_without_version_last_write_wins(self, draft):
        case = cases.create_case(draft())
        cases.update_case(case.id, {"physician": "Dr. A"})
        cases.update_case(case.id, {"physician": "Dr. B"})
        assert cases.get_case(case.id).physician == "Dr. B"

    def test_update_missing_case(self):
        with pytest.raises(CaseNotFoundError):
            cases.update_case("P-missing", {"alert": "warning"})

    def test_audit_failure_rolls_back_the_update(self, draft, monkeypatch):
        case = cases.create_case(draft())

        def boom(*_, **__):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(db, "append_audit", boom)
        with pytest.raises(StoreError):
            cases.update_case(case.id, {"alert": "warning"})

        current = cases.get_case(case.id)
        assert current.alert == "normal"
        assert current.version == 1


class TestDelete:
    def test_delete_removes_case_and_notes(self, draft):
        case = cases.create_case(draft())
        cases.delete_case(case.id, actor_id=1)

        with pytest.raises(CaseNotFoundError):
            cases.get_case(case.id)
        with db._connect() as conn:
            assert conn.execute("SELECT COUNT(*) FROM case_notes").fetchone()[0] == 0
        assert db.list_audit(case.id)[0]["action"] == "case_deleted"

    def test_audit_failure_keeps_the_case(self, draft, monkeypatch):
        case = cases.create_case(draft())

        def boom(*_, **__):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(db, "append_audit", boom)
        with pytest.raises(StoreError):
            cases.delete_case(case.id)

        assert cases.get_case(case.id).id == case.id

    def test_delete_missing_case(self):
        with pytest.raises(CaseNotFoundError):
            cases.delete_case("P-missing")


class TestHistory:
    def test_history_lists_actions_newest_first(self, draft):
        case = cases.create_case(draft(), actor_id=7)
        cases.update_case(case.id, {"alert": "warning"}, actor_id=8)

        history = cases.case_history(case.id)

        assert [h.action for h in history] == ["case_updated", "case_created"]
        assert [h.user_id for h in history] == [8, 7]

    def test_old_audit_table_gains_target_column(self):
        with db._connect() as conn:
            conn.execute("DROP TABLE audit_log")
            conn.execute(
                "CREATE TABLE audit_log (id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "user_id INTEGER, action TEXT NOT NULL, case_id TEXT, timestamp TEXT NOT NULL)"
            )

        db.init_db()
        db.append_audit(1, "user_approved", target_user_id=5)

        assert db.list_audit()[0]["target_user_id"] == 5


class TestFindings:
    def test_join_appends_with_blank_line(self):
        assert cases.join_findings("first", "second") == "first\n\nsecond"
        assert cases.join_findings("", "only") == "only"
        assert cases.join_findings("keep", "  ") == "keep"
