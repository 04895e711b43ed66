"""
Tests for role-checked case edits and the complete-case action.
"""
from datetime import date

import pytest

from storage import cases
from storage.errors import (
    AccessDeniedError,
    InvalidTransitionError,
    MissingFieldError,
    StaleCaseError,
    UnreadableNotesError,
)
from storage.models import CaseUpdate
from workflow import dashboard, editor
from workflow.lifecycle import is_completed

TODAY = date(2025, 2, 10)


class TestCreate:
    def test_provider_creates_case(self, provider_session, draft):
        case = editor.create_case(provider_session, draft())
        assert case.current_stage == "New Case"

    def test_patient_cannot_create(self, patient_session, draft):
        with pytest.raises(AccessDeniedError):
            editor.create_case(patient_session, draft())

    def test_signed_out_cannot_create(self, draft):
        with pytest.raises(AccessDeniedError):
            editor.create_case(None, draft())

    def test_patient_identifier_required(self, provider_session, draft):
        with pytest.raises(MissingFieldError) as exc_info:
            editor.create_case(provider_session, draft(patient_identifier="  "))
        assert exc_info.value.fields == ["patient_identifier"]


class TestEdit:
    def test_stage_change_follows_transition_table(self, provider_session, draft):
        case = editor.create_case(provider_session, draft())
        updated = editor.edit_case(
            provider_session, case.id, CaseUpdate(current_stage="Initial Imaging"), today=TODAY
        )
        assert updated.current_stage == "Initial Imaging"

    def test_illegal_stage_change_is_rejected(self, provider_session, draft):
        case = editor.create_case(provider_session, draft())
        with pytest.raises(InvalidTransitionError):
            editor.edit_case(provider_session, case.id, CaseUpdate(current_stage="Treatment Plan"))
        assert cases.get_case(case.id).current_stage == "New Case"

    def test_findings_are_appended_with_date(self, provider_session, draft):
        case = editor.create_case(provider_session, draft())
        updated = editor.edit_case(
            provider_session, case.id, CaseUpdate(findings="CT: 9 mm, solid"), today=TODAY
        )
        assert updated.findings.startswith("8 mm RUL nodule on CXR")
        assert updated.findings.endswith("[2025-02-10] CT: 9 mm, solid")

    def test_provider_cannot_reassign_physician(self, provider_session, draft):
        case = editor.create_case(provider_session, draft())
        with pytest.raises(AccessDeniedError):
            editor.edit_case(provider_session, case.id, CaseUpdate(physician="Dr. Lim"))

    def test_admin_reassigns_physician(self, admin_session, draft):
        case = editor.create_case(admin_session, draft())
        updated = editor.edit_case(admin_session, case.id, CaseUpdate(physician="Dr. Lim"))
        assert updated.physician == "Dr. Lim"

    def test_stale_edit_is_rejected(self, provider_session, draft):
        case = editor.create_case(provider_session, draft())
        editor.edit_case(provider_session, case.id, CaseUpdate(alert="warning"), expected_version=case.version)
        with pytest.raises(StaleCaseError):
            editor.edit_case(provider_session, case.id, CaseUpdate(alert="overdue"), expected_version=case.version)

    def test_no_changes_leaves_version(self, provider_session, draft):
        case = editor.create_case(provider_session, draft())
        same = editor.edit_case(provider_session, case.id, CaseUpdate(current_stage="New Case"))
        assert same.version == case.version


class TestComplete:
    def test_scenario_create_then_complete(self, provider_session, admin_session, draft):
        case = editor.create_case(provider_session, draft())
        before = dashboard.case_counts(dashboard.partition(cases.list_cases()))
        assert (before.active, before.completed) == (1, 0)

        done = editor.complete_case(admin_session, case.id, "Treatment Done", today=TODAY)

        assert done.current_stage == "Completed - Treatment Done"
        assert done.alert == "normal"
        assert done.completion_reason == "Treatment Done"
        assert done.completion_date == TODAY
        assert done.findings.endswith("Case completed: Treatment Done")
        after = dashboard.case_counts(dashboard.partition(cases.list_cases()))
        assert (after.active, after.completed) == (0, 1)

    def test_completion_notes_are_appended(self, admin_session, draft):
        case = editor.create_case(admin_session, draft())
        editor.edit_case(admin_session, case.id, CaseUpdate(alert="overdue"))
        done = editor.complete_case(admin_session, case.id, "Team Decision", "Referred to oncology")
        assert done.findings.endswith("Completion Notes: Referred to oncology")
        assert done.alert == "normal"

    def test_provider_cannot_complete(self, provider_session, draft):
        case = editor.create_case(provider_session, draft())
        with pytest.raises(AccessDeniedError):
            editor.complete_case(provider_session, case.id, "Treatment Done")
        assert not is_completed(cases.get_case(case.id))

    def test_reason_must_be_from_fixed_list(self, admin_session, draft):
        case = editor.create_case(admin_session, draft())
        with pytest.raises(ValueError):
            editor.complete_case(admin_session, case.id, "Got bored")

    def test_completed_case_is_terminal(self, admin_session, draft):
        case = editor.create_case(admin_session, draft())
        editor.complete_case(admin_session, case.id, "Patient Opted Out")
        with pytest.raises(InvalidTransitionError):
            editor.complete_case(admin_session, case.id, "Treatment Done")
        with pytest.raises(InvalidTransitionError):
            editor.edit_case(admin_session, case.id, CaseUpdate(current_stage="MDC Review"))


class TestUnreadableNotes:
    def test_alert_only_save_keeps_the_original_notes(self, provider_session, draft, swap_data_key):
        case = editor.create_case(provider_session, draft())
        original_key = swap_data_key()
        loaded = cases.get_case(case.id)
        assert loaded.notes_unreadable is True

        updated = editor.edit_case(
            provider_session,
            case.id,
            CaseUpdate(alert="warning", symptoms=loaded.symptoms),
            expected_version=loaded.version,
        )
        assert updated.alert == "warning"

        swap_data_key(original_key)
        restored = cases.get_case(case.id)
        assert restored.notes_unreadable is False
        assert restored.symptoms == "Chronic cough"
        assert restored.findings == "8 mm RUL nodule on CXR"

    def test_findings_entry_is_refused(self, provider_session, draft, swap_data_key):
        case = editor.create_case(provider_session, draft())
        original_key = swap_data_key()

        with pytest.raises(UnreadableNotesError):
            editor.edit_case(provider_session, case.id, CaseUpdate(findings="CT: 9 mm"), today=TODAY)

        swap_data_key(original_key)
        kept = cases.get_case(case.id)
        assert kept.findings == "8 mm RUL nodule on CXR"
        assert kept.version == case.version

    def test_completion_leaves_unreadable_notes_alone(self, admin_session, draft, swap_data_key):
        case = editor.create_case(admin_session, draft())
        original_key = swap_data_key()

        done = editor.complete_case(admin_session, case.id, "Treatment Done", today=TODAY)
        assert done.completion_reason == "Treatment Done"

        swap_data_key(original_key)
        assert cases.get_case(case.id).findings == "8 mm RUL nodule on CXR"
