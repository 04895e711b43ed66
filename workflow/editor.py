"""
workflow/editor.py

Case editor: role-checked edits and the admin "complete case" action.

Both operations write through ``storage.cases``; this module adds the
rules the store does not know about (who may do what, legal stage moves,
append-only findings).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from storage import cases as case_store
from storage.errors import InvalidTransitionError, MissingFieldError
from storage.models import (
    AlertLevel,
    CaseDraft,
    CaseRecord,
    CaseUpdate,
    CompletionReason,
    UserRole,
    completed_stage_label,
)
from workflow.lifecycle import check_transition, is_completed
from workflow.session import Session, require_role

logger = logging.getLogger(__name__)

EDITOR_ROLES = (UserRole.provider, UserRole.admin)


def _dated_entry(text: str, today: date) -> str:
    return f"[{today.isoformat()}] {text.strip()}"


def create_case(session: Optional[Session], draft: CaseDraft) -> CaseRecord:
    session = require_role(session, "create cases", *EDITOR_ROLES)
    missing = [
        name
        for name, value in (
            ("patient_identifier", draft.patient_identifier),
            ("physician", draft.physician),
        )
        if not value.strip()
    ]
    if missing:
        raise MissingFieldError(missing)
    return case_store.create_case(draft, actor_id=session.user_id)


def edit_case(
    session: Optional[Session],
    case_id: str,
    update: CaseUpdate,
    *,
    expected_version: Optional[int] = None,
    today: Optional[date] = None,
) -> CaseRecord:
    """
    Apply a provider/admin edit.

    - ``current_stage`` must be a legal successor of the stored stage.
    - ``symptoms`` is only written when it differs from the stored text.
    - ``findings`` is appended as a dated entry.
    - ``physician`` may only be reassigned by an admin.

    Raises:
        AccessDeniedError, InvalidTransitionError, CaseNotFoundError,
        StaleCaseError, UnreadableNotesError
    """
    session = require_role(session, "edit cases", *EDITOR_ROLES)
    case = case_store.get_case(case_id)
    changes: dict = {}

    if update.current_stage is not None and update.current_stage != case.current_stage:
        if is_completed(case):
            raise InvalidTransitionError(case.current_stage, str(update.current_stage), [])
        changes["current_stage"] = check_transition(case.current_stage, update.current_stage).value

    if update.alert is not None:
        changes["alert"] = update.alert
    if update.classification is not None:
        changes["classification"] = update.classification
    if update.symptoms is not None and update.symptoms != case.symptoms:
        changes["symptoms"] = update.symptoms
    if update.findings and update.findings.strip():
        entry = _dated_entry(update.findings, today or date.today())
        changes["findings"] = case_store.join_findings(case.findings, entry)

    if update.physician is not None and update.physician.strip() != case.physician:
        require_role(session, "reassign the physician", UserRole.admin)
        changes["physician"] = update.physician.strip()

    if not changes:
        return case

    return case_store.update_case(
        case_id,
        changes,
        expected_version=expected_version,
        actor_id=session.user_id,
    )


def complete_case(
    session: Optional[Session],
    case_id: str,
    reason: CompletionReason | str,
    notes: str = "",
    *,
    expected_version: Optional[int] = None,
    today: Optional[date] = None,
) -> CaseRecord:
    """
    Admin-only: freeze a case as completed.

    Sets the stage to ``"Completed - <reason>"``, records the reason and
    date, resets the alert to normal and appends the notes to findings.
    When the stored notes cannot be decrypted the findings are left alone.

    Raises:
        AccessDeniedError:      Caller is not an admin.
        MissingFieldError:      No reason chosen.
        ValueError:             Reason outside the fixed list.
        InvalidTransitionError: Case already completed.
    """
    session = require_role(session, "mark a case as completed", UserRole.admin)
    if not reason:
        raise MissingFieldError(["completion_reason"])
    reason = CompletionReason(reason)
    today = today or date.today()

    case = case_store.get_case(case_id)
    if is_completed(case):
        raise InvalidTransitionError(case.current_stage, completed_stage_label(reason), [])

    entry = (
        f"Completion Notes: {notes.strip()}"
        if notes and notes.strip()
        else f"Case completed: {reason.value}"
    )
    changes = {
        "current_stage": completed_stage_label(reason),
        "completion_reason": reason.value,
        "completion_date": today,
        "alert": AlertLevel.normal.value,
    }
    if case.notes_unreadable:
        logger.warning("Completing case %s without a findings entry: notes unreadable", case_id)
    else:
        changes["findings"] = case_store.join_findings(case.findings, entry)
    record = case_store.update_case(
        case_id,
        changes,
        expected_version=expected_version,
        actor_id=session.user_id,
        action="case_completed",
    )
    logger.info("Case %s completed (%s)", case_id, reason.value)
    return record


def delete_case(session: Optional[Session], case_id: str) -> None:
    session = require_role(session, "delete cases", *EDITOR_ROLES)
    case_store.delete_case(case_id, actor_id=session.user_id)
