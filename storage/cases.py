"""
storage/cases.py

Case store: CRUD over the ``cases`` table and its encrypted notes.

Responsibilities
----------------
- Generating client-side case ids (``P-<utc timestamp>-<4 hex>``).
- Splitting a case into plain metadata columns and the encrypted notes blob,
  and joining them back into a ``CaseRecord``.
- Conditional updates: pass ``expected_version`` to refuse overwriting a
  case changed since it was loaded.  Without it, last write wins.

No workflow rules live here; stage transitions and role checks belong to
``workflow.editor``.
"""

from __future__ import annotations

import logging
import secrets
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from cryptography.fernet import InvalidToken

from storage import db as _db
from storage.crypto import open_notes, seal_notes
from storage.errors import CaseNotFoundError, StaleCaseError, UnreadableNotesError, store_guard
from storage.models import AlertLevel, AuditEntry, CaseDraft, CaseFilter, CaseRecord, Stage

logger = logging.getLogger(__name__)

_NOTE_FIELDS = ("symptoms", "findings", "imaging_date", "imaging_type")
_EMPTY_NOTES: dict[str, Any] = {
    "symptoms": "",
    "findings": "",
    "imaging_date": None,
    "imaging_type": None,
}


def new_case_id(now: datetime | None = None) -> str:
    """Return a fresh case id, e.g. ``P-20250105093000-1a2b``."""
    stamp = (now or datetime.now(tz=timezone.utc)).strftime("%Y%m%d%H%M%S")
    return f"P-{stamp}-{secrets.token_hex(2)}"


def _plain(value: Any) -> Any:
    """Convert enums and dates to the strings SQLite stores."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


def _to_record(row: dict[str, Any]) -> CaseRecord:
    data = {k: v for k, v in row.items() if k != "encrypted_blob"}
    blob = row.get("encrypted_blob")
    notes = dict(_EMPTY_NOTES)
    if blob:
        try:
            notes.update(open_notes(blob))
        except InvalidToken:
            logger.error("Notes for case %s could not be decrypted", row.get("id"))
            data["notes_unreadable"] = True
    notes = {k: notes.get(k) for k in _NOTE_FIELDS}
    notes["symptoms"] = notes["symptoms"] or ""
    notes["findings"] = notes["findings"] or ""
    return CaseRecord(**data, **notes)


def join_findings(existing: str | None, entry: str | None) -> str:
    """Append *entry* to the findings text, separated by a blank line."""
    existing = (existing or "").rstrip()
    entry = (entry or "").strip()
    if not entry:
        return existing
    return f"{existing}\n\n{entry}" if existing else entry


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def list_cases(case_filter: CaseFilter | None = None) -> list[CaseRecord]:
    """Return every case matching *case_filter* (all cases when ``None``), newest encounter first."""
    f = case_filter or CaseFilter()
    with store_guard("load cases"):
        rows = _db.select_cases(
            patient_identifier=f.patient_identifier,
            patient_name=f.patient_name,
            physician=f.physician,
        )
    return [_to_record(r) for r in rows]


def cases_for_patient(patient_identifier: str) -> list[CaseRecord]:
    return list_cases(CaseFilter(patient_identifier=patient_identifier))


def get_case(case_id: str) -> CaseRecord:
    with store_guard("load case"):
        row = _db.get_case_row(case_id)
    if row is None:
        raise CaseNotFoundError(case_id)
    return _to_record(row)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def create_case(draft: CaseDraft, actor_id: int | None = None) -> CaseRecord:
    """
    Insert a new case at stage "New Case" with a normal alert.

    Returns:
        The stored ``CaseRecord``.
    """
    case_id = new_case_id()
    fields = {
        "patient_identifier": draft.patient_identifier.strip(),
        "patient_name": draft.patient_name.strip(),
        "current_stage": Stage.new_case.value,
        "classification": _plain(draft.classification),
        "date_of_encounter": _plain(draft.date_of_encounter),
        "physician": draft.physician.strip(),
        "alert": AlertLevel.normal.value,
        "completion_reason": None,
        "completion_date": None,
    }
    notes = {
        "symptoms": draft.symptoms,
        "findings": draft.findings,
        "imaging_date": _plain(draft.imaging_date),
        "imaging_type": _plain(draft.imaging_type),
    }

    with store_guard("create case"):
        row = _db.insert_case(case_id, fields, seal_notes(notes), actor_id=actor_id)
    return _to_record(row)


def update_case(
    case_id: str,
    changes: dict[str, Any],
    *,
    expected_version: int | None = None,
    actor_id: int | None = None,
    action: str = "case_updated",
) -> CaseRecord:
    """
    Write *changes* (column and/or note fields) straight through to the store.

    Note fields replace their stored value; callers append to findings with
    :func:`join_findings` first.  Notes that could not be decrypted are never
    rewritten.

    Raises:
        CaseNotFoundError:    The case does not exist.
        StaleCaseError:       *expected_version* no longer matches.
        UnreadableNotesError: Note fields changed on a case whose notes are unreadable.
    """
    current = get_case(case_id)

    columns = {k: _plain(v) for k, v in changes.items() if k not in _NOTE_FIELDS}
    note_changes = {k: _plain(v) for k, v in changes.items() if k in _NOTE_FIELDS}

    if note_changes and current.notes_unreadable:
        logger.warning("Refusing to overwrite unreadable notes of case %s", case_id)
        raise UnreadableNotesError(case_id)
    notes_blob = None
    if note_changes:
        merged = {k: _plain(getattr(current, k)) for k in _NOTE_FIELDS}
        merged.update(note_changes)
        notes_blob = seal_notes(merged)

    with store_guard("update case"):
        changed = _db.update_case_row(
            case_id,
            columns,
            notes_blob=notes_blob,
            expected_version=expected_version,
            actor_id=actor_id,
            action=action,
        )
    if not changed:
        if expected_version is not None:
            logger.warning(
                "Stale update rejected for case %s (expected version %d)",
                case_id, expected_version,
            )
            raise StaleCaseError(case_id, expected_version)
        raise CaseNotFoundError(case_id)

    logger.info("Updated case %s fields=%s", case_id, sorted(changes))
    return get_case(case_id)


def delete_case(case_id: str, actor_id: int | None = None) -> None:
    """Permanently remove a case and its notes."""
    with store_guard("delete case"):
        changed = _db.delete_case_row(case_id, actor_id=actor_id, action="case_deleted")
    if not changed:
        raise CaseNotFoundError(case_id)
    logger.info("Deleted case %s", case_id)


def case_history(case_id: str, limit: int = 50) -> list[AuditEntry]:
    """Audit entries for *case_id*, newest first."""
    with store_guard("load case history"):
        rows = _db.list_audit(case_id, limit)
    return [AuditEntry(**r) for r in rows]
