"""
storage/db.py

SQLite backend for the LAKBAY case tracker.

Schema
------
users       — registered identities (provider, patient or admin)
cases       — case metadata (stage, alert, classification, dates) in the clear
case_notes  — encrypted clinical notes per case (symptoms, findings, imaging)
audit_log   — append-only action log

Clinical free text is stored only inside case_notes.encrypted_blob, which is
encrypted by storage.crypto before being persisted.

Usage
-----
    from storage import db
    db.init_db()               # call once at app startup
"""

import logging
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Database location
# ---------------------------------------------------------------------------

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
_DEFAULT_DB_PATH = _PROJECT_ROOT / "data" / "lakbay.db"
_ENV_DB_PATH = "LAKBAY_DB_PATH"


def db_path() -> Path:
    """Return the database file, honouring LAKBAY_DB_PATH at call time."""
    override = os.environ.get(_ENV_DB_PATH)
    return Path(override) if override else _DEFAULT_DB_PATH


def _connect() -> sqlite3.Connection:
    """
    Open (or create) the SQLite database and return a connection.

    :class:`sqlite3.Row` is the row_factory so rows behave like dicts.
    Used as ``with _connect() as conn:`` the block commits on success and
    rolls back on error.
    """
    path = db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


# ---------------------------------------------------------------------------
# Schema initialisation
# ---------------------------------------------------------------------------

_DDL = """
CREATE TABLE IF NOT EXISTS users (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    role           TEXT    NOT NULL CHECK(role IN ('provider', 'patient', 'admin')),
    email          TEXT,                      -- NULL for patients
    full_name      TEXT    NOT NULL DEFAULT '',
    password_blob  TEXT    NOT NULL,          -- "<hex_salt>:<hex_hash>"
    case_number    TEXT,                      -- patients only
    approved       INTEGER NOT NULL DEFAULT 0,
    created_at     TEXT    NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_users_email
    ON users(lower(email)) WHERE email IS NOT NULL;

CREATE TABLE IF NOT EXISTS cases (
    id                 TEXT    PRIMARY KEY,   -- client-chosen, e.g. P-20250105093000-1a2b
    patient_identifier TEXT    NOT NULL,
    patient_name       TEXT    NOT NULL DEFAULT '',
    current_stage      TEXT    NOT NULL,
    classification     TEXT    NOT NULL,
    date_of_encounter  TEXT    NOT NULL,      -- ISO date
    physician          TEXT    NOT NULL DEFAULT '',
    alert              TEXT    NOT NULL DEFAULT 'normal'
                           CHECK(alert IN ('normal', 'warning', 'overdue')),
    completion_reason  TEXT,
    completion_date    TEXT,
    version            INTEGER NOT NULL DEFAULT 1,
    created_at         TEXT    NOT NULL,
    updated_at         TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_cases_patient ON cases(patient_identifier);

CREATE TABLE IF NOT EXISTS case_notes (
    case_id        TEXT PRIMARY KEY REFERENCES cases(id) ON DELETE CASCADE,
    encrypted_blob TEXT NOT NULL              -- Fernet token from crypto.py
);

CREATE TABLE IF NOT EXISTS audit_log (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id   INTEGER,                        -- NULL for system actions
    action    TEXT    NOT NULL,
    case_id   TEXT,
    target_user_id INTEGER,                  -- user an admin action applied to
    timestamp TEXT    NOT NULL
);
"""


def init_db() -> None:
    """
    Create all tables if they do not already exist.

    Safe to call multiple times (idempotent).
    """
    with _connect() as conn:
        conn.executescript(_DDL)
        audit_cols = {r["name"] for r in conn.execute("PRAGMA table_info(audit_log)")}
        if "target_user_id" not in audit_cols:
            conn.execute("ALTER TABLE audit_log ADD COLUMN target_user_id INTEGER")
    logger.info("Database initialised at %s", db_path())


def _now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(tz=timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# User operations
# ---------------------------------------------------------------------------


def insert_user(
    role: str,
    password_blob: str,
    *,
    email: str | None = None,
    full_name: str = "",
    case_number: str | None = None,
    approved: bool = False,
) -> dict[str, Any]:
    """
    Insert a new user and return the created row (without the password blob).

    Raises:
        sqlite3.IntegrityError: If the email is already registered.
    """
    now = _now()
    with _connect() as conn:
        cur = conn.execute(
            """
            INSERT INTO users
                (role, email, full_name, password_blob, case_number, approved, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (role, email, full_name, password_blob, case_number, int(approved), now),
        )
        user_id = cur.lastrowid
        append_audit(user_id, "user_created", _conn=conn)
    logger.info("Created user id=%d role=%s approved=%s", user_id, role, approved)

    return {
        "id": user_id,
        "role": role,
        "email": email,
        "full_name": full_name,
        "case_number": case_number,
        "approved": approved,
        "created_at": now,
    }


def find_users(
    role: str,
    *,
    email: str | None = None,
    full_name: str | None = None,
) -> list[dict[str, Any]]:
    """
    Return user rows (including ``password_blob``) for *role*, matched
    case-insensitively on *email* or *full_name*.  Oldest first.
    """
    sql = "SELECT * FROM users WHERE role = ?"
    params: list[Any] = [role]
    if email is not None:
        sql += " AND lower(email) = lower(?)"
        params.append(email.strip())
    if full_name is not None:
        sql += " AND lower(trim(full_name)) = lower(?)"
        params.append(full_name.strip())
    sql += " ORDER BY id ASC"

    with _connect() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [dict(r) for r in rows]


def get_user(user_id: int) -> dict[str, Any] | None:
    with _connect() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return dict(row) if row else None


def list_users() -> list[dict[str, Any]]:
    with _connect() as conn:
        rows = conn.execute("SELECT * FROM users ORDER BY created_at DESC").fetchall()
    return [dict(r) for r in rows]


def update_user(
    user_id: int,
    *,
    actor_id: int | None = None,
    action: str | None = None,
    **fields: Any,
) -> int:
    """
    Update ``approved`` and/or ``case_number`` for a user.

    With *action* an audit entry naming the user is written in the same
    transaction.

    Returns:
        Number of rows changed (0 when the user does not exist).
    """
    allowed = {"approved", "case_number"}
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update user columns: {sorted(unknown)}")
    if not fields:
        return 0

    assignments = ", ".join(f"{col} = ?" for col in fields)
    params = [int(v) if col == "approved" else v for col, v in fields.items()]
    with _connect() as conn:
        cur = conn.execute(
            f"UPDATE users SET {assignments} WHERE id = ?",
            (*params, user_id),
        )
        if cur.rowcount and action:
            append_audit(actor_id, action, target_user_id=user_id, _conn=conn)
    return cur.rowcount


def delete_user(user_id: int, *, actor_id: int | None = None, action: str | None = None) -> int:
    with _connect() as conn:
        cur = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        if cur.rowcount and action:
            append_audit(actor_id, action, target_user_id=user_id, _conn=conn)
    return cur.rowcount


# ---------------------------------------------------------------------------
# Case operations
# ---------------------------------------------------------------------------

_CASE_COLUMNS = (
    "patient_identifier",
    "patient_name",
    "current_stage",
    "classification",
    "date_of_encounter",
    "physician",
    "alert",
    "completion_reason",
    "completion_date",
)

_CASE_SELECT = """
    SELECT c.*, n.encrypted_blob
    FROM cases c
    LEFT JOIN case_notes n ON n.case_id = c.id
"""


def insert_case(
    case_id: str,
    fields: dict[str, Any],
    notes_blob: str,
    *,
    actor_id: int | None = None,
) -> dict[str, Any]:
    """
    Insert a case row, its encrypted notes and the ``case_created`` audit
    entry in one transaction.

    Raises:
        sqlite3.IntegrityError: If *case_id* already exists.
    """
    now = _now()
    row = {col: fields.get(col) for col in _CASE_COLUMNS}
    row["alert"] = row["alert"] or "normal"

    with _connect() as conn:
        conn.execute(
            f"""
            INSERT INTO cases (id, {", ".join(_CASE_COLUMNS)}, version, created_at, updated_at)
            VALUES (?, {", ".join("?" for _ in _CASE_COLUMNS)}, 1, ?, ?)
            """,
            (case_id, *row.values(), now, now),
        )
        conn.execute(
            "INSERT INTO case_notes (case_id, encrypted_blob) VALUES (?, ?)",
            (case_id, notes_blob),
        )
        append_audit(actor_id, "case_created", case_id=case_id, _conn=conn)
    logger.info("Created case id=%s patient=%s", case_id, row["patient_identifier"])

    return {"id": case_id, **row, "version": 1, "created_at": now, "updated_at": now,
            "encrypted_blob": notes_blob}


def select_cases(
    *,
    patient_identifier: str | None = None,
    patient_name: str | None = None,
    physician: str | None = None,
) -> list[dict[str, Any]]:
    """
    Return case rows joined with their encrypted notes, newest encounter first.

    *patient_name* is matched exactly (case-sensitive); *physician*
    case-insensitively.
    """
    sql = _CASE_SELECT + " WHERE 1 = 1"
    params: list[Any] = []
    if patient_identifier is not None:
        sql += " AND c.patient_identifier = ?"
        params.append(patient_identifier)
    if patient_name is not None:
        sql += " AND c.patient_name = ?"
        params.append(patient_name)
    if physician is not None:
        sql += " AND lower(c.physician) = lower(?)"
        params.append(physician)
    sql += " ORDER BY c.date_of_encounter DESC, c.created_at DESC"

    with _connect() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [dict(r) for r in rows]


def get_case_row(case_id: str) -> dict[str, Any] | None:
    with _connect() as conn:
        row = conn.execute(_CASE_SELECT + " WHERE c.id = ?", (case_id,)).fetchone()
    return dict(row) if row else None


def update_case_row(
    case_id: str,
    fields: dict[str, Any],
    *,
    notes_blob: str | None = None,
    expected_version: int | None = None,
    actor_id: int | None = None,
    action: str | None = None,
) -> int:
    """
    Apply *fields* (and optionally replace the notes blob) to a case,
    bumping its version.  With *action* the audit entry is written in the
    same transaction.

    With *expected_version* the update only happens when the stored version
    still matches; otherwise it is last-write-wins.

    Returns:
        Number of case rows changed (0 = missing case or version mismatch).
    """
    unknown = set(fields) - set(_CASE_COLUMNS)
    if unknown:
        raise ValueError(f"Cannot update case columns: {sorted(unknown)}")

    assignments = [f"{col} = ?" for col in fields]
    assignments += ["version = version + 1", "updated_at = ?"]
    sql = f"UPDATE cases SET {', '.join(assignments)} WHERE id = ?"
    params: list[Any] = [*fields.values(), _now(), case_id]
    if expected_version is not None:
        sql += " AND version = ?"
        params.append(expected_version)

    with _connect() as conn:
        cur = conn.execute(sql, params)
        changed = cur.rowcount
        if changed and notes_blob is not None:
            conn.execute(
                """
                INSERT INTO case_notes (case_id, encrypted_blob) VALUES (?, ?)
                ON CONFLICT(case_id) DO UPDATE SET encrypted_blob = excluded.encrypted_blob
                """,
                (case_id, notes_blob),
            )
        if changed and action:
            append_audit(actor_id, action, case_id=case_id, _conn=conn)
    return changed


def delete_case_row(case_id: str, *, actor_id: int | None = None, action: str | None = None) -> int:
    with _connect() as conn:
        cur = conn.execute("DELETE FROM cases WHERE id = ?", (case_id,))
        if cur.rowcount and action:
            append_audit(actor_id, action, case_id=case_id, _conn=conn)
    return cur.rowcount


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


def append_audit(
    user_id: int | None,
    action: str,
    case_id: str | None = None,
    *,
    target_user_id: int | None = None,
    _conn: sqlite3.Connection | None = None,
) -> None:
    """
    Append an entry to the append-only audit log.

    Pass *_conn* to join the caller's transaction; otherwise a connection is
    opened for this entry alone.
    """
    sql = (
        "INSERT INTO audit_log (user_id, action, case_id, target_user_id, timestamp) "
        "VALUES (?, ?, ?, ?, ?)"
    )
    params = (user_id, action, case_id, target_user_id, _now())

    if _conn is not None:
        _conn.execute(sql, params)
    else:
        with _connect() as conn:
            conn.execute(sql, params)

    logger.debug(
        "Audit: user=%s action=%s case=%s target=%s", user_id, action, case_id, target_user_id
    )


def list_audit(case_id: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
    sql = "SELECT * FROM audit_log"
    params: list[Any] = []
    if case_id is not None:
        sql += " WHERE case_id = ?"
        params.append(case_id)
    sql += " ORDER BY id DESC LIMIT ?"
    params.append(limit)
    with _connect() as conn:
        rows = conn.execute(sql, params).fetchall()
    return [dict(r) for r in rows]
