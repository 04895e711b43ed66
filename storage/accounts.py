"""
storage/accounts.py

Credential store: sign-up, sign-in and the admin's user management.

Password storage
----------------
Passwords are hashed with ``hashlib.pbkdf2_hmac`` (SHA-256, 260 000
iterations, 16-byte random salt) and stored as ``"<hex_salt>:<hex_hash>"``
in ``users.password_blob``.  Plaintext never reaches the database.

Identity rules
--------------
- provider / admin sign in with email + password (email compared
  case-insensitively).
- patients sign in with full name (case-insensitive) + password.  At sign-up
  the full name must match a case's patient name exactly, as typed (no case
  folding, no trimming), and the case's patient identifier becomes the
  patient's case number.
- new accounts start unapproved; an admin approves them.
- the superuser (LAKBAY_SUPERUSER_EMAIL / LAKBAY_SUPERUSER_PASSWORD) is
  recognised before any lookup, created as an approved admin on first use
  and always admitted.
"""

import hashlib
import hmac
import logging
import os
import sqlite3

from storage import db as _db
from storage.errors import (
    DuplicateAccountError,
    MissingFieldError,
    NoMatchingCaseError,
    NoMatchingRecordError,
    PendingApprovalError,
    RoleNotSelectedError,
    UserNotFoundError,
    store_guard,
)
from storage.models import UserRecord, UserRole

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Superuser bootstrap
# ---------------------------------------------------------------------------

_DEFAULT_SUPERUSER_EMAIL = "navigator@lakbay.ph"
_DEFAULT_SUPERUSER_PASSWORD = "lakbay-superuser"


def superuser_credentials() -> tuple[str, str]:
    """Return the (email, password) pair of the bootstrap superuser."""
    return (
        os.environ.get("LAKBAY_SUPERUSER_EMAIL", _DEFAULT_SUPERUSER_EMAIL),
        os.environ.get("LAKBAY_SUPERUSER_PASSWORD", _DEFAULT_SUPERUSER_PASSWORD),
    )


def _is_superuser(email: str, password: str) -> bool:
    su_email, su_password = superuser_credentials()
    return email.strip().lower() == su_email.lower() and hmac.compare_digest(
        password.encode("utf-8"), su_password.encode("utf-8")
    )


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

_ITERATIONS = 260_000
_HASH_ALG = "sha256"


def _hash_password(password: str, salt: bytes | None = None) -> tuple[bytes, bytes]:
    """
    Hash *password* with PBKDF2-HMAC-SHA256.

    Returns:
        ``(salt, dk)`` where both are raw bytes.
    """
    if salt is None:
        salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac(_HASH_ALG, password.encode("utf-8"), salt, _ITERATIONS)
    return salt, dk


def _password_blob(password: str) -> str:
    salt, dk = _hash_password(password)
    return f"{salt.hex()}:{dk.hex()}"


def _verify_password(password: str, blob: str) -> bool:
    """
    Verify *password* against a stored ``"<hex_salt>:<hex_hash>"`` blob.
    Uses ``hmac.compare_digest`` to prevent timing attacks.
    """
    try:
        hex_salt, hex_hash = blob.split(":", 1)
        salt = bytes.fromhex(hex_salt)
    except ValueError:
        return False
    _, dk = _hash_password(password, salt)
    return hmac.compare_digest(dk.hex(), hex_hash)


# ---------------------------------------------------------------------------
# Form validation
# ---------------------------------------------------------------------------


def _resolve_role(role: UserRole | str | None) -> UserRole:
    if not role:
        raise RoleNotSelectedError()
    try:
        return UserRole(role)
    except ValueError as exc:
        raise RoleNotSelectedError() from exc


def _require(**fields: str | None) -> None:
    missing = [name for name, value in fields.items() if not (value or "").strip()]
    if missing:
        raise MissingFieldError(missing)


def _to_record(row: dict) -> UserRecord:
    data = {k: v for k, v in row.items() if k != "password_blob"}
    return UserRecord(**data)


# ---------------------------------------------------------------------------
# Sign-up / sign-in
# ---------------------------------------------------------------------------


def sign_up(
    role: UserRole | str | None,
    *,
    email: str = "",
    password: str = "",
    full_name: str = "",
) -> UserRecord:
    """
    Register a new, unapproved account.

    Raises:
        RoleNotSelectedError:  No role chosen.
        MissingFieldError:     A required field is empty.
        NoMatchingCaseError:   Patient name matches no case (nothing is created).
        DuplicateAccountError: Email (or patient name + case) already registered.
    """
    user_role = _resolve_role(role)

    if user_role is UserRole.patient:
        _require(full_name=full_name, password=password)

        with store_guard("look up your case"):
            matches = _db.select_cases(patient_name=full_name)
        if not matches:
            logger.info("Patient sign-up rejected: no case for the given name")
            raise NoMatchingCaseError(full_name)
        case_number = matches[0]["patient_identifier"]

        with store_guard("check existing accounts"):
            existing = _db.find_users(user_role.value, full_name=full_name)
        if any(u.get("case_number") == case_number for u in existing):
            raise DuplicateAccountError(full_name)

        with store_guard("create your account"):
            row = _db.insert_user(
                user_role.value,
                _password_blob(password),
                full_name=full_name,
                case_number=case_number,
            )
        logger.info("Registered patient id=%d for case %s", row["id"], case_number)
        return UserRecord(**row)

    _require(email=email, password=password)
    address = email.strip()
    if address.lower() == superuser_credentials()[0].lower():
        raise DuplicateAccountError(address)

    with store_guard("create your account"):
        try:
            row = _db.insert_user(
                user_role.value,
                _password_blob(password),
                email=address,
                full_name=full_name.strip(),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateAccountError(address) from exc

    logger.info("Registered %s id=%d", user_role.value, row["id"])
    return UserRecord(**row)


def _bootstrap_superuser(email: str) -> UserRecord:
    with store_guard("load the administrator account"):
        rows = _db.find_users(UserRole.admin.value, email=email)
        if rows:
            return _to_record({**rows[0], "approved": True})

        row = _db.insert_user(
            UserRole.admin.value,
            _password_blob(superuser_credentials()[1]),
            email=superuser_credentials()[0],
            full_name="System Navigator",
            approved=True,
        )
    logger.warning("Bootstrap superuser account created (id=%d)", row["id"])
    return UserRecord(**row)


def sign_in(
    role: UserRole | str | None,
    *,
    email: str = "",
    password: str = "",
    full_name: str = "",
) -> UserRecord:
    """
    Authenticate and return the signed-in ``UserRecord``.

    The first matching account wins.  An unapproved account is rejected
    before its password is checked.

    Raises:
        RoleNotSelectedError, MissingFieldError, NoMatchingRecordError,
        PendingApprovalError
    """
    user_role = _resolve_role(role)

    if user_role is not UserRole.patient and email and password and _is_superuser(email, password):
        user = _bootstrap_superuser(email)
        with store_guard("sign you in"):
            _db.append_audit(user.id, "login_success")
        return user

    if user_role is UserRole.patient:
        _require(full_name=full_name, password=password)
        with store_guard("sign you in"):
            rows = _db.find_users(user_role.value, full_name=full_name)
    else:
        _require(email=email, password=password)
        with store_guard("sign you in"):
            rows = _db.find_users(user_role.value, email=email)

    if not rows:
        logger.debug("sign_in: no %s account matched", user_role.value)
        raise NoMatchingRecordError()

    row = rows[0]
    if not row.get("approved"):
        raise PendingApprovalError()

    if not _verify_password(password, row.get("password_blob") or ""):
        logger.debug("sign_in: wrong password for user id=%d", row["id"])
        with store_guard("sign you in"):
            _db.append_audit(row["id"], "login_failure")
        raise NoMatchingRecordError()

    with store_guard("sign you in"):
        _db.append_audit(row["id"], "login_success")
    logger.info("Authenticated user id=%d (role=%s)", row["id"], user_role.value)
    return _to_record(row)


# ---------------------------------------------------------------------------
# Admin user management
# ---------------------------------------------------------------------------


def list_users() -> list[UserRecord]:
    with store_guard("load users"):
        rows = _db.list_users()
    return [_to_record(r) for r in rows]


def pending_users() -> list[UserRecord]:
    return [u for u in list_users() if not u.approved]


def approved_users() -> list[UserRecord]:
    return [u for u in list_users() if u.approved]


def approve_user(user_id: int, actor_id: int | None = None) -> None:
    with store_guard("approve user"):
        changed = _db.update_user(user_id, approved=True, actor_id=actor_id, action="user_approved")
    if not changed:
        raise UserNotFoundError(user_id)
    logger.info("Approved user id=%d", user_id)


def reject_user(user_id: int, actor_id: int | None = None) -> None:
    """Reject a sign-up request by deleting the account."""
    with store_guard("reject user"):
        changed = _db.delete_user(user_id, actor_id=actor_id, action="user_rejected")
    if not changed:
        raise UserNotFoundError(user_id)
    logger.info("Rejected (deleted) user id=%d", user_id)


def assign_case_number(user_id: int, case_number: str, actor_id: int | None = None) -> UserRecord:
    """
    Assign or change a patient's case number.

    Raises:
        UserNotFoundError:  No such user.
        ValueError:         The account is not a patient account.
        MissingFieldError:  *case_number* is blank.
    """
    with store_guard("load user"):
        row = _db.get_user(user_id)
    if row is None:
        raise UserNotFoundError(user_id)
    if row["role"] != UserRole.patient.value:
        raise ValueError("Only patient users can be assigned a case ID.")

    trimmed = (case_number or "").strip()
    if not trimmed:
        raise MissingFieldError(["case_number"])

    with store_guard("assign case ID"):
        _db.update_user(
            user_id, case_number=trimmed, actor_id=actor_id, action="case_number_assigned"
        )
    logger.info("Assigned case number %s to user id=%d", trimmed, user_id)
    return _to_record({**row, "case_number": trimmed})
