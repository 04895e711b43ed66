"""
storage/errors.py

Exception hierarchy for the LAKBAY storage and workflow layers.

Exception Tree::

    LakbayError (base)
    ├── RoleNotSelectedError
    ├── MissingFieldError
    ├── InvalidTransitionError
    ├── NoMatchingRecordError
    ├── NoMatchingCaseError
    ├── CaseNotFoundError
    ├── UnreadableNotesError
    ├── UserNotFoundError
    ├── PendingApprovalError
    ├── AccessDeniedError
    ├── DuplicateAccountError
    └── StoreError
        └── StaleCaseError

Every message is written for the person at the keyboard: pages show
``exc.message`` as-is in a notification.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class LakbayError(Exception):
    """Base exception for all LAKBAY domain errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dict with structured error context.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message: str = message
        self.details: dict = details or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class RoleNotSelectedError(LakbayError):
    """Raised when sign-in/sign-up is attempted without choosing a role."""

    def __init__(self) -> None:
        super().__init__("Please select a role before continuing.")


class MissingFieldError(LakbayError):
    """Raised when one or more required form fields are empty.

    Attributes:
        fields: Names of the missing fields.
    """

    def __init__(self, fields: list[str]) -> None:
        self.fields: list[str] = fields
        super().__init__(
            message=f"Please fill in all required fields: {', '.join(fields)}.",
            details={"missing_fields": fields},
        )


class InvalidTransitionError(LakbayError):
    """Raised when a case is moved to a stage that may not follow its current one."""

    def __init__(self, current: str, requested: str, allowed: list[str]) -> None:
        self.current = current
        self.requested = requested
        self.allowed = allowed
        if allowed:
            hint = f"Allowed next stages: {', '.join(allowed)}."
        else:
            hint = "This case can no longer be progressed."
        super().__init__(
            message=f"Cannot move a case from '{current}' to '{requested}'. {hint}",
            details={"current": current, "requested": requested, "allowed": allowed},
        )


# ---------------------------------------------------------------------------
# Lookup misses
# ---------------------------------------------------------------------------


class NoMatchingRecordError(LakbayError):
    """Raised when sign-in credentials match no account."""

    def __init__(self) -> None:
        super().__init__("No account matches those credentials.")


class NoMatchingCaseError(LakbayError):
    """Raised when a patient signs up with a name that matches no case."""

    def __init__(self, full_name: str) -> None:
        super().__init__(
            message=(
                "No matching case was found for that full name. "
                "Please use the name exactly as registered by your care team."
            ),
            details={"full_name": full_name},
        )


class CaseNotFoundError(LakbayError):
    def __init__(self, case_id: str) -> None:
        self.case_id = case_id
        super().__init__(f"Case {case_id} does not exist.", details={"case_id": case_id})


class UnreadableNotesError(LakbayError):
    """Raised when an edit would rewrite clinical notes that could not be decrypted."""

    def __init__(self, case_id: str) -> None:
        self.case_id = case_id
        super().__init__(
            message=(
                f"The clinical notes of case {case_id} cannot be decrypted, so "
                "symptoms and findings cannot be changed. Check the data key."
            ),
            details={"case_id": case_id},
        )


class UserNotFoundError(LakbayError):
    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} does not exist.", details={"user_id": user_id})


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


class PendingApprovalError(LakbayError):
    """Raised when an account exists but an admin has not approved it yet."""

    def __init__(self) -> None:
        super().__init__("Your account is pending approval by an administrator.")


class AccessDeniedError(LakbayError):
    """Raised when the signed-in role may not perform an action."""

    def __init__(self, action: str, role: str | None) -> None:
        super().__init__(
            message=f"Access restricted: {role or 'guest'} users cannot {action}.",
            details={"action": action, "role": role},
        )


class DuplicateAccountError(LakbayError):
    def __init__(self, email: str) -> None:
        super().__init__(
            message=f"An account for '{email}' already exists.",
            details={"email": email},
        )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class StoreError(LakbayError):
    """Raised when the underlying database operation fails."""

    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        super().__init__(
            message=f"Failed to {operation}. Please try again.",
            details={"operation": operation, "cause": repr(cause) if cause else None},
        )


class StaleCaseError(StoreError):
    """Raised when a conditional update finds the case changed since it was loaded."""

    def __init__(self, case_id: str, expected_version: int) -> None:
        LakbayError.__init__(
            self,
            message=(
                f"Case {case_id} was changed by someone else. "
                "Reload the page and apply your edits again."
            ),
            details={"case_id": case_id, "expected_version": expected_version},
        )


# ---------------------------------------------------------------------------
# Store guard
# ---------------------------------------------------------------------------


@contextmanager
def store_guard(operation: str) -> Iterator[None]:
    """
    Convert ``sqlite3.Error`` raised inside the block into :class:`StoreError`.

    Usage::

        with store_guard("load cases"):
            rows = _db.select_cases()
    """
    try:
        yield
    except sqlite3.Error as exc:
        logger.exception("Store operation failed: %s", operation)
        raise StoreError(operation, exc) from exc
