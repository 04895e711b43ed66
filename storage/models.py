"""
storage/models.py

Pydantic v2 data models for the LAKBAY case tracker.

These models describe the shape of data flowing between the adapters
(accounts.py, cases.py) and the Streamlit pages.  They are NOT ORM models;
persistence is handled entirely by db.py.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class UserRole(str, Enum):
    """The three roles a registered identity can hold."""
    provider = "provider"
    patient = "patient"
    admin = "admin"


class AlertLevel(str, Enum):
    """Caller-set urgency flag on a case. Never derived from dates."""
    normal = "normal"
    warning = "warning"
    overdue = "overdue"


class Stage(str, Enum):
    """Workflow stages of a pulmonary nodule/mass case, in workflow order."""
    new_case = "New Case"
    initial_imaging = "Initial Imaging"
    biopsy_pending = "Biopsy Pending"
    biopsy_performed = "Biopsy Performed"
    mdc_review = "MDC Review"
    imaging_follow_up = "Imaging Follow-up"
    benign_result = "Benign Result"
    malignant_result = "Malignant Result"
    treatment_plan = "Treatment Plan"


class CompletionReason(str, Enum):
    treatment_done = "Treatment Done"
    patient_expired = "Patient Expired"
    patient_opted_out = "Patient Opted Out"
    team_decision = "Team Decision"


class Classification(str, Enum):
    nodule = "Pulmonary nodule"
    nodule_with_malignancy = "Pulmonary nodule with extrathoracic malignancy"
    mass = "Pulmonary mass"
    mass_with_malignancy = "Pulmonary mass with extrathoracic malignancy"
    unspecified = "Unspecified"


class ImagingType(str, Enum):
    chest_xray = "Chest X-ray"
    ct_scan = "CT Scan"
    pet_scan = "PET Scan"
    mri = "MRI"


COMPLETED_PREFIX = "Completed"


def completed_stage_label(reason: CompletionReason | str) -> str:
    """Return the display stage for a completed case, e.g. ``'Completed - Team Decision'``."""
    value = reason.value if isinstance(reason, CompletionReason) else str(reason)
    return f"{COMPLETED_PREFIX} - {value}"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserRecord(BaseModel):
    """A registered identity as stored in the users table (password excluded)."""
    id: int
    role: UserRole
    email: Optional[str] = None
    full_name: str = ""
    case_number: Optional[str] = None
    approved: bool = False
    created_at: str = Field(default="", description="ISO-8601 UTC timestamp.")

    class Config:
        use_enum_values = True

    @property
    def label(self) -> str:
        return self.full_name or self.email or f"User {self.id}"


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


class CaseDraft(BaseModel):
    """Fields captured by the New Case form."""
    patient_identifier: str
    patient_name: str = ""
    date_of_encounter: date = Field(default_factory=date.today)
    physician: str = ""
    classification: Classification | str = Classification.unspecified
    symptoms: str = ""
    findings: str = ""
    imaging_date: Optional[date] = None
    imaging_type: Optional[ImagingType | str] = None

    class Config:
        use_enum_values = True


class CaseRecord(BaseModel):
    """
    One case row joined with its decrypted clinical notes.

    ``symptoms``, ``findings``, ``imaging_date`` and ``imaging_type`` live in
    the encrypted ``case_notes`` table; everything else is plain metadata used
    for filtering and display.
    """
    id: str
    patient_identifier: str
    patient_name: str = ""
    current_stage: str = Stage.new_case.value
    classification: str = Classification.unspecified.value
    date_of_encounter: date
    physician: str = ""
    alert: AlertLevel | str = AlertLevel.normal
    completion_reason: Optional[str] = None
    completion_date: Optional[date] = None
    version: int = 1
    created_at: str = ""
    updated_at: str = ""

    symptoms: str = ""
    findings: str = ""
    imaging_date: Optional[date] = None
    imaging_type: Optional[str] = None
    notes_unreadable: bool = False

    class Config:
        use_enum_values = True


class CaseUpdate(BaseModel):
    """
    Partial edit of a case.  ``None`` means "leave unchanged".

    ``findings`` is a NEW entry to append, never a replacement.
    """
    current_stage: Optional[Stage | str] = None
    alert: Optional[AlertLevel] = None
    classification: Optional[Classification | str] = None
    symptoms: Optional[str] = None
    findings: Optional[str] = None
    physician: Optional[str] = None

    class Config:
        use_enum_values = True


class CaseFilter(BaseModel):
    patient_identifier: Optional[str] = None
    patient_name: Optional[str] = None
    physician: Optional[str] = None


class AuditEntry(BaseModel):
    """One row of the append-only audit log."""
    id: int
    user_id: Optional[int] = None
    action: str
    case_id: Optional[str] = None
    target_user_id: Optional[int] = None
    timestamp: str
