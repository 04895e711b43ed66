"""
workflow/lifecycle.py

Case lifecycle: completion test, alert reading, timeline position and the
stage transition table.

Every function accepts either a ``CaseRecord`` or a plain mapping with the
same keys, so pages can pass whatever they loaded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from storage.errors import InvalidTransitionError
from storage.models import COMPLETED_PREFIX, AlertLevel, Stage

# ---------------------------------------------------------------------------
# Timeline slots (Benign/Malignant share the "Results" slot)
# ---------------------------------------------------------------------------

TIMELINE_LABELS: list[str] = [
    "New Case",
    "Initial Imaging",
    "Biopsy Pending",
    "Biopsy Performed",
    "MDC Review",
    "Imaging Follow-up",
    "Results",
    "Treatment Plan",
]

_STAGE_SLOT: dict[Stage, int] = {
    Stage.new_case: 0,
    Stage.initial_imaging: 1,
    Stage.biopsy_pending: 2,
    Stage.biopsy_performed: 3,
    Stage.mdc_review: 4,
    Stage.imaging_follow_up: 5,
    Stage.benign_result: 6,
    Stage.malignant_result: 6,
    Stage.treatment_plan: 7,
}

# ---------------------------------------------------------------------------
# Transition table: allowed next stages per current stage.
# Completion is not listed; it goes through complete_case from any open stage.
# ---------------------------------------------------------------------------

TRANSITIONS: dict[Stage, tuple[Stage, ...]] = {
    Stage.new_case: (
        Stage.initial_imaging,
        Stage.biopsy_pending,
        Stage.mdc_review,
        Stage.imaging_follow_up,
    ),
    Stage.initial_imaging: (
        Stage.biopsy_pending,
        Stage.mdc_review,
        Stage.imaging_follow_up,
    ),
    Stage.biopsy_pending: (
        Stage.biopsy_performed,
        Stage.mdc_review,
    ),
    Stage.biopsy_performed: (
        Stage.benign_result,
        Stage.malignant_result,
        Stage.mdc_review,
    ),
    Stage.mdc_review: (
        Stage.biopsy_pending,
        Stage.imaging_follow_up,
        Stage.benign_result,
        Stage.malignant_result,
        Stage.treatment_plan,
    ),
    Stage.imaging_follow_up: (
        Stage.initial_imaging,
        Stage.biopsy_pending,
        Stage.mdc_review,
    ),
    Stage.benign_result: (
        Stage.imaging_follow_up,
        Stage.mdc_review,
    ),
    Stage.malignant_result: (
        Stage.mdc_review,
        Stage.treatment_plan,
    ),
    Stage.treatment_plan: (
        Stage.mdc_review,
    ),
}


@dataclass(frozen=True)
class TimelineStep:
    label: str
    status: str  # "completed" | "ongoing" | "pending"


def _field(case: Any, key: str, default: Any = None) -> Any:
    if case is None:
        return default
    if isinstance(case, Mapping):
        return case.get(key, default)
    return getattr(case, key, default)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def parse_stage(label: Any) -> Optional[Stage]:
    """Return the ``Stage`` for a label (exact, then case-insensitive), or ``None``."""
    if isinstance(label, Stage):
        return label
    text = str(label or "").strip()
    try:
        return Stage(text)
    except ValueError:
        pass
    lowered = text.lower()
    for stage in Stage:
        if stage.value.lower() == lowered:
            return stage
    return None


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


def is_completed(case: Any) -> bool:
    """
    A case is terminal when its stage starts with "Completed" or it carries a
    completion reason or a completion date.
    """
    stage = str(_field(case, "current_stage") or "")
    return (
        stage.startswith(COMPLETED_PREFIX)
        or _present(_field(case, "completion_reason"))
        or _present(_field(case, "completion_date"))
    )


def alert_level(case: Any) -> AlertLevel:
    """Stored alert as an ``AlertLevel``; empty or unknown values read as normal."""
    raw = str(_field(case, "alert") or "").strip().lower()
    try:
        return AlertLevel(raw)
    except ValueError:
        return AlertLevel.normal


def stage_index(label: Any) -> Optional[int]:
    """Timeline slot for a stage label, ``None`` when the label is unknown."""
    stage = parse_stage(label)
    return _STAGE_SLOT.get(stage) if stage is not None else None


def timeline(case: Any) -> list[TimelineStep]:
    """
    Eight timeline steps for display.

    Steps before the current slot are completed, the current slot is ongoing,
    later slots pending.  Completed cases show every step completed; unknown
    stages show every step pending.
    """
    if is_completed(case):
        return [TimelineStep(label, "completed") for label in TIMELINE_LABELS]

    idx = stage_index(_field(case, "current_stage"))
    steps = []
    for pos, label in enumerate(TIMELINE_LABELS):
        if idx is None or pos > idx:
            status = "pending"
        elif pos == idx:
            status = "ongoing"
        else:
            status = "completed"
        steps.append(TimelineStep(label, status))
    return steps


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def duration_days(case: Any, today: Optional[date] = None) -> int:
    """
    Days elapsed since the encounter.  Completed cases stop counting at their
    completion date.  Missing or unreadable dates give 0.
    """
    start = _as_date(_field(case, "date_of_encounter"))
    if start is None:
        return 0
    end = _as_date(_field(case, "completion_date")) or today or date.today()
    return max((end - start).days, 0)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def allowed_next_stages(current: Any) -> list[Stage]:
    """Stages a case may move to from *current*; empty for completed or unknown stages."""
    if str(current or "").startswith(COMPLETED_PREFIX):
        return []
    stage = parse_stage(current)
    if stage is None:
        # Legacy free-text stage: let it be re-anchored anywhere in the workflow.
        return list(Stage)
    return list(TRANSITIONS[stage])


def check_transition(current: Any, requested: Any) -> Stage:
    """
    Validate moving a case from *current* to *requested*.

    Staying on the same stage is always allowed.

    Returns:
        The requested ``Stage``.

    Raises:
        InvalidTransitionError: completed labels, unknown labels and moves
            outside the transition table.
    """
    allowed = allowed_next_stages(current)
    allowed_labels = [s.value for s in allowed]
    requested_stage = parse_stage(requested)

    if requested_stage is None:
        raise InvalidTransitionError(str(current), str(requested), allowed_labels)
    if parse_stage(current) == requested_stage:
        return requested_stage
    if requested_stage not in allowed:
        raise InvalidTransitionError(str(current), requested_stage.value, allowed_labels)
    return requested_stage
