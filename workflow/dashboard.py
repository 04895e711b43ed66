"""
workflow/dashboard.py

View-model logic shared by the provider and admin dashboards and the
reports page: archive partitioning, headline counts, search and summary
statistics.  Everything here works on lists already loaded in memory.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional

from storage.models import AlertLevel, Classification
from workflow.lifecycle import _field, alert_level, duration_days, is_completed


@dataclass
class CasePartition:
    active: list
    completed: list
    archived: list


@dataclass(frozen=True)
class CaseCounts:
    total: int
    active: int
    overdue: int
    completed: int


@dataclass(frozen=True)
class SummaryStats:
    total: int
    average_duration_days: float
    completion_rate: float  # 0..1


def partition(cases: Iterable[Any], archived_ids: Iterable[str] = ()) -> CasePartition:
    """
    Split cases into active (not archived, not completed), completed, and
    archived (archived but not completed).
    """
    archived_set = {str(x) for x in archived_ids}
    active, completed, archived = [], [], []
    for case in cases:
        if is_completed(case):
            completed.append(case)
        elif str(_field(case, "id")) in archived_set:
            archived.append(case)
        else:
            active.append(case)
    return CasePartition(active=active, completed=completed, archived=archived)


def case_counts(parts: CasePartition) -> CaseCounts:
    overdue = sum(1 for c in parts.active if alert_level(c) is AlertLevel.overdue)
    return CaseCounts(
        total=len(parts.active) + len(parts.completed),
        active=len(parts.active),
        overdue=overdue,
        completed=len(parts.completed),
    )


def search(cases: Iterable[Any], term: str, secondary: str = "classification") -> list:
    """
    Case-insensitive substring match on the patient identifier and one
    *secondary* field (``classification`` for providers, ``physician`` for admins).
    """
    needle = (term or "").strip().lower()
    if not needle:
        return list(cases)
    return [
        c
        for c in cases
        if needle in str(_field(c, "patient_identifier") or "").lower()
        or needle in str(_field(c, secondary) or "").lower()
    ]


def visible_cases(
    cases: Iterable[Any],
    archived_ids: Iterable[str],
    term: str = "",
    *,
    show_archived: bool = False,
    secondary: str = "classification",
) -> list:
    """The table rows a dashboard shows: active cases, or archived + completed ones."""
    parts = partition(cases, archived_ids)
    base = parts.archived + parts.completed if show_archived else parts.active
    return search(base, term, secondary)


def unique_patients(cases: Iterable[Any]) -> list[str]:
    return sorted({str(p) for p in (_field(c, "patient_identifier") for c in cases) if p})


def classification_family(case: Any) -> str:
    """``"nodule"``, ``"mass"`` or ``"other"`` for report grouping."""
    label = str(_field(case, "classification") or "")
    if label in (Classification.nodule.value, Classification.nodule_with_malignancy.value):
        return "nodule"
    if label in (Classification.mass.value, Classification.mass_with_malignancy.value):
        return "mass"
    return "other"


def summary_stats(cases: Iterable[Any], today: Optional[date] = None) -> SummaryStats:
    items = list(cases)
    if not items:
        return SummaryStats(total=0, average_duration_days=0.0, completion_rate=0.0)
    durations = [duration_days(c, today) for c in items]
    completed = sum(1 for c in items if is_completed(c))
    return SummaryStats(
        total=len(items),
        average_duration_days=round(sum(durations) / len(items), 1),
        completion_rate=completed / len(items),
    )
