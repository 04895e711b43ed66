"""
Tests for dashboard partitioning, counts, search and report stats.
"""
from datetime import date

import pytest

from workflow import dashboard

CASES = [
    {"id": "c1", "patient_identifier": "JD-001", "classification": "Pulmonary nodule",
     "physician": "Dr. Santos", "current_stage": "New Case", "alert": "normal",
     "date_of_encounter": "2025-01-01"},
    {"id": "c2", "patient_identifier": "MR-002", "classification": "Pulmonary mass",
     "physician": "Dr. Lim", "current_stage": "MDC Review", "alert": "overdue",
     "date_of_encounter": "2025-01-11"},
    {"id": "c3", "patient_identifier": "AB-003", "classification": "Pulmonary mass with extrathoracic malignancy",
     "physician": "Dr. Lim", "current_stage": "Completed - Treatment Done", "alert": "normal",
     "date_of_encounter": "2025-01-01", "completion_date": "2025-01-21"},
    {"id": "c4", "patient_identifier": "JD-004", "classification": "Unspecified",
     "physician": "Dr. Santos", "current_stage": "Biopsy Pending", "alert": "overdue",
     "date_of_encounter": "2025-01-31"},
]


class TestPartition:
    def test_archived_cases_leave_the_active_view(self):
        parts = dashboard.partition(CASES, {"c4"})
        assert [c["id"] for c in parts.active] == ["c1", "c2"]
        assert [c["id"] for c in parts.archived] == ["c4"]
        assert [c["id"] for c in parts.completed] == ["c3"]

    def test_archived_completed_case_counts_as_completed(self):
        parts = dashboard.partition(CASES, {"c3"})
        assert parts.archived == []
        assert [c["id"] for c in parts.completed] == ["c3"]

    def test_counts(self):
        counts = dashboard.case_counts(dashboard.partition(CASES, {"c4"}))
        assert counts == dashboard.CaseCounts(total=3, active=2, overdue=1, completed=1)


class TestSearch:
    def test_empty_term_returns_everything(self):
        assert len(dashboard.search(CASES, "  ")) == 4

    def test_patient_identifier_is_case_insensitive(self):
        hits = dashboard.search(CASES, "jd-")
        assert [c["id"] for c in hits] == ["c1", "c4"]

    @pytest.mark.parametrize(
        "secondary, term, expected",
        [
            ("classification", "MASS", ["c2", "c3"]),
            ("physician", "lim", ["c2", "c3"]),
            ("physician", "mass", []),
        ],
    )
    def test_secondary_field(self, secondary, term, expected):
        assert [c["id"] for c in dashboard.search(CASES, term, secondary)] == expected

    def test_visible_cases_toggle(self):
        active = dashboard.visible_cases(CASES, {"c1"})
        shelved = dashboard.visible_cases(CASES, {"c1"}, show_archived=True)
        assert [c["id"] for c in active] == ["c2", "c4"]
        assert [c["id"] for c in shelved] == ["c1", "c3"]


class TestStats:
    def test_unique_patients(self):
        assert dashboard.unique_patients(CASES + CASES[:1]) == ["AB-003", "JD-001", "JD-004", "MR-002"]

    def test_summary_stats(self):
        stats = dashboard.summary_stats(CASES, today=date(2025, 2, 10))
        # durations: 40, 30, 20 (stopped at completion), 10
        assert stats.total == 4
        assert stats.average_duration_days == 25.0
        assert stats.completion_rate == 0.25

    def test_summary_stats_empty(self):
        assert dashboard.summary_stats([]).total == 0

    def test_classification_family(self):
        assert [dashboard.classification_family(c) for c in CASES] == ["nodule", "mass", "mass", "other"]
