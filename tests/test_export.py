"""
Tests for the CSV export and the PDF table reports.
"""
import csv
import io
from datetime import date

import pytest

from storage import export

TODAY = date(2025, 2, 10)


def _case(**overrides):
    case = {
        "id": "P-20250101000000-abcd",
        "patient_identifier": "JD-001",
        "current_stage": "MDC Review",
        "classification": "Pulmonary nodule",
        "date_of_encounter": "2025-01-01",
        "physician": "Dr. Santos",
        "alert": "warning",
        "symptoms": "Cough",
        "findings": "8 mm nodule",
    }
    case.update(overrides)
    return case


class TestCsv:
    def test_no_cases_gives_no_file(self):
        assert export.cases_to_csv([], TODAY) is None

    def test_n_cases_give_n_plus_one_lines(self):
        rows = [
            _case(),
            _case(id="P-2", findings='Said "worse"\nthen better'),
            _case(id="P-3", symptoms="line one\r\nline two"),
        ]
        text = export.cases_to_csv(rows, TODAY)
        assert len(text.splitlines()) == 4

    def test_every_field_quoted_and_quotes_doubled(self):
        text = export.cases_to_csv([_case(findings='Said "worse"')], TODAY)
        header, line = text.splitlines()
        assert header.startswith('"Case ID","Patient ID","Stage"')
        assert line.startswith('"P-20250101000000-abcd","JD-001"')
        assert '"Said ""worse"""' in line

    def test_row_values(self):
        text = export.cases_to_csv(
            [_case(current_stage="Completed - Team Decision", completion_reason="Team Decision",
                   completion_date="2025-01-21")],
            TODAY,
        )
        record = list(csv.DictReader(io.StringIO(text)))[0]
        assert record["Duration (days)"] == "20"
        assert record["Alert"] == "warning"
        assert record["Completion Reason"] == "Team Decision"
        assert list(record) == export.CSV_HEADER

    def test_filename_carries_date(self):
        assert export.export_filename(TODAY) == "lakbay-cases-2025-02-10.csv"


class TestPdf:
    def test_nodule_report_is_a_pdf(self):
        pdf = export.classification_report_pdf(
            [_case(), _case(id="P-2", classification="Pulmonary mass", findings="<b>& odd</b>")],
            "nodule",
            TODAY,
        )
        assert pdf.startswith(b"%PDF")

    def test_empty_family_still_renders(self):
        assert export.classification_report_pdf([_case()], "mass", TODAY).startswith(b"%PDF")

    def test_unknown_family(self):
        with pytest.raises(ValueError):
            export.classification_report_pdf([], "cyst")

    def test_report_cases_filters_by_family(self):
        rows = [_case(), _case(id="P-2", classification="Pulmonary mass with extrathoracic malignancy")]
        assert [c["id"] for c in export.report_cases(rows, "mass")] == ["P-2"]
