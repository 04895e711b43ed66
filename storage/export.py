"""
storage/export.py

Export helpers: a CSV of every case for the admin dashboard and PDF table
reports (nodule / mass) for the reports page.

Both exporters work on already-loaded case lists; access control is the
calling page's job.

Dependencies
------------
- reportlab  (PDF generation)
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from workflow.dashboard import classification_family
from workflow.lifecycle import _field, alert_level, duration_days

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "Case ID",
    "Patient ID",
    "Stage",
    "Classification",
    "Encounter Date",
    "Physician",
    "Duration (days)",
    "Alert",
    "Completion Reason",
    "Completion Date",
    "Symptoms",
    "Findings",
]

REPORT_TITLES = {
    "nodule": "Nodule Table Report",
    "mass": "Mass Table Report",
}


def _flat(value: Any) -> str:
    """Cell text with line breaks collapsed so each case stays on one CSV line."""
    if value is None:
        return ""
    text = value.isoformat() if isinstance(value, date) else str(value)
    return " ".join(text.replace("\r\n", "\n").replace("\r", "\n").split("\n"))


def _csv_row(case: Any, today: date) -> list[str]:
    return [
        _flat(_field(case, "id")),
        _flat(_field(case, "patient_identifier")),
        _flat(_field(case, "current_stage")),
        _flat(_field(case, "classification")),
        _flat(_field(case, "date_of_encounter")),
        _flat(_field(case, "physician")),
        str(duration_days(case, today)),
        alert_level(case).value,
        _flat(_field(case, "completion_reason")),
        _flat(_field(case, "completion_date")),
        _flat(_field(case, "symptoms")),
        _flat(_field(case, "findings")),
    ]


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


def cases_to_csv(cases: Iterable[Any], today: Optional[date] = None) -> str | None:
    """
    Render *cases* as CSV text, every field double-quoted.

    Returns:
        The CSV string (header + one line per case), or ``None`` when there
        are no cases to export.
    """
    items = list(cases)
    if not items:
        return None
    today = today or date.today()

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for case in items:
        writer.writerow(_csv_row(case, today))
    logger.info("Exported %d cases to CSV", len(items))
    return buf.getvalue()


def export_filename(today: Optional[date] = None) -> str:
    return f"lakbay-cases-{(today or date.today()).isoformat()}.csv"


# ---------------------------------------------------------------------------
# PDF table reports
# ---------------------------------------------------------------------------


def report_cases(cases: Iterable[Any], family: str) -> list:
    """Cases whose classification belongs to *family* (``"nodule"`` or ``"mass"``)."""
    return [c for c in cases if classification_family(c) == family]


def classification_report_pdf(
    cases: Iterable[Any],
    family: str,
    today: Optional[date] = None,
) -> bytes:
    """
    Produce a landscape PDF table of the nodule or mass cases.

    Args:
        cases:  All cases; filtered to *family* here.
        family: ``"nodule"`` or ``"mass"``.

    Raises:
        ValueError: Unknown *family*.
    """
    if family not in REPORT_TITLES:
        raise ValueError(f"Unknown report family: {family!r}")
    today = today or date.today()
    rows = report_cases(cases, family)

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=landscape(LETTER),
        leftMargin=0.6 * inch,
        rightMargin=0.6 * inch,
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Title"],
        fontSize=18,
        textColor=colors.HexColor("#1a3a5c"),
        spaceAfter=6,
    )
    cell = ParagraphStyle("Cell", parent=styles["Normal"], fontSize=8, leading=10)
    small = ParagraphStyle("Small", parent=styles["Normal"], fontSize=8, textColor=colors.grey)

    generated_at = datetime.now(tz=timezone.utc).isoformat(timespec="seconds")
    story = [
        Paragraph(f"LAKBAY - {REPORT_TITLES[family]}", title_style),
        Paragraph(f"Generated: {generated_at} | Cases: {len(rows)}", small),
        Spacer(1, 0.15 * inch),
    ]

    if not rows:
        story.append(Paragraph("No cases with this classification.", styles["Normal"]))
    else:
        data = [["Patient ID", "Encounter", "Stage", "Physician", "Days", "Alert", "Findings"]]
        for c in rows:
            findings = _flat(_field(c, "findings"))
            data.append([
                _flat(_field(c, "patient_identifier")),
                _flat(_field(c, "date_of_encounter")),
                Paragraph(escape(_flat(_field(c, "current_stage"))), cell),
                _flat(_field(c, "physician")),
                str(duration_days(c, today)),
                alert_level(c).value,
                Paragraph(escape(findings[:300]) or "-", cell),
            ])
        table = Table(
            data,
            colWidths=[1.1 * inch, 0.9 * inch, 1.5 * inch, 1.3 * inch, 0.5 * inch, 0.7 * inch, 3.8 * inch],
            repeatRows=1,
        )
        table.setStyle(
            TableStyle([
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#1a3a5c")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f0f4f8")]),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
                ("LEFTPADDING", (0, 0), (-1, -1), 4),
                ("RIGHTPADDING", (0, 0), (-1, -1), 4),
                ("TOPPADDING", (0, 0), (-1, -1), 3),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ])
        )
        story.append(table)

    doc.build(story)
    logger.info("Built %s PDF with %d cases", family, len(rows))
    return buf.getvalue()
