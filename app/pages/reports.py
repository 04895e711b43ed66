"""
app/pages/reports.py

Navigator reports: summary statistics, nodule / mass PDF table reports
and the full CSV export.
"""

from __future__ import annotations

from datetime import date

import streamlit as st

from app.case_board import load_cases
from app.ui import card_close, card_open, metric_row
from storage.export import cases_to_csv, classification_report_pdf, export_filename, report_cases
from workflow import dashboard


def render() -> None:
    st.title("Reports")
    cases = load_cases()
    if cases is None:
        return
    today = date.today()

    stats = dashboard.summary_stats(cases, today)
    metric_row([
        ("Total cases", stats.total),
        ("Avg. duration (days)", f"{stats.average_duration_days:.1f}"),
        ("Completion rate", f"{stats.completion_rate:.0%}"),
        ("Patients", len(dashboard.unique_patients(cases))),
    ])
    st.markdown("<div style='height:12px'></div>", unsafe_allow_html=True)

    card_open("Table reports", "PDF tables grouped by classification")
    c1, c2 = st.columns(2)
    for col, family, label in ((c1, "nodule", "Nodule Table Report"), (c2, "mass", "Mass Table Report")):
        with col:
            count = len(report_cases(cases, family))
            st.caption(f"{count} case(s)")
            st.download_button(
                f"📄 {label}",
                data=classification_report_pdf(cases, family, today),
                file_name=f"lakbay-{family}-report-{today.isoformat()}.pdf",
                mime="application/pdf",
                use_container_width=True,
                key=f"pdf_{family}",
            )
    card_close()

    st.markdown("<div style='height:12px'></div>", unsafe_allow_html=True)
    csv_text = cases_to_csv(cases, today)
    if csv_text is None:
        st.info("No data to export.")
    else:
        st.download_button(
            "⬇️ Export all cases (CSV)",
            data=csv_text,
            file_name=export_filename(today),
            mime="text/csv",
        )
