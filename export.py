from __future__ import annotations

import csv
import io
import json
from datetime import datetime
from typing import Any

from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table


CSV_COLUMNS = [
    ("Reference Number", "reference_number"),
    ("Full Name", "full_name"),
    ("National ID", "national_id"),
    ("Gender", "gender"),
    ("Province", "province"),
    ("Specialization", "specialization"),
    ("GPA", "gpa"),
    ("Phone", "phone"),
    ("Email", "email"),
    ("Room Type", "room_type"),
    ("Fees", "fees"),
    ("Registration Date", "registration_date"),
]


def _safe_text(value: Any) -> str:
    if value is None:
        return "-"
    return str(value)


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def build_json_export(applications: list[dict[str, Any]]) -> str:
    return json.dumps(applications, indent=2, ensure_ascii=False)


def build_csv_export(applications: list[dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([label for label, _ in CSV_COLUMNS])
    for app in applications:
        writer.writerow([_csv_cell(app.get(key)) for _, key in CSV_COLUMNS])
    return buffer.getvalue()


def build_dashboard_export(statistics: dict[str, Any], live_stats: dict[str, Any], now: datetime) -> bytes:
    payload = {
        "statistics": statistics,
        "live_stats": {key: value for key, value in live_stats.items() if key != "prioritized"},
        "top_priority": [
            {
                "reference_number": item.get("reference_number"),
                "national_id": item.get("national_id"),
                "priority_score": item.get("priority_score"),
            }
            for item in live_stats.get("prioritized", [])[:10]
        ],
        "export_date": now.isoformat(),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


def build_receipt_pdf(application: dict[str, Any], priority_score: int | None = None) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title="Housing Application Receipt")
    styles = getSampleStyleSheet()
    normal = styles["BodyText"]
    heading = styles["Heading2"]

    story = []
    story.append(Paragraph("Najran University Student Housing", styles["Title"]))
    story.append(Paragraph(f"Reference number: {_safe_text(application.get('reference_number'))}", heading))
    story.append(Paragraph(f"Registered: {_safe_text(application.get('registration_date'))}", normal))
    story.append(Spacer(1, 12))

    # Arabic names and regions are kept as submitted; the ID columns identify the record.
    rows = [
        ["National ID", _safe_text(application.get("national_id"))],
        ["Phone", _safe_text(application.get("phone"))],
        ["Email", _safe_text(application.get("email"))],
        ["Gender", _safe_text(application.get("gender"))],
        ["GPA", _safe_text(application.get("gpa"))],
        ["Room type", _safe_text(application.get("room_type"))],
        ["Fees (SAR)", _safe_text(application.get("fees"))],
        ["Status", _safe_text(application.get("status"))],
    ]
    if priority_score is not None:
        rows.append(["Priority score", f"{priority_score}/100"])
    story.append(Table(rows, hAlign="LEFT"))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Notes", heading))
    story.append(Paragraph("- Keep this reference number for any follow-up with the housing office.", normal))
    story.append(Paragraph("- Submitting an application does not guarantee a room allocation.", normal))

    doc.build(story)
    buffer.seek(0)
    return buffer.read()
