"""Routes for browsing the in-memory mock backend."""
from __future__ import annotations

import html
import json
from typing import Any, Dict, Iterable, List, Mapping

from fastapi import APIRouter, HTTPException
from fastapi.responses import HTMLResponse

from patient_portal.services.mock_store import DoctorRecord, get_mock_store

router = APIRouter()


def _stringify(value: Any) -> str:
    """Return a JSON-friendly string representation for table cells."""
    if value is None:
        return ""
    if isinstance(value, (str, int, float, bool)):
        return str(value)
    return json.dumps(value, default=str)


def _build_table(title: str, rows: Iterable[Mapping[str, Any]]) -> str:
    row_list: List[Dict[str, Any]] = [dict(row) for row in rows]
    section_parts = [f"<section><h2>{html.escape(title)}</h2>"]
    if not row_list:
        section_parts.append("<p>No records found.</p></section>")
        return "".join(section_parts)

    columns: List[str] = []
    for row in row_list:
        for key in row.keys():
            if key not in columns:
                columns.append(key)

    header = "".join(f"<th>{html.escape(column)}</th>" for column in columns)
    body_rows: List[str] = []
    for row in row_list:
        cells = [f"<td>{html.escape(_stringify(row.get(column)))}</td>" for column in columns]
        body_rows.append("<tr>" + "".join(cells) + "</tr>")
    section_parts.append(
        "<table><thead><tr>" + header + "</tr></thead><tbody>" + "".join(body_rows) + "</tbody></table>"
    )
    section_parts.append("</section>")
    return "".join(section_parts)


def _doctor_rows(doctors: Iterable[DoctorRecord]) -> List[Dict[str, Any]]:
    weekday_names = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    return [
        {
            "doctor_id": doctor.doctor_id,
            "name": doctor.name,
            "branch_id": doctor.branch_id,
            "department_id": doctor.department_id,
            "days": ", ".join(weekday_names[day] for day in sorted(doctor.weekdays)),
            "hours": f"{doctor.start:%H:%M}-{doctor.end:%H:%M}",
            "slot_minutes": doctor.slot_minutes,
            "active": doctor.is_active,
        }
        for doctor in doctors
    ]


@router.get("/mock-data", response_class=HTMLResponse)
async def view_mock_data() -> HTMLResponse:
    """Render the mock backend's directory and appointments as HTML tables."""
    store = get_mock_store()

    sections = [
        _build_table("Branches", (branch.model_dump() for branch in store.directory.branches())),
        _build_table(
            "Departments",
            (department.model_dump(exclude={"doctors"}) for department in store.directory.departments()),
        ),
        _build_table("Doctors", _doctor_rows(store.directory.iter_doctors())),
        _build_table("Appointments", store.appointments.records()),
    ]

    sections_html = "".join(sections)
    html_content = f"""
    <html>
        <head>
            <title>Mock Backend Overview</title>
            <style>
                body {{ font-family: Arial, sans-serif; margin: 2rem; }}
                section {{ margin-bottom: 2rem; }}
                table {{ border-collapse: collapse; width: 100%; }}
                th, td {{ border: 1px solid #ccc; padding: 0.5rem; text-align: left; }}
                th {{ background-color: #f0f0f0; }}
            </style>
        </head>
        <body>
            <h1>Mock Backend Overview</h1>
            {sections_html}
        </body>
    </html>
    """

    return HTMLResponse(content=html_content)


@router.delete("/mock-data/appointments/{appointment_id}")
async def delete_mock_appointment(appointment_id: int) -> Dict[str, Any]:
    """Remove an appointment from the mock backend."""

    deleted = await get_mock_store().appointments.delete(appointment_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Record not found")
    return {"status": "deleted", "collection": "appointments", "record_id": appointment_id}
