import io
from datetime import datetime

import pytest
from openpyxl import load_workbook

from conftest import login

from app.pms.errors import BadRequest
from app.pms.modules.report.render import report_filename
from app.pms.modules.report.service import ReportData, ReportService, TaskRow


def test_weekly_range_starts_monday_midnight():
    now = datetime(2026, 10, 22, 15, 30)  # Thursday
    start, end = ReportService.calculate_date_range("WEEKLY", now=now)
    assert start == datetime(2026, 10, 19)
    assert end == now


def test_monthly_range_starts_on_the_first():
    now = datetime(2026, 10, 22, 15, 30)
    assert ReportService.calculate_date_range("MONTHLY", now=now) == (datetime(2026, 10, 1), now)


def test_custom_range_rules():
    a, b = datetime(2026, 1, 1), datetime(2026, 6, 30)
    assert ReportService.calculate_date_range("CUSTOM", a, b) == (a, b)
    with pytest.raises(BadRequest):
        ReportService.calculate_date_range("CUSTOM", a, None)
    with pytest.raises(BadRequest):
        ReportService.calculate_date_range("CUSTOM", b, a)
    with pytest.raises(BadRequest):
        ReportService.calculate_date_range("CUSTOM", datetime(2025, 1, 1), datetime(2026, 1, 3))
    with pytest.raises(BadRequest):
        ReportService.calculate_date_range("YEARLY")


def test_completion_rate_and_breakdown():
    def row(status):
        return TaskRow(
            id=status,
            title=status,
            status=status,
            priority="MEDIUM",
            project_name="P",
            project_code="PRJ0001",
            assignees=[],
            deadline=None,
            estimated_hours=None,
            actual_hours=None,
            created_at=datetime(2026, 1, 1),
            completed_at=None,
        )

    data = ReportData("WEEKLY", datetime(2026, 1, 1), datetime(2026, 1, 7), datetime(2026, 1, 7))
    assert data.completion_rate == 0
    data.tasks = [row("DONE"), row("TODO"), row("DONE"), row("BLOCKED"), row("DONE"), row("REVIEW"), row("TODO"), row("TODO")]
    assert data.task_breakdown["done"] == 3
    assert data.completion_rate == 38  # 37.5
    summary = ReportService(None).summary(data)
    assert summary["totalTasks"] == 8
    assert summary["overallCompletionRate"] == 38


def test_report_filename():
    assert report_filename("MONTHLY", "EXCEL", datetime(2026, 3, 9).date()) == "bao-cao-monthly-2026-03-09.xlsx"


def _seed(client):
    p = client.post("/api/projects", json={"name": "Reported", "clientType": "Retail"}).json
    client.post("/api/tasks", json={"projectId": p["id"], "title": "Done one", "status": "DONE"})
    client.post("/api/tasks", json={"projectId": p["id"], "title": "Open one"})
    return p


def test_generate_excel_report(client):
    login(client)
    p = _seed(client)
    r = client.post("/api/reports/generate", json={"type": "WEEKLY", "format": "EXCEL"})
    assert r.status_code == 200
    assert r.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    assert r.headers["Content-Disposition"].startswith('attachment; filename="bao-cao-weekly-')
    assert r.headers["Content-Disposition"].endswith('.xlsx"')

    wb = load_workbook(io.BytesIO(r.data))
    assert wb.sheetnames == ["Tong quan", "Du an", "Cong viec", "Tien do"]
    projects = wb["Du an"]
    values = [cell.value for row in projects.iter_rows() for cell in row]
    assert p["code"] in values
    assert "Reported" in values


def test_generate_pdf_report(client):
    login(client)
    _seed(client)
    r = client.post(
        "/api/reports/generate",
        json={"type": "CUSTOM", "format": "PDF", "startDate": "2026-01-01T00:00:00", "endDate": "2026-12-31T00:00:00"},
    )
    assert r.status_code == 200
    assert r.mimetype == "application/pdf"
    assert r.data.startswith(b"%PDF")
    assert r.headers["Content-Disposition"].endswith('.pdf"')


def test_custom_report_errors(client):
    login(client)
    r = client.post("/api/reports/generate", json={"type": "CUSTOM", "format": "PDF"})
    assert r.status_code == 400
    r = client.post(
        "/api/reports/generate",
        json={"type": "CUSTOM", "format": "PDF", "startDate": "2024-01-01T00:00:00", "endDate": "2026-01-01T00:00:00"},
    )
    assert r.status_code == 400
    assert client.post("/api/reports/generate", json={"type": "DAILY", "format": "PDF"}).status_code == 422
    assert client.post("/api/reports/generate", json={"type": "WEEKLY", "format": "CSV"}).status_code == 422


def test_report_requires_permission(client):
    login(client, "member@example.com")
    r = client.post("/api/reports/generate", json={"type": "WEEKLY", "format": "PDF"})
    assert r.status_code == 403
