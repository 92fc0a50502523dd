"""
Report renderers.

Labels are ASCII Vietnamese: the built-in PDF fonts (Helvetica) have no
glyphs for Vietnamese diacritics, and the spreadsheet keeps the same wording.
"""
from __future__ import annotations

import io
from datetime import date, datetime

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from app.pms.modules.report.service import TASK_STATUS_KEYS, ReportData

REPORT_TYPE_LABELS = {
    "WEEKLY": "Bao cao tuan",
    "MONTHLY": "Bao cao thang",
    "CUSTOM": "Bao cao tuy chinh",
}
HEALTH_LABELS = {"STABLE": "On dinh", "WARNING": "Canh bao", "CRITICAL": "Nghiem trong"}
LIFECYCLE_LABELS = {
    "LEAD": "Tiem nang",
    "QUALIFIED": "Du dieu kien",
    "EVALUATION": "Danh gia",
    "NEGOTIATION": "Dam phan",
    "WON": "Thang",
    "LOST": "That bai",
    "PLANNING": "Lap ke hoach",
    "ONGOING": "Dang thuc hien",
    "OPTIMIZING": "Toi uu",
    "CLOSED": "Dong",
}
TASK_STATUS_LABELS = {
    "todo": "Chua bat dau",
    "inProgress": "Dang thuc hien",
    "review": "Dang review",
    "done": "Hoan thanh",
    "blocked": "Bi chan",
    "cancelled": "Da huy",
}
PRIORITY_LABELS = {"LOW": "Thap", "MEDIUM": "Trung binh", "HIGH": "Cao", "URGENT": "Khan cap"}

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIMETYPE = "application/pdf"


def fmt_date(value: date | datetime | None) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%d/%m/%Y")


def task_status_label(status: str) -> str:
    key = TASK_STATUS_KEYS.get(status)
    return TASK_STATUS_LABELS[key] if key else status


def report_filename(report_type: str, fmt: str, today: date) -> str:
    ext = "pdf" if fmt == "PDF" else "xlsx"
    return f"bao-cao-{report_type.lower()}-{today.isoformat()}.{ext}"


# --- Excel ---------------------------------------------------------------

_HEADER_FONT = Font(bold=True, color="FFFFFF")
_HEADER_FILL = PatternFill("solid", fgColor="4472C4")
_PROJECT_FILL = PatternFill("solid", fgColor="E2EFDA")


def _header_row(ws, headers: list[str]) -> None:
    ws.append(headers)
    for col in range(1, len(headers) + 1):
        cell = ws.cell(row=ws.max_row, column=col)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = Alignment(horizontal="center")


def render_excel(data: ReportData) -> bytes:
    wb = Workbook()

    ws = wb.active
    ws.title = "Tong quan"
    ws.merge_cells("A1:D1")
    ws["A1"] = "BAO CAO TONG QUAN DU AN"
    ws["A1"].font = Font(bold=True, size=18)
    ws["A1"].alignment = Alignment(horizontal="center")
    ws["A3"], ws["B3"] = "Loai bao cao:", REPORT_TYPE_LABELS.get(data.report_type, data.report_type)
    ws["A4"], ws["B4"] = "Thoi gian:", f"{fmt_date(data.start)} - {fmt_date(data.end)}"
    ws["A5"], ws["B5"] = "Ngay tao:", fmt_date(data.generated_at)

    ws["A7"] = "THONG KE TONG QUAN"
    ws["A7"].font = Font(bold=True)
    ws["A8"], ws["B8"] = "Tong so du an:", len(data.projects)
    ws["A9"], ws["B9"] = "Tong so cong viec:", len(data.tasks)
    ws["A10"], ws["B10"] = "Ti le hoan thanh:", f"{data.completion_rate}%"

    ws["A12"] = "TRANG THAI DU AN"
    ws["A12"].font = Font(bold=True)
    row = 13
    for status, count in zip(HEALTH_LABELS, data.project_breakdown.values()):
        ws.cell(row=row, column=1, value=f"{HEALTH_LABELS[status]} ({status.title()}):")
        ws.cell(row=row, column=2, value=count)
        row += 1

    row += 1
    ws.cell(row=row, column=1, value="TRANG THAI CONG VIEC").font = Font(bold=True)
    for key, count in data.task_breakdown.items():
        row += 1
        ws.cell(row=row, column=1, value=f"{TASK_STATUS_LABELS[key]}:")
        ws.cell(row=row, column=2, value=count)
    ws.column_dimensions["A"].width = 25
    ws.column_dimensions["B"].width = 30

    ws2 = wb.create_sheet("Du an")
    _header_row(
        ws2,
        [
            "Ma du an",
            "Ten du an",
            "Khach hang",
            "Trang thai",
            "Giai doan",
            "Tien do (%)",
            "Ngay bat dau",
            "Ngay ket thuc",
            "Tong cong viec",
            "Hoan thanh",
            "Ti le hoan thanh (%)",
        ],
    )
    for p in data.projects:
        ws2.append(
            [
                p.code,
                p.name,
                p.client or "N/A",
                HEALTH_LABELS.get(p.health_status, p.health_status),
                LIFECYCLE_LABELS.get(p.lifecycle, p.lifecycle),
                p.stage_progress,
                fmt_date(p.start_date),
                fmt_date(p.end_date),
                p.task_stats["total"],
                p.task_stats["done"],
                p.completion,
            ]
        )
    for letter in "ABCDEFGHIJK":
        ws2.column_dimensions[letter].width = 18
    ws2.column_dimensions["B"].width = 30

    ws3 = wb.create_sheet("Cong viec")
    _header_row(
        ws3,
        [
            "Ma du an",
            "Ten du an",
            "Ten cong viec",
            "Trang thai",
            "Uu tien",
            "Nguoi phu trach",
            "Han hoan thanh",
            "Gio du kien",
            "Gio thuc te",
            "Ngay tao",
            "Ngay hoan thanh",
        ],
    )
    for t in data.tasks:
        ws3.append(
            [
                t.project_code,
                t.project_name,
                t.title,
                task_status_label(t.status),
                PRIORITY_LABELS.get(t.priority, t.priority),
                ", ".join(t.assignees) or "N/A",
                fmt_date(t.deadline),
                t.estimated_hours if t.estimated_hours is not None else "N/A",
                t.actual_hours if t.actual_hours is not None else "N/A",
                fmt_date(t.created_at),
                fmt_date(t.completed_at),
            ]
        )
    for letter in "ABCDEFGHIJK":
        ws3.column_dimensions[letter].width = 15
    ws3.column_dimensions["B"].width = 25
    ws3.column_dimensions["C"].width = 35
    ws3.column_dimensions["F"].width = 25

    ws4 = wb.create_sheet("Tien do")
    ws4.merge_cells("A1:E1")
    ws4["A1"] = "TIEN DO CHI TIET THEO DU AN"
    ws4["A1"].font = Font(bold=True, size=14)
    ws4["A1"].alignment = Alignment(horizontal="center")
    row = 3
    for p in data.projects:
        ws4.merge_cells(start_row=row, start_column=1, end_row=row, end_column=5)
        head = ws4.cell(row=row, column=1, value=f"[{p.code}] {p.name}")
        head.font = Font(bold=True)
        head.fill = _PROJECT_FILL
        row += 1
        for key, label in TASK_STATUS_LABELS.items():
            ws4.cell(row=row, column=1, value=f"  {label}:")
            ws4.cell(row=row, column=2, value=p.task_stats[key])
            row += 1
        ws4.cell(row=row, column=1, value="  TONG:").font = Font(bold=True)
        ws4.cell(row=row, column=2, value=p.task_stats["total"]).font = Font(bold=True)
        ws4.cell(row=row, column=3, value=f"{p.completion}% hoan thanh")
        row += 2
    ws4.column_dimensions["A"].width = 25
    ws4.column_dimensions["B"].width = 15
    ws4.column_dimensions["C"].width = 20

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# --- PDF -----------------------------------------------------------------

_MARGIN = 50
_BOTTOM = 60


class _PdfWriter:
    """Line-oriented writer over a reportlab canvas, paging as it goes."""

    def __init__(self) -> None:
        self.buf = io.BytesIO()
        self.c = canvas.Canvas(self.buf, pagesize=A4)
        self.width, self.height = A4
        self.y = self.height - _MARGIN
        self.pages = 1

    def new_page(self) -> None:
        self._footer()
        self.c.showPage()
        self.pages += 1
        self.y = self.height - _MARGIN

    def line(self, text: str, *, size: int = 10, bold: bool = False, center: bool = False, gap: int | None = None) -> None:
        if self.y < _BOTTOM:
            self.new_page()
        self.c.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        if center:
            self.c.drawCentredString(self.width / 2, self.y, text[:110])
        else:
            self.c.drawString(_MARGIN, self.y, text[:110])
        self.y -= gap if gap is not None else size + 6

    def space(self, amount: int = 12) -> None:
        self.y -= amount

    def _footer(self) -> None:
        self.c.setFont("Helvetica", 8)
        self.c.drawCentredString(self.width / 2, 30, f"Trang {self.pages}")

    def finish(self) -> bytes:
        self._footer()
        self.c.save()
        return self.buf.getvalue()


def render_pdf(data: ReportData) -> bytes:
    w = _PdfWriter()
    w.line("BAO CAO DU AN", size=24, bold=True, center=True, gap=36)
    w.line(f"Loai bao cao: {REPORT_TYPE_LABELS.get(data.report_type, data.report_type)}", size=12, center=True)
    w.line(f"Thoi gian: {fmt_date(data.start)} - {fmt_date(data.end)}", size=12, center=True)
    w.line(f"Ngay tao: {fmt_date(data.generated_at)}", size=12, center=True)
    w.space(24)

    w.line("TONG QUAN", size=16, bold=True)
    w.line(f"Tong so du an: {len(data.projects)}", size=11)
    w.line(f"Tong so cong viec: {len(data.tasks)}", size=11)
    w.line(f"Ti le hoan thanh: {data.completion_rate}%", size=11)
    w.space()
    w.line("Trang thai du an:", size=11, bold=True)
    for status, count in zip(HEALTH_LABELS, data.project_breakdown.values()):
        w.line(f"  - {HEALTH_LABELS[status]} ({status.title()}): {count}", size=11)
    w.space()
    w.line("Trang thai cong viec:", size=11, bold=True)
    for key, count in data.task_breakdown.items():
        w.line(f"  - {TASK_STATUS_LABELS[key]}: {count}", size=11)

    if data.projects:
        w.new_page()
        w.line("DANH SACH DU AN", size=16, bold=True)
        for index, p in enumerate(data.projects, start=1):
            w.line(f"{index}. [{p.code}] {p.name}", size=12, bold=True)
            w.line(f"   Khach hang: {p.client or 'N/A'}")
            w.line(f"   Trang thai: {HEALTH_LABELS.get(p.health_status, p.health_status)}")
            w.line(f"   Giai doan: {LIFECYCLE_LABELS.get(p.lifecycle, p.lifecycle)}")
            w.line(f"   Tien do: {p.stage_progress}%")
            w.line(
                f"   Cong viec: {p.task_stats['done']}/{p.task_stats['total']} hoan thanh ({p.completion}%)"
            )
            w.space(6)

    if data.tasks:
        w.new_page()
        w.line("DANH SACH CONG VIEC", size=16, bold=True)
        grouped: dict[str, tuple[str, list]] = {}
        for t in data.tasks:
            grouped.setdefault(t.project_code, (t.project_name, []))[1].append(t)
        for code, (name, tasks) in grouped.items():
            w.line(f"[{code}] {name}", size=12, bold=True)
            for t in tasks:
                w.line(f"  - {t.title}")
                w.line(
                    f"    Trang thai: {task_status_label(t.status)} | "
                    f"Uu tien: {PRIORITY_LABELS.get(t.priority, t.priority)}"
                )
                if t.assignees:
                    w.line(f"    Phu trach: {', '.join(t.assignees)}")
                if t.deadline:
                    w.line(f"    Han: {fmt_date(t.deadline)}")
            w.space(6)

    return w.finish()
