from __future__ import annotations

import logging
from datetime import datetime

from flask import Blueprint, Response

from app.pms.composition import module_provider
from app.pms.modules.report.dto import GenerateReportDto
from app.pms.modules.report.render import PDF_MIMETYPE, XLSX_MIMETYPE, render_excel, render_pdf, report_filename
from app.pms.modules.report.service import ReportService
from app.pms.rbac import current_user, require_permission
from app.pms.validation import validate_json

logger = logging.getLogger(__name__)

bp = Blueprint("report", __name__)


def _reports() -> ReportService:
    return module_provider("report", "report")


@bp.post("/generate")
@require_permission("reports.generate")
@validate_json(GenerateReportDto)
def report_generate(body: GenerateReportDto):
    svc = _reports()
    user = current_user()
    now = datetime.utcnow()
    start, end = svc.calculate_date_range(body.type, body.start_date, body.end_date, now=now)
    data = svc.aggregate(
        svc.db.session(),
        report_type=body.type,
        start=start,
        end=end,
        user=user,
        project_id=body.project_id,
        now=now,
    )
    if body.format == "PDF":
        payload, mimetype = render_pdf(data), PDF_MIMETYPE
    else:
        payload, mimetype = render_excel(data), XLSX_MIMETYPE
    filename = report_filename(body.type, body.format, now.date())
    logger.info("Report generated format=%s user=%s summary=%s", body.format, user.email, svc.summary(data))
    return Response(
        payload,
        mimetype=mimetype,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
