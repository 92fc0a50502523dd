from __future__ import annotations

from flask import Blueprint

from app.pms.composition import module_provider
from app.pms.modules.strategic_brief.dto import (
    CreateBriefDto,
    RequestRevisionDto,
    UpdateSectionDto,
    brief_out,
    section_out,
)
from app.pms.modules.strategic_brief.service import StrategicBriefService
from app.pms.rbac import current_user, require_permission
from app.pms.validation import validate_json

bp = Blueprint("strategic_brief", __name__)


def _briefs() -> StrategicBriefService:
    return module_provider("strategic_brief", "strategic_brief")


@bp.post("")
@require_permission("briefs.edit")
@validate_json(CreateBriefDto)
def brief_create(body: CreateBriefDto):
    svc = _briefs()
    s = svc.db.session()
    brief = svc.create(s, pipeline_id=body.pipeline_id, project_id=body.project_id, user=current_user())
    s.commit()
    return brief_out(brief), 201


@bp.get("/<brief_id>")
@require_permission("briefs.view")
def brief_detail(brief_id: str):
    svc = _briefs()
    return brief_out(svc.get(svc.db.session(), brief_id))


@bp.get("/by-project/<project_id>")
@require_permission("briefs.view")
def brief_by_project(project_id: str):
    svc = _briefs()
    return brief_out(svc.get_by_project(svc.db.session(), project_id))


@bp.patch("/<brief_id>/sections/<int:section_num>")
@require_permission("briefs.edit")
@validate_json(UpdateSectionDto)
def brief_update_section(brief_id: str, section_num: int, body: UpdateSectionDto):
    svc = _briefs()
    s = svc.db.session()
    brief = svc.get(s, brief_id)
    section = svc.update_section(s, brief, section_num, changes=body.changes(), user=current_user())
    s.commit()
    return {"section": section_out(section), "completionPct": brief.completion_pct}


@bp.post("/<brief_id>/submit")
@require_permission("briefs.edit")
def brief_submit(brief_id: str):
    svc = _briefs()
    s = svc.db.session()
    brief = svc.submit(s, svc.get(s, brief_id), current_user())
    s.commit()
    return brief_out(brief, with_sections=False)


@bp.post("/<brief_id>/approve")
@require_permission("briefs.approve")
def brief_approve(brief_id: str):
    svc = _briefs()
    s = svc.db.session()
    brief = svc.approve(s, svc.get(s, brief_id), current_user())
    s.commit()
    return brief_out(brief, with_sections=False)


@bp.post("/<brief_id>/request-revision")
@require_permission("briefs.approve")
@validate_json(RequestRevisionDto)
def brief_request_revision(brief_id: str, body: RequestRevisionDto):
    svc = _briefs()
    s = svc.db.session()
    brief = svc.request_revision(s, svc.get(s, brief_id), body.comment, current_user())
    s.commit()
    return brief_out(brief, with_sections=False)
