from __future__ import annotations

from flask import Blueprint

from app.pms.composition import module_provider
from app.pms.modules.project.dto import (
    AddWeeklyNoteDto,
    EvaluateDto,
    ProjectDecisionDto,
    UpdateSaleDto,
    project_out,
)
from app.pms.modules.sales_pipeline.dto import CreatePipelineDto, PipelineListQuery, UpdatePipelineStageDto
from app.pms.modules.sales_pipeline.service import SalesPipelineService
from app.pms.rbac import current_user, is_admin, require_permission
from app.pms.validation import validate_json, validate_query

bp = Blueprint("sales_pipeline", __name__)


def _pipelines() -> SalesPipelineService:
    return module_provider("sales_pipeline", "sales_pipeline")


@bp.post("")
@require_permission("pipeline.create")
@validate_json(CreatePipelineDto)
def pipeline_create(body: CreatePipelineDto):
    svc = _pipelines()
    s = svc.db.session()
    pipeline = svc.create(s, body.changes(), current_user())
    s.commit()
    return project_out(pipeline, detail=True), 201


@bp.get("")
@require_permission("pipeline.view")
@validate_query(PipelineListQuery)
def pipeline_list(query: PipelineListQuery):
    svc = _pipelines()
    user = current_user()
    params = query.model_dump()
    # Only admins may browse another salesperson's pipelines.
    if not is_admin(user):
        params["nvkd_id"] = None
    rows, meta = svc.list_pipelines(svc.db.session(), user=user, **params)
    return {"data": [project_out(p) for p in rows], "meta": meta}


@bp.get("/<pipeline_id>")
@require_permission("pipeline.view")
def pipeline_detail(pipeline_id: str):
    svc = _pipelines()
    return project_out(svc.get(svc.db.session(), pipeline_id), detail=True)


@bp.patch("/<pipeline_id>/sale")
@require_permission("pipeline.edit")
@validate_json(UpdateSaleDto)
def pipeline_update_sale(pipeline_id: str, body: UpdateSaleDto):
    svc = _pipelines()
    s = svc.db.session()
    pipeline = svc.update_sale(s, svc.get(s, pipeline_id), body.changes(), current_user())
    s.commit()
    return project_out(pipeline, detail=True)


@bp.patch("/<pipeline_id>/evaluate")
@require_permission("pipeline.evaluate")
@validate_json(EvaluateDto)
def pipeline_evaluate(pipeline_id: str, body: EvaluateDto):
    svc = _pipelines()
    s = svc.db.session()
    pipeline = svc.evaluate(s, svc.get(s, pipeline_id), body.changes(), current_user())
    s.commit()
    return project_out(pipeline, detail=True)


@bp.patch("/<pipeline_id>/stage")
@require_permission("pipeline.edit")
@validate_json(UpdatePipelineStageDto)
def pipeline_update_stage(pipeline_id: str, body: UpdatePipelineStageDto):
    svc = _pipelines()
    s = svc.db.session()
    pipeline = svc.update_stage(s, svc.get(s, pipeline_id), body.stage, current_user())
    s.commit()
    return project_out(pipeline, detail=True)


@bp.post("/<pipeline_id>/weekly-note")
@require_permission("pipeline.edit")
@validate_json(AddWeeklyNoteDto)
def pipeline_weekly_note(pipeline_id: str, body: AddWeeklyNoteDto):
    svc = _pipelines()
    s = svc.db.session()
    pipeline = svc.add_weekly_note(s, svc.get(s, pipeline_id), body.note, current_user())
    s.commit()
    return {"id": pipeline.id, "weeklyNotes": pipeline.weekly_notes or []}


@bp.post("/<pipeline_id>/decide")
@require_permission("pipeline.decide")
@validate_json(ProjectDecisionDto)
def pipeline_decide(pipeline_id: str, body: ProjectDecisionDto):
    svc = _pipelines()
    s = svc.db.session()
    pipeline = svc.decide(s, svc.get(s, pipeline_id), body.decision, current_user(), note=body.decision_note)
    s.commit()
    return project_out(pipeline, detail=True)
