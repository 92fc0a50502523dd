from __future__ import annotations

from flask import Blueprint

from app.pms.composition import module_provider
from app.pms.modules.project.dto import (
    AddTeamMemberDto,
    AddWeeklyNoteDto,
    CreatePhaseItemDto,
    CreateProjectDto,
    EvaluateDto,
    LinkTaskDto,
    ProjectDecisionDto,
    ProjectListQuery,
    UpdateLifecycleDto,
    UpdatePhaseDto,
    UpdatePhaseItemDto,
    UpdateProjectDto,
    UpdateSaleDto,
    UpdateTeamMemberDto,
    history_out,
    item_out,
    member_out,
    phase_out,
    project_out,
)
from app.pms.modules.project.phases import ProjectPhaseService
from app.pms.modules.project.service import ProjectService
from app.pms.rbac import current_user, require_permission
from app.pms.validation import validate_json, validate_query

bp = Blueprint("project", __name__)
phases_bp = Blueprint("project_phases", __name__)


def _projects() -> ProjectService:
    return module_provider("project", "projects")


def _phases() -> ProjectPhaseService:
    return module_provider("project", "phases")


# ---------- Projects ----------
@bp.get("")
@require_permission("projects.view")
@validate_query(ProjectListQuery)
def project_list(query: ProjectListQuery):
    svc = _projects()
    rows, meta = svc.list_projects(
        svc.db.session(),
        user=current_user(),
        search=query.search,
        lifecycle=query.lifecycle,
        health_status=query.health_status,
        include_archived=query.include_archived,
        page=query.page,
        limit=query.limit,
    )
    return {"data": [project_out(p) for p in rows], "meta": meta}


@bp.post("")
@require_permission("projects.create")
@validate_json(CreateProjectDto)
def project_create(body: CreateProjectDto):
    svc = _projects()
    s = svc.db.session()
    project = svc.create(s, body.changes(), current_user())
    s.commit()
    return project_out(project, detail=True), 201


@bp.get("/<project_id>")
@require_permission("projects.view")
def project_detail(project_id: str):
    svc = _projects()
    return project_out(svc.get(svc.db.session(), project_id), detail=True)


@bp.patch("/<project_id>")
@require_permission("projects.edit")
@validate_json(UpdateProjectDto)
def project_update(project_id: str, body: UpdateProjectDto):
    svc = _projects()
    s = svc.db.session()
    project = svc.update(s, svc.get(s, project_id), body.changes(), current_user())
    s.commit()
    return project_out(project, detail=True)


@bp.delete("/<project_id>")
@require_permission("projects.delete")
def project_archive(project_id: str):
    svc = _projects()
    s = svc.db.session()
    project = svc.archive(s, svc.get(s, project_id), current_user())
    s.commit()
    return {"id": project.id, "archivedAt": project_out(project)["archivedAt"]}


@bp.patch("/<project_id>/sale")
@require_permission("projects.edit")
@validate_json(UpdateSaleDto)
def project_update_sale(project_id: str, body: UpdateSaleDto):
    svc = _projects()
    s = svc.db.session()
    project = svc.update_sale(s, svc.get(s, project_id), body.changes(), current_user())
    s.commit()
    return project_out(project, detail=True)


@bp.patch("/<project_id>/evaluate")
@require_permission("projects.edit")
@validate_json(EvaluateDto)
def project_evaluate(project_id: str, body: EvaluateDto):
    svc = _projects()
    s = svc.db.session()
    project = svc.evaluate(s, svc.get(s, project_id), body.changes(), current_user())
    s.commit()
    return project_out(project, detail=True)


@bp.patch("/<project_id>/lifecycle")
@require_permission("projects.edit")
@validate_json(UpdateLifecycleDto)
def project_lifecycle(project_id: str, body: UpdateLifecycleDto):
    svc = _projects()
    s = svc.db.session()
    project = svc.change_lifecycle(s, svc.get(s, project_id), body.lifecycle, current_user(), reason=body.reason)
    s.commit()
    return project_out(project, detail=True)


@bp.post("/<project_id>/weekly-note")
@require_permission("projects.edit")
@validate_json(AddWeeklyNoteDto)
def project_weekly_note(project_id: str, body: AddWeeklyNoteDto):
    svc = _projects()
    s = svc.db.session()
    project = svc.add_weekly_note(s, svc.get(s, project_id), body.note, current_user())
    s.commit()
    return {"id": project.id, "weeklyNotes": project.weekly_notes or []}


@bp.post("/<project_id>/decide")
@require_permission("projects.decide")
@validate_json(ProjectDecisionDto)
def project_decide(project_id: str, body: ProjectDecisionDto):
    svc = _projects()
    s = svc.db.session()
    project = svc.decide(s, svc.get(s, project_id), body.decision, current_user(), note=body.decision_note)
    s.commit()
    return project_out(project, detail=True)


@bp.get("/<project_id>/stage-history")
@require_permission("projects.view")
def project_stage_history(project_id: str):
    svc = _projects()
    s = svc.db.session()
    return {"data": [history_out(h) for h in svc.stage_history(s, svc.get(s, project_id))]}


# ---------- Team ----------
@bp.get("/<project_id>/team")
@require_permission("projects.view")
def team_list(project_id: str):
    svc = _projects()
    project = svc.get(svc.db.session(), project_id)
    return {"data": [member_out(m) for m in project.team]}


@bp.post("/<project_id>/team")
@require_permission("projects.edit")
@validate_json(AddTeamMemberDto)
def team_add(project_id: str, body: AddTeamMemberDto):
    svc = _projects()
    s = svc.db.session()
    member = svc.add_member(
        s,
        svc.get(s, project_id),
        user_id=body.user_id,
        role=body.role,
        is_primary=body.is_primary,
        actor=current_user(),
    )
    s.commit()
    return member_out(member), 201


@bp.patch("/<project_id>/team/<member_id>")
@require_permission("projects.edit")
@validate_json(UpdateTeamMemberDto)
def team_update(project_id: str, member_id: str, body: UpdateTeamMemberDto):
    svc = _projects()
    s = svc.db.session()
    project = svc.get(s, project_id)
    member = svc.update_member(s, project, svc.get_member(project, member_id), body.changes(), current_user())
    s.commit()
    return member_out(member)


@bp.delete("/<project_id>/team/<member_id>")
@require_permission("projects.edit")
def team_remove(project_id: str, member_id: str):
    svc = _projects()
    s = svc.db.session()
    project = svc.get(s, project_id)
    svc.remove_member(s, project, svc.get_member(project, member_id), current_user())
    s.commit()
    return "", 204


# ---------- Phases (/api/projects/<project_id>/phases) ----------
def _project_or_404(s, project_id: str) -> None:
    _projects().get(s, project_id)


@phases_bp.get("")
@require_permission("projects.view")
def phase_list(project_id: str):
    svc = _phases()
    s = svc.db.session()
    _project_or_404(s, project_id)
    return {"data": [phase_out(p) for p in svc.list_phases(s, project_id)]}


@phases_bp.patch("/<phase_id>")
@require_permission("projects.edit")
@validate_json(UpdatePhaseDto)
def phase_update(project_id: str, phase_id: str, body: UpdatePhaseDto):
    svc = _phases()
    s = svc.db.session()
    phase = svc.update_phase(s, svc.get_phase(s, project_id, phase_id), body.changes(), current_user())
    s.commit()
    return phase_out(phase)


@phases_bp.post("/<phase_id>/items")
@require_permission("projects.edit")
@validate_json(CreatePhaseItemDto)
def phase_item_create(project_id: str, phase_id: str, body: CreatePhaseItemDto):
    svc = _phases()
    s = svc.db.session()
    item = svc.add_item(s, svc.get_phase(s, project_id, phase_id), body.changes(), current_user())
    s.commit()
    return item_out(item), 201


@phases_bp.patch("/<phase_id>/items/<item_id>")
@require_permission("projects.edit")
@validate_json(UpdatePhaseItemDto)
def phase_item_update(project_id: str, phase_id: str, item_id: str, body: UpdatePhaseItemDto):
    svc = _phases()
    s = svc.db.session()
    phase = svc.get_phase(s, project_id, phase_id)
    item = svc.update_item(s, phase, svc.get_item(phase, item_id), body.changes(), current_user())
    s.commit()
    return {"item": item_out(item), "phaseProgress": phase.progress}


@phases_bp.delete("/<phase_id>/items/<item_id>")
@require_permission("projects.edit")
def phase_item_delete(project_id: str, phase_id: str, item_id: str):
    svc = _phases()
    s = svc.db.session()
    phase = svc.get_phase(s, project_id, phase_id)
    svc.delete_item(s, phase, svc.get_item(phase, item_id), current_user())
    s.commit()
    return "", 204


@phases_bp.patch("/<phase_id>/items/<item_id>/link-task")
@require_permission("projects.edit")
@validate_json(LinkTaskDto)
def phase_item_link_task(project_id: str, phase_id: str, item_id: str, body: LinkTaskDto):
    svc = _phases()
    s = svc.db.session()
    phase = svc.get_phase(s, project_id, phase_id)
    item = svc.link_task(
        s,
        phase,
        svc.get_item(phase, item_id),
        task_id=body.task_id,
        action=body.action,
        user=current_user(),
    )
    s.commit()
    return item_out(item)
