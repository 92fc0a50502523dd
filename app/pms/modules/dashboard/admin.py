from __future__ import annotations

from flask import Blueprint
from pydantic import Field

from app.pms.composition import module_provider
from app.pms.models import AuditEvent
from app.pms.modules.dashboard.service import DashboardService
from app.pms.rbac import current_user, require_permission
from app.pms.utils import iso
from app.pms.validation import QueryDto, validate_query

bp = Blueprint("dashboard", __name__)


class ActivityQuery(QueryDto):
    limit: int = Field(default=10, ge=1, le=100)


def _dashboard() -> DashboardService:
    return module_provider("dashboard", "dashboard")


def activity_out(ev: AuditEvent) -> dict:
    target = ev.entity_type or ""
    if ev.entity_id:
        target += f" ({ev.entity_id[:8]}...)"
    return {
        "id": ev.id,
        "type": ev.action,
        "description": f"{ev.action} {target}".strip(),
        "createdAt": iso(ev.created_at),
        "userName": ev.actor.display_name if ev.actor else (ev.actor_user_email or "System"),
    }


@bp.get("/stats")
@require_permission("dashboard.view")
def dashboard_stats():
    svc = _dashboard()
    return svc.stats(svc.db.session())


@bp.get("/activity")
@require_permission("dashboard.view")
@validate_query(ActivityQuery)
def dashboard_activity(query: ActivityQuery):
    svc = _dashboard()
    return {"data": [activity_out(ev) for ev in svc.recent_activity(svc.db.session(), query.limit)]}


@bp.get("/my-tasks")
@require_permission("dashboard.view")
def dashboard_my_tasks():
    svc = _dashboard()
    result = svc.my_tasks(svc.db.session(), current_user())
    return {
        "overdue": result["overdue"],
        "dueToday": result["dueToday"],
        "tasks": [
            {
                "id": t.id,
                "title": t.title,
                "projectCode": t.project.project_code or t.project.deal_code,
                "projectName": t.project.name,
                "status": t.status,
                "priority": t.priority,
                "deadline": iso(t.deadline),
            }
            for t in result["tasks"]
        ],
    }
