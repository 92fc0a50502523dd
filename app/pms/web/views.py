from __future__ import annotations

from functools import wraps
from urllib.parse import quote

from flask import Blueprint, Response, g, redirect, render_template, request

from app.pms.composition import module_provider
from app.pms.rbac import user_has_permission
from app.pms.web.providers import query

bp = Blueprint("web", __name__)


def page_login_required(fn):
    @wraps(fn)
    def wrapped(*args, **kwargs):
        if not getattr(g, "current_user", None):
            return redirect("/login")
        return fn(*args, **kwargs)

    return wrapped


async def _route_param(name: str) -> str:
    return request.view_args[name]


@bp.get("/sales-pipeline/<pipeline_id>")
async def sales_pipeline_detail(pipeline_id: str):
    """Old pipeline detail URLs live on as project detail pages; nothing renders here."""
    target = await _route_param("pipeline_id")
    return Response(status=307, headers={"Location": f"/dashboard/projects/{quote(target, safe='')}"})


@bp.get("")
@page_login_required
def dashboard_home():
    user = g.current_user
    dashboard = module_provider("web", "dashboard")
    s = dashboard.db.session()
    stats = query().fetch("dashboard.stats", lambda: dashboard.stats(s))
    mine = query().fetch("dashboard.my_tasks", lambda: dashboard.my_tasks(s, user))
    return render_template(
        "dashboard/index.html",
        stats=stats,
        my_tasks=mine,
        can_view=user_has_permission(user, "dashboard.view"),
    )


@bp.get("/projects")
@page_login_required
def project_list_page():
    projects = module_provider("web", "projects")
    rows, meta = query().fetch(
        "projects.list",
        lambda: projects.list_projects(projects.db.session(), user=g.current_user, limit=100),
    )
    return render_template("projects/list.html", projects=rows, meta=meta)


@bp.get("/projects/<project_id>")
@page_login_required
def project_detail_page(project_id: str):
    projects = module_provider("web", "projects")
    project = query().fetch(f"projects.{project_id}", lambda: projects.get(projects.db.session(), project_id))
    return render_template("projects/detail.html", project=project)
