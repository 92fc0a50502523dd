from datetime import datetime, timedelta

from conftest import login

from app.pms.db import session_scope
from app.pms.modules.dashboard.service import DashboardService
from app.pms.models import Role, User


def _project(client, name="Dash", **extra):
    return client.post("/api/projects", json={"name": name, **extra}).json


def test_stats_count_live_records(client):
    login(client)
    p = _project(client, healthStatus="WARNING")
    archived = _project(client, "Old", healthStatus="CRITICAL")
    client.delete(f"/api/projects/{archived['id']}")
    client.post("/api/tasks", json={"projectId": p["id"], "title": "A", "status": "IN_PROGRESS"})
    client.post("/api/tasks", json={"projectId": p["id"], "title": "B", "status": "DONE"})

    stats = client.get("/api/dashboard/stats").json
    assert stats["projects"] == {"total": 1, "warning": 1, "critical": 0}
    assert stats["tasks"] == {"total": 2, "inProgress": 1, "done": 1}
    assert stats["users"] == {"total": 3, "active": 3}
    assert stats["files"] == {"total": 0, "totalSize": 0}


def test_activity_lists_recent_audit_events(client):
    login(client)
    p = _project(client)
    rows = client.get("/api/dashboard/activity", query_string={"limit": 2}).json["data"]
    assert len(rows) == 2
    assert rows[0]["type"] == "project.create"
    assert rows[0]["description"] == f"project.create Project ({p['id'][:8]}...)"
    assert rows[0]["userName"] == "Admin"
    assert client.get("/api/dashboard/activity", query_string={"limit": 0}).status_code == 422


def test_my_tasks_orders_by_priority_then_deadline(client):
    me = login(client)
    p = _project(client)
    now = datetime.utcnow()

    def task(title, priority, deadline=None, status=None):
        body = {"projectId": p["id"], "title": title, "priority": priority, "assigneeIds": [me["id"]]}
        if deadline is not None:
            body["deadline"] = deadline.replace(microsecond=0).isoformat()
        if status:
            body["status"] = status
        assert client.post("/api/tasks", json=body).status_code == 201

    task("low overdue", "LOW", now - timedelta(days=3))
    task("urgent later", "URGENT", now + timedelta(days=5))
    task("urgent sooner", "URGENT", now + timedelta(days=1))
    task("urgent undated", "URGENT")
    task("high finished", "HIGH", status="DONE")
    task("medium dropped", "MEDIUM", status="CANCELLED")

    out = client.get("/api/dashboard/my-tasks").json
    assert [t["title"] for t in out["tasks"]] == ["urgent sooner", "urgent later", "urgent undated", "low overdue"]
    assert out["overdue"] == 1
    assert out["tasks"][0]["projectCode"] == p["code"]


def test_due_today_counts_against_given_clock(app, client):
    me = login(client)
    p = _project(client)
    client.post(
        "/api/tasks",
        json={"projectId": p["id"], "title": "Today", "deadline": "2026-04-10T15:00:00", "assigneeIds": [me["id"]]},
    )
    svc = DashboardService(app.extensions["pms.db"])
    with session_scope(app) as s:
        user = s.get(User, me["id"])
        result = svc.my_tasks(s, user, now=datetime(2026, 4, 10, 8, 0))
        assert (result["overdue"], result["dueToday"]) == (0, 1)
        result = svc.my_tasks(s, user, now=datetime(2026, 4, 12, 8, 0))
        assert (result["overdue"], result["dueToday"]) == (1, 0)


def test_dashboard_requires_permission(client, app):
    with session_scope(app) as s:
        role = s.query(Role).filter(Role.key == "content").one()
        role.permissions = [p for p in role.permissions if p.key != "dashboard.view"]
    login(client, "member@example.com")
    assert client.get("/api/dashboard/stats").status_code == 403
