from datetime import datetime, timedelta

from conftest import login, user_id


def _project(client, name="Task board"):
    return client.post("/api/projects", json={"name": name}).json


def _task(client, project_id, **extra):
    r = client.post("/api/tasks", json={"projectId": project_id, "title": "Draft plan", **extra})
    assert r.status_code == 201, r.json
    return r.json


def test_create_defaults_and_ordering(client):
    login(client)
    p = _project(client)
    first = _task(client, p["id"])
    second = _task(client, p["id"], title="<b>Second</b>", priority="HIGH")
    assert first["status"] == "TODO"
    assert first["priority"] == "MEDIUM"
    assert (first["orderIndex"], second["orderIndex"]) == (0, 1)
    assert second["title"] == "Second"
    assert second["project"]["code"] == p["code"]


def test_status_changes_stamp_start_and_completion(client):
    login(client)
    t = _task(client, _project(client)["id"])
    r = client.patch(f"/api/tasks/{t['id']}/status", json={"status": "IN_PROGRESS"})
    assert r.json["startedAt"] is not None
    assert r.json["completedAt"] is None
    started = r.json["startedAt"]
    r = client.patch(f"/api/tasks/{t['id']}/status", json={"status": "DONE"})
    assert r.json["completedAt"] is not None
    assert r.json["startedAt"] == started
    assert client.patch(f"/api/tasks/{t['id']}/status", json={"status": "FINISHED"}).status_code == 422


def test_subtasks_must_share_project(client):
    login(client)
    a = _project(client, "A")
    b = _project(client, "B")
    parent = _task(client, a["id"])
    r = client.post("/api/tasks", json={"projectId": b["id"], "title": "Child", "parentId": parent["id"]})
    assert r.status_code == 400
    child = _task(client, a["id"], title="Child", parentId=parent["id"])
    client.patch(f"/api/tasks/{child['id']}/status", json={"status": "DONE"})
    detail = client.get(f"/api/tasks/{parent['id']}").json
    assert detail["subtaskCount"] == 1
    assert detail["completedSubtaskCount"] == 1


def test_assign_and_reviewer(client, app):
    login(client)
    t = _task(client, _project(client)["id"])
    member = user_id(app, "member@example.com")
    other = user_id(app, "other@example.com")
    r = client.post(f"/api/tasks/{t['id']}/assign", json={"userIds": [member, other, member]})
    assert r.status_code == 200
    assert sorted(a["userId"] for a in r.json["assignees"]) == sorted([member, other])
    r = client.post(f"/api/tasks/{t['id']}/assign", json={"userIds": [9999]})
    assert r.status_code == 400

    r = client.patch(f"/api/tasks/{t['id']}", json={"reviewerId": other, "estimatedHours": 4})
    assert r.status_code == 200
    assert r.json["reviewer"]["email"] == "other@example.com"
    assert r.json["estimatedHours"] == 4


def test_kanban_groups_top_level_tasks(client):
    login(client)
    p = _project(client)
    todo = _task(client, p["id"])
    done = _task(client, p["id"], title="Shipped", status="DONE")
    _task(client, p["id"], title="Dropped", status="CANCELLED")
    _task(client, p["id"], title="Sub", parentId=todo["id"])
    board = client.get(f"/api/tasks/project/{p['id']}/kanban").json
    columns = {c["status"]: [t["id"] for t in c["tasks"]] for c in board["columns"]}
    assert list(columns) == ["TODO", "IN_PROGRESS", "REVIEW", "DONE", "BLOCKED"]
    assert columns["TODO"] == [todo["id"]]
    assert columns["DONE"] == [done["id"]]


def test_reorder_moves_between_columns(client):
    login(client)
    p = _project(client)
    a = _task(client, p["id"], title="A")
    b = _task(client, p["id"], title="B")
    r = client.patch(
        f"/api/tasks/project/{p['id']}/reorder",
        json={"tasks": [{"id": a["id"], "orderIndex": 1}, {"id": b["id"], "orderIndex": 0, "status": "REVIEW"}]},
    )
    assert r.status_code == 204
    listed = client.get("/api/tasks", query_string={"projectId": p["id"]}).json["data"]
    assert [t["title"] for t in listed] == ["B", "A"]
    assert listed[0]["status"] == "REVIEW"
    r = client.patch(f"/api/tasks/project/{p['id']}/reorder", json={"tasks": [{"id": "missing", "orderIndex": 0}]})
    assert r.status_code == 404


def test_my_tasks_only_lists_assigned(client, app):
    login(client)
    p = _project(client)
    member = user_id(app, "member@example.com")
    client.post(f"/api/projects/{p['id']}/team", json={"userId": member, "role": "CONTENT"})
    deadline = (datetime.utcnow() + timedelta(days=2)).replace(microsecond=0).isoformat()
    _task(client, p["id"], title="Mine", assigneeIds=[member], deadline=deadline)
    _task(client, p["id"], title="Not mine")
    client.post("/api/auth/logout")

    login(client, "member@example.com")
    r = client.get("/api/tasks/user/my-tasks")
    assert r.status_code == 200
    assert [t["title"] for t in r.json["data"]] == ["Mine"]
    # Team members can work on the project's tasks.
    assert client.get(f"/api/tasks/project/{p['id']}/kanban").status_code == 200


def test_delete_task(client):
    login(client)
    t = _task(client, _project(client)["id"])
    assert client.delete(f"/api/tasks/{t['id']}").status_code == 204
    assert client.get(f"/api/tasks/{t['id']}").status_code == 404
