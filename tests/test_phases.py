from conftest import login


def _accepted_project(client):
    deal = client.post("/api/sales-pipeline", json={"projectName": "Phased"}).json
    client.post(f"/api/sales-pipeline/{deal['id']}/decide", json={"decision": "ACCEPTED"})
    return deal["id"]


def _first_phase(client, project_id):
    return client.get(f"/api/projects/{project_id}/phases").json["data"][0]


def test_completing_items_cascades_to_project_progress(client):
    login(client)
    pid = _accepted_project(client)
    phase = _first_phase(client, pid)
    assert phase["weight"] == 50
    intake = next(i for i in phase["items"] if i["name"] == "Intake & Brief")

    r = client.patch(f"/api/projects/{pid}/phases/{phase['id']}/items/{intake['id']}", json={"isComplete": True})
    assert r.status_code == 200
    assert r.json["phaseProgress"] == 10  # 5 of 50
    assert client.get(f"/api/projects/{pid}").json["stageProgress"] == 5  # 10% of a 50% phase


def test_item_add_and_delete_recalculate(client):
    login(client)
    pid = _accepted_project(client)
    phase = _first_phase(client, pid)
    r = client.post(f"/api/projects/{pid}/phases/{phase['id']}/items", json={"name": "Extra", "weight": 50})
    assert r.status_code == 201
    item = r.json
    client.patch(f"/api/projects/{pid}/phases/{phase['id']}/items/{item['id']}", json={"isComplete": True})
    assert _first_phase(client, pid)["progress"] == 50

    assert client.delete(f"/api/projects/{pid}/phases/{phase['id']}/items/{item['id']}").status_code == 204
    assert _first_phase(client, pid)["progress"] == 0


def test_phase_dates_must_be_ordered(client):
    login(client)
    pid = _accepted_project(client)
    phase = _first_phase(client, pid)
    r = client.patch(f"/api/projects/{pid}/phases/{phase['id']}", json={"startDate": "2026-05-10", "endDate": "2026-05-01"})
    assert r.status_code == 400
    r = client.patch(f"/api/projects/{pid}/phases/{phase['id']}", json={"startDate": "2026-05-01", "endDate": "2026-05-10"})
    assert r.status_code == 200
    assert r.json["startDate"] == "2026-05-01"


def test_link_task_connects_and_disconnects(client):
    login(client)
    pid = _accepted_project(client)
    phase = _first_phase(client, pid)
    item = phase["items"][0]
    task = client.post("/api/tasks", json={"projectId": pid, "title": "Write brief"}).json
    url = f"/api/projects/{pid}/phases/{phase['id']}/items/{item['id']}/link-task"

    # No action relinks with the default.
    r = client.patch(url, json={"taskId": task["id"]})
    assert r.status_code == 200
    assert [t["id"] for t in r.json["tasks"]] == [task["id"]]
    r = client.patch(url, json={"taskId": task["id"], "action": "connect"})
    assert len(r.json["tasks"]) == 1

    r = client.patch(url, json={"taskId": task["id"], "action": "disconnect"})
    assert r.json["tasks"] == []


def test_link_task_validation(client):
    login(client)
    pid = _accepted_project(client)
    other = client.post("/api/projects", json={"name": "Other"}).json
    foreign = client.post("/api/tasks", json={"projectId": other["id"], "title": "Elsewhere"}).json
    phase = _first_phase(client, pid)
    url = f"/api/projects/{pid}/phases/{phase['id']}/items/{phase['items'][0]['id']}/link-task"

    assert client.patch(url, json={"action": "connect"}).status_code == 422
    assert client.patch(url, json={"taskId": foreign["id"], "action": "flip"}).status_code == 422
    r = client.patch(url, json={"action": "toggle"})
    assert r.status_code == 422
    assert sorted(e["field"] for e in r.json["errors"]) == ["action", "taskId"]
    r = client.patch(url, json={"taskId": foreign["id"]})
    assert r.status_code == 400
    assert r.json["message"] == "Task belongs to a different project."
    assert client.patch(url, json={"taskId": "nope"}).status_code == 404
