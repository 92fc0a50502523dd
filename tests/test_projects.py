import pytest
from conftest import login, user_id

from app.pms.modules.project.phases import weighted_progress
from app.pms.modules.project.service import calculate_financials, can_transition


def test_calculate_financials():
    out = calculate_financials({"total_budget": 100_000_000, "cost_nsqc": 20_000_000, "cost_media": 30_000_000})
    assert out == {"cogs": 50_000_000.0, "gross_profit": 50_000_000.0, "profit_margin": 50.0}


def test_calculate_financials_without_budget():
    out = calculate_financials({"cost_design": 5})
    assert out["gross_profit"] == -5.0
    assert out["profit_margin"] == 0.0


@pytest.mark.parametrize(
    "from_stage,to_stage,ok",
    [
        ("LEAD", "QUALIFIED", True),
        ("LEAD", "WON", False),
        ("NEGOTIATION", "LOST", True),
        ("WON", "PLANNING", True),
        ("PLANNING", "CLOSED", False),
        ("CLOSED", "PLANNING", False),
        ("LOST", "LEAD", False),
    ],
)
def test_lifecycle_transitions(from_stage, to_stage, ok):
    assert can_transition(from_stage, to_stage) is ok


def test_weighted_progress_rounds_half_up():
    assert weighted_progress([]) == 0
    assert weighted_progress([(0, 100)]) == 0
    assert weighted_progress([(50, 100), (50, 0)]) == 50
    assert weighted_progress([(1, 100), (7, 0)]) == 13  # 12.5


def _create_project(client, **extra):
    r = client.post("/api/projects", json={"name": "Mega Campaign", **extra})
    assert r.status_code == 201, r.json
    return r.json


def test_project_create_defaults_to_planning_with_code(client):
    login(client)
    p = _create_project(client)
    assert p["lifecycle"] == "PLANNING"
    assert p["decision"] == "ACCEPTED"
    assert p["code"] == "PRJ0001"
    assert _create_project(client)["code"] == "PRJ0002"


def test_project_requires_login(client):
    r = client.get("/api/projects")
    assert r.status_code == 401
    assert r.json["error"] == "unauthorized"
    assert r.json["requestId"]


def test_mutation_without_csrf_token_is_forbidden(client):
    login(client)
    client.environ_base.pop("HTTP_X_CSRF_TOKEN")
    r = client.post("/api/projects", json={"name": "No token"})
    assert r.status_code == 403


def test_project_list_and_update(client):
    login(client)
    p = _create_project(client, totalBudget=1000)
    r = client.patch(f"/api/projects/{p['id']}", json={"name": "<b>Renamed</b>", "healthStatus": "WARNING"})
    assert r.status_code == 200
    assert r.json["name"] == "Renamed"
    assert r.json["healthStatus"] == "WARNING"

    r = client.get("/api/projects", query_string={"healthStatus": "WARNING"})
    assert r.status_code == 200
    assert [row["id"] for row in r.json["data"]] == [p["id"]]


def test_project_validation_errors_are_reported_per_field(client):
    login(client)
    r = client.post("/api/projects", json={"totalBudget": -1, "bogus": True})
    assert r.status_code == 422
    fields = {e["field"] for e in r.json["errors"]}
    assert {"name", "totalBudget", "bogus"} <= fields


def test_archive_hides_project_from_default_listing(client):
    login(client)
    p = _create_project(client)
    assert client.delete(f"/api/projects/{p['id']}").status_code == 200
    assert client.get("/api/projects").json["data"] == []
    listed = client.get("/api/projects", query_string={"includeArchived": "true"}).json["data"]
    assert [row["id"] for row in listed] == [p["id"]]


def test_lifecycle_change_follows_transition_table(client):
    login(client)
    p = _create_project(client)
    r = client.patch(f"/api/projects/{p['id']}/lifecycle", json={"lifecycle": "CLOSED"})
    assert r.status_code == 400
    r = client.patch(f"/api/projects/{p['id']}/lifecycle", json={"lifecycle": "ONGOING", "reason": "Kick-off done"})
    assert r.status_code == 200
    assert r.json["lifecycle"] == "ONGOING"
    history = client.get(f"/api/projects/{p['id']}/stage-history").json["data"]
    assert {h["toStage"] for h in history} == {"PLANNING", "ONGOING"}
    assert any(h["reason"] == "Kick-off done" for h in history)


def test_team_member_add_conflict_and_remove(client, app):
    login(client)
    p = _create_project(client)
    member = user_id(app, "member@example.com")
    r = client.post(f"/api/projects/{p['id']}/team", json={"userId": member, "role": "CONTENT"})
    assert r.status_code == 201
    member_id = r.json["id"]
    r = client.post(f"/api/projects/{p['id']}/team", json={"userId": member, "role": "DESIGN"})
    assert r.status_code == 409
    r = client.patch(f"/api/projects/{p['id']}/team/{member_id}", json={"isPrimary": True})
    assert r.status_code == 200
    assert r.json["isPrimary"] is True
    assert client.delete(f"/api/projects/{p['id']}/team/{member_id}").status_code == 204
    assert client.get(f"/api/projects/{p['id']}/team").json["data"] == []


def test_non_member_cannot_see_project(client, app):
    login(client)
    p = _create_project(client)
    client.post("/api/auth/logout")
    login(client, "member@example.com")
    assert client.get("/api/projects").json["data"] == []
    assert client.get(f"/api/tasks/project/{p['id']}/kanban").status_code == 403
