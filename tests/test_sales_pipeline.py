from conftest import login, user_id


def _create_deal(client, name="Tet Campaign", **extra):
    r = client.post("/api/sales-pipeline", json={"projectName": name, **extra})
    assert r.status_code == 201, r.json
    return r.json


def test_create_pipeline_assigns_deal_code_and_owner(client):
    me = login(client)
    deal = _create_deal(client, totalBudget=500)
    assert deal["dealCode"] == "DEAL-0001"
    assert deal["code"] is None
    assert deal["lifecycle"] == "LEAD"
    assert deal["decision"] == "PENDING"
    assert deal["nvkd"]["id"] == me["id"]
    assert _create_deal(client, "Second")["dealCode"] == "DEAL-0002"


def test_evaluate_recalculates_financials(client, app):
    login(client)
    deal = _create_deal(client, totalBudget=200_000_000)
    r = client.patch(
        f"/api/sales-pipeline/{deal['id']}/evaluate",
        json={"costNSQC": 50_000_000, "costKOL": 30_000_000, "clientTier": "A", "pmId": user_id(app, "member@example.com")},
    )
    assert r.status_code == 200, r.json
    assert r.json["cogs"] == 80_000_000
    assert r.json["grossProfit"] == 120_000_000
    assert r.json["profitMargin"] == 60.0
    assert r.json["pm"]["email"] == "member@example.com"


def test_manual_stage_moves(client):
    login(client)
    deal = _create_deal(client)
    assert client.patch(f"/api/sales-pipeline/{deal['id']}/stage", json={"stage": "QUALIFIED"}).status_code == 200
    # WON only happens through a decision.
    r = client.patch(f"/api/sales-pipeline/{deal['id']}/stage", json={"stage": "WON"})
    assert r.status_code == 400
    r = client.patch(f"/api/sales-pipeline/{deal['id']}/stage", json={"stage": "NEGOTIATION"})
    assert r.status_code == 400


def test_weekly_notes_are_numbered_and_sanitized(client):
    login(client)
    deal = _create_deal(client)
    client.post(f"/api/sales-pipeline/{deal['id']}/weekly-note", json={"note": "Called client"})
    r = client.post(f"/api/sales-pipeline/{deal['id']}/weekly-note", json={"note": "<script>x</script>Sent <b>quote</b>"})
    assert r.status_code == 200
    notes = r.json["weeklyNotes"]
    assert [n["week"] for n in notes] == [1, 2]
    assert notes[1]["note"] == "Sent quote"


def test_weekly_note_requires_text(client):
    login(client)
    deal = _create_deal(client)
    assert client.post(f"/api/sales-pipeline/{deal['id']}/weekly-note", json={}).status_code == 422
    assert client.post(f"/api/sales-pipeline/{deal['id']}/weekly-note", json={"note": 7}).status_code == 422


def test_accepting_pipeline_creates_project_team_phases_and_brief(client, app):
    me = login(client)
    deal = _create_deal(client)
    pm = user_id(app, "member@example.com")
    planner = user_id(app, "other@example.com")
    client.patch(f"/api/sales-pipeline/{deal['id']}/evaluate", json={"pmId": pm, "plannerId": planner})

    r = client.post(f"/api/sales-pipeline/{deal['id']}/decide", json={"decision": "ACCEPTED", "decisionNote": "Go"})
    assert r.status_code == 200, r.json
    won = r.json
    assert won["lifecycle"] == "WON"
    assert won["decision"] == "ACCEPTED"
    assert won["code"] == "PRJ0001"
    roles = {(m["userId"], m["role"], m["isPrimary"]) for m in won["team"]}
    assert roles == {(me["id"], "NVKD", False), (pm, "PM", True), (planner, "PLANNER", False)}

    phases = client.get(f"/api/projects/{deal['id']}/phases").json["data"]
    assert [p["weight"] for p in phases] == [50, 10, 30, 10]

    brief = client.get(f"/api/strategic-briefs/by-project/{deal['id']}")
    assert brief.status_code == 200
    assert brief.json["projectId"] == deal["id"]
    assert brief.json["pipelineId"] == deal["id"]
    assert len(brief.json["sections"]) == 16


def test_existing_pipeline_brief_is_linked_on_accept(client):
    login(client)
    deal = _create_deal(client)
    created = client.post("/api/strategic-briefs", json={"pipelineId": deal["id"]})
    assert created.status_code == 201
    client.post(f"/api/sales-pipeline/{deal['id']}/decide", json={"decision": "ACCEPTED"})
    linked = client.get(f"/api/strategic-briefs/by-project/{deal['id']}").json
    assert linked["id"] == created.json["id"]
    assert linked["projectId"] == deal["id"]


def test_declining_pipeline_marks_it_lost(client):
    login(client)
    deal = _create_deal(client)
    r = client.post(f"/api/sales-pipeline/{deal['id']}/decide", json={"decision": "DECLINED", "decisionNote": "Budget"})
    assert r.status_code == 200
    assert r.json["lifecycle"] == "LOST"
    assert r.json["decision"] == "DECLINED"
    assert r.json["code"] is None
    assert client.get(f"/api/projects/{deal['id']}/phases").json["data"] == []


def test_decided_pipeline_is_frozen(client):
    login(client)
    deal = _create_deal(client)
    client.post(f"/api/sales-pipeline/{deal['id']}/decide", json={"decision": "DECLINED"})
    for method, path, body in (
        ("post", "decide", {"decision": "ACCEPTED"}),
        ("patch", "sale", {"totalBudget": 1}),
        ("patch", "evaluate", {"clientTier": "B"}),
        ("post", "weekly-note", {"note": "late"}),
    ):
        r = getattr(client, method)(f"/api/sales-pipeline/{deal['id']}/{path}", json=body)
        assert r.status_code == 400, path
        assert "already decided" in r.json["message"]


def test_pipeline_list_filters_by_decision(client):
    login(client)
    a = _create_deal(client, "A")
    _create_deal(client, "B")
    client.post(f"/api/sales-pipeline/{a['id']}/decide", json={"decision": "DECLINED"})
    r = client.get("/api/sales-pipeline", query_string={"decision": "PENDING"})
    assert [p["name"] for p in r.json["data"]] == ["B"]
    assert r.json["meta"]["total"] == 1


def test_delivery_project_is_not_a_pipeline(client):
    login(client)
    p = client.post("/api/projects", json={"name": "Delivery"}).json
    assert client.get(f"/api/sales-pipeline/{p['id']}").status_code == 404
