from conftest import login


def _project(client):
    return client.post("/api/projects", json={"name": "Brief target"}).json


def _complete_all(client, brief_id):
    r = None
    for num in range(1, 17):
        r = client.patch(
            f"/api/strategic-briefs/{brief_id}/sections/{num}",
            json={"data": {"text": f"section {num}"}, "isComplete": True},
        )
        assert r.status_code == 200, r.json
    return r


def test_create_requires_exactly_one_reference(client):
    login(client)
    p = _project(client)
    r = client.post("/api/strategic-briefs", json={"pipelineId": p["id"], "projectId": p["id"]})
    assert r.status_code == 400
    assert r.json["message"] == "Provide either pipelineId or projectId, not both."
    r = client.post("/api/strategic-briefs", json={})
    assert r.status_code == 400


def test_create_rejects_unknown_target_and_duplicates(client):
    login(client)
    assert client.post("/api/strategic-briefs", json={"projectId": "missing"}).status_code == 404
    p = _project(client)
    r = client.post("/api/strategic-briefs", json={"projectId": p["id"]})
    assert r.status_code == 201
    assert r.json["status"] == "DRAFT"
    assert r.json["completionPct"] == 0
    assert [s["sectionNum"] for s in r.json["sections"]] == list(range(1, 17))
    assert client.post("/api/strategic-briefs", json={"projectId": p["id"]}).status_code == 400


def test_pipeline_and_project_ids_share_one_brief(client):
    login(client)
    deal = client.post("/api/sales-pipeline", json={"projectName": "Shared"}).json
    assert client.post("/api/strategic-briefs", json={"pipelineId": deal["id"]}).status_code == 201
    r = client.post("/api/strategic-briefs", json={"projectId": deal["id"]})
    assert r.status_code == 400
    assert r.json["message"] == "A strategic brief already exists for this record."


def test_section_edits_update_completion(client):
    login(client)
    p = _project(client)
    brief = client.post("/api/strategic-briefs", json={"projectId": p["id"]}).json
    r = client.patch(f"/api/strategic-briefs/{brief['id']}/sections/1", json={"data": {"brand": "BC"}, "isComplete": True})
    assert r.status_code == 200
    assert r.json["section"]["data"] == {"brand": "BC"}
    assert r.json["completionPct"] == 6  # 1/16 = 6.25
    assert client.patch(f"/api/strategic-briefs/{brief['id']}/sections/17", json={"isComplete": True}).status_code == 404


def test_submit_requires_every_section(client):
    login(client)
    p = _project(client)
    brief = client.post("/api/strategic-briefs", json={"projectId": p["id"]}).json
    r = client.post(f"/api/strategic-briefs/{brief['id']}/submit")
    assert r.status_code == 400
    assert "16 sections" in r.json["message"]


def test_review_cycle(client):
    login(client)
    p = _project(client)
    brief = client.post("/api/strategic-briefs", json={"projectId": p["id"]}).json
    assert _complete_all(client, brief["id"]).json["completionPct"] == 100

    r = client.post(f"/api/strategic-briefs/{brief['id']}/submit")
    assert r.status_code == 200
    assert r.json["status"] == "SUBMITTED"
    assert r.json["submittedAt"]

    # Submitted briefs are read-only.
    r = client.patch(f"/api/strategic-briefs/{brief['id']}/sections/2", json={"isComplete": False})
    assert r.status_code == 400

    assert client.post(f"/api/strategic-briefs/{brief['id']}/request-revision", json={}).status_code == 422
    r = client.post(f"/api/strategic-briefs/{brief['id']}/request-revision", json={"comment": "More <i>KPIs</i>"})
    assert r.status_code == 200
    assert r.json["status"] == "REVISION_REQUESTED"
    assert r.json["revisions"][0]["comment"] == "More KPIs"

    assert client.post(f"/api/strategic-briefs/{brief['id']}/approve").status_code == 400
    assert client.post(f"/api/strategic-briefs/{brief['id']}/submit").status_code == 200
    r = client.post(f"/api/strategic-briefs/{brief['id']}/approve")
    assert r.status_code == 200
    assert r.json["status"] == "APPROVED"
    assert r.json["approvedById"] is not None

    detail = client.get(f"/api/strategic-briefs/{brief['id']}").json
    assert detail["status"] == "APPROVED"


def test_by_project_404_without_brief(client):
    login(client)
    p = _project(client)
    r = client.get(f"/api/strategic-briefs/by-project/{p['id']}")
    assert r.status_code == 404
    assert r.json["error"] == "not_found"


def test_member_without_approve_permission_is_forbidden(client):
    login(client)
    p = _project(client)
    brief = client.post("/api/strategic-briefs", json={"projectId": p["id"]}).json
    client.post("/api/auth/logout")
    login(client, "member@example.com")
    r = client.post(f"/api/strategic-briefs/{brief['id']}/approve")
    assert r.status_code == 403
    assert r.json["message"] == "Missing permission: briefs.approve"
