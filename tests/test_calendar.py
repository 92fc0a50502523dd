from conftest import login, user_id


def _event(client, **extra):
    body = {"title": "Weekly sync", "type": "MEETING", "startTime": "2026-03-02T09:00:00", "endTime": "2026-03-02T10:00:00"}
    body.update(extra)
    r = client.post("/api/events", json=body)
    assert r.status_code == 201, r.json
    return r.json


def test_create_and_fetch_event(client, app):
    login(client)
    member = user_id(app, "member@example.com")
    e = _event(client, attendeeIds=[member, member], reminderBefore=15, location="<i>Room 2</i>")
    assert e["location"] == "Room 2"
    assert e["reminderBefore"] == 15
    assert [(a["userId"], a["status"]) for a in e["attendees"]] == [(member, "pending")]
    assert client.get(f"/api/events/{e['id']}").json["title"] == "Weekly sync"


def test_event_validation(client):
    login(client)
    base = {"title": "Bad", "type": "MEETING", "startTime": "2026-03-02T09:00:00"}
    r = client.post("/api/events", json={**base, "endTime": "2026-03-02T08:00:00"})
    assert r.status_code == 400
    r = client.post("/api/events", json={**base, "recurrence": "RRULE:FREQ=SOMETIMES"})
    assert r.status_code == 400
    assert r.json["message"] == "Invalid recurrence format"
    assert client.post("/api/events", json={**base, "reminderBefore": 20000}).status_code == 422
    assert client.post("/api/events", json={**base, "type": "PARTY"}).status_code == 422


def test_recurring_events_expand_within_range(client):
    login(client)
    e = _event(client, recurrence="RRULE:FREQ=WEEKLY;INTERVAL=1;COUNT=4")
    r = client.get("/api/events", query_string={"start": "2026-03-01T00:00:00", "end": "2026-03-20T00:00:00"})
    assert r.status_code == 200
    rows = [row for row in r.json["data"] if row["id"] == e["id"]]
    assert [row["startTime"] for row in rows] == [
        "2026-03-02T09:00:00",
        "2026-03-09T09:00:00",
        "2026-03-16T09:00:00",
    ]
    assert rows[1]["endTime"] == "2026-03-09T10:00:00"
    assert all(row["isRecurringOccurrence"] for row in rows)


def test_list_rejects_inverted_range(client):
    login(client)
    r = client.get("/api/events", query_string={"start": "2026-03-10T00:00:00", "end": "2026-03-01T00:00:00"})
    assert r.status_code == 400


def test_task_deadlines_show_as_all_day_events(client):
    login(client)
    p = client.post("/api/projects", json={"name": "Deadlines"}).json
    open_task = client.post(
        "/api/tasks", json={"projectId": p["id"], "title": "Deliver KV", "deadline": "2026-03-05T17:00:00"}
    ).json
    client.post(
        "/api/tasks",
        json={"projectId": p["id"], "title": "Done already", "deadline": "2026-03-06T17:00:00", "status": "DONE"},
    )
    r = client.get("/api/events/deadlines", query_string={"start": "2026-03-01T00:00:00", "end": "2026-03-31T00:00:00"})
    assert [d["taskId"] for d in r.json["data"]] == [open_task["id"]]
    assert r.json["data"][0]["isAllDay"] is True


def test_only_attendees_respond_and_only_creator_updates(client, app):
    login(client)
    member = user_id(app, "member@example.com")
    e = _event(client, attendeeIds=[member])
    client.post("/api/auth/logout")

    login(client, "member@example.com")
    r = client.post(f"/api/events/{e['id']}/respond", json={"status": "accepted"})
    assert r.status_code == 200
    assert r.json["attendees"][0]["status"] == "accepted"
    assert client.patch(f"/api/events/{e['id']}", json={"title": "Hijack"}).status_code == 403
    assert client.delete(f"/api/events/{e['id']}").status_code == 403
    client.post("/api/auth/logout")

    login(client, "other@example.com")
    assert client.get(f"/api/events/{e['id']}").status_code == 403


def test_creator_updates_and_deletes(client):
    login(client)
    e = _event(client)
    r = client.patch(f"/api/events/{e['id']}", json={"title": "Moved sync", "startTime": "2026-03-02T11:00:00", "endTime": "2026-03-02T12:00:00"})
    assert r.status_code == 200
    assert r.json["title"] == "Moved sync"
    assert client.delete(f"/api/events/{e['id']}").status_code == 204
    assert client.get(f"/api/events/{e['id']}").status_code == 404


def test_recurrence_patterns(client):
    login(client)
    patterns = client.get("/api/events/recurrence-patterns").json["data"]
    assert patterns[0] == {"label": "Hàng ngày", "value": "RRULE:FREQ=DAILY;INTERVAL=1"}
