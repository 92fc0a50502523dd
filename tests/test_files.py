import io

import pytest

from conftest import login, user_id

from app.pms.composition import module_provider
from app.pms.db import session_scope
from app.pms.models import User


def _project(client):
    return client.post("/api/projects", json={"name": "Files"}).json


def _upload(client, project_id, *, name="Brief Final (v2).pdf", data=b"%PDF-1.4 test", **fields):
    form = {"file": (io.BytesIO(data), name), "projectId": project_id, **fields}
    return client.post("/api/files/upload", data=form, content_type="multipart/form-data")


def test_upload_list_and_stream(client, app, tmp_path):
    login(client)
    p = _project(client)
    r = _upload(client, p["id"], category="BRIEF", tags=["kickoff", "<b>v2</b>"])
    assert r.status_code == 201, r.json
    f = r.json
    assert f["originalName"] == "Brief Final (v2).pdf"
    assert f["size"] == len(b"%PDF-1.4 test")
    assert f["category"] == "BRIEF"
    assert f["tags"] == ["kickoff", "v2"]
    assert f["path"].startswith(f"projects/{p['id']}/files/")
    assert f["path"].endswith("-brief-final-v2-.pdf")
    assert (tmp_path / "storage" / f["path"]).read_bytes() == b"%PDF-1.4 test"

    listed = client.get(f"/api/files/project/{p['id']}").json
    assert listed["total"] == 1
    assert [row["id"] for row in listed["data"]] == [f["id"]]

    # Local storage cannot presign, so downloads go through the stream endpoint.
    url = client.get(f"/api/files/{f['id']}/download").json["url"]
    assert url == f"/api/files/{f['id']}/stream"
    streamed = client.get(url)
    assert streamed.status_code == 200
    assert streamed.data == b"%PDF-1.4 test"


def test_upload_requires_a_file(client):
    login(client)
    p = _project(client)
    r = client.post("/api/files/upload", data={"projectId": p["id"]}, content_type="multipart/form-data")
    assert r.status_code == 400
    assert r.json["message"] == "No file provided"


def test_upload_for_task_of_another_project_is_rejected(client):
    login(client)
    a = _project(client)
    b = _project(client)
    task = client.post("/api/tasks", json={"projectId": b["id"], "title": "Other"}).json
    r = _upload(client, a["id"], taskId=task["id"])
    assert r.status_code == 400


def test_task_files_use_task_prefix(client):
    login(client)
    p = _project(client)
    task = client.post("/api/tasks", json={"projectId": p["id"], "title": "Design"}).json
    f = _upload(client, p["id"], name="mock.png", data=b"png", taskId=task["id"]).json
    assert f["path"].startswith(f"projects/{p['id']}/tasks/{task['id']}/")
    assert client.get(f"/api/files/task/{task['id']}").json["total"] == 1


def test_only_uploader_or_admin_can_change_files(client, app):
    login(client)
    p = _project(client)
    member = user_id(app, "member@example.com")
    client.post(f"/api/projects/{p['id']}/team", json={"userId": member, "role": "CONTENT"})
    f = _upload(client, p["id"]).json
    client.post("/api/auth/logout")

    login(client, "member@example.com")
    assert client.get(f"/api/files/{f['id']}").status_code == 200
    assert client.patch(f"/api/files/{f['id']}", json={"name": "mine.pdf"}).status_code == 403
    own = _upload(client, p["id"], name="notes.txt", data=b"notes").json
    r = client.patch(f"/api/files/{own['id']}", json={"name": "renamed.txt", "tags": ["x"]})
    assert r.status_code == 200
    assert r.json["name"] == "renamed.txt"


def test_delete_removes_stored_object(client, tmp_path):
    login(client)
    p = _project(client)
    f = _upload(client, p["id"]).json
    stored = tmp_path / "storage" / f["path"]
    assert stored.exists()
    assert client.delete(f"/api/files/{f['id']}").json == {"success": True}
    assert not stored.exists()
    assert client.get(f"/api/files/{f['id']}").status_code == 404


def test_non_member_cannot_read_project_files(client):
    login(client)
    p = _project(client)
    f = _upload(client, p["id"]).json
    client.post("/api/auth/logout")
    login(client, "other@example.com")
    assert client.get(f"/api/files/{f['id']}").status_code == 403


def test_rolled_back_delete_keeps_stored_object(client, app, tmp_path):
    login(client)
    p = _project(client)
    f = _upload(client, p["id"]).json
    svc = module_provider("file", "files", app)
    with app.app_context(), pytest.raises(RuntimeError):
        with session_scope(app) as s:
            user = s.get(User, user_id(app, "admin@example.com"))
            svc.delete(s, svc.get(s, f["id"], user), user)
            raise RuntimeError("commit failed")
    assert (tmp_path / "storage" / f["path"]).read_bytes() == b"%PDF-1.4 test"
    assert client.get(f"/api/files/{f['id']}").status_code == 200
