from flask import Flask, g

from conftest import login

from app.pms.web.providers import QueryProvider, ThemeProvider, compose_providers


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert client.get("/healthz").data == b"ok"


def test_request_id_is_echoed(client):
    r = client.get("/api/auth/me", headers={"X-Request-Id": "abc-123"})
    assert r.status_code == 401
    assert r.headers["X-Request-Id"] == "abc-123"
    assert r.json["requestId"] == "abc-123"


def test_login_me_logout(client):
    r = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})
    assert r.status_code == 401

    user = login(client, "ADMIN@example.com")
    assert "projects.view" in user["permissions"]
    assert user["roles"] == ["admin"]
    assert client.get("/api/auth/me").json["user"]["email"] == "admin@example.com"

    assert client.post("/api/auth/logout").json == {"success": True}
    assert client.get("/api/auth/me").status_code == 401


def test_login_is_rate_limited(client):
    for _ in range(5):
        client.post("/api/auth/login", json={"email": "admin@example.com", "password": "bad"})
    r = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 429


def test_pages_require_login(client):
    assert client.get("/").headers["Location"].endswith("/dashboard")
    r = client.get("/dashboard")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/login")
    assert client.get("/login").status_code == 200


def test_dashboard_and_project_pages_render(client):
    login(client)
    p = client.post("/api/projects", json={"name": "Rendered Project"}).json
    r = client.get("/dashboard")
    assert r.status_code == 200
    assert b"<html" in r.data
    assert r.headers["Accept-CH"] == "Sec-CH-Prefers-Color-Scheme"
    assert b"Rendered Project" in client.get("/dashboard/projects").data
    assert b"Rendered Project" in client.get(f"/dashboard/projects/{p['id']}").data
    assert client.get("/dashboard/projects/missing").status_code == 404


def test_theme_comes_from_cookie_then_client_hint(client):
    login(client)
    client.set_cookie("theme", "dark")
    assert b'class="dark"' in client.get("/dashboard").data
    client.set_cookie("theme", "system")
    r = client.get("/dashboard", headers={"Sec-CH-Prefers-Color-Scheme": '"dark"'})
    assert b'class="dark"' in r.data
    assert b'class="light"' in client.get("/dashboard").data


def test_legacy_pipeline_url_redirects_without_body(client):
    r = client.get("/dashboard/sales-pipeline/abc123")
    assert r.status_code == 307
    assert r.headers["Location"] == "/dashboard/projects/abc123"
    assert r.data == b""


def test_theme_provider_resolution():
    assert ThemeProvider().resolved == "light"
    assert ThemeProvider(theme="system", system_theme="dark").resolved == "dark"
    assert ThemeProvider(theme="light", system_theme="dark").resolved == "light"
    assert ThemeProvider(theme="system", system_theme="dark", enable_system=False).resolved == "light"


def test_query_provider_memoizes_per_key():
    calls = []
    q = QueryProvider()
    load = lambda: calls.append(1) or len(calls)  # noqa: E731
    assert q.fetch("k", load) == 1
    assert q.fetch("k", load) == 1
    assert q.hits == 1
    q.invalidate("k")
    assert q.fetch("k", load) == 2


def test_provider_scopes_nest_theme_outside_query():
    app = Flask(__name__)
    assert compose_providers(app) == ("theme", "query")
    seen = {}

    @app.get("/scopes")
    def scopes():
        seen["theme"] = g.theme
        seen["query"] = g.query
        return "ok"

    client = app.test_client()
    client.set_cookie("theme", "dark")
    client.get("/scopes")
    assert seen["theme"].resolved == "dark"
    assert isinstance(seen["query"], QueryProvider)
