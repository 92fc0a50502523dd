import pytest
from werkzeug.security import generate_password_hash

from app.pms import create_app
from app.pms.auth import _login_attempts
from app.pms.db import session_scope
from app.pms.models import Base, Permission, Role, User
from scripts.init_db import PERMISSIONS, ROLES


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)
    _login_attempts.clear()

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        perms = {key: Permission(key=key, name=name) for key, name in PERMISSIONS.items()}
        admin = Role(key="admin", name="Administrator")
        admin.permissions.extend(perms.values())
        content = Role(key="content", name="Content")
        content.permissions.extend(perms[k] for k in ROLES["content"][1])

        a = User(email="admin@example.com", name="Admin", password_hash=generate_password_hash("pw"), is_active=True)
        a.roles.append(admin)
        m = User(email="member@example.com", name="Member", password_hash=generate_password_hash("pw"), is_active=True)
        m.roles.append(content)
        o = User(email="other@example.com", name="Other", password_hash=generate_password_hash("pw"), is_active=True)
        o.roles.append(content)
        s.add_all([*perms.values(), admin, content, a, m, o])

    yield app
    app.extensions["pms.db"].dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


def login(client, email="admin@example.com", password="pw"):
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.json
    # Mutating /api calls must echo the session's CSRF token.
    client.environ_base["HTTP_X_CSRF_TOKEN"] = r.json["csrfToken"]
    return r.json["user"]


def user_id(app, email):
    with session_scope(app) as s:
        return s.query(User).filter(User.email == email).one().id
