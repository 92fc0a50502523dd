import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.pms.models import Permission, Role, User  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

PERMISSIONS: dict[str, str] = {
    # Projects
    "projects.view": "Projects: view",
    "projects.create": "Projects: create",
    "projects.edit": "Projects: edit, phases, team",
    "projects.delete": "Projects: archive",
    "projects.decide": "Projects: accept / decline",
    # Sales pipeline
    "pipeline.view": "Pipeline: view",
    "pipeline.create": "Pipeline: create deals",
    "pipeline.edit": "Pipeline: edit sale info, stage, weekly notes",
    "pipeline.evaluate": "Pipeline: evaluate (PM)",
    "pipeline.decide": "Pipeline: accept / decline",
    # Strategic briefs
    "briefs.view": "Strategic briefs: view",
    "briefs.edit": "Strategic briefs: edit, submit",
    "briefs.approve": "Strategic briefs: approve, request revision",
    # Tasks
    "tasks.view": "Tasks: view",
    "tasks.create": "Tasks: create",
    "tasks.edit": "Tasks: edit, status, assign",
    "tasks.delete": "Tasks: delete",
    # Calendar
    "events.view": "Calendar: view",
    "events.edit": "Calendar: create, edit, respond",
    # Files
    "files.view": "Files: view, download",
    "files.upload": "Files: upload, edit metadata",
    "files.delete": "Files: delete",
    # Dashboard / reports
    "dashboard.view": "Dashboard: view",
    "reports.generate": "Reports: generate",
}

_VIEW = ("projects.view", "pipeline.view", "briefs.view", "tasks.view", "events.view", "files.view", "dashboard.view")
_WORK = _VIEW + ("tasks.create", "tasks.edit", "events.edit", "files.upload")

ROLES: dict[str, tuple[str, tuple[str, ...]]] = {
    "super_admin": ("Super administrator", tuple(PERMISSIONS)),
    "admin": ("Administrator", tuple(PERMISSIONS)),
    "pm": (
        "Project manager",
        _WORK
        + (
            "projects.create",
            "projects.edit",
            "projects.decide",
            "pipeline.evaluate",
            "pipeline.decide",
            "briefs.edit",
            "briefs.approve",
            "tasks.delete",
            "files.delete",
            "reports.generate",
        ),
    ),
    "nvkd": ("Sales (NVKD)", _VIEW + ("pipeline.create", "pipeline.edit", "events.edit", "files.upload")),
    "planner": ("Planner", _WORK + ("briefs.edit", "reports.generate")),
    "account": ("Account", _WORK + ("briefs.edit", "reports.generate")),
    "content": ("Content", _WORK),
    "design": ("Design", _WORK),
    "media": ("Media", _WORK),
}


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@bcagency.vn").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///pms.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        perms: dict[str, Permission] = {}
        for key, name in PERMISSIONS.items():
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            perms[key] = p

        roles: dict[str, Role] = {}
        for key, (name, granted) in ROLES.items():
            role = s.query(Role).filter(Role.key == key).one_or_none()
            if not role:
                role = Role(key=key, name=name)
                s.add(role)
            for perm_key in granted:
                if perms[perm_key] not in role.permissions:
                    role.permissions.append(perms[perm_key])
            roles[key] = role

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(email=admin_email, name="Administrator", password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
        if roles["super_admin"] not in user.roles:
            user.roles.append(roles["super_admin"])

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
