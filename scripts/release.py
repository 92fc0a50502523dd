"""
Release-phase helper.

- Fail fast if DATABASE_URL is missing (never fall back to the dev database in a deploy).
- Run alembic migrations.
- Seed permissions/roles/admin user (idempotent; does NOT overwrite existing passwords).

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _require_env(name: str) -> str:
    v = (os.environ.get(name) or "").strip()
    if not v:
        raise RuntimeError(f"Missing required environment variable {name}.")
    return v


def run_release() -> None:
    db_url = _require_env("DATABASE_URL")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")

    print("=== BC PMS release start ===", flush=True)
    print(f"ENV={env or '(unset)'}", flush=True)
    print("Running Alembic migrations...", flush=True)

    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    command.upgrade(cfg, "head")
    print("Migrations complete.", flush=True)

    print("Seeding permissions/admin (idempotent)...", flush=True)
    from scripts import init_db

    init_db.seed_only(database_url=db_url)
    print("Seed complete.", flush=True)
    print("=== BC PMS release done ===", flush=True)


def main() -> None:
    run_release()


if __name__ == "__main__":
    main()
