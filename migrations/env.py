from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from app.pms.config import load_settings
from app.pms.db import split_schema
from app.pms.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    url = (config.get_main_option("sqlalchemy.url") or "").strip() or os.environ.get("DATABASE_URL", "").strip()
    if not url:
        url = load_settings().database_url
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations.")
    return url


def run_migrations_offline() -> None:
    url, _schema = split_schema(_database_url())
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url, schema = split_schema(_database_url())
    connect_args = {"options": f"-c search_path={schema}"} if schema and url.startswith("postgres") else {}
    engine = create_engine(url, poolclass=pool.NullPool, connect_args=connect_args, future=True)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
