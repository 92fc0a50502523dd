from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g, has_request_context
from sqlalchemy import create_engine, event, make_url
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

# Pool sizing for Postgres: 5 warm connections, up to 20 total, 5s checkout wait.
PG_POOL_SIZE = 5
PG_MAX_OVERFLOW = 15
PG_POOL_TIMEOUT = 5
PG_STATEMENT_TIMEOUT_MS = 30_000


def split_schema(db_url: str) -> tuple[str, str | None]:
    """
    Strip a `?schema=` query parameter (not understood by psycopg2) and return it separately.
    """
    url = make_url(db_url)
    schema = url.query.get("schema") or None
    if isinstance(schema, tuple):
        schema = schema[-1] or None
    return url.difference_update_query(["schema"]).render_as_string(hide_password=False), schema


class Database:
    """
    Process-wide database client: one engine (connection pool) and one sessionmaker.
    Built once by init_db() and shared by every feature module.
    """

    def __init__(self, db_url: str, *, debug_checkout: bool = False, logger=None) -> None:
        url, schema = split_schema(db_url)
        is_postgres = url.startswith("postgres")
        engine_kwargs: dict[str, object] = {
            "future": True,
            "pool_pre_ping": True,
        }
        if is_postgres:
            options = [f"-c statement_timeout={PG_STATEMENT_TIMEOUT_MS}"]
            if schema:
                options.append(f"-c search_path={schema}")
            engine_kwargs.update(
                {
                    "pool_recycle": 1800,
                    "pool_size": PG_POOL_SIZE,
                    "max_overflow": PG_MAX_OVERFLOW,
                    "pool_timeout": PG_POOL_TIMEOUT,
                    "connect_args": {"connect_timeout": 5, "options": " ".join(options)},
                }
            )
        self.url = url
        self.schema = schema
        self.engine: Engine = create_engine(url, **engine_kwargs)
        if debug_checkout and logger is not None:
            @event.listens_for(self.engine, "checkout")
            def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
                logger.debug("DB connection checkout from pool")
        self.sessionmaker = sessionmaker(
            bind=self.engine,
            class_=Session,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )

    def session(self) -> Session:
        """Request-scoped session inside a request, a fresh one otherwise (caller closes it)."""
        if has_request_context():
            return db_session()
        return self.sessionmaker()

    def dispose(self) -> None:
        self.engine.dispose()


def init_db(app: Flask) -> Database:
    existing = app.extensions.get("pms.db")
    if existing is not None:
        return existing
    db = Database(
        app.config["DATABASE_URL"],
        debug_checkout=app.config.get("ENV") not in ("prod", "production"),
        logger=app.logger,
    )
    app.extensions["pms.db"] = db
    app.extensions["sqlalchemy_engine"] = db.engine
    app.extensions["sqlalchemy_sessionmaker"] = db.sessionmaker
    return db


def db_session(app: Flask | None = None) -> Session:
    """
    Request-scoped session. Use inside request handlers.
    """
    if getattr(g, "db_session", None) is not None:
        return g.db_session
    if app is None:
        app = current_app
    sm = app.extensions["sqlalchemy_sessionmaker"]
    g.db_session = sm()  # type: ignore[assignment]
    return g.db_session


def teardown_db_session(exc: BaseException | None) -> None:
    s: Session | None = getattr(g, "db_session", None)
    if s is not None:
        if exc is not None:
            s.rollback()
        s.close()
        g.db_session = None


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Non-request helper for scripts and tests: yields a session and commits/rolls back.
    """
    sm = app.extensions["sqlalchemy_sessionmaker"]
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
