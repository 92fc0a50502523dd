from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.pms.db import split_schema


def create_script_engine(db_url: str):
    """Engine for one-off scripts; honours the `?schema=` parameter like the app does."""
    url, schema = split_schema(db_url)
    kwargs: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if url.startswith("postgres"):
        kwargs["pool_recycle"] = 1800
        if schema:
            kwargs["connect_args"] = {"options": f"-c search_path={schema}"}
    return create_engine(url, **kwargs)


@contextmanager
def script_session(db_url: str):
    engine = create_script_engine(db_url)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
