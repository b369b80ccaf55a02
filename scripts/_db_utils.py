from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def normalize_db_url(db_url: str) -> str:
    url = db_url.strip()
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def create_script_engine(db_url: str) -> Engine:
    url = normalize_db_url(db_url)
    kwargs: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if url.startswith("postgresql"):
        kwargs["pool_recycle"] = 1800
    return create_engine(url, **kwargs)


@contextmanager
def script_session(db_url: str) -> Generator[Session, None, None]:
    """One-shot session for CLI scripts: commit on success, roll back on error, dispose the engine."""
    engine = create_script_engine(db_url)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False, future=True)
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
