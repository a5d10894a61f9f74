"""Process-wide SQLAlchemy engine and session helpers.

Usage
-----
from db.client import session_scope

with session_scope() as s:
    s.add(...)

The engine is created lazily from ``DATABASE_URL`` (or an explicit
``database_url``) and then pinned: asking for a different URL in the same
process is an error until :func:`dispose_engine` is called.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

_ENGINE: Engine | None = None
_SESSION_MAKER: sessionmaker[Session] | None = None
_DB_URL: str | None = None


def _database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the shared engine, creating it on first use."""

    global _ENGINE, _SESSION_MAKER, _DB_URL
    if _ENGINE is not None and database_url is None:
        return _ENGINE
    url = _database_url(database_url)
    if _ENGINE is None:
        _ENGINE = create_engine(url, pool_pre_ping=True)
        _SESSION_MAKER = sessionmaker(bind=_ENGINE, expire_on_commit=False, class_=Session)
        _DB_URL = url
        return _ENGINE
    if url != _DB_URL:
        raise RuntimeError(
            "database engine already bound to a different URL; "
            "call dispose_engine() before switching databases"
        )
    return _ENGINE


def dispose_engine() -> None:
    """Close pooled connections and forget the pinned URL."""

    global _ENGINE, _SESSION_MAKER, _DB_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _SESSION_MAKER = None
    _DB_URL = None


def get_session(*, database_url: str | None = None) -> Session:
    get_engine(database_url=database_url)
    if _SESSION_MAKER is None:
        raise RuntimeError("database engine has no session factory; call get_engine() first")
    return _SESSION_MAKER()


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Commit on success, roll back on error, always close."""

    session = get_session(database_url=database_url)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "get_engine",
    "dispose_engine",
    "get_session",
    "session_scope",
]
