"""DB helpers for tests: bootstrap a temporary SQLite database."""

from __future__ import annotations

from pathlib import Path

from db import Base
from db.client import dispose_engine, get_engine
from sqlalchemy import inspect


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a file-backed SQLite database with every ORM table; return its URL.

    A file (not ``:memory:``) lets every pooled connection see the same
    state. Any engine bound by an earlier test is disposed first.
    """

    db_file.parent.mkdir(parents=True, exist_ok=True)
    url = f"sqlite+pysqlite:///{db_file}"
    dispose_engine()
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    _assert_tables_in_sync(url)
    return url


def _assert_tables_in_sync(database_url: str) -> None:
    """ORM column sets must match what SQLite actually created."""

    insp = inspect(get_engine(database_url=database_url))
    for table in Base.metadata.sorted_tables:
        got = {c["name"] for c in insp.get_columns(table.name)}
        expected = {c.name for c in table.columns}
        assert got == expected, f"{table.name} schema drift: {sorted(got ^ expected)}"
