"""Pytest configuration for test isolation.

- ``packages/``, ``libs/db/src`` and the repo root go on ``sys.path`` so the
  tests run from a plain checkout as well as an editable install.
- Every test starts from a clean ``FINBOARD_*``/``DATABASE_URL`` environment
  inside its own temporary working directory, so a developer ``.env`` never
  leaks in.
- The shared engine and the logging handler are torn down after each test.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in (str(_ROOT / "packages"), str(_ROOT / "libs/db/src"), str(_ROOT))
    if p not in sys.path
]

from db.client import dispose_engine  # noqa: E402
from finboard.logging_setup import reset_logging  # noqa: E402

from tests.helpers.db import bootstrap_sqlite_db  # noqa: E402

_ENV_VARS = (
    "DATABASE_URL",
    "FINBOARD_LOG_LEVEL",
    "FINBOARD_CHUNK_CAPACITY",
    "FINBOARD_CHUNK_IDLE_SECONDS",
    "FINBOARD_MAX_PAYLOAD_BYTES",
    "FINBOARD_SECONDARY_CURRENCY",
)

DATA_DIR = _ROOT / "tests" / "data"


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    dispose_engine()
    reset_logging()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """A fresh SQLite file database with the dashboard schema."""

    return bootstrap_sqlite_db(tmp_path / "finboard.db")


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR
