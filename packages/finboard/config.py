"""Runtime settings resolved from the environment.

The CLI loads a local ``.env`` (python-dotenv) before calling
:meth:`Settings.from_env`; library callers may construct :class:`Settings`
directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None = None
    chunk_capacity: int = 256
    chunk_idle_seconds: int = 3600
    max_payload_bytes: int = 3_500_000
    secondary_currency: str = "sgd"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``DATABASE_URL`` and ``FINBOARD_*`` variables."""

        currency = (os.getenv("FINBOARD_SECONDARY_CURRENCY") or "sgd").strip().lower()
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            chunk_capacity=_env_int("FINBOARD_CHUNK_CAPACITY", 256),
            chunk_idle_seconds=_env_int("FINBOARD_CHUNK_IDLE_SECONDS", 3600),
            max_payload_bytes=_env_int("FINBOARD_MAX_PAYLOAD_BYTES", 3_500_000),
            secondary_currency=currency or "sgd",
        )


__all__ = ["Settings"]
