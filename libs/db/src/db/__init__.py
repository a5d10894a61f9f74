"""db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` (Alembic's migration target)
- ORM models from ``db.models.finance``
- Engine/session helpers live in ``db.client``
"""

from __future__ import annotations

from .models.finance import Base, CsvUpload, GlobalClassification

metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "CsvUpload",
    "GlobalClassification",
]
