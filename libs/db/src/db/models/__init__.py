"""Shared SQLAlchemy models registry for the workspace database.

Holds the dashboard tables used by ``finboard``.
"""

from .finance import Base, CsvUpload, GlobalClassification

__all__ = [
    "Base",
    "CsvUpload",
    "GlobalClassification",
]
