"""Persistence for normalized datasets and classification versions.

Both stores sit on ``db.client.session_scope``; every public method is one
transaction.

- :class:`DatasetStore` keeps one active dataset per file type. Storing a new
  dataset hard-deletes the type's previous rows and inserts the new one.
- :class:`ClassificationStore` keeps every version and flags exactly one as
  active (deactivate, then insert).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any

from db.client import session_scope
from db.models.finance import CsvUpload, GlobalClassification
from sqlalchemy import delete, select, update

from .classification import ClassificationMap
from .file_types import FileType, parse_file_type
from .logging_setup import get_logger

_logger = get_logger("finboard.store")


@dataclass(frozen=True, slots=True)
class StoredDataset:
    id: int
    file_type: str
    data: Any
    uploaded_by: str | None
    uploaded_at: datetime
    is_active: bool

    @classmethod
    def from_row(cls, row: CsvUpload) -> StoredDataset:
        return cls(
            id=row.id,
            file_type=row.file_type,
            data=row.data,
            uploaded_by=row.uploaded_by,
            uploaded_at=row.uploaded_at,
            is_active=row.is_active,
        )


class DatasetStore:
    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def store(
        self, file_type: str | FileType, dataset: Any, uploaded_by: str | None = None
    ) -> StoredDataset:
        """Replace the dataset for ``file_type`` with ``dataset``."""

        ft = parse_file_type(file_type).value
        with session_scope(database_url=self._database_url) as session:
            removed = session.execute(delete(CsvUpload).where(CsvUpload.file_type == ft)).rowcount
            row = CsvUpload(file_type=ft, data=dataset, uploaded_by=uploaded_by, is_active=True)
            session.add(row)
            session.flush()
            session.refresh(row)
            stored = StoredDataset.from_row(row)
        _logger.info(
            "dataset stored file_type=%s id=%d replaced=%d by=%s",
            ft,
            stored.id,
            removed or 0,
            uploaded_by or "-",
        )
        return stored

    def fetch_latest_active(self, file_type: str | FileType) -> StoredDataset | None:
        ft = parse_file_type(file_type).value
        with session_scope(database_url=self._database_url) as session:
            row = session.scalars(
                select(CsvUpload)
                .where(CsvUpload.file_type == ft, CsvUpload.is_active.is_(True))
                .order_by(CsvUpload.uploaded_at.desc(), CsvUpload.id.desc())
                .limit(1)
            ).first()
            return StoredDataset.from_row(row) if row is not None else None

    def delete(self, file_type: str | FileType) -> int:
        """Remove every row for ``file_type``; return how many were removed."""

        ft = parse_file_type(file_type).value
        with session_scope(database_url=self._database_url) as session:
            removed = session.execute(delete(CsvUpload).where(CsvUpload.file_type == ft)).rowcount
        _logger.info("dataset deleted file_type=%s rows=%d", ft, removed or 0)
        return removed or 0

    def upload_status(self, file_types: Iterable[FileType] | None = None) -> dict[str, bool]:
        """Map each file type to whether an active dataset exists for it."""

        wanted = [ft.value for ft in (file_types if file_types is not None else FileType)]
        with session_scope(database_url=self._database_url) as session:
            present = set(
                session.scalars(
                    select(CsvUpload.file_type)
                    .where(CsvUpload.is_active.is_(True))
                    .distinct()
                ).all()
            )
        return {ft: ft in present for ft in wanted}


class ClassificationStore:
    def __init__(self, *, database_url: str | None = None) -> None:
        self._database_url = database_url

    def fetch_active(self) -> ClassificationMap | None:
        with session_scope(database_url=self._database_url) as session:
            row = session.scalars(
                select(GlobalClassification)
                .where(GlobalClassification.is_active.is_(True))
                .order_by(GlobalClassification.id.desc())
                .limit(1)
            ).first()
            if row is None:
                return None
            return ClassificationMap(
                version=row.version,
                mappings=MappingProxyType(dict(row.mappings)),
                created_by=row.created_by,
                created_at=row.created_at,
            )

    def replace(self, cmap: ClassificationMap) -> None:
        """Deactivate the current version and insert ``cmap`` as active."""

        with session_scope(database_url=self._database_url) as session:
            session.execute(
                update(GlobalClassification)
                .where(GlobalClassification.is_active.is_(True))
                .values(is_active=False)
            )
            session.add(
                GlobalClassification(
                    version=cmap.version,
                    mappings=dict(cmap.mappings),
                    created_by=cmap.created_by,
                    created_at=cmap.created_at,
                    is_active=True,
                )
            )
        _logger.info("classification version persisted version=%d", cmap.version)

    def history(self) -> list[Mapping[str, Any]]:
        """Every stored version, oldest first, without the mappings themselves."""

        with session_scope(database_url=self._database_url) as session:
            rows = session.scalars(
                select(GlobalClassification).order_by(GlobalClassification.id)
            ).all()
            return [
                {
                    "version": r.version,
                    "labels": len(r.mappings),
                    "created_by": r.created_by,
                    "is_active": r.is_active,
                }
                for r in rows
            ]


__all__ = ["StoredDataset", "DatasetStore", "ClassificationStore"]
