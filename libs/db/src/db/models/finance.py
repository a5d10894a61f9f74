from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr

# BIGINT identity on Postgres; SQLite only autoincrements INTEGER PRIMARY KEY.
_PK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: csv_uploads
# ---------------------------


class CsvUpload(Base):
    """A normalized dataset for one file type.

    ``data`` holds the JSON the pipeline produced (for bank statements:
    ``{"transactions": [...], "openingBalance": "..."}``). Uploading a file
    type again replaces its rows.
    """

    __tablename__ = "csv_uploads"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    file_type: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[Any] = mapped_column(JSON, nullable=False)
    uploaded_by: Mapped[str | None] = mapped_column(String, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.true()
    )

    __table_args__ = (Index("ix_csv_uploads_file_type_active", "file_type", "is_active"),)


# ---------------------------
# Reference: global_classifications
# ---------------------------


class GlobalClassification(Base):
    """One version of the label → tag map; at most one row is active."""

    __tablename__ = "global_classifications"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    mappings: Mapped[dict[str, str]] = mapped_column(JSON, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.true()
    )
