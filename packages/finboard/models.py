"""Canonical records and wire payloads for the ingestion pipeline.

Canonical records are frozen dataclasses with string-typed amounts and dates
so they serialize to JSON without loss of formatting:

- ``amount`` / ``amount_secondary``: two decimals, ASCII dot, never negative.
- ``date``: ``YYYY-MM-DD``.

Upload payloads are pydantic models. They accept both the camelCase names
used on the wire (``uploadId``, ``chunkIndex``, ...) and snake_case names.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .columns import InferredSchema

# A single parsed CSV row: header -> cell. Key order follows the source header.
type RawRecord = Mapping[str, Any]

type FlowType = Literal["inflow", "outflow"]


@dataclass(frozen=True, slots=True)
class CanonicalTransaction:
    """A normalized bank movement; the sign lives in ``type``, not ``amount``."""

    id: str
    date: str
    description: str
    category: str
    contact: str | None
    type: FlowType
    amount: str
    amount_secondary: str | None = None

    def signed_amount(self) -> Decimal:
        d = Decimal(self.amount)
        return d if self.type == "inflow" else -d

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CanonicalTransaction:
        return cls(
            id=str(data["id"]),
            date=str(data["date"]),
            description=str(data["description"]),
            category=str(data.get("category") or "Uncategorized"),
            contact=data.get("contact"),
            type=data["type"],
            amount=str(data["amount"]),
            amount_secondary=data.get("amount_secondary"),
        )


@dataclass(frozen=True, slots=True)
class SkippedRow:
    """Marker for a source row the normalizer dropped, with the reason."""

    row_index: int
    reason: str


@dataclass(frozen=True, slots=True)
class NormalizedBatch:
    """Output of :func:`finboard.transactions.normalize_transactions`."""

    transactions: tuple[CanonicalTransaction, ...]
    opening_balance: Decimal
    schema: InferredSchema
    opening_balance_secondary: Decimal | None = None
    skipped: tuple[SkippedRow, ...] = field(default_factory=tuple)

    def to_dataset(self) -> dict[str, Any]:
        """JSON-friendly form persisted by the dataset store."""

        out: dict[str, Any] = {
            "transactions": [t.to_dict() for t in self.transactions],
            "openingBalance": f"{self.opening_balance:.2f}",
        }
        if self.opening_balance_secondary is not None:
            out["openingBalanceSecondary"] = f"{self.opening_balance_secondary:.2f}"
        return out


# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------


class UploadPayload(BaseModel):
    """Single-request upload: the whole row array in one body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    file_type: str = Field(alias="fileType", min_length=1)
    data: list[dict[str, Any]]


class ChunkPayload(BaseModel):
    """One part of a chunked upload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    upload_id: str = Field(alias="uploadId", min_length=1)
    chunk_index: int = Field(alias="chunkIndex", ge=0)
    total_chunks: int = Field(alias="totalChunks", ge=1)
    file_type: str = Field(alias="fileType", min_length=1)
    chunk_data: list[dict[str, Any]] = Field(alias="chunkData")

    @field_validator("upload_id")
    @classmethod
    def _upload_id_printable(cls, v: str) -> str:
        if not v.isprintable():
            raise ValueError("uploadId must be printable")
        return v


__all__ = [
    "RawRecord",
    "FlowType",
    "CanonicalTransaction",
    "SkippedRow",
    "NormalizedBatch",
    "UploadPayload",
    "ChunkPayload",
]
