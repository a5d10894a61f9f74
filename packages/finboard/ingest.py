"""Upload orchestration: route, normalize, then persist.

A batch is fully normalized and validated before the store is touched, so a
rejected upload (no rows, no inferable schema, no category column, broken
chunk sequence) leaves the previously active dataset for its file type in
place.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any

from .chunks import ChunkReassembler, UploadProgress
from .classification import ClassificationRegistry, partition_labels
from .config import Settings
from .errors import NoDataError
from .file_types import BatchKind, CurrencyMode, FileType, parse_file_type, route_for
from .logging_setup import get_logger
from .models import ChunkPayload, RawRecord, UploadPayload
from .pipeline import parse_opportunities
from .pl import extract_categories
from .store import DatasetStore, StoredDataset
from .transactions import normalize_transactions

_logger = get_logger("finboard.ingest")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, date):
        return value.isoformat()
    return value


def _plain_rows(rows: Sequence[RawRecord]) -> list[dict[str, Any]]:
    return [{str(k): _jsonable(v) for k, v in row.items()} for row in rows]


@dataclass(frozen=True, slots=True)
class IngestResult:
    file_type: FileType
    kind: BatchKind
    dataset: Mapping[str, Any]
    row_count: int
    skipped: int = 0
    extracted_categories: tuple[str, ...] = ()
    unknown_categories: tuple[str, ...] = ()
    stored: StoredDataset | None = None

    def summary(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "fileType": self.file_type.value,
            "rows": self.row_count,
        }
        if self.kind is BatchKind.TRANSACTIONS:
            out["transactions"] = len(self.dataset["transactions"])
            out["skipped"] = self.skipped
            out["openingBalance"] = self.dataset["openingBalance"]
        if self.kind is BatchKind.PL:
            out["extractedCategories"] = list(self.extracted_categories)
            out["unknownCategories"] = list(self.unknown_categories)
        if self.kind is BatchKind.PIPELINE:
            out["opportunities"] = len(self.dataset["opportunities"])
        return out


@dataclass(frozen=True, slots=True)
class ChunkResult:
    upload_id: str
    complete: bool
    received: int
    total: int
    result: IngestResult | None = None


class IngestService:
    """Entry point for single-payload and chunked uploads."""

    def __init__(
        self,
        datasets: DatasetStore,
        *,
        reassembler: ChunkReassembler | None = None,
        classifications: ClassificationRegistry | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._datasets = datasets
        self._reassembler = reassembler or ChunkReassembler(
            capacity=self._settings.chunk_capacity,
            idle_timeout=self._settings.chunk_idle_seconds,
        )
        self._classifications = classifications or ClassificationRegistry()

    @property
    def reassembler(self) -> ChunkReassembler:
        return self._reassembler

    def process_rows(self, file_type: str | FileType, rows: Sequence[RawRecord]) -> IngestResult:
        """Normalize ``rows`` for ``file_type`` without persisting anything."""

        ft = parse_file_type(file_type)
        route = route_for(ft)
        if not rows:
            raise NoDataError(f"no data rows for {ft.value}")

        if route.kind is BatchKind.TRANSACTIONS:
            batch = normalize_transactions(
                rows,
                mode=route.currency_mode or CurrencyMode.PRIMARY,
                secondary_currency=self._settings.secondary_currency,
            )
            dataset = batch.to_dataset()
            dataset["inferredColumns"] = {
                k: v for k, v in batch.schema.as_dict().items() if v is not None
            }
            return IngestResult(ft, route.kind, dataset, len(rows), skipped=len(batch.skipped))

        if route.kind is BatchKind.PL:
            categories = extract_categories(rows)
            part = partition_labels(categories, self._classifications.active())
            dataset = {"rows": _plain_rows(rows), "categories": categories}
            return IngestResult(
                ft,
                route.kind,
                dataset,
                len(rows),
                extracted_categories=tuple(categories),
                unknown_categories=part.unknown,
            )

        if route.kind is BatchKind.PIPELINE:
            opps = parse_opportunities(rows)
            dataset = {
                "rows": _plain_rows(rows),
                "opportunities": [
                    {
                        "name": o.name,
                        "client": o.client,
                        "stage": o.stage,
                        "value": format(o.value, "f"),
                        "probability": format(o.probability, "f"),
                        "office": o.office,
                    }
                    for o in opps
                ],
            }
            return IngestResult(ft, route.kind, dataset, len(rows))

        return IngestResult(ft, route.kind, {"rows": _plain_rows(rows)}, len(rows))

    def ingest(
        self,
        file_type: str | FileType,
        rows: Sequence[RawRecord],
        uploaded_by: str | None = None,
    ) -> IngestResult:
        """Normalize and, once the batch is valid, replace the stored dataset."""

        result = self.process_rows(file_type, rows)
        stored = self._datasets.store(result.file_type, dict(result.dataset), uploaded_by)
        _logger.info(
            "ingest complete file_type=%s rows=%d skipped=%d",
            result.file_type.value,
            result.row_count,
            result.skipped,
        )
        return replace(result, stored=stored)

    def upload(self, payload: UploadPayload, uploaded_by: str | None = None) -> IngestResult:
        return self.ingest(payload.file_type, payload.data, uploaded_by)

    def receive_chunk(self, payload: ChunkPayload, uploaded_by: str | None = None) -> ChunkResult:
        """Buffer one chunk; on the completing chunk ingest the combined rows.

        ``IncompleteUploadError`` and normalization errors propagate; either
        way the buffered state for the upload is already gone.
        """

        parse_file_type(payload.file_type)
        receipt = self._reassembler.receive(
            payload.upload_id,
            payload.chunk_index,
            payload.total_chunks,
            payload.file_type,
            payload.chunk_data,
        )
        if not receipt.complete or receipt.rows is None:
            return ChunkResult(payload.upload_id, False, receipt.received, receipt.total)
        result = self.ingest(receipt.file_type, receipt.rows, uploaded_by)
        return ChunkResult(payload.upload_id, True, receipt.received, receipt.total, result)

    def chunk_status(self, upload_id: str) -> UploadProgress | None:
        return self._reassembler.status(upload_id)


__all__ = ["IngestResult", "ChunkResult", "IngestService"]
