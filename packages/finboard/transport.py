"""Client side of the upload protocol.

Rows go up as one :class:`~finboard.models.UploadPayload` when the serialized
body fits under ``max_bytes``; otherwise they are split into contiguous
:class:`~finboard.models.ChunkPayload` parts sharing one upload id. A
transport that rejects a single payload as too large (raising
:class:`~finboard.errors.PayloadTooLargeError`) triggers the same chunked
path.
"""

from __future__ import annotations

import json
import math
import uuid
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from pydantic import BaseModel

from .errors import PayloadTooLargeError
from .logging_setup import get_logger
from .models import ChunkPayload, RawRecord, UploadPayload

DEFAULT_MAX_PAYLOAD_BYTES = 3_500_000

_logger = get_logger("finboard.transport")

T = TypeVar("T")


def estimate_payload_bytes(payload: BaseModel | Any) -> int:
    """UTF-8 size of the JSON body ``payload`` would be sent as."""

    if isinstance(payload, BaseModel):
        text = payload.model_dump_json(by_alias=True)
    else:
        text = json.dumps(payload, default=str, separators=(",", ":"), ensure_ascii=False)
    return len(text.encode("utf-8"))


def split_rows(rows: Sequence[RawRecord], parts: int) -> list[list[RawRecord]]:
    """Split ``rows`` into ``parts`` contiguous slices differing by at most one row."""

    if parts < 1:
        raise ValueError("parts must be at least 1")
    parts = min(parts, max(1, len(rows)))
    base, extra = divmod(len(rows), parts)
    out: list[list[RawRecord]] = []
    start = 0
    for i in range(parts):
        end = start + base + (1 if i < extra else 0)
        out.append(list(rows[start:end]))
        start = end
    return out


def chunk_rows(
    rows: Sequence[RawRecord],
    file_type: str,
    *,
    max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
    upload_id: str | None = None,
) -> list[ChunkPayload]:
    """Split ``rows`` into the fewest chunks whose bodies fit ``max_bytes``.

    A single row larger than ``max_bytes`` still travels alone in its own
    chunk.
    """

    uid = upload_id or uuid.uuid4().hex
    total_size = estimate_payload_bytes({"data": list(rows)})
    parts = max(1, math.ceil(total_size / max_bytes))
    while True:
        slices = split_rows(rows, parts)
        chunks = [
            ChunkPayload(
                upload_id=uid,
                chunk_index=i,
                total_chunks=len(slices),
                file_type=file_type,
                chunk_data=s,
            )
            for i, s in enumerate(slices)
        ]
        if parts >= len(rows) or all(estimate_payload_bytes(c) <= max_bytes for c in chunks):
            return chunks
        parts += 1


def plan_upload(
    rows: Sequence[RawRecord],
    file_type: str,
    *,
    max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
    upload_id: str | None = None,
) -> UploadPayload | list[ChunkPayload]:
    single = UploadPayload(file_type=file_type, data=list(rows))
    if estimate_payload_bytes(single) <= max_bytes:
        return single
    return chunk_rows(rows, file_type, max_bytes=max_bytes, upload_id=upload_id)


def send_with_fallback(
    rows: Sequence[RawRecord],
    file_type: str,
    send: Callable[[UploadPayload | ChunkPayload], T],
    *,
    max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> list[T]:
    """Send ``rows`` through ``send`` and return every response, in order.

    When ``send`` rejects the single payload with ``PayloadTooLargeError``
    the rows are re-sent in chunks sized to half the rejected body (capped
    at ``max_bytes``). Rejections of individual chunks propagate.
    """

    plan = plan_upload(rows, file_type, max_bytes=max_bytes)
    if isinstance(plan, UploadPayload):
        try:
            return [send(plan)]
        except PayloadTooLargeError:
            size = estimate_payload_bytes(plan)
            target = max(1, min(max_bytes, size // 2))
            _logger.warning(
                "single upload rejected as too large bytes=%d; retrying in chunks of <=%d",
                size,
                target,
            )
            plan = chunk_rows(rows, file_type, max_bytes=target)

    _logger.info("sending chunked upload upload_id=%s chunks=%d", plan[0].upload_id, len(plan))
    return [send(chunk) for chunk in plan]


__all__ = [
    "DEFAULT_MAX_PAYLOAD_BYTES",
    "estimate_payload_bytes",
    "split_rows",
    "chunk_rows",
    "plan_upload",
    "send_with_fallback",
]
