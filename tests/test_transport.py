import pytest

from finboard.errors import PayloadTooLargeError
from finboard.models import ChunkPayload, UploadPayload
from finboard.transport import (
    chunk_rows,
    estimate_payload_bytes,
    plan_upload,
    send_with_fallback,
    split_rows,
)


def _rows(n: int) -> list[dict[str, str]]:
    return [{"Date": "2024-01-01", "Description": f"row {i:04d}", "Debit": "1.00"} for i in range(n)]


def test_split_rows_is_contiguous_and_balanced():
    parts = split_rows(list(range(10)), 3)
    assert parts == [[0, 1, 2, 3], [4, 5, 6], [7, 8, 9]]
    assert split_rows([1, 2], 5) == [[1], [2]]
    assert split_rows([], 3) == [[]]
    with pytest.raises(ValueError):
        split_rows([1], 0)


def test_small_upload_goes_in_one_payload():
    plan = plan_upload(_rows(3), "sgd_transactions")
    assert isinstance(plan, UploadPayload)
    assert plan.file_type == "sgd_transactions"


def test_large_upload_is_chunked_under_the_limit():
    rows = _rows(100)
    limit = estimate_payload_bytes(UploadPayload(file_type="shopify", data=rows)) // 3
    plan = plan_upload(rows, "shopify", max_bytes=limit, upload_id="abc")

    assert isinstance(plan, list)
    assert len(plan) >= 3
    assert all(estimate_payload_bytes(c) <= limit for c in plan)
    assert {c.upload_id for c in plan} == {"abc"}
    assert {c.total_chunks for c in plan} == {len(plan)}
    assert [c.chunk_index for c in plan] == list(range(len(plan)))
    assert [r for c in plan for r in c.chunk_data] == rows


def test_oversized_single_row_travels_alone():
    rows = [{"blob": "x" * 500}, {"blob": "y"}]
    chunks = chunk_rows(rows, "shopify", max_bytes=100)
    assert [len(c.chunk_data) for c in chunks] == [1, 1]


def test_chunk_payload_serializes_with_wire_names():
    chunk = chunk_rows(_rows(1), "tiktok", upload_id="u1")[0]
    body = chunk.model_dump(by_alias=True)
    assert set(body) == {"uploadId", "chunkIndex", "totalChunks", "fileType", "chunkData"}


def test_rejected_single_payload_falls_back_to_chunks():
    rows = _rows(20)
    sent: list[UploadPayload | ChunkPayload] = []

    def send(payload):
        sent.append(payload)
        if isinstance(payload, UploadPayload):
            raise PayloadTooLargeError("413")
        return payload.chunk_index

    responses = send_with_fallback(rows, "sgd_transactions", send)

    assert isinstance(sent[0], UploadPayload)
    chunks = sent[1:]
    assert len(chunks) >= 2
    assert responses == list(range(len(chunks)))
    assert [r for c in chunks for r in c.chunk_data] == rows
    single = estimate_payload_bytes(sent[0])
    assert all(estimate_payload_bytes(c) <= max(1, single // 2) for c in chunks)


def test_rejected_chunk_propagates():
    def send(payload):
        raise PayloadTooLargeError("still too large")

    with pytest.raises(PayloadTooLargeError):
        send_with_fallback(_rows(50), "shopify", send, max_bytes=500)
