"""Reassembly of chunked uploads.

Large row arrays are sent as ``total_chunks`` parts that may arrive in any
order, possibly from concurrent requests. :class:`ChunkReassembler` buffers
the parts per upload id in a fixed-size slot table and, once as many distinct
indices as declared have arrived, concatenates them in index order.

Locking
-------
- A registry lock guards the slot table (allocation, lookup, eviction).
- Each pending upload has its own lock around its read-modify-write, so
  uploads never wait on each other except during slot allocation.
- Completion is decided under the upload's lock and closes the entry, so
  exactly one caller receives the combined rows.
- Eviction only takes an upload's lock with ``blocking=False``; an upload that
  is busy is by definition not idle.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from .errors import IncompleteUploadError, UploadCapacityError
from .logging_setup import get_logger
from .models import RawRecord

_logger = get_logger("finboard.chunks")


@dataclass(frozen=True, slots=True)
class ChunkReceipt:
    """Outcome of one :meth:`ChunkReassembler.receive` call.

    ``rows`` is populated only on the call that completed the upload.
    """

    upload_id: str
    complete: bool
    received: int
    total: int
    file_type: str
    rows: list[RawRecord] | None = None


@dataclass(frozen=True, slots=True)
class UploadProgress:
    upload_id: str
    file_type: str
    received: int
    total: int

    @property
    def complete(self) -> bool:
        return self.received >= self.total


@dataclass(slots=True)
class _PendingUpload:
    upload_id: str
    file_type: str
    total_chunks: int
    last_seen: float
    chunks: dict[int, list[RawRecord]] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)
    closed: bool = False


class ChunkReassembler:
    """Bounded table of in-flight chunked uploads."""

    def __init__(
        self,
        capacity: int = 256,
        idle_timeout: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._slots: list[_PendingUpload | None] = [None] * capacity
        self._index: dict[str, int] = {}
        self._registry_lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._index)

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    def receive(
        self,
        upload_id: str,
        chunk_index: int,
        total_chunks: int,
        file_type: str,
        rows: Sequence[RawRecord],
    ) -> ChunkReceipt:
        """Buffer one chunk; return progress or, on completion, the rows.

        The first chunk seen for an upload fixes its ``total_chunks`` and
        ``file_type``; later values are ignored. Re-sending an index replaces
        the earlier copy.

        Raises
        ------
        IncompleteUploadError
            The declared number of distinct indices arrived but some index in
            ``0..total_chunks-1`` is absent. The upload's state is dropped.
        UploadCapacityError
            No slot is free or evictable for a new upload id.
        """

        if chunk_index < 0:
            raise ValueError(f"chunk_index must be non-negative, got {chunk_index}")
        if total_chunks < 1:
            raise ValueError(f"total_chunks must be positive, got {total_chunks}")

        while True:
            pending = self._slot_for(upload_id, total_chunks, file_type)
            with pending.lock:
                if pending.closed:
                    # Completed or evicted between lookup and lock; allocate again.
                    continue
                pending.chunks[chunk_index] = list(rows)
                pending.last_seen = self._clock()
                received = len(pending.chunks)
                total = pending.total_chunks
                if received < total:
                    _logger.debug(
                        "chunk buffered upload_id=%s index=%d received=%d total=%d",
                        upload_id,
                        chunk_index,
                        received,
                        total,
                    )
                    return ChunkReceipt(upload_id, False, received, total, pending.file_type)

                pending.closed = True
                self._release(pending)
                return self._combine(pending)

    def _combine(self, pending: _PendingUpload) -> ChunkReceipt:
        total = pending.total_chunks
        missing = [i for i in range(total) if i not in pending.chunks]
        if missing:
            _logger.warning(
                "upload incomplete at completion upload_id=%s missing=%s",
                pending.upload_id,
                missing,
            )
            raise IncompleteUploadError(pending.upload_id, missing)
        combined: list[RawRecord] = []
        for i in range(total):
            combined.extend(pending.chunks[i])
        _logger.info(
            "upload reassembled upload_id=%s chunks=%d rows=%d file_type=%s",
            pending.upload_id,
            total,
            len(combined),
            pending.file_type,
        )
        return ChunkReceipt(
            pending.upload_id, True, len(pending.chunks), total, pending.file_type, combined
        )

    # ------------------------------------------------------------------
    # Slot table
    # ------------------------------------------------------------------

    def _slot_for(self, upload_id: str, total_chunks: int, file_type: str) -> _PendingUpload:
        with self._registry_lock:
            idx = self._index.get(upload_id)
            if idx is not None:
                existing = self._slots[idx]
                if existing is not None:
                    return existing
            free = self._free_slot_locked()
            if free is None:
                raise UploadCapacityError(
                    f"all {self._capacity} upload slots are busy; retry later"
                )
            pending = _PendingUpload(
                upload_id=upload_id,
                file_type=file_type,
                total_chunks=total_chunks,
                last_seen=self._clock(),
            )
            self._slots[free] = pending
            self._index[upload_id] = free
            return pending

    def _free_slot_locked(self) -> int | None:
        for i, slot in enumerate(self._slots):
            if slot is None:
                return i
        now = self._clock()
        for i, slot in enumerate(self._slots):
            if slot is not None and self._try_evict_locked(i, slot, now):
                return i
        return None

    def _evictable(self, pending: _PendingUpload, now: float) -> bool:
        return not pending.chunks or now - pending.last_seen >= self._idle_timeout

    def _try_evict_locked(self, i: int, pending: _PendingUpload, now: float) -> bool:
        if not pending.lock.acquire(blocking=False):
            return False
        try:
            if pending.closed or not self._evictable(pending, now):
                return False
            pending.closed = True
            self._slots[i] = None
            self._index.pop(pending.upload_id, None)
        finally:
            pending.lock.release()
        _logger.info(
            "upload evicted upload_id=%s received=%d total=%d",
            pending.upload_id,
            len(pending.chunks),
            pending.total_chunks,
        )
        return True

    def _release(self, pending: _PendingUpload) -> None:
        with self._registry_lock:
            idx = self._index.get(pending.upload_id)
            if idx is not None and self._slots[idx] is pending:
                self._slots[idx] = None
                del self._index[pending.upload_id]

    # ------------------------------------------------------------------
    # Inspection / maintenance
    # ------------------------------------------------------------------

    def status(self, upload_id: str) -> UploadProgress | None:
        with self._registry_lock:
            idx = self._index.get(upload_id)
            pending = self._slots[idx] if idx is not None else None
        if pending is None:
            return None
        with pending.lock:
            return UploadProgress(
                upload_id, pending.file_type, len(pending.chunks), pending.total_chunks
            )

    def discard(self, upload_id: str) -> bool:
        """Drop any buffered state for ``upload_id``; True when something was dropped."""

        with self._registry_lock:
            idx = self._index.pop(upload_id, None)
            if idx is None:
                return False
            pending = self._slots[idx]
            self._slots[idx] = None
        if pending is not None:
            with pending.lock:
                pending.closed = True
        return True

    def sweep(self, now: float | None = None) -> int:
        """Evict idle and zero-progress uploads; return how many were removed."""

        ts = self._clock() if now is None else now
        removed = 0
        with self._registry_lock:
            for i, slot in enumerate(self._slots):
                if slot is not None and self._try_evict_locked(i, slot, ts):
                    removed += 1
        return removed


__all__ = ["ChunkReceipt", "UploadProgress", "ChunkReassembler"]
