"""Exception taxonomy for the ingestion pipeline.

Batch-level failures (an unusable header set, an empty upload, a broken chunk
sequence) raise one of the classes below and reject the upload in full.
Row-level problems never raise; the normalizers skip the row instead.

Data-shape errors also derive from ``ValueError`` so callers that only know
about builtin validation failures still catch them.
"""

from __future__ import annotations

from collections.abc import Iterable


class FinboardError(Exception):
    """Base class for every error raised by ``finboard``."""


class SchemaInferenceError(FinboardError, ValueError):
    """A required column role could not be located in the header set."""

    def __init__(self, role: str, headers: Iterable[str] = ()) -> None:
        self.role = role
        self.headers = tuple(headers)
        shown = ", ".join(repr(h) for h in self.headers) or "<none>"
        super().__init__(f"could not infer required column {role!r} from headers: {shown}")


class NoDataError(FinboardError, ValueError):
    """The upload contained no rows."""

    def __init__(self, message: str = "no data rows to process") -> None:
        super().__init__(message)


class NoCategoryColumnError(FinboardError, ValueError):
    """No column in a P&L batch could serve as the category column."""

    def __init__(self, message: str = "could not locate a category column in P&L data") -> None:
        super().__init__(message)


class IncompleteUploadError(FinboardError):
    """A chunked upload reached its declared size with an index missing."""

    def __init__(self, upload_id: str, missing: Iterable[int]) -> None:
        self.upload_id = upload_id
        self.missing = tuple(sorted(missing))
        super().__init__(
            f"upload {upload_id!r} is missing chunk(s) {list(self.missing)} at completion"
        )


class UploadCapacityError(FinboardError):
    """The pending-upload table is full and nothing is eligible for eviction."""


class UnknownFileTypeError(FinboardError, ValueError):
    """The batch was tagged with a file type outside the fixed taxonomy."""

    def __init__(self, file_type: str) -> None:
        self.file_type = file_type
        super().__init__(f"unknown file type: {file_type!r}")


class ClassificationPermissionError(FinboardError, PermissionError):
    """A non-admin actor attempted to replace the classification map."""


class InvalidClassificationError(FinboardError, ValueError):
    """A classification map referenced a tag outside the closed enumeration."""


class PayloadTooLargeError(FinboardError):
    """The transport rejected a single-payload upload as too large."""


__all__ = [
    "FinboardError",
    "SchemaInferenceError",
    "NoDataError",
    "NoCategoryColumnError",
    "IncompleteUploadError",
    "UploadCapacityError",
    "UnknownFileTypeError",
    "ClassificationPermissionError",
    "InvalidClassificationError",
    "PayloadTooLargeError",
]
