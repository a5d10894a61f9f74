"""File-type taxonomy and routing for ingestion batches.

Every batch is tagged with one of the fixed :class:`FileType` identifiers.
:func:`route_for` maps the tag onto the normalizer that handles it:

- bank statements (``sgd_transactions``, ``usd_transactions`` and their
  ``*_sankey_client3`` aliases) go to the transaction normalizer;
  ``usd_transactions`` is a cross-currency statement carrying SGD
  equivalents in secondary debit/credit columns;
- ``pl_*`` batches go to the P&L category extractor;
- ``pipeline_client3`` goes to the pipeline parser;
- the remaining order/subscription/cashflow sheets are stored as-is.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .errors import UnknownFileTypeError


class FileType(StrEnum):
    SGD_TRANSACTIONS = "sgd_transactions"
    USD_TRANSACTIONS = "usd_transactions"
    SGD_SANKEY_CLIENT3 = "sgd_sankey_client3"
    USD_SANKEY_CLIENT3 = "usd_sankey_client3"
    PL_CLIENT1 = "pl_client1"
    PL_CLIENT2 = "pl_client2"
    PL_CLIENT3 = "pl_client3"
    CASHFLOW_CLIENT3 = "cashflow_client3"
    PIPELINE_CLIENT3 = "pipeline_client3"
    SHOPIFY = "shopify"
    TIKTOK = "tiktok"
    SUBSCRIPTION = "subscription"


class BatchKind(StrEnum):
    TRANSACTIONS = "transactions"
    PL = "pl"
    PIPELINE = "pipeline"
    PASSTHROUGH = "passthrough"


class CurrencyMode(StrEnum):
    """``PRIMARY``: one currency axis. ``CROSS``: secondary-currency columns too."""

    PRIMARY = "primary"
    CROSS = "cross"


@dataclass(frozen=True, slots=True)
class Route:
    kind: BatchKind
    # The file type whose normalization rules apply (aliases point elsewhere).
    normalizes_as: FileType
    currency_mode: CurrencyMode | None = None


_ROUTES: dict[FileType, Route] = {
    FileType.SGD_TRANSACTIONS: Route(
        BatchKind.TRANSACTIONS, FileType.SGD_TRANSACTIONS, CurrencyMode.PRIMARY
    ),
    FileType.USD_TRANSACTIONS: Route(
        BatchKind.TRANSACTIONS, FileType.USD_TRANSACTIONS, CurrencyMode.CROSS
    ),
    FileType.SGD_SANKEY_CLIENT3: Route(
        BatchKind.TRANSACTIONS, FileType.SGD_TRANSACTIONS, CurrencyMode.PRIMARY
    ),
    FileType.USD_SANKEY_CLIENT3: Route(
        BatchKind.TRANSACTIONS, FileType.USD_TRANSACTIONS, CurrencyMode.CROSS
    ),
    FileType.PL_CLIENT1: Route(BatchKind.PL, FileType.PL_CLIENT1),
    FileType.PL_CLIENT2: Route(BatchKind.PL, FileType.PL_CLIENT2),
    FileType.PL_CLIENT3: Route(BatchKind.PL, FileType.PL_CLIENT3),
    FileType.PIPELINE_CLIENT3: Route(BatchKind.PIPELINE, FileType.PIPELINE_CLIENT3),
    FileType.CASHFLOW_CLIENT3: Route(BatchKind.PASSTHROUGH, FileType.CASHFLOW_CLIENT3),
    FileType.SHOPIFY: Route(BatchKind.PASSTHROUGH, FileType.SHOPIFY),
    FileType.TIKTOK: Route(BatchKind.PASSTHROUGH, FileType.TIKTOK),
    FileType.SUBSCRIPTION: Route(BatchKind.PASSTHROUGH, FileType.SUBSCRIPTION),
}


def parse_file_type(raw: str | FileType) -> FileType:
    """Return the :class:`FileType` for ``raw`` or raise ``UnknownFileTypeError``."""

    if isinstance(raw, FileType):
        return raw
    key = str(raw).strip().lower()
    try:
        return FileType(key)
    except ValueError:
        raise UnknownFileTypeError(str(raw)) from None


def route_for(file_type: str | FileType) -> Route:
    return _ROUTES[parse_file_type(file_type)]


__all__ = [
    "FileType",
    "BatchKind",
    "CurrencyMode",
    "Route",
    "parse_file_type",
    "route_for",
]
