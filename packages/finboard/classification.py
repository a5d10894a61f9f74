"""Label → taxonomy-tag resolution with versioned, immutable mappings.

A :class:`ClassificationMap` is never edited in place. Admin edits go through
:meth:`ClassificationRegistry.replace`, which validates the full mapping,
builds the next version and swaps the registry's active pointer in one step.
Readers holding an older version keep a consistent snapshot.

Taxonomy
--------
Every tag belongs to exactly one :class:`FinancialGroup`:

- revenue: ``Other Revenue``, ``Qual Revenue``, ``Quant Revenue``
- cost_of_sales: the four ``Cost of Sales`` tags
- operating: ``Admin Cost``, ``Employment Cost``, ``Depreciation``
- financing: ``Financing Cost``
- taxes: ``Tax Cost``
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType

from .errors import ClassificationPermissionError, InvalidClassificationError
from .logging_setup import get_logger

_logger = get_logger("finboard.classification")

UNCLASSIFIED = "Unclassified"
ADMIN_ROLE = "admin"


class FinancialGroup(StrEnum):
    REVENUE = "revenue"
    COST_OF_SALES = "cost_of_sales"
    OPERATING = "operating"
    FINANCING = "financing"
    TAXES = "taxes"


CLASSIFICATION_TAGS: Mapping[str, FinancialGroup] = MappingProxyType(
    {
        "Other Revenue": FinancialGroup.REVENUE,
        "Qual Revenue": FinancialGroup.REVENUE,
        "Quant Revenue": FinancialGroup.REVENUE,
        "Cost of Sales (Qual)": FinancialGroup.COST_OF_SALES,
        "Cost of Sales (Quant)": FinancialGroup.COST_OF_SALES,
        "Cost of Sales (Other)": FinancialGroup.COST_OF_SALES,
        "Cost of Sales": FinancialGroup.COST_OF_SALES,
        "Admin Cost": FinancialGroup.OPERATING,
        "Employment Cost": FinancialGroup.OPERATING,
        "Depreciation": FinancialGroup.OPERATING,
        "Financing Cost": FinancialGroup.FINANCING,
        "Tax Cost": FinancialGroup.TAXES,
    }
)

DEPRECIATION_TAG = "Depreciation"


def tags_in(group: FinancialGroup) -> frozenset[str]:
    return frozenset(t for t, g in CLASSIFICATION_TAGS.items() if g is group)


# Common P&L labels, used to seed the first version.
REFERENCE_CLASSIFICATIONS: Mapping[str, str] = MappingProxyType(
    {
        "Sales": "Other Revenue",
        "Consulting Revenue": "Qual Revenue",
        "Research Revenue - Qualitative": "Qual Revenue",
        "Research Revenue - Quantitative": "Quant Revenue",
        "Interest Income": "Other Revenue",
        "Fieldwork Costs - Qualitative": "Cost of Sales (Qual)",
        "Fieldwork Costs - Quantitative": "Cost of Sales (Quant)",
        "Panel Incentives": "Cost of Sales (Other)",
        "Cost of Goods Sold": "Cost of Sales",
        "Office Expenses": "Admin Cost",
        "Rent": "Admin Cost",
        "Software Subscriptions": "Admin Cost",
        "Travel": "Admin Cost",
        "Salaries - Research Team": "Employment Cost",
        "Salaries - Admin Team": "Employment Cost",
        "CPF Contributions": "Employment Cost",
        "Depreciation": "Depreciation",
        "Amortisation": "Depreciation",
        "Bank Charges": "Financing Cost",
        "Interest Expense": "Financing Cost",
        "Income Tax": "Tax Cost",
    }
)


@dataclass(frozen=True, slots=True)
class ClassificationMap:
    """One immutable version of the label → tag table."""

    version: int
    mappings: Mapping[str, str]
    created_by: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def get(self, label: str) -> str | None:
        return self.mappings.get(label.strip())

    def __len__(self) -> int:
        return len(self.mappings)


EMPTY_MAP = ClassificationMap(version=0, mappings=MappingProxyType({}))


def validate_mapping(mapping: Mapping[str, str]) -> dict[str, str]:
    """Return a cleaned copy of ``mapping`` or raise on the first bad entry."""

    cleaned: dict[str, str] = {}
    for label, tag in mapping.items():
        key = str(label).strip()
        if not key:
            raise InvalidClassificationError("classification label must not be empty")
        if tag not in CLASSIFICATION_TAGS:
            raise InvalidClassificationError(f"unknown classification tag {tag!r} for {key!r}")
        cleaned[key] = tag
    return cleaned


class ClassificationRegistry:
    """Holds the active :class:`ClassificationMap` and swaps it atomically."""

    def __init__(self, initial: ClassificationMap | None = None) -> None:
        self._lock = threading.Lock()
        self._active = initial or EMPTY_MAP

    def active(self) -> ClassificationMap:
        return self._active

    def replace(
        self,
        mapping: Mapping[str, str],
        *,
        actor_role: str,
        actor: str | None = None,
    ) -> ClassificationMap:
        """Install ``mapping`` as the next version.

        Raises
        ------
        ClassificationPermissionError
            ``actor_role`` is not ``"admin"``.
        InvalidClassificationError
            A tag is outside the closed enumeration or a label is empty.
        """

        if actor_role != ADMIN_ROLE:
            raise ClassificationPermissionError(
                f"role {actor_role!r} may not edit classifications"
            )
        cleaned = validate_mapping(mapping)
        with self._lock:
            nxt = ClassificationMap(
                version=self._active.version + 1,
                mappings=MappingProxyType(cleaned),
                created_by=actor,
            )
            self._active = nxt
        _logger.info(
            "classification map replaced version=%d labels=%d by=%s",
            nxt.version,
            len(cleaned),
            actor or "-",
        )
        return nxt

    def load(self, cmap: ClassificationMap) -> None:
        """Adopt a version read back from storage."""

        with self._lock:
            self._active = cmap


def resolve(label: str, cmap: ClassificationMap) -> str:
    return cmap.get(label) or UNCLASSIFIED


def group_of(label: str, cmap: ClassificationMap) -> FinancialGroup | None:
    tag = cmap.get(label)
    return CLASSIFICATION_TAGS.get(tag) if tag is not None else None


@dataclass(frozen=True, slots=True)
class ClassificationPartition:
    known: Mapping[FinancialGroup, tuple[str, ...]]
    unknown: tuple[str, ...]

    def all_labels(self) -> list[str]:
        out = [lbl for labels in self.known.values() for lbl in labels]
        out.extend(self.unknown)
        return out


def partition_labels(labels: Iterable[str], cmap: ClassificationMap) -> ClassificationPartition:
    """Split ``labels`` into one bucket per financial group plus ``unknown``.

    Input order is kept within each bucket and duplicates collapse to their
    first occurrence.
    """

    buckets: dict[FinancialGroup, list[str]] = {g: [] for g in FinancialGroup}
    unknown: list[str] = []
    seen: set[str] = set()
    for raw in labels:
        label = raw.strip()
        if not label or label in seen:
            continue
        seen.add(label)
        group = group_of(label, cmap)
        if group is None:
            unknown.append(label)
        else:
            buckets[group].append(label)
    return ClassificationPartition(
        known=MappingProxyType({g: tuple(v) for g, v in buckets.items()}),
        unknown=tuple(unknown),
    )


__all__ = [
    "UNCLASSIFIED",
    "ADMIN_ROLE",
    "FinancialGroup",
    "CLASSIFICATION_TAGS",
    "DEPRECIATION_TAG",
    "REFERENCE_CLASSIFICATIONS",
    "tags_in",
    "ClassificationMap",
    "EMPTY_MAP",
    "validate_mapping",
    "ClassificationRegistry",
    "resolve",
    "group_of",
    "ClassificationPartition",
    "partition_labels",
]
