"""Read-side aggregation over normalized records.

Nothing here is cached or persisted; every function is a pure computation
over its inputs. Sign conventions follow the source exports: P&L costs are
negative, so profit lines are plain sums (``gross_profit = revenue +
cost_of_sales``).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from .classification import (
    DEPRECIATION_TAG,
    UNCLASSIFIED,
    ClassificationMap,
    FinancialGroup,
    group_of,
    resolve,
    tags_in,
)
from .models import CanonicalTransaction
from .pipeline import Opportunity
from .pl import PLLine
from .values import ZERO

UNASSIGNED = "Unassigned"

type KeyFn = Callable[[Any], str]
type ValueFn = Callable[[Any], Decimal]


# ---------------------------------------------------------------------------
# Generic grouping
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AggregationView:
    """Per-group sums for each value axis plus the marginal totals.

    ``grand_total`` always equals the sum of ``group_totals`` and the sum of
    ``axis_totals``.
    """

    groups: Mapping[str, Mapping[str, Decimal]]
    group_totals: Mapping[str, Decimal]
    axis_totals: Mapping[str, Decimal]
    grand_total: Decimal

    def keys(self) -> list[str]:
        return list(self.groups)


def aggregate(
    records: Iterable[Any],
    key: KeyFn,
    values: Mapping[str, ValueFn],
) -> AggregationView:
    """Group ``records`` by ``key`` and sum every axis in ``values``.

    Groups are returned in sorted key order.
    """

    sums: dict[str, dict[str, Decimal]] = {}
    for rec in records:
        g = key(rec)
        bucket = sums.setdefault(g, {axis: ZERO for axis in values})
        for axis, fn in values.items():
            bucket[axis] += fn(rec)

    ordered = {g: MappingProxyType(sums[g]) for g in sorted(sums)}
    group_totals = {g: sum(axes.values(), ZERO) for g, axes in ordered.items()}
    axis_totals = {axis: sum((ordered[g][axis] for g in ordered), ZERO) for axis in values}
    return AggregationView(
        groups=MappingProxyType(ordered),
        group_totals=MappingProxyType(group_totals),
        axis_totals=MappingProxyType(axis_totals),
        grand_total=sum(group_totals.values(), ZERO),
    )


def by_month(record: Any) -> str:
    """``YYYY-MM`` from a record's ISO ``date``."""

    return str(record.date)[:7]


def by_office(record: Any) -> str:
    return getattr(record, "office", None) or UNASSIGNED


def by_category(record: Any) -> str:
    if isinstance(record, PLLine):
        return record.label
    return getattr(record, "category", None) or UNASSIGNED


def by_stage(record: Opportunity) -> str:
    return record.stage


def by_group(cmap: ClassificationMap) -> KeyFn:
    """Key function mapping a P&L line to its financial group name."""

    def _key(line: PLLine) -> str:
        group = group_of(line.label, cmap)
        return group.value if group is not None else UNCLASSIFIED

    return _key


# ---------------------------------------------------------------------------
# P&L
# ---------------------------------------------------------------------------


def classification_total(
    lines: Iterable[PLLine],
    cmap: ClassificationMap,
    tags: Iterable[str],
    month: str | None = None,
) -> Decimal:
    """Sum of lines whose resolved tag is in ``tags``.

    ``month`` selects one period column; ``None`` sums every period.
    """

    wanted = frozenset(tags)
    return sum(
        (ln.value(month) for ln in lines if resolve(ln.label, cmap) in wanted),
        ZERO,
    )


@dataclass(frozen=True, slots=True)
class ProfitSummary:
    revenue: Decimal
    cost_of_sales: Decimal
    gross_profit: Decimal
    operating_ex_depreciation: Decimal
    depreciation: Decimal
    ebitda: Decimal
    financing: Decimal
    taxes: Decimal
    unclassified: Decimal
    net_profit: Decimal


def profit_summary(
    lines: Sequence[PLLine],
    cmap: ClassificationMap,
    month: str | None = None,
    ebitda_adjustment: Decimal | int = 0,
) -> ProfitSummary:
    """Derived P&L metrics for one month or the whole export.

    - gross profit = revenue + cost of sales
    - EBITDA = gross profit + operating costs other than depreciation
      + ``ebitda_adjustment``
    - net profit = EBITDA + depreciation + financing + taxes + unclassified
    """

    def total(tags: Iterable[str]) -> Decimal:
        return classification_total(lines, cmap, tags, month)

    revenue = total(tags_in(FinancialGroup.REVENUE))
    cost_of_sales = total(tags_in(FinancialGroup.COST_OF_SALES))
    operating = total(tags_in(FinancialGroup.OPERATING) - {DEPRECIATION_TAG})
    depreciation = total({DEPRECIATION_TAG})
    financing = total(tags_in(FinancialGroup.FINANCING))
    taxes = total(tags_in(FinancialGroup.TAXES))
    unclassified = total({UNCLASSIFIED})

    gross = revenue + cost_of_sales
    ebitda = gross + operating + Decimal(ebitda_adjustment)
    return ProfitSummary(
        revenue=revenue,
        cost_of_sales=cost_of_sales,
        gross_profit=gross,
        operating_ex_depreciation=operating,
        depreciation=depreciation,
        ebitda=ebitda,
        financing=financing,
        taxes=taxes,
        unclassified=unclassified,
        net_profit=ebitda + depreciation + financing + taxes + unclassified,
    )


def ebitda_by_month(
    lines: Sequence[PLLine],
    cmap: ClassificationMap,
    months: Iterable[str],
    adjustments: Mapping[str, Decimal] | None = None,
) -> dict[str, Decimal]:
    adj = adjustments or {}
    return {
        m: profit_summary(lines, cmap, month=m, ebitda_adjustment=adj.get(m, ZERO)).ebitda
        for m in months
    }


# ---------------------------------------------------------------------------
# Cashflow
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BalancePoint:
    transaction: CanonicalTransaction
    balance: Decimal


def running_balance(
    transactions: Iterable[CanonicalTransaction], opening: Decimal
) -> list[BalancePoint]:
    """Balance after each transaction, in the order given (source row order)."""

    bal = opening
    out: list[BalancePoint] = []
    for tx in transactions:
        bal += tx.signed_amount()
        out.append(BalancePoint(tx, bal))
    return out


def closing_balance(transactions: Iterable[CanonicalTransaction], opening: Decimal) -> Decimal:
    """``opening + Σ inflows − Σ outflows``."""

    return opening + sum((t.signed_amount() for t in transactions), ZERO)


@dataclass(frozen=True, slots=True)
class MonthlyCashflow:
    inflow: Decimal
    outflow: Decimal

    @property
    def net(self) -> Decimal:
        return self.inflow - self.outflow


def cashflow_by_month(transactions: Iterable[CanonicalTransaction]) -> dict[str, MonthlyCashflow]:
    view = aggregate(
        transactions,
        by_month,
        {
            "inflow": lambda t: Decimal(t.amount) if t.type == "inflow" else ZERO,
            "outflow": lambda t: Decimal(t.amount) if t.type == "outflow" else ZERO,
        },
    )
    return {m: MonthlyCashflow(axes["inflow"], axes["outflow"]) for m, axes in view.groups.items()}


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StageTotal:
    count: int
    value: Decimal
    weighted_value: Decimal


def stage_totals(opportunities: Iterable[Opportunity]) -> dict[str, StageTotal]:
    opps = list(opportunities)
    view = aggregate(
        opps,
        by_stage,
        {"value": lambda o: o.value, "weighted": lambda o: o.weighted_value},
    )
    counts: dict[str, int] = {}
    for o in opps:
        counts[o.stage] = counts.get(o.stage, 0) + 1
    return {
        s: StageTotal(counts[s], axes["value"], axes["weighted"]) for s, axes in view.groups.items()
    }


@dataclass(frozen=True, slots=True)
class Reconciliation:
    expected: Decimal
    breakdown_total: Decimal
    difference: Decimal
    ok: bool


def reconcile_breakdown(
    opportunity: Opportunity, tolerance: Decimal = Decimal("0.01")
) -> Reconciliation:
    """Check that the monthly breakdown sums to the deal value within ``tolerance``."""

    total = sum(opportunity.breakdown.values(), ZERO)
    diff = total - opportunity.value
    return Reconciliation(
        expected=opportunity.value,
        breakdown_total=total,
        difference=diff,
        ok=abs(diff) <= tolerance,
    )


__all__ = [
    "UNASSIGNED",
    "AggregationView",
    "aggregate",
    "by_month",
    "by_office",
    "by_category",
    "by_stage",
    "by_group",
    "classification_total",
    "ProfitSummary",
    "profit_summary",
    "ebitda_by_month",
    "BalancePoint",
    "running_balance",
    "closing_balance",
    "MonthlyCashflow",
    "cashflow_by_month",
    "StageTotal",
    "stage_totals",
    "Reconciliation",
    "reconcile_breakdown",
]
