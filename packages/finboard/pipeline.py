"""Pipeline (opportunity) sheets.

Each data row describes one deal: a name, the client, its stage, the total
deal value, a win probability in percent and optionally an office and a
monthly revenue breakdown (period-named columns).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any

from .columns import ROLE_KEYWORDS, ColumnRule
from .logging_setup import get_logger
from .pl import month_columns, normalize_header
from .values import ZERO, is_blank, parse_value

_logger = get_logger("finboard.pipeline")

_HUNDRED = Decimal("100")

PIPELINE_RULES: tuple[ColumnRule, ...] = (
    ColumnRule(
        "name",
        ("opportunity", "deal", "project", "name"),
        excludes=(
            "value", "stage", "client", "customer", "company", "owner", "probab", "office"
        ),
    ),
    ColumnRule("client", ("client", "customer", "company")),
    ColumnRule("stage", ("stage", "status")),
    ColumnRule("value", ("value", "amount", "revenue"), excludes=("weighted", "probab")),
    ColumnRule("probability", ("probab", "likelihood", "win %", "chance")),
    ColumnRule("office", ROLE_KEYWORDS["office"]),
)

UNSTAGED = "Unstaged"

_NAME_HEADERS: tuple[str, ...] = (
    "deal_name",
    "opportunity_name",
    "project_name",
    "deal",
    "opportunity",
    "project",
    "name",
)


@dataclass(frozen=True, slots=True)
class Opportunity:
    name: str
    client: str | None
    stage: str
    value: Decimal
    probability: Decimal
    office: str | None = None
    breakdown: Mapping[str, Decimal] = field(default_factory=dict)

    @property
    def weighted_value(self) -> Decimal:
        """``value * probability / 100``."""

        return self.value * self.probability / _HUNDRED

    def with_probability(self, probability: Decimal | int | str) -> Opportunity:
        return replace(self, probability=_clamp_probability(parse_value(probability)))


def _clamp_probability(p: Decimal) -> Decimal:
    if p < 0:
        return ZERO
    if p > _HUNDRED:
        return _HUNDRED
    return p


def _name_column(headers: list[str]) -> str | None:
    """Exact deal-name headers first, then headers saying "name", then any match.

    Identifier columns ("Deal ID") never hold the name.
    """

    rule = PIPELINE_RULES[0]
    normalized = [(h, normalize_header(h)) for h in headers]
    for kw in _NAME_HEADERS:
        for h, n in normalized:
            if n == kw:
                return h
    candidates = [h for h, n in normalized if rule.matches(h) and "id" not in n.split("_")]
    for h in candidates:
        if "name" in h.lower():
            return h
    return candidates[0] if candidates else None


def _columns(headers: list[str]) -> dict[str, str]:
    found: dict[str, str] = {}
    name = _name_column(headers)
    if name is not None:
        found["name"] = name
    for rule in PIPELINE_RULES[1:]:
        for h in headers:
            if h in found.values():
                continue
            if rule.matches(h):
                found[rule.role] = h
                break
    return found


def parse_opportunities(rows: Iterable[Mapping[str, Any]]) -> list[Opportunity]:
    """Parse pipeline rows; rows without a deal name are skipped.

    Probabilities are read as percentages and clamped to ``0..100``.
    """

    materialized = list(rows)
    if not materialized:
        return []
    headers = [str(h) for h in materialized[0].keys()]
    cols = _columns(headers)
    months = month_columns(headers)

    out: list[Opportunity] = []
    for idx, row in enumerate(materialized):
        name = row.get(cols["name"]) if "name" in cols else None
        if is_blank(name):
            _logger.debug("pipeline row skipped row_index=%d reason=missing_name", idx)
            continue
        client = row.get(cols["client"]) if "client" in cols else None
        stage = row.get(cols["stage"]) if "stage" in cols else None
        office = row.get(cols["office"]) if "office" in cols else None
        out.append(
            Opportunity(
                name=str(name).strip(),
                client=None if is_blank(client) else str(client).strip(),
                stage=UNSTAGED if is_blank(stage) else str(stage).strip(),
                value=parse_value(row.get(cols["value"])) if "value" in cols else ZERO,
                probability=_clamp_probability(
                    parse_value(row.get(cols["probability"])) if "probability" in cols else ZERO
                ),
                office=None if is_blank(office) else str(office).strip(),
                breakdown={m: parse_value(row.get(m)) for m in months},
            )
        )
    _logger.debug("parsed opportunities=%d", len(out))
    return out


__all__ = ["PIPELINE_RULES", "UNSTAGED", "Opportunity", "parse_opportunities"]
