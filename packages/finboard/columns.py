"""Heuristic column inference for loosely structured accounting exports.

Inference is table-driven: :data:`COLUMN_RULES` is an ordered list of
``(role, predicate)`` rules built from keyword lists. For every role the
headers are scanned in their original order and the first header satisfying
the rule wins. Each header is tested against each role independently, so one
header may serve several roles (``"Classification"`` is both a category and a
class column).

New column synonyms are added to the keyword lists, not to code.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, fields

from .errors import SchemaInferenceError


@dataclass(frozen=True, slots=True)
class ColumnRule:
    """Case-insensitive substring predicate for one semantic role.

    A header matches when it contains any of ``keywords``, contains every
    entry of ``requires`` and none of ``excludes``.
    """

    role: str
    keywords: tuple[str, ...]
    requires: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()

    def matches(self, header: str) -> bool:
        h = header.strip().lower()
        if not h:
            return False
        if any(x in h for x in self.excludes):
            return False
        if not all(r in h for r in self.requires):
            return False
        return any(k in h for k in self.keywords)


ROLE_KEYWORDS: Mapping[str, tuple[str, ...]] = {
    "date": ("date",),
    "description": ("description", "particulars", "details", "narrative"),
    "debit": ("debit",),
    "credit": ("credit",),
    "category": ("category", "classification"),
    "contact": ("contact", "payee", "counterparty", "vendor", "customer"),
    "account": ("account",),
    "office": ("office", "branch", "location"),
    "class_": ("class",),
}

REQUIRED_TRANSACTION_ROLES: tuple[str, ...] = ("date", "description", "debit", "credit")


def column_rules(secondary_currency: str | None = None) -> tuple[ColumnRule, ...]:
    """Return the ordered rule table.

    With a ``secondary_currency`` (e.g. ``"sgd"``), headers naming that
    currency feed the ``debit_secondary``/``credit_secondary`` roles and are
    excluded from the primary ``debit``/``credit`` roles.
    """

    cur = (secondary_currency or "").strip().lower()
    excl = (cur,) if cur else ()
    rules: list[ColumnRule] = [
        ColumnRule("date", ROLE_KEYWORDS["date"]),
        ColumnRule("description", ROLE_KEYWORDS["description"]),
        ColumnRule("debit", ROLE_KEYWORDS["debit"], excludes=excl),
        ColumnRule("credit", ROLE_KEYWORDS["credit"], excludes=excl),
    ]
    if cur:
        rules += [
            ColumnRule("debit_secondary", ROLE_KEYWORDS["debit"], requires=(cur,)),
            ColumnRule("credit_secondary", ROLE_KEYWORDS["credit"], requires=(cur,)),
        ]
    rules += [
        ColumnRule(role, ROLE_KEYWORDS[role])
        for role in ("category", "contact", "account", "office", "class_")
    ]
    return tuple(rules)


COLUMN_RULES: tuple[ColumnRule, ...] = column_rules("sgd")


@dataclass(frozen=True, slots=True)
class InferredSchema:
    """Resolved column names per role; ``None`` where no header matched."""

    date: str | None = None
    description: str | None = None
    debit: str | None = None
    credit: str | None = None
    debit_secondary: str | None = None
    credit_secondary: str | None = None
    category: str | None = None
    contact: str | None = None
    account: str | None = None
    office: str | None = None
    class_: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def missing(self, roles: Iterable[str]) -> list[str]:
        return [r for r in roles if getattr(self, r) is None]

    @property
    def has_secondary(self) -> bool:
        return self.debit_secondary is not None or self.credit_secondary is not None


def infer_schema(
    headers: Sequence[str] | Iterable[str],
    *,
    secondary_currency: str | None = None,
    rules: Sequence[ColumnRule] | None = None,
) -> InferredSchema:
    """Resolve every role against ``headers``; all roles are optional here."""

    ordered = [str(h) for h in headers]
    table = rules if rules is not None else column_rules(secondary_currency)
    found: dict[str, str] = {}
    for rule in table:
        if rule.role in found:
            continue
        for h in ordered:
            if rule.matches(h):
                found[rule.role] = h
                break
    return InferredSchema(**found)


def infer_transaction_schema(
    headers: Sequence[str] | Iterable[str],
    *,
    secondary_currency: str | None = None,
) -> InferredSchema:
    """Like :func:`infer_schema` but date/description/debit/credit are mandatory.

    Raises :class:`~finboard.errors.SchemaInferenceError` naming the first
    missing role.
    """

    ordered = [str(h) for h in headers]
    schema = infer_schema(ordered, secondary_currency=secondary_currency)
    missing = schema.missing(REQUIRED_TRANSACTION_ROLES)
    if missing:
        raise SchemaInferenceError(missing[0], ordered)
    return schema


__all__ = [
    "ColumnRule",
    "ROLE_KEYWORDS",
    "REQUIRED_TRANSACTION_ROLES",
    "COLUMN_RULES",
    "column_rules",
    "InferredSchema",
    "infer_schema",
    "infer_transaction_schema",
]
