"""
Rule row mapping and query conditions.

A policy rule travels as ``(ptype, [v0, v1, ...])`` between Casbin and the
table. Everything here is statement-free so the sync and async adapters
share one definition of how rows are written, matched and read back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

from loguru import logger
from sqlalchemy import Table
from sqlalchemy.sql.elements import ColumnElement

from casbin_sql_store.database.schema import MAX_RULE_FIELDS, VALUE_COLUMNS
from casbin_sql_store.exceptions import InvalidFilterError

FILTER_FIELDS = ("ptype",) + VALUE_COLUMNS
POLICY_SECTIONS = ("p", "g")


@dataclass
class Filter:
    """Accepted values per field; an empty list leaves the field unconstrained."""

    ptype: List[str] = field(default_factory=list)
    v0: List[str] = field(default_factory=list)
    v1: List[str] = field(default_factory=list)
    v2: List[str] = field(default_factory=list)
    v3: List[str] = field(default_factory=list)
    v4: List[str] = field(default_factory=list)
    v5: List[str] = field(default_factory=list)


def _filter_values(name: str, raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    try:
        return [str(value) for value in raw]
    except TypeError as exc:
        raise InvalidFilterError(f"filter field {name!r} must be a list of strings") from exc


def coerce_filter(candidate: Any) -> Filter:
    """Turn a Filter, a Filter-like object or a mapping into a fresh, checked Filter."""
    if isinstance(candidate, Mapping):
        unknown = sorted(str(key) for key in candidate if key not in FILTER_FIELDS)
        if unknown:
            raise InvalidFilterError(f"unknown filter fields: {', '.join(unknown)}")
        source: Dict[str, Any] = dict(candidate)
    elif candidate is not None and all(hasattr(candidate, name) for name in FILTER_FIELDS):
        source = {name: getattr(candidate, name) for name in FILTER_FIELDS}
    else:
        raise InvalidFilterError(f"unsupported filter type: {type(candidate).__name__}")

    return Filter(**{name: _filter_values(name, source.get(name)) for name in FILTER_FIELDS})


def _column(table: Table, name: str):
    return table.c.p_type if name == "ptype" else table.c[name]


def filter_conditions(table: Table, policy_filter: Filter) -> List[ColumnElement]:
    """One IN clause per constrained field; callers AND them together."""
    conditions = []
    for name in FILTER_FIELDS:
        values = getattr(policy_filter, name)
        if values:
            conditions.append(_column(table, name).in_(values))
    return conditions


def rule_conditions(
    table: Table, ptype: str, values: Sequence[str], start: int = 0
) -> List[ColumnElement]:
    """Match ``ptype`` and the values laid out from field ``v{start}`` onwards.

    Empty values do not constrain their field. Values that would land past
    v5 are ignored.
    """
    conditions = [table.c.p_type == ptype]
    for offset, value in enumerate(values):
        index = start + offset
        if index >= MAX_RULE_FIELDS:
            break
        if value is None or value == "":
            continue
        conditions.append(table.c[VALUE_COLUMNS[index]] == value)
    return conditions


def validate_field_index(field_index: int) -> None:
    if not 0 <= field_index < MAX_RULE_FIELDS:
        raise InvalidFilterError(
            f"field_index must be between 0 and {MAX_RULE_FIELDS - 1}, got {field_index}"
        )


def build_rule_row(ptype: str, rule: Sequence[str]) -> Dict[str, str]:
    """Lay a rule out over p_type and v0..v5."""
    if len(rule) > MAX_RULE_FIELDS:
        logger.warning(
            f"Rule for {ptype} has {len(rule)} fields, only the first {MAX_RULE_FIELDS} are stored"
        )
    row = {"p_type": ptype}
    for index, column in enumerate(VALUE_COLUMNS):
        row[column] = rule[index] if index < len(rule) else ""
    return row


def build_rule_rows(ptype: str, rules: Iterable[Sequence[str]]) -> List[Dict[str, str]]:
    return [build_rule_row(ptype, rule) for rule in rules]


def rule_values(row: Mapping[str, Any]) -> List[str]:
    """Read v0..v5 back, dropping trailing empty fields only."""
    values = [row[column] or "" for column in VALUE_COLUMNS]
    while values and values[-1] == "":
        values.pop()
    return values


def iter_model_rules(model) -> Iterator[Tuple[str, List[str]]]:
    """Yield (ptype, rule) for every policy and grouping rule held by a Casbin model."""
    for sec in POLICY_SECTIONS:
        assertions = model.model.get(sec)
        if not assertions:
            continue
        for ptype, assertion in assertions.items():
            for rule in assertion.policy:
                yield ptype, rule


def append_rule(model, ptype: str, rule: List[str]) -> bool:
    """Add a loaded rule to the model section named by the first letter of ptype."""
    sec = ptype[:1]
    assertions = model.model.get(sec)
    if not assertions or ptype not in assertions:
        logger.debug(f"Skipping rule with kind {ptype!r} unknown to the model")
        return False
    model.add_policy(sec, ptype, rule)
    return True


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


__all__ = [
    "FILTER_FIELDS",
    "Filter",
    "append_rule",
    "build_rule_row",
    "build_rule_rows",
    "chunked",
    "coerce_filter",
    "filter_conditions",
    "iter_model_rules",
    "rule_conditions",
    "rule_values",
    "validate_field_index",
]
