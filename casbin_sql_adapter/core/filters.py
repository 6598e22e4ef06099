"""
Filter matching for partial loads and partial deletes.

The in-memory predicate (`matches_filter`) is the reference behaviour. The
SQL predicates are the pushed-down forms used by the crud layer; rows that a
`LIKE` pattern lets through are re-checked in memory by the adapter, since
literal "%" and "_" in a pattern act as wildcards in SQL.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import and_, func, or_
from sqlalchemy.sql.elements import ColumnElement

from casbin_sql_adapter.core.rule_codec import MAX_FIELDS
from casbin_sql_adapter.models import CasbinRule, Filter, RULE_COLUMNS

logger = logging.getLogger(__name__)

SECTIONS = ("p", "g")

rule_table = CasbinRule.__table__


def section_of(ptype: str) -> str:
    return ptype[:1]


def matches_filter(ptype: str, rule: Sequence[str], filter: Filter) -> bool:
    """True if every non-empty pattern equals the rule slot at its index."""
    section = section_of(ptype)
    if section not in SECTIONS:
        return False
    patterns = filter.patterns_for(section)[:MAX_FIELDS]
    for index, pattern in enumerate(patterns):
        if not pattern:
            continue
        value = rule[index] if index < len(rule) else ""
        if value != pattern:
            return False
    return True


def like_patterns(patterns: Sequence[str]) -> list[str]:
    """Six LIKE operands: "%" for empty or missing patterns, else the literal."""
    operands = ["%"] * MAX_FIELDS
    for index, pattern in enumerate(patterns[:MAX_FIELDS]):
        if pattern:
            operands[index] = pattern
    return operands


def _section_clause(section: str, patterns: Sequence[str]) -> ColumnElement:
    operands = like_patterns(patterns)
    return and_(
        rule_table.c.ptype.like(f"{section}%"),
        *[
            func.coalesce(rule_table.c[column], "").like(operand)
            for column, operand in zip(RULE_COLUMNS, operands)
        ],
    )


def non_blank_clause() -> ColumnElement:
    """WHERE clause for rows holding at least one non-empty slot."""
    return or_(
        *[func.coalesce(rule_table.c[column], "") != "" for column in RULE_COLUMNS]
    )


def filter_clause(filter: Filter) -> ColumnElement:
    """WHERE clause selecting both sections of `filter` in one query."""
    return or_(
        *[
            _section_clause(section, filter.patterns_for(section))
            for section in SECTIONS
        ]
    )


def filtered_removal_clause(
    ptype: str, field_index: int, field_values: Sequence[str]
) -> Optional[ColumnElement]:
    """
    WHERE clause for removing rules by field values starting at `field_index`.

    Every slot from `field_index` to v5 must either be NULL or equal the
    supplied value; an empty or missing value is bound as NULL and coalesced
    with the stored slot, so it matches anything. Returns None when the
    arguments cannot describe a removal, in which case nothing is deleted.
    """
    if field_index < 0 or field_index >= MAX_FIELDS:
        logger.warning(
            f"[filtered_removal_clause] Field index out of range | ptype={ptype} | field_index={field_index}"
        )
        return None
    width = MAX_FIELDS - field_index
    if not field_values or len(field_values) > width:
        logger.warning(
            f"[filtered_removal_clause] Invalid field values | ptype={ptype} | "
            f"field_index={field_index} | values={len(field_values)}"
        )
        return None

    values = [value or None for value in field_values]
    values += [None] * (width - len(values))

    conditions = [rule_table.c.ptype == ptype]
    for column, value in zip(RULE_COLUMNS[field_index:], values):
        slot = rule_table.c[column]
        conditions.append(or_(slot.is_(None), slot == func.coalesce(value, slot)))
    return and_(*conditions)
