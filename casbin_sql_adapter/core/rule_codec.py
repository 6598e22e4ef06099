"""
Conversion between Casbin rule tuples and fixed-width `casbin_rule` rows.

A rule of 0..6 fields is stored left-aligned in v0..v5, padded with "".
Decoding trims trailing "" only, so blanks in the middle of a rule survive
but a rule that genuinely ends with "" comes back shorter.
"""

from typing import Optional, Sequence

from casbin_sql_adapter.core.exceptions import ArityError
from casbin_sql_adapter.models import CasbinRule, RULE_COLUMNS

MAX_FIELDS = len(RULE_COLUMNS)


def pad_rule(fields: Sequence[str]) -> list[str]:
    """Return `fields` padded with "" to exactly MAX_FIELDS slots."""
    if len(fields) > MAX_FIELDS:
        raise ArityError(
            f"Rule has {len(fields)} fields, at most {MAX_FIELDS} are supported"
        )
    return [str(field) for field in fields] + [""] * (MAX_FIELDS - len(fields))


def encode_rule(ptype: str, fields: Sequence[str]) -> CasbinRule:
    if ptype is None or not ptype.strip():
        raise ArityError("Rule ptype must not be empty")
    values = pad_rule(fields)
    return CasbinRule(ptype=ptype, **dict(zip(RULE_COLUMNS, values)))


def decode_rule(row) -> Optional[list[str]]:
    """
    Return the rule stored in `row`, or None when every slot is blank.

    `row` may be a CasbinRule or any row exposing v0..v5 attributes.
    """
    rule = [getattr(row, column) or "" for column in RULE_COLUMNS]
    while rule and rule[-1] == "":
        rule.pop()
    return rule or None
