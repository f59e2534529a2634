"""
Conversions between rules, rows and policy lines.

A stored row cannot tell an intentionally empty value from an unused
trailing column. Lines and rules rebuilt from a row therefore keep every
column up to the last non-empty one and drop the rest, which preserves
interior empty values.
"""

from typing import Any, List, Mapping, Sequence

from ..shared.errors import RowDecodeError
from .identity import Hasher, blake2b_128, policy_id
from .models import CasbinRule, Rule, ROW_COLUMNS, VALUE_COLUMNS

LINE_SEPARATOR = ", "


def encode(rule: Rule, hasher: Hasher = blake2b_128) -> CasbinRule:
    """Place a rule's values into v0..v5 and compute its row id."""
    row = CasbinRule(ptype=rule.ptype)
    for column, value in zip(VALUE_COLUMNS, rule.values):
        setattr(row, column, value)
    row.id = policy_id(rule.ptype, rule.values, hasher)
    return row


def last_non_empty_index(values: Sequence[str]) -> int:
    """Index of the last non-empty value, -1 when all are empty."""
    for i in range(len(values) - 1, -1, -1):
        if values[i] != "":
            return i
    return -1


def trimmed_values(row: CasbinRule) -> List[str]:
    values = row.values()
    return values[:last_non_empty_index(values) + 1]


def to_line(row: CasbinRule) -> str:
    """Render a row as a policy line, e.g. ``p, alice, , read``."""
    return LINE_SEPARATOR.join([row.ptype, *trimmed_values(row)])


def to_rule(row: CasbinRule) -> Rule:
    return Rule(ptype=row.ptype, values=tuple(trimmed_values(row)))


def from_record(record: Mapping[str, Any]) -> CasbinRule:
    """Build a row from a database record.

    Raises:
        RowDecodeError: a column is missing, or holds something other than
            text. ``ptype`` must also be non-empty.
    """
    fields = {}
    for column in ROW_COLUMNS:
        try:
            value = record[column]
        except (KeyError, IndexError):
            raise RowDecodeError(f"row has no column {column!r}")
        if value is None and column in VALUE_COLUMNS:
            # NULL value columns come from rows written outside the adapter
            value = ""
        if not isinstance(value, str):
            raise RowDecodeError(
                f"column {column!r} is not text",
                details={"column": column, "type": type(value).__name__}
            )
        fields[column] = value

    if not fields["ptype"]:
        raise RowDecodeError("row has an empty ptype", details={"id": fields["id"]})
    return CasbinRule(**fields)
