"""
Positional filter predicates.

A filter is a partially specified rule: ``["", "data1"]`` matches every
rule whose second value is ``data1``. Non-empty positions become
equality constraints on the matching value column, all of which must
hold.
"""

from typing import Optional, Sequence, Tuple
from dataclasses import dataclass

from ..shared.errors import InvalidFilterError
from .models import CasbinRule, MAX_VALUES, VALUE_COLUMNS


@dataclass(frozen=True)
class Predicate:
    """Conjunction of ``column = value`` constraints, optionally pinned to a ptype."""
    conditions: Tuple[Tuple[str, str], ...] = ()
    ptype: Optional[str] = None

    def for_ptype(self, ptype: str) -> "Predicate":
        return Predicate(conditions=self.conditions, ptype=ptype)

    def matches(self, row: CasbinRule) -> bool:
        if self.ptype is not None and row.ptype != self.ptype:
            return False
        return all(getattr(row, column) == value for column, value in self.conditions)


def build_predicate(values: Sequence[str], start_offset: int = 0) -> Predicate:
    """Build a predicate from positional filter values.

    ``values[i]`` constrains column ``v{start_offset + i}``. The offset may
    be negative, in which case leading values fall before ``v0``; such
    slots, like any slot past ``v5``, must be empty.

    Raises:
        InvalidFilterError: ``values`` is not a sequence of strings, or a
            non-empty value addresses a column outside v0..v5.
    """
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise InvalidFilterError(
            "filter values must be a sequence of strings",
            details={"type": type(values).__name__}
        )
    if not isinstance(start_offset, int) or isinstance(start_offset, bool):
        raise InvalidFilterError("field index must be an integer")

    conditions = []
    for i, value in enumerate(values):
        if not isinstance(value, str):
            raise InvalidFilterError(
                "filter values must be strings",
                details={"position": i, "type": type(value).__name__}
            )
        if value == "":
            continue
        index = start_offset + i
        if not 0 <= index < MAX_VALUES:
            raise InvalidFilterError(
                f"filter value at position {i} addresses v{index}, outside v0..v{MAX_VALUES - 1}",
                details={"field_index": start_offset, "position": i, "value": value}
            )
        conditions.append((VALUE_COLUMNS[index], value))

    return Predicate(conditions=tuple(conditions))
