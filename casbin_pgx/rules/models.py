"""
Rule data models for the casbin-pgx adapter.
"""

from typing import Any, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field

from ..shared.errors import RuleValidationError

# Number of positional value columns (v0..v5)
MAX_VALUES = 6
VALUE_COLUMNS: Tuple[str, ...] = tuple(f"v{i}" for i in range(MAX_VALUES))
ROW_COLUMNS: Tuple[str, ...] = ("id", "ptype") + VALUE_COLUMNS

# Section tags: permission rules and role-inheritance rules
SECTION_POLICY = "p"
SECTION_GROUPING = "g"
SECTIONS: Tuple[str, ...] = (SECTION_POLICY, SECTION_GROUPING)


@dataclass(frozen=True)
class Rule:
    """One policy entry: a rule type plus up to six positional values."""
    ptype: str
    values: Tuple[str, ...] = ()

    def __post_init__(self):
        values = tuple(self.values)
        if len(values) > MAX_VALUES:
            raise RuleValidationError(
                f"rule has {len(values)} values, at most {MAX_VALUES} are supported",
                details={"ptype": self.ptype, "values": list(values)}
            )
        object.__setattr__(self, "values", values)

    @property
    def section(self) -> str:
        """Section tag derived from the rule type (``p2`` -> ``p``)."""
        return self.ptype[:1]

    @classmethod
    def of(cls, ptype: str, values: Sequence[str]) -> "Rule":
        return cls(ptype=ptype, values=tuple(values))


@dataclass
class CasbinRule:
    """Persisted row shape."""
    id: str = ""
    ptype: str = ""
    v0: str = ""
    v1: str = ""
    v2: str = ""
    v3: str = ""
    v4: str = ""
    v5: str = ""

    def values(self) -> List[str]:
        """The six value columns in order."""
        return [self.v0, self.v1, self.v2, self.v3, self.v4, self.v5]

    def as_args(self) -> Tuple[str, ...]:
        """Column values in ``ROW_COLUMNS`` order, for bound parameters."""
        return (self.id, self.ptype, *self.values())


@dataclass
class Filter:
    """Positional filter for partial policy loads.

    ``None`` for a section means that section is not loaded at all. An
    empty string at a position leaves that position unconstrained.
    """
    p: Optional[List[str]] = field(default=None)
    g: Optional[List[str]] = field(default=None)

    def sections(self) -> List[Tuple[str, Sequence[str]]]:
        """Configured sections with their positional values, ``p`` first."""
        configured = []
        if self.p is not None:
            configured.append((SECTION_POLICY, self.p))
        if self.g is not None:
            configured.append((SECTION_GROUPING, self.g))
        return configured

    @classmethod
    def coerce(cls, value: Any) -> Optional["Filter"]:
        """Return ``value`` as a Filter, or ``None`` if it is not filter-shaped.

        Besides Filter itself this accepts objects with ``P`` and ``G``
        attributes, such as casbin's ``filtered_file_adapter.Filter``. An
        empty sequence there selects the whole section.
        """
        if isinstance(value, cls):
            return value
        if hasattr(value, "P") and hasattr(value, "G"):
            return cls(p=value.P, g=value.G)
        return None
