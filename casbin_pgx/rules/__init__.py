from .models import CasbinRule, Filter, Rule
from .codec import encode, to_line, to_rule
from .identity import policy_id
from .filters import Predicate, build_predicate

__all__ = [
    "CasbinRule",
    "Filter",
    "Predicate",
    "Rule",
    "build_predicate",
    "encode",
    "policy_id",
    "to_line",
    "to_rule",
]
