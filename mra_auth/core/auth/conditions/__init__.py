"""
Data-level conditions attached to policy rules.

Built-in conditions:
- check_ownership: the caller owns the row
- check_relationship: the row belongs to a customer the caller works for

Add custom conditions with the @AuthRegistry.condition decorator.
"""

from .evaluator import ConditionEvaluator, RequestScope, UnknownCondition
from .ownership import OwnershipPolicy
from .relationship import RelationshipPolicy
from .resolution import (
    MalformedAttributes,
    attributes_match,
    resolve_conditions,
)

__all__ = [
    "ConditionEvaluator",
    "RequestScope",
    "UnknownCondition",
    "OwnershipPolicy",
    "RelationshipPolicy",
    "MalformedAttributes",
    "attributes_match",
    "resolve_conditions",
]
