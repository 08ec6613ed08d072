"""Constraint-based model selection."""

from openrouter_policy.selection.cost import CostEstimator, estimate_cost
from openrouter_policy.selection.predicates import first_failed_check, matches
from openrouter_policy.selection.ranking import sort_by_strategy
from openrouter_policy.selection.requirements import RequirementSet, Strategy
from openrouter_policy.selection.selector import DEGRADATION_ORDER, ModelSelector

__all__ = [
    "CostEstimator",
    "DEGRADATION_ORDER",
    "ModelSelector",
    "RequirementSet",
    "Strategy",
    "estimate_cost",
    "first_failed_check",
    "matches",
    "sort_by_strategy",
]
