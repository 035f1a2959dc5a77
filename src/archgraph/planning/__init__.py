"""
Collaborator boundaries around the core: the planner that proposes
mutation batches and the rule evaluator that scores the result.
"""

from archgraph.planning.planner import (
    GenerationBackend,
    LLMPlanner,
    Plan,
    Planner,
    parse_plan,
)
from archgraph.planning.rules import (
    RuleEvaluator,
    StructuralRuleEvaluator,
    ValidationReport,
    Violation,
)

__all__ = [
    "GenerationBackend",
    "LLMPlanner",
    "Plan",
    "Planner",
    "parse_plan",
    "RuleEvaluator",
    "StructuralRuleEvaluator",
    "ValidationReport",
    "Violation",
]
