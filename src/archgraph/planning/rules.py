from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from archgraph.graph.graph_query import GraphView
from archgraph.graph.graph_schema import EdgeKind, NodeType
from archgraph.memory.patterns import score_from_validation


@dataclass(frozen=True)
class Violation:
    rule_id: str
    semantic_id: str
    reason: str
    severity: str = "warning"  # "error" | "warning"
    hard: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "semantic_id": self.semantic_id,
            "reason": self.reason,
            "severity": self.severity,
            "hard": self.hard,
        }


@dataclass(frozen=True)
class ValidationReport:
    violations: List[Violation]

    @property
    def errors(self) -> int:
        return sum(1 for v in self.violations if v.severity == "error" and not v.hard)

    @property
    def warnings(self) -> int:
        return sum(1 for v in self.violations if v.severity == "warning")

    @property
    def hard_failures(self) -> int:
        return sum(1 for v in self.violations if v.hard)

    @property
    def score(self) -> float:
        return score_from_validation(
            errors=self.errors,
            warnings=self.warnings,
            hard_failures=self.hard_failures,
        )

    def critique(self, max_items: int = 5, max_length: int = 500) -> Optional[str]:
        """
        Short human-readable summary of the violations, or None when clean.
        """
        if not self.violations:
            return None

        shown = self.violations[:max_items]
        lines: List[str] = []
        errors = [v for v in shown if v.severity == "error"]
        warnings = [v for v in shown if v.severity != "error"]
        if errors:
            lines.append("Errors:")
            lines.extend(f"- {v.rule_id} ({v.semantic_id}): {v.reason}" for v in errors)
        if warnings:
            if lines:
                lines.append("")
            lines.append("Warnings:")
            lines.extend(f"- {v.rule_id} ({v.semantic_id}): {v.reason}" for v in warnings)
        if len(self.violations) > max_items:
            lines.append(f"... and {len(self.violations) - max_items} more")

        text = "\n".join(lines)
        if len(text) > max_length:
            text = text[:max_length] + "..."
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "errors": self.errors,
            "warnings": self.warnings,
            "hard_failures": self.hard_failures,
            "violations": [v.to_dict() for v in self.violations],
        }


class RuleEvaluator(Protocol):
    """
    Reads the working copy through a GraphView and reports violations.

    Consulted by the caller after a batch lands; the version store never
    calls it.
    """

    def evaluate(self, view: GraphView) -> ValidationReport: ...


Rule = Callable[[GraphView], Iterable[Violation]]


# ---------------------------------------------------------------------
# Built-in structural rules
# ---------------------------------------------------------------------


def hierarchy_cycles(view: GraphView) -> Iterable[Violation]:
    for cycle in view.hierarchy_cycles():
        labels = [view.node_by_id(node_id).semantic_id for node_id in cycle]
        yield Violation(
            rule_id="hierarchy_cycle",
            semantic_id=labels[0],
            reason="hierarchy cycle: " + " -> ".join(labels),
            severity="error",
            hard=True,
        )


def compose_tree(view: GraphView) -> Iterable[Violation]:
    parents = Counter(e.target_id for e in view.edges(EdgeKind.COMPOSE))
    for node_id, count in parents.items():
        if count > 1:
            yield Violation(
                rule_id="compose_tree",
                semantic_id=view.node_by_id(node_id).semantic_id,
                reason=f"{count} compose parents, at most 1 allowed",
                severity="error",
            )


def isolation(view: GraphView) -> Iterable[Violation]:
    for node in view.nodes():
        if node.type == NodeType.SYSTEM:
            continue
        if not view.outgoing(node.id) and not view.incoming(node.id):
            yield Violation("isolation", node.semantic_id, "node has no connections")


def millers_law(view: GraphView, limit: int = 9) -> Iterable[Violation]:
    children = Counter(e.source_id for e in view.edges(EdgeKind.COMPOSE))
    for node_id, count in children.items():
        if count > limit:
            yield Violation(
                "millers_law",
                view.node_by_id(node_id).semantic_id,
                f"too many children ({count}, max {limit})",
            )


def function_requirements(view: GraphView) -> Iterable[Violation]:
    for node in view.nodes(NodeType.FUNCTION):
        if not view.outgoing(node.id, EdgeKind.SATISFY):
            yield Violation(
                "function_requirements", node.semantic_id, "function satisfies no requirement"
            )


def requirements_verification(view: GraphView) -> Iterable[Violation]:
    for node in view.nodes(NodeType.REQUIREMENT):
        if not view.outgoing(node.id, EdgeKind.VERIFY):
            yield Violation(
                "requirements_verification", node.semantic_id, "requirement has no test"
            )


def function_allocation(view: GraphView) -> Iterable[Violation]:
    for node in view.nodes(NodeType.FUNCTION):
        if not view.incoming(node.id, EdgeKind.ALLOCATE):
            yield Violation(
                "function_allocation", node.semantic_id, "function not allocated to a module"
            )


DEFAULT_RULES: List[Rule] = [
    hierarchy_cycles,
    compose_tree,
    isolation,
    millers_law,
    function_requirements,
    requirements_verification,
    function_allocation,
]


class StructuralRuleEvaluator:
    """
    In-process evaluator for the structural rules above.
    """

    def __init__(self, rules: Optional[List[Rule]] = None) -> None:
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def evaluate(self, view: GraphView) -> ValidationReport:
        violations: List[Violation] = []
        for rule in self.rules:
            violations.extend(rule(view))
        return ValidationReport(violations=violations)
