from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from archgraph.errors import PlanningError
from archgraph.graph.graph_query import GraphView
from archgraph.graph.mutations import MutationBatch, Operation, operation_from_dict


class GenerationBackend(Protocol):
    """
    Text generation backend.

    Any implementation MUST:
    - accept a prompt string
    - return generated text
    """

    def generate(self, prompt: str) -> str: ...


@dataclass(frozen=True)
class Plan:
    """
    What the planner proposes: a reply for the user and an optional batch of
    mutations, referencing nodes by semantic id.
    """

    reply: str
    operations: List[Operation] = field(default_factory=list)

    @property
    def has_mutations(self) -> bool:
        return bool(self.operations)

    def batch(self) -> MutationBatch:
        return MutationBatch(self.operations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "operations": [op.to_dict() for op in self.operations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plan":
        return cls(
            reply=str(data.get("reply", "")),
            operations=MutationBatch.from_dicts(data.get("operations") or []).operations,
        )


class Planner(ABC):
    """
    Abstract planning interface.

    Turns a natural-language request plus the current graph into a Plan.
    """

    @abstractmethod
    def plan(self, request: str, view: GraphView, *, context: str = "") -> Plan:
        raise NotImplementedError


PromptBuilder = Callable[
    [
        str,  # request
        GraphView,  # current graph
        str,  # episodic context
    ],
    str,
]


_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


def parse_plan(text: str) -> Plan:
    """
    Split backend output into reply text and operations.

    Operations are expected as a JSON object with an "operations" list, in a
    fenced block or as the trailing object of the output. Output without one
    is a reply-only plan.
    """
    match = _FENCED_JSON_RE.search(text)
    if match is not None:
        raw, reply = match.group(1), (text[: match.start()] + text[match.end():]).strip()
    else:
        start = text.find("{")
        if start < 0 or '"operations"' not in text[start:]:
            return Plan(reply=text.strip())
        raw, reply = text[start:], text[:start].strip()

    try:
        payload = json.loads(raw)
        operations = [operation_from_dict(op) for op in payload.get("operations", [])]
    except (ValueError, AttributeError, TypeError) as exc:
        raise PlanningError(f"unparseable operations in planner output: {exc}") from None

    return Plan(reply=reply or str(payload.get("reply", "")), operations=operations)


class LLMPlanner(Planner):
    """
    LLM-backed planner.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        prompt_builder: Optional[PromptBuilder] = None,
        *,
        max_context_nodes: int = 60,
    ) -> None:
        if backend is None:
            raise ValueError("LLM backend must be provided")

        self.backend = backend
        self.prompt_builder = prompt_builder
        self.max_context_nodes = max_context_nodes

    def plan(self, request: str, view: GraphView, *, context: str = "") -> Plan:
        prompt = (
            self.prompt_builder(request, view, context)
            if self.prompt_builder is not None
            else self._default_prompt(request=request, view=view, context=context)
        )
        return parse_plan(self.backend.generate(prompt))

    def _default_prompt(self, *, request: str, view: GraphView, context: str) -> str:
        nodes = list(view.nodes())
        node_lines = [
            f"- {n.semantic_id} [{n.type.value}] {n.attributes.get('name', '')}".rstrip()
            for n in nodes[: self.max_context_nodes]
        ]
        if len(nodes) > self.max_context_nodes:
            node_lines.append(f"[{len(nodes) - self.max_context_nodes} more nodes omitted]")

        edge_lines = []
        for e in view.edges():
            source, target = view.node_by_id(e.source_id), view.node_by_id(e.target_id)
            edge_lines.append(f"- {source.semantic_id} --{e.kind.value}--> {target.semantic_id}")
            if len(edge_lines) >= self.max_context_nodes:
                break

        counts = view.counts()
        memory = f"\nPrior experience:\n{context}\n" if context else ""

        return f"""
You edit a system architecture graph.

RULES:
- Reference nodes ONLY by semantic id.
- Node types: SYS, UC, ACTOR, FCHAIN, FUNC, FLOW, REQ, TEST, MOD, SCHEMA.
- Edge kinds: compose, satisfy, allocate, io, verify, relation.
- Answer briefly, then give changes as a fenced JSON block:
  {{"operations": [{{"op": "add_node", "type": "FUNC", "semantic_id": "...", "attributes": {{}}}}]}}
- Omit the block when nothing should change.

Graph: {counts["nodes"]} nodes, {counts["edges"]} edges.

Nodes:
{chr(10).join(node_lines) or "(empty graph)"}

Edges:
{chr(10).join(edge_lines) or "(none)"}
{memory}
Request:
{request}
""".strip()
