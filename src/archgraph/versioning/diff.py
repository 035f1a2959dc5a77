from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from archgraph.graph.graph_schema import Edge, EdgeKey, Node
from archgraph.graph.graph_store import GraphStore


@dataclass(frozen=True)
class AttributeChange:
    key: str
    before: Any
    after: Any


@dataclass(frozen=True)
class NodeChange:
    """
    A node present on both sides whose content differs.
    """

    before: Node
    after: Node
    changes: Tuple[AttributeChange, ...] = ()

    @property
    def id(self) -> str:
        return self.after.id

    @property
    def renamed(self) -> bool:
        return self.before.semantic_id != self.after.semantic_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.after.id,
            "semantic_id": self.after.semantic_id,
            "previous_semantic_id": self.before.semantic_id if self.renamed else None,
            "changes": [
                {"key": c.key, "before": c.before, "after": c.after}
                for c in self.changes
            ],
        }


@dataclass(frozen=True)
class EdgeChange:
    before: Edge
    after: Edge
    changes: Tuple[AttributeChange, ...] = ()

    @property
    def key(self) -> EdgeKey:
        return self.after.key


@dataclass(frozen=True)
class GraphDiff:
    """
    Changes between a reference graph and a current graph.

    Derived value: computed on demand, never stored across mutations.
    """

    added_nodes: List[Node] = field(default_factory=list)
    removed_nodes: List[Node] = field(default_factory=list)
    modified_nodes: List[NodeChange] = field(default_factory=list)
    added_edges: List[Edge] = field(default_factory=list)
    removed_edges: List[Edge] = field(default_factory=list)
    modified_edges: List[EdgeChange] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.added_nodes
            or self.removed_nodes
            or self.modified_nodes
            or self.added_edges
            or self.removed_edges
            or self.modified_edges
        )

    def __bool__(self) -> bool:
        return not self.is_empty()

    def summary(self) -> Dict[str, int]:
        added = len(self.added_nodes) + len(self.added_edges)
        modified = len(self.modified_nodes) + len(self.modified_edges)
        deleted = len(self.removed_nodes) + len(self.removed_edges)
        return {
            "added": added,
            "modified": modified,
            "deleted": deleted,
            "total": added + modified + deleted,
        }

    def to_dict(self, labels: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """
        JSON-safe form. Edge endpoints are rendered through `labels`
        (node id -> semantic id) when given.
        """
        labels = labels or {}

        def _edge(edge: Edge) -> Dict[str, Any]:
            data = edge.to_dict()
            data["source"] = labels.get(edge.source_id, edge.source_id)
            data["target"] = labels.get(edge.target_id, edge.target_id)
            return data

        return {
            "added_nodes": [n.to_dict() for n in self.added_nodes],
            "removed_nodes": [n.to_dict() for n in self.removed_nodes],
            "modified_nodes": [c.to_dict() for c in self.modified_nodes],
            "added_edges": [_edge(e) for e in self.added_edges],
            "removed_edges": [_edge(e) for e in self.removed_edges],
            "modified_edges": [
                {
                    **_edge(c.after),
                    "changes": [
                        {"key": a.key, "before": a.before, "after": a.after}
                        for a in c.changes
                    ],
                }
                for c in self.modified_edges
            ],
            "summary": self.summary(),
        }


def _attribute_changes(
    before: Mapping[str, Any], after: Mapping[str, Any]
) -> Tuple[AttributeChange, ...]:
    changes: List[AttributeChange] = []
    for key in before:
        if key not in after:
            changes.append(AttributeChange(key, before[key], None))
        elif before[key] != after[key] or type(before[key]) is not type(after[key]):
            changes.append(AttributeChange(key, before[key], after[key]))
    for key in after:
        if key not in before:
            changes.append(AttributeChange(key, None, after[key]))
    return tuple(changes)


def compute_diff(reference: GraphStore, current: GraphStore) -> GraphDiff:
    """
    Keyed symmetric difference of two graphs.

    Nodes correspond by id and edges by (source, target, kind), so the
    comparison is linear in the total node and edge count. A node present on
    both sides with any difference is reported as modified.
    """
    ref_nodes = reference.node_map()
    cur_nodes = current.node_map()
    ref_edges = reference.edge_map()
    cur_edges = current.edge_map()

    diff = GraphDiff()

    for node_id, node in cur_nodes.items():
        old = ref_nodes.get(node_id)
        if old is None:
            diff.added_nodes.append(node.copy())
            continue
        changes = _attribute_changes(old.attributes, node.attributes)
        if changes or old.semantic_id != node.semantic_id or old.type != node.type:
            diff.modified_nodes.append(
                NodeChange(before=old.copy(), after=node.copy(), changes=changes)
            )

    for node_id, node in ref_nodes.items():
        if node_id not in cur_nodes:
            diff.removed_nodes.append(node.copy())

    for key, edge in cur_edges.items():
        old_edge = ref_edges.get(key)
        if old_edge is None:
            diff.added_edges.append(edge.copy())
            continue
        changes = _attribute_changes(old_edge.attributes, edge.attributes)
        if changes:
            diff.modified_edges.append(
                EdgeChange(before=old_edge.copy(), after=edge.copy(), changes=changes)
            )

    for key, edge in ref_edges.items():
        if key not in cur_edges:
            diff.removed_edges.append(edge.copy())

    return diff
