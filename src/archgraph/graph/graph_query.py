from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Union

import networkx as nx

from archgraph.graph.graph_schema import Edge, EdgeKind, Node, NodeType
from archgraph.graph.graph_store import GraphStore


@dataclass(frozen=True)
class SubgraphResult:
    """
    Result of a bounded graph traversal.
    """

    nodes: Set[str]
    edges: List[Edge]


class GraphView:
    """
    Read-only access to a graph for pattern-matching collaborators.

    The rule evaluator iterates nodes by type and edges by kind or by
    connection; nothing here mutates the underlying store.
    """

    def __init__(self, store: GraphStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def node(self, semantic_id: str) -> Optional[Node]:
        return self._store.find_node(semantic_id)

    def node_by_id(self, node_id: str) -> Optional[Node]:
        if not self._store.has_node(node_id):
            return None
        return self._store.get_node(node_id)

    def nodes(self, type: Union[str, NodeType, None] = None) -> Iterator[Node]:
        return iter(self._store.get_nodes(type))

    def edges(self, kind: Union[str, EdgeKind, None] = None) -> Iterator[Edge]:
        return iter(self._store.get_edges(kind))

    def outgoing(self, node_id: str, kind: Union[str, EdgeKind, None] = None) -> List[Edge]:
        edges = self._store.out_edges(node_id)
        if kind is None:
            return edges
        wanted = EdgeKind.parse(kind)
        return [e for e in edges if e.kind == wanted]

    def incoming(self, node_id: str, kind: Union[str, EdgeKind, None] = None) -> List[Edge]:
        edges = self._store.in_edges(node_id)
        if kind is None:
            return edges
        wanted = EdgeKind.parse(kind)
        return [e for e in edges if e.kind == wanted]

    def counts(self) -> Dict[str, int]:
        return {
            "nodes": self._store.node_count(),
            "edges": self._store.edge_count(),
        }

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def children(self, node_id: str) -> List[Node]:
        return [
            self._store.get_node(e.target_id)
            for e in self._store.out_edges(node_id)
            if e.is_hierarchical
        ]

    def parents(self, node_id: str) -> List[Node]:
        """
        Hierarchical parents. More than one `compose` parent is a tree
        violation the rule evaluator reports; it is returned as stored.
        """
        return [
            self._store.get_node(e.source_id)
            for e in self._store.in_edges(node_id)
            if e.is_hierarchical
        ]

    def roots(self) -> List[Node]:
        return [
            n for n in self._store.get_nodes()
            if not any(e.is_hierarchical for e in self._store.in_edges(n.id))
        ]

    def hierarchy_cycles(self) -> List[List[str]]:
        """
        Cycles formed purely by hierarchical edges, as lists of node ids.
        """
        tree = nx.DiGraph()
        for edge in self._store.edges():
            if edge.is_hierarchical:
                tree.add_edge(edge.source_id, edge.target_id)
        return [list(cycle) for cycle in nx.simple_cycles(tree)]

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def k_hop_subgraph(
        self,
        *,
        start: str,
        k: int,
        kinds: Optional[Set[EdgeKind]] = None,
        undirected: bool = True,
    ) -> SubgraphResult:
        visited_nodes: Set[str] = set()
        collected_edges: Dict[tuple, Edge] = {}

        frontier: Set[str] = {start} if self._store.has_node(start) else set()

        for _ in range(k):
            next_frontier: Set[str] = set()

            for node in frontier:
                if node in visited_nodes:
                    continue

                candidates = list(self._store.out_edges(node))
                if undirected:
                    candidates.extend(self._store.in_edges(node))

                for edge in candidates:
                    if kinds is not None and edge.kind not in kinds:
                        continue
                    collected_edges[edge.key] = edge
                    other = edge.target_id if edge.source_id == node else edge.source_id
                    next_frontier.add(other)

                visited_nodes.add(node)

            frontier = next_frontier

        visited_nodes.update(frontier)

        return SubgraphResult(
            nodes=visited_nodes,
            edges=list(collected_edges.values()),
        )
