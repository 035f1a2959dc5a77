from __future__ import annotations

import networkx as nx
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from archgraph.graph.graph_schema import Edge, EdgeKey, EdgeKind, Node, NodeType


class GraphStore:
    """
    In-memory architecture graph.

    Nodes are keyed by id, edges by (source_id, target_id, kind). A semantic
    id index is maintained alongside the networkx graph so user-facing labels
    resolve in O(1).
    """

    def __init__(self) -> None:
        self._graph = nx.MultiDiGraph()
        self._by_semantic_id: Dict[str, str] = {}
        self.metadata: Dict[str, Any] = {}

    # -------------------- Nodes --------------------

    def add_node(self, node: Node) -> None:
        if node.id in self._graph:
            raise ValueError(f"node id '{node.id}' already present")
        if node.semantic_id in self._by_semantic_id:
            raise ValueError(f"semantic id '{node.semantic_id}' already in use")
        self._graph.add_node(node.id, data=node)
        self._by_semantic_id[node.semantic_id] = node.id

    def get_node(self, node_id: str) -> Node:
        return self._graph.nodes[node_id]["data"]

    def has_node(self, node_id: str) -> bool:
        return node_id in self._graph

    def find_node(self, semantic_id: str) -> Optional[Node]:
        node_id = self._by_semantic_id.get(semantic_id)
        if node_id is None:
            return None
        return self.get_node(node_id)

    def get_nodes(self, type: Union[str, NodeType, None] = None) -> List[Node]:
        nodes = [data["data"] for _, data in self._graph.nodes(data=True)]
        if type is None:
            return nodes
        wanted = NodeType.parse(type)
        return [n for n in nodes if n.type == wanted]

    # -------------------- Edges --------------------

    def add_edge(self, edge: Edge) -> None:
        for endpoint in (edge.source_id, edge.target_id):
            if endpoint not in self._graph:
                raise ValueError(
                    f"edge {edge.kind.value} references absent node '{endpoint}'"
                )
        if self.has_edge(edge.source_id, edge.target_id, edge.kind):
            raise ValueError(
                f"edge ({edge.source_id}, {edge.target_id}, {edge.kind.value}) "
                "already present"
            )
        self._graph.add_edge(
            edge.source_id, edge.target_id, key=edge.kind.value, data=edge
        )

    def get_edge(
        self, source_id: str, target_id: str, kind: Union[str, EdgeKind]
    ) -> Edge:
        key = EdgeKind.parse(kind).value
        return self._graph.edges[source_id, target_id, key]["data"]

    def has_edge(
        self, source_id: str, target_id: str, kind: Union[str, EdgeKind]
    ) -> bool:
        return self._graph.has_edge(source_id, target_id, key=EdgeKind.parse(kind).value)

    def edges(self, kind: Union[str, EdgeKind, None] = None) -> Iterator[Edge]:
        wanted = EdgeKind.parse(kind) if kind is not None else None
        for _, _, data in self._graph.edges(data=True):
            edge = data["data"]
            if wanted is None or edge.kind == wanted:
                yield edge

    def get_edges(self, kind: Union[str, EdgeKind, None] = None) -> List[Edge]:
        return list(self.edges(kind))

    def out_edges(self, node_id: str) -> List[Edge]:
        if node_id not in self._graph:
            return []
        return [d["data"] for _, _, d in self._graph.out_edges(node_id, data=True)]

    def in_edges(self, node_id: str) -> List[Edge]:
        if node_id not in self._graph:
            return []
        return [d["data"] for _, _, d in self._graph.in_edges(node_id, data=True)]

    def get_edges_between(self, node_ids: Iterable[str]) -> List[Edge]:
        node_set = set(node_ids)
        return [
            e for e in self.edges()
            if e.source_id in node_set and e.target_id in node_set
        ]

    # -------------------- Analytics --------------------

    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def node_map(self) -> Dict[str, Node]:
        return {node_id: data["data"] for node_id, data in self._graph.nodes(data=True)}

    def edge_map(self) -> Dict[EdgeKey, Edge]:
        return {edge.key: edge for edge in self.edges()}

    # -------------------- Cloning --------------------

    @classmethod
    def from_parts(cls, nodes: Iterable[Node], edges: Iterable[Edge]) -> "GraphStore":
        g = cls()
        for node in nodes:
            g.add_node(node.copy())
        for edge in edges:
            g.add_edge(edge.copy())
        return g

    def clone(self) -> "GraphStore":
        """
        Deep copy: no attribute mapping is shared with the original.
        """
        g = GraphStore.from_parts(self.get_nodes(), self.edges())
        g.metadata = dict(self.metadata)
        return g

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GraphStore):
            return NotImplemented
        return (
            self.node_map() == other.node_map()
            and self.edge_map() == other.edge_map()
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"GraphStore(nodes={self.node_count()}, edges={self.edge_count()})"
