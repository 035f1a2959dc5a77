"""
Flat persisted layout of a graph.

A snapshot is a list of nodes and a list of edges; hierarchy is expressed
only through compose/satisfy/allocate edges and recovered by traversal.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from archgraph.graph.graph_schema import Edge, EdgeKind, Node, NodeType, check_attributes
from archgraph.graph.graph_store import GraphStore

Snapshot = Dict[str, List[Dict[str, Any]]]


def to_snapshot(store: GraphStore) -> Snapshot:
    return {
        "nodes": [node.to_dict() for node in store.get_nodes()],
        "edges": [edge.to_dict() for edge in store.edges()],
    }


def from_snapshot(data: Mapping[str, Any]) -> GraphStore:
    """
    Build a store from a snapshot mapping.

    Raises ValueError on malformed entries, dangling edges or duplicate
    semantic ids.
    """
    store = GraphStore()

    for i, raw in enumerate(data.get("nodes") or []):
        try:
            node = Node(
                id=str(raw["id"]),
                type=NodeType.parse(raw["type"]),
                semantic_id=str(raw["semantic_id"]),
                attributes=check_attributes(raw.get("attributes")),
            )
        except KeyError as exc:
            raise ValueError(f"node #{i} is missing field {exc}") from None
        store.add_node(node)

    for i, raw in enumerate(data.get("edges") or []):
        try:
            edge = Edge(
                source_id=str(raw["source"]),
                target_id=str(raw["target"]),
                kind=EdgeKind.parse(raw["kind"]),
                attributes=check_attributes(raw.get("attributes")),
            )
        except KeyError as exc:
            raise ValueError(f"edge #{i} is missing field {exc}") from None
        store.add_edge(edge)

    return store


def read_snapshot(path: Union[str, Path]) -> GraphStore:
    with Path(path).open("r", encoding="utf-8") as fh:
        return from_snapshot(json.load(fh))


def write_json(path: Union[str, Path], payload: Any) -> Path:
    """
    Write `payload` as JSON through a sibling temp file, so readers only ever
    see the old or the new content.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
    tmp.replace(target)
    return target


def write_snapshot(path: Union[str, Path], store: GraphStore) -> Path:
    return write_json(path, to_snapshot(store))
