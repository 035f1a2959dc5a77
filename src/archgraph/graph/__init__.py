"""
Graph subsystem for archgraph.

Typed architecture graph, mutation batches addressed by semantic id, a
read-only query view and the flat snapshot format.
"""

from archgraph.graph.graph_schema import Edge, EdgeKind, Node, NodeType
from archgraph.graph.graph_store import GraphStore
from archgraph.graph.graph_query import GraphView, SubgraphResult
from archgraph.graph.mutations import (
    AddEdge,
    AddNode,
    MutationBatch,
    RemoveEdge,
    RemoveNode,
    UpdateEdge,
    UpdateNode,
    batch_shape,
    operation_from_dict,
)
from archgraph.graph.snapshot import (
    from_snapshot,
    read_snapshot,
    to_snapshot,
    write_snapshot,
)

__all__ = [
    "Node",
    "Edge",
    "NodeType",
    "EdgeKind",
    "GraphStore",
    "GraphView",
    "SubgraphResult",
    "AddNode",
    "RemoveNode",
    "UpdateNode",
    "AddEdge",
    "RemoveEdge",
    "UpdateEdge",
    "MutationBatch",
    "batch_shape",
    "operation_from_dict",
    "to_snapshot",
    "from_snapshot",
    "read_snapshot",
    "write_snapshot",
]
