from archgraph.versioning.diff import AttributeChange, EdgeChange, GraphDiff, NodeChange, compute_diff
from archgraph.versioning.version_store import ApplyResult, VersionStore

__all__ = [
    "AttributeChange",
    "EdgeChange",
    "GraphDiff",
    "NodeChange",
    "compute_diff",
    "ApplyResult",
    "VersionStore",
]
