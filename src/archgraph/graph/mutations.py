from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from archgraph.errors import InvalidMutation
from archgraph.graph.graph_schema import (
    Edge,
    EdgeKey,
    EdgeKind,
    Node,
    NodeType,
    check_attributes,
)
from archgraph.graph.graph_store import GraphStore


# ---------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------
#
# Operations reference nodes by semantic id. Internal ids never leave the
# store through this interface.


@dataclass(frozen=True)
class AddNode:
    op: ClassVar[str] = "add_node"

    type: Union[str, NodeType]
    semantic_id: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op": self.op,
            "type": NodeType.parse(self.type).value,
            "semantic_id": self.semantic_id,
            "attributes": dict(self.attributes),
        }


@dataclass(frozen=True)
class RemoveNode:
    op: ClassVar[str] = "remove_node"

    semantic_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"op": self.op, "semantic_id": self.semantic_id}


@dataclass(frozen=True)
class UpdateNode:
    """
    Merge `attributes` into the node, drop `remove_attributes`, and
    optionally rename it to `new_semantic_id`.
    """

    op: ClassVar[str] = "update_node"

    semantic_id: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    remove_attributes: Tuple[str, ...] = ()
    new_semantic_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op": self.op,
            "semantic_id": self.semantic_id,
            "attributes": dict(self.attributes),
            "remove_attributes": list(self.remove_attributes),
            "new_semantic_id": self.new_semantic_id,
        }


@dataclass(frozen=True)
class AddEdge:
    op: ClassVar[str] = "add_edge"

    source: str
    target: str
    kind: Union[str, EdgeKind]
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op": self.op,
            "source": self.source,
            "target": self.target,
            "kind": EdgeKind.parse(self.kind).value,
            "attributes": dict(self.attributes),
        }


@dataclass(frozen=True)
class RemoveEdge:
    op: ClassVar[str] = "remove_edge"

    source: str
    target: str
    kind: Union[str, EdgeKind]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op": self.op,
            "source": self.source,
            "target": self.target,
            "kind": EdgeKind.parse(self.kind).value,
        }


@dataclass(frozen=True)
class UpdateEdge:
    op: ClassVar[str] = "update_edge"

    source: str
    target: str
    kind: Union[str, EdgeKind]
    attributes: Mapping[str, Any] = field(default_factory=dict)
    remove_attributes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op": self.op,
            "source": self.source,
            "target": self.target,
            "kind": EdgeKind.parse(self.kind).value,
            "attributes": dict(self.attributes),
            "remove_attributes": list(self.remove_attributes),
        }


Operation = Union[AddNode, RemoveNode, UpdateNode, AddEdge, RemoveEdge, UpdateEdge]

_OPERATIONS = {cls.op: cls for cls in (AddNode, RemoveNode, UpdateNode, AddEdge, RemoveEdge, UpdateEdge)}

_TEXT_FIELDS = frozenset({"type", "semantic_id", "new_semantic_id", "source", "target", "kind"})


def check_operation(operation: Operation) -> Operation:
    """
    Check the field types of an operation.

    Raises ValueError when a reference or kind is not a string, `attributes`
    does not pass `check_attributes`, or `remove_attributes` is not a
    sequence of names.
    """
    if not isinstance(operation, tuple(_OPERATIONS.values())):
        return operation
    for name in (f.name for f in fields(operation) if f.name in _TEXT_FIELDS):
        value = getattr(operation, name)
        if value is None and name == "new_semantic_id":
            continue
        if not isinstance(value, str):
            raise ValueError(
                f"{operation.op}: '{name}' must be a string, got {type(value).__name__}"
            )
    check_attributes(getattr(operation, "attributes", None))
    removed = getattr(operation, "remove_attributes", ())
    if not isinstance(removed, (list, tuple)) or not all(isinstance(key, str) for key in removed):
        raise ValueError(f"{operation.op}: 'remove_attributes' must be a list of names")
    return operation


def operation_from_dict(raw: Mapping[str, Any]) -> Operation:
    """
    Parse the wire form (`{"op": "add_node", ...}`) of an operation.
    """
    if not isinstance(raw, Mapping):
        raise ValueError(f"operation must be an object, got {type(raw).__name__}")
    payload = dict(raw)
    name = payload.pop("op", None)
    cls = _OPERATIONS.get(name)
    if cls is None:
        raise ValueError(f"unknown operation: {name!r}")
    if "remove_attributes" in payload:
        removed = payload["remove_attributes"] or ()
        if isinstance(removed, (str, Mapping)) or not isinstance(removed, (list, tuple)):
            raise ValueError(f"{name}: 'remove_attributes' must be a list of names")
        payload["remove_attributes"] = tuple(removed)
    if payload.get("attributes") is None and "attributes" in payload:
        payload.pop("attributes")
    try:
        operation = cls(**payload)
    except TypeError as exc:
        raise ValueError(f"bad arguments for {name}: {exc}") from None
    return check_operation(operation)


def batch_shape(operations: Iterable[Operation]) -> str:
    """
    Structural signature of a batch, independent of the literal names used.

    e.g. ``add_edge:io x1 | add_node:FUNC x2``
    """
    counts: Counter = Counter()
    for operation in operations:
        if isinstance(operation, AddNode):
            counts[f"{operation.op}:{NodeType.parse(operation.type).value}"] += 1
        elif isinstance(operation, (AddEdge, RemoveEdge, UpdateEdge)):
            counts[f"{operation.op}:{EdgeKind.parse(operation.kind).value}"] += 1
        else:
            counts[operation.op] += 1
    return " | ".join(f"{key} x{count}" for key, count in sorted(counts.items()))


# ---------------------------------------------------------------------
# Staging
# ---------------------------------------------------------------------


class _Stage:
    """
    Plain-dict copy of a graph that a batch is applied to.

    Node removal does not cascade: edges left pointing at removed nodes are
    reported by `validate()` against the operation that removed the node.
    """

    def __init__(self, store: GraphStore) -> None:
        self.nodes: Dict[str, Node] = store.node_map()
        self.edges: Dict[EdgeKey, Edge] = store.edge_map()
        self.by_semantic_id: Dict[str, str] = {
            n.semantic_id: node_id for node_id, n in self.nodes.items()
        }
        self.removed: Dict[str, Tuple[int, Node]] = {}
        self.removed_semantic_ids: Dict[str, str] = {}

    def resolve(
        self,
        semantic_id: str,
        *,
        index: int,
        operation: Operation,
        allow_removed: bool = False,
    ) -> str:
        node_id = self.by_semantic_id.get(semantic_id)
        if node_id is None and allow_removed:
            node_id = self.removed_semantic_ids.get(semantic_id)
        if node_id is None:
            raise InvalidMutation(
                f"unknown node '{semantic_id}'", index=index, operation=operation
            )
        return node_id

    def claim(self, semantic_id: str, *, index: int, operation: Operation) -> None:
        if not semantic_id or not semantic_id.strip():
            raise InvalidMutation(
                "semantic id must not be empty", index=index, operation=operation
            )
        if semantic_id in self.by_semantic_id:
            raise InvalidMutation(
                f"semantic id '{semantic_id}' already in use",
                index=index,
                operation=operation,
            )

    def apply(self, index: int, operation: Operation) -> None:
        try:
            check_operation(operation)
            self._dispatch(index, operation)
        except ValueError as exc:
            raise InvalidMutation(str(exc), index=index, operation=operation) from None

    def _dispatch(self, index: int, operation: Operation) -> None:
        if isinstance(operation, AddNode):
            self.claim(operation.semantic_id, index=index, operation=operation)
            node = Node.create(operation.type, operation.semantic_id, operation.attributes)
            self.nodes[node.id] = node
            self.by_semantic_id[node.semantic_id] = node.id

        elif isinstance(operation, RemoveNode):
            node_id = self.resolve(operation.semantic_id, index=index, operation=operation)
            node = self.nodes.pop(node_id)
            del self.by_semantic_id[node.semantic_id]
            self.removed[node_id] = (index, node)
            self.removed_semantic_ids[node.semantic_id] = node_id

        elif isinstance(operation, UpdateNode):
            node_id = self.resolve(operation.semantic_id, index=index, operation=operation)
            node = self.nodes[node_id]
            attributes = dict(node.attributes)
            attributes.update(check_attributes(operation.attributes))
            for key in operation.remove_attributes:
                attributes.pop(key, None)
            new_sid = operation.new_semantic_id
            if new_sid is not None and new_sid != node.semantic_id:
                self.claim(new_sid, index=index, operation=operation)
                del self.by_semantic_id[node.semantic_id]
                self.by_semantic_id[new_sid] = node_id
            self.nodes[node_id] = node.evolve(semantic_id=new_sid, attributes=attributes)

        elif isinstance(operation, AddEdge):
            source = self.resolve(operation.source, index=index, operation=operation)
            target = self.resolve(operation.target, index=index, operation=operation)
            edge = Edge.create(source, target, operation.kind, operation.attributes)
            if edge.key in self.edges:
                raise InvalidMutation(
                    f"edge {operation.source} -{edge.kind.value}-> {operation.target} "
                    "already present",
                    index=index,
                    operation=operation,
                )
            self.edges[edge.key] = edge

        elif isinstance(operation, (RemoveEdge, UpdateEdge)):
            source = self.resolve(
                operation.source, index=index, operation=operation, allow_removed=True
            )
            target = self.resolve(
                operation.target, index=index, operation=operation, allow_removed=True
            )
            key = (source, target, EdgeKind.parse(operation.kind))
            edge = self.edges.get(key)
            if edge is None:
                raise InvalidMutation(
                    f"no edge {operation.source} -{key[2].value}-> {operation.target}",
                    index=index,
                    operation=operation,
                )
            if isinstance(operation, RemoveEdge):
                del self.edges[key]
            else:
                attributes = dict(edge.attributes)
                attributes.update(check_attributes(operation.attributes))
                for name in operation.remove_attributes:
                    attributes.pop(name, None)
                self.edges[key] = edge.evolve(attributes=attributes)

        else:
            raise InvalidMutation(
                f"unsupported operation {type(operation).__name__}",
                index=index,
                operation=operation,
            )

    def validate(self, operations: Sequence[Operation]) -> None:
        for edge in self.edges.values():
            for endpoint in (edge.source_id, edge.target_id):
                if endpoint in self.nodes:
                    continue
                removed = self.removed.get(endpoint)
                index = removed[0] if removed is not None else None
                source = self._label(edge.source_id)
                target = self._label(edge.target_id)
                raise InvalidMutation(
                    f"edge {source} -{edge.kind.value}-> {target} would dangle",
                    index=index,
                    operation=operations[index] if index is not None else None,
                )

    def _label(self, node_id: str) -> str:
        if node_id in self.nodes:
            return self.nodes[node_id].semantic_id
        if node_id in self.removed:
            return self.removed[node_id][1].semantic_id
        return node_id

    def build(self) -> GraphStore:
        return GraphStore.from_parts(self.nodes.values(), self.edges.values())


class MutationBatch:
    """
    Ordered sequence of operations applied all-or-nothing.
    """

    def __init__(self, operations: Iterable[Operation]) -> None:
        self.operations: List[Operation] = list(operations)

    @classmethod
    def from_dicts(cls, raw: Iterable[Mapping[str, Any]]) -> "MutationBatch":
        operations = []
        for index, item in enumerate(raw):
            try:
                operations.append(operation_from_dict(item))
            except ValueError as exc:
                raise InvalidMutation(str(exc), index=index) from None
        return cls(operations)

    def stage(self, store: GraphStore) -> GraphStore:
        """
        Return a new store with the batch applied; `store` is not modified.

        Raises InvalidMutation naming the offending operation index.
        """
        stage = _Stage(store)
        for index, operation in enumerate(self.operations):
            stage.apply(index, operation)
        stage.validate(self.operations)
        return stage.build()

    def shape(self) -> str:
        return batch_shape(self.operations)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [operation.to_dict() for operation in self.operations]

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self):
        return iter(self.operations)
