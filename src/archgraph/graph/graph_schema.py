from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union
from uuid import uuid4


Scalar = Union[str, int, float, bool, None]
EdgeKey = Tuple[str, str, "EdgeKind"]

_SCALAR_TYPES = (str, int, float, bool, type(None))


class NodeType(str, Enum):
    """
    Closed set of architecture element categories.
    """

    SYSTEM = "SYS"
    USE_CASE = "UC"
    ACTOR = "ACTOR"
    FUNCTION_CHAIN = "FCHAIN"
    FUNCTION = "FUNC"
    FLOW = "FLOW"
    REQUIREMENT = "REQ"
    TEST = "TEST"
    MODULE = "MOD"
    SCHEMA = "SCHEMA"

    @classmethod
    def parse(cls, value: Union[str, "NodeType"]) -> "NodeType":
        if isinstance(value, NodeType):
            return value
        text = str(value).strip()
        for member in cls:
            if text.upper() == member.value or text.upper() == member.name:
                return member
        raise ValueError(f"unknown node type: {value!r}")


class EdgeKind(str, Enum):
    """
    Edge kinds, split into hierarchical (containment) and referential families.
    """

    COMPOSE = "compose"
    SATISFY = "satisfy"
    ALLOCATE = "allocate"
    IO = "io"
    VERIFY = "verify"
    RELATION = "relation"

    @property
    def is_hierarchical(self) -> bool:
        return self in HIERARCHICAL_KINDS

    @classmethod
    def parse(cls, value: Union[str, "EdgeKind"]) -> "EdgeKind":
        if isinstance(value, EdgeKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown edge kind: {value!r}") from None


HIERARCHICAL_KINDS = frozenset(
    {EdgeKind.COMPOSE, EdgeKind.SATISFY, EdgeKind.ALLOCATE}
)
REFERENTIAL_KINDS = frozenset({EdgeKind.IO, EdgeKind.VERIFY, EdgeKind.RELATION})


def check_attributes(attributes: Optional[Mapping[str, Any]]) -> Dict[str, Scalar]:
    """
    Copy an attribute mapping, keeping insertion order.

    Raises ValueError for non-mapping input, non-string keys, non-scalar
    values and non-finite floats.
    """
    if attributes is not None and not isinstance(attributes, Mapping):
        raise ValueError(
            f"attributes must be a mapping, got {type(attributes).__name__}"
        )
    copied: Dict[str, Scalar] = {}
    for key, value in (attributes or {}).items():
        if not isinstance(key, str):
            raise ValueError(f"attribute keys must be strings, got {key!r}")
        if not isinstance(value, _SCALAR_TYPES):
            raise ValueError(
                f"attribute '{key}' must be a scalar, got {type(value).__name__}"
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(f"attribute '{key}' must be a finite number, got {value!r}")
        copied[key] = value
    return copied


@dataclass(frozen=True)
class Node:
    """
    Typed architecture element.
    """

    id: str
    type: NodeType
    semantic_id: str
    attributes: Dict[str, Scalar] = field(default_factory=dict)

    @staticmethod
    def create(
        type: Union[str, NodeType],
        semantic_id: str,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> "Node":
        return Node(
            id=str(uuid4()),
            type=NodeType.parse(type),
            semantic_id=semantic_id,
            attributes=check_attributes(attributes),
        )

    def copy(self) -> "Node":
        return Node(
            id=self.id,
            type=self.type,
            semantic_id=self.semantic_id,
            attributes=dict(self.attributes),
        )

    def evolve(
        self,
        *,
        semantic_id: Optional[str] = None,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> "Node":
        return Node(
            id=self.id,
            type=self.type,
            semantic_id=self.semantic_id if semantic_id is None else semantic_id,
            attributes=(
                dict(self.attributes)
                if attributes is None
                else check_attributes(attributes)
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "semantic_id": self.semantic_id,
            "attributes": dict(self.attributes),
        }


@dataclass(frozen=True)
class Edge:
    """
    Directed, typed relationship between two nodes.

    Identity is (source_id, target_id, kind).
    """

    source_id: str
    target_id: str
    kind: EdgeKind
    attributes: Dict[str, Scalar] = field(default_factory=dict)

    @staticmethod
    def create(
        source_id: str,
        target_id: str,
        kind: Union[str, EdgeKind],
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> "Edge":
        return Edge(
            source_id=source_id,
            target_id=target_id,
            kind=EdgeKind.parse(kind),
            attributes=check_attributes(attributes),
        )

    @property
    def key(self) -> EdgeKey:
        return (self.source_id, self.target_id, self.kind)

    @property
    def is_hierarchical(self) -> bool:
        return self.kind.is_hierarchical

    def copy(self) -> "Edge":
        return Edge(
            source_id=self.source_id,
            target_id=self.target_id,
            kind=self.kind,
            attributes=dict(self.attributes),
        )

    def evolve(self, *, attributes: Mapping[str, Any]) -> "Edge":
        return Edge(
            source_id=self.source_id,
            target_id=self.target_id,
            kind=self.kind,
            attributes=check_attributes(attributes),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source_id,
            "target": self.target_id,
            "kind": self.kind.value,
            "attributes": dict(self.attributes),
        }
