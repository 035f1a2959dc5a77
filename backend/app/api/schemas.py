from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    request: str
    # Structural questions about the current graph must not reuse answers
    # produced under another version.
    version_sensitive: bool = True
    origin: Optional[str] = None


class QueryResponse(BaseModel):
    reply: str
    version: int
    cached: bool
    similarity: Optional[float] = None
    operations: List[Dict[str, Any]] = Field(default_factory=list)
    diff: Optional[Dict[str, Any]] = None
    validation: Optional[Dict[str, Any]] = None


class GraphStatsResponse(BaseModel):
    nodes: int
    edges: int
    version: int
    has_baseline: bool


class GraphNode(BaseModel):
    id: str
    type: str
    semantic_id: str
    attributes: Dict[str, Any]


class GraphEdge(BaseModel):
    source: str
    target: str
    kind: str
    attributes: Dict[str, Any]


class GraphSnapshot(BaseModel):
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)


class GraphExportResponse(GraphSnapshot):
    version: int


class ApplyRequest(BaseModel):
    operations: List[Dict[str, Any]]
    origin: Optional[str] = None


class ApplyResponse(BaseModel):
    version: int
    sequence: Optional[int] = None
    diff: Dict[str, Any]


class CheckpointRequest(BaseModel):
    origin: Optional[str] = None


class CheckpointResponse(BaseModel):
    version: int


class DiffResponse(BaseModel):
    version: int
    diff: Dict[str, Any]


class ValidationResponse(BaseModel):
    score: float
    errors: int
    warnings: int
    hard_failures: int
    violations: List[Dict[str, Any]]


class EpisodeSummary(BaseModel):
    id: str
    timestamp: str
    request: str
    success_score: float
    critique: Optional[str] = None
    outcome: Dict[str, Any]


class PatternSummary(BaseModel):
    id: str
    template: str
    result_shape: str
    success_rate: float
    usage_count: int
    similarity: Optional[float] = None
    score: Optional[float] = None
