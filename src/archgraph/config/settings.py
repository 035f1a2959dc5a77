from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

# ---------------------------------------------------------------------
# Change notification
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class NotifierConfig:
    """
    Controls per-observer buffering of change events.
    """

    queue_size: int = 256
    dedup_window: int = 1024


# ---------------------------------------------------------------------
# Semantic result cache
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class CacheConfig:
    """
    Controls reuse of expensive external lookups for equivalent requests.
    """

    enabled: bool = True
    capacity: int = 256
    similarity_threshold: float = 0.85
    recent_window: int = 64
    ttl_seconds: float = 0.0  # 0 = entries never expire


# ---------------------------------------------------------------------
# Episodic retrieval
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class EpisodicConfig:
    """
    Controls the best-effort memory of past requests and their outcomes.
    """

    capacity: int = 1000
    min_similarity: float = 0.0
    success_threshold: float = 0.7
    max_patterns: int = 1000
    pattern_min_similarity: float = 0.5
    pattern_learning_rate: float = 0.3


# ---------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class EmbeddingConfig:
    """
    Selects the text encoder used by the cache and the episodic store.
    """

    backend: Literal["hashing", "hf"] = "hashing"
    dimension: int = 256
    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    device: str = "cpu"


# ---------------------------------------------------------------------
# Root configuration object
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class ArchGraphConfig:
    """
    Root configuration object for archgraph.

    Constructed explicitly and passed to the subsystems that need it.
    """

    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    episodic: EpisodicConfig = field(default_factory=EpisodicConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
