"""
Configuration layer for archgraph.

Typed, immutable policy objects for change notification, the semantic
result cache, the episodic store and the embedding encoder. Configuration
is passed explicitly, never read from globals.
"""

from archgraph.config.settings import (
    NotifierConfig,
    CacheConfig,
    EpisodicConfig,
    EmbeddingConfig,
    ArchGraphConfig,
)

__all__ = [
    "NotifierConfig",
    "CacheConfig",
    "EpisodicConfig",
    "EmbeddingConfig",
    "ArchGraphConfig",
]
