"""
Embedding subsystem for archgraph.

Text encoders and similarity primitives used by the semantic result cache
and the episodic store. Model-specific encoders live in their own modules so
that heavy dependencies load only when selected.
"""

from archgraph.embeddings.encoder import EmbeddingEncoder
from archgraph.embeddings.hashing_encoder import HashingEmbeddingEncoder
from archgraph.embeddings.similarity import SimilarityComputer

__all__ = [
    "EmbeddingEncoder",
    "HashingEmbeddingEncoder",
    "SimilarityComputer",
]
