from __future__ import annotations

import hashlib
import numpy as np

from archgraph.embeddings.encoder import EmbeddingEncoder
from archgraph.utils.text import tokenize


class HashingEmbeddingEncoder(EmbeddingEncoder):
    """
    Deterministic bag-of-tokens encoder.

    Each token is hashed into one of `dimension` buckets and counted; the
    vector is L2-normalized. Counts are never negative, so bucket collisions
    can only raise similarity, never cancel shared tokens out. Needs no model
    download, which makes it the default for tests and offline use.
    """

    def __init__(self, dimension: int = 256) -> None:
        if dimension < 1:
            raise ValueError("dimension must be >= 1")
        super().__init__(dimension=dimension)

    def _encode_one(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dimension, dtype=np.float32)

        for token in tokenize(text):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:8], "big") % self.dimension
            vec[bucket] += 1.0

        norm = float(np.linalg.norm(vec))
        if norm > 0:
            vec = vec / norm
        return vec
