from __future__ import annotations

import numpy as np
from typing import Iterable, List


class SimilarityComputer:
    """
    Similarity primitives over embedding vectors.
    """

    @staticmethod
    def cosine(a: np.ndarray, b: np.ndarray) -> float:
        """
        Cosine similarity; 0.0 when either vector is all zeros.
        """
        denom = np.linalg.norm(a) * np.linalg.norm(b)
        if denom == 0.0:
            return 0.0
        return float(np.dot(a, b) / denom)

    @staticmethod
    def cosine_batch(
        query: np.ndarray,
        candidates: Iterable[np.ndarray],
    ) -> List[float]:
        return [SimilarityComputer.cosine(query, c) for c in candidates]

    @staticmethod
    def rank(scores: Iterable[float]) -> List[int]:
        """
        Indices by descending score. Equal scores keep their input order.
        """
        return [int(i) for i in np.argsort(-np.asarray(list(scores)), kind="stable")]
