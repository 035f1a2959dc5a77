from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Iterable, List
import hashlib
import threading
import numpy as np


class EmbeddingEncoder(ABC):
    """
    Abstract text encoder.

    Concrete encoders only implement `_encode_one`; memoization of repeated
    texts happens here so the cache and the episodic store can re-encode
    freely.
    """

    def __init__(self, dimension: int, *, memo_size: int = 4096) -> None:
        self.dimension = dimension
        self.memo_size = memo_size
        self._memo: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self._memo_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encode(self, texts: Iterable[str]) -> List[np.ndarray]:
        embeddings: List[np.ndarray] = []

        for text in texts:
            key = self._hash(text)
            with self._memo_lock:
                cached = self._memo.get(key)
                if cached is not None:
                    self._memo.move_to_end(key)
            if cached is None:
                cached = self._encode_one(text)
                with self._memo_lock:
                    self._memo[key] = cached
                    while len(self._memo) > self.memo_size:
                        self._memo.popitem(last=False)
            embeddings.append(cached)

        return embeddings

    def encode_one(self, text: str) -> np.ndarray:
        return self.encode([text])[0]

    # ------------------------------------------------------------------
    # Implementation contract
    # ------------------------------------------------------------------

    @abstractmethod
    def _encode_one(self, text: str) -> np.ndarray:
        """
        Encode a single text into a vector of length `dimension`.
        """
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    def _hash(self, text: str) -> str:
        # Encoder identity is part of the key so vectors from different
        # models or dimensions never mix.
        payload = f"{self.__class__.__name__}:{self.dimension}:{text}"
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
