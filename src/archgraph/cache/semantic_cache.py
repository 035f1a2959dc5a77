from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import numpy as np

from archgraph.config.settings import CacheConfig
from archgraph.embeddings.encoder import EmbeddingEncoder
from archgraph.embeddings.similarity import SimilarityComputer
from archgraph.utils.text import hash_text, normalize_text
from archgraph.utils.time import age_seconds, utc_now


@dataclass
class CacheEntry:
    key: str
    request: str
    value: Any
    version: int
    embedding: Optional[np.ndarray]
    created_at: datetime
    hits: int = 0


@dataclass(frozen=True)
class CacheHit:
    """
    A cached value judged equivalent to the request.

    `similarity` is 1.0 for an exact (normalized) match.
    """

    value: Any
    request: str
    similarity: float
    exact: bool
    version: int


class SemanticResultCache:
    """
    Reuses expensive external results for equivalent requests.

    Lookup order: exact match on the normalized request hash, then cosine
    similarity against the `recent_window` most recently used entries. Every
    entry remembers the graph version it was produced under; callers state
    per call site whether a different version makes the entry unusable.

    Best effort throughout: an encoder failure is logged and reported as a
    miss, never raised.
    """

    def __init__(
        self,
        *,
        encoder: EmbeddingEncoder,
        capacity: int = 256,
        similarity_threshold: float = 0.85,
        recent_window: int = 64,
        ttl_seconds: float = 0.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.encoder = encoder
        self.capacity = capacity
        self.similarity_threshold = similarity_threshold
        self.recent_window = recent_window
        self.ttl_seconds = ttl_seconds
        self._clock = clock

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._metrics: Dict[str, int] = {
            "hits": 0,
            "similarity_hits": 0,
            "misses": 0,
            "evictions": 0,
            "errors": 0,
        }

    @classmethod
    def from_config(cls, config: CacheConfig, encoder: EmbeddingEncoder) -> "SemanticResultCache":
        return cls(
            encoder=encoder,
            capacity=config.capacity,
            similarity_threshold=config.similarity_threshold,
            recent_window=config.recent_window,
            ttl_seconds=config.ttl_seconds,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def lookup(
        self,
        request: str,
        *,
        version: int,
        version_sensitive: bool,
    ) -> Optional[CacheHit]:
        """
        Find a cached result for `request`, or None.

        With `version_sensitive=True` only entries created under `version`
        qualify (structural questions about the current graph). With False,
        entries from any version qualify (version-independent phrasing help).
        """
        try:
            return self._lookup(request, version=version, version_sensitive=version_sensitive)
        except Exception as exc:
            self._metrics["errors"] += 1
            logging.getLogger("archgraph.cache").warning(
                "cache lookup failed, treating as miss: %s", exc
            )
            return None

    def put(self, request: str, value: Any, *, version: int) -> Optional[str]:
        """
        Store `value` for `request` under graph `version`. Returns the key,
        or None when the entry could not be stored.
        """
        try:
            key = hash_text(request)
            embedding = self._embed(request)
            entry = CacheEntry(
                key=key,
                request=request,
                value=value,
                version=version,
                embedding=embedding,
                created_at=self._clock(),
            )
            with self._lock:
                self._entries[key] = entry
                self._entries.move_to_end(key)
                while len(self._entries) > self.capacity:
                    self._entries.popitem(last=False)
                    self._metrics["evictions"] += 1
            return key
        except Exception as exc:
            self._metrics["errors"] += 1
            logging.getLogger("archgraph.cache").warning("cache put failed: %s", exc)
            return None

    def invalidate(self, request: str) -> bool:
        with self._lock:
            return self._entries.pop(hash_text(request), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            size = len(self._entries)
        hits = self._metrics["hits"] + self._metrics["similarity_hits"]
        lookups = hits + self._metrics["misses"]
        return {
            **self._metrics,
            "size": size,
            "capacity": self.capacity,
            "hit_rate": (hits / lookups) if lookups else 0.0,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lookup(
        self,
        request: str,
        *,
        version: int,
        version_sensitive: bool,
    ) -> Optional[CacheHit]:
        key = hash_text(request)
        now = self._clock()

        with self._lock:
            self._expire(now)
            entry = self._entries.get(key)
            if entry is not None and self._usable(entry, version, version_sensitive):
                return self._hit(entry, similarity=1.0, exact=True)

        query = self._embed(request)
        if query is None:
            self._metrics["misses"] += 1
            return None

        with self._lock:
            best: Optional[CacheEntry] = None
            best_score = -1.0
            # Newest first, strict improvement only: ties go to the most recent.
            for i, candidate in enumerate(reversed(self._entries.values())):
                if i >= self.recent_window:
                    break
                if candidate.embedding is None:
                    continue
                if not self._usable(candidate, version, version_sensitive):
                    continue
                score = SimilarityComputer.cosine(query, candidate.embedding)
                if score > best_score:
                    best, best_score = candidate, score

            if best is not None and best_score >= self.similarity_threshold:
                return self._hit(best, similarity=best_score, exact=False)

            self._metrics["misses"] += 1

        logging.getLogger("archgraph.cache").debug(
            "cache miss (best similarity %.3f) for %r", best_score, normalize_text(request)
        )
        return None

    def _hit(self, entry: CacheEntry, *, similarity: float, exact: bool) -> CacheHit:
        entry.hits += 1
        self._entries.move_to_end(entry.key)
        self._metrics["hits" if exact else "similarity_hits"] += 1
        return CacheHit(
            value=entry.value,
            request=entry.request,
            similarity=similarity,
            exact=exact,
            version=entry.version,
        )

    def _usable(self, entry: CacheEntry, version: int, version_sensitive: bool) -> bool:
        return not version_sensitive or entry.version == version

    def _expire(self, now: datetime) -> None:
        if self.ttl_seconds <= 0:
            return
        stale = [
            k for k, e in self._entries.items()
            if age_seconds(e.created_at, now) > self.ttl_seconds
        ]
        for k in stale:
            del self._entries[k]

    def _embed(self, request: str) -> Optional[np.ndarray]:
        try:
            return self.encoder.encode_one(normalize_text(request))
        except Exception as exc:
            self._metrics["errors"] += 1
            logging.getLogger("archgraph.cache").warning(
                "embedding failed, exact match only: %s", exc
            )
            return None
