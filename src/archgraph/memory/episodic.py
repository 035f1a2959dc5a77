from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Deque, Dict, List, Mapping, Optional
from uuid import uuid4

import numpy as np

from archgraph.config.settings import EpisodicConfig
from archgraph.embeddings.encoder import EmbeddingEncoder
from archgraph.embeddings.similarity import SimilarityComputer
from archgraph.memory.patterns import (
    PatternMatch,
    SkillPattern,
    generalize_request,
)
from archgraph.utils.helpers import is_unit_score, safe_mean
from archgraph.utils.text import normalize_text
from archgraph.utils.time import utc_now


@dataclass(frozen=True)
class Episode:
    """
    Immutable record of one request and how well it went.

    `success_score` is graded in [0, 1]; consumers apply their own
    threshold.
    """

    id: str
    timestamp: datetime

    request: str
    outcome: Dict[str, Any]
    success_score: float
    critique: Optional[str]

    embedding: np.ndarray

    def succeeded(self, threshold: float) -> bool:
        return self.success_score >= threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "request": self.request,
            "outcome": dict(self.outcome),
            "success_score": self.success_score,
            "critique": self.critique,
        }

    @staticmethod
    def create(
        *,
        request: str,
        outcome: Mapping[str, Any],
        success_score: float,
        embedding: np.ndarray,
        critique: Optional[str] = None,
    ) -> "Episode":
        return Episode(
            id=str(uuid4()),
            timestamp=utc_now(),
            request=request,
            outcome=dict(outcome),
            success_score=float(success_score),
            critique=critique,
            embedding=embedding,
        )


@dataclass(frozen=True)
class EpisodeMatch:
    episode: Episode
    similarity: float


@dataclass(frozen=True)
class EpisodeContext:
    """
    Lessons from low-scoring episodes and patterns from high-scoring ones,
    ready to be placed in a prompt.
    """

    lessons: List[str]
    successes: List[str]
    patterns: List[str]
    episode_count: int

    def is_empty(self) -> bool:
        return not (self.lessons or self.successes or self.patterns)

    def to_prompt(self) -> str:
        parts: List[str] = []
        if self.lessons:
            parts.append("Learn from previous issues:")
            parts.extend(self.lessons)
        if self.successes:
            if parts:
                parts.append("")
            parts.append("Successful requests:")
            parts.extend(self.successes)
        if self.patterns:
            if parts:
                parts.append("")
            parts.append("Known patterns:")
            parts.extend(self.patterns)
        return "\n".join(parts)


class EpisodicStore:
    """
    Best-effort memory of past requests and their outcomes.

    Nothing here is authoritative. Every public method catches its own
    failures, logs them to "archgraph.memory" and degrades to "no record"
    or "no result", so a broken encoder never fails a request.
    """

    def __init__(
        self,
        *,
        encoder: EmbeddingEncoder,
        capacity: int = 1000,
        min_similarity: float = 0.0,
        success_threshold: float = 0.7,
        max_patterns: int = 1000,
        pattern_min_similarity: float = 0.5,
        pattern_learning_rate: float = 0.3,
    ) -> None:
        self.encoder = encoder
        self.capacity = capacity
        self.min_similarity = min_similarity
        self.success_threshold = success_threshold
        self.max_patterns = max_patterns
        self.pattern_min_similarity = pattern_min_similarity
        self.pattern_learning_rate = pattern_learning_rate

        self._episodes: Deque[Episode] = deque(maxlen=capacity)
        self._patterns: Dict[tuple, SkillPattern] = {}
        self._pattern_counter = 0
        self._lock = threading.Lock()
        self._log = logging.getLogger("archgraph.memory")

    @classmethod
    def from_config(cls, config: EpisodicConfig, encoder: EmbeddingEncoder) -> "EpisodicStore":
        return cls(
            encoder=encoder,
            capacity=config.capacity,
            min_similarity=config.min_similarity,
            success_threshold=config.success_threshold,
            max_patterns=config.max_patterns,
            pattern_min_similarity=config.pattern_min_similarity,
            pattern_learning_rate=config.pattern_learning_rate,
        )

    # ------------------------------------------------------------------
    # Episodes
    # ------------------------------------------------------------------

    def record(
        self,
        request: str,
        outcome: Mapping[str, Any],
        success_score: float,
        *,
        critique: Optional[str] = None,
    ) -> Optional[Episode]:
        """
        Store an episode. Returns it, or None when it was not recorded.
        """
        if not is_unit_score(success_score):
            self._log.warning(
                "episode not recorded: success_score %r is not in [0, 1]", success_score
            )
            return None
        try:
            episode = Episode.create(
                request=request,
                outcome=outcome,
                success_score=success_score,
                embedding=self._embed(request),
                critique=critique,
            )
        except Exception as exc:
            self._log.warning("episode not recorded: %s", exc)
            return None

        with self._lock:
            self._episodes.append(episode)
        self._log.debug(
            "recorded episode %s (score %.2f)", episode.id, episode.success_score
        )
        return episode

    def retrieve(self, request: str, k: int = 5) -> List[EpisodeMatch]:
        """
        Top-k episodes by similarity to `request`, most similar first.
        Equal similarity ranks the newer episode first.
        """
        if k <= 0:
            return []
        try:
            query = self._embed(request)
        except Exception as exc:
            self._log.warning("episode retrieval failed: %s", exc)
            return []

        with self._lock:
            episodes = list(self._episodes)
        if not episodes:
            return []

        # Newest first so the stable rank keeps recency as the tie-breaker.
        episodes.reverse()
        scores = SimilarityComputer.cosine_batch(query, [e.embedding for e in episodes])
        matches: List[EpisodeMatch] = []
        for idx in SimilarityComputer.rank(scores):
            score = float(scores[idx])
            if score < self.min_similarity:
                break
            matches.append(EpisodeMatch(episode=episodes[idx], similarity=score))
            if len(matches) >= k:
                break
        return matches

    def episodes(self) -> List[Episode]:
        with self._lock:
            return list(self._episodes)

    def __len__(self) -> int:
        with self._lock:
            return len(self._episodes)

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def record_pattern(
        self,
        request: str,
        result_shape: str,
        success_score: float,
    ) -> Optional[SkillPattern]:
        """
        Reinforce the pattern for (generalized request, result shape), or
        start a new one when the score clears the success threshold.
        """
        if not is_unit_score(success_score):
            self._log.warning(
                "pattern not recorded: success_score %r is not in [0, 1]", success_score
            )
            return None

        template = generalize_request(request)
        key = (template, result_shape)

        with self._lock:
            existing = self._patterns.get(key)
            if existing is not None:
                existing.reinforce(success_score, self.pattern_learning_rate)
                return existing

        if success_score < self.success_threshold:
            return None

        try:
            embedding = self._embed(template)
        except Exception as exc:
            self._log.warning("pattern not recorded: %s", exc)
            return None

        with self._lock:
            existing = self._patterns.get(key)
            if existing is not None:
                existing.reinforce(success_score, self.pattern_learning_rate)
                return existing
            self._pattern_counter += 1
            pattern = SkillPattern(
                id=f"pattern-{self._pattern_counter}",
                template=template,
                result_shape=result_shape,
                embedding=embedding,
                success_rate=float(success_score),
            )
            self._patterns[key] = pattern
            self._prune_patterns()
        return pattern

    def retrieve_patterns(self, request: str, k: int = 3) -> List[PatternMatch]:
        """
        Patterns whose generalized request resembles this one, ranked by
        similarity times success rate.
        """
        if k <= 0:
            return []
        try:
            query = self._embed(generalize_request(request))
        except Exception as exc:
            self._log.warning("pattern retrieval failed: %s", exc)
            return []

        with self._lock:
            patterns = list(self._patterns.values())

        matches = []
        for pattern in patterns:
            similarity = SimilarityComputer.cosine(query, pattern.embedding)
            if similarity >= self.pattern_min_similarity:
                matches.append(PatternMatch(pattern=pattern, similarity=similarity))

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:k]

    def patterns(self) -> List[SkillPattern]:
        with self._lock:
            return list(self._patterns.values())

    # ------------------------------------------------------------------
    # Prompt context
    # ------------------------------------------------------------------

    def prompt_context(
        self,
        request: str,
        k: int = 3,
        success_threshold: Optional[float] = None,
    ) -> EpisodeContext:
        threshold = self.success_threshold if success_threshold is None else success_threshold
        related = self.retrieve(request, k=k * 2)

        lessons = [
            f'Request: "{m.episode.request}"\nIssue: {m.episode.critique}'
            for m in related
            if not m.episode.succeeded(threshold) and m.episode.critique
        ][:k]
        successes = [
            f'Request: "{m.episode.request}" (score: {m.episode.success_score:.2f})'
            for m in related
            if m.episode.succeeded(threshold)
        ][:k]
        patterns = [
            f"{m.pattern.template} -> {m.pattern.result_shape} "
            f"(success rate: {m.pattern.success_rate:.2f}, used {m.pattern.usage_count}x)"
            for m in self.retrieve_patterns(request, k=k)
        ]

        return EpisodeContext(
            lessons=lessons,
            successes=successes,
            patterns=patterns,
            episode_count=len(related),
        )

    # ------------------------------------------------------------------
    # Persistence and stats
    # ------------------------------------------------------------------

    def export(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "episodes": [e.to_dict() for e in self._episodes],
                "patterns": [p.to_dict() for p in self._patterns.values()],
            }

    def import_episodes(self, data: Mapping[str, Any]) -> int:
        """
        Load the output of `export`. Entries that fail to parse are skipped.
        Returns the number of episodes and patterns imported.
        """
        imported = 0
        for raw in data.get("episodes", []):
            try:
                episode = Episode(
                    id=str(raw["id"]),
                    timestamp=datetime.fromisoformat(raw["timestamp"]),
                    request=str(raw["request"]),
                    outcome=dict(raw.get("outcome") or {}),
                    success_score=float(raw["success_score"]),
                    critique=raw.get("critique"),
                    embedding=self._embed(raw["request"]),
                )
                if not is_unit_score(episode.success_score):
                    raise ValueError(f"success_score {episode.success_score!r} out of range")
            except Exception as exc:
                self._log.warning("skipping episode on import: %s", exc)
                continue
            with self._lock:
                self._episodes.append(episode)
            imported += 1

        for raw in data.get("patterns", []):
            try:
                pattern = SkillPattern.from_dict(raw, self._embed(raw["template"]))
            except Exception as exc:
                self._log.warning("skipping pattern on import: %s", exc)
                continue
            with self._lock:
                self._patterns[pattern.key] = pattern
                self._pattern_counter = max(
                    self._pattern_counter, _pattern_number(pattern.id)
                )
                self._prune_patterns()
            imported += 1

        self._log.info("imported %d episodic records", imported)
        return imported

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            scores = [e.success_score for e in self._episodes]
            rates = [p.success_rate for p in self._patterns.values()]
            return {
                "episodes": len(scores),
                "capacity": self.capacity,
                "successful": sum(1 for s in scores if s >= self.success_threshold),
                "average_score": safe_mean(scores),
                "patterns": len(rates),
                "average_success_rate": safe_mean(rates),
            }

    def clear(self) -> None:
        with self._lock:
            self._episodes.clear()
            self._patterns.clear()
            self._pattern_counter = 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _embed(self, text: str) -> np.ndarray:
        return self.encoder.encode_one(normalize_text(text))

    def _prune_patterns(self) -> None:
        # Caller holds the lock.
        overflow = len(self._patterns) - self.max_patterns
        if overflow <= 0:
            return
        ranked = sorted(
            self._patterns.values(),
            key=lambda p: (p.retention_score(), p.last_used_at),
        )
        for pattern in ranked[:overflow]:
            del self._patterns[pattern.key]


def _pattern_number(pattern_id: str) -> int:
    try:
        return int(pattern_id.rsplit("-", 1)[-1])
    except ValueError:
        return 0
