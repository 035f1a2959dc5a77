from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import numpy as np

from archgraph.utils.helpers import clamp
from archgraph.utils.text import normalize_text
from archgraph.utils.time import utc_now

_QUOTED_RE = re.compile(r"\"[^\"]*\"|'[^']*'")
_SEMANTIC_ID_RE = re.compile(r"\b[\w-]+\.[a-z]{2,6}\.\d+\b")
_NUMBER_RE = re.compile(r"\b\d+(?:\.\d+)?\b")


def generalize_request(request: str) -> str:
    """
    Coarse form of a request used as a pattern key.

    Literal names, semantic ids and numbers are replaced by placeholders so
    that "add function 'ValidateOrder'" and "add function 'CheckStock'"
    generalize to the same text.
    """
    text = normalize_text(request)
    text = _QUOTED_RE.sub("<name>", text)
    text = _SEMANTIC_ID_RE.sub("<id>", text)
    text = _NUMBER_RE.sub("<n>", text)
    return text


def score_from_validation(
    *,
    errors: int = 0,
    warnings: int = 0,
    hard_failures: int = 0,
    error_weight: float = 0.1,
    warning_weight: float = 0.05,
) -> float:
    """
    Graded success score from rule evaluation counts.

    Any hard rule failure scores 0. Otherwise each violation subtracts its
    weight from 1.0, floored at 0.
    """
    if min(errors, warnings, hard_failures) < 0:
        raise ValueError("violation counts must be non-negative")
    if hard_failures:
        return 0.0
    penalty = errors * error_weight + warnings * warning_weight
    return clamp(1.0 - min(penalty, 1.0))


@dataclass
class SkillPattern:
    """
    A generalized request and the structural shape of the result that
    answered it, with a running success estimate.
    """

    id: str
    template: str
    result_shape: str
    embedding: np.ndarray
    success_rate: float
    usage_count: int = 1
    created_at: datetime = field(default_factory=utc_now)
    last_used_at: datetime = field(default_factory=utc_now)

    @property
    def key(self) -> tuple:
        return (self.template, self.result_shape)

    def reinforce(self, success_score: float, learning_rate: float) -> None:
        # Exponential moving average over graded scores.
        self.success_rate = (
            self.success_rate * (1.0 - learning_rate) + success_score * learning_rate
        )
        self.usage_count += 1
        self.last_used_at = utc_now()

    def retention_score(self) -> float:
        return self.usage_count * self.success_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "template": self.template,
            "result_shape": self.result_shape,
            "success_rate": self.success_rate,
            "usage_count": self.usage_count,
            "created_at": self.created_at.isoformat(),
            "last_used_at": self.last_used_at.isoformat(),
        }

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], embedding: np.ndarray
    ) -> "SkillPattern":
        return cls(
            id=str(data["id"]),
            template=str(data["template"]),
            result_shape=str(data["result_shape"]),
            embedding=embedding,
            success_rate=float(data["success_rate"]),
            usage_count=int(data.get("usage_count", 1)),
            created_at=_parse_time(data.get("created_at")),
            last_used_at=_parse_time(data.get("last_used_at")),
        )


@dataclass(frozen=True)
class PatternMatch:
    pattern: SkillPattern
    similarity: float

    @property
    def score(self) -> float:
        return self.similarity * self.pattern.success_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.pattern.to_dict(),
            "similarity": self.similarity,
            "score": self.score,
        }


def _parse_time(value: Optional[str]) -> datetime:
    if not value:
        return utc_now()
    return datetime.fromisoformat(value)
