"""
Memory subsystem for archgraph.

Best-effort episodic memory of past requests and a library of reusable
request patterns. Neither is authoritative state.
"""

from archgraph.memory.episodic import (
    Episode,
    EpisodeContext,
    EpisodeMatch,
    EpisodicStore,
)
from archgraph.memory.patterns import (
    PatternMatch,
    SkillPattern,
    generalize_request,
    score_from_validation,
)

__all__ = [
    "Episode",
    "EpisodeContext",
    "EpisodeMatch",
    "EpisodicStore",
    "PatternMatch",
    "SkillPattern",
    "generalize_request",
    "score_from_validation",
]
