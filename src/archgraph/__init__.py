"""
archgraph
=========

Versioned architecture-graph core for LLM-assisted modelling sessions.

Core idea:
- One working copy, one committed baseline, atomic mutation batches.
- Every applied change fans out exactly once to each attached observer.
- Expensive model calls are fronted by a semantic cache and informed by
  best-effort episodic memory.

Public API:
- VersionStore
- ChangeNotifier
- SemanticResultCache
- EpisodicStore
"""

from archgraph.versioning.version_store import VersionStore
from archgraph.notify.change_notifier import ChangeNotifier
from archgraph.cache.semantic_cache import SemanticResultCache
from archgraph.memory.episodic import EpisodicStore

__all__ = [
    "VersionStore",
    "ChangeNotifier",
    "SemanticResultCache",
    "EpisodicStore",
]

__version__ = "0.1.0"
