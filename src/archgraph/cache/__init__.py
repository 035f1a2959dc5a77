from archgraph.cache.semantic_cache import CacheEntry, CacheHit, SemanticResultCache

__all__ = ["CacheEntry", "CacheHit", "SemanticResultCache"]
