from datetime import timedelta

import pytest

from archgraph.cache.semantic_cache import SemanticResultCache
from archgraph.embeddings.hashing_encoder import HashingEmbeddingEncoder
from archgraph.graph.mutations import AddNode
from archgraph.utils.time import utc_now

from conftest import FailingEncoder


def test_exact_match_after_normalization(cache):
    cache.put("Add FUNC   Validator", {"reply": "done"}, version=3)

    hit = cache.lookup("  add func validator ", version=3, version_sensitive=True)

    assert hit is not None
    assert hit.exact
    assert hit.similarity == 1.0
    assert hit.value == {"reply": "done"}


def test_similar_phrasing_hits_when_version_independent(cache):
    cache.put("add func validator", {"reply": "cached"}, version=1)

    hit = cache.lookup("add func named validator", version=5, version_sensitive=False)

    assert hit is not None
    assert not hit.exact
    assert hit.similarity >= 0.85
    assert hit.value == {"reply": "cached"}


def test_similar_phrasing_hits_at_same_version_until_the_graph_changes(cache, loaded_store):
    version = loaded_store.version
    cache.put("Add FUNC Validator", {"reply": "added"}, version=version)

    hit = cache.lookup("add func named validator", version=version, version_sensitive=True)
    assert hit is not None
    assert not hit.exact
    assert hit.similarity >= 0.85
    assert hit.value == {"reply": "added"}

    loaded_store.apply([AddNode("REQ", "Totals.RQ.001")])
    loaded_store.commit()
    assert loaded_store.version > version

    assert cache.lookup(
        "add func named validator", version=loaded_store.version, version_sensitive=True
    ) is None


def test_version_sensitive_lookup_ignores_other_versions(cache):
    cache.put("how many functions are there", {"reply": "3"}, version=1)

    assert cache.lookup("how many functions are there", version=2, version_sensitive=True) is None
    assert cache.lookup("how many functions are there", version=2, version_sensitive=False) is not None
    assert cache.lookup("how many functions are there", version=1, version_sensitive=True) is not None


def test_version_sensitivity_must_be_stated(cache):
    with pytest.raises(TypeError):
        cache.lookup("anything", version=1)


def test_unrelated_request_misses(cache):
    cache.put("add func validator", {"reply": "x"}, version=1)

    assert cache.lookup("delete billing module schema", version=1, version_sensitive=False) is None
    assert cache.stats()["misses"] == 1


def test_equal_similarity_prefers_most_recent(cache):
    cache.put("validator func add", {"reply": "older"}, version=1)
    cache.put("add func validator", {"reply": "newer"}, version=1)

    hit = cache.lookup("func add validator", version=1, version_sensitive=False)

    assert hit is not None
    assert hit.value == {"reply": "newer"}


def test_capacity_evicts_least_recently_used(encoder):
    cache = SemanticResultCache(encoder=encoder, capacity=2)
    cache.put("first request", 1, version=1)
    cache.put("second request", 2, version=1)
    cache.lookup("first request", version=1, version_sensitive=True)
    cache.put("third request", 3, version=1)

    assert len(cache) == 2
    assert cache.lookup("first request", version=1, version_sensitive=True).value == 1
    assert cache.stats()["evictions"] == 1
    assert cache.invalidate("third request")
    assert not cache.invalidate("second request")


def test_entries_expire_after_ttl(encoder):
    now = [utc_now()]
    cache = SemanticResultCache(encoder=encoder, ttl_seconds=60, clock=lambda: now[0])
    cache.put("list requirements", {"reply": "none"}, version=1)

    now[0] += timedelta(seconds=30)
    assert cache.lookup("list requirements", version=1, version_sensitive=True) is not None

    now[0] += timedelta(seconds=31)
    assert cache.lookup("list requirements", version=1, version_sensitive=True) is None
    assert len(cache) == 0


def test_encoder_failure_degrades_to_miss():
    cache = SemanticResultCache(encoder=FailingEncoder())
    cache.put("add func validator", {"reply": "x"}, version=1)

    assert cache.lookup("add func named validator", version=1, version_sensitive=False) is None
    # exact keys do not need the encoder
    assert cache.lookup("add func validator", version=1, version_sensitive=False) is not None
    assert cache.stats()["errors"] >= 2


def test_stats_report_hit_rate():
    cache = SemanticResultCache(encoder=HashingEmbeddingEncoder(dimension=64))
    cache.put("a b c", "x", version=1)
    cache.lookup("a b c", version=1, version_sensitive=True)
    cache.lookup("zzz", version=1, version_sensitive=True)

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 0.5
