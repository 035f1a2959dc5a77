from functools import lru_cache
import logging
from pathlib import Path
import time

from archgraph.cache.semantic_cache import SemanticResultCache
from archgraph.embeddings.encoder import EmbeddingEncoder
from archgraph.embeddings.hashing_encoder import HashingEmbeddingEncoder
from archgraph.memory.episodic import EpisodicStore
from archgraph.notify.change_notifier import ChangeNotifier
from archgraph.planning.planner import LLMPlanner, Planner
from archgraph.planning.rules import RuleEvaluator, StructuralRuleEvaluator
from archgraph.versioning.version_store import VersionStore

from backend.app.config import AppConfig
from backend.app.loaders.snapshot_loader import load_episodes, load_graph_from_snapshot
from backend.app.services.model_service import ModelService


@lru_cache
def get_config() -> AppConfig:
    return AppConfig()


@lru_cache
def get_notifier() -> ChangeNotifier:
    policy = get_config().archgraph.notifier
    return ChangeNotifier(
        queue_size=policy.queue_size,
        dedup_window=policy.dedup_window,
    )


@lru_cache
def get_version_store() -> VersionStore:
    logger = logging.getLogger("archgraph.startup")
    t0 = time.perf_counter()
    store = VersionStore(notifier=get_notifier())

    path = Path(get_config().snapshot_path)
    try:
        loaded = load_graph_from_snapshot(store=store, path=path)
    except (OSError, ValueError) as exc:
        logger.error("[startup] could not load %s: %s", path, exc)
        loaded = False
    logger.info(
        "[startup] version store ready (snapshot loaded=%s) in %.3fs",
        loaded,
        time.perf_counter() - t0,
    )
    return store


@lru_cache
def get_embedding_encoder() -> EmbeddingEncoder:
    policy = get_config().archgraph.embedding

    if policy.backend == "hf":
        from archgraph.embeddings.hf_encoder import HuggingFaceEmbeddingEncoder

        return HuggingFaceEmbeddingEncoder(
            model_name=policy.model_name,
            device=policy.device,
        )
    if policy.backend != "hashing":
        raise ValueError(f"unknown embedding backend: {policy.backend!r}")
    return HashingEmbeddingEncoder(dimension=policy.dimension)


@lru_cache
def get_result_cache() -> SemanticResultCache | None:
    policy = get_config().archgraph.cache
    if not policy.enabled:
        return None
    return SemanticResultCache.from_config(policy, get_embedding_encoder())


@lru_cache
def get_episodic_store() -> EpisodicStore:
    config = get_config()
    store = EpisodicStore.from_config(config.archgraph.episodic, get_embedding_encoder())

    path = Path(config.episodes_path)
    try:
        count = load_episodes(episodic=store, path=path)
    except (OSError, ValueError) as exc:
        logging.getLogger("archgraph.startup").error(
            "[startup] could not read %s: %s", path, exc
        )
        count = 0
    if count:
        logging.getLogger("archgraph.startup").info(
            "[startup] restored %d episodic records", count
        )
    return store


@lru_cache
def get_planner() -> Planner:
    config = get_config()

    if config.planner_backend != "hf":
        raise ValueError(f"unknown planner backend: {config.planner_backend!r}")

    from archgraph.planning.hf_backend import HuggingFaceGenerationBackend

    t0 = time.perf_counter()
    backend = HuggingFaceGenerationBackend(
        model_name=config.llm_model,
        hf_token=config.hf_token,
        max_new_tokens=config.max_new_tokens,
        temperature=config.temperature,
        top_p=config.top_p,
        repetition_penalty=config.repetition_penalty,
    )
    logging.getLogger("archgraph.startup").info(
        "[startup] planner backend init in %.3fs",
        time.perf_counter() - t0,
    )
    return LLMPlanner(backend)


@lru_cache
def get_rule_evaluator() -> RuleEvaluator:
    return StructuralRuleEvaluator()


@lru_cache
def get_model_service() -> ModelService:
    config = get_config()

    return ModelService(
        store=get_version_store(),
        planner=get_planner(),
        evaluator=get_rule_evaluator(),
        cache=get_result_cache(),
        episodic=get_episodic_store(),
        context_episodes=config.context_episodes,
        snapshot_path=Path(config.snapshot_path),
        persist_on_commit=config.persist_on_commit,
    )
