from dataclasses import dataclass
from dynaconf import Dynaconf
from backend.app.constants import DEFAULTS

from archgraph.config.settings import (
    NotifierConfig,
    CacheConfig,
    EpisodicConfig,
    EmbeddingConfig,
    ArchGraphConfig,
)

settings = Dynaconf(
    envvar_prefix="ARCHGRAPH",
    load_dotenv=True,
    settings_files=[],
)
for _key, _value in DEFAULTS.items():
    settings.setdefault(_key, _value)


@dataclass(frozen=True)
class AppConfig:
    # ---------------- App ----------------
    app_name: str = settings.get("APP_NAME", "archgraph-backend")
    api_prefix: str = settings.get("API_PREFIX", "")
    events_poll_seconds: float = settings.get("EVENTS_POLL_SECONDS", 0.5)
    host: str = settings.get("HOST", "127.0.0.1")
    port: int = settings.get("PORT", 8000)

    # ---------------- Planner ----------------
    planner_backend: str = settings.get("PLANNER_BACKEND", "hf")
    llm_model: str = settings.get(
        "LLM_MODEL",
        "TinyLlama/TinyLlama-1.1B-Chat-v1.0",
    )
    hf_token: str = settings.get("HF_TOKEN")
    max_new_tokens: int = settings.get("LLM_MAX_NEW_TOKENS", 384)
    temperature: float = settings.get("LLM_TEMPERATURE", 0.2)
    top_p: float = settings.get("LLM_TOP_P", 0.9)
    repetition_penalty: float = settings.get("LLM_REPETITION_PENALTY", 1.1)
    context_episodes: int = settings.get("EPISODIC_CONTEXT_EPISODES", 3)

    # ---------------- Core Policy ----------------
    archgraph: ArchGraphConfig = ArchGraphConfig(
        notifier=NotifierConfig(
            queue_size=settings.get("NOTIFIER_QUEUE_SIZE", 256),
            dedup_window=settings.get("NOTIFIER_DEDUP_WINDOW", 1024),
        ),
        cache=CacheConfig(
            enabled=settings.get("CACHE_ENABLED", True),
            capacity=settings.get("CACHE_CAPACITY", 256),
            similarity_threshold=settings.get("CACHE_SIMILARITY_THRESHOLD", 0.85),
            recent_window=settings.get("CACHE_RECENT_WINDOW", 64),
            ttl_seconds=settings.get("CACHE_TTL_SECONDS", 0.0),
        ),
        episodic=EpisodicConfig(
            capacity=settings.get("EPISODIC_CAPACITY", 1000),
            min_similarity=settings.get("EPISODIC_MIN_SIMILARITY", 0.0),
            success_threshold=settings.get("EPISODIC_SUCCESS_THRESHOLD", 0.7),
            max_patterns=settings.get("EPISODIC_MAX_PATTERNS", 1000),
            pattern_min_similarity=settings.get("EPISODIC_PATTERN_MIN_SIMILARITY", 0.5),
            pattern_learning_rate=settings.get("EPISODIC_PATTERN_LEARNING_RATE", 0.3),
        ),
        embedding=EmbeddingConfig(
            backend=settings.get("EMBEDDING_BACKEND", "hashing"),
            dimension=settings.get("EMBEDDING_DIMENSION", 256),
            model_name=settings.get(
                "EMBEDDING_MODEL",
                "sentence-transformers/all-MiniLM-L6-v2",
            ),
            device=settings.get("EMBEDDING_DEVICE", "cpu"),
        ),
    )

    # ---------------- Data Paths ----------------
    snapshot_path: str = settings.get("SNAPSHOT_PATH", "data/model.json")
    persist_on_commit: bool = settings.get("PERSIST_ON_COMMIT", True)
    episodes_path: str = settings.get("EPISODES_PATH", "data/episodes.json")
