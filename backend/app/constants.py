DEFAULTS = {
    # Address the API server binds to
    "HOST": "127.0.0.1",
    "PORT": 8000,
    # Per-observer event queue length before the observer is dropped
    "NOTIFIER_QUEUE_SIZE": 256,
    # Recently published event ids remembered for re-entrant publish dedup
    "NOTIFIER_DEDUP_WINDOW": 1024,
    # Seconds an event stream waits on its queue before polling again
    "EVENTS_POLL_SECONDS": 0.5,
    # Enable/disable the semantic result cache
    "CACHE_ENABLED": True,
    # Max cached planner results
    "CACHE_CAPACITY": 256,
    # Cosine similarity needed for a non-exact cache hit
    "CACHE_SIMILARITY_THRESHOLD": 0.85,
    # Most recent cache entries compared by similarity
    "CACHE_RECENT_WINDOW": 64,
    # Cache entry lifetime in seconds (0 = no expiry)
    "CACHE_TTL_SECONDS": 0.0,
    # Max stored episodes (oldest dropped first)
    "EPISODIC_CAPACITY": 1000,
    # Minimum similarity for an episode to be retrieved
    "EPISODIC_MIN_SIMILARITY": 0.0,
    # Score at or above which an episode counts as a success
    "EPISODIC_SUCCESS_THRESHOLD": 0.7,
    # Max stored request patterns
    "EPISODIC_MAX_PATTERNS": 1000,
    # Minimum similarity for a pattern to be retrieved
    "EPISODIC_PATTERN_MIN_SIMILARITY": 0.5,
    # EMA learning rate for pattern success rates
    "EPISODIC_PATTERN_LEARNING_RATE": 0.3,
    # Episodes included in planner prompt context
    "EPISODIC_CONTEXT_EPISODES": 3,
    # Embedding backend: "hashing" (offline) or "hf"
    "EMBEDDING_BACKEND": "hashing",
    # Vector size for the hashing encoder
    "EMBEDDING_DIMENSION": 256,
    # Planner backend: "hf" (local causal LM)
    "PLANNER_BACKEND": "hf",
    # LLM output length limit (tokens)
    "LLM_MAX_NEW_TOKENS": 384,
    # LLM sampling temperature
    "LLM_TEMPERATURE": 0.2,
    # Nucleus sampling threshold
    "LLM_TOP_P": 0.9,
    # Penalize repetition in generation
    "LLM_REPETITION_PENALTY": 1.1,
    # Graph snapshot loaded at startup and written on commit
    "SNAPSHOT_PATH": "data/model.json",
    # Write the snapshot after every successful commit
    "PERSIST_ON_COMMIT": True,
    # Episodic memory export, read at startup and written at shutdown
    "EPISODES_PATH": "data/episodes.json",
}
