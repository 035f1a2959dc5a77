from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import numpy as np
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.app.main import create_app
from backend.app.config import AppConfig
from backend.app.dependencies import (
    get_config,
    get_episodic_store,
    get_model_service,
    get_notifier,
    get_version_store,
)
from backend.app.services.model_service import ModelService

from archgraph.cache.semantic_cache import SemanticResultCache
from archgraph.embeddings.encoder import EmbeddingEncoder
from archgraph.embeddings.hashing_encoder import HashingEmbeddingEncoder
from archgraph.graph.graph_query import GraphView
from archgraph.graph.mutations import AddEdge, AddNode, MutationBatch
from archgraph.memory.episodic import EpisodicStore
from archgraph.notify.change_notifier import ChangeNotifier
from archgraph.planning.planner import Plan, Planner
from archgraph.planning.rules import StructuralRuleEvaluator
from archgraph.versioning.version_store import VersionStore


class FailingEncoder(EmbeddingEncoder):
    def __init__(self, dimension: int = 8) -> None:
        super().__init__(dimension=dimension)

    def _encode_one(self, text: str) -> np.ndarray:
        raise RuntimeError("encoder offline")


class ScriptedPlanner(Planner):
    """
    Returns a canned Plan per request text and records what it was asked.
    """

    def __init__(self, plans: Optional[Dict[str, Plan]] = None) -> None:
        self.plans: Dict[str, Plan] = dict(plans or {})
        self.calls: List[str] = []
        self.contexts: List[str] = []

    def plan(self, request: str, view: GraphView, *, context: str = "") -> Plan:
        self.calls.append(request)
        self.contexts.append(context)
        return self.plans.get(request, Plan(reply=f"noted: {request}"))


def sample_batch() -> MutationBatch:
    return MutationBatch(
        [
            AddNode("SYS", "OrderSystem.SY.001", {"name": "OrderSystem"}),
            AddNode("UC", "PlaceOrder.UC.001", {"name": "PlaceOrder"}),
            AddNode("FUNC", "ValidateOrder.FN.001", {"name": "ValidateOrder"}),
            AddEdge("OrderSystem.SY.001", "PlaceOrder.UC.001", "compose"),
            AddEdge("PlaceOrder.UC.001", "ValidateOrder.FN.001", "compose"),
        ]
    )


@pytest.fixture()
def encoder() -> HashingEmbeddingEncoder:
    return HashingEmbeddingEncoder(dimension=256)


@pytest.fixture()
def notifier() -> ChangeNotifier:
    return ChangeNotifier(queue_size=8)


@pytest.fixture()
def store(notifier: ChangeNotifier) -> VersionStore:
    return VersionStore(notifier=notifier)


@pytest.fixture()
def loaded_store(store: VersionStore) -> VersionStore:
    store.apply(sample_batch())
    store.commit()
    return store


@pytest.fixture()
def cache(encoder: HashingEmbeddingEncoder) -> SemanticResultCache:
    return SemanticResultCache(encoder=encoder, capacity=16)


@pytest.fixture()
def episodic(encoder: HashingEmbeddingEncoder) -> EpisodicStore:
    return EpisodicStore(encoder=encoder, capacity=50)


@pytest.fixture()
def planner() -> ScriptedPlanner:
    return ScriptedPlanner()


@pytest.fixture()
def service(
    store: VersionStore,
    planner: ScriptedPlanner,
    cache: SemanticResultCache,
    episodic: EpisodicStore,
) -> ModelService:
    return ModelService(
        store=store,
        planner=planner,
        evaluator=StructuralRuleEvaluator(),
        cache=cache,
        episodic=episodic,
    )


@pytest.fixture()
def client(
    store: VersionStore,
    notifier: ChangeNotifier,
    episodic: EpisodicStore,
    service: ModelService,
):
    @asynccontextmanager
    async def _no_lifespan(_: FastAPI):
        yield

    app = create_app(AppConfig())
    app.router.lifespan_context = _no_lifespan

    app.dependency_overrides[get_config] = lambda: AppConfig(events_poll_seconds=0.05)
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_version_store] = lambda: store
    app.dependency_overrides[get_episodic_store] = lambda: episodic
    app.dependency_overrides[get_model_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
