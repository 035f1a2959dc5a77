from __future__ import annotations

from typing import Any, Dict, Optional
from pathlib import Path
import logging
import time

from archgraph.cache.semantic_cache import SemanticResultCache
from archgraph.errors import InvalidMutation
from archgraph.memory.episodic import EpisodicStore
from archgraph.planning.planner import Plan, Planner
from archgraph.planning.rules import RuleEvaluator, ValidationReport
from archgraph.versioning.version_store import VersionStore

from backend.app.loaders.snapshot_loader import save_graph_snapshot


class ModelService:
    """
    Orchestration layer for a modelling session.

    This is the ONLY place where:
    - the cache and episodic memory are consulted around the planner
    - planner output reaches the version store
    - outcomes are scored and remembered
    """

    def __init__(
        self,
        *,
        store: VersionStore,
        planner: Planner,
        evaluator: RuleEvaluator,
        cache: Optional[SemanticResultCache] = None,
        episodic: Optional[EpisodicStore] = None,
        context_episodes: int = 3,
        snapshot_path: Optional[Path] = None,
        persist_on_commit: bool = False,
    ) -> None:
        self.store = store
        self.planner = planner
        self.evaluator = evaluator
        self.cache = cache
        self.episodic = episodic
        self.context_episodes = context_episodes
        self.snapshot_path = snapshot_path
        self.persist_on_commit = persist_on_commit

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def run(
        self,
        *,
        request: str,
        version_sensitive: bool,
        origin: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Answer a request, applying any mutations the planner proposes.

        Raises InvalidMutation when the proposed batch is rejected; the
        failure is still remembered as a zero-score episode.
        """
        logger = logging.getLogger("archgraph.service")
        t0 = time.perf_counter()
        version = self.store.version

        if self.cache is not None:
            hit = self.cache.lookup(
                request, version=version, version_sensitive=version_sensitive
            )
            if hit is not None:
                logger.info(
                    "cache hit (exact=%s, similarity=%.3f) in %.3fs",
                    hit.exact,
                    hit.similarity,
                    time.perf_counter() - t0,
                )
                return {
                    **hit.value,
                    "version": version,
                    "cached": True,
                    "similarity": hit.similarity,
                }

        context = ""
        if self.episodic is not None:
            context = self.episodic.prompt_context(request, k=self.context_episodes).to_prompt()

        plan = self.planner.plan(request, self.store.view(), context=context)
        t_plan = time.perf_counter()

        if not plan.has_mutations:
            response = {"reply": plan.reply, "operations": [], "diff": None, "validation": None}
            if self.cache is not None:
                self.cache.put(request, response, version=version)
            logger.info("reply-only plan in %.3fs", t_plan - t0)
            return {**response, "version": version, "cached": False, "similarity": None}

        batch = plan.batch()
        try:
            result = self.store.apply(batch, origin=origin)
        except InvalidMutation as exc:
            self._remember(request, plan, score=0.0, critique=str(exc), outcome={"rejected": True})
            raise

        report = self.evaluator.evaluate(self.store.view())
        self._remember(
            request,
            plan,
            score=report.score,
            critique=report.critique(),
            outcome={"version": result.version, "summary": result.delta.summary()},
        )

        logger.info(
            "plan %.3fs, applied %d operations -> version %d (score %.2f)",
            t_plan - t0,
            len(batch),
            result.version,
            report.score,
        )
        return {
            "reply": plan.reply,
            "operations": batch.to_dicts(),
            "diff": result.delta.to_dict(self.store.labels()),
            "validation": report.to_dict(),
            "version": result.version,
            "cached": False,
            "similarity": None,
        }

    def validate(self) -> ValidationReport:
        return self.evaluator.evaluate(self.store.view())

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    def commit(self, *, origin: Optional[str] = None) -> int:
        version = self.store.commit(origin=origin)
        if self.persist_on_commit and self.snapshot_path is not None:
            save_graph_snapshot(store=self.store, path=self.snapshot_path)
        return version

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _remember(
        self,
        request: str,
        plan: Plan,
        *,
        score: float,
        critique: Optional[str],
        outcome: Dict[str, Any],
    ) -> None:
        if self.episodic is None:
            return
        shape = plan.batch().shape()
        self.episodic.record(
            request,
            {**outcome, "shape": shape, "reply": plan.reply},
            score,
            critique=critique,
        )
        self.episodic.record_pattern(request, shape, score)
