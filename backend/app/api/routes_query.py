from fastapi import APIRouter, Depends, HTTPException

from archgraph.errors import InvalidMutation, PlanningError
from archgraph.memory.episodic import EpisodicStore

from backend.app.api.schemas import (
    EpisodeSummary,
    PatternSummary,
    QueryRequest,
    QueryResponse,
)
from backend.app.dependencies import get_episodic_store, get_model_service
from backend.app.services.model_service import ModelService

router = APIRouter()


@router.post("/", response_model=QueryResponse)
def query(
    request: QueryRequest,
    service: ModelService = Depends(get_model_service),
):
    try:
        return service.run(
            request=request.request,
            version_sensitive=request.version_sensitive,
            origin=request.origin,
        )
    except InvalidMutation as exc:
        raise HTTPException(status_code=422, detail=exc.to_dict())
    except PlanningError as exc:
        raise HTTPException(
            status_code=502,
            detail={"error": "planning_failed", "reason": str(exc)},
        )


@router.get("/history", response_model=list[EpisodeSummary])
def query_history(episodic: EpisodicStore = Depends(get_episodic_store), limit: int = 25):
    episodes = episodic.episodes()[-limit:] if limit > 0 else []
    return [
        EpisodeSummary(
            id=e.id,
            timestamp=e.timestamp.isoformat(),
            request=e.request,
            success_score=e.success_score,
            critique=e.critique,
            outcome=e.outcome,
        )
        for e in episodes
    ]


@router.get("/patterns", response_model=list[PatternSummary])
def query_patterns(
    request: str,
    k: int = 3,
    episodic: EpisodicStore = Depends(get_episodic_store),
):
    return [PatternSummary(**m.to_dict()) for m in episodic.retrieve_patterns(request, k=k)]
