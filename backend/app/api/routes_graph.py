from fastapi import APIRouter, Depends, HTTPException

from archgraph.errors import InvalidMutation, NoBaseline
from archgraph.graph.mutations import MutationBatch
from archgraph.versioning.version_store import VersionStore

from backend.app.api.schemas import (
    ApplyRequest,
    ApplyResponse,
    CheckpointRequest,
    CheckpointResponse,
    DiffResponse,
    GraphExportResponse,
    GraphSnapshot,
    GraphStatsResponse,
    ValidationResponse,
)
from backend.app.dependencies import get_model_service, get_version_store
from backend.app.services.model_service import ModelService

router = APIRouter()


def _invalid(exc: InvalidMutation) -> HTTPException:
    return HTTPException(status_code=422, detail=exc.to_dict())


def _no_baseline(exc: NoBaseline) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"error": "no_baseline", "reason": str(exc)},
    )


@router.get("/stats", response_model=GraphStatsResponse)
def graph_stats(store: VersionStore = Depends(get_version_store)):
    return GraphStatsResponse(**store.stats())


@router.get("/export", response_model=GraphExportResponse)
def graph_export(store: VersionStore = Depends(get_version_store)):
    version = store.version
    return GraphExportResponse(version=version, **store.snapshot())


@router.post("/load", response_model=CheckpointResponse)
def graph_load(
    snapshot: GraphSnapshot,
    store: VersionStore = Depends(get_version_store),
):
    try:
        version = store.load(snapshot.model_dump())
    except InvalidMutation as exc:
        raise _invalid(exc)
    return CheckpointResponse(version=version)


@router.post("/apply", response_model=ApplyResponse)
def graph_apply(
    request: ApplyRequest,
    store: VersionStore = Depends(get_version_store),
):
    try:
        batch = MutationBatch.from_dicts(request.operations)
        result = store.apply(batch, origin=request.origin)
    except InvalidMutation as exc:
        raise _invalid(exc)
    return ApplyResponse(
        version=result.version,
        sequence=result.sequence,
        diff=result.delta.to_dict(store.labels()),
    )


@router.get("/diff", response_model=DiffResponse)
def graph_diff(store: VersionStore = Depends(get_version_store)):
    try:
        diff = store.diff()
    except NoBaseline as exc:
        raise _no_baseline(exc)
    return DiffResponse(version=store.version, diff=diff.to_dict(store.labels()))


@router.post("/commit", response_model=CheckpointResponse)
def graph_commit(
    request: CheckpointRequest | None = None,
    service: ModelService = Depends(get_model_service),
):
    origin = request.origin if request is not None else None
    return CheckpointResponse(version=service.commit(origin=origin))


@router.post("/restore", response_model=CheckpointResponse)
def graph_restore(
    request: CheckpointRequest | None = None,
    store: VersionStore = Depends(get_version_store),
):
    origin = request.origin if request is not None else None
    try:
        version = store.restore(origin=origin)
    except NoBaseline as exc:
        raise _no_baseline(exc)
    return CheckpointResponse(version=version)


@router.get("/validate", response_model=ValidationResponse)
def graph_validate(service: ModelService = Depends(get_model_service)):
    return ValidationResponse(**service.validate().to_dict())
