from fastapi import FastAPI
from contextlib import asynccontextmanager
from pathlib import Path
import logging

from backend.app.config import AppConfig
from backend.app.api.routes_query import router as query_router
from backend.app.api.routes_graph import router as graph_router
from backend.app.api.routes_events import router as events_router
from backend.app.dependencies import (
    get_config,
    get_episodic_store,
    get_model_service,
    get_version_store,
)
from backend.app.loaders.snapshot_loader import save_episodes


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle hooks.

    Loads the model snapshot and episodic memory once at startup and
    writes episodic memory back out at shutdown.
    """
    # Force initialization
    get_version_store()
    get_episodic_store()
    get_model_service()

    yield

    path = Path(get_config().episodes_path)
    try:
        save_episodes(episodic=get_episodic_store(), path=path)
    except OSError as exc:
        logging.getLogger("archgraph.startup").error(
            "[shutdown] could not write %s: %s", path, exc
        )


def create_app(config: AppConfig) -> FastAPI:
    app = FastAPI(
        title=config.app_name,
        lifespan=lifespan,
    )

    app.include_router(
        query_router,
        prefix=f"{config.api_prefix}/query",
        tags=["query"],
    )

    app.include_router(
        graph_router,
        prefix=f"{config.api_prefix}/graph",
        tags=["graph"],
    )

    app.include_router(
        events_router,
        prefix=f"{config.api_prefix}/events",
        tags=["events"],
    )

    return app


config = AppConfig()
app = create_app(config)
