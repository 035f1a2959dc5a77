import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from archgraph.errors import ObserverOverflow
from archgraph.notify.change_notifier import ChangeNotifier
from archgraph.versioning.version_store import VersionStore

from backend.app.config import AppConfig
from backend.app.dependencies import get_config, get_notifier, get_version_store

router = APIRouter()


@router.websocket("/{observer_id}")
async def event_stream(
    websocket: WebSocket,
    observer_id: str,
    notifier: ChangeNotifier = Depends(get_notifier),
    store: VersionStore = Depends(get_version_store),
    config: AppConfig = Depends(get_config),
):
    """
    Per-observer change feed.

    The first message is always a full snapshot. Events follow in sequence
    order; clients ignore events whose version is not newer than the
    snapshot's. A dropped observer receives an "overflow" message and the
    socket is closed; reconnecting yields a fresh snapshot. A second
    connection under the same observer id takes over the feed and the
    first one is sent "superseded" and closed.
    """
    logger = logging.getLogger("archgraph.events")
    await websocket.accept()

    # Attach before snapshotting so no event between the two is lost.
    subscription = notifier.acquire(observer_id)
    await websocket.send_json(
        {
            "type": "snapshot",
            "version": store.version,
            "sequence": notifier.sequence,
            "resync": subscription.needs_resync,
            "snapshot": store.snapshot(),
        }
    )
    subscription.needs_resync = False

    try:
        while True:
            event = await run_in_threadpool(subscription.get, config.events_poll_seconds)
            if event is None:
                if not subscription.attached:
                    logger.info("closing superseded stream for %s", observer_id)
                    await websocket.send_json({"type": "superseded", "observer_id": observer_id})
                    await websocket.close(code=1000)
                    break
                continue
            await websocket.send_json({"type": "event", **event.to_dict()})
            if subscription.needs_resync:
                # A gap was detected; the client reloads from this snapshot.
                await websocket.send_json(
                    {
                        "type": "snapshot",
                        "version": store.version,
                        "sequence": notifier.sequence,
                        "resync": True,
                        "snapshot": store.snapshot(),
                    }
                )
                subscription.needs_resync = False
    except ObserverOverflow as exc:
        logger.warning("closing stream for %s: %s", observer_id, exc)
        await websocket.send_json(
            {"type": "overflow", "observer_id": observer_id, "sequence": exc.dropped_at}
        )
        await websocket.close(code=1013)
    except WebSocketDisconnect:
        logger.info("observer %s disconnected", observer_id)
    finally:
        notifier.release(subscription)
