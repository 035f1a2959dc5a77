from __future__ import annotations

from pathlib import Path
import json
import logging
import time

from archgraph.graph.snapshot import read_snapshot, write_json
from archgraph.memory.episodic import EpisodicStore
from archgraph.versioning.version_store import VersionStore


def load_graph_from_snapshot(*, store: VersionStore, path: Path) -> bool:
    """
    Load a snapshot file into the version store as working copy and baseline.

    Returns False when the file does not exist.
    """
    if not path.exists():
        return False

    t0 = time.perf_counter()
    graph = read_snapshot(path)
    store.load(graph)
    logging.getLogger("archgraph.load_graph").info(
        "read %s: nodes=%d edges=%d in %.3fs",
        path,
        graph.node_count(),
        graph.edge_count(),
        time.perf_counter() - t0,
    )
    return True


def save_graph_snapshot(*, store: VersionStore, path: Path) -> Path:
    """
    Write the committed baseline to `path`, or the working copy when nothing
    has been committed yet.
    """
    t0 = time.perf_counter()
    payload = store.baseline_snapshot() if store.has_baseline else store.snapshot()
    write_json(path, payload)
    logging.getLogger("archgraph.load_graph").info(
        "wrote %s: nodes=%d edges=%d in %.3fs",
        path,
        len(payload["nodes"]),
        len(payload["edges"]),
        time.perf_counter() - t0,
    )
    return path


def load_episodes(*, episodic: EpisodicStore, path: Path) -> int:
    if not path.exists():
        return 0
    with path.open("r", encoding="utf-8") as fh:
        return episodic.import_episodes(json.load(fh))


def save_episodes(*, episodic: EpisodicStore, path: Path) -> Path:
    write_json(path, episodic.export())
    logging.getLogger("archgraph.load_graph").info("wrote %s", path)
    return path
