from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from archgraph.errors import InvalidMutation, NoBaseline
from archgraph.graph.graph_query import GraphView
from archgraph.graph.graph_schema import Node
from archgraph.graph.graph_store import GraphStore
from archgraph.graph.mutations import MutationBatch, Operation
from archgraph.graph.snapshot import Snapshot, from_snapshot, to_snapshot
from archgraph.notify.change_notifier import ChangeEvent, ChangeNotifier
from archgraph.versioning.diff import GraphDiff, compute_diff


@dataclass(frozen=True)
class ApplyResult:
    """
    Outcome of a successful `apply`.

    `delta` is measured against the working copy as it was just before the
    batch, not against the baseline.
    """

    version: int
    delta: GraphDiff
    sequence: Optional[int] = None


class VersionStore:
    """
    Owns the working copy and the one-generation baseline.

    All operations run under a single lock, so there is one writer at a time
    and no reader ever sees a half-applied batch. Nothing returned from here
    aliases internal state: callers get copies, snapshots or views over
    copies.
    """

    def __init__(
        self,
        *,
        notifier: Optional[ChangeNotifier] = None,
        graph: Union[GraphStore, Mapping[str, Any], None] = None,
    ) -> None:
        self.notifier = notifier
        self._lock = threading.RLock()
        self._working = GraphStore()
        self._baseline: Optional[GraphStore] = None
        self._version = 0

        if graph is not None:
            self.load(graph)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    @property
    def has_baseline(self) -> bool:
        with self._lock:
            return self._baseline is not None

    def snapshot(self) -> Snapshot:
        with self._lock:
            return to_snapshot(self._working)

    def baseline_snapshot(self) -> Snapshot:
        with self._lock:
            if self._baseline is None:
                raise NoBaseline("baseline_snapshot")
            return to_snapshot(self._baseline)

    def working_copy(self) -> GraphStore:
        with self._lock:
            return self._working.clone()

    def view(self) -> GraphView:
        return GraphView(self.working_copy())

    def find_node(self, semantic_id: str) -> Optional[Node]:
        with self._lock:
            node = self._working.find_node(semantic_id)
            return node.copy() if node is not None else None

    def labels(self) -> Dict[str, str]:
        with self._lock:
            return {n.id: n.semantic_id for n in self._working.get_nodes()}

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "nodes": self._working.node_count(),
                "edges": self._working.edge_count(),
                "version": self._version,
                "has_baseline": self._baseline is not None,
            }

    # ------------------------------------------------------------------
    # Checkpoint operations
    # ------------------------------------------------------------------

    def load(self, graph: Union[GraphStore, Mapping[str, Any]]) -> int:
        """
        Replace working copy and baseline with `graph`. No diff is produced.
        """
        try:
            if isinstance(graph, GraphStore):
                loaded = graph.clone()
            else:
                loaded = from_snapshot(graph)
        except ValueError as exc:
            raise InvalidMutation(f"cannot load graph: {exc}") from None

        with self._lock:
            self._working = loaded
            self._baseline = loaded.clone()
            self._version += 1
            version = self._version
            self._publish(
                ChangeEvent(
                    kind="load",
                    version=version,
                    payload={"snapshot": to_snapshot(loaded)},
                ),
                origin=None,
            )

        logging.getLogger("archgraph.versioning").info(
            "loaded graph: %d nodes, %d edges (version %d)",
            loaded.node_count(),
            loaded.edge_count(),
            version,
        )
        return version

    def apply(
        self,
        batch: Union[MutationBatch, Iterable[Operation]],
        *,
        origin: Optional[str] = None,
    ) -> ApplyResult:
        """
        Apply a batch atomically.

        The batch runs against a staged copy, the post-batch graph is
        validated, and only then swapped in. Raises InvalidMutation and leaves
        the working copy untouched if any operation or invariant fails.
        """
        if not isinstance(batch, MutationBatch):
            batch = MutationBatch(batch)

        with self._lock:
            before = self._working
            try:
                staged = batch.stage(before)
            except InvalidMutation as exc:
                logging.getLogger("archgraph.versioning").info(
                    "rejected batch of %d operations: %s", len(batch), exc
                )
                raise

            delta = compute_diff(before, staged)
            if delta.is_empty():
                return ApplyResult(version=self._version, delta=delta)

            labels = {n.id: n.semantic_id for n in before.get_nodes()}
            labels.update({n.id: n.semantic_id for n in staged.get_nodes()})

            self._working = staged
            self._version += 1
            version = self._version
            sequence = self._publish(
                ChangeEvent(
                    kind="mutation",
                    version=version,
                    payload={
                        "diff": delta.to_dict(labels),
                        "operations": batch.to_dicts(),
                    },
                ),
                origin=origin,
            )

        logging.getLogger("archgraph.versioning").info(
            "applied %d operations -> version %d %s",
            len(batch),
            version,
            delta.summary(),
        )
        return ApplyResult(version=version, delta=delta, sequence=sequence)

    def diff(self) -> GraphDiff:
        with self._lock:
            if self._baseline is None:
                raise NoBaseline("diff")
            return compute_diff(self._baseline, self._working)

    def has_changes(self) -> bool:
        with self._lock:
            if self._baseline is None:
                return False
            return not compute_diff(self._baseline, self._working).is_empty()

    def commit(self, *, origin: Optional[str] = None) -> int:
        """
        Baseline := copy of the working copy. A no-op when nothing changed.
        """
        with self._lock:
            if self._baseline is not None:
                pending = compute_diff(self._baseline, self._working)
                if pending.is_empty():
                    return self._version
                summary = pending.summary()
            else:
                summary = {"added": 0, "modified": 0, "deleted": 0, "total": 0}

            self._baseline = self._working.clone()
            self._version += 1
            version = self._version
            self._publish(
                ChangeEvent(kind="commit", version=version, payload={"summary": summary}),
                origin=origin,
            )

        logging.getLogger("archgraph.versioning").info(
            "committed version %d %s", version, summary
        )
        return version

    def restore(self, *, origin: Optional[str] = None) -> int:
        """
        Working copy := copy of the baseline, discarding uncommitted changes.
        """
        with self._lock:
            if self._baseline is None:
                raise NoBaseline("restore")

            discarded = compute_diff(self._working, self._baseline)
            if discarded.is_empty():
                return self._version

            labels = {n.id: n.semantic_id for n in self._working.get_nodes()}
            labels.update({n.id: n.semantic_id for n in self._baseline.get_nodes()})

            self._working = self._baseline.clone()
            self._version += 1
            version = self._version
            self._publish(
                ChangeEvent(
                    kind="restore",
                    version=version,
                    payload={"diff": discarded.to_dict(labels)},
                ),
                origin=origin,
            )

        logging.getLogger("archgraph.versioning").info(
            "restored baseline -> version %d, discarded %s",
            version,
            discarded.summary(),
        )
        return version

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _publish(self, event: ChangeEvent, origin: Optional[str]) -> Optional[int]:
        # Called with the lock held so sequence order follows version order.
        if self.notifier is None:
            return None
        return self.notifier.publish(event, origin=origin)
