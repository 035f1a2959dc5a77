from __future__ import annotations

from typing import Any, Optional


class ArchGraphError(Exception):
    """
    Base class for errors raised by the archgraph core.
    """


class InvalidMutation(ArchGraphError):
    """
    A mutation batch would violate a graph invariant.

    The batch is rejected as a whole and the working copy is left untouched.
    `index` points at the offending operation inside the submitted batch.
    """

    def __init__(
        self,
        message: str,
        *,
        index: Optional[int] = None,
        operation: Any = None,
    ) -> None:
        self.index = index
        self.operation = operation
        prefix = f"operation #{index}: " if index is not None else ""
        super().__init__(f"{prefix}{message}")
        self.reason = message

    def to_dict(self) -> dict:
        return {
            "error": "invalid_mutation",
            "reason": self.reason,
            "index": self.index,
            "operation": (
                self.operation.to_dict()
                if hasattr(self.operation, "to_dict")
                else None
            ),
        }


class NoBaseline(ArchGraphError):
    """
    Raised by `diff()` / `restore()` before any `load()` or `commit()`.
    """

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"{operation}() requires a baseline; call load() or commit() first"
        )


class ObserverOverflow(ArchGraphError):
    """
    An observer's delivery queue filled up and it was dropped.

    Raised to the dropped observer only, never to the publisher. The observer
    has to reattach and resync from a full snapshot.
    """

    def __init__(self, observer_id: str, *, dropped_at: Optional[int] = None) -> None:
        self.observer_id = observer_id
        self.dropped_at = dropped_at
        super().__init__(
            f"observer '{observer_id}' was dropped after its queue overflowed"
            + (f" at sequence {dropped_at}" if dropped_at is not None else "")
        )


class PlanningError(ArchGraphError):
    """
    The planner produced output that cannot be turned into a mutation batch.
    """
