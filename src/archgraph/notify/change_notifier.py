from __future__ import annotations

import logging
import queue
import threading
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from archgraph.errors import ObserverOverflow
from archgraph.utils.time import iso_timestamp, utc_now


# ---------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------


@dataclass(frozen=True)
class ChangeEvent:
    """
    One logical change to the working copy.

    `event_id` identifies the logical change; publishing the same event_id
    twice reuses its sequence number instead of minting a new one.
    """

    kind: str
    version: int
    payload: Dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    origin: Optional[str] = None
    sequence: Optional[int] = None
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "version": self.version,
            "sequence": self.sequence,
            "event_id": self.event_id,
            "origin": self.origin,
            "timestamp": iso_timestamp(self.timestamp),
            "payload": self.payload,
        }


# ---------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------


class Subscription:
    """
    Per-observer bounded delivery queue.

    The publisher side only ever calls `_offer` / `_suppress`; the consumer
    side calls `get` / `drain` from its own thread or task.
    """

    def __init__(
        self,
        observer_id: str,
        *,
        maxsize: int,
        start_sequence: int,
        needs_resync: bool = False,
    ) -> None:
        self.observer_id = observer_id
        self.needs_resync = needs_resync
        self.attached = True
        self.leased = False

        self._queue: "queue.Queue[ChangeEvent]" = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._accounted_through = start_sequence
        self._last_received = start_sequence
        self._suppressed: Set[int] = set()
        self._overflow: Optional[ObserverOverflow] = None

    # -------------------- publisher side --------------------

    def _accounts_for(self, sequence: int) -> bool:
        # Each (sequence, observer) pair is handled once: sequences arrive in
        # increasing order, so a high-water mark is enough to reject repeats.
        return sequence <= self._accounted_through

    def _offer(self, event: ChangeEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            return False
        self._accounted_through = event.sequence
        return True

    def _suppress(self, sequence: int) -> None:
        with self._lock:
            self._suppressed.add(sequence)
        self._accounted_through = sequence

    def _drop(self, overflow: ObserverOverflow) -> None:
        self.attached = False
        self._overflow = overflow
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    # -------------------- consumer side --------------------

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """
        Next event, or None when `timeout` expires.

        Raises ObserverOverflow once the observer has been dropped.
        """
        if self._overflow is not None:
            raise self._overflow
        try:
            if timeout == 0:
                event = self._queue.get_nowait()
            else:
                event = self._queue.get(timeout=timeout)
        except queue.Empty:
            if self._overflow is not None:
                raise self._overflow
            return None
        self._track(event.sequence)
        return event

    def drain(self) -> List[ChangeEvent]:
        events: List[ChangeEvent] = []
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                break
            self._track(event.sequence)
            events.append(event)
        if not events and self._overflow is not None:
            raise self._overflow
        return events

    def _track(self, sequence: int) -> None:
        with self._lock:
            missing = [
                s for s in range(self._last_received + 1, sequence)
                if s not in self._suppressed
            ]
            self._suppressed = {s for s in self._suppressed if s > sequence}
            self._last_received = max(self._last_received, sequence)
        if missing:
            self.needs_resync = True


# ---------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------


class ChangeNotifier:
    """
    Fans accepted changes out to attached observers.

    Every publish gets a strictly increasing sequence number. Each attached
    observer other than the originator receives it at most once; a full
    observer queue drops that observer without affecting the others.
    """

    def __init__(self, *, queue_size: int = 256, dedup_window: int = 1024) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        self.queue_size = queue_size
        self.dedup_window = dedup_window

        self._lock = threading.RLock()
        self._subscriptions: Dict[str, Subscription] = {}
        self._sequence = 0
        self._published: "OrderedDict[str, int]" = OrderedDict()
        self._dropped: Set[str] = set()

    @property
    def sequence(self) -> int:
        return self._sequence

    def observers(self) -> List[str]:
        with self._lock:
            return list(self._subscriptions)

    # ------------------------------------------------------------------
    # Attachment
    # ------------------------------------------------------------------

    def attach(self, observer_id: str) -> Subscription:
        with self._lock:
            existing = self._subscriptions.get(observer_id)
            if existing is not None:
                return existing

            needs_resync = observer_id in self._dropped
            self._dropped.discard(observer_id)

            subscription = Subscription(
                observer_id,
                maxsize=self.queue_size,
                start_sequence=self._sequence,
                needs_resync=needs_resync,
            )
            self._subscriptions[observer_id] = subscription

        logging.getLogger("archgraph.notify").info(
            "observer %s attached at sequence %d (resync=%s)",
            observer_id,
            subscription._accounted_through,
            needs_resync,
        )
        return subscription

    def detach(self, observer_id: str) -> bool:
        with self._lock:
            subscription = self._subscriptions.pop(observer_id, None)
        if subscription is None:
            return False
        subscription.attached = False
        logging.getLogger("archgraph.notify").info("observer %s detached", observer_id)
        return True

    def acquire(self, observer_id: str) -> Subscription:
        """
        Attach on behalf of one connection.

        A newer connection for the same observer id supersedes the older one:
        the older subscription is detached and receives nothing further, and
        its later `release` leaves the newer subscription in place.
        """
        with self._lock:
            existing = self._subscriptions.get(observer_id)
            if existing is not None and existing.leased:
                del self._subscriptions[observer_id]
                existing.attached = False
                logging.getLogger("archgraph.notify").info(
                    "observer %s reconnected; previous stream superseded", observer_id
                )
            subscription = self.attach(observer_id)
            subscription.leased = True
        return subscription

    def release(self, subscription: Subscription) -> bool:
        """
        End a connection's lease. Detaches only if `subscription` is still
        the one attached for its observer id; returns True in that case.
        """
        with self._lock:
            subscription.leased = False
            if self._subscriptions.get(subscription.observer_id) is not subscription:
                return False
            return self.detach(subscription.observer_id)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, event: ChangeEvent, origin: Optional[str] = None) -> int:
        """
        Deliver `event` to every attached observer except `origin`.

        Never blocks. Returns the sequence number assigned to the event.
        """
        origin = origin if origin is not None else event.origin

        with self._lock:
            sequence = self._published.get(event.event_id)
            if sequence is None:
                self._sequence += 1
                sequence = self._sequence
                self._published[event.event_id] = sequence
                while len(self._published) > self.dedup_window:
                    self._published.popitem(last=False)

            stamped = replace(event, sequence=sequence, origin=origin)

            delivered = 0
            for observer_id, subscription in list(self._subscriptions.items()):
                if subscription._accounts_for(sequence):
                    continue
                if origin is not None and observer_id == origin:
                    subscription._suppress(sequence)
                    continue
                if subscription._offer(stamped):
                    delivered += 1
                else:
                    self._drop(subscription, sequence)

        logging.getLogger("archgraph.notify").debug(
            "published %s seq=%d to %d observers", event.kind, sequence, delivered
        )
        return sequence

    def _drop(self, subscription: Subscription, sequence: int) -> None:
        self._subscriptions.pop(subscription.observer_id, None)
        self._dropped.add(subscription.observer_id)
        subscription._drop(
            ObserverOverflow(subscription.observer_id, dropped_at=sequence)
        )
        logging.getLogger("archgraph.notify").warning(
            "observer %s dropped at seq=%d: queue full (%d)",
            subscription.observer_id,
            sequence,
            self.queue_size,
        )
