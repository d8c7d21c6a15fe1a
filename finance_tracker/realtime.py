"""Row-level change notifications for the ledger store.

The store publishes a :class:`ChangeEvent` after every committed insert,
update or delete.  Consumers hold a :class:`Subscription`, which is a queue
of events scoped to one owner, and pull from it whenever they are ready.
Closing a subscription simply stops delivery; events published afterwards
are dropped for that subscriber.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    kind: ChangeKind
    table: str
    user_id: Optional[str]
    # New row for INSERT/UPDATE, the removed row for DELETE.
    record: Any


class Subscription:
    """Queue of change events for one owner and an optional set of tables."""

    def __init__(self, feed: "ChangeFeed", user_id: str, tables: Optional[Sequence[str]] = None):
        self._feed = feed
        self.user_id = user_id
        self.tables = frozenset(tables) if tables else None
        self._queue: "queue.Queue[ChangeEvent]" = queue.Queue()
        self.closed = False

    def wants(self, event: ChangeEvent) -> bool:
        if self.closed or event.user_id != self.user_id:
            return False
        return self.tables is None or event.table in self.tables

    def put(self, event: ChangeEvent) -> None:
        self._queue.put(event)

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next event, or ``None`` if nothing arrives within ``timeout``."""
        try:
            if timeout is None:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[ChangeEvent]:
        """All pending events in delivery order."""
        events: List[ChangeEvent] = []
        while True:
            event = self.get()
            if event is None:
                return events
            events.append(event)

    def close(self) -> None:
        self.closed = True
        self._feed.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ChangeFeed:
    """Fan-out of store events to open subscriptions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def subscribe(self, user_id: str, tables: Optional[Sequence[str]] = None) -> Subscription:
        subscription = Subscription(self, user_id, tables)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("Opened change subscription for %s", user_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.wants(event)]
        for subscription in targets:
            subscription.put(event)


_FEEDS: Dict[str, ChangeFeed] = {}
_FEEDS_LOCK = threading.Lock()


def feed_for(key: str) -> ChangeFeed:
    """The process-wide feed for ``key``, normally a database path.

    Every store opened on the same database shares one feed, so a change
    made through one session reaches subscribers in all the others.
    """
    with _FEEDS_LOCK:
        feed = _FEEDS.get(key)
        if feed is None:
            feed = _FEEDS[key] = ChangeFeed()
        return feed
