"""In-process change notifications for database tables.

Every write helper publishes a `Change` after its transaction commits. Mounted
dashboard views hold a subscription for as long as the page is open and treat
each matching change as an invalidation signal: the view is marked stale and
re-fetched in full by its page timer. Payloads are never merged into view
state.
"""
from __future__ import annotations

import enum
import logging
import threading
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)


class ChangeEvent(str, enum.Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


ALL_EVENTS: frozenset[ChangeEvent] = frozenset(ChangeEvent)


@dataclass(frozen=True)
class Change:
    table: str
    event: ChangeEvent
    row: Mapping[str, Any] = field(default_factory=dict)


ChangeCallback = Callable[[Change], None]


class Subscription:
    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        callback: ChangeCallback,
        *,
        events: frozenset[ChangeEvent] = ALL_EVENTS,
        row_filter: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.table = table
        self.events = events
        self.row_filter = dict(row_filter or {})
        self._feed = feed
        self._callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def matches(self, change: Change) -> bool:
        if change.table != self.table or change.event not in self.events:
            return False
        for column, expected in self.row_filter.items():
            if str(change.row.get(column)) != str(expected):
                return False
        return True

    def deliver(self, change: Change) -> None:
        if self._active and self.matches(change):
            self._callback(change)

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._feed._remove(self)


class ChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        *,
        events: frozenset[ChangeEvent] = ALL_EVENTS,
        row_filter: Optional[Mapping[str, Any]] = None,
    ) -> Subscription:
        subscription = Subscription(self, table, callback, events=events, row_filter=row_filter)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    @contextmanager
    def subscription(
        self,
        table: str,
        callback: ChangeCallback,
        *,
        events: frozenset[ChangeEvent] = ALL_EVENTS,
        row_filter: Optional[Mapping[str, Any]] = None,
    ) -> Iterator[Subscription]:
        sub = self.subscribe(table, callback, events=events, row_filter=row_filter)
        try:
            yield sub
        finally:
            sub.unsubscribe()

    def publish(self, table: str, event: ChangeEvent, row: Optional[Mapping[str, Any]] = None) -> int:
        """Deliver a change to every matching subscriber. Returns how many were notified."""
        change = Change(table=table, event=ChangeEvent(event), row=dict(row or {}))
        with self._lock:
            targets = [sub for sub in self._subscriptions if sub.matches(change)]
        for sub in targets:
            try:
                sub.deliver(change)
            except Exception:  # noqa: BLE001
                logger.warning("Change listener failed for %s %s", table, change.event.value, exc_info=True)
        return len(targets)

    def subscriber_count(self, table: Optional[str] = None) -> int:
        with self._lock:
            if table is None:
                return len(self._subscriptions)
            return sum(1 for sub in self._subscriptions if sub.table == table)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                pass


class StaleFlag:
    """Generation counter bumped by a subscription and consumed by the page timer."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self._seen = 0

    def invalidate(self, _change: Optional[Change] = None) -> None:
        with self._lock:
            self._generation += 1

    def consume(self) -> bool:
        with self._lock:
            if self._generation == self._seen:
                return False
            self._seen = self._generation
            return True


class LiveViewRegistry:
    """One change subscription per mounted view, keyed by the page session."""

    def __init__(self, feed: ChangeFeed) -> None:
        self._feed = feed
        self._lock = threading.Lock()
        self._views: Dict[str, tuple[ExitStack, StaleFlag]] = {}

    def attach(self, view_key: str, table: str, *, row_filter: Optional[Mapping[str, Any]] = None) -> StaleFlag:
        self.detach(view_key)
        flag = StaleFlag()
        stack = ExitStack()
        stack.enter_context(self._feed.subscription(table, flag.invalidate, row_filter=row_filter))
        with self._lock:
            self._views[view_key] = (stack, flag)
        logger.info("Live view attached key=%s table=%s filter=%s", view_key, table, dict(row_filter or {}))
        return flag

    def detach(self, view_key: str) -> bool:
        with self._lock:
            entry = self._views.pop(view_key, None)
        if entry is None:
            return False
        entry[0].close()
        logger.info("Live view detached key=%s", view_key)
        return True

    def flag(self, view_key: str) -> Optional[StaleFlag]:
        with self._lock:
            entry = self._views.get(view_key)
        return entry[1] if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._views)


CHANGE_FEED = ChangeFeed()
LIVE_VIEWS = LiveViewRegistry(CHANGE_FEED)
