"""
Explicit read-view cache for computed monthly summaries.

Responsibility:
    Hold computed values (typically ``BudgetSummary``) keyed by
    (year, month) and drop them when a service reports a change to any
    entity they were computed from, or to the month itself.

Architecture position:
    Kernel > Domain.  Services publish ``ChangeEvent``s through a
    ``ChangeNotifier``; a ``ReadViewCache`` subscribed to that notifier
    invalidates entries.  The aggregator itself never caches.

Invariants enforced:
    - An entry is invalidated when any entity id it depends on changes, or
      when a change event names its period.
    - Thread-safe: a single lock guards the entry table.
"""

import threading
from collections.abc import Callable, Hashable, Iterable
from typing import Any
from uuid import UUID

from budget_kernel.domain.dtos import ChangeEvent
from budget_kernel.logging_config import get_logger

logger = get_logger("domain.cache")

Listener = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Synchronous fan-out of change events to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.remove(listener)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)


class ReadViewCache:
    """
    Cache of computed read views with entity-keyed invalidation.

    Usage::

        cache = ReadViewCache()
        notifier.subscribe(cache.on_change)
        summary = cache.get_or_compute(
            (2024, 3), compute, depends_on=snapshot.entity_ids()
        )
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, Any] = {}
        self._dependencies: dict[Hashable, frozenset[UUID]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: Hashable, value: Any, depends_on: Iterable[UUID] = ()) -> None:
        with self._lock:
            self._entries[key] = value
            self._dependencies[key] = frozenset(depends_on)

    def get_or_compute(
        self,
        key: Hashable,
        compute: Callable[[], Any],
        depends_on: Iterable[UUID] | Callable[[], Iterable[UUID]] = (),
    ) -> Any:
        with self._lock:
            if key in self._entries:
                return self._entries[key]
        value = compute()
        deps = depends_on() if callable(depends_on) else depends_on
        self.put(key, value, deps)
        return value

    def invalidate_key(self, key: Hashable) -> bool:
        with self._lock:
            self._dependencies.pop(key, None)
            return self._entries.pop(key, None) is not None

    def invalidate_entity(self, entity_id: UUID) -> int:
        """Drop every entry computed from ``entity_id``; return how many."""
        with self._lock:
            stale = [k for k, deps in self._dependencies.items() if entity_id in deps]
            for key in stale:
                self._entries.pop(key, None)
                self._dependencies.pop(key, None)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._dependencies.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def on_change(self, event: ChangeEvent) -> None:
        dropped = self.invalidate_entity(event.entity_id)
        for period in event.periods:
            if self.invalidate_key(tuple(period)):
                dropped += 1
        if dropped:
            logger.debug(
                "read_views_invalidated",
                extra={
                    "entity_type": event.entity_type,
                    "changed_id": str(event.entity_id),
                    "dropped": dropped,
                },
            )
