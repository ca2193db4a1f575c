"""
Snapshot Cache

DESIGN DECISION: Derived views are cached per query and invalidated by
change notifications, never by time.

Each entry is keyed by query name + parameters and tagged with the record
tables it was computed from. A change event on a table drops every entry
tagged with it; the view is recomputed lazily on the next read from a
fresh snapshot ("last snapshot wins").
"""

from typing import Any, Awaitable, Callable, Hashable, Iterable, TypeVar

import structlog

from cashflow.models.records import RecordTable
from cashflow.services.notifications import ChangeNotifier, Unsubscribe


T = TypeVar("T")

CacheKey = tuple[str, tuple[Hashable, ...]]


class SnapshotCache:
    """Change-invalidated cache of computed views."""

    def __init__(self, notifier: ChangeNotifier):
        self._entries: dict[CacheKey, Any] = {}
        self._tags: dict[CacheKey, frozenset[RecordTable]] = {}
        self._logger = structlog.get_logger(__name__)
        self._unsubscribers: list[Unsubscribe] = [
            notifier.subscribe(table, self.invalidate) for table in RecordTable
        ]

    @staticmethod
    def key(name: str, *params: Hashable) -> CacheKey:
        return (name, tuple(params))

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_compute(
        self,
        key: CacheKey,
        tables: Iterable[RecordTable],
        loader: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Return the cached view for ``key`` or compute and store it.

        Errors raised by ``loader`` propagate and nothing is cached.
        """
        if key in self._entries:
            return self._entries[key]

        value = await loader()
        self._entries[key] = value
        self._tags[key] = frozenset(RecordTable(t) for t in tables)
        return value

    def invalidate(self, table: RecordTable) -> None:
        """Drop every entry computed from ``table``."""
        table = RecordTable(table)
        stale = [k for k, tags in self._tags.items() if table in tags]
        for k in stale:
            self._entries.pop(k, None)
            self._tags.pop(k, None)
        if stale:
            self._logger.debug(
                "snapshot_invalidated",
                table=table.value,
                dropped=len(stale),
            )

    def clear(self) -> None:
        self._entries.clear()
        self._tags.clear()

    def close(self) -> None:
        """Stop listening for change events."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
