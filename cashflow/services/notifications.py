"""
Change Notification Channel

Record stores publish a bare "something changed" event per table.
There is no diff payload: subscribers re-fetch whatever they need.

Subscribers are plain callables invoked synchronously on publish.
A failing subscriber is logged and does not stop the others.
"""

from typing import Callable

import structlog

from cashflow.models.records import RecordTable


ChangeCallback = Callable[[RecordTable], None]
Unsubscribe = Callable[[], None]


class ChangeNotifier:
    """Per-table publish/subscribe hub."""

    def __init__(self):
        self._subscribers: dict[RecordTable, list[ChangeCallback]] = {}
        self._logger = structlog.get_logger(__name__)

    def subscribe(self, table: RecordTable, on_change: ChangeCallback) -> Unsubscribe:
        """
        Register ``on_change`` for every change to ``table``.

        Returns:
            A callable that removes the subscription (safe to call twice)
        """
        table = RecordTable(table)
        self._subscribers.setdefault(table, []).append(on_change)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(table, [])
            if on_change in callbacks:
                callbacks.remove(on_change)

        return unsubscribe

    def publish(self, table: RecordTable) -> None:
        table = RecordTable(table)
        for callback in list(self._subscribers.get(table, [])):
            try:
                callback(table)
            except Exception as e:
                self._logger.error(
                    "change_subscriber_failed",
                    table=table.value,
                    error=str(e),
                )

    def subscriber_count(self, table: RecordTable) -> int:
        return len(self._subscribers.get(RecordTable(table), []))
