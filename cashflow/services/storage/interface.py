"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the record store.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the forecasting engine decoupled from persistence

The interface is intentionally simple - we're not building a full ORM.
Just the operations the engine and the write-side flows need.

Retries, if any, belong to the concrete store. Callers never retry.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from cashflow.models.audit import AuditEvent
from cashflow.models.records import (
    BillTemplate,
    Category,
    RecordTable,
    Transaction,
    TransactionFilter,
    TransactionPatch,
    UserSettings,
)
from cashflow.services.notifications import ChangeCallback, ChangeNotifier, Unsubscribe


class RecordStoreInterface(ABC):
    """
    Abstract interface for transactions, categories and settings.

    Every successful write publishes a change for the affected table
    on the store's notifier.
    """

    def __init__(self, notifier: Optional[ChangeNotifier] = None):
        self._notifier = notifier or ChangeNotifier()

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    def subscribe(self, table: RecordTable, on_change: ChangeCallback) -> Unsubscribe:
        """
        Fire ``on_change`` on any row change in ``table``.

        There is no diff payload; the consumer must re-fetch.
        """
        return self._notifier.subscribe(table, on_change)

    @abstractmethod
    async def list_transactions(
        self,
        filter: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        """
        List transactions matching ``filter``.

        Returns:
            Transactions ordered by date ascending (ties in insertion order)
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """Retrieve a transaction by id, or None."""
        pass

    @abstractmethod
    async def insert_transactions(self, batch: list[Transaction]) -> bool:
        """
        Insert a batch of transactions.

        There is no partial-result reporting and no rollback: a failure
        part-way through may leave some rows inserted.

        Raises:
            StorageError: If the insert fails
            DuplicateError: If a transaction id already exists
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: UUID,
        patch: TransactionPatch,
    ) -> Transaction:
        """
        Apply ``patch`` to a transaction.

        Returns:
            The updated transaction

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """Delete a transaction. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        """All categories, in the store's display order."""
        pass

    @abstractmethod
    async def save_category(self, category: Category) -> bool:
        """Insert or replace a category by id."""
        pass

    @abstractmethod
    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        """Pay settings for a user, or None if never saved."""
        pass

    @abstractmethod
    async def save_settings(self, settings: UserSettings) -> bool:
        """Insert or replace the settings row of ``settings.user_id``."""
        pass


class BillTemplateStorageInterface(ABC):
    """
    Abstract interface for recurring bill templates.

    Templates were originally client-held; persisting them avoids
    losing them with the browser session.
    """

    @abstractmethod
    async def list_templates(self) -> list[BillTemplate]:
        pass

    @abstractmethod
    async def save_template(self, template: BillTemplate) -> bool:
        """Insert or replace a template by id."""
        pass

    @abstractmethod
    async def delete_template(self, template_id: UUID) -> bool:
        """Delete a template. Returns False if it did not exist."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
