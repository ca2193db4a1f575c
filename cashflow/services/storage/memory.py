"""
In-Memory Storage Implementation

Used by the test suite and by the dashboard when no spreadsheet is
configured. Data lives for the lifetime of the process only.

Rows are kept in insertion order, so listings sorted by date keep
insertion order among rows with the same date.
"""

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
from cashflow.services.notifications import ChangeNotifier
from cashflow.services.storage.interface import (
    AuditStorageInterface,
    BillTemplateStorageInterface,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
)


class InMemoryRecordStore(RecordStoreInterface):
    """Dict-backed record store."""

    def __init__(self, notifier: Optional[ChangeNotifier] = None):
        super().__init__(notifier)
        self._transactions: dict[UUID, Transaction] = {}
        self._categories: dict[UUID, Category] = {}
        self._settings: dict[str, UserSettings] = {}

    async def list_transactions(
        self,
        filter: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        rows = [
            txn for txn in self._transactions.values()
            if filter is None or filter.matches(txn)
        ]
        return sorted(rows, key=lambda t: t.date)

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        return self._transactions.get(transaction_id)

    async def insert_transactions(self, batch: list[Transaction]) -> bool:
        inserted = 0
        try:
            for txn in batch:
                if txn.id in self._transactions:
                    raise DuplicateError(f"Transaction already exists: {txn.id}")
                self._transactions[txn.id] = txn
                inserted += 1
        finally:
            if inserted:
                self._notifier.publish(RecordTable.TRANSACTIONS)
        return True

    async def update_transaction(
        self,
        transaction_id: UUID,
        patch: TransactionPatch,
    ) -> Transaction:
        existing = self._transactions.get(transaction_id)
        if existing is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        updated = patch.apply(existing)
        self._transactions[transaction_id] = updated
        self._notifier.publish(RecordTable.TRANSACTIONS)
        return updated

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        if self._transactions.pop(transaction_id, None) is None:
            return False
        self._notifier.publish(RecordTable.TRANSACTIONS)
        return True

    async def list_categories(self) -> list[Category]:
        return list(self._categories.values())

    async def save_category(self, category: Category) -> bool:
        self._categories[category.id] = category
        self._notifier.publish(RecordTable.CATEGORIES)
        return True

    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        return self._settings.get(user_id)

    async def save_settings(self, settings: UserSettings) -> bool:
        self._settings[settings.user_id] = settings
        self._notifier.publish(RecordTable.SETTINGS)
        return True


class InMemoryBillTemplateStorage(BillTemplateStorageInterface):
    """Dict-backed template store. Publishes on the shared notifier if given."""

    def __init__(self, notifier: Optional[ChangeNotifier] = None):
        self._templates: dict[UUID, BillTemplate] = {}
        self._notifier = notifier

    async def list_templates(self) -> list[BillTemplate]:
        return list(self._templates.values())

    async def save_template(self, template: BillTemplate) -> bool:
        self._templates[template.id] = template
        if self._notifier:
            self._notifier.publish(RecordTable.BILL_TEMPLATES)
        return True

    async def delete_template(self, template_id: UUID) -> bool:
        if self._templates.pop(template_id, None) is None:
            return False
        if self._notifier:
            self._notifier.publish(RecordTable.BILL_TEMPLATES)
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
