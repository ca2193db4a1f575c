"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the record store.
Google Sheets is the durable backend; the in-memory store backs tests and
unconfigured local runs.
"""

from cashflow.services.storage.interface import (
    AuditStorageInterface,
    BillTemplateStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)
from cashflow.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBillTemplateStorage,
    InMemoryRecordStore,
)
from cashflow.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBillTemplateStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BillTemplateStorageInterface",
    "RecordStoreInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBillTemplateStorage",
    "InMemoryRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBillTemplateStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
]
