"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the durable record store because:
1. Users can view and fix their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: a batch insert that fails part-way is not rolled back
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing the engine.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from cashflow.config import get_settings
from cashflow.models.audit import AuditEvent, AuditEventType, AuditSeverity
from cashflow.models.records import (
    BillTemplate,
    Category,
    RecordTable,
    Transaction,
    TransactionFilter,
    TransactionPatch,
    TransactionStatus,
    TransactionType,
    UserSettings,
)
from cashflow.services.notifications import ChangeNotifier
from cashflow.services.storage.interface import (
    AuditStorageInterface,
    BillTemplateStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "amount",
    "date",
    "description",
    "category",
    "category_id",
    "type",
    "status",
    "reviewed",
    "source_key",
]

CATEGORY_COLUMNS = [
    "id",
    "name",
    "type",
    "group",
    "budget_limit",
]

SETTINGS_COLUMNS = [
    "user_id",
    "hourly_rate",
    "tax_rate_percent",
    "fixed_deductions",
    "custom_payday",
]

BILL_TEMPLATE_COLUMNS = [
    "id",
    "description",
    "amount",
    "day_of_month",
    "category",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


def _safe_getter(row: list) -> Callable[[int], str]:
    """Handle missing trailing columns gracefully."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.transactions_sheet_name, TRANSACTION_COLUMNS)

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.categories_sheet_name, CATEGORY_COLUMNS)

    def get_settings_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.settings_sheet_name, SETTINGS_COLUMNS)

    def get_bill_templates_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.bill_templates_sheet_name, BILL_TEMPLATE_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


def _find_row(sheet: gspread.Worksheet, key: str) -> tuple[Optional[int], list[list[str]]]:
    """
    Locate the row whose first cell equals ``key``.

    Returns:
        (1-based sheet row index or None, all rows including header)
    """
    all_rows = sheet.get_all_values()
    for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
        if row and row[0] == key:
            return idx, all_rows
    return None, all_rows


def _upsert_row(sheet: gspread.Worksheet, key: str, new_row: list) -> None:
    idx, _ = _find_row(sheet, key)
    if idx is None:
        sheet.append_row(new_row, value_input_option="RAW")
        return
    for col_idx, value in enumerate(new_row, start=1):
        sheet.update_cell(idx, col_idx, value)


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the record store.

    One worksheet per table, one record per row.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        notifier: Optional[ChangeNotifier] = None,
    ):
        super().__init__(notifier)
        self._client = client or GoogleSheetsClient()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _transaction_to_row(self, txn: Transaction) -> list:
        return [
            str(txn.id),
            txn.user_id,
            str(txn.amount),
            txn.date.isoformat(),
            txn.description,
            txn.category or "",
            str(txn.category_id) if txn.category_id else "",
            txn.type.value,
            txn.status.value,
            str(txn.reviewed),
            txn.source_key or "",
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        safe_get = _safe_getter(row)
        return Transaction(
            id=UUID(safe_get(0)),
            user_id=safe_get(1),
            amount=Decimal(safe_get(2, "0")),
            date=date.fromisoformat(safe_get(3)),
            description=safe_get(4),
            category=safe_get(5) or None,
            category_id=UUID(safe_get(6)) if safe_get(6) else None,
            type=TransactionType(safe_get(7)),
            status=TransactionStatus(safe_get(8, TransactionStatus.CLEARED.value)),
            reviewed=safe_get(9).lower() == "true",
            source_key=safe_get(10) or None,
        )

    def _category_to_row(self, category: Category) -> list:
        return [
            str(category.id),
            category.name,
            category.type.value,
            category.group,
            str(category.budget_limit),
        ]

    def _row_to_category(self, row: list) -> Category:
        safe_get = _safe_getter(row)
        return Category(
            id=UUID(safe_get(0)),
            name=safe_get(1),
            type=TransactionType(safe_get(2)),
            group=safe_get(3, "Other"),
            budget_limit=Decimal(safe_get(4, "0")),
        )

    def _settings_to_row(self, settings: UserSettings) -> list:
        return [
            settings.user_id,
            str(settings.hourly_rate),
            str(settings.tax_rate_percent),
            str(settings.fixed_deductions),
            str(settings.custom_payday) if settings.custom_payday else "",
        ]

    def _row_to_settings(self, row: list) -> UserSettings:
        safe_get = _safe_getter(row)
        return UserSettings(
            user_id=safe_get(0),
            hourly_rate=Decimal(safe_get(1, "0")),
            tax_rate_percent=Decimal(safe_get(2, "0")),
            fixed_deductions=Decimal(safe_get(3, "0")),
            custom_payday=int(safe_get(4)) if safe_get(4) else None,
        )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def list_transactions(
        self,
        filter: Optional[TransactionFilter] = None,
    ) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        transactions = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                txn = self._row_to_transaction(row)
            except Exception as e:
                logger.warning("malformed_transaction_row", row_id=row[0], error=str(e))
                continue
            if filter is None or filter.matches(txn):
                transactions.append(txn)

        # Stable sort keeps sheet order among same-day rows
        transactions.sort(key=lambda t: t.date)
        return transactions

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            idx, all_rows = _find_row(sheet, str(transaction_id))
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

        if idx is None:
            return None
        return self._row_to_transaction(all_rows[idx - 1])

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_new_rows(self, rows: list[list]) -> None:
        """
        Append the rows whose id is not on the sheet yet.

        append_rows is not idempotent: an attempt can land on the sheet and
        still raise (e.g. a read timeout). Each attempt re-reads the id
        column so a retry only sends what is still missing.
        """
        sheet = self._client.get_transactions_sheet()
        present = {row[0] for row in sheet.get_all_values()[1:] if row}
        missing = [row for row in rows if row[0] not in present]
        if missing:
            sheet.append_rows(missing, value_input_option="RAW")

    async def insert_transactions(self, batch: list[Transaction]) -> bool:
        if not batch:
            return True
        rows = [self._transaction_to_row(txn) for txn in batch]
        try:
            sheet = self._client.get_transactions_sheet()
            present = {row[0] for row in sheet.get_all_values()[1:] if row}
        except Exception as e:
            raise StorageError(f"Failed to insert transactions: {e}")

        seen = set(present)
        for row in rows:
            if row[0] in seen:
                raise DuplicateError(f"Transaction already exists: {row[0]}")
            seen.add(row[0])

        try:
            self._append_new_rows(rows)
        except Exception as e:
            raise StorageError(f"Failed to insert transactions: {e}")

        self._notifier.publish(RecordTable.TRANSACTIONS)
        return True

    async def update_transaction(
        self,
        transaction_id: UUID,
        patch: TransactionPatch,
    ) -> Transaction:
        try:
            sheet = self._client.get_transactions_sheet()
            idx, all_rows = _find_row(sheet, str(transaction_id))
            if idx is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            updated = patch.apply(self._row_to_transaction(all_rows[idx - 1]))
            for col_idx, value in enumerate(self._transaction_to_row(updated), start=1):
                sheet.update_cell(idx, col_idx, value)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

        self._notifier.publish(RecordTable.TRANSACTIONS)
        return updated

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            idx, _ = _find_row(sheet, str(transaction_id))
            if idx is None:
                return False
            sheet.delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

        self._notifier.publish(RecordTable.TRANSACTIONS)
        return True

    # ------------------------------------------------------------------
    # Categories & settings
    # ------------------------------------------------------------------

    async def list_categories(self) -> list[Category]:
        try:
            sheet = self._client.get_categories_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

        categories = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                categories.append(self._row_to_category(row))
            except Exception as e:
                logger.warning("malformed_category_row", row_id=row[0], error=str(e))
        return categories

    async def save_category(self, category: Category) -> bool:
        try:
            sheet = self._client.get_categories_sheet()
            _upsert_row(sheet, str(category.id), self._category_to_row(category))
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

        self._notifier.publish(RecordTable.CATEGORIES)
        return True

    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        try:
            sheet = self._client.get_settings_sheet()
            idx, all_rows = _find_row(sheet, user_id)
        except Exception as e:
            raise StorageError(f"Failed to get settings: {e}")

        if idx is None:
            return None
        return self._row_to_settings(all_rows[idx - 1])

    async def save_settings(self, settings: UserSettings) -> bool:
        try:
            sheet = self._client.get_settings_sheet()
            _upsert_row(sheet, settings.user_id, self._settings_to_row(settings))
        except Exception as e:
            raise StorageError(f"Failed to save settings: {e}")

        self._notifier.publish(RecordTable.SETTINGS)
        return True


class GoogleSheetsBillTemplateStorage(BillTemplateStorageInterface):
    """Google Sheets implementation of bill template storage."""

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        notifier: Optional[ChangeNotifier] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._notifier = notifier

    def _template_to_row(self, template: BillTemplate) -> list:
        return [
            str(template.id),
            template.description,
            str(template.amount),
            str(template.day_of_month),
            template.category,
        ]

    def _row_to_template(self, row: list) -> BillTemplate:
        safe_get = _safe_getter(row)
        return BillTemplate(
            id=UUID(safe_get(0)),
            description=safe_get(1, "New Bill"),
            amount=Decimal(safe_get(2, "0")),
            day_of_month=int(safe_get(3, "1")),
            category=safe_get(4, "Bills"),
        )

    async def list_templates(self) -> list[BillTemplate]:
        try:
            sheet = self._client.get_bill_templates_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list bill templates: {e}")

        templates = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                templates.append(self._row_to_template(row))
            except Exception as e:
                logger.warning("malformed_template_row", row_id=row[0], error=str(e))
        return templates

    async def save_template(self, template: BillTemplate) -> bool:
        try:
            sheet = self._client.get_bill_templates_sheet()
            _upsert_row(sheet, str(template.id), self._template_to_row(template))
        except Exception as e:
            raise StorageError(f"Failed to save bill template: {e}")

        if self._notifier:
            self._notifier.publish(RecordTable.BILL_TEMPLATES)
        return True

    async def delete_template(self, template_id: UUID) -> bool:
        try:
            sheet = self._client.get_bill_templates_sheet()
            idx, _ = _find_row(sheet, str(template_id))
            if idx is None:
                return False
            sheet.delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete bill template: {e}")

        if self._notifier:
            self._notifier.publish(RecordTable.BILL_TEMPLATES)
        return True


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception as e:
                    logger.warning("malformed_audit_row", row_id=row[0], error=str(e))

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
