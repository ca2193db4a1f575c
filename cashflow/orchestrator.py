"""
Main Orchestrator for Cashflow

This module ties together all the components and defines the
write-side flows for:
1. Transactions (validate → insert / update / delete / mark paid / review / reschedule)
2. Bill generation (templates → pending expenses for a month)
3. Paycheck estimation (hours + settings → estimated income)
4. Settings (per-user pay settings and categories)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No record is written without passing input validation
- Store failures come back as failure values, never as crashes in the UI
- Every write is audited

The forecasting engine itself never touches the store; flows load
snapshots, call the engine and persist the result.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional, Union
from uuid import UUID

import structlog

from cashflow.audit import AuditLogger, create_correlation_id
from cashflow.config import get_settings
from cashflow.engine import (
    BalanceProjector,
    BillScheduler,
    BudgetAggregator,
    PaycheckCalculator,
    SameDayPolicy,
    existing_source_keys,
    next_payday_from_settings,
    to_cents,
)
from cashflow.models.forecast import (
    BillGenerationResult,
    OperationResult,
    PaycheckEstimate,
    PaycheckInput,
)
from cashflow.models.records import (
    BillingMonth,
    BillTemplate,
    Category,
    Transaction,
    TransactionFilter,
    TransactionPatch,
    TransactionStatus,
    TransactionType,
    UserSettings,
    ValidationIssue,
)
from cashflow.queries import DashboardQueries, SnapshotCache
from cashflow.services.notifications import ChangeNotifier
from cashflow.services.storage import (
    AuditStorageInterface,
    BillTemplateStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBillTemplateStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryAuditStorage,
    InMemoryBillTemplateStorage,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)
from cashflow.validation import (
    InputValidationError,
    TransactionInputValidator,
    parse_bill_template,
    parse_user_settings,
)


logger = structlog.get_logger(__name__)

ESTIMATED_PAYCHECK_DESCRIPTION = "Estimated Paycheck"
ESTIMATED_PAYCHECK_CATEGORY = "Income"


def _issue_messages(issues: list[ValidationIssue]) -> list[str]:
    return [issue.message for issue in issues]


def _issue_dicts(issues: list[ValidationIssue]) -> list[dict]:
    return [
        {"field": i.field, "type": i.issue_type, "message": i.message}
        for i in issues
    ]


class _AuditedFlow:
    """Shared failure handling for the write-side flows."""

    def __init__(self, audit_logger: Optional[AuditLogger] = None):
        self._audit_logger = audit_logger

    async def _storage_failure(
        self,
        operation: str,
        error: StorageError,
        correlation_id: UUID,
    ) -> OperationResult:
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
            )
        return OperationResult(success=False, error_message=str(error))

    async def _validation_failure(
        self,
        entity_type: str,
        issues: list[ValidationIssue],
        correlation_id: UUID,
    ) -> OperationResult:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                entity_type=entity_type,
                issues=_issue_dicts(issues),
                correlation_id=correlation_id,
            )
        return OperationResult(
            success=False,
            error_message="Invalid input",
            issues=_issue_messages(issues),
        )


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionFlow(_AuditedFlow):
    """
    Orchestrates manual transaction entry and maintenance.

    Flow for create:
    1. Load categories (for the semantic stage)
    2. Validate → Two-stage validation
    3. Save → Insert into the record store
    4. Audit
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(audit_logger)
        self._store = store

    async def create(
        self,
        raw: Mapping[str, Any],
        user_id: str,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Validate form input and insert it as a new transaction."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            categories = await self._store.list_categories()
        except StorageError as e:
            return await self._storage_failure("list_categories", e, correlation_id)

        validator = TransactionInputValidator(categories, today=today)
        try:
            txn = validator.to_transaction(raw, user_id)
        except InputValidationError as e:
            return await self._validation_failure("transaction", e.issues, correlation_id)

        try:
            await self._store.insert_transactions([txn])
        except StorageError as e:
            return await self._storage_failure("insert_transactions", e, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_transaction_created(
                transaction_id=txn.id,
                transaction_type=txn.type.value,
                amount=str(txn.amount),
                correlation_id=correlation_id,
            )

        return OperationResult(success=True, transaction=txn)

    async def update(
        self,
        transaction_id: UUID,
        patch: TransactionPatch,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Apply a partial update; category and type must stay consistent."""
        correlation_id = correlation_id or create_correlation_id()
        fields = sorted(patch.model_dump(exclude_unset=True))

        try:
            current = await self._store.get_transaction(transaction_id)
            if current is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")

            patched = patch.apply(current)
            if patched.category_id is not None:
                categories = {c.id: c for c in await self._store.list_categories()}
                category = categories.get(patched.category_id)
                if category is not None and category.type != patched.type:
                    return await self._validation_failure(
                        "transaction",
                        [ValidationIssue(
                            field="category",
                            issue_type="type_mismatch",
                            message=(
                                f"Category '{category.name}' cannot hold "
                                f"{patched.type.value} transactions"
                            ),
                            severity="error",
                        )],
                        correlation_id,
                    )

            updated = await self._store.update_transaction(transaction_id, patch)
        except StorageError as e:
            return await self._storage_failure("update_transaction", e, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_transaction_updated(
                transaction_id=transaction_id,
                fields=fields,
                correlation_id=correlation_id,
            )

        return OperationResult(success=True, transaction=updated)

    async def delete(
        self,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            deleted = await self._store.delete_transaction(transaction_id)
        except StorageError as e:
            return await self._storage_failure("delete_transaction", e, correlation_id)

        if not deleted:
            return OperationResult(
                success=False,
                error_message=f"Transaction {transaction_id} not found",
            )

        if self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )

        return OperationResult(success=True)

    async def mark_paid(
        self,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Clear a pending or estimated transaction."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            updated = await self._store.update_transaction(
                transaction_id,
                TransactionPatch(status=TransactionStatus.CLEARED),
            )
        except StorageError as e:
            return await self._storage_failure("mark_paid", e, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_bill_paid(
                transaction_id=transaction_id,
                amount=str(updated.amount),
                correlation_id=correlation_id,
            )

        return OperationResult(success=True, transaction=updated)

    async def mark_reviewed(
        self,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Take a transaction out of the review inbox."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            updated = await self._store.update_transaction(
                transaction_id,
                TransactionPatch(reviewed=True),
            )
        except StorageError as e:
            return await self._storage_failure("mark_reviewed", e, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_transaction_reviewed(
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )

        return OperationResult(success=True, transaction=updated)

    async def reschedule(
        self,
        transaction_id: UUID,
        new_date: date,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """
        Move an expense to another day.

        Income is never moved: paydays are not under the user's control.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            current = await self._store.get_transaction(transaction_id)
            if current is None:
                raise NotFoundError(f"Transaction {transaction_id} not found")

            if current.type != TransactionType.EXPENSE:
                return OperationResult(
                    success=False,
                    transaction=current,
                    error_message="Only expenses can be rescheduled",
                )

            updated = await self._store.update_transaction(
                transaction_id,
                TransactionPatch(date=new_date),
            )
        except StorageError as e:
            return await self._storage_failure("reschedule", e, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_transaction_rescheduled(
                transaction_id=transaction_id,
                old_date=current.date.isoformat(),
                new_date=new_date.isoformat(),
                correlation_id=correlation_id,
            )

        return OperationResult(success=True, transaction=updated)


# =============================================================================
# BILL GENERATION
# =============================================================================

class BillGenerationFlow(_AuditedFlow):
    """
    Orchestrates recurring bill templates and monthly generation.

    Generation is a one-way stamp: templates are never consumed and
    generated transactions are not linked back by id. Running twice for
    the same month produces duplicates unless ``skip_existing`` is set.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        template_storage: BillTemplateStorageInterface,
        scheduler: Optional[BillScheduler] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(audit_logger)
        self._store = store
        self._templates = template_storage
        self._scheduler = scheduler or BillScheduler()

    async def list_templates(self) -> list[BillTemplate]:
        return await self._templates.list_templates()

    async def save_template(
        self,
        template: Union[BillTemplate, Mapping[str, Any]],
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """Create or replace a template (form input is validated first)."""
        correlation_id = correlation_id or create_correlation_id()

        if not isinstance(template, BillTemplate):
            try:
                template = parse_bill_template(template)
            except InputValidationError as e:
                return await self._validation_failure("bill_template", e.issues, correlation_id)

        try:
            await self._templates.save_template(template)
        except StorageError as e:
            return await self._storage_failure("save_template", e, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_template_saved(
                template_id=template.id,
                description=template.description,
                correlation_id=correlation_id,
            )

        return OperationResult(success=True)

    async def remove_template(
        self,
        template_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        try:
            removed = await self._templates.delete_template(template_id)
        except StorageError as e:
            return await self._storage_failure("delete_template", e, correlation_id)

        if not removed:
            return OperationResult(
                success=False,
                error_message=f"Bill template {template_id} not found",
            )

        if self._audit_logger:
            await self._audit_logger.log_template_removed(
                template_id=template_id,
                correlation_id=correlation_id,
            )

        return OperationResult(success=True)

    async def generate(
        self,
        month: Union[BillingMonth, str],
        user_id: str,
        skip_existing: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> BillGenerationResult:
        """
        Create one pending expense per template for ``month``.

        Args:
            month: Target month (BillingMonth or "YYYY-MM")
            user_id: Owner of the generated transactions
            skip_existing: Skip templates already generated for this month

        Returns:
            BillGenerationResult (success=False on bad month or store failure)
        """
        correlation_id = correlation_id or create_correlation_id()

        if not isinstance(month, BillingMonth):
            try:
                month = BillingMonth.parse(month)
            except ValueError as e:
                return BillGenerationResult(
                    success=False,
                    month=str(month),
                    error_message=str(e),
                )

        try:
            templates = await self._templates.list_templates()

            skip_keys = None
            if skip_existing:
                existing = await self._store.list_transactions(TransactionFilter(
                    type=TransactionType.EXPENSE,
                    date_from=month.first_day,
                    date_to=month.last_day,
                ))
                skip_keys = existing_source_keys(existing)

            generated = self._scheduler.generate_bills(
                templates, month, user_id, skip_keys=skip_keys
            )
            if generated:
                await self._store.insert_transactions(generated)
        except StorageError as e:
            await self._storage_failure("generate_bills", e, correlation_id)
            return BillGenerationResult(
                success=False,
                month=str(month),
                error_message=str(e),
            )

        skipped = len(templates) - len(generated)

        if self._audit_logger:
            await self._audit_logger.log_bills_generated(
                month=str(month),
                generated_count=len(generated),
                skipped_count=skipped,
                correlation_id=correlation_id,
            )

        return BillGenerationResult(
            success=True,
            month=str(month),
            generated_count=len(generated),
            skipped_count=skipped,
            transactions=generated,
        )


# =============================================================================
# PAYCHECK
# =============================================================================

class PaycheckFlow(_AuditedFlow):
    """
    Orchestrates the paycheck forecaster.

    The estimate is advisory: nothing is written until ``save_estimate``.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        calculator: Optional[PaycheckCalculator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(audit_logger)
        self._store = store
        self._calculator = calculator or PaycheckCalculator()

    async def estimate(self, hours: PaycheckInput, user_id: str) -> PaycheckEstimate:
        """Estimate net pay from the user's stored settings."""
        settings = await self._store.get_settings(user_id)
        return self._calculator.estimate(hours, settings)

    async def save_estimate(
        self,
        hours: PaycheckInput,
        user_id: str,
        pay_date: Optional[date] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        """
        Record the estimate as an estimated income transaction.

        The date defaults to the next custom payday, or today when the
        user has none.
        """
        correlation_id = correlation_id or create_correlation_id()
        today = today or date.today()

        try:
            settings = await self._store.get_settings(user_id)
            estimate = self._calculator.estimate(hours, settings)

            if estimate.net_pay <= 0:
                return OperationResult(
                    success=False,
                    error_message="Estimated net pay is zero; check your pay settings",
                )

            if pay_date is None:
                custom_payday = settings.custom_payday if settings else None
                pay_date = next_payday_from_settings(today, custom_payday) or today

            txn = Transaction(
                user_id=user_id,
                amount=to_cents(estimate.net_pay),
                date=pay_date,
                description=ESTIMATED_PAYCHECK_DESCRIPTION,
                category=ESTIMATED_PAYCHECK_CATEGORY,
                type=TransactionType.INCOME,
                status=TransactionStatus.ESTIMATED,
            )
            await self._store.insert_transactions([txn])
        except StorageError as e:
            return await self._storage_failure("save_estimate", e, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_paycheck_estimated(
                transaction_id=txn.id,
                net_pay=str(txn.amount),
                pay_date=txn.date.isoformat(),
                correlation_id=correlation_id,
            )

        return OperationResult(success=True, transaction=txn)


# =============================================================================
# SETTINGS
# =============================================================================

class SettingsFlow(_AuditedFlow):
    """Per-user pay settings and the category list."""

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(audit_logger)
        self._store = store

    async def get(self, user_id: str) -> UserSettings:
        """Stored settings, or all-zero defaults for a new user."""
        settings = await self._store.get_settings(user_id)
        return settings or UserSettings(user_id=user_id)

    async def save(
        self,
        settings: Union[UserSettings, Mapping[str, Any]],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        if isinstance(settings, UserSettings):
            settings = settings.model_dump()
        try:
            parsed = parse_user_settings(settings, user_id)
        except InputValidationError as e:
            return await self._validation_failure("settings", e.issues, correlation_id)

        try:
            await self._store.save_settings(parsed)
        except StorageError as e:
            return await self._storage_failure("save_settings", e, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_settings_updated(
                user_id=user_id,
                correlation_id=correlation_id,
            )

        return OperationResult(success=True)

    async def list_categories(self) -> list[Category]:
        return await self._store.list_categories()

    async def save_category(
        self,
        category: Category,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()
        try:
            await self._store.save_category(category)
        except StorageError as e:
            return await self._storage_failure("save_category", e, correlation_id)
        return OperationResult(success=True)


# =============================================================================
# WIRING
# =============================================================================

@dataclass
class AppComponents:
    """Everything the UI needs, wired to one record store."""

    store: RecordStoreInterface
    notifier: ChangeNotifier
    queries: DashboardQueries
    transactions: TransactionFlow
    bills: BillGenerationFlow
    paycheck: PaycheckFlow
    settings: SettingsFlow
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(
    backend: Optional[str] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        backend: "memory" or "google_sheets". Defaults to the configured
                 CASHFLOW_STORAGE_BACKEND. If Google Sheets cannot be
                 reached the in-memory store is used instead.

    Returns:
        AppComponents
    """
    app_settings = get_settings().app
    backend = backend or app_settings.storage_backend

    notifier = ChangeNotifier()
    sheets_client = None
    store: RecordStoreInterface
    template_storage: BillTemplateStorageInterface
    audit_storage: AuditStorageInterface

    if backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
        except Exception as e:
            # Storage not configured - continue with the in-memory store
            logger.warning("storage_not_configured", backend=backend, error=str(e))
            sheets_client = None

    if sheets_client is not None:
        store = GoogleSheetsRecordStore(sheets_client, notifier)
        template_storage = GoogleSheetsBillTemplateStorage(sheets_client, notifier)
        audit_storage = GoogleSheetsAuditStorage(sheets_client)
    else:
        store = InMemoryRecordStore(notifier)
        template_storage = InMemoryBillTemplateStorage(notifier)
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    queries = DashboardQueries(
        store,
        cache=SnapshotCache(notifier),
        projector=BalanceProjector(SameDayPolicy(app_settings.same_day_policy)),
        aggregator=BudgetAggregator(app_settings.budget_warning_percent),
    )

    return AppComponents(
        store=store,
        notifier=notifier,
        queries=queries,
        transactions=TransactionFlow(store, audit_logger),
        bills=BillGenerationFlow(store, template_storage, audit_logger=audit_logger),
        paycheck=PaycheckFlow(
            store,
            PaycheckCalculator(app_settings.overtime_multiplier),
            audit_logger,
        ),
        settings=SettingsFlow(store, audit_logger),
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
