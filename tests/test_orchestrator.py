"""
Integration tests for the write-side flows.

All flows run against the in-memory record store with an in-memory
audit trail, so every test can also check what was audited.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from cashflow.audit import AuditLogger
from cashflow.config import get_settings
from cashflow.models.audit import AuditEventType
from cashflow.models.forecast import PaycheckInput
from cashflow.models.records import (
    BillingMonth,
    BillTemplate,
    Category,
    Transaction,
    TransactionPatch,
    TransactionStatus,
    TransactionType,
    UserSettings,
)
from cashflow.orchestrator import (
    BillGenerationFlow,
    PaycheckFlow,
    SettingsFlow,
    TransactionFlow,
    create_app_components,
)
from cashflow.services.notifications import ChangeNotifier
from cashflow.services.storage import (
    ConnectionError,
    InMemoryAuditStorage,
    InMemoryBillTemplateStorage,
    InMemoryRecordStore,
)


class UnreachableStore(InMemoryRecordStore):
    """Store whose writes always fail."""

    async def insert_transactions(self, batch):
        raise ConnectionError("Sheets API unavailable")

    async def update_transaction(self, transaction_id, patch):
        raise ConnectionError("Sheets API unavailable")

    async def save_settings(self, settings):
        raise ConnectionError("Sheets API unavailable")


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def store() -> InMemoryRecordStore:
    store = InMemoryRecordStore(ChangeNotifier())
    asyncio.run(store.save_category(
        Category(name="Groceries", type=TransactionType.EXPENSE, budget_limit=Decimal("300"))
    ))
    asyncio.run(store.save_category(Category(name="Salary", type=TransactionType.INCOME)))
    return store


def _event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in asyncio.run(audit_storage.get_recent_events())]


def _form(**overrides) -> dict:
    form = {
        "type": "expense",
        "amount": "42.50",
        "date": "2024-04-03",
        "description": "Weekly shop",
        "category": "Groceries",
    }
    form.update(overrides)
    return form


class TestTransactionFlow:
    """Tests for TransactionFlow."""

    def test_create(self, store, audit_logger, audit_storage):
        """Valid input is inserted with the category reference resolved."""
        flow = TransactionFlow(store, audit_logger)
        result = asyncio.run(flow.create(_form(), "u1", today=date(2024, 4, 3)))

        assert result.success is True
        txn = result.transaction
        assert txn.amount == Decimal("42.50")
        assert txn.status == TransactionStatus.CLEARED
        assert txn.category_id is not None
        assert asyncio.run(store.get_transaction(txn.id)) == txn
        assert _event_types(audit_storage) == [AuditEventType.TRANSACTION_CREATED]

    def test_create_rejects_non_numeric_amount(self, store, audit_logger, audit_storage):
        """Bad input never reaches the store and is audited."""
        flow = TransactionFlow(store, audit_logger)
        result = asyncio.run(flow.create(_form(amount="twelve"), "u1"))

        assert result.success is False
        assert result.issues
        assert asyncio.run(store.list_transactions()) == []
        assert _event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    def test_create_rejects_category_type_mismatch(self, store, audit_logger):
        flow = TransactionFlow(store, audit_logger)
        result = asyncio.run(flow.create(_form(category="Salary"), "u1"))
        assert result.success is False
        assert "cannot hold" in result.issues[0]

    def test_create_reports_non_text_description(self, store, audit_logger, audit_storage):
        flow = TransactionFlow(store, audit_logger)
        result = asyncio.run(flow.create(_form(description=5), "u1"))

        assert result.success is False
        assert result.error_message == "Invalid input"
        assert asyncio.run(store.list_transactions()) == []
        assert _event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    def test_store_error_is_failure_value(self, audit_logger, audit_storage):
        """A store failure comes back as success=False, not an exception."""
        store = UnreachableStore()
        flow = TransactionFlow(store, audit_logger)
        result = asyncio.run(flow.create(_form(category="Anything"), "u1"))

        # No categories stored, so the semantic stage rejects first
        assert result.success is False

        asyncio.run(store.save_category(Category(name="Anything", type=TransactionType.EXPENSE)))
        result = asyncio.run(flow.create(_form(category="Anything"), "u1"))
        assert result.success is False
        assert result.error_message == "Sheets API unavailable"
        assert _event_types(audit_storage)[0] == AuditEventType.STORAGE_ERROR

    def test_update(self, store, audit_logger):
        flow = TransactionFlow(store, audit_logger)
        created = asyncio.run(flow.create(_form(), "u1")).transaction

        result = asyncio.run(flow.update(created.id, TransactionPatch(description="Big shop")))
        assert result.success is True
        assert result.transaction.description == "Big shop"

    def test_update_rejects_type_change_against_category(self, store, audit_logger):
        flow = TransactionFlow(store, audit_logger)
        created = asyncio.run(flow.create(_form(), "u1")).transaction

        result = asyncio.run(flow.update(created.id, TransactionPatch(type=TransactionType.INCOME)))
        assert result.success is False
        assert asyncio.run(store.get_transaction(created.id)).type == TransactionType.EXPENSE

    def test_update_missing(self, store, audit_logger):
        result = asyncio.run(TransactionFlow(store, audit_logger).update(
            uuid4(), TransactionPatch(reviewed=True)
        ))
        assert result.success is False
        assert "not found" in result.error_message

    def test_delete(self, store, audit_logger, audit_storage):
        flow = TransactionFlow(store, audit_logger)
        created = asyncio.run(flow.create(_form(), "u1")).transaction

        assert asyncio.run(flow.delete(created.id)).success is True
        assert asyncio.run(flow.delete(created.id)).success is False
        assert AuditEventType.TRANSACTION_DELETED in _event_types(audit_storage)

    def test_mark_paid(self, store, audit_logger, audit_storage):
        flow = TransactionFlow(store, audit_logger)
        created = asyncio.run(flow.create(_form(status="pending"), "u1")).transaction

        result = asyncio.run(flow.mark_paid(created.id))
        assert result.transaction.status == TransactionStatus.CLEARED
        assert _event_types(audit_storage)[0] == AuditEventType.BILL_PAID

    def test_mark_reviewed(self, store, audit_logger):
        flow = TransactionFlow(store, audit_logger)
        created = asyncio.run(flow.create(_form(), "u1")).transaction

        result = asyncio.run(flow.mark_reviewed(created.id))
        assert result.transaction.reviewed is True

    def test_reschedule_expense(self, store, audit_logger, audit_storage):
        flow = TransactionFlow(store, audit_logger)
        created = asyncio.run(flow.create(_form(), "u1")).transaction

        result = asyncio.run(flow.reschedule(created.id, date(2024, 4, 20)))
        assert result.success is True
        assert result.transaction.date == date(2024, 4, 20)
        assert _event_types(audit_storage)[0] == AuditEventType.TRANSACTION_RESCHEDULED

    def test_income_cannot_be_rescheduled(self, store, audit_logger):
        flow = TransactionFlow(store, audit_logger)
        created = asyncio.run(flow.create(
            _form(type="income", category="Salary", description="Pay"), "u1"
        )).transaction

        result = asyncio.run(flow.reschedule(created.id, date(2024, 4, 20)))
        assert result.success is False
        assert asyncio.run(store.get_transaction(created.id)).date == date(2024, 4, 3)


class TestBillGenerationFlow:
    """Tests for BillGenerationFlow."""

    @pytest.fixture
    def flow(self, store, audit_logger) -> BillGenerationFlow:
        flow = BillGenerationFlow(store, InMemoryBillTemplateStorage(store.notifier), audit_logger=audit_logger)
        asyncio.run(flow.save_template(BillTemplate(description="Internet", amount=Decimal("50"), day_of_month=1)))
        asyncio.run(flow.save_template(BillTemplate(description="Rent", amount=Decimal("75"), day_of_month=31)))
        return flow

    def test_generate_april(self, flow, store):
        result = asyncio.run(flow.generate("2024-04", "u1"))

        assert result.success is True
        assert result.month == "2024-04"
        assert result.generated_count == 2
        stored = asyncio.run(store.list_transactions())
        assert [t.date for t in stored] == [date(2024, 4, 1), date(2024, 4, 30)]
        assert all(t.status == TransactionStatus.PENDING for t in stored)

    def test_generating_twice_duplicates(self, flow, store):
        """Without skip_existing a second run inserts the bills again."""
        april = BillingMonth(year=2024, month=4)
        asyncio.run(flow.generate(april, "u1"))
        asyncio.run(flow.generate(april, "u1"))
        assert len(asyncio.run(store.list_transactions())) == 4

    def test_skip_existing(self, flow, store):
        april = BillingMonth(year=2024, month=4)
        asyncio.run(flow.generate(april, "u1"))
        result = asyncio.run(flow.generate(april, "u1", skip_existing=True))

        assert result.generated_count == 0
        assert result.skipped_count == 2
        assert len(asyncio.run(store.list_transactions())) == 2

    def test_bad_month(self, flow):
        result = asyncio.run(flow.generate("April", "u1"))
        assert result.success is False
        assert "YYYY-MM" in result.error_message

    def test_store_failure(self, audit_logger, audit_storage):
        templates = InMemoryBillTemplateStorage()
        asyncio.run(templates.save_template(BillTemplate(amount=Decimal("10"))))
        flow = BillGenerationFlow(UnreachableStore(), templates, audit_logger=audit_logger)

        result = asyncio.run(flow.generate("2024-04", "u1"))
        assert result.success is False
        assert result.generated_count == 0
        assert _event_types(audit_storage) == [AuditEventType.STORAGE_ERROR]

    def test_template_crud(self, flow, audit_storage):
        templates = asyncio.run(flow.list_templates())
        assert [t.description for t in templates] == ["Internet", "Rent"]

        assert asyncio.run(flow.remove_template(templates[0].id)).success is True
        assert asyncio.run(flow.remove_template(templates[0].id)).success is False
        assert [t.description for t in asyncio.run(flow.list_templates())] == ["Rent"]
        assert AuditEventType.BILL_TEMPLATE_REMOVED in _event_types(audit_storage)

    def test_template_form_validation(self, flow):
        result = asyncio.run(flow.save_template({"description": "Gym", "amount": "abc"}))
        assert result.success is False

        result = asyncio.run(flow.save_template({"description": "Gym", "amount": "25", "day_of_month": 40}))
        assert result.success is False

        result = asyncio.run(flow.save_template({"description": "Gym", "amount": "25", "day_of_month": 15}))
        assert result.success is True

    def test_new_template_saved_with_zero_amount(self, flow):
        """The dashboard form starts a template at 0.00."""
        result = asyncio.run(flow.save_template(
            {"description": "New Bill", "amount": "0", "day_of_month": 1}
        ))

        assert result.success is True
        saved = [t for t in asyncio.run(flow.list_templates()) if t.description == "New Bill"]
        assert saved[0].amount == Decimal("0")

    def test_negative_template_rejected(self, flow):
        result = asyncio.run(flow.save_template(
            {"description": "Refund", "amount": "-10", "day_of_month": 1}
        ))
        assert result.success is False
        assert result.issues == ["Amount cannot be negative"]


class TestPaycheckFlow:
    """Tests for PaycheckFlow."""

    def test_estimate_uses_stored_settings(self, store, audit_logger):
        asyncio.run(store.save_settings(UserSettings(
            user_id="u1",
            hourly_rate=Decimal("20"),
            tax_rate_percent=Decimal("10"),
        )))
        estimate = asyncio.run(PaycheckFlow(store, audit_logger=audit_logger).estimate(
            PaycheckInput(hours=Decimal("10")), "u1"
        ))
        assert estimate.net_pay == Decimal("180")

    def test_save_estimate_on_custom_payday(self, store, audit_logger, audit_storage):
        asyncio.run(store.save_settings(UserSettings(
            user_id="u1",
            hourly_rate=Decimal("17.333"),
            custom_payday=15,
        )))
        flow = PaycheckFlow(store, audit_logger=audit_logger)
        result = asyncio.run(flow.save_estimate(
            PaycheckInput(hours=Decimal("1")), "u1", today=date(2024, 4, 20)
        ))

        txn = result.transaction
        assert result.success is True
        assert txn.amount == Decimal("17.33")
        assert txn.date == date(2024, 5, 15)
        assert txn.type == TransactionType.INCOME
        assert txn.status == TransactionStatus.ESTIMATED
        assert txn.description == "Estimated Paycheck"
        assert txn.category == "Income"
        assert _event_types(audit_storage) == [AuditEventType.PAYCHECK_ESTIMATED]

    def test_save_estimate_defaults_to_today(self, store, audit_logger):
        asyncio.run(store.save_settings(UserSettings(user_id="u1", hourly_rate=Decimal("10"))))
        result = asyncio.run(PaycheckFlow(store, audit_logger=audit_logger).save_estimate(
            PaycheckInput(), "u1", today=date(2024, 4, 20)
        ))
        assert result.transaction.date == date(2024, 4, 20)

    def test_zero_estimate_not_saved(self, store, audit_logger):
        result = asyncio.run(PaycheckFlow(store, audit_logger=audit_logger).save_estimate(
            PaycheckInput(), "nobody"
        ))
        assert result.success is False
        assert asyncio.run(store.list_transactions()) == []


class TestSettingsFlow:
    """Tests for SettingsFlow."""

    def test_defaults_for_new_user(self, store, audit_logger):
        settings = asyncio.run(SettingsFlow(store, audit_logger).get("new"))
        assert settings.hourly_rate == Decimal("0")
        assert settings.custom_payday is None

    def test_save_form(self, store, audit_logger, audit_storage):
        flow = SettingsFlow(store, audit_logger)
        result = asyncio.run(flow.save(
            {"hourly_rate": "22.5", "tax_rate_percent": "12", "custom_payday": 0},
            "u1",
        ))

        assert result.success is True
        saved = asyncio.run(flow.get("u1"))
        assert saved.hourly_rate == Decimal("22.5")
        assert saved.custom_payday is None
        assert _event_types(audit_storage) == [AuditEventType.SETTINGS_UPDATED]

    def test_out_of_range_rejected(self, store, audit_logger):
        result = asyncio.run(SettingsFlow(store, audit_logger).save({"tax_rate_percent": "150"}, "u1"))
        assert result.success is False
        assert result.issues

    def test_store_failure(self, audit_logger):
        result = asyncio.run(SettingsFlow(UnreachableStore(), audit_logger).save(
            UserSettings(user_id="u1"), "u1"
        ))
        assert result.success is False
        assert result.error_message == "Sheets API unavailable"


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_memory_backend(self, monkeypatch):
        monkeypatch.setenv("CASHFLOW_STORAGE_BACKEND", "memory")
        get_settings.cache_clear()
        try:
            components = create_app_components()
        finally:
            get_settings.cache_clear()

        assert isinstance(components.store, InMemoryRecordStore)
        assert components.sheets_client is None

    def test_flows_share_one_store(self):
        get_settings.cache_clear()
        components = create_app_components(backend="memory")
        get_settings.cache_clear()

        result = asyncio.run(components.bills.save_template(
            BillTemplate(description="Rent", amount=Decimal("900"), day_of_month=1)
        ))
        assert result.success is True
        asyncio.run(components.bills.generate("2024-04", "u1"))

        pending = asyncio.run(components.queries.pending_bills())
        assert [t.description for t in pending] == ["Rent"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
