"""Tests for configuration loading and audit logging."""

import asyncio
import pytest
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from cashflow.audit import AuditLogger, create_correlation_id
from cashflow.config import AppSettings, get_settings, validate_all_settings
from cashflow.models.audit import AuditEvent, AuditEventType
from cashflow.services.storage import AuditStorageInterface, InMemoryAuditStorage


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self, monkeypatch):
        for name in (
            "CASHFLOW_STORAGE_BACKEND",
            "CASHFLOW_SAME_DAY_POLICY",
            "CASHFLOW_BUDGET_WARNING_PERCENT",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = AppSettings(_env_file=None)
        assert settings.storage_backend == "memory"
        assert settings.same_day_policy == "count_twice"
        assert settings.budget_warning_percent == Decimal("85")
        assert settings.overtime_multiplier == Decimal("1.5")

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CASHFLOW_SAME_DAY_POLICY", "baseline_only")
        monkeypatch.setenv("CASHFLOW_BUDGET_WARNING_PERCENT", "90")

        settings = get_settings().app
        assert settings.same_day_policy == "baseline_only"
        assert settings.budget_warning_percent == Decimal("90")

    def test_invalid_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("CASHFLOW_STORAGE_BACKEND", "postgres")
        with pytest.raises(ValidationError):
            AppSettings(_env_file=None)

    def test_validate_all_reports_missing_sheets_config(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        status = validate_all_settings()
        assert status["app"] is True
        assert status["google_sheets"] is False
        assert "google_sheets_error" in status

    def test_sheets_settings_read_from_env_file(self, monkeypatch, tmp_path):
        """Sheets settings come from the same .env file as the backend choice."""
        for name in (
            "CASHFLOW_STORAGE_BACKEND",
            "GOOGLE_SHEETS_CREDENTIALS_PATH",
            "GOOGLE_SHEETS_SPREADSHEET_ID",
        ):
            monkeypatch.delenv(name, raising=False)
        credentials = tmp_path / "service_account.json"
        credentials.write_text("{}")
        (tmp_path / ".env").write_text(
            "CASHFLOW_STORAGE_BACKEND=google_sheets\n"
            f"GOOGLE_SHEETS_CREDENTIALS_PATH={credentials}\n"
            "GOOGLE_SHEETS_SPREADSHEET_ID=sheet-123\n",
            encoding="utf-8",
        )
        monkeypatch.chdir(tmp_path)

        settings = get_settings()
        assert settings.app.storage_backend == "google_sheets"
        assert settings.google_sheets.credentials_path == str(credentials)
        assert settings.google_sheets.spreadsheet_id == "sheet-123"
        assert validate_all_settings()["google_sheets"] is True


class BrokenAuditStorage(AuditStorageInterface):
    async def append_event(self, event):
        raise RuntimeError("sheet is read-only")

    async def get_recent_events(self, limit=100):
        return []


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_persists_events(self):
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        correlation_id = create_correlation_id()

        asyncio.run(logger.log_bills_generated("2024-04", 2, correlation_id=correlation_id))

        events = asyncio.run(storage.get_recent_events())
        assert events[0].event_type == AuditEventType.BILLS_GENERATED
        assert events[0].correlation_id == correlation_id

    def test_local_only(self):
        event = AuditEvent(event_type=AuditEventType.SYSTEM_ERROR, description="x")
        assert asyncio.run(AuditLogger().log(event)) is True

    def test_storage_failure_not_raised(self):
        """Audit persistence failures are logged, never raised."""
        logger = AuditLogger(BrokenAuditStorage())
        assert asyncio.run(logger.log(
            AuditEvent(event_type=AuditEventType.TRANSACTION_DELETED, description="x", entity_id=uuid4())
        )) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
