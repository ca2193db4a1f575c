"""
Data Models Package

This package contains all Pydantic models used in Cashflow.
All data flowing through the system must conform to these schemas.
"""

from cashflow.models.records import (
    BillingMonth,
    BillTemplate,
    Category,
    RecordTable,
    Transaction,
    TransactionFilter,
    TransactionPatch,
    TransactionStatus,
    TransactionType,
    UserSettings,
    ValidationIssue,
    ValidationResult,
)
from cashflow.models.forecast import (
    BalanceSummary,
    BillGenerationResult,
    BudgetGroup,
    BudgetStatus,
    BudgetSummary,
    CalendarDay,
    CategoryBudget,
    OperationResult,
    PaycheckEstimate,
    PaycheckInput,
    ProjectionPoint,
)
from cashflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "BillingMonth",
    "BillTemplate",
    "Category",
    "RecordTable",
    "Transaction",
    "TransactionFilter",
    "TransactionPatch",
    "TransactionStatus",
    "TransactionType",
    "UserSettings",
    "ValidationIssue",
    "ValidationResult",
    # Derived views
    "BalanceSummary",
    "BillGenerationResult",
    "BudgetGroup",
    "BudgetStatus",
    "BudgetSummary",
    "CalendarDay",
    "CategoryBudget",
    "OperationResult",
    "PaycheckEstimate",
    "PaycheckInput",
    "ProjectionPoint",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
