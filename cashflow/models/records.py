"""
Core Record Models for Cashflow

These models define the strict schemas for the records held in the
record store. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are always non-negative magnitudes.
The sign of a transaction is carried by its type, never by its amount.
"""

import calendar
import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction (and of the category it belongs to)."""
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, Enum):
    """
    Settlement state of a transaction.

    CRITICAL: Only CLEARED transactions count toward the current balance.
    """
    CLEARED = "cleared"      # Settled against the real account
    PENDING = "pending"      # Expected but not yet settled (e.g. unpaid bill)
    ESTIMATED = "estimated"  # Projected (e.g. forecasted paycheck)


class RecordTable(str, Enum):
    """Tables of the record store that emit change notifications."""
    TRANSACTIONS = "transactions"
    CATEGORIES = "categories"
    SETTINGS = "settings"
    BILL_TEMPLATES = "bill_templates"


Money = Annotated[Decimal, Field(ge=0, decimal_places=2)]


# =============================================================================
# CORE RECORDS
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense entry.

    Created by user entry, paycheck estimation or bill generation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner of the transaction"
    )
    amount: Money = Field(
        ...,
        description="Magnitude of the transaction"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the transaction"
    )
    description: str = Field(
        default="",
        max_length=200,
    )
    category: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Legacy denormalized category name"
    )
    category_id: Optional[UUID] = Field(
        default=None,
        description="Reference to Category.id"
    )
    type: TransactionType
    status: TransactionStatus = TransactionStatus.CLEARED
    reviewed: bool = False

    # Idempotency key stamped by bill generation: "<template-id>:<YYYY-MM>"
    source_key: Optional[str] = Field(
        default=None,
        max_length=100,
    )

    @property
    def signed_amount(self) -> Decimal:
        """Contribution of this transaction to a balance."""
        if self.type == TransactionType.INCOME:
            return self.amount
        return -self.amount

    @property
    def is_cleared(self) -> bool:
        return self.status == TransactionStatus.CLEARED


class Category(BaseModel):
    """
    Spending or income category.

    A category's type constrains which transactions may reference it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    type: TransactionType
    group: str = Field(
        default="Other",
        max_length=100,
        description="Free-text label used to group categories in the UI"
    )
    budget_limit: Money = Field(
        default=Decimal("0"),
        description="Monthly budget (0 means no budget set)"
    )

    @field_validator('budget_limit', mode='before')
    @classmethod
    def absent_limit_is_zero(cls, v):
        """A missing limit means "no budget"."""
        return Decimal("0") if v is None else v

    @property
    def has_budget(self) -> bool:
        return self.budget_limit > 0


class BillTemplate(BaseModel):
    """
    Recurring expense definition.

    Consumed (never deleted) by bill generation. Generated transactions
    are not linked back by id; generation is a one-way stamp.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(
        default="New Bill",
        min_length=1,
        max_length=200,
    )
    amount: Money = Decimal("0")
    day_of_month: int = Field(
        default=1,
        ge=1,
        le=31,
        description="Day the bill falls due (clamped to the month length)"
    )
    category: str = Field(
        default="Bills",
        max_length=100,
    )


class UserSettings(BaseModel):
    """Per-user pay settings used by the paycheck forecaster."""

    user_id: str = Field(..., min_length=1)
    hourly_rate: Decimal = Field(default=Decimal("0"), ge=0)
    tax_rate_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    fixed_deductions: Decimal = Field(default=Decimal("0"), ge=0)
    custom_payday: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of the month the user usually gets paid"
    )

    @field_validator('custom_payday', mode='before')
    @classmethod
    def zero_payday_is_unset(cls, v):
        """The settings form submits 0 for "no custom payday"."""
        if v in (0, "0", ""):
            return None
        return v


# =============================================================================
# STORE QUERY MODELS
# =============================================================================

class TransactionFilter(BaseModel):
    """
    Equality and range filter for listing transactions.

    Every field is optional; unset fields do not constrain the result.
    """

    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    exclude_status: Optional[TransactionStatus] = None
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None
    category_id: Optional[UUID] = None
    reviewed: Optional[bool] = None

    @model_validator(mode='after')
    def validate_range(self) -> 'TransactionFilter':
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        return self

    def matches(self, txn: Transaction) -> bool:
        if self.type is not None and txn.type != self.type:
            return False
        if self.status is not None and txn.status != self.status:
            return False
        if self.exclude_status is not None and txn.status == self.exclude_status:
            return False
        if self.date_from is not None and txn.date < self.date_from:
            return False
        if self.date_to is not None and txn.date > self.date_to:
            return False
        if self.category_id is not None and txn.category_id != self.category_id:
            return False
        if self.reviewed is not None and txn.reviewed != self.reviewed:
            return False
        return True


class TransactionPatch(BaseModel):
    """Partial update of a transaction. Only fields that are set are applied."""

    amount: Optional[Money] = None
    date: Optional[dt.date] = None
    description: Optional[str] = Field(default=None, max_length=200)
    category: Optional[str] = None
    category_id: Optional[UUID] = None
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    reviewed: Optional[bool] = None

    def apply(self, txn: Transaction) -> Transaction:
        """Return a copy of ``txn`` with the patch applied (re-validated)."""
        changes = self.model_dump(exclude_unset=True)
        return Transaction.model_validate({**txn.model_dump(), **changes})


# =============================================================================
# CALENDAR HELPERS
# =============================================================================

class BillingMonth(BaseModel):
    """A calendar month targeted by bill generation or budgeting."""
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def parse(cls, value: str) -> 'BillingMonth':
        """Parse a ``YYYY-MM`` string."""
        try:
            year_str, month_str = value.strip().split("-")
            return cls(year=int(year_str), month=int(month_str))
        except (AttributeError, ValueError) as e:
            raise ValueError(f"Invalid month '{value}', expected YYYY-MM") from e

    @classmethod
    def of(cls, day: dt.date) -> 'BillingMonth':
        return cls(year=day.year, month=day.month)

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def first_day(self) -> dt.date:
        return dt.date(self.year, self.month, 1)

    @property
    def last_day(self) -> dt.date:
        return dt.date(self.year, self.month, self.days_in_month)

    def clamp_day(self, day_of_month: int) -> dt.date:
        """Date for ``day_of_month``, clamped to the last valid day."""
        return dt.date(self.year, self.month, min(day_of_month, self.days_in_month))

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found in user input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'type_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage input validation.

    Stage 1: Schema validation (types, required fields, formats)
    Stage 2: Semantic validation (checks against categories)
    """

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def errors_for(self, field: str) -> list[ValidationIssue]:
        return [i for i in self.issues if i.field == field and i.severity == "error"]
