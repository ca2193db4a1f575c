"""
Two-Stage Input Validation

DESIGN DECISION: Form input is validated in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Amount parsing (numeric, positive, at most two decimal places)
- Date parsing (ISO YYYY-MM-DD)
- Type and status enum membership

STAGE 2 - SEMANTIC VALIDATION:
- Category reference must exist
- Category type must match the transaction type
- Far-future dates are flagged for review

Stage 2 is skipped when stage 1 fails.

IMPORTANT: Validation NEVER silently fixes issues.
A value that cannot be parsed is reported, not coerced to zero.
"""

import datetime as dt
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from pydantic import ValidationError

from cashflow.models.records import (
    BillTemplate,
    Category,
    Transaction,
    TransactionStatus,
    TransactionType,
    UserSettings,
    ValidationIssue,
    ValidationResult,
)


# Dates further out than this are accepted but flagged
FAR_FUTURE_DAYS = 366


class InputValidationError(Exception):
    """Raised when form input cannot be turned into a record."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__(
            "; ".join(f"{i.field}: {i.message}" for i in issues) or "Invalid input"
        )


# =============================================================================
# FIELD PARSERS
# =============================================================================

def _not_text(field: str, value: Any) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="invalid_format",
        message=f"{field.capitalize()} must be text, got {type(value).__name__}",
        severity="error",
    )


def _is_member(value: Any, enum_cls: type[Enum]) -> bool:
    """True when ``value`` is the string value of one of ``enum_cls``'s members."""
    return isinstance(value, str) and value in {m.value for m in enum_cls}


def parse_amount(
    value: Any,
    allow_zero: bool = False,
) -> tuple[Optional[Decimal], Optional[ValidationIssue]]:
    """
    Parse a money amount from form input.

    Transactions need a positive amount; bill templates may start at zero
    (``allow_zero=True``). Negative amounts are always rejected.

    Returns (amount, None) on success or (None, issue) on failure.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, ValidationIssue(
            field="amount",
            issue_type="missing",
            message="Amount is required",
            severity="error",
        )

    if isinstance(value, bool):
        return None, ValidationIssue(
            field="amount",
            issue_type="invalid_format",
            message="Amount must be a number",
            severity="error",
        )

    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None, ValidationIssue(
            field="amount",
            issue_type="invalid_format",
            message=f"'{value}' is not a valid amount",
            severity="error",
            suggested_fix="Enter a number such as 42.50",
        )

    if not amount.is_finite():
        return None, ValidationIssue(
            field="amount",
            issue_type="invalid_format",
            message="Amount must be a finite number",
            severity="error",
        )

    if amount < 0 or (amount == 0 and not allow_zero):
        return None, ValidationIssue(
            field="amount",
            issue_type="invalid_value",
            message=(
                "Amount cannot be negative" if allow_zero
                else "Amount must be greater than zero"
            ),
            severity="error",
            suggested_fix="Use the type field to record money going out",
        )

    if amount.normalize().as_tuple().exponent < -2:
        return None, ValidationIssue(
            field="amount",
            issue_type="invalid_format",
            message="Amount cannot have more than two decimal places",
            severity="error",
        )

    return amount.quantize(Decimal("0.01")), None


def parse_date(value: Any, field: str = "date") -> tuple[Optional[dt.date], Optional[ValidationIssue]]:
    """Parse an ISO calendar date from form input."""
    if isinstance(value, dt.datetime):
        return value.date(), None
    if isinstance(value, dt.date):
        return value, None
    if value is None or (isinstance(value, str) and not value.strip()):
        return None, ValidationIssue(
            field=field,
            issue_type="missing",
            message="Date is required",
            severity="error",
        )
    try:
        return dt.date.fromisoformat(str(value).strip()), None
    except ValueError:
        return None, ValidationIssue(
            field=field,
            issue_type="invalid_format",
            message=f"'{value}' is not a valid date",
            severity="error",
            suggested_fix="Use the YYYY-MM-DD format",
        )


def _issues_from_pydantic(error: ValidationError) -> list[ValidationIssue]:
    """Convert a pydantic ValidationError into validation issues."""
    issues = []
    for err in error.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "input"
        issues.append(ValidationIssue(
            field=field,
            issue_type=err.get("type", "invalid_value"),
            message=err.get("msg", "Invalid value"),
            severity="error",
        ))
    return issues


# =============================================================================
# TRANSACTION VALIDATOR
# =============================================================================

class TransactionInputValidator:
    """
    Validates transaction form input through a two-stage pipeline.

    Stage 1: Schema validation (runs on the raw form values)
    Stage 2: Semantic validation (needs the category list)
    """

    def __init__(
        self,
        categories: Optional[list[Category]] = None,
        today: Optional[dt.date] = None,
    ):
        """
        Initialize validator.

        Args:
            categories: Known categories for reference checks.
                        If None, category checks are skipped.
            today: Reference date for far-future detection.
        """
        self._categories = categories
        self._today = today or dt.date.today()

    def _find_category(self, raw: Mapping[str, Any]) -> Optional[Category]:
        if self._categories is None:
            return None

        category_id = raw.get("category_id")
        if category_id:
            for cat in self._categories:
                if str(cat.id) == str(category_id):
                    return cat
            return None

        name = (raw.get("category") or "").strip().lower()
        for cat in self._categories:
            if cat.name.lower() == name:
                return cat
        return None

    def _validate_schema(
        self,
        raw: Mapping[str, Any],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        _, amount_issue = parse_amount(raw.get("amount"))
        if amount_issue:
            issues.append(amount_issue)

        _, date_issue = parse_date(raw.get("date"))
        if date_issue:
            issues.append(date_issue)

        description = raw.get("description")
        if description is not None and not isinstance(description, str):
            issues.append(_not_text("description", description))
        elif not (description or "").strip():
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
                severity="error",
            ))

        category_name = raw.get("category")
        if category_name is not None and not isinstance(category_name, str):
            issues.append(_not_text("category", category_name))
        elif not (category_name or "").strip() and not raw.get("category_id"):
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))

        category_id = raw.get("category_id")
        if category_id and not isinstance(category_id, UUID):
            try:
                UUID(str(category_id))
            except ValueError:
                issues.append(ValidationIssue(
                    field="category_id",
                    issue_type="invalid_format",
                    message=f"'{category_id}' is not a valid category reference",
                    severity="error",
                ))

        txn_type = raw.get("type")
        if not isinstance(txn_type, TransactionType) and not _is_member(txn_type, TransactionType):
            issues.append(ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message="Type must be 'income' or 'expense'",
                severity="error",
            ))

        status = raw.get("status")
        if (
            status is not None
            and not isinstance(status, TransactionStatus)
            and not _is_member(status, TransactionStatus)
        ):
            issues.append(ValidationIssue(
                field="status",
                issue_type="invalid_value",
                message="Status must be 'cleared', 'pending' or 'estimated'",
                severity="error",
            ))

        has_errors = any(i.severity == "error" for i in issues)
        return not has_errors, issues

    def _validate_semantic(
        self,
        raw: Mapping[str, Any],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if self._categories is not None:
            category = self._find_category(raw)
            if category is None:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="unknown_reference",
                    message="Category does not exist",
                    severity="error",
                    suggested_fix="Pick one of the existing categories",
                ))
            elif category.type.value != TransactionType(raw.get("type")).value:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="type_mismatch",
                    message=(
                        f"Category '{category.name}' is an {category.type.value} "
                        f"category and cannot hold {TransactionType(raw.get('type')).value} "
                        "transactions"
                    ),
                    severity="error",
                ))

        txn_date, _ = parse_date(raw.get("date"))
        if txn_date and (txn_date - self._today).days > FAR_FUTURE_DAYS:
            issues.append(ValidationIssue(
                field="date",
                issue_type="far_future",
                message=f"Date {txn_date} is more than a year away",
                severity="warning",
                suggested_fix="Check the year",
            ))

        has_errors = any(i.severity == "error" for i in issues)
        return not has_errors, issues

    def validate(self, raw: Mapping[str, Any]) -> ValidationResult:
        """
        Run the full two-stage validation pipeline.

        Stage 2 only runs if stage 1 passes.
        """
        schema_valid, schema_issues = self._validate_schema(raw)

        semantic_valid = False
        semantic_issues: list[ValidationIssue] = []
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(raw)

        all_issues = schema_issues + semantic_issues
        warnings = [i.message for i in all_issues if i.severity == "warning"]

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def to_transaction(self, raw: Mapping[str, Any], user_id: str) -> Transaction:
        """
        Validate ``raw`` and build a Transaction from it.

        Raises:
            InputValidationError: If either stage reports an error.
        """
        result = self.validate(raw)
        if not result.is_valid:
            raise InputValidationError(
                [i for i in result.issues if i.severity == "error"]
            )

        amount, _ = parse_amount(raw.get("amount"))
        txn_date, _ = parse_date(raw.get("date"))
        category = self._find_category(raw)

        data = {
            "user_id": user_id,
            "amount": amount,
            "date": txn_date,
            "description": raw.get("description"),
            "category": category.name if category else raw.get("category"),
            "category_id": category.id if category else raw.get("category_id"),
            "type": raw.get("type"),
            "reviewed": bool(raw.get("reviewed", False)),
        }
        if raw.get("status") is not None:
            data["status"] = raw.get("status")

        try:
            return Transaction.model_validate(data)
        except ValidationError as e:
            raise InputValidationError(_issues_from_pydantic(e)) from e


# =============================================================================
# OTHER FORMS
# =============================================================================

def parse_bill_template(raw: Mapping[str, Any]) -> BillTemplate:
    """
    Build a BillTemplate from form input.

    Raises:
        InputValidationError: If the amount or any field is invalid.
    """
    data = dict(raw)
    if "amount" in data:
        amount, issue = parse_amount(data["amount"], allow_zero=True)
        if issue:
            raise InputValidationError([issue])
        data["amount"] = amount

    try:
        return BillTemplate.model_validate(data)
    except ValidationError as e:
        raise InputValidationError(_issues_from_pydantic(e)) from e


def parse_user_settings(raw: Mapping[str, Any], user_id: str) -> UserSettings:
    """
    Build UserSettings from form input.

    Raises:
        InputValidationError: If any field is out of range.
    """
    try:
        return UserSettings.model_validate({**raw, "user_id": user_id})
    except ValidationError as e:
        raise InputValidationError(_issues_from_pydantic(e)) from e


def get_user_friendly_summary(issues: list[ValidationIssue]) -> str:
    """
    Generate a user-friendly summary of validation issues.

    Used to display a validation message in the UI.
    """
    if not issues:
        return "✅ All checks passed"

    lines = []
    errors = [i for i in issues if i.severity == "error"]
    warnings = [i for i in issues if i.severity == "warning"]

    if errors:
        lines.append("❌ **Issues that must be fixed:**")
        for issue in errors:
            lines.append(f"  • {issue.message}")
            if issue.suggested_fix:
                lines.append(f"    → {issue.suggested_fix}")

    if warnings:
        lines.append("⚠️ **Please double-check:**")
        for issue in warnings:
            lines.append(f"  • {issue.message}")

    return "\n".join(lines)
