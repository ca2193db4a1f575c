"""Input validation package."""

from cashflow.validation.validator import (
    InputValidationError,
    TransactionInputValidator,
    get_user_friendly_summary,
    parse_amount,
    parse_bill_template,
    parse_date,
    parse_user_settings,
)

__all__ = [
    "InputValidationError",
    "TransactionInputValidator",
    "get_user_friendly_summary",
    "parse_amount",
    "parse_bill_template",
    "parse_date",
    "parse_user_settings",
]
