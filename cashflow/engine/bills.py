"""
Recurring Bill Scheduling

Expands bill templates into dated, pending expense transactions
for one target month.

DESIGN DECISION: Generation is a one-way stamp. Templates are not
linked to the transactions they produce, and generating the same
month twice produces duplicates. Callers who want at-most-once
generation use the source_key stamped on every generated row
(see existing_source_keys / BillGenerationFlow.generate).
"""

from typing import Iterable, Optional

from cashflow.models.records import (
    BillingMonth,
    BillTemplate,
    Transaction,
    TransactionStatus,
    TransactionType,
)


def source_key(template: BillTemplate, month: BillingMonth) -> str:
    """Idempotency key for one template in one month."""
    return f"{template.id}:{month}"


def existing_source_keys(transactions: Iterable[Transaction]) -> set[str]:
    return {t.source_key for t in transactions if t.source_key}


class BillScheduler:
    """
    Turns BillTemplates into Transactions.

    Day-of-month values past the end of the month are clamped to the
    last day (31 in April -> 30, 31 in February -> 28 or 29).
    """

    def generate_bills(
        self,
        templates: Iterable[BillTemplate],
        month: BillingMonth,
        user_id: str,
        skip_keys: Optional[set[str]] = None,
    ) -> list[Transaction]:
        """
        Build one pending expense per template, in template order.

        Args:
            templates: Recurring bill definitions
            month: Target month
            user_id: Owner stamped on every generated transaction
            skip_keys: Source keys that must not be generated again

        Returns:
            The generated (not yet persisted) transactions
        """
        skip_keys = skip_keys or set()
        generated = []

        for template in templates:
            key = source_key(template, month)
            if key in skip_keys:
                continue

            generated.append(Transaction(
                user_id=user_id,
                amount=template.amount,
                date=month.clamp_day(template.day_of_month),
                description=template.description,
                category=template.category,
                type=TransactionType.EXPENSE,
                status=TransactionStatus.PENDING,
                reviewed=False,
                source_key=key,
            ))

        return generated
