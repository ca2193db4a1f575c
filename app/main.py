"""
Streamlit Frontend for Cashflow

This is the dashboard the user checks before spending money.

DESIGN PRINCIPLES:
1. "Safe to spend" is the first number on screen
2. Every number comes from the forecasting engine, never from the UI
3. Clear error messages when the record store is unreachable
4. Every write goes through a flow (validated and audited)

Run with:
    streamlit run app/main.py
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from cashflow.audit import create_correlation_id
from cashflow.config import get_settings, validate_all_settings
from cashflow.models.forecast import BudgetStatus, PaycheckInput
from cashflow.models.records import (
    BillingMonth,
    BillTemplate,
    TransactionStatus,
    TransactionType,
)
from cashflow.orchestrator import AppComponents, create_app_components
from cashflow.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Cashflow",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
    .negative {
        color: #dc3545;
    }
</style>
""", unsafe_allow_html=True)


STATUS_ICONS = {
    BudgetStatus.ON_TRACK: "🟢",
    BudgetStatus.WARNING: "🟡",
    BudgetStatus.OVER_LIMIT: "🔴",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components()


def money(amount: Decimal) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def show_result(result, success_message: str) -> None:
    """Render an OperationResult."""
    if result.success:
        st.success(success_message)
    else:
        st.error(f"❌ {result.error_message}")
        for issue in result.issues:
            st.markdown(f"  • {issue}")


def main():
    """Main application entry point."""
    components = get_components()
    user_id = get_settings().app.default_user_id

    # Sidebar navigation
    st.sidebar.title("💸 Cashflow")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        [
            "🏠 Dashboard",
            "📊 Budget",
            "🧾 Bills",
            "💵 Paycheck",
            "📥 Review Inbox",
            "📅 Calendar",
            "⚙️ Settings",
        ],
        index=0,
    )

    st.sidebar.markdown("---")
    if components.sheets_client is None:
        st.sidebar.info("Using the in-memory store. Data is lost on restart.")

    try:
        if page == "🏠 Dashboard":
            render_dashboard_page(components, user_id)
        elif page == "📊 Budget":
            render_budget_page(components)
        elif page == "🧾 Bills":
            render_bills_page(components, user_id)
        elif page == "💵 Paycheck":
            render_paycheck_page(components, user_id)
        elif page == "📥 Review Inbox":
            render_inbox_page(components)
        elif page == "📅 Calendar":
            render_calendar_page(components)
        elif page == "⚙️ Settings":
            render_settings_page(components, user_id)
    except StorageError as e:
        st.error(f"Could not reach your records: {e}")


def render_dashboard_page(components: AppComponents, user_id: str):
    """Safe-to-spend, projection and quick entry."""
    st.title("🏠 Dashboard")
    today = date.today()

    summary = run_async(components.queries.balance_summary(today))
    income = run_async(components.queries.income_month_to_date(today))
    outstanding = run_async(components.queries.outstanding_bills_total())

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.markdown("**Safe to Spend**")
        css = "big-number negative" if summary.safe_to_spend < 0 else "big-number"
        st.markdown(
            f'<div class="{css}">{money(summary.safe_to_spend)}</div>',
            unsafe_allow_html=True,
        )
        if summary.next_payday:
            st.caption(f"Until payday on {summary.next_payday:%b %d}")
        else:
            st.caption("No upcoming payday recorded")
    with col2:
        st.metric("Current Balance", money(summary.current_balance))
    with col3:
        st.metric("Income This Month", money(income))
    with col4:
        st.metric("Outstanding Bills", money(outstanding))

    st.markdown("### 30-Day Projection")
    st.line_chart(
        {
            "date": [p.date for p in summary.projection],
            "balance": [float(p.balance) for p in summary.projection],
        },
        x="date",
        y="balance",
    )
    if summary.lowest_projected_balance < 0:
        st.warning(
            f"⚠️ Your balance is projected to drop to "
            f"{money(summary.lowest_projected_balance)} in the next 30 days."
        )

    st.markdown("---")
    render_transaction_form(components, user_id)


def render_transaction_form(components: AppComponents, user_id: str):
    """Manual transaction entry."""
    st.markdown("### ➕ Add Transaction")

    categories = run_async(components.settings.list_categories())

    with st.form("add_transaction", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            txn_type = st.selectbox(
                "Type",
                options=list(TransactionType),
                format_func=lambda t: t.value.title(),
            )
            amount = st.text_input("Amount", placeholder="42.50")
            txn_date = st.date_input("Date", value=date.today())
        with col2:
            description = st.text_input("Description")
            category = st.selectbox(
                "Category",
                options=[c.name for c in categories] or [""],
            )
            status = st.selectbox(
                "Status",
                options=list(TransactionStatus),
                format_func=lambda s: s.value.title(),
            )

        submitted = st.form_submit_button("💾 Save", type="primary")

    if submitted:
        result = run_async(components.transactions.create(
            {
                "type": txn_type.value,
                "amount": amount,
                "date": txn_date,
                "description": description,
                "category": category,
                "status": status.value,
            },
            user_id=user_id,
            correlation_id=create_correlation_id(),
        ))
        show_result(result, "✅ Transaction saved")


def render_budget_page(components: AppComponents):
    """Per-group budget progress for a month."""
    st.title("📊 Budget")

    month_input = st.date_input("Month", value=date.today())
    month = BillingMonth.of(month_input)

    summary = run_async(components.queries.budget_summary(month))

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Budget", money(summary.total_budget))
    with col2:
        st.metric("Total Spent", money(summary.total_spent))
    with col3:
        st.metric("Used", f"{summary.total_progress_percent:.0f}%")
    st.progress(int(summary.display_progress_percent))

    if summary.over_budget:
        st.error("🔴 You are over your total budget this month.")

    for group in summary.groups:
        st.markdown(f"### {group.name}")
        for item in group.categories:
            icon = STATUS_ICONS[item.status]
            if item.has_budget:
                st.markdown(
                    f"{icon} **{item.category.name}**: "
                    f"{money(item.spent)} of {money(item.limit)}"
                )
                st.progress(int(item.progress_percent))
            else:
                st.markdown(f"{icon} **{item.category.name}**: {money(item.spent)}")


def render_bills_page(components: AppComponents, user_id: str):
    """Pending bills, bill templates and monthly generation."""
    st.title("🧾 Bills")

    st.markdown("### Unpaid Bills")
    pending = run_async(components.queries.pending_bills())
    if not pending:
        st.info("No unpaid bills. 🎉")
    for txn in pending:
        col1, col2, col3 = st.columns([3, 1, 1])
        with col1:
            st.markdown(f"**{txn.description}** ({txn.category or 'Uncategorized'})")
            st.caption(f"Due {txn.date:%b %d, %Y}")
        with col2:
            st.markdown(money(txn.amount))
        with col3:
            if st.button("Mark Paid", key=f"paid-{txn.id}"):
                result = run_async(components.transactions.mark_paid(txn.id))
                show_result(result, "✅ Marked as paid")
                st.rerun()

    st.markdown("---")
    st.markdown("### Recurring Bill Templates")
    templates = run_async(components.bills.list_templates())
    for template in templates:
        col1, col2, col3 = st.columns([3, 1, 1])
        with col1:
            st.markdown(f"**{template.description}** ({template.category})")
            st.caption(f"Due on day {template.day_of_month}")
        with col2:
            st.markdown(money(template.amount))
        with col3:
            if st.button("Remove", key=f"remove-{template.id}"):
                result = run_async(components.bills.remove_template(template.id))
                show_result(result, "Template removed")
                st.rerun()

    with st.form("add_template", clear_on_submit=True):
        col1, col2, col3, col4 = st.columns(4)
        with col1:
            description = st.text_input("Description", value="New Bill")
        with col2:
            amount = st.text_input("Amount", value="0.00")
        with col3:
            day_of_month = st.number_input("Day of month", min_value=1, max_value=31, value=1)
        with col4:
            category = st.text_input("Category", value=BillTemplate.model_fields["category"].default)
        if st.form_submit_button("➕ Add Template"):
            result = run_async(components.bills.save_template({
                "description": description,
                "amount": amount,
                "day_of_month": int(day_of_month),
                "category": category,
            }))
            show_result(result, "✅ Template saved")

    st.markdown("---")
    st.markdown("### Generate Bills")
    month_input = st.date_input("Month to generate", value=date.today(), key="generate-month")
    skip_existing = st.checkbox("Skip bills already generated for this month", value=False)
    if st.button("⚡ Generate", type="primary"):
        result = run_async(components.bills.generate(
            BillingMonth.of(month_input),
            user_id=user_id,
            skip_existing=skip_existing,
            correlation_id=create_correlation_id(),
        ))
        if result.success:
            st.success(
                f"✅ Generated {result.generated_count} bill(s) for {result.month}"
                + (f", skipped {result.skipped_count}" if result.skipped_count else "")
            )
        else:
            st.error(f"❌ {result.error_message}")


def render_paycheck_page(components: AppComponents, user_id: str):
    """Paycheck forecaster."""
    st.title("💵 Paycheck Forecaster")

    col1, col2 = st.columns(2)
    with col1:
        hours = st.number_input("Regular hours", min_value=0.0, value=40.0, step=0.5)
    with col2:
        overtime = st.number_input("Overtime hours", min_value=0.0, value=0.0, step=0.5)

    hours_input = PaycheckInput(
        hours=Decimal(str(hours)),
        overtime_hours=Decimal(str(overtime)),
    )
    estimate = run_async(components.paycheck.estimate(hours_input, user_id))

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Gross", money(estimate.gross_pay))
    with col2:
        st.metric("Tax", money(estimate.tax_amount))
    with col3:
        st.metric("Deductions", money(estimate.fixed_deductions))
    with col4:
        st.metric("Net", money(estimate.net_pay))

    pay_date = st.date_input("Pay date (leave as-is to use your payday)", value=None)
    if st.button("💾 Add to Forecast", type="primary"):
        result = run_async(components.paycheck.save_estimate(
            hours_input,
            user_id=user_id,
            pay_date=pay_date,
            correlation_id=create_correlation_id(),
        ))
        show_result(result, "✅ Estimated paycheck added")


def render_inbox_page(components: AppComponents):
    """Unreviewed transactions, newest first."""
    st.title("📥 Review Inbox")

    inbox = run_async(components.queries.review_inbox())
    if not inbox:
        st.info("Nothing to review. ✅")
        return

    for txn in inbox:
        col1, col2, col3 = st.columns([3, 1, 1])
        with col1:
            st.markdown(f"**{txn.description or '(no description)'}**")
            st.caption(f"{txn.date:%b %d, %Y} · {txn.category or 'Uncategorized'} · {txn.status.value}")
        with col2:
            st.markdown(money(txn.signed_amount))
        with col3:
            if st.button("✔ Reviewed", key=f"review-{txn.id}"):
                result = run_async(components.transactions.mark_reviewed(txn.id))
                show_result(result, "Marked as reviewed")
                st.rerun()


def render_calendar_page(components: AppComponents):
    """Month grid with running balances and bill rescheduling."""
    st.title("📅 Calendar")

    month_input = st.date_input("Month", value=date.today())
    month = BillingMonth.of(month_input)
    days = run_async(components.queries.calendar(month))

    for week_start in range(0, len(days), 7):
        columns = st.columns(7)
        for column, day in zip(columns, days[week_start:week_start + 7]):
            with column:
                st.markdown(f"**{day.date.day}**")
                css = "negative" if day.is_negative else ""
                st.markdown(
                    f'<span class="{css}">{money(day.running_balance)}</span>',
                    unsafe_allow_html=True,
                )
                for txn in day.transactions:
                    st.caption(f"{txn.description} {money(txn.signed_amount)}")

    st.markdown("---")
    st.markdown("### Move a Bill")
    expenses = [t for d in days for t in d.transactions if t.type == TransactionType.EXPENSE]
    if not expenses:
        st.info("No expenses this month.")
        return

    txn = st.selectbox(
        "Expense",
        options=expenses,
        format_func=lambda t: f"{t.date:%b %d} · {t.description} · {money(t.amount)}",
    )
    new_date = st.date_input("New date", value=txn.date)
    if st.button("📆 Reschedule"):
        result = run_async(components.transactions.reschedule(txn.id, new_date))
        show_result(result, f"✅ Moved to {new_date:%b %d}")


def render_settings_page(components: AppComponents, user_id: str):
    """Pay settings and connection status."""
    st.title("⚙️ Settings")

    settings = run_async(components.settings.get(user_id))

    with st.form("settings"):
        hourly_rate = st.text_input("Hourly rate", value=str(settings.hourly_rate))
        tax_rate = st.text_input("Tax rate (%)", value=str(settings.tax_rate_percent))
        deductions = st.text_input("Fixed deductions", value=str(settings.fixed_deductions))
        payday = st.number_input(
            "Custom payday (0 for none)",
            min_value=0,
            max_value=31,
            value=settings.custom_payday or 0,
        )
        if st.form_submit_button("💾 Save Settings", type="primary"):
            result = run_async(components.settings.save(
                {
                    "hourly_rate": hourly_rate,
                    "tax_rate_percent": tax_rate,
                    "fixed_deductions": deductions,
                    "custom_payday": int(payday),
                },
                user_id=user_id,
            ))
            show_result(result, "✅ Settings updated")

    st.markdown("---")
    st.markdown("### Connection Status")

    status = validate_all_settings()
    for name, key in [("App", "app"), ("Google Sheets (Storage)", "google_sheets")]:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
