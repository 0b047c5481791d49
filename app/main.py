"""
Streamlit Frontend for Finance Tracker

This is the user interface for tracking a household's monthly budget,
savings goals and tontines.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear error messages in simple language
3. Visual feedback for all operations
4. No hidden actions

The UI holds no business rules: every action goes through the
orchestrator's components and displays the Result it gets back.
"""

import asyncio
from datetime import date

import streamlit as st

from finance_tracker.ledger import GoalBadge
from finance_tracker.models import (
    AuthResult,
    GoalStatus,
    OtpPurpose,
    Result,
    TontineFrequency,
    TontineTransactionType,
)
from finance_tracker.orchestrator import AppComponents, create_app_components
from finance_tracker.validation import parse_amount


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💰",
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
</style>
""", unsafe_allow_html=True)

BADGE_LABELS = {
    GoalBadge.ACHIEVED: "🟢 Achieved",
    GoalBadge.EXPIRED: "🔴 Expired",
    GoalBadge.URGENT: "🟠 Urgent",
    GoalBadge.IN_PROGRESS: "🔵 In progress",
}


def fcfa(amount) -> str:
    return f"{int(amount):,}".replace(",", " ") + " FCFA"


def run_async(coro):
    """
    Helper to run async functions in Streamlit.

    One event loop per browser session: the Supabase client is bound to
    the loop it was created on. Tasks scheduled by auth callbacks are
    drained before returning so the session store is up to date.
    """
    loop = st.session_state.get("event_loop")
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        st.session_state.event_loop = loop
    asyncio.set_event_loop(loop)
    result = loop.run_until_complete(coro)
    pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
    if pending:
        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
    return result


def get_components() -> AppComponents:
    """Get or create this browser session's components."""
    if "components" not in st.session_state:
        components = create_app_components()
        run_async(components.start())
        st.session_state.components = components
    return st.session_state.components


def show_error(result: Result) -> None:
    if result.error is not None:
        st.error(result.error.message)


def show_report(components: AppComponents, report) -> None:
    if not report.is_valid:
        st.error(components.validator.get_user_friendly_summary(report))
    elif report.warnings:
        st.warning(components.validator.get_user_friendly_summary(report))


def main():
    """Main application entry point."""
    try:
        components = get_components()
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        render_connection_status()
        return

    session = components.session
    if session.loading and session.is_authenticated:
        st.info("Loading your profile...")
    if not session.is_authenticated:
        render_auth_page(components)
        return

    profile = session.profile
    user_id = session.identity.id

    st.sidebar.title("💰 Finance Tracker")
    st.sidebar.markdown(f"Hello **{profile.display_name if profile else 'there'}**")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "🧾 Expenses", "🎯 Goals", "🤝 Tontines", "⚙️ Profile"],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("Sign out"):
        result = run_async(components.gateway.sign_out())
        show_error(result)
        st.rerun()

    if session.error is not None:
        st.warning(session.error.message)

    if page == "📊 Dashboard":
        render_dashboard_page(components, user_id)
    elif page == "🧾 Expenses":
        render_expenses_page(components, user_id)
    elif page == "🎯 Goals":
        render_goals_page(components, user_id)
    elif page == "🤝 Tontines":
        render_tontines_page(components, user_id)
    elif page == "⚙️ Profile":
        render_profile_page(components)


# =============================================================================
# AUTH
# =============================================================================

def _handle_auth_result(result: AuthResult, email: str, purpose: OtpPurpose) -> None:
    if result.needs_verification:
        st.session_state.pending_email = email
        st.session_state.pending_purpose = purpose
        st.rerun()
    if not result.ok:
        show_error(result)
        return
    st.rerun()


def render_auth_page(components: AppComponents):
    """Sign in, sign up, and verification code entry."""
    st.title("💰 Finance Tracker")

    pending_email = st.session_state.get("pending_email")
    if pending_email:
        render_verification(components, pending_email)
        return

    sign_in_tab, sign_up_tab = st.tabs(["Sign in", "Create an account"])

    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign in", type="primary")
        if submitted:
            report, result = run_async(components.auth_flow.sign_in(email, password))
            show_report(components, report)
            if result is not None:
                _handle_auth_result(result, email, OtpPurpose.SIGNUP)

    with sign_up_tab:
        with st.form("sign_up"):
            name = st.text_input("Your name")
            email = st.text_input("Email", key="sign_up_email")
            password = st.text_input("Password", type="password", key="sign_up_password")
            confirm = st.text_input("Confirm password", type="password")
            submitted = st.form_submit_button("Create my account", type="primary")
        if submitted:
            report, result = run_async(components.auth_flow.sign_up(email, password, name, confirm))
            show_report(components, report)
            if result is not None:
                _handle_auth_result(result, email, OtpPurpose.SIGNUP)


def render_verification(components: AppComponents, email: str):
    purpose = st.session_state.get("pending_purpose", OtpPurpose.SIGNUP)
    st.subheader("Check your email")
    st.markdown(f"Enter the {components.settings.otp_length}-digit code sent to **{email}**.")

    with st.form("verify"):
        code = st.text_input("Verification code", max_chars=components.settings.otp_length)
        submitted = st.form_submit_button("Verify", type="primary")
    if submitted:
        report, result = run_async(components.auth_flow.verify(email, code, purpose))
        show_report(components, report)
        if result is not None:
            if result.ok:
                st.session_state.pending_email = None
                st.success("Email confirmed!")
                st.rerun()
            show_error(result)

    col1, col2 = st.columns(2)
    with col1:
        wait = components.gateway.resend_available_in(email, purpose)
        label = f"Resend code ({wait}s)" if wait else "Resend code"
        if st.button(label, disabled=wait > 0):
            result = run_async(components.gateway.resend_otp(email, purpose))
            if result.ok:
                st.success("A new code is on its way.")
            else:
                show_error(result)
    with col2:
        if st.button("Use another account"):
            st.session_state.pending_email = None
            st.rerun()


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard_page(components: AppComponents, user_id: str):
    st.title("📊 Dashboard")

    summary = run_async(components.insights.dashboard_summary(user_id))
    if not summary.ok:
        show_error(summary)
        return
    budget = summary.data.budget

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", fcfa(budget.income))
    col2.metric("Spent", fcfa(budget.total_spent))
    col3.metric("Saved", fcfa(budget.total_saved))
    col4.metric("Remaining", fcfa(summary.data.remaining))

    with st.expander(f"Budget for {budget.month}"):
        income = st.number_input("Monthly income", min_value=0, value=budget.income, step=1000)
        if st.button("Save income"):
            show_error(run_async(components.ledger.set_income(budget.id, int(income))))
            st.rerun()
        saving = st.number_input("Put aside", min_value=0, value=0, step=1000)
        if st.button("Record saving") and saving > 0:
            show_error(run_async(components.ledger.record_saving(budget.id, int(saving))))
            st.rerun()
        if st.button("Recompute spent total"):
            show_error(run_async(components.ledger.reconcile_budget(budget.id)))
            st.rerun()

    st.markdown("### Recent expenses")
    for expense in summary.data.recent_expenses:
        st.markdown(f"- {expense.date} · {expense.description or 'Expense'} · **{fcfa(expense.amount)}**")

    metrics = run_async(components.insights.compute(user_id))
    if not metrics.ok:
        show_error(metrics)
        return
    insights = metrics.data

    st.markdown("### Insights")
    col1, col2, col3 = st.columns(3)
    col1.metric("Monthly trend", f"{insights.monthly_trend:+.1f}%")
    col2.metric("Savings rate", f"{insights.savings_rate:.1f}%")
    col3.metric("Budget health", insights.budget_health.value.title())

    for share in insights.expense_distribution:
        st.progress(min(share.percentage / 100, 1.0), text=f"{share.category}: {fcfa(share.amount)} ({share.percentage:.0f}%)")

    predictions = insights.predictions
    st.markdown(f"**Expected spending next month:** {fcfa(predictions.next_month_expenses)}")
    st.markdown(f"**Estimated savings by year end:** {fcfa(predictions.year_end_savings)}")
    if predictions.main_goal:
        forecast = predictions.main_goal
        when = forecast.target_month or "never at this rate"
        st.markdown(f"**{forecast.goal_title} reached:** {when}")


# =============================================================================
# EXPENSES
# =============================================================================

def render_expenses_page(components: AppComponents, user_id: str):
    st.title("🧾 Expenses")

    categories = run_async(components.categories.ensure_default_categories(user_id))
    show_error(categories)
    category_options = {c.id: c.name for c in categories.data or []}

    with st.expander("➕ New expense", expanded=False):
        with st.form("expense"):
            amount = st.text_input("Amount (FCFA)")
            expense_date = st.date_input("Date", value=date.today())
            category_id = st.selectbox(
                "Category",
                options=[None] + list(category_options),
                format_func=lambda x: "Uncategorized" if x is None else category_options[x],
            )
            description = st.text_input("Description")
            submitted = st.form_submit_button("Save expense", type="primary")
        if submitted:
            report, result = run_async(components.expense_flow.submit(
                user_id, amount, expense_date, category_id, description,
            ))
            show_report(components, report)
            if result is not None:
                if result.data is not None:
                    st.success(f"Saved {fcfa(result.data.amount)}")
                show_error(result)

    col1, col2 = st.columns(2)
    with col1:
        search = st.text_input("Search", placeholder="Description or category")
    with col2:
        category_filter = st.selectbox(
            "Filter by Category",
            options=[None] + list(category_options),
            format_func=lambda x: "All Categories" if x is None else category_options[x],
        )

    expenses = run_async(components.ledger.list_expenses(user_id, category_filter, search))
    if not expenses.ok:
        show_error(expenses)
        return
    if not expenses.data:
        st.info("No expenses yet.")
        return

    for expense in expenses.data:
        col1, col2, col3 = st.columns([4, 2, 1])
        col1.markdown(
            f"**{expense.description or 'Expense'}** · "
            f"{category_options.get(expense.category_id, 'Uncategorized')} · {expense.date}"
        )
        col2.markdown(f"-{fcfa(expense.amount)}")
        if col3.button("🗑️", key=f"delete_{expense.id}"):
            show_error(run_async(components.ledger.delete_expense(expense)))
            st.rerun()


# =============================================================================
# GOALS
# =============================================================================

def render_goals_page(components: AppComponents, user_id: str):
    st.title("🎯 Goals")

    with st.expander("➕ New goal"):
        with st.form("goal"):
            title = st.text_input("Title")
            target = st.text_input("Target amount (FCFA)")
            deadline = st.date_input("Deadline", value=None)
            description = st.text_area("Description")
            submitted = st.form_submit_button("Create goal", type="primary")
        if submitted:
            report = components.validator.validate_goal(title, target, deadline)
            show_report(components, report)
            if report.is_valid:
                show_error(run_async(components.goals.create_goal(
                    user_id, title.strip(), parse_amount(target), deadline, description,
                )))
                st.rerun()

    goals = run_async(components.goals.list_goals(user_id))
    if not goals.ok:
        show_error(goals)
        return

    for goal in goals.data:
        progress = components.goals.goal_progress(goal)
        with st.container(border=True):
            col1, col2 = st.columns([3, 1])
            col1.markdown(f"### {goal.title}")
            col2.markdown(BADGE_LABELS[progress.badge])
            st.progress(progress.bar_width / 100, text=f"{progress.percentage:.0f}%")
            st.markdown(f"{fcfa(goal.current_amount)} / {fcfa(goal.target_amount)}")

            if goal.status == GoalStatus.IN_PROGRESS:
                amount = st.number_input("Add", min_value=0, step=1000, key=f"add_{goal.id}")
                if st.button("Contribute", key=f"contribute_{goal.id}") and amount > 0:
                    show_error(run_async(components.goals.contribute(goal, int(amount))))
                    st.rerun()
            if st.button("Delete goal", key=f"delete_goal_{goal.id}"):
                show_error(run_async(components.goals.delete_goal(goal.id)))
                st.rerun()


# =============================================================================
# TONTINES
# =============================================================================

def render_tontines_page(components: AppComponents, user_id: str):
    st.title("🤝 Tontines")

    with st.expander("➕ New tontine"):
        with st.form("tontine"):
            name = st.text_input("Name")
            contribution = st.text_input("Contribution (FCFA)")
            participants = st.number_input("Participants", min_value=2, value=5)
            frequency = st.selectbox(
                "Frequency",
                options=list(TontineFrequency),
                index=1,
                format_func=lambda f: f.name.title(),
            )
            start = st.date_input("Start date", value=date.today())
            submitted = st.form_submit_button("Create tontine", type="primary")
        if submitted:
            report = components.validator.validate_tontine(name, contribution, int(participants))
            show_report(components, report)
            if report.is_valid:
                show_error(run_async(components.tontines.create_tontine(
                    user_id, name.strip(), parse_amount(contribution), int(participants), frequency, start,
                )))
                st.rerun()

    tontines = run_async(components.tontines.list_tontines(user_id))
    if not tontines.ok:
        show_error(tontines)
        return

    for tontine in tontines.data:
        with st.container(border=True):
            st.markdown(f"### {tontine.name} · {tontine.status.name.lower()}")
            st.markdown(
                f"{fcfa(tontine.contribution_amount)} × {tontine.participant_count} participants "
                f"({tontine.frequency.name.lower()}) · pot {fcfa(tontine.pot_amount)}"
            )
            col1, col2 = st.columns(2)
            if col1.button("Record contribution", key=f"pay_{tontine.id}"):
                show_error(run_async(components.tontines.contribute(tontine)))
                st.rerun()
            if col2.button("Record payout", key=f"receive_{tontine.id}"):
                show_error(run_async(components.tontines.receive_payout(tontine)))
                st.rerun()

    st.markdown("### History")
    transactions = run_async(components.tontines.list_transactions(user_id))
    show_error(transactions)
    for transaction in transactions.data or []:
        sign = "-" if transaction.type == TontineTransactionType.CONTRIBUTION else "+"
        st.markdown(f"- {transaction.date} · {transaction.type.name.lower()} · {sign}{fcfa(transaction.amount)}")


# =============================================================================
# PROFILE / SETTINGS
# =============================================================================

def render_profile_page(components: AppComponents):
    st.title("⚙️ Profile")

    session = components.session
    profile = session.profile
    if profile is None and session.loading:
        st.info("Your profile is still loading.")
        return
    if profile is None and session.error is not None:
        st.warning(session.error.message)

    settings = components.settings
    with st.form("profile"):
        name = st.text_input("Name", value=profile.display_name if profile else "")
        country = st.text_input("Country", value=profile.country if profile else settings.default_country)
        currency = st.text_input("Currency", value=profile.currency if profile else settings.default_currency)
        submitted = st.form_submit_button("Save", type="primary")
    if submitted:
        result = run_async(components.session.update_profile({
            "display_name": name.strip(),
            "country": country.strip(),
            "currency": currency.strip(),
        }))
        if result.ok:
            st.success("Profile saved.")
        show_error(result)

    render_connection_status()


def render_connection_status():
    st.markdown("### Connection Status")

    from finance_tracker.config import validate_all_settings

    status = validate_all_settings()

    services = [
        ("Supabase (Auth + Database)", "supabase"),
        ("Application settings", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file with your Supabase keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
