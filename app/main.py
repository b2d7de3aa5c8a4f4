"""
Streamlit Frontend for Expense Tracker

DESIGN PRINCIPLES:
1. The UI renders what the tracker exposes and nothing else
2. Every action goes through the tracker, which reports back through
   notifications
3. Buttons are disabled while the same action is in flight
4. No data is shown unless the session is verified

The document store and identity provider are shared by every browser
session; each browser session gets its own ExpenseTracker.
"""

import asyncio
from datetime import date

import streamlit as st

from src.config import get_settings, validate_all_settings
from src.models import (
    ExpenseCategory,
    NotificationLevel,
    Operation,
    SessionStatus,
    SortOption,
)
from src.orchestrator import ExpenseTracker, create_store
from src.services.identity import InMemoryIdentityProvider
from src.views import CSV_FILENAME, format_amount


st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_backends():
    """Shared identity provider and document store (cached)."""
    settings = get_settings()
    provider = InMemoryIdentityProvider(auto_verify=settings.app.auto_verify_signups)
    return provider, create_store(settings)


def get_tracker() -> ExpenseTracker:
    """Per-browser-session tracker."""
    if "tracker" not in st.session_state:
        provider, store = get_backends()
        st.session_state.tracker = ExpenseTracker(provider, store)
    return st.session_state.tracker


def money(amount) -> str:
    return f"{get_settings().app.currency_label} {format_amount(amount)}"


def render_notifications(tracker: ExpenseTracker):
    """Show and clear everything the tracker wants the user to know."""
    for note in tracker.clear_notifications():
        if note.level == NotificationLevel.ERROR:
            st.error(note.message)
        elif note.level == NotificationLevel.WARNING:
            st.warning(note.message)
        elif note.level == NotificationLevel.SUCCESS:
            st.success(note.message)
        else:
            st.info(note.message)


def main():
    """Main application entry point."""
    tracker = get_tracker()
    run_async(tracker.poll_remote())

    st.sidebar.title("💸 Expense Tracker")
    st.sidebar.markdown("---")

    state = tracker.session_state
    if state.identity is not None:
        st.sidebar.markdown(f"Signed in as **{state.identity.email}**")
        if st.sidebar.button("Sign out", disabled=tracker.is_busy(Operation.SIGN_OUT)):
            run_async(tracker.sign_out())
            st.rerun()

    with st.sidebar.expander("⚙️ Connection Status"):
        render_settings_status()

    render_notifications(tracker)

    if state.status == SessionStatus.SIGNED_IN_VERIFIED:
        render_dashboard(tracker)
    elif state.status == SessionStatus.SIGNED_IN_UNVERIFIED:
        render_verification_page(tracker)
    else:
        render_auth_page(tracker)


def render_auth_page(tracker: ExpenseTracker):
    """Sign in, sign up and password reset."""
    st.title("Welcome")

    sign_in_tab, sign_up_tab = st.tabs(["Sign in", "Create account"])

    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button(
                "Sign in",
                type="primary",
                disabled=tracker.is_busy(Operation.SIGN_IN),
            )
        if submitted:
            with st.spinner("Signing in..."):
                run_async(tracker.sign_in(email, password))
            st.rerun()

        if st.button("Forgot password?", disabled=tracker.is_busy(Operation.RESET_PASSWORD)):
            run_async(tracker.reset_password(email))
            st.rerun()

    with sign_up_tab:
        with st.form("sign_up"):
            new_email = st.text_input("Email", key="sign_up_email")
            new_password = st.text_input("Password", type="password", key="sign_up_password")
            submitted = st.form_submit_button(
                "Create account",
                type="primary",
                disabled=tracker.is_busy(Operation.SIGN_UP),
            )
        if submitted:
            with st.spinner("Creating your account..."):
                run_async(tracker.sign_up(new_email, new_password))
            st.rerun()


def render_verification_page(tracker: ExpenseTracker):
    """Shown while the signed-up identity has not confirmed its email."""
    st.title("📧 Verify your email")
    email = tracker.session_state.identity.email
    st.markdown(f"""
    <div class="info-box">
        <h4>Check your inbox</h4>
        <p>We sent a verification link to <strong>{email}</strong>.
        Open it, then come back and press "I've verified".</p>
    </div>
    """, unsafe_allow_html=True)

    col1, col2 = st.columns(2)
    with col1:
        if st.button(
            "I've verified",
            type="primary",
            disabled=tracker.is_busy(Operation.REFRESH_VERIFICATION),
        ):
            run_async(tracker.refresh_verification())
            st.rerun()
    with col2:
        if st.button("Resend email", disabled=tracker.is_busy(Operation.RESEND_VERIFICATION)):
            run_async(tracker.resend_verification())
            st.rerun()


def render_dashboard(tracker: ExpenseTracker):
    """Expenses, budget and totals for the verified user."""
    st.title("📊 Your Expenses")

    render_add_expense(tracker)
    st.markdown("---")
    render_budget(tracker)
    st.markdown("---")
    render_expense_list(tracker)
    st.markdown("---")
    render_account(tracker)


def render_add_expense(tracker: ExpenseTracker):
    st.subheader("➕ Add Expense")

    with st.form("add_expense", clear_on_submit=False):
        col1, col2 = st.columns(2)
        with col1:
            amount = st.text_input("Amount *", placeholder="0.00")
            description = st.text_input("Description *")
        with col2:
            category = st.selectbox(
                "Category *",
                options=list(ExpenseCategory),
                format_func=lambda c: c.value,
            )
            spent_on = st.date_input("Date *", value=date.today())
        submitted = st.form_submit_button(
            "Add expense",
            type="primary",
            disabled=tracker.is_busy(Operation.ADD_EXPENSE),
        )

    if submitted:
        outcome = run_async(tracker.add_expense(amount, description, category, spent_on))
        if outcome is not None:
            st.rerun()
        render_notifications(tracker)


def render_budget(tracker: ExpenseTracker):
    view = tracker.view
    st.subheader(f"🎯 Monthly Budget ({view.budget_period or ''})")

    col1, col2, col3 = st.columns(3)
    with col1:
        if view.budget is None:
            st.markdown("No budget set for this month.")
        else:
            st.markdown(f'<div class="big-number">{money(view.budget)}</div>', unsafe_allow_html=True)
    with col2:
        st.metric("Spent this month", money(view.period_total))
    with col3:
        if view.budget_remaining is not None:
            st.metric("Remaining", money(view.budget_remaining))

    if view.is_over_budget:
        st.markdown("""
        <div class="warning-box">
            <h4>⚠️ Over budget</h4>
            <p>You have spent more than your budget for this month.</p>
        </div>
        """, unsafe_allow_html=True)

    with st.form("budget"):
        value = st.text_input(
            "Set budget",
            value=format_amount(view.budget) if view.budget is not None else "",
        )
        col1, col2 = st.columns(2)
        with col1:
            save = st.form_submit_button("Save budget", disabled=tracker.is_busy(Operation.SAVE_BUDGET))
        with col2:
            remove = st.form_submit_button(
                "Delete budget",
                disabled=view.budget is None or tracker.is_busy(Operation.DELETE_BUDGET),
            )
    if save:
        run_async(tracker.save_budget(value))
        st.rerun()
    if remove:
        run_async(tracker.delete_budget())
        st.rerun()


def render_expense_list(tracker: ExpenseTracker):
    view = tracker.view
    st.subheader("📋 Expenses")

    col1, col2, col3 = st.columns([2, 2, 1])
    with col1:
        options = [None] + list(ExpenseCategory)
        current = tracker.view_state.category
        category = st.selectbox(
            "Filter by Category",
            options=options,
            index=options.index(current),
            format_func=lambda c: "All Categories" if c is None else c.value,
        )
        if category != current:
            tracker.set_filter(category)
            st.rerun()
    with col2:
        sort_options = list(SortOption)
        current_option = next(
            (o for o in sort_options
             if o.key == tracker.view_state.sort_key and o.direction == tracker.view_state.sort_direction),
            SortOption.NEWEST,
        )
        option = st.selectbox(
            "Sort by",
            options=sort_options,
            index=sort_options.index(current_option),
            format_func=lambda o: o.label,
        )
        if option != current_option:
            tracker.set_sort_option(option)
            st.rerun()
    with col3:
        csv_text = None
        if st.button("Prepare CSV"):
            csv_text = run_async(tracker.export_csv())
            render_notifications(tracker)
        if csv_text:
            st.download_button("⬇️ Download", data=csv_text, file_name=CSV_FILENAME, mime="text/csv")

    if not view.records:
        st.info("No expenses to show yet.")
    for expense in view.records:
        col1, col2, col3, col4, col5 = st.columns([2, 4, 2, 2, 1])
        col1.write(expense.date.isoformat())
        col2.write(expense.description)
        col3.write(expense.category.value)
        col4.write(money(expense.amount))
        if col5.button("🗑️", key=f"delete_{expense.id}", disabled=tracker.is_busy(Operation.DELETE_EXPENSE)):
            run_async(tracker.delete_expense(expense.id))
            st.rerun()

    st.markdown(f"**Total:** {money(view.total)}")
    if tracker.view_state.category is not None:
        st.markdown(f"**Shown:** {money(view.visible_total)}")

    if view.category_totals:
        with st.expander("📈 By Category"):
            for category, subtotal in view.category_totals.items():
                st.markdown(f"- {category.value}: {money(subtotal)}")


def render_account(tracker: ExpenseTracker):
    with st.expander("⚠️ Delete account"):
        st.markdown("This deletes your account, all expenses and all budgets.")
        password = st.text_input("Confirm password", type="password", key="delete_password")
        if st.button(
            "Delete my account",
            type="primary",
            disabled=not password or tracker.is_busy(Operation.DELETE_ACCOUNT),
        ):
            run_async(tracker.delete_account(password))
            st.rerun()


def render_settings_status():
    status = validate_all_settings()
    backend = get_settings().app.store_backend
    st.markdown(f"**Storage:** {backend}")

    for key in ("app", "google_sheets"):
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {key}")
        else:
            st.error(f"❌ {key} - {status.get(f'{key}_error', 'Not configured')}")


if __name__ == "__main__":
    main()
