"""
Streamlit Frontend for Subscription Tracker

Dashboard for a user's recurring payments.

DESIGN PRINCIPLES:
1. Figures are shown per currency, never summed across currencies
2. All numbers come from the statistics engine; the UI only formats them
3. Clear error messages in simple language
4. Destructive actions need an explicit confirmation
"""

import asyncio
from datetime import date, datetime, time, timezone
from decimal import Decimal

import streamlit as st

from src.audit import create_correlation_id
from src.models.subscription import (
    RecurringDuration,
    SubscriptionStats,
    SubscriptionUpdate,
)
from src.orchestrator import (
    SubscriptionService,
    UnauthorizedError,
    create_app_components,
)
from src.services.storage import NotFoundError, StorageError
from src.stats import calculate_monthly_cost, calculate_next_renewal_date, get_total_price


CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
}


# Page configuration
st.set_page_config(
    page_title="Subscription Tracker",
    page_icon="🔁",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def format_currency(amount: Decimal, currency: str) -> str:
    """Format an amount with two decimals, e.g. '$1,234.50' or '1,234.50 CHF'."""
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{symbol}{amount:,.2f}"
    return f"{amount:,.2f} {currency}"


def to_utc_datetime(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def main():
    """Main application entry point."""
    service, _ = get_components()

    st.sidebar.title("🔁 Subscription Tracker")
    st.sidebar.markdown("---")

    user_id = st.sidebar.text_input(
        "Signed in as",
        value=st.session_state.get("user_id", ""),
        help="Your user ID",
    )
    st.session_state.user_id = user_id

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "📋 Subscriptions", "➕ Add Subscription", "⚙️ Settings"],
        index=0,
    )

    if page == "⚙️ Settings":
        render_settings_page()
        return

    if not user_id:
        st.warning("Please sign in to see your subscriptions.")
        return

    try:
        if page == "📊 Dashboard":
            render_dashboard_page(service, user_id)
        elif page == "📋 Subscriptions":
            render_subscriptions_page(service, user_id)
        elif page == "➕ Add Subscription":
            render_add_page(service, user_id)
    except UnauthorizedError:
        st.error("Your session has expired. Please sign in again.")
    except StorageError as e:
        st.error(f"Could not reach your data: {e}")


def render_dashboard_page(service: SubscriptionService, user_id: str):
    """Render the statistics dashboard."""
    st.title("📊 Dashboard")

    stats: SubscriptionStats = run_async(service.get_dashboard(user_id))
    currencies = stats.available_currencies or [stats.currency]

    selected = st.selectbox("Currency", options=currencies, index=0)
    if selected != stats.currency:
        stats = run_async(service.get_dashboard(user_id, currency=selected))

    if stats.total_count == 0:
        st.info("No subscriptions yet. Use 'Add Subscription' to record your first one.")
        return

    if stats.is_filtered:
        st.caption(
            f"Showing {stats.subscription_count} of {stats.total_count} subscriptions"
        )

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Subscriptions", stats.subscription_count)
    col2.metric(
        "Total Monthly Cost",
        format_currency(stats.total_monthly_cost, stats.currency),
        help=f"{format_currency(stats.yearly_cost, stats.currency)}/year",
    )
    col3.metric(
        "Total Spent",
        format_currency(stats.total_spent, stats.currency),
        help="Since subscriptions started",
    )
    col4.metric(
        "Average Monthly",
        format_currency(stats.average_monthly_cost, stats.currency),
        help="Per subscription",
    )

    col1, col2, col3 = st.columns(3)
    col1.metric("Yearly Projection", format_currency(stats.yearly_cost, stats.currency))

    renewals = stats.renewals_this_month
    if renewals:
        titles = ", ".join(sub.title for sub in renewals[:2])
        summary = titles + ("..." if len(renewals) > 2 else "")
    else:
        summary = "No renewals"
    col2.metric("Renewals This Month", len(renewals), help=summary)
    col2.caption(summary)

    if stats.next_renewal:
        col3.metric("Next Renewal", stats.next_renewal.subscription.title)
        col3.caption(stats.next_renewal.date.strftime("%b %d, %Y"))
    else:
        col3.metric("Next Renewal", "-")
        col3.caption("No upcoming renewals")

    if stats.duration_breakdown:
        st.markdown("### Breakdown by Duration")
        for item in stats.duration_breakdown:
            left, right = st.columns([3, 1])
            plural = "s" if item.count != 1 else ""
            left.markdown(f"**{item.label}**  \n{item.count} subscription{plural}")
            right.markdown(f"**{format_currency(item.monthly_total, stats.currency)}**")

    if stats.most_costly:
        sub = stats.most_costly
        monthly = calculate_monthly_cost(get_total_price(sub), sub.recurring_duration)
        st.markdown("### Most Costly Subscription")
        left, right = st.columns([3, 1])
        left.markdown(
            f"**{sub.title}**  \n{format_currency(monthly, stats.currency)} per month"
        )
        right.markdown(
            f"**{format_currency(get_total_price(sub), stats.currency)}**  \n"
            f"{sub.recurring_duration.label}"
        )


def render_subscriptions_page(service: SubscriptionService, user_id: str):
    """Render the list of subscriptions with edit and delete actions."""
    st.title("📋 Your Subscriptions")

    subscriptions = run_async(service.list_subscriptions(user_id))
    if not subscriptions:
        st.info("No subscriptions yet.")
        return

    for sub in subscriptions:
        renewal = calculate_next_renewal_date(sub)
        with st.expander(
            f"{sub.title} - {format_currency(get_total_price(sub), sub.currency)} "
            f"({sub.recurring_duration.label})"
        ):
            st.markdown(f"**Started:** {sub.start_date.strftime('%d %B %Y')}")
            st.markdown(f"**Next renewal:** {renewal.strftime('%d %B %Y')}")
            if sub.charges:
                st.markdown("**Charges:**")
                for charge in sub.charges:
                    st.markdown(
                        f"- {format_currency(charge.amount, sub.currency)} "
                        f"on day {charge.day_of_month}"
                    )

            with st.form(key=f"edit-{sub.id}"):
                title = st.text_input("Title", value=sub.title)
                price = st.number_input(
                    "Price",
                    value=float(sub.price),
                    min_value=0.0,
                    step=0.01,
                    format="%.2f",
                )
                duration = st.selectbox(
                    "Billing cycle",
                    options=list(RecurringDuration),
                    index=list(RecurringDuration).index(sub.recurring_duration),
                    format_func=lambda d: d.label,
                )
                start = st.date_input("Start date", value=sub.start_date.date())
                if st.form_submit_button("💾 Save changes"):
                    if not title.strip():
                        st.error("Please enter a title")
                    else:
                        save_changes(service, user_id, sub.id, SubscriptionUpdate(
                            title=title,
                            price=Decimal(str(price)),
                            recurring_duration=duration,
                            start_date=to_utc_datetime(start),
                        ))

            confirm = st.checkbox("I want to delete this subscription", key=f"confirm-{sub.id}")
            if st.button("🗑️ Delete", key=f"delete-{sub.id}", disabled=not confirm):
                run_async(service.delete_subscription(user_id, sub.id))
                st.rerun()


def save_changes(
    service: SubscriptionService,
    user_id: str,
    subscription_id,
    update: SubscriptionUpdate,
):
    """Submit an edit form; a vanished subscription is reported, not raised."""
    try:
        run_async(service.update_subscription(
            user_id, subscription_id, update,
            correlation_id=create_correlation_id(),
        ))
        st.success("Saved")
        st.rerun()
    except NotFoundError:
        st.error("This subscription no longer exists.")


def render_add_page(service: SubscriptionService, user_id: str):
    """Render the new subscription form."""
    st.title("➕ Add Subscription")

    with st.form("add-subscription"):
        title = st.text_input("Title *", placeholder="e.g. Netflix")
        col1, col2 = st.columns(2)
        with col1:
            price = st.number_input("Price *", min_value=0.0, step=0.01, format="%.2f")
            currency = st.text_input("Currency", value="USD", max_chars=3)
        with col2:
            duration = st.selectbox(
                "Billing cycle *",
                options=list(RecurringDuration),
                index=list(RecurringDuration).index(RecurringDuration.MONTHLY),
                format_func=lambda d: d.label,
            )
            start = st.date_input("Start date *", value=date.today())

        if st.form_submit_button("✅ Save", type="primary"):
            if not title:
                st.error("Please enter a title")
                return
            sub = run_async(service.create_subscription(
                user_id,
                title=title,
                price=Decimal(str(price)),
                currency=currency,
                recurring_duration=duration,
                start_date=to_utc_datetime(start),
            ))
            st.success(f"Saved {sub.title}")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    from src.config import validate_all_settings

    status = validate_all_settings()

    if status.get("google_sheets", False):
        st.success("✅ Google Sheets (Storage) - Connected")
    else:
        error = status.get("google_sheets_error", "Not configured")
        st.warning(f"⚠️ Google Sheets (Storage) - {error}. Data is kept in memory only.")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your settings. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
