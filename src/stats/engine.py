"""
Subscription Statistics Engine

Pure functions that derive costs, renewal dates and groupings from a list
of subscriptions. Nothing here performs I/O or mutates its inputs.

DESIGN DECISION: Every time-dependent function takes an optional `now`.
When it is omitted we read the system clock. Tests always pass a frozen
`now`, and callers computing several figures for one screen should pass the
same `now` to all of them.

DESIGN DECISION: Unknown durations never raise. They fall back to the
monthly conversion factor, the 30-day cycle estimate and the monthly
calendar step.
"""

from decimal import Decimal
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from src.models.subscription import (
    DurationBreakdown,
    RecurringDuration,
    RenewalInfo,
    Subscription,
    SubscriptionStats,
    ensure_utc,
    utc_now,
)
from src.stats.dates import (
    add_days,
    add_months,
    add_years,
    days_between,
    end_of_month,
    start_of_month,
)

DurationLike = Union[RecurringDuration, str]

ZERO = Decimal("0")

# Approximate cycles per month, e.g. 52 weeks / 12 months ~= 4.33.
# These exact factors are what users have always seen; do not refine them.
MONTHLY_MULTIPLIERS: dict[RecurringDuration, Decimal] = {
    RecurringDuration.WEEKLY: Decimal("4.33"),
    RecurringDuration.BI_WEEKLY: Decimal("2.17"),
    RecurringDuration.MONTHLY: Decimal("1"),
}

MONTHLY_DIVISORS: dict[RecurringDuration, Decimal] = {
    RecurringDuration.QUARTERLY: Decimal("3"),
    RecurringDuration.SEMI_ANNUALLY: Decimal("6"),
    RecurringDuration.YEARLY: Decimal("12"),
}

# Fixed-length cycle estimate in days, used to count elapsed cycles.
DAYS_IN_DURATION: dict[RecurringDuration, int] = {
    RecurringDuration.WEEKLY: 7,
    RecurringDuration.BI_WEEKLY: 14,
    RecurringDuration.MONTHLY: 30,
    RecurringDuration.QUARTERLY: 90,
    RecurringDuration.SEMI_ANNUALLY: 180,
    RecurringDuration.YEARLY: 365,
}
DEFAULT_DAYS_IN_DURATION = 30


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """The injected clock as aware UTC, or the system clock when omitted."""
    return ensure_utc(now) if now is not None else utc_now()


# =============================================================================
# COST NORMALIZATION
# =============================================================================

def get_total_price(subscription: Subscription) -> Decimal:
    """Sum of itemized charges if there are any, else the flat price."""
    if subscription.charges:
        return sum((charge.amount for charge in subscription.charges), ZERO)
    return subscription.price


def coerce_duration(duration: DurationLike) -> Optional[RecurringDuration]:
    """Map a raw value to a RecurringDuration, or None if it is unknown."""
    try:
        return RecurringDuration(duration)
    except ValueError:
        return None


def calculate_monthly_cost(price: Decimal, duration: DurationLike) -> Decimal:
    """Convert a per-cycle price to its monthly equivalent."""
    price = Decimal(price)
    duration = coerce_duration(duration)
    if duration in MONTHLY_MULTIPLIERS:
        return price * MONTHLY_MULTIPLIERS[duration]
    if duration in MONTHLY_DIVISORS:
        return price / MONTHLY_DIVISORS[duration]
    return price


def monthly_cost_of(subscription: Subscription) -> Decimal:
    """Monthly-normalized total price of one subscription."""
    return calculate_monthly_cost(
        get_total_price(subscription),
        subscription.recurring_duration,
    )


def get_days_in_duration(duration: DurationLike) -> int:
    return DAYS_IN_DURATION.get(coerce_duration(duration), DEFAULT_DAYS_IN_DURATION)


# =============================================================================
# ELAPSED COST
# =============================================================================

def calculate_total_spent(
    subscription: Subscription,
    now: Optional[datetime] = None,
) -> Decimal:
    """
    Estimate how much has been paid so far.

    Cycles are counted with the fixed day table, not real billing dates,
    and the current (already started) cycle counts as paid.
    """
    now = resolve_now(now)
    if subscription.start_date > now:
        return ZERO

    days_since_start = days_between(subscription.start_date, now)
    days_in_duration = get_days_in_duration(subscription.recurring_duration)
    billing_cycles = days_since_start // days_in_duration + 1

    return get_total_price(subscription) * billing_cycles


# =============================================================================
# RENEWAL PROJECTION
# =============================================================================

def advance_by_periods(
    dt: datetime,
    duration: DurationLike,
    periods: int,
) -> datetime:
    """Move `dt` forward by whole billing periods using calendar rules."""
    duration = coerce_duration(duration)
    if duration == RecurringDuration.WEEKLY:
        return add_days(dt, 7 * periods)
    if duration == RecurringDuration.BI_WEEKLY:
        return add_days(dt, 14 * periods)
    if duration == RecurringDuration.QUARTERLY:
        return add_months(dt, 3 * periods)
    if duration == RecurringDuration.SEMI_ANNUALLY:
        return add_months(dt, 6 * periods)
    if duration == RecurringDuration.YEARLY:
        return add_years(dt, periods)
    return add_months(dt, periods)


def project_next_renewal(
    start_date: datetime,
    duration: DurationLike,
    now: datetime,
) -> datetime:
    """
    Project the next renewal date after `now`.

    Two passes: estimate elapsed cycles with the fixed day table, then
    step that many periods (+1) on the calendar. Because the two disagree
    around short months, one extra period is added if the result is still
    not in the future. The correction runs at most once, so for long
    histories the result can still lag by a cycle.
    """
    start_date = ensure_utc(start_date)
    now = ensure_utc(now)
    if start_date > now:
        return start_date

    days_since_start = days_between(start_date, now)
    cycles_passed = days_since_start // get_days_in_duration(duration)

    next_renewal = advance_by_periods(start_date, duration, cycles_passed + 1)

    if next_renewal <= now:
        next_renewal = advance_by_periods(next_renewal, duration, 1)

    return next_renewal


def calculate_next_renewal_date(
    subscription: Subscription,
    now: Optional[datetime] = None,
) -> datetime:
    return project_next_renewal(
        subscription.start_date,
        subscription.recurring_duration,
        resolve_now(now),
    )


def _renewals_between(
    subscriptions: Iterable[Subscription],
    window_start: datetime,
    window_end: datetime,
    now: datetime,
) -> list[Subscription]:
    """Subscriptions renewing inside [window_start, window_end], soonest first."""
    renewals = [
        RenewalInfo(
            subscription=sub,
            date=calculate_next_renewal_date(sub, now),
        )
        for sub in subscriptions
    ]
    in_window = [
        renewal for renewal in renewals
        if window_start <= renewal.date <= window_end
    ]
    in_window.sort(key=lambda renewal: renewal.date)
    return [renewal.subscription for renewal in in_window]


# =============================================================================
# AGGREGATION & RANKING
# =============================================================================

def get_most_costly_subscription(
    subscriptions: list[Subscription],
) -> Optional[Subscription]:
    """Subscription with the highest monthly cost; the first one wins ties."""
    if not subscriptions:
        return None

    most_costly = subscriptions[0]
    for current in subscriptions[1:]:
        if monthly_cost_of(current) > monthly_cost_of(most_costly):
            most_costly = current
    return most_costly


def calculate_average_monthly_cost(subscriptions: list[Subscription]) -> Decimal:
    if not subscriptions:
        return ZERO
    return calculate_total_monthly_cost(subscriptions) / len(subscriptions)


def calculate_total_monthly_cost(subscriptions: Iterable[Subscription]) -> Decimal:
    return sum((monthly_cost_of(sub) for sub in subscriptions), ZERO)


def calculate_yearly_cost(subscriptions: Iterable[Subscription]) -> Decimal:
    return sum((monthly_cost_of(sub) * 12 for sub in subscriptions), ZERO)


def calculate_total_spent_all(
    subscriptions: Iterable[Subscription],
    now: Optional[datetime] = None,
) -> Decimal:
    now = resolve_now(now)
    return sum((calculate_total_spent(sub, now) for sub in subscriptions), ZERO)


def group_by_currency(
    subscriptions: Iterable[Subscription],
) -> dict[str, list[Subscription]]:
    groups: dict[str, list[Subscription]] = {}
    for sub in subscriptions:
        groups.setdefault(sub.currency, []).append(sub)
    return groups


def group_by_duration(
    subscriptions: Iterable[Subscription],
) -> dict[RecurringDuration, list[Subscription]]:
    groups: dict[RecurringDuration, list[Subscription]] = {}
    for sub in subscriptions:
        groups.setdefault(sub.recurring_duration, []).append(sub)
    return groups


def get_upcoming_renewals(
    subscriptions: Iterable[Subscription],
    days_ahead: int = 30,
    now: Optional[datetime] = None,
) -> list[Subscription]:
    """Subscriptions renewing within `days_ahead` days of `now`, inclusive."""
    now = resolve_now(now)
    return _renewals_between(
        subscriptions,
        now,
        now + timedelta(days=days_ahead),
        now,
    )


def get_renewals_this_month(
    subscriptions: Iterable[Subscription],
    now: Optional[datetime] = None,
) -> list[Subscription]:
    """Subscriptions renewing in the calendar month containing `now`."""
    now = resolve_now(now)
    return _renewals_between(
        subscriptions,
        start_of_month(now),
        end_of_month(now),
        now,
    )


def get_next_renewal(
    subscriptions: Iterable[Subscription],
    now: Optional[datetime] = None,
) -> Optional[RenewalInfo]:
    """The earliest upcoming renewal across all subscriptions."""
    now = resolve_now(now)
    renewals = [
        RenewalInfo(
            subscription=sub,
            date=calculate_next_renewal_date(sub, now),
        )
        for sub in subscriptions
    ]
    if not renewals:
        return None
    renewals.sort(key=lambda renewal: renewal.date)
    return renewals[0]


# =============================================================================
# DASHBOARD SUMMARY
# =============================================================================

def list_currencies(subscriptions: Iterable[Subscription]) -> list[str]:
    """Currency codes in the order they first appear."""
    return list(group_by_currency(subscriptions).keys())


def filter_by_currency(
    subscriptions: Iterable[Subscription],
    currency: str,
) -> list[Subscription]:
    currency = currency.upper()
    return [sub for sub in subscriptions if sub.currency == currency]


def get_duration_breakdown(
    subscriptions: Iterable[Subscription],
) -> list[DurationBreakdown]:
    return [
        DurationBreakdown(
            duration=str(getattr(duration, "value", duration)),
            count=len(members),
            monthly_total=calculate_total_monthly_cost(members),
        )
        for duration, members in group_by_duration(subscriptions).items()
    ]


def summarize_subscriptions(
    subscriptions: list[Subscription],
    currency: Optional[str] = None,
    now: Optional[datetime] = None,
    default_currency: str = "USD",
) -> SubscriptionStats:
    """
    Compute every dashboard figure for one currency.

    Amounts in different currencies are never added together, so the
    summary covers only `currency`. When no currency is given, the first
    currency present is used, or `default_currency` for an empty list.
    """
    now = resolve_now(now)
    currencies = list_currencies(subscriptions)
    selected = (currency or (currencies[0] if currencies else default_currency)).upper()
    filtered = filter_by_currency(subscriptions, selected)

    return SubscriptionStats(
        currency=selected,
        available_currencies=currencies,
        subscription_count=len(filtered),
        total_count=len(subscriptions),
        total_monthly_cost=calculate_total_monthly_cost(filtered),
        yearly_cost=calculate_yearly_cost(filtered),
        total_spent=calculate_total_spent_all(filtered, now),
        average_monthly_cost=calculate_average_monthly_cost(filtered),
        most_costly=get_most_costly_subscription(filtered),
        renewals_this_month=get_renewals_this_month(filtered, now),
        next_renewal=get_next_renewal(filtered, now),
        duration_breakdown=get_duration_breakdown(filtered),
    )
