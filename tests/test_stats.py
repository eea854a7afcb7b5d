"""
Tests for the subscription statistics engine.

Every time-dependent call gets the frozen NOW (2025-06-15 12:00 UTC).
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from src.models.subscription import RecurringDuration, SubscriptionCharge
from src.stats import (
    calculate_average_monthly_cost,
    calculate_monthly_cost,
    calculate_next_renewal_date,
    calculate_total_monthly_cost,
    calculate_total_spent,
    calculate_total_spent_all,
    calculate_yearly_cost,
    get_duration_breakdown,
    get_most_costly_subscription,
    get_next_renewal,
    get_renewals_this_month,
    get_total_price,
    get_upcoming_renewals,
    group_by_currency,
    group_by_duration,
    project_next_renewal,
    summarize_subscriptions,
)
from src.stats.engine import _renewals_between
from tests.factories import NOW, make_subscription, utc


def charge(amount: str) -> SubscriptionCharge:
    return SubscriptionCharge(
        amount=Decimal(amount),
        day_of_month=1,
        start_date=utc(2025, 1, 1),
    )


class TestTotalPrice:

    def test_flat_price_without_charges(self):
        sub = make_subscription(price="12.50")
        assert get_total_price(sub) == Decimal("12.50")

    def test_charges_override_price(self):
        sub = make_subscription(price="99", charges=[charge("5"), charge("7.25")])
        assert get_total_price(sub) == Decimal("12.25")


class TestMonthlyCost:

    @pytest.mark.parametrize(
        "duration, expected",
        [
            (RecurringDuration.WEEKLY, Decimal("433")),
            (RecurringDuration.BI_WEEKLY, Decimal("217")),
            (RecurringDuration.MONTHLY, Decimal("100")),
            (RecurringDuration.QUARTERLY, Decimal("100") / 3),
            (RecurringDuration.SEMI_ANNUALLY, Decimal("100") / 6),
        ],
    )
    def test_conversion_factors(self, duration, expected):
        assert calculate_monthly_cost(Decimal("100"), duration) == expected

    def test_yearly_price_divided_by_twelve(self):
        monthly = calculate_monthly_cost(Decimal("100"), RecurringDuration.YEARLY)
        assert monthly.quantize(Decimal("0.01")) == Decimal("8.33")

    def test_accepts_raw_duration_strings(self):
        assert calculate_monthly_cost(Decimal("10"), "weekly") == Decimal("43.3")

    def test_unknown_duration_falls_back_to_monthly(self):
        assert calculate_monthly_cost(Decimal("10"), "daily") == Decimal("10")

    def test_scale_linear(self):
        price = Decimal("10")
        for duration in RecurringDuration:
            scaled = calculate_monthly_cost(price * 3, duration)
            expected = calculate_monthly_cost(price, duration) * 3
            assert scaled == pytest.approx(expected)


class TestTotalSpent:

    def test_counts_current_cycle_as_paid(self):
        """Started 40 days ago, monthly: floor(40/30) + 1 = 2 cycles."""
        sub = make_subscription(price="12", start_date=NOW - timedelta(days=40))
        assert calculate_total_spent(sub, NOW) == Decimal("24")

    def test_started_today_counts_one_cycle(self):
        sub = make_subscription(price="12", start_date=NOW)
        assert calculate_total_spent(sub, NOW) == Decimal("12")

    def test_future_start_spent_nothing(self):
        sub = make_subscription(price="12", start_date=NOW + timedelta(days=1))
        assert calculate_total_spent(sub, NOW) == Decimal("0")

    def test_uses_charges_total(self):
        sub = make_subscription(
            price="99",
            duration=RecurringDuration.WEEKLY,
            start_date=NOW - timedelta(days=15),
            charges=[charge("2"), charge("3")],
        )
        # floor(15/7) + 1 = 3 cycles of 5
        assert calculate_total_spent(sub, NOW) == Decimal("15")

    def test_sum_across_subscriptions(self):
        subs = [
            make_subscription(price="12", start_date=NOW - timedelta(days=40)),
            make_subscription(price="5", start_date=NOW + timedelta(days=3)),
        ]
        assert calculate_total_spent_all(subs, NOW) == Decimal("24")


class TestRenewalProjection:

    def test_future_start_is_next_renewal(self):
        start = NOW + timedelta(days=10)
        assert project_next_renewal(start, RecurringDuration.MONTHLY, NOW) == start

    def test_monthly_projection(self):
        """151 days since Jan 15 -> 5 cycles -> 6 months ahead."""
        result = project_next_renewal(utc(2025, 1, 15), RecurringDuration.MONTHLY, NOW)
        assert result == utc(2025, 7, 15)

    def test_weekly_projection(self):
        result = project_next_renewal(utc(2025, 6, 1), RecurringDuration.WEEKLY, NOW)
        assert result == utc(2025, 6, 22)

    def test_renewal_at_now_moves_to_next_cycle(self):
        result = project_next_renewal(utc(2025, 6, 8), RecurringDuration.WEEKLY, NOW)
        assert result == utc(2025, 6, 22)

    def test_correction_pass_after_short_month(self):
        """
        Feb has 28 days, so the 30-day estimate sees 0 cycles on Mar 1 and
        the first projection (Mar 1 00:00) is already past. One more month.
        """
        now = utc(2025, 3, 1, 12)
        result = project_next_renewal(utc(2025, 2, 1, 0), RecurringDuration.MONTHLY, now)
        assert result == utc(2025, 4, 1, 0)

    def test_yearly_projection_from_leap_day(self):
        result = project_next_renewal(utc(2024, 2, 29), RecurringDuration.YEARLY, utc(2024, 6, 1))
        assert result == utc(2025, 3, 1)

    def test_quarterly_projection(self):
        result = project_next_renewal(utc(2025, 1, 15), RecurringDuration.QUARTERLY, NOW)
        assert result == utc(2025, 7, 15)

    def test_known_drift_can_skip_a_cycle(self):
        """
        The day estimate counts a full 365-day year inside a 366-day leap
        year, so the projection lands two years out instead of one.
        """
        result = project_next_renewal(
            utc(2024, 1, 1, 0), RecurringDuration.YEARLY, utc(2024, 12, 31, 12)
        )
        assert result == utc(2026, 1, 1, 0)

    def test_unknown_duration_steps_monthly(self):
        result = project_next_renewal(utc(2025, 1, 15), "daily", NOW)
        assert result == utc(2025, 7, 15)

    def test_subscription_wrapper(self):
        sub = make_subscription(start_date=utc(2025, 1, 15))
        assert calculate_next_renewal_date(sub, NOW) == utc(2025, 7, 15)


@pytest.fixture
def renewal_mix():
    """
    Next renewals relative to NOW:
    - streaming: Jun 20 (5 days)
    - domain:    Jul 30 (45 days)
    - meal kit:  Jun 17 (2 days)
    """
    streaming = make_subscription(title="Streaming", start_date=utc(2025, 5, 20))
    domain = make_subscription(
        title="Domain",
        price="120",
        duration=RecurringDuration.YEARLY,
        start_date=utc(2024, 7, 30),
    )
    meal_kit = make_subscription(
        title="Meal kit",
        price="5",
        duration=RecurringDuration.WEEKLY,
        start_date=utc(2025, 6, 10),
    )
    return streaming, domain, meal_kit


class TestRenewalLists:

    def test_upcoming_renewals_sorted_and_windowed(self, renewal_mix):
        streaming, domain, meal_kit = renewal_mix
        result = get_upcoming_renewals(list(renewal_mix), days_ahead=30, now=NOW)
        assert result == [meal_kit, streaming]

    def test_upcoming_renewals_wider_window(self, renewal_mix):
        streaming, domain, meal_kit = renewal_mix
        result = get_upcoming_renewals(list(renewal_mix), days_ahead=60, now=NOW)
        assert result == [meal_kit, streaming, domain]

    def test_renewals_this_month(self, renewal_mix):
        streaming, domain, meal_kit = renewal_mix
        assert get_renewals_this_month(list(renewal_mix), NOW) == [meal_kit, streaming]

    def test_renewal_later_on_last_day_is_outside_month_window(self):
        """The window ends at midnight starting the last day of the month."""
        sub = make_subscription(start_date=utc(2025, 5, 30))
        assert calculate_next_renewal_date(sub, NOW) == utc(2025, 6, 30)
        assert get_renewals_this_month([sub], NOW) == []

    def test_upcoming_window_end_is_inclusive(self):
        """Weekly from Jun 8 renews Jun 22 12:00, exactly NOW + 7 days."""
        sub = make_subscription(duration=RecurringDuration.WEEKLY, start_date=utc(2025, 6, 8))
        assert get_upcoming_renewals([sub], days_ahead=7, now=NOW) == [sub]
        assert get_upcoming_renewals([sub], days_ahead=6, now=NOW) == []

    def test_zero_day_window_is_empty(self, renewal_mix):
        assert get_upcoming_renewals(list(renewal_mix), days_ahead=0, now=NOW) == []

    def test_window_bounds_are_inclusive(self):
        """A renewal landing exactly on either edge of the window is kept."""
        sub = make_subscription(start_date=utc(2025, 6, 1, 0))
        before = utc(2025, 5, 20)
        assert _renewals_between([sub], utc(2025, 6, 1, 0), utc(2025, 6, 30, 0), before) == [sub]
        assert _renewals_between([sub], utc(2025, 5, 1, 0), utc(2025, 6, 1, 0), before) == [sub]
        assert _renewals_between([sub], utc(2025, 6, 1, 0, 1), utc(2025, 6, 30, 0), before) == []

    def test_renewal_on_first_day_counts_this_month(self):
        sub = make_subscription(start_date=utc(2025, 6, 1, 0, 30))
        assert get_renewals_this_month([sub], utc(2025, 6, 1, 0, 0)) == [sub]

    def test_next_renewal(self, renewal_mix):
        streaming, domain, meal_kit = renewal_mix
        result = get_next_renewal(list(renewal_mix), NOW)
        assert result.subscription is meal_kit
        assert result.date == utc(2025, 6, 17)

    def test_next_renewal_empty(self):
        assert get_next_renewal([], NOW) is None

    def test_results_are_stable_for_frozen_clock(self, renewal_mix):
        subs = list(renewal_mix)
        assert get_upcoming_renewals(subs, now=NOW) == get_upcoming_renewals(subs, now=NOW)
        assert get_next_renewal(subs, NOW) == get_next_renewal(subs, NOW)


class TestAggregates:

    def test_most_costly_uses_monthly_cost(self):
        monthly = make_subscription(title="Monthly", price="10")
        yearly = make_subscription(title="Yearly", price="240", duration=RecurringDuration.YEARLY)
        weekly = make_subscription(title="Weekly", price="5", duration=RecurringDuration.WEEKLY)
        # 10 vs 20 vs 21.65 per month
        assert get_most_costly_subscription([monthly, yearly, weekly]) is weekly

    def test_most_costly_tie_keeps_first(self):
        first = make_subscription(title="First", price="10")
        second = make_subscription(title="Second", price="30", duration=RecurringDuration.QUARTERLY)
        assert get_most_costly_subscription([first, second]) is first

    def test_most_costly_empty(self):
        assert get_most_costly_subscription([]) is None

    def test_average_monthly_cost(self):
        subs = [
            make_subscription(price="10"),
            make_subscription(price="120", duration=RecurringDuration.YEARLY),
            make_subscription(price="40"),
        ]
        assert calculate_average_monthly_cost(subs) == Decimal("20")

    def test_average_of_empty_list_is_zero(self):
        assert calculate_average_monthly_cost([]) == 0

    def test_yearly_cost(self):
        subs = [
            make_subscription(price="10"),
            make_subscription(price="120", duration=RecurringDuration.YEARLY),
        ]
        assert calculate_yearly_cost(subs) == Decimal("240")

    def test_total_monthly_cost(self):
        subs = [
            make_subscription(price="10"),
            make_subscription(price="10", duration=RecurringDuration.WEEKLY),
        ]
        assert calculate_total_monthly_cost(subs) == Decimal("53.3")


class TestGrouping:

    def test_group_by_currency_preserves_order(self):
        usd = make_subscription(title="A", currency="USD")
        eur = make_subscription(title="B", currency="EUR")
        usd2 = make_subscription(title="C", currency="USD")
        groups = group_by_currency([usd, eur, usd2])
        assert list(groups.keys()) == ["USD", "EUR"]
        assert groups["USD"] == [usd, usd2]
        assert groups["EUR"] == [eur]

    def test_group_by_currency_one_each(self):
        usd = make_subscription(currency="USD")
        eur = make_subscription(currency="EUR")
        groups = group_by_currency([usd, eur])
        assert groups == {"USD": [usd], "EUR": [eur]}

    def test_group_by_duration_only_present_keys(self):
        monthly = make_subscription()
        weekly = make_subscription(duration=RecurringDuration.WEEKLY)
        groups = group_by_duration([monthly, weekly])
        assert set(groups) == {RecurringDuration.MONTHLY, RecurringDuration.WEEKLY}

    def test_empty_groupings(self):
        assert group_by_currency([]) == {}
        assert group_by_duration([]) == {}

    def test_duration_breakdown(self):
        subs = [
            make_subscription(price="10"),
            make_subscription(price="120", duration=RecurringDuration.YEARLY),
            make_subscription(price="5"),
        ]
        breakdown = get_duration_breakdown(subs)
        assert [item.duration for item in breakdown] == ["monthly", "yearly"]
        assert breakdown[0].count == 2
        assert breakdown[0].monthly_total == Decimal("15")
        assert breakdown[1].monthly_total == Decimal("10")
        assert breakdown[1].label == "Yearly"


class TestSummary:

    def test_defaults_to_first_currency(self, renewal_mix):
        streaming, domain, meal_kit = renewal_mix
        eur = make_subscription(title="Gym", price="30", currency="EUR")
        stats = summarize_subscriptions([streaming, eur, domain, meal_kit], now=NOW)

        assert stats.currency == "USD"
        assert stats.available_currencies == ["USD", "EUR"]
        assert stats.subscription_count == 3
        assert stats.total_count == 4
        assert stats.is_filtered is True
        assert stats.next_renewal.subscription is meal_kit
        assert stats.renewals_this_month == [meal_kit, streaming]

    def test_selected_currency(self):
        eur = make_subscription(title="Gym", price="30", currency="EUR")
        usd = make_subscription(title="Music", price="10", currency="USD")
        stats = summarize_subscriptions([usd, eur], currency="eur", now=NOW)

        assert stats.currency == "EUR"
        assert stats.total_monthly_cost == Decimal("30")
        assert stats.yearly_cost == Decimal("360")
        assert stats.most_costly is eur

    def test_empty_list_uses_default_currency(self):
        stats = summarize_subscriptions([], now=NOW, default_currency="GBP")
        assert stats.currency == "GBP"
        assert stats.subscription_count == 0
        assert stats.average_monthly_cost == 0
        assert stats.most_costly is None
        assert stats.next_renewal is None
        assert stats.is_filtered is False


class TestClockInjection:
    """A naive `now` is read as UTC, like every other datetime."""

    NAIVE_NOW = datetime(2025, 6, 15, 12, 0)

    def test_total_spent_with_naive_now(self):
        sub = make_subscription(price="12", start_date=utc(2025, 5, 1))
        assert calculate_total_spent(sub, self.NAIVE_NOW) == Decimal("24")

    def test_projection_with_naive_dates(self):
        result = project_next_renewal(
            datetime(2025, 1, 15, 12), RecurringDuration.MONTHLY, self.NAIVE_NOW
        )
        assert result == utc(2025, 7, 15)

    def test_renewal_lists_with_naive_now(self, renewal_mix):
        subs = list(renewal_mix)
        assert get_upcoming_renewals(subs, now=self.NAIVE_NOW) == get_upcoming_renewals(subs, now=NOW)
        assert get_renewals_this_month(subs, self.NAIVE_NOW) == get_renewals_this_month(subs, NOW)
        assert get_next_renewal(subs, self.NAIVE_NOW) == get_next_renewal(subs, NOW)

    def test_summary_with_naive_now(self, renewal_mix):
        subs = list(renewal_mix)
        assert summarize_subscriptions(subs, now=self.NAIVE_NOW) == summarize_subscriptions(subs, now=NOW)
