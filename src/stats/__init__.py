"""Subscription statistics package."""

from src.stats.engine import (
    calculate_average_monthly_cost,
    calculate_monthly_cost,
    calculate_next_renewal_date,
    calculate_total_monthly_cost,
    calculate_total_spent,
    calculate_total_spent_all,
    calculate_yearly_cost,
    filter_by_currency,
    get_duration_breakdown,
    get_most_costly_subscription,
    get_next_renewal,
    get_renewals_this_month,
    get_total_price,
    get_upcoming_renewals,
    group_by_currency,
    group_by_duration,
    list_currencies,
    monthly_cost_of,
    project_next_renewal,
    resolve_now,
    summarize_subscriptions,
)

__all__ = [
    # Cost normalization
    "calculate_monthly_cost",
    "get_total_price",
    "monthly_cost_of",
    # Elapsed cost
    "calculate_total_spent",
    "calculate_total_spent_all",
    # Renewals
    "calculate_next_renewal_date",
    "get_next_renewal",
    "get_renewals_this_month",
    "get_upcoming_renewals",
    "project_next_renewal",
    "resolve_now",
    # Aggregation
    "calculate_average_monthly_cost",
    "calculate_total_monthly_cost",
    "calculate_yearly_cost",
    "filter_by_currency",
    "get_duration_breakdown",
    "get_most_costly_subscription",
    "group_by_currency",
    "group_by_duration",
    "list_currencies",
    "summarize_subscriptions",
]
