"""
Data Models Package

This package contains all Pydantic models used in the Subscription Tracker.
All data flowing through the system must conform to these schemas.
"""

from src.models.subscription import (
    DurationBreakdown,
    RecurringDuration,
    RenewalInfo,
    Subscription,
    SubscriptionCharge,
    SubscriptionStats,
    SubscriptionUpdate,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Subscription models
    "DurationBreakdown",
    "RecurringDuration",
    "RenewalInfo",
    "Subscription",
    "SubscriptionCharge",
    "SubscriptionStats",
    "SubscriptionUpdate",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
