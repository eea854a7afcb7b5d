"""
Audit Models for Subscription Tracker

Every change to a user's subscriptions is logged for audit purposes.
This provides:
1. Traceability of who changed what
2. Debugging information when things go wrong
3. Ability to reconstruct a subscription's history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.models.subscription import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Subscription lifecycle
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"

    # Access failures
    SUBSCRIPTION_NOT_FOUND = "subscription_not_found"
    UNAUTHORIZED_ACCESS = "unauthorized_access"

    # Read side
    DASHBOARD_COMPUTED = "dashboard_computed"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what is this about, and for whom?
    user_id: Optional[str] = Field(
        default=None,
        description="User the action was performed for"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'subscription', 'dashboard')"
    )
    entity_id: Optional[UUID] = None
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one page render)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.subscription_created(user_id, sub_id, "Netflix")
        event = AuditEventBuilder.subscription_not_found(user_id, sub_id)
    """

    @staticmethod
    def subscription_created(
        user_id: str,
        subscription_id: UUID,
        title: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_CREATED,
            user_id=user_id,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description=f"Subscription created: {title}",
            details={"title": title},
        )

    @staticmethod
    def subscription_updated(
        user_id: str,
        subscription_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_UPDATED,
            user_id=user_id,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description=f"Subscription updated ({len(changed_fields)} fields)",
            details={"changed_fields": sorted(changed_fields)},
        )

    @staticmethod
    def subscription_deleted(
        user_id: str,
        subscription_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_DELETED,
            user_id=user_id,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description="Subscription deleted",
        )

    @staticmethod
    def subscription_not_found(
        user_id: str,
        subscription_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_NOT_FOUND,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="subscription",
            entity_id=subscription_id,
            correlation_id=correlation_id,
            description="Subscription not found",
        )

    @staticmethod
    def unauthorized_access(
        action: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNAUTHORIZED_ACCESS,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Unauthorized attempt to {action}",
            details={"action": action},
        )

    @staticmethod
    def dashboard_computed(
        user_id: str,
        currency: str,
        subscription_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DASHBOARD_COMPUTED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type="dashboard",
            correlation_id=correlation_id,
            description=f"Dashboard computed for {subscription_count} {currency} subscriptions",
            details={
                "currency": currency,
                "subscription_count": subscription_count,
            },
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
