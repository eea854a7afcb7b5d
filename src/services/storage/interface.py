"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the statistics engine decoupled from storage entirely

Subscriptions are always scoped to a user. Every read and write takes
the owner's user_id, and a subscription belonging to someone else is
reported as missing rather than forbidden.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from src.models.subscription import (
    RecurringDuration,
    Subscription,
    SubscriptionUpdate,
)
from src.models.audit import AuditEvent


class SubscriptionStorageInterface(ABC):
    """
    Abstract interface for subscription storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def save_subscription(self, subscription: Subscription) -> bool:
        """
        Save a new subscription.

        Raises:
            DuplicateError: If a subscription with the same ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_subscription_by_id(
        self,
        user_id: str,
        subscription_id: UUID,
    ) -> Optional[Subscription]:
        """
        Retrieve one of the user's subscriptions.

        Returns:
            The subscription if found, None otherwise
        """
        pass

    @abstractmethod
    async def update_subscription(
        self,
        user_id: str,
        subscription_id: UUID,
        update: SubscriptionUpdate,
    ) -> Subscription:
        """
        Apply a partial update.

        Returns:
            The updated subscription

        Raises:
            NotFoundError: If the subscription doesn't exist for this user
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_subscription(
        self,
        user_id: str,
        subscription_id: UUID,
    ) -> bool:
        """
        Delete one of the user's subscriptions.

        Returns:
            True if deleted, False if there was nothing to delete
        """
        pass

    @abstractmethod
    async def list_subscriptions(
        self,
        user_id: str,
        currency: Optional[str] = None,
        duration: Optional[RecurringDuration] = None,
    ) -> list[Subscription]:
        """
        List the user's subscriptions, oldest start date first.

        Args:
            user_id: Owner of the subscriptions
            currency: Only this currency code
            duration: Only this billing cadence
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for an entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
