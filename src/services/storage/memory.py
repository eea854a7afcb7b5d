"""
In-Memory Storage

Used by the test suite and as the fallback when Google Sheets is not
configured. Data lives only as long as the process.
"""

from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.models.subscription import (
    RecurringDuration,
    Subscription,
    SubscriptionUpdate,
)
from src.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    SubscriptionStorageInterface,
)


class InMemorySubscriptionStorage(SubscriptionStorageInterface):
    """Dict-backed subscription storage keyed by subscription ID."""

    def __init__(self, subscriptions: Optional[list[Subscription]] = None):
        self._subscriptions: dict[UUID, Subscription] = {}
        for subscription in subscriptions or []:
            self._subscriptions[subscription.id] = subscription

    def _owned(self, user_id: str, subscription_id: UUID) -> Optional[Subscription]:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None or subscription.user_id != user_id:
            return None
        return subscription

    async def save_subscription(self, subscription: Subscription) -> bool:
        if subscription.id in self._subscriptions:
            raise DuplicateError(f"Subscription already exists: {subscription.id}")
        self._subscriptions[subscription.id] = subscription
        return True

    async def get_subscription_by_id(
        self,
        user_id: str,
        subscription_id: UUID,
    ) -> Optional[Subscription]:
        return self._owned(user_id, subscription_id)

    async def update_subscription(
        self,
        user_id: str,
        subscription_id: UUID,
        update: SubscriptionUpdate,
    ) -> Subscription:
        existing = self._owned(user_id, subscription_id)
        if existing is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")

        updated = update.apply_to(existing)
        self._subscriptions[subscription_id] = updated
        return updated

    async def delete_subscription(
        self,
        user_id: str,
        subscription_id: UUID,
    ) -> bool:
        if self._owned(user_id, subscription_id) is None:
            return False
        del self._subscriptions[subscription_id]
        return True

    async def list_subscriptions(
        self,
        user_id: str,
        currency: Optional[str] = None,
        duration: Optional[RecurringDuration] = None,
    ) -> list[Subscription]:
        subscriptions = [
            sub for sub in self._subscriptions.values()
            if sub.user_id == user_id
            and (currency is None or sub.currency == currency.upper())
            and (duration is None or sub.recurring_duration == duration)
        ]
        subscriptions.sort(key=lambda s: s.start_date)
        return subscriptions


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
