"""
Main Orchestrator for Subscription Tracker

This module ties together storage, auditing and the statistics engine,
and defines the operations the UI calls:
1. Subscription management (create, get, update, delete, list)
2. Dashboard (fetch the user's subscriptions -> summarize)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No operation runs without an authenticated user
- A user can only see and change their own subscriptions
- Every change is audited

The statistics engine itself stays pure; all I/O happens here.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger, configure_logging, create_correlation_id
from src.config import get_settings
from src.models.subscription import (
    RecurringDuration,
    Subscription,
    SubscriptionCharge,
    SubscriptionStats,
    SubscriptionUpdate,
)
from src.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSubscriptionStorage,
    InMemoryAuditStorage,
    InMemorySubscriptionStorage,
    NotFoundError,
    StorageError,
    SubscriptionStorageInterface,
)
from src.stats import get_upcoming_renewals, summarize_subscriptions

logger = structlog.get_logger("subscription_tracker.orchestrator")


class UnauthorizedError(Exception):
    """No authenticated user for an operation that requires one."""
    pass


class SubscriptionService:
    """
    Subscription operations for an authenticated user.

    Raises:
        UnauthorizedError: when user_id is empty
        NotFoundError: when the subscription doesn't exist for the user
        StorageError: when the backend fails
    """

    def __init__(
        self,
        storage: SubscriptionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = get_settings().app

    async def _require_user(
        self,
        user_id: Optional[str],
        action: str,
        correlation_id: UUID,
    ) -> str:
        if not user_id:
            await self._audit_logger.log_unauthorized(
                action=action,
                correlation_id=correlation_id,
            )
            raise UnauthorizedError(f"Authentication required to {action}")
        return user_id

    async def create_subscription(
        self,
        user_id: Optional[str],
        title: str,
        price: Decimal,
        recurring_duration: RecurringDuration,
        start_date: datetime,
        currency: Optional[str] = None,
        charges: Optional[list[SubscriptionCharge]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Subscription:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user(user_id, "create subscription", correlation_id)

        subscription = Subscription(
            user_id=user_id,
            title=title,
            price=price,
            currency=currency or self._settings.default_currency,
            recurring_duration=recurring_duration,
            start_date=start_date,
            charges=charges or [],
        )

        try:
            await self._storage.save_subscription(subscription)
        except StorageError as e:
            await self._audit_logger.log_storage_error(
                operation="create_subscription",
                error_message=str(e),
                user_id=user_id,
                correlation_id=correlation_id,
            )
            raise
        except Exception as e:
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"operation": "create_subscription", "user_id": user_id},
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_subscription_created(
            user_id=user_id,
            subscription_id=subscription.id,
            title=subscription.title,
            correlation_id=correlation_id,
        )
        return subscription

    async def get_subscription(
        self,
        user_id: Optional[str],
        subscription_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Subscription:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user(user_id, "view subscription", correlation_id)

        subscription = await self._storage.get_subscription_by_id(user_id, subscription_id)
        if subscription is None:
            await self._audit_logger.log_subscription_not_found(
                user_id=user_id,
                subscription_id=subscription_id,
                correlation_id=correlation_id,
            )
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        return subscription

    async def update_subscription(
        self,
        user_id: Optional[str],
        subscription_id: UUID,
        update: SubscriptionUpdate,
        correlation_id: Optional[UUID] = None,
    ) -> Subscription:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user(user_id, "update subscription", correlation_id)

        try:
            updated = await self._storage.update_subscription(
                user_id, subscription_id, update
            )
        except NotFoundError:
            await self._audit_logger.log_subscription_not_found(
                user_id=user_id,
                subscription_id=subscription_id,
                correlation_id=correlation_id,
            )
            raise
        except StorageError as e:
            await self._audit_logger.log_storage_error(
                operation="update_subscription",
                error_message=str(e),
                user_id=user_id,
                correlation_id=correlation_id,
            )
            raise
        except Exception as e:
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"operation": "update_subscription", "user_id": user_id},
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_subscription_updated(
            user_id=user_id,
            subscription_id=subscription_id,
            changed_fields=update.changed_fields(),
            correlation_id=correlation_id,
        )
        return updated

    async def delete_subscription(
        self,
        user_id: Optional[str],
        subscription_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user(user_id, "delete subscription", correlation_id)

        deleted = await self._storage.delete_subscription(user_id, subscription_id)
        if deleted:
            await self._audit_logger.log_subscription_deleted(
                user_id=user_id,
                subscription_id=subscription_id,
                correlation_id=correlation_id,
            )
        else:
            await self._audit_logger.log_subscription_not_found(
                user_id=user_id,
                subscription_id=subscription_id,
                correlation_id=correlation_id,
            )
        return deleted

    async def list_subscriptions(
        self,
        user_id: Optional[str],
        currency: Optional[str] = None,
        duration: Optional[RecurringDuration] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Subscription]:
        correlation_id = correlation_id or create_correlation_id()
        user_id = await self._require_user(user_id, "list subscriptions", correlation_id)
        return await self._storage.list_subscriptions(
            user_id, currency=currency, duration=duration
        )

    async def get_dashboard(
        self,
        user_id: Optional[str],
        currency: Optional[str] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SubscriptionStats:
        """Compute the dashboard statistics for one of the user's currencies."""
        correlation_id = correlation_id or create_correlation_id()
        subscriptions = await self.list_subscriptions(
            user_id, correlation_id=correlation_id
        )

        stats = summarize_subscriptions(
            subscriptions,
            currency=currency,
            now=now,
            default_currency=self._settings.default_currency,
        )

        await self._audit_logger.log_dashboard_computed(
            user_id=user_id,
            currency=stats.currency,
            subscription_count=stats.subscription_count,
            correlation_id=correlation_id,
        )
        return stats

    async def get_upcoming_renewals(
        self,
        user_id: Optional[str],
        days_ahead: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[Subscription]:
        subscriptions = await self.list_subscriptions(user_id)
        return get_upcoming_renewals(
            subscriptions,
            days_ahead=(
                days_ahead if days_ahead is not None
                else self._settings.upcoming_renewal_days
            ),
            now=now,
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[SubscriptionService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    When False, or when Sheets is not configured,
                    everything is kept in memory.

    Returns:
        (subscription_service, sheets_client)
    """
    sheets_client = None
    subscription_storage: SubscriptionStorageInterface
    audit_storage: AuditStorageInterface

    configure_logging(get_settings().app.log_level)

    if use_storage and get_settings().app.use_google_sheets:
        try:
            sheets_client = GoogleSheetsClient()
            subscription_storage = GoogleSheetsSubscriptionStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            subscription_storage = InMemorySubscriptionStorage()
            audit_storage = InMemoryAuditStorage()
    else:
        subscription_storage = InMemorySubscriptionStorage()
        audit_storage = InMemoryAuditStorage()

    service = SubscriptionService(
        storage=subscription_storage,
        audit_logger=AuditLogger(audit_storage),
    )

    return service, sheets_client
