"""Services package."""

from src.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsSubscriptionStorage,
    InMemoryAuditStorage,
    InMemorySubscriptionStorage,
    NotFoundError,
    StorageError,
    SubscriptionStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsSubscriptionStorage",
    "InMemoryAuditStorage",
    "InMemorySubscriptionStorage",
    "NotFoundError",
    "StorageError",
    "SubscriptionStorageInterface",
]
