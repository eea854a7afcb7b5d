"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Users can view and fix their subscriptions directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a user has tens of subscriptions)
- No transactions (we handle this with careful ordering)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import get_settings
from src.models.audit import AuditEvent, AuditEventType, AuditSeverity
from src.models.subscription import (
    RecurringDuration,
    Subscription,
    SubscriptionCharge,
    SubscriptionUpdate,
)
from src.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
    SubscriptionStorageInterface,
)


# Column mappings for Subscriptions sheet
SUBSCRIPTION_COLUMNS = [
    "id",
    "user_id",
    "title",
    "price",
    "currency",
    "recurring_duration",
    "start_date",
    "charges_json",
    "created_at",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_subscriptions_sheet(self) -> gspread.Worksheet:
        """Get or create the Subscriptions worksheet."""
        return self._get_or_create_sheet(
            self._settings.subscriptions_sheet_name,
            SUBSCRIPTION_COLUMNS,
            rows=1000,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )


def subscription_to_row(subscription: Subscription) -> list:
    """Convert a Subscription to a spreadsheet row."""
    charges = [
        {
            "amount": str(charge.amount),
            "day_of_month": charge.day_of_month,
            "start_date": charge.start_date.isoformat(),
        }
        for charge in subscription.charges
    ]
    return [
        str(subscription.id),
        subscription.user_id,
        subscription.title,
        str(subscription.price),
        subscription.currency,
        subscription.recurring_duration.value,
        subscription.start_date.isoformat(),
        json.dumps(charges),
        subscription.created_at.isoformat(),
        subscription.updated_at.isoformat(),
    ]


def row_to_subscription(row: list) -> Subscription:
    """Convert a spreadsheet row to a Subscription."""
    # Handle missing columns gracefully
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default

    charges = []
    charges_json = safe_get(7)
    if charges_json:
        charges = [
            SubscriptionCharge(
                amount=Decimal(item["amount"]),
                day_of_month=item["day_of_month"],
                start_date=datetime.fromisoformat(item["start_date"]),
            )
            for item in json.loads(charges_json)
        ]

    return Subscription(
        id=UUID(safe_get(0)),
        user_id=safe_get(1),
        title=safe_get(2),
        price=Decimal(safe_get(3, "0")),
        currency=safe_get(4, "USD"),
        recurring_duration=RecurringDuration(safe_get(5, "monthly")),
        start_date=datetime.fromisoformat(safe_get(6)),
        charges=charges,
        created_at=datetime.fromisoformat(safe_get(8)),
        updated_at=datetime.fromisoformat(safe_get(9)),
    )


class GoogleSheetsSubscriptionStorage(SubscriptionStorageInterface):
    """
    Google Sheets implementation of subscription storage.

    Subscriptions are stored as rows in a worksheet, one per row.
    Itemized charges are JSON-serialized into a single cell.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(
        self,
        all_rows: list[list],
        user_id: str,
        subscription_id: UUID,
    ) -> Optional[int]:
        """1-based sheet row index of the subscription, header included."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if len(row) > 1 and row[0] == str(subscription_id) and row[1] == user_id:
                return idx
        return None

    @retry(
        retry=retry_if_not_exception_type(DuplicateError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_subscription(self, subscription: Subscription) -> bool:
        """Append a new subscription row."""
        try:
            sheet = self._client.get_subscriptions_sheet()
            existing_ids = sheet.col_values(1)[1:]
            if str(subscription.id) in existing_ids:
                raise DuplicateError(f"Subscription already exists: {subscription.id}")
            sheet.append_row(subscription_to_row(subscription), value_input_option="RAW")
            return True
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save subscription: {e}")

    async def get_subscription_by_id(
        self,
        user_id: str,
        subscription_id: UUID,
    ) -> Optional[Subscription]:
        try:
            sheet = self._client.get_subscriptions_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, user_id, subscription_id)
            if idx is None:
                return None
            return row_to_subscription(all_rows[idx - 1])
        except Exception as e:
            raise StorageError(f"Failed to get subscription: {e}")

    async def update_subscription(
        self,
        user_id: str,
        subscription_id: UUID,
        update: SubscriptionUpdate,
    ) -> Subscription:
        try:
            sheet = self._client.get_subscriptions_sheet()
            all_rows = sheet.get_all_values()
            idx = self._find_row(all_rows, user_id, subscription_id)
            if idx is None:
                raise NotFoundError(f"Subscription not found: {subscription_id}")

            updated = update.apply_to(row_to_subscription(all_rows[idx - 1]))
            sheet.update(
                range_name=f"A{idx}",
                values=[subscription_to_row(updated)],
                value_input_option="RAW",
            )
            return updated
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update subscription: {e}")

    async def delete_subscription(
        self,
        user_id: str,
        subscription_id: UUID,
    ) -> bool:
        try:
            sheet = self._client.get_subscriptions_sheet()
            idx = self._find_row(sheet.get_all_values(), user_id, subscription_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete subscription: {e}")

    async def list_subscriptions(
        self,
        user_id: str,
        currency: Optional[str] = None,
        duration: Optional[RecurringDuration] = None,
    ) -> list[Subscription]:
        try:
            sheet = self._client.get_subscriptions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header

            subscriptions = []
            for row in all_rows:
                if len(row) < 2 or row[1] != user_id:
                    continue

                try:
                    subscription = row_to_subscription(row)
                except (ValueError, KeyError):
                    continue  # Skip malformed rows

                if currency and subscription.currency != currency.upper():
                    continue
                if duration and subscription.recurring_duration != duration:
                    continue

                subscriptions.append(subscription)

            subscriptions.sort(key=lambda s: s.start_date)
            return subscriptions
        except Exception as e:
            raise StorageError(f"Failed to list subscriptions: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
        )

    def _all_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, KeyError):
                continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._all_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._all_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
