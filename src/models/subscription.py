"""
Core Data Models for Subscription Tracker

These models define the schemas for subscription records and for the
derived statistics shown on the dashboard.

DESIGN DECISION: Money is always Decimal. Subscription prices come from user
input and feed cost aggregates, so we never round-trip them through float.

DESIGN DECISION: All datetimes are timezone-aware (UTC). Naive values are
interpreted as UTC at the model boundary so renewal math can compare
start dates against the clock safely.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Any) -> Any:
    """
    Normalize a date/datetime to an aware UTC datetime.

    Plain dates become midnight UTC. Naive datetimes are assumed to be UTC.
    Anything else (e.g. ISO strings) is passed through for pydantic to parse.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS
# =============================================================================

class RecurringDuration(str, Enum):
    """Billing cadence of a subscription."""
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUALLY = "semi-annually"
    YEARLY = "yearly"

    @property
    def label(self) -> str:
        """Human-readable label, e.g. 'Semi annually'."""
        return self.value.replace("-", " ").capitalize()


# =============================================================================
# SUBSCRIPTION MODELS
# =============================================================================

class SubscriptionCharge(BaseModel):
    """
    Itemized sub-charge of a subscription.

    When a subscription has charges, their sum replaces the flat price.
    """

    amount: Decimal = Field(
        ...,
        ge=0,
        description="Charge amount in the subscription currency"
    )
    day_of_month: int = Field(
        ...,
        ge=1,
        le=31,
        description="Day of month the charge is billed"
    )
    start_date: datetime = Field(
        ...,
        description="When this charge started applying"
    )

    @field_validator("start_date", mode="before")
    @classmethod
    def normalize_start_date(cls, v: Any) -> Any:
        return ensure_utc(v)

    @field_validator("start_date")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class Subscription(BaseModel):
    """
    A recurring payment recorded by a user.

    The statistics engine only reads these; creation and updates go
    through the storage layer.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique subscription ID"
    )
    user_id: str = Field(
        default="",
        description="Owner of the subscription"
    )
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Name of the subscription (e.g. 'Netflix')"
    )
    price: Decimal = Field(
        ...,
        ge=0,
        description="Flat price per billing cycle"
    )
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO 4217 currency code"
    )
    recurring_duration: RecurringDuration = Field(
        default=RecurringDuration.MONTHLY,
        description="Billing cadence"
    )
    start_date: datetime = Field(
        ...,
        description="First billing date (may be in the future)"
    )
    charges: list[SubscriptionCharge] = Field(
        default_factory=list,
        description="Itemized charges overriding the flat price when present"
    )

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("currency")
    @classmethod
    def uppercase_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("start_date", "created_at", "updated_at", mode="before")
    @classmethod
    def normalize_dates(cls, v: Any) -> Any:
        return ensure_utc(v)

    @field_validator("start_date", "created_at", "updated_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class SubscriptionUpdate(BaseModel):
    """
    Partial update for an existing subscription.

    Only fields that were explicitly set are applied. Date strings are
    accepted and parsed, both for the subscription and its charges.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    price: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    recurring_duration: Optional[RecurringDuration] = None
    start_date: Optional[datetime] = None
    charges: Optional[list[SubscriptionCharge]] = None

    @field_validator("currency")
    @classmethod
    def uppercase_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @field_validator("start_date", mode="before")
    @classmethod
    def normalize_start_date(cls, v: Any) -> Any:
        return ensure_utc(v)

    @field_validator("start_date")
    @classmethod
    def ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else v

    def changed_fields(self) -> list[str]:
        """Fields to apply. A field explicitly set to None means "leave unchanged"."""
        return sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is not None
        )

    def apply_to(self, subscription: Subscription) -> Subscription:
        """Return a re-validated copy of `subscription` with the changed fields replaced."""
        changes = {name: getattr(self, name) for name in self.changed_fields()}
        changes["updated_at"] = utc_now()
        return Subscription.model_validate({**subscription.model_dump(), **changes})


# =============================================================================
# STATISTICS MODELS
# =============================================================================

class RenewalInfo(BaseModel):
    """A subscription paired with its projected renewal date."""

    subscription: Subscription
    date: datetime


class DurationBreakdown(BaseModel):
    """Monthly cost of all subscriptions sharing one billing cadence."""

    duration: str
    count: int = Field(ge=0)
    monthly_total: Decimal

    @property
    def label(self) -> str:
        try:
            return RecurringDuration(self.duration).label
        except ValueError:
            return self.duration


class SubscriptionStats(BaseModel):
    """
    Everything the dashboard shows for one currency.

    Built by `summarize_subscriptions`. Amounts are in `currency`.
    """

    currency: str
    available_currencies: list[str] = Field(default_factory=list)

    subscription_count: int = Field(
        ge=0,
        description="Subscriptions in the selected currency"
    )
    total_count: int = Field(
        ge=0,
        description="Subscriptions across all currencies"
    )

    total_monthly_cost: Decimal = Decimal("0")
    yearly_cost: Decimal = Decimal("0")
    total_spent: Decimal = Decimal("0")
    average_monthly_cost: Decimal = Decimal("0")

    most_costly: Optional[Subscription] = None
    renewals_this_month: list[Subscription] = Field(default_factory=list)
    next_renewal: Optional[RenewalInfo] = None
    duration_breakdown: list[DurationBreakdown] = Field(default_factory=list)

    @property
    def is_filtered(self) -> bool:
        """True when other currencies hide some subscriptions."""
        return (
            len(self.available_currencies) > 1
            and self.subscription_count < self.total_count
        )
