"""
Typed records for the subscription core.

Every entity read from a store is turned into one of these frozen
dataclasses by subscriptions.normalization before any business logic
sees it. Services never work with raw rows or JSON documents.

Types:
    Selection: One meal slot of the plan (meal type -> package)
    Summary: Checkout totals
    PausedMeal: A (date, meal type) the customer skips
    RefundInfo: What was refunded on cancellation
    RefundTierRecord / RefundPolicyRecord: Refund policy catalog entries
    SubscriptionRecord: A subscription request
    StatusUpdate: Input of a staff status change

Usage:
    from subscriptions.types import PausedMeal

    meal = PausedMeal(date=date(2026, 1, 5), meal_type="Lunch")
    print(meal.key)  # "2026-01-05|Lunch"
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .states import RefundSource, SubscriptionStatus


@dataclass(frozen=True)
class Selection:
    """A meal slot of the plan: which package is delivered for a meal type."""

    meal_type: str
    package_id: str
    package_name: str = ""
    price_per_day: Decimal = Decimal("0.00")
    total_price: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class Summary:
    """
    Checkout totals.

    Attributes:
        duration_days: Plan length used for pricing
        subtotal: Price before any discount
        discount_percent: Automatic (duration) discount percentage
        discount_amount: Automatic discount in currency
        coupon_code: Upper-cased coupon code, if any
        coupon_discount_amount: Coupon discount in currency
        total_payable: What the customer actually paid
    """

    duration_days: int = 1
    subtotal: Decimal = Decimal("0.00")
    discount_percent: Decimal = Decimal("0.00")
    discount_amount: Decimal = Decimal("0.00")
    coupon_code: str | None = None
    coupon_discount_amount: Decimal = Decimal("0.00")
    total_payable: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class PausedMeal:
    """A meal the customer skips. Compared by value."""

    date: datetime.date
    meal_type: str

    @property
    def key(self) -> str:
        """Value key used to diff paused-meal sets."""
        return f"{self.date.isoformat()}|{self.meal_type}"


@dataclass(frozen=True)
class RefundInfo:
    """
    Immutable record of a cancellation refund.

    Written once when the subscription is cancelled and never changed
    afterwards.
    """

    amount: Decimal
    currency: str
    percent_applied: Decimal
    source: str = RefundSource.COINS
    remaining_amount: Decimal = Decimal("0.00")
    remaining_days: int = 0
    tier_label: str | None = None
    notes: str | None = None
    processed_at: datetime.datetime | None = None
    processed_by_id: str | None = None
    processed_by_name: str | None = None

    @property
    def credits_wallet(self) -> bool:
        """True when this refund moves coins into the customer's wallet."""
        return self.amount > 0 and self.source == RefundSource.COINS

    def to_dict(self) -> dict[str, Any]:
        """Convert to a display-friendly dictionary."""
        return {
            "amount": str(self.amount),
            "currency": self.currency,
            "percent_applied": str(self.percent_applied),
            "source": self.source,
            "remaining_amount": str(self.remaining_amount),
            "remaining_days": self.remaining_days,
            "tier_label": self.tier_label,
            "notes": self.notes,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "processed_by_id": self.processed_by_id,
            "processed_by_name": self.processed_by_name,
        }


@dataclass(frozen=True)
class RefundTierRecord:
    """A day range of a refund policy. end_day None means open ended."""

    start_day: int
    end_day: int | None
    refund_percent: Decimal
    refund_source: str = RefundSource.COINS
    label: str | None = None
    notes: str | None = None

    def contains(self, day: int) -> bool:
        return self.start_day <= day and (self.end_day is None or day <= self.end_day)


@dataclass(frozen=True)
class RefundPolicyRecord:
    """
    A refund policy and its tiers.

    subscription_length_days of 0 matches any plan length. Empty
    category_ids / product_ids mean the policy is not restricted on
    that dimension.
    """

    id: Any
    name: str
    description: str | None = None
    subscription_length_days: int = 0
    category_ids: tuple[str, ...] = ()
    product_ids: tuple[str, ...] = ()
    active: bool = True
    tiers: tuple[RefundTierRecord, ...] = ()


@dataclass(frozen=True)
class SubscriptionRecord:
    """
    A subscription request as seen by the service layer.

    version is the optimistic-concurrency counter of the stored document;
    writes made on behalf of this record are conditional on it.
    """

    id: Any
    customer_id: Any
    start_date: datetime.date
    end_date: datetime.date
    duration_days: int
    summary: Summary
    status: str = SubscriptionStatus.PENDING
    selections: tuple[Selection, ...] = ()
    paused_meals: tuple[PausedMeal, ...] = ()
    refund_info: RefundInfo | None = None
    cancelled_at: datetime.datetime | None = None
    customer_short_id: str | None = None
    customer_name: str = ""
    customer_email: str | None = None
    customer_phone: str | None = None
    category_id: str = ""
    category_name: str = ""
    diet_preference: str = "mixed"
    notes: str | None = None
    status_note: str | None = None
    reviewed_by: str | None = None
    reviewed_by_name: str | None = None
    reviewed_at: datetime.datetime | None = None
    delivery_location_id: str | None = None
    delivery_location_name: str | None = None
    delivery_location_address: str | None = None
    delivery_location_coordinates: str | None = None
    delivery_location_landmark: str | None = None
    delivery_location_contact_name: str | None = None
    delivery_location_contact_phone: str | None = None
    version: int = 1
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None

    @property
    def package_ids(self) -> tuple[str, ...]:
        return tuple(s.package_id for s in self.selections if s.package_id)

    @property
    def is_cancelled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELLED


@dataclass(frozen=True)
class StatusUpdate:
    """
    A staff status change.

    Attributes:
        status: Target status; unknown values are treated as pending
        note: Optional note shown to the customer
        reviewed_by: Id of the staff member making the change
        reviewed_by_name: Display name of the staff member
    """

    status: str
    note: str | None = None
    reviewed_by: str | None = None
    reviewed_by_name: str | None = None
