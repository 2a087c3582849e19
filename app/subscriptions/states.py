"""
State and choice enums for subscription models.

These are Django TextChoices for database storage, admin integration and
the django-fsm transitions declared on SubscriptionRequest.

SubscriptionRequest States:
    pending → approved (staff approval)
    pending → rejected (staff rejection)
    pending/approved → cancelled (refund saga)

    Same-status updates (note or reviewer changes) are allowed for every
    status except cancelled. Cancelling a cancelled subscription is an
    idempotent read of the stored refund, not a transition.
"""

from django.db import models


class SubscriptionStatus(models.TextChoices):
    """
    States for the SubscriptionRequest lifecycle.

    Terminal states: REJECTED, CANCELLED
    """

    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    CANCELLED = "cancelled", "Cancelled"


class DietPreference(models.TextChoices):
    """Diet preference chosen at checkout. Unknown values read as MIXED."""

    MIXED = "mixed", "Mixed"
    PURE_VEG = "pure-veg", "Pure veg"


class MealType(models.TextChoices):
    """
    Meal slots of a day.

    Declaration order is the display and sort order of paused meals.
    """

    BREAKFAST = "Breakfast", "Breakfast"
    LUNCH = "Lunch", "Lunch"
    DINNER = "Dinner", "Dinner"


class RefundSource(models.TextChoices):
    """Where a cancellation refund is paid to. Only coins are supported."""

    COINS = "coins", "Coins"


MEAL_TYPE_ORDER: dict[str, int] = {value: index for index, value in enumerate(MealType.values)}


__all__ = [
    "SubscriptionStatus",
    "DietPreference",
    "MealType",
    "RefundSource",
    "MEAL_TYPE_ORDER",
]
