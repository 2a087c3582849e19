"""
Paused meal reconciliation.

Pausing a meal credits its share of the plan to the customer's wallet
right away and un-pausing debits it again, so the wallet always reflects
what the customer is still committed to receive.

    per_meal = round(paid_effective / (duration_days x selections))
    paid_effective = max(0, subtotal - coupon discount - auto discount)
    delta = (|added| - |removed|) x per_meal

subtotal falls back to total_payable when it is not positive, and
per_meal is rounded half-up to a whole coin.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from core.helpers import round_whole

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..types import PausedMeal, SubscriptionRecord


def per_meal_value(subscription: SubscriptionRecord) -> Decimal:
    """Coins one paused meal is worth. 0 when the plan has no meal slots."""
    summary = subscription.summary
    duration = subscription.duration_days if subscription.duration_days > 0 else summary.duration_days
    total_slots = duration * len(subscription.selections)
    if total_slots <= 0:
        return Decimal("0")

    subtotal = summary.subtotal if summary.subtotal > 0 else summary.total_payable
    discounts = max(Decimal("0"), summary.discount_amount + summary.coupon_discount_amount)
    paid_effective = max(Decimal("0"), subtotal - discounts)
    return round_whole(paid_effective / total_slots)


class PausedMealReconciler:
    """Derives the wallet delta of a paused-meal change."""

    def diff(
        self,
        existing: Iterable[PausedMeal],
        incoming: Iterable[PausedMeal],
    ) -> tuple[set[str], set[str]]:
        """Return (added, removed) value keys."""
        before = {meal.key for meal in existing}
        after = {meal.key for meal in incoming}
        return after - before, before - after

    def reconcile(
        self,
        existing: Iterable[PausedMeal],
        incoming: Iterable[PausedMeal],
        subscription: SubscriptionRecord,
    ) -> Decimal:
        """
        Signed coin delta for moving from existing to incoming paused meals.

        Positive credits the wallet (more meals paused), negative debits it.
        """
        added, removed = self.diff(existing, incoming)
        net_meals = len(added) - len(removed)
        if net_meals == 0:
            return Decimal("0")
        return net_meals * per_meal_value(subscription)
