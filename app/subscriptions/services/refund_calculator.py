"""
Cancellation refund calculation.

Refund = remaining value of the plan x the tier percentage, where the
remaining value is a straight-line share of what the customer actually
paid (total_payable, after discounts).

    consumed_days    = days from start to cancellation, inclusive of the
                       cancellation day, capped at the plan length
                       (0 when cancelled before the start date)
    remaining_days   = max(0, duration_days - consumed_days)
    remaining_amount = round2(total_payable / duration_days * remaining_days)
    refund           = round2(remaining_amount * percent / 100)

All rounding is Decimal ROUND_HALF_UP to two places. The tier is chosen
with consumed_days as the elapsed day count.

Usage:
    calculator = CancellationRefundCalculator(RefundPolicyResolver(catalog))
    info = await calculator.compute_refund(subscription, timezone.now())

    # With a policy already in hand (no I/O)
    info = compute_refund_for_policy(subscription, timezone.now(), policy)
"""

from __future__ import annotations

import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings

from core.helpers import HUNDRED, clamp_percent, round_currency

from ..normalization import to_date
from ..states import RefundSource
from ..types import RefundInfo
from .tier_selector import select_tier

if TYPE_CHECKING:
    from ..types import RefundPolicyRecord, SubscriptionRecord
    from .policy_resolver import RefundPolicyResolver

ZERO = Decimal("0.00")


def consumed_days(
    subscription: SubscriptionRecord,
    cancellation_instant: datetime.date | datetime.datetime,
) -> int:
    """Whole calendar days used, counting the cancellation day itself."""
    duration = max(0, subscription.duration_days)
    cancel_day = to_date(cancellation_instant)
    if cancel_day is None or cancel_day < subscription.start_date:
        return 0
    return min(duration, (cancel_day - subscription.start_date).days + 1)


def _processed_at(instant: datetime.date | datetime.datetime) -> datetime.datetime | None:
    return instant if isinstance(instant, datetime.datetime) else None


def compute_refund_for_policy(
    subscription: SubscriptionRecord,
    cancellation_instant: datetime.date | datetime.datetime,
    policy: RefundPolicyRecord | None,
    currency: str | None = None,
) -> RefundInfo:
    """
    Compute the refund for a cancellation given the resolved policy.

    A plan with no positive length yields a zero refund without looking
    at the policy.
    """
    currency = currency or settings.SUBSCRIPTION_CURRENCY
    duration = subscription.duration_days

    if duration <= 0:
        return RefundInfo(
            amount=ZERO,
            currency=currency,
            percent_applied=ZERO,
            source=RefundSource.COINS,
            remaining_amount=ZERO,
            remaining_days=0,
            processed_at=_processed_at(cancellation_instant),
        )

    used = consumed_days(subscription, cancellation_instant)
    remaining_days = max(0, duration - used)
    if remaining_days > 0:
        remaining_amount = round_currency(
            subscription.summary.total_payable / Decimal(duration) * remaining_days
        )
    else:
        remaining_amount = ZERO

    tier = select_tier(policy, used) if policy is not None else None
    percent = round_currency(clamp_percent(tier.refund_percent)) if tier else ZERO
    amount = round_currency(remaining_amount * percent / HUNDRED) if percent > 0 else ZERO

    return RefundInfo(
        amount=amount,
        currency=currency,
        percent_applied=percent,
        source=tier.refund_source if tier else RefundSource.COINS,
        remaining_amount=remaining_amount,
        remaining_days=remaining_days,
        tier_label=(tier.label if tier else None) or (policy.name if policy else None) or None,
        notes=(tier.notes if tier else None) or (policy.description if policy else None),
        processed_at=_processed_at(cancellation_instant),
    )


class CancellationRefundCalculator:
    """Resolves the policy of a subscription and computes its refund."""

    def __init__(self, resolver: RefundPolicyResolver, currency: str | None = None):
        self.resolver = resolver
        self.currency = currency

    async def compute_refund(
        self,
        subscription: SubscriptionRecord,
        cancellation_instant: datetime.date | datetime.datetime,
    ) -> RefundInfo:
        if subscription.duration_days <= 0:
            return compute_refund_for_policy(
                subscription, cancellation_instant, None, self.currency
            )
        policy = await self.resolver.resolve(subscription)
        return compute_refund_for_policy(
            subscription, cancellation_instant, policy, self.currency
        )
