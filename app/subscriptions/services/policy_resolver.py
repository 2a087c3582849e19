"""
Refund policy resolution.

A policy is a candidate for a subscription when all of these hold:
    - its length equals the plan length, or is 0 (any length)
    - it has no category allowlist, or lists the plan's category
    - it has no product allowlist, or shares a package with the plan

Candidates are scored: exact length +4 (any length +1), category
allowlist +1, product allowlist +1. The highest score wins and ties keep
the policy listed first by the catalog.

Usage:
    from subscriptions.services.policy_resolver import RefundPolicyResolver

    resolver = RefundPolicyResolver(catalog)
    policy = await resolver.resolve(subscription)  # None -> 0% refund
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..protocols import PolicyCatalog
    from ..types import RefundPolicyRecord, SubscriptionRecord

logger = logging.getLogger(__name__)

EXACT_LENGTH_SCORE = 4
ANY_LENGTH_SCORE = 1
ALLOWLIST_SCORE = 1


def score_policy(policy: RefundPolicyRecord, subscription: SubscriptionRecord) -> int | None:
    """Specificity score of a policy for a subscription, or None if it does not apply."""
    duration = max(0, subscription.duration_days)
    if policy.subscription_length_days == duration:
        score = EXACT_LENGTH_SCORE
    elif policy.subscription_length_days == 0:
        score = ANY_LENGTH_SCORE
    else:
        return None

    if policy.category_ids:
        if subscription.category_id not in policy.category_ids:
            return None
        score += ALLOWLIST_SCORE

    if policy.product_ids:
        if not set(policy.product_ids).intersection(subscription.package_ids):
            return None
        score += ALLOWLIST_SCORE

    return score


def select_policy(
    policies: Iterable[RefundPolicyRecord],
    subscription: SubscriptionRecord,
) -> RefundPolicyRecord | None:
    """Best-matching active policy, or None."""
    best = None
    best_score = -1
    for policy in policies:
        if not policy.active:
            continue
        score = score_policy(policy, subscription)
        if score is not None and score > best_score:
            best, best_score = policy, score
    return best


class RefundPolicyResolver:
    """
    Finds the refund policy of a subscription from a PolicyCatalog.

    A catalog failure never blocks a cancellation: it is logged and the
    subscription is treated as having no policy (0% refund).
    """

    def __init__(self, catalog: PolicyCatalog):
        self.catalog = catalog

    async def resolve(self, subscription: SubscriptionRecord) -> RefundPolicyRecord | None:
        try:
            policies = await self.catalog.list_active_refund_policies()
        except Exception:
            logger.exception(
                f"Failed to load refund policies for subscription {subscription.id}; "
                f"applying no refund policy"
            )
            return None

        policy = select_policy(policies, subscription)
        if policy is None:
            logger.info(f"No refund policy matches subscription {subscription.id}")
        return policy
